"""Local HTTP control surface for setup, detection and report download."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import BackgroundTasks, FastAPI
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

import artifacts
import pipeline
from run_registry import RunRegistry, new_run_id
from token_store import TokenStore
from zoho_auth import setup_auth

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

LOGGER = logging.getLogger(__name__)

app = FastAPI(
    title="Inventory Duplicate Detector",
    description="Finds near-duplicate Zoho Books items with a generative model",
    version="0.1.0",
)

registry = RunRegistry()


class SetupRequest(BaseModel):
    clientId: str | None = None
    clientSecret: str | None = None
    grantToken: str | None = None
    organizationId: str | None = None


class DetectRequest(BaseModel):
    organizationId: str | None = None


@app.post("/setup")
def setup(body: SetupRequest):
    """Exchange a grant token and create the credential file."""
    if not (body.clientId and body.clientSecret and body.grantToken and body.organizationId):
        return JSONResponse(
            status_code=400,
            content={"error": "All fields are required: clientId, clientSecret, grantToken, organizationId"},
        )

    try:
        setup_auth(body.clientId, body.clientSecret, body.grantToken, TokenStore())
    except Exception as exc:
        LOGGER.error("Setup error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Setup failed", "details": str(exc)})

    return {
        "message": "Zoho authentication setup completed successfully!",
        "note": "Token file has been created. You can now use the duplicate detection API.",
    }


@app.post("/detect")
def detect(body: DetectRequest):
    """Run one detection synchronously and return the report name."""
    if not body.organizationId:
        return JSONResponse(status_code=400, content={"error": "Organization ID is required"})

    run_id = new_run_id()
    filename = pipeline.detect_duplicates(body.organizationId, run_id, registry)

    if filename:
        return {"message": "Processing completed successfully.", "filename": filename, "run_id": run_id}

    current = registry.get(run_id)
    error = current.error if current and current.error else "An unknown error occurred"
    return JSONResponse(status_code=500, content={"error": error, "run_id": run_id})


@app.get("/status/{run_id}")
def status(run_id: str):
    current = registry.get(run_id)
    if current is None:
        return JSONResponse(status_code=404, content={"error": "Request not found"})
    return current.to_dict()


@app.get("/download/{filename}")
def download(filename: str, background_tasks: BackgroundTasks):
    """Stream a report, then delete it and its JSON companion."""
    try:
        path = artifacts.resolve_artifact(filename)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid filename"})

    if not path.is_file():
        return JSONResponse(status_code=404, content={"error": "File not found"})

    background_tasks.add_task(_cleanup_after_download, filename)
    media_type = XLSX_MEDIA_TYPE if path.suffix == ".xlsx" else None
    return FileResponse(path, filename=filename, media_type=media_type)


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


def _cleanup_after_download(filename: str) -> None:
    removed = artifacts.remove_artifacts(filename)
    evicted = registry.evict_by_filename(filename)
    LOGGER.info("Cleaned up %s after download (files=%s runs=%s)", filename, len(removed), len(evicted))
