"""Per-run files in the results directory: naming, writing and cleanup."""

from __future__ import annotations

import json
import logging
import os
import secrets
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from models import DuplicateGroup

RESULTS_DIR = os.getenv("RESULTS_DIR", "results")

LOGGER = logging.getLogger(__name__)


def results_dir() -> Path:
    path = Path(RESULTS_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def report_stem(organization_id: str, timestamp_ms: int | None = None) -> str:
    """Name shared by a run's report and its raw JSON companion."""
    ms = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
    day = datetime.fromtimestamp(ms / 1000, tz=UTC).date().isoformat()
    return f"duplicate_results_{_safe(organization_id)}_{day}_{ms}_{secrets.token_hex(3)}"


def write_raw_result(stem: str, groups: Sequence[DuplicateGroup], total_items: int) -> Path:
    path = results_dir() / f"{stem}.json"
    payload = {
        "duplicates": [group.to_dict() for group in groups],
        "summary": {"total_items": total_items, "duplicate_groups": len(groups)},
    }
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    LOGGER.info("Wrote raw duplicate data to %s", path)
    return path


def write_error_response(organization_id: str, raw_text: str, suffix: str = "") -> Path:
    """Preserve an unparseable analyzer reply for diagnosis."""
    ms = int(time.time() * 1000)
    path = results_dir() / f"error_response_{_safe(organization_id)}_{ms}{suffix}.txt"
    path.write_text(raw_text, encoding="utf-8")
    LOGGER.warning("Saved unparseable AI response to %s", path)
    return path


def resolve_artifact(filename: str) -> Path:
    """Map a bare artifact name to its path, rejecting anything with path parts."""
    if not filename or Path(filename).name != filename or filename in {".", ".."}:
        raise ValueError(f"Invalid artifact name: {filename!r}")
    return Path(RESULTS_DIR) / filename


def remove_artifacts(filename: str) -> list[Path]:
    """Delete a downloaded report and its JSON companion. Returns what was removed."""
    report_path = resolve_artifact(filename)
    removed: list[Path] = []
    for path in (report_path, report_path.with_suffix(".json")):
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            LOGGER.error("Failed to delete %s: %s", path, exc)
            continue
        removed.append(path)
    return removed


def _safe(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value)
