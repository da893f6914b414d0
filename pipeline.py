"""One duplicate detection run: fetch, analyze, report."""

from __future__ import annotations

import logging
import os

import artifacts
from analyzer import analyze_items
from batching import Analyze, analyze_single, run_batches
from errors import ResponseParseError
from models import DuplicateGroup, ItemRecord
from report import write_report
from run_registry import RunRegistry
from token_store import TokenStore
from zoho_auth import get_access_token
from zoho_items import fetch_all_items

BATCH_SIZE = int(os.getenv("BATCH_SIZE", "1000"))
LARGE_SET_THRESHOLD = int(os.getenv("LARGE_SET_THRESHOLD", "2500"))

LOGGER = logging.getLogger(__name__)


def detect_duplicates(
    organization_id: str,
    run_id: str,
    registry: RunRegistry,
    analyze: Analyze = analyze_items,
    store: TokenStore | None = None,
) -> str | None:
    """Run detection for one organization and return the report filename.

    Returns None when the run failed; the reason is on the run's status.
    """
    registry.start(run_id, "Fetching items from Zoho...")

    try:
        access_token = get_access_token(store or TokenStore())
        items = fetch_all_items(access_token, organization_id)
        LOGGER.info("[%s] Retrieved %s items for organization %s", run_id, len(items), organization_id)

        if not items:
            registry.fail(
                run_id,
                "No items retrieved from Zoho. Please check your API credentials and organization ID.",
            )
            return None

        failed_batches: list[int] = []
        if len(items) > LARGE_SET_THRESHOLD:
            registry.update(run_id, f"Batch processing {len(items)} items...")
            outcome = run_batches(
                items,
                BATCH_SIZE,
                analyze,
                on_progress=lambda message: registry.update(run_id, message),
            )
            for failure in outcome.failures:
                artifacts.write_error_response(organization_id, failure.raw_text, suffix=f"_batch{failure.index}")
            groups = outcome.duplicates
            failed_batches = outcome.failed_batches
        else:
            registry.update(run_id, f"Analyzing {len(items)} items with AI...")
            try:
                groups = analyze_single(items, analyze)
            except ResponseParseError as exc:
                diagnostic = artifacts.write_error_response(organization_id, exc.raw_text)
                registry.fail(run_id, str(exc), diagnostic_file=diagnostic.name)
                return None

        registry.update(run_id, "Generating Excel report...")
        filename = _write_outputs(organization_id, groups, items)

        progress = f"Found {len(groups)} duplicate groups in {len(items)} items"
        if failed_batches:
            progress += f" (skipped batches: {', '.join(str(i) for i in failed_batches)})"
        registry.complete(run_id, filename, progress, failed_batches=failed_batches)
        return filename
    except Exception as exc:
        LOGGER.exception("[%s] Processing error: %s", run_id, exc)
        registry.fail(run_id, str(exc))
        return None


def _write_outputs(organization_id: str, groups: list[DuplicateGroup], items: list[ItemRecord]) -> str:
    stem = artifacts.report_stem(organization_id)
    report_path = artifacts.results_dir() / f"{stem}.xlsx"
    write_report(report_path, groups, items, organization_id)
    artifacts.write_raw_result(stem, groups, len(items))
    return report_path.name
