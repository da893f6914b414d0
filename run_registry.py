"""In-memory registry of run status records, keyed by run id."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import replace

from models import RunStatus

LOGGER = logging.getLogger(__name__)


def new_run_id() -> str:
    """Generate an identifier like ``req_1718000000000_a1b2c3d4e``."""
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class RunRegistry:
    """Owns every RunStatus. Each operation is atomic under one lock.

    Readers get copies, so a status returned by ``get`` never changes under
    the caller.
    """

    def __init__(self) -> None:
        self._runs: dict[str, RunStatus] = {}
        self._lock = threading.Lock()

    def start(self, run_id: str, progress: str) -> RunStatus:
        status = RunStatus(run_id=run_id, state="processing", progress=progress)
        with self._lock:
            self._runs[run_id] = status
        LOGGER.info("[%s] %s", run_id, progress)
        return _copy(status)

    def update(self, run_id: str, progress: str) -> None:
        with self._lock:
            status = self._require(run_id)
            status.progress = progress
        LOGGER.info("[%s] %s", run_id, progress)

    def complete(
        self,
        run_id: str,
        filename: str,
        progress: str,
        failed_batches: list[int] | None = None,
    ) -> None:
        with self._lock:
            status = self._require(run_id)
            status.state = "completed"
            status.filename = filename
            status.progress = progress
            status.failed_batches = list(failed_batches or [])
        LOGGER.info("[%s] completed: %s", run_id, progress)

    def fail(self, run_id: str, error: str, diagnostic_file: str | None = None) -> None:
        with self._lock:
            status = self._runs.setdefault(run_id, RunStatus(run_id=run_id))
            status.state = "error"
            status.error = error
            if diagnostic_file is not None:
                status.diagnostic_file = diagnostic_file
        LOGGER.error("[%s] failed: %s", run_id, error)

    def get(self, run_id: str) -> RunStatus | None:
        with self._lock:
            status = self._runs.get(run_id)
            return _copy(status) if status is not None else None

    def evict(self, run_id: str) -> bool:
        with self._lock:
            return self._runs.pop(run_id, None) is not None

    def evict_by_filename(self, filename: str) -> list[str]:
        """Drop every run whose report artifact is ``filename``."""
        with self._lock:
            run_ids = [run_id for run_id, status in self._runs.items() if status.filename == filename]
            for run_id in run_ids:
                del self._runs[run_id]
        return run_ids

    def _require(self, run_id: str) -> RunStatus:
        status = self._runs.get(run_id)
        if status is None:
            raise KeyError(f"Unknown run id: {run_id}")
        return status


def _copy(status: RunStatus) -> RunStatus:
    return replace(status, failed_batches=list(status.failed_batches))
