"""Batch orchestration for analyzing large item catalogs.

Batches run strictly one after another. Groups are concatenated in batch
order and never reconciled across batch boundaries, so two duplicates that
land in different batches are not reported.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from errors import ResponseParseError
from models import DuplicateGroup, ItemRecord
from response_parser import parse_duplicate_groups

Analyze = Callable[[Sequence[ItemRecord]], str]
ProgressCallback = Callable[[str], None]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchFailure:
    """A batch whose reply could not be parsed and was skipped."""

    index: int
    message: str
    raw_text: str


@dataclass(slots=True)
class BatchOutcome:
    """Accumulated result of the batch fold."""

    total_batches: int = 0
    duplicates: list[DuplicateGroup] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def failed_batches(self) -> list[int]:
        return [failure.index for failure in self.failures]


def partition(items: Sequence[ItemRecord], batch_size: int) -> list[list[ItemRecord]]:
    """Split items into contiguous chunks of at most batch_size, preserving order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    return [list(items[start:start + batch_size]) for start in range(0, len(items), batch_size)]


def run_batches(
    items: Sequence[ItemRecord],
    batch_size: int,
    analyze: Analyze,
    on_progress: ProgressCallback | None = None,
) -> BatchOutcome:
    """Analyze items batch by batch, skipping batches whose reply cannot be parsed.

    Analyzer call failures are not caught here and abort the run.
    """
    batches = partition(items, batch_size)
    outcome = BatchOutcome(total_batches=len(batches))

    for index, batch in enumerate(batches, 1):
        message = f"Analyzing batch {index} of {outcome.total_batches} ({len(batch)} items)..."
        LOGGER.info(message)
        if on_progress is not None:
            on_progress(message)

        _fold_batch(outcome, index, batch, analyze)

    LOGGER.info(
        "Batch analysis complete: batches=%s groups=%s failed=%s",
        outcome.total_batches,
        len(outcome.duplicates),
        outcome.failed_batches,
    )
    return outcome


def analyze_single(items: Sequence[ItemRecord], analyze: Analyze) -> list[DuplicateGroup]:
    """Analyze the whole set in one call. A parse failure propagates to the caller."""
    return parse_duplicate_groups(analyze(items))


def _fold_batch(outcome: BatchOutcome, index: int, batch: list[ItemRecord], analyze: Analyze) -> None:
    try:
        groups = parse_duplicate_groups(analyze(batch))
    except ResponseParseError as exc:
        LOGGER.error("Skipping batch %s of %s: %s", index, outcome.total_batches, exc)
        outcome.failures.append(BatchFailure(index=index, message=str(exc), raw_text=exc.raw_text))
        return

    outcome.duplicates.extend(groups)
