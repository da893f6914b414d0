"""Excel report for a duplicate detection run.

The workbook always has three sheets:

  Summary     - organization, counts and generation time.
  Duplicates  - one row per grouped item, a blank row between groups.
  All Items   - every fetched item, for reference.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

from models import DuplicateGroup, ItemRecord

LOGGER = logging.getLogger(__name__)

DUPLICATE_COLUMNS = ["Group ID", "Item Name", "Rate", "Unit", "Confidence Score", "Reason"]
ITEM_COLUMNS = ["Item Name", "Rate", "Unit"]


def build_workbook(
    groups: Sequence[DuplicateGroup],
    items: Sequence[ItemRecord],
    organization_id: str,
    generated_at: datetime | None = None,
) -> Workbook:
    wb = Workbook()

    summary = wb.active
    summary.title = "Summary"
    for row in _summary_rows(groups, items, organization_id, generated_at or datetime.now()):
        summary.append(row)
    summary["A1"].font = Font(bold=True)
    summary.column_dimensions["A"].width = 28
    summary.column_dimensions["B"].width = 24

    duplicates = wb.create_sheet("Duplicates")
    duplicates.append(DUPLICATE_COLUMNS)
    _bold_header(duplicates)
    for row in _duplicate_rows(groups, items):
        duplicates.append(row)
    for letter, width in zip("ABCDEF", [10, 40, 10, 10, 16, 60]):
        duplicates.column_dimensions[letter].width = width

    all_items = wb.create_sheet("All Items")
    all_items.append(ITEM_COLUMNS)
    _bold_header(all_items)
    for item in items:
        all_items.append([item.item_name or "", _cell(item.rate), item.unit or ""])
    all_items.column_dimensions["A"].width = 40

    return wb


def write_report(
    path: Path,
    groups: Sequence[DuplicateGroup],
    items: Sequence[ItemRecord],
    organization_id: str,
) -> Path:
    """Build the workbook and save it to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    build_workbook(groups, items, organization_id).save(path)
    LOGGER.info("report: %d duplicate groups, %d items -> %s", len(groups), len(items), path)
    return path


def _summary_rows(
    groups: Sequence[DuplicateGroup],
    items: Sequence[ItemRecord],
    organization_id: str,
    generated_at: datetime,
) -> list[list[Any]]:
    return [
        ["Duplicate Detection Summary"],
        [],
        ["Organization ID", organization_id],
        ["Total Items Analyzed", len(items)],
        ["Duplicate Groups Found", len(groups)],
        ["Total Duplicate Items", sum(len(group.items) for group in groups)],
        [],
        ["Generated on", generated_at.strftime("%Y-%m-%d %H:%M:%S")],
    ]


def _duplicate_rows(groups: Sequence[DuplicateGroup], items: Sequence[ItemRecord]) -> list[list[Any]]:
    # The model may echo names without rate/unit, so prefer the fetched values.
    by_name = {item.item_name: item for item in items if item.item_name}

    rows: list[list[Any]] = []
    for number, group in enumerate(groups, 1):
        if number > 1:
            rows.append([""] * len(DUPLICATE_COLUMNS))
        for entry in group.items:
            source = by_name.get(entry.item_name, entry)
            rows.append([
                f"Group {number}",
                entry.item_name or "",
                _cell(source.rate),
                source.unit or "",
                _cell(group.confidence_score),
                group.reason or "",
            ])
    return rows


def _bold_header(sheet: Any) -> None:
    for cell in sheet[1]:
        cell.font = Font(bold=True)


def _cell(value: Any) -> Any:
    """Keep numbers numeric; blank out anything openpyxl cannot store."""
    if value is None:
        return ""
    if isinstance(value, (int, float, str)):
        return value
    return str(value)
