"""End-to-end runs of pipeline.detect_duplicates with stubbed collaborators."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import patch

import pytest
from openpyxl import load_workbook

import artifacts
import pipeline
from errors import AnalyzerCallError, UpstreamFetchError
from models import ItemRecord
from run_registry import RunRegistry

FRUIT = [
    ItemRecord(item_name="Apple", rate=10, unit="kg"),
    ItemRecord(item_name="apple", rate=10, unit="kg"),
    ItemRecord(item_name="Banana", rate=5, unit="kg"),
]


class RecordingRegistry(RunRegistry):
    def __init__(self) -> None:
        super().__init__()
        self.messages: list[str] = []

    def update(self, run_id: str, progress: str) -> None:
        self.messages.append(progress)
        super().update(run_id, progress)


@pytest.fixture(autouse=True)
def results_in_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point RESULTS_DIR at a temp directory for every test."""
    monkeypatch.setattr(artifacts, "RESULTS_DIR", str(tmp_path))
    return tmp_path


def _apple_reply(batch: Sequence[ItemRecord]) -> str:
    return (
        "```json\n"
        + json.dumps({
            "duplicates": [{
                "items": [FRUIT[0].to_dict(), FRUIT[1].to_dict()],
                "confidence_score": 0.97,
                "reason": "Same product, case difference",
            }],
            "summary": {"total_items": len(batch), "duplicate_groups": 1},
        })
        + "\n```"
    )


def _run(items: list[ItemRecord], analyze, registry: RunRegistry) -> str | None:
    with patch("pipeline.get_access_token", return_value="token"), \
         patch("pipeline.fetch_all_items", return_value=items):
        return pipeline.detect_duplicates("org-1", "run-1", registry, analyze=analyze)


def test_small_set_end_to_end(results_in_tmp: Path) -> None:
    registry = RunRegistry()
    filename = _run(FRUIT, _apple_reply, registry)

    assert filename is not None
    assert filename.startswith("duplicate_results_org-1_") and filename.endswith(".xlsx")

    status = registry.get("run-1")
    assert status.state == "completed"
    assert status.filename == filename
    assert status.progress == "Found 1 duplicate groups in 3 items"

    wb = load_workbook(results_in_tmp / filename)
    duplicate_rows = [row for row in wb["Duplicates"].iter_rows(min_row=2, values_only=True) if row[0]]
    assert len(duplicate_rows) == 2
    assert {row[0] for row in duplicate_rows} == {"Group 1"}
    item_rows = list(wb["All Items"].iter_rows(min_row=2, values_only=True))
    assert [row[0] for row in item_rows] == ["Apple", "apple", "Banana"]

    companion = results_in_tmp / filename.replace(".xlsx", ".json")
    data = json.loads(companion.read_text(encoding="utf-8"))
    assert len(data["duplicates"]) == 1
    assert data["summary"] == {"total_items": 3, "duplicate_groups": 1}


def test_small_set_parse_failure_is_terminal_and_preserves_raw_text(results_in_tmp: Path) -> None:
    registry = RunRegistry()
    raw = "I think Apple and apple are duplicates."

    assert _run(FRUIT, lambda batch: raw, registry) is None

    status = registry.get("run-1")
    assert status.state == "error"
    assert status.diagnostic_file is not None
    assert (results_in_tmp / status.diagnostic_file).read_text(encoding="utf-8") == raw
    assert not list(results_in_tmp.glob("*.xlsx"))


def test_large_set_skips_unparseable_batch_and_completes(
    results_in_tmp: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(pipeline, "LARGE_SET_THRESHOLD", 4)
    monkeypatch.setattr(pipeline, "BATCH_SIZE", 2)
    items = [ItemRecord(item_name=f"Item {i}", rate=1, unit="pc") for i in range(6)]
    calls: list[int] = []

    def analyze(batch: Sequence[ItemRecord]) -> str:
        calls.append(len(batch))
        if len(calls) == 2:
            return "not json"
        return json.dumps({"duplicates": [{"items": [i.to_dict() for i in batch], "reason": f"batch {len(calls)}"}]})

    registry = RecordingRegistry()

    filename = _run(items, analyze, registry)

    assert filename is not None
    assert calls == [2, 2, 2]
    status = registry.get("run-1")
    assert status.state == "completed"
    assert status.failed_batches == [2]
    assert "Analyzing batch 3 of 3 (2 items)..." in registry.messages

    data = json.loads((results_in_tmp / filename.replace(".xlsx", ".json")).read_text(encoding="utf-8"))
    assert [group["reason"] for group in data["duplicates"]] == ["batch 1", "batch 3"]
    assert len(list(results_in_tmp.glob("error_response_*_batch2.txt"))) == 1


def test_large_set_skips_batch_with_malformed_member(
    results_in_tmp: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(pipeline, "LARGE_SET_THRESHOLD", 4)
    monkeypatch.setattr(pipeline, "BATCH_SIZE", 2)
    items = [ItemRecord(item_name=f"Item {i}", rate=1, unit="pc") for i in range(6)]
    calls: list[int] = []

    def analyze(batch: Sequence[ItemRecord]) -> str:
        calls.append(len(batch))
        members = [i.to_dict() for i in batch]
        if len(calls) == 2:
            members[0]["item_name"] = ["x"]
        return json.dumps({"duplicates": [{"items": members, "reason": f"batch {len(calls)}"}]})

    registry = RunRegistry()

    filename = _run(items, analyze, registry)

    assert filename is not None
    status = registry.get("run-1")
    assert status.state == "completed"
    assert status.failed_batches == [2]
    data = json.loads((results_in_tmp / filename.replace(".xlsx", ".json")).read_text(encoding="utf-8"))
    assert [group["reason"] for group in data["duplicates"]] == ["batch 1", "batch 3"]
    assert len(list(results_in_tmp.glob("error_response_*_batch2.txt"))) == 1


def test_small_set_malformed_member_preserves_raw_text(results_in_tmp: Path) -> None:
    registry = RunRegistry()
    raw = json.dumps({"duplicates": [{"items": [{"item_name": ["x"], "rate": 1, "unit": "kg"}]}]})

    assert _run(FRUIT, lambda batch: raw, registry) is None

    status = registry.get("run-1")
    assert status.state == "error"
    assert (results_in_tmp / status.diagnostic_file).read_text(encoding="utf-8") == raw
    assert not list(results_in_tmp.glob("*.xlsx"))


def test_threshold_is_exclusive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(pipeline, "LARGE_SET_THRESHOLD", 3)
    calls: list[int] = []

    def analyze(batch: Sequence[ItemRecord]) -> str:
        calls.append(len(batch))
        return '{"duplicates": []}'

    _run(FRUIT, analyze, RunRegistry())

    assert calls == [3]


def test_no_items_ends_in_error() -> None:
    registry = RunRegistry()

    assert _run([], _apple_reply, registry) is None
    assert registry.get("run-1").state == "error"
    assert "No items retrieved" in registry.get("run-1").error


def test_fetch_failure_aborts_without_report(results_in_tmp: Path) -> None:
    registry = RunRegistry()
    with patch("pipeline.get_access_token", return_value="token"), \
         patch("pipeline.fetch_all_items", side_effect=UpstreamFetchError("boom", status=500, page=3)):
        result = pipeline.detect_duplicates("org-1", "run-1", registry, analyze=_apple_reply)

    assert result is None
    status = registry.get("run-1")
    assert status.state == "error"
    assert "page 3" in status.error
    assert not list(results_in_tmp.iterdir())


def test_analyzer_call_error_is_fatal() -> None:
    def analyze(batch: Sequence[ItemRecord]) -> str:
        raise AnalyzerCallError("Gemini request failed: (503) overloaded")

    registry = RunRegistry()

    assert _run(FRUIT, analyze, registry) is None
    assert registry.get("run-1").error == "Gemini request failed: (503) overloaded"
