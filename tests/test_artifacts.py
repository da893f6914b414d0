from __future__ import annotations

import re
from pathlib import Path

import pytest

import artifacts


@pytest.fixture(autouse=True)
def results_in_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(artifacts, "RESULTS_DIR", str(tmp_path))
    return tmp_path


def test_report_stem_format() -> None:
    stem = artifacts.report_stem("org/1", 1767225600000)

    assert re.fullmatch(r"duplicate_results_org_1_2026-01-01_1767225600000_[0-9a-f]{6}", stem)


def test_report_stems_in_same_millisecond_differ() -> None:
    assert artifacts.report_stem("org-1", 1767225600000) != artifacts.report_stem("org-1", 1767225600000)


def test_remove_artifacts_deletes_report_and_companion(results_in_tmp: Path) -> None:
    stem = artifacts.report_stem("org-1")
    (results_in_tmp / f"{stem}.xlsx").write_bytes(b"x")
    artifacts.write_raw_result(stem, [], total_items=0)

    removed = artifacts.remove_artifacts(f"{stem}.xlsx")

    assert len(removed) == 2
    assert not list(results_in_tmp.iterdir())
