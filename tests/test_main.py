"""Tests for the CLI entrypoint (main.py)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

import artifacts
import main
from errors import AuthExchangeError
from run_registry import RunRegistry


def test_parse_args_detect() -> None:
    args = main.parse_args(["detect", "--org-id", "org-1"])

    assert args.command == "detect"
    assert args.org_id == "org-1"


def test_parse_args_requires_command() -> None:
    with pytest.raises(SystemExit):
        main.parse_args([])


def test_detect_prints_report_path(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(artifacts, "RESULTS_DIR", str(tmp_path))

    def fake_detect(organization_id: str, run_id: str, registry: RunRegistry) -> str:
        registry.start(run_id, "start")
        registry.complete(run_id, "report.xlsx", "Found 0 duplicate groups in 1 items")
        return "report.xlsx"

    with patch("main.detect_duplicates", side_effect=fake_detect) as mock_detect:
        code = main.run_detect(main.parse_args(["detect", "--org-id", "org-1"]))

    assert code == 0
    assert mock_detect.call_args.args[0] == "org-1"
    assert capsys.readouterr().out.strip() == str(tmp_path / "report.xlsx")


def test_detect_falls_back_to_env_org_id(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZOHO_ORGANIZATION_ID", "env-org")

    with patch("main.detect_duplicates", return_value=None) as mock_detect:
        code = main.run_detect(main.parse_args(["detect"]))

    assert code == 1
    assert mock_detect.call_args.args[0] == "env-org"


def test_detect_without_org_id(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ZOHO_ORGANIZATION_ID", raising=False)

    with patch("main.detect_duplicates") as mock_detect:
        code = main.run_detect(main.parse_args(["detect"]))

    assert code == 2
    mock_detect.assert_not_called()


def test_setup_prompts_for_missing_values(monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter(["secret", "grant"])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))

    with patch("main.setup_auth") as mock_setup:
        code = main.run_setup(main.parse_args(["setup", "--client-id", "cid"]))

    assert code == 0
    assert mock_setup.call_args.args[:3] == ("cid", "secret", "grant")


def test_setup_failure_exit_code() -> None:
    args = main.parse_args(["setup", "--client-id", "c", "--client-secret", "s", "--grant-token", "g"])

    with patch("main.setup_auth", side_effect=AuthExchangeError("bad grant")):
        assert main.run_setup(args) == 1
