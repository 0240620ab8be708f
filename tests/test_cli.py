"""
Tests for appcycle.cli module.

Tests the command-line interface including:
- Argument parsing for each command
- validate output and exit codes
- check and run with an in-memory catalog
- Batch-halting errors
"""

from __future__ import annotations

import json
import os
import threading
from unittest.mock import patch

import pytest

from appcycle.cli import EXIT_ERROR, EXIT_OK, build_parser, main
from appcycle.exceptions import NetworkError

FINANCE_ENTRY = {
    "IntuneAppName": "Finance Tool",
    "AppPublisher": "Contoso",
    "AppSource": "ReleaseAsset",
    "Repository": "contoso/finance-tool",
    "Tag": "finance-tool-v1.5.0",
    "FileName": "FinanceTool.msi",
    "AppFolderName": "FinanceTool",
}


@pytest.fixture
def workspace(tmp_path, monkeypatch, write_manifest, sample_manifest_data, settings):
    """Lay out appcycle.yaml, appList.json and one App.json in tmp_path."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("APPCYCLE_"):
            monkeypatch.delenv(name)
    (tmp_path / "appList.json").write_text(json.dumps([FINANCE_ENTRY]), encoding="utf-8")
    write_manifest("FinanceTool", sample_manifest_data)
    (tmp_path / "appcycle.yaml").write_text(
        "paths:\n  apps_root: Apps\n  workspace: work\n", encoding="utf-8"
    )
    return tmp_path


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    """Tests for build_parser."""

    def test_run_defaults(self):
        """Test run covers all stages by default."""
        args = build_parser().parse_args(["run"])
        assert (args.start_at, args.stop_after) == ("check", "assign")

    def test_run_range(self):
        """Test --from and --to select the stage range."""
        args = build_parser().parse_args(
            ["run", "--from", "prepare", "--to", "publish", "--handoff-dir", "h"]
        )
        assert (args.start_at, args.stop_after) == ("prepare", "publish")
        assert args.handoff_dir == "h"

    def test_unknown_stage(self):
        """Test an unknown stage is rejected by argparse."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--from", "upload"])

    def test_command_required(self):
        """Test a command must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestValidateCommand:
    """Tests for 'appcycle validate'."""

    def test_valid(self, workspace, capsys):
        """Test a valid workspace exits 0."""
        assert _exit_code(["validate"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "VALIDATION RESULTS" in out
        assert "[SUCCESS]" in out

    def test_invalid(self, workspace, capsys):
        """Test an invalid entry exits 1 and lists the error."""
        (workspace / "appList.json").write_text(
            json.dumps([{**FINANCE_ENTRY, "Repository": "contoso"}]), encoding="utf-8"
        )
        assert _exit_code(["validate"]) == EXIT_ERROR
        assert "owner/repository" in capsys.readouterr().out

    def test_missing_config(self, workspace, capsys):
        """Test an explicit settings file that does not exist exits 1."""
        assert _exit_code(["validate", "-c", "missing.yaml"]) == EXIT_ERROR
        assert "Settings file not found" in capsys.readouterr().out


class TestCheckAndRun:
    """Tests for 'appcycle check' and 'appcycle run'."""

    def test_check_nothing_to_do(self, workspace, make_catalog, capsys):
        """Test an up-to-date app prints the nothing-to-do message."""
        catalog = make_catalog(
            apps=[{"displayName": "Contoso Finance Tool", "displayVersion": "1.5.0"}]
        )
        with patch("appcycle.cli._make_client", return_value=catalog), patch(
            "appcycle.cli._install_cancel_handler", return_value=threading.Event()
        ):
            code = _exit_code(["check", "--handoff-dir", "handoff"])

        assert code == EXIT_OK
        assert "No applications to process" in capsys.readouterr().out
        assert (workspace / "handoff" / "DownloadList.json").exists()

    def test_check_all_failed(self, workspace, make_catalog, capsys):
        """Test a check where every app failed exits 1 with its own message."""
        catalog = make_catalog(fail_reads=True)
        with patch("appcycle.cli._make_client", return_value=catalog), patch(
            "appcycle.cli._install_cancel_handler", return_value=threading.Event()
        ):
            code = _exit_code(["check"])

        out = capsys.readouterr().out
        assert code == EXIT_ERROR
        assert "[FAILED] No application got past check." in out
        assert "No applications to process" not in out

    def test_check_finds_update(self, workspace, fake_catalog, capsys):
        """Test a new app is reported in the check counts."""
        with patch("appcycle.cli._make_client", return_value=fake_catalog), patch(
            "appcycle.cli._install_cancel_handler", return_value=threading.Event()
        ):
            code = _exit_code(["check"])

        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert "1 record(s)" in out
        assert fake_catalog.created_apps == []

    def test_auth_failure_halts(self, workspace, capsys):
        """Test a failed sign-in halts the batch with exit code 1."""
        with patch(
            "appcycle.cli._make_client", side_effect=NetworkError("invalid_client")
        ):
            code = _exit_code(["run"])
        assert code == EXIT_ERROR
        assert "invalid_client" in capsys.readouterr().out

    def test_resume_without_handoff(self, workspace, fake_catalog, capsys):
        """Test resuming without a hand-off folder exits 1."""
        with patch("appcycle.cli._make_client", return_value=fake_catalog), patch(
            "appcycle.cli._install_cancel_handler", return_value=threading.Event()
        ):
            code = _exit_code(["run", "--from", "publish"])
        assert code == EXIT_ERROR
        assert "hand-off" in capsys.readouterr().out
