"""Tests for CLI entry points."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from assessor.cli.main import EXIT_FAILED, EXIT_NOT_FOUND, EXIT_NOT_INITIALIZED, EXIT_USAGE, cli
from assessor.core.store import JsonAnalysisStore


def _analyses_dir(project: Path) -> Path:
    return project / ".assessor" / "analyses"


def _run_analysis(runner: CliRunner, project: Path) -> str:
    result = runner.invoke(cli, ["analyze", "-p", str(project), "fw-1", "-u", "user-1"])
    assert result.exit_code == 0, result.output
    [record_file] = _analyses_dir(project).glob("*.json")
    return record_file.stem


class TestInit:
    def test_init_creates_layout(self, tmp_project: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["init", "-p", str(tmp_project)])
        assert result.exit_code == 0
        assert (tmp_project / ".assessor" / "config.yaml").exists()
        assert (tmp_project / "frameworks").is_dir()

    @patch("assessor.core.orchestrator.initialize_project")
    def test_init_delegates(self, mock_init, tmp_project: Path):
        result = CliRunner().invoke(cli, ["init", "-p", str(tmp_project)])
        assert result.exit_code == 0
        mock_init.assert_called_once_with(Path(str(tmp_project)))

    def test_requires_project(self):
        result = CliRunner().invoke(cli, ["init"])
        assert result.exit_code == 2


class TestFrameworks:
    def test_lists_frameworks(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["frameworks", "-p", str(initialized_project)])
        assert result.exit_code == 0
        assert "fw-1" in result.output

    def test_not_initialized(self, tmp_project: Path):
        result = CliRunner().invoke(cli, ["frameworks", "-p", str(tmp_project)])
        assert result.exit_code == EXIT_NOT_INITIALIZED


class TestAnalyze:
    def test_end_to_end(self, initialized_project: Path):
        runner = CliRunner()
        analysis_id = _run_analysis(runner, initialized_project)

        record = asyncio.run(JsonAnalysisStore(_analyses_dir(initialized_project)).get(analysis_id))
        assert record.status.value == "completed"
        assert record.overall_score == 50.0
        assert record.triggered_by == "user-1"

    def test_user_required(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["analyze", "-p", str(initialized_project), "fw-1"])
        assert result.exit_code == 2

    def test_blank_user_is_usage_error(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["analyze", "-p", str(initialized_project), "fw-1", "-u", "  "])
        assert result.exit_code == EXIT_USAGE
        assert not list(_analyses_dir(initialized_project).glob("*.json"))

    def test_unknown_framework_records_failure(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["analyze", "-p", str(initialized_project), "nope", "-u", "user-1"])
        assert result.exit_code == 0
        assert "FAILED" in result.output

    def test_ci_mode_exit_code(self, initialized_project: Path):
        result = CliRunner().invoke(
            cli, ["analyze", "-p", str(initialized_project), "nope", "-u", "user-1", "--ci"]
        )
        assert result.exit_code == EXIT_FAILED

    def test_not_initialized(self, tmp_project: Path):
        result = CliRunner().invoke(cli, ["analyze", "-p", str(tmp_project), "fw-1", "-u", "user-1"])
        assert result.exit_code == EXIT_NOT_INITIALIZED


class TestShowAndList:
    def test_show(self, initialized_project: Path):
        runner = CliRunner()
        analysis_id = _run_analysis(runner, initialized_project)
        result = runner.invoke(cli, ["show", "-p", str(initialized_project), analysis_id])
        assert result.exit_code == 0
        assert "COMPLETED" in result.output
        assert "50.0%" in result.output

    def test_show_missing(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["show", "-p", str(initialized_project), "missing"])
        assert result.exit_code == EXIT_NOT_FOUND

    def test_list(self, initialized_project: Path):
        runner = CliRunner()
        _run_analysis(runner, initialized_project)
        result = runner.invoke(cli, ["list", "-p", str(initialized_project)])
        assert result.exit_code == 0
        assert "fw-1" in result.output


class TestExport:
    def test_gaps_csv_to_stdout(self, initialized_project: Path):
        runner = CliRunner()
        analysis_id = _run_analysis(runner, initialized_project)
        result = runner.invoke(
            cli, ["export", "-p", str(initialized_project), analysis_id, "-f", "gaps-csv"]
        )
        assert result.exit_code == 0
        assert "Control_Code" in result.output
        assert "A2" in result.output

    def test_markdown_to_file(self, initialized_project: Path, tmp_path: Path):
        runner = CliRunner()
        analysis_id = _run_analysis(runner, initialized_project)
        out = tmp_path / "out" / "report.md"
        result = runner.invoke(
            cli, ["export", "-p", str(initialized_project), analysis_id, "-o", str(out)]
        )
        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8").startswith("# Compliance Analysis Report")

    def test_junit_to_file(self, initialized_project: Path, tmp_path: Path):
        runner = CliRunner()
        analysis_id = _run_analysis(runner, initialized_project)
        out = tmp_path / "junit.xml"
        result = runner.invoke(
            cli, ["export", "-p", str(initialized_project), analysis_id, "-f", "junit", "-o", str(out)]
        )
        assert result.exit_code == 0
        assert out.read_bytes().startswith(b"<?xml")

    def test_pending_rejected(self, initialized_project: Path):
        store = JsonAnalysisStore(_analyses_dir(initialized_project))
        pending = asyncio.run(store.create_pending("fw-1", "user-1"))
        result = CliRunner().invoke(cli, ["export", "-p", str(initialized_project), pending.id])
        assert result.exit_code == EXIT_FAILED

    def test_missing(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["export", "-p", str(initialized_project), "missing"])
        assert result.exit_code == EXIT_NOT_FOUND


class TestSweep:
    def test_nothing_stale(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["sweep", "-p", str(initialized_project)])
        assert result.exit_code == 0
        assert "Marked 0 stale analyses as failed" in result.output

    def test_stuck_run_failed(self, initialized_project: Path):
        store = JsonAnalysisStore(_analyses_dir(initialized_project))

        async def _stuck() -> str:
            record = await store.create_pending("fw-1", "user-1")
            await store.mark_running(record.id)
            return record.id

        analysis_id = asyncio.run(_stuck())
        result = CliRunner().invoke(
            cli, ["sweep", "-p", str(initialized_project), "--older-than", "0"]
        )
        assert result.exit_code == 0
        assert "Marked 1 stale analyses as failed" in result.output
        assert asyncio.run(store.get(analysis_id)).status.value == "failed"


class TestErrorPaths:
    def test_bad_notification_config_is_usage_error(self, initialized_project: Path):
        (initialized_project / ".assessor" / "config.yaml").write_text(
            "notifications:\n  provider: webhook\n", encoding="utf-8"
        )
        result = CliRunner().invoke(cli, ["show", "-p", str(initialized_project), "anything"])
        assert result.exit_code == EXIT_USAGE
        assert "webhook_url" in result.output

    def test_unreadable_record(self, initialized_project: Path):
        (_analyses_dir(initialized_project) / "broken.json").write_text("{not json", encoding="utf-8")
        runner = CliRunner()
        result = runner.invoke(cli, ["show", "-p", str(initialized_project), "broken"])
        assert result.exit_code == EXIT_FAILED
        result = runner.invoke(cli, ["export", "-p", str(initialized_project), "broken"])
        assert result.exit_code == EXIT_FAILED

    def test_list_skips_unreadable_record(self, initialized_project: Path):
        runner = CliRunner()
        _run_analysis(runner, initialized_project)
        (_analyses_dir(initialized_project) / "zzz-broken.json").write_text("{not json", encoding="utf-8")
        result = runner.invoke(cli, ["list", "-p", str(initialized_project)])
        assert result.exit_code == 0
        assert "Skipping zzz-broken.json" in result.output

    def test_path_like_id_not_found(self, initialized_project: Path):
        result = CliRunner().invoke(cli, ["show", "-p", str(initialized_project), "../config"])
        assert result.exit_code == EXIT_NOT_FOUND
