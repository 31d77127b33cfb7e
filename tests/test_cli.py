"""Tests for src.cli.main."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from src import __version__
from src.cli.main import cli
from src.monitor.live_monitor import MemoryReading


MB = 1024 * 1024


@pytest.fixture
def runner():
    return CliRunner()


def _write_session(path, count=6):
    snapshots = [
        {
            "id": f"snapshot-{i}",
            "label": f"Snapshot {i + 1}",
            "timestamp": 1_700_000_000_000 + i * 10_000,
            "heap_used": (100 + i * 5) * MB,
            "heap_total": (200 + i * 5) * MB,
            "heap_limit": 512 * MB,
            "dom_nodes": 1000 + i,
            "event_listeners": None,
            "is_auto": False,
            "analysis_context": {
                "trend": "increasing",
                "leak_probability": 55,
                "severity": "normal",
                "usage_percentage": 20.0,
            },
        }
        for i in range(count)
    ]
    data = {
        "metadata": {"tool": "heapscope", "version": "0.1.0", "created": "2025-01-01T00:00:00"},
        "settings": {"max_snapshots": 10, "auto_delete_oldest": True, "schedule_interval": "10s"},
        "snapshots": snapshots,
    }
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


@pytest.fixture
def session(tmp_path):
    return _write_session(tmp_path / "session.json")


@pytest.fixture
def small_session(tmp_path):
    return _write_session(tmp_path / "small.json", count=3)


class TestCLIGroup:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("monitor", "snapshots", "compare", "analyze", "report"):
            assert command in result.output


class TestSnapshotsCommand:
    def test_lists_snapshots(self, runner, session):
        result = runner.invoke(cli, ["snapshots", session])
        assert result.exit_code == 0
        assert "Snapshots (6/10)" in result.output

    def test_invalid_json(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        result = runner.invoke(cli, ["snapshots", str(bad)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_missing_snapshot_list(self, runner, tmp_path):
        bad = tmp_path / "empty.json"
        bad.write_text("{}", encoding="utf-8")
        result = runner.invoke(cli, ["snapshots", str(bad)])
        assert result.exit_code == 1


class TestCompareCommand:
    def test_compare_by_label(self, runner, session):
        result = runner.invoke(cli, ["compare", session, "snapshot 1", "Snapshot 6"])
        assert result.exit_code == 0
        assert "Snapshot 1 vs Snapshot 6" in result.output
        assert "Heap Used" in result.output

    def test_compare_by_id(self, runner, session):
        result = runner.invoke(cli, ["compare", session, "snapshot-0", "snapshot-2"])
        assert result.exit_code == 0

    def test_compare_unknown(self, runner, session):
        result = runner.invoke(cli, ["compare", session, "Snapshot 1", "Snapshot 99"])
        assert result.exit_code == 1
        assert "No snapshot matching" in result.output


class TestAnalyzeCommand:
    def test_analyze(self, runner, session):
        result = runner.invoke(cli, ["analyze", session])
        assert result.exit_code == 0
        assert "Memory Health" in result.output
        assert "Recommendations" in result.output

    def test_insufficient_snapshots(self, runner, small_session):
        result = runner.invoke(cli, ["analyze", small_session])
        assert result.exit_code == 1
        assert "Insufficient snapshots" in result.output

    def test_lower_minimum(self, runner, small_session):
        result = runner.invoke(cli, ["analyze", small_session, "--min-snapshots", "3"])
        assert result.exit_code == 0


class TestReportCommand:
    def test_json_report(self, runner, session, tmp_path):
        output = tmp_path / "out.json"
        result = runner.invoke(cli, ["report", session, "-f", "json", "-o", str(output)])
        assert result.exit_code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["report"]["snapshot_count"] == 6

    def test_html_report_default_name(self, runner, session, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["report", session, "--app-name", "checkout"])
        assert result.exit_code == 0
        written = list(tmp_path.glob("memory-report-*.html"))
        assert len(written) == 1
        assert "checkout" in written[0].read_text(encoding="utf-8")

    def test_app_name_from_env(self, runner, session, tmp_path):
        output = tmp_path / "out.json"
        result = runner.invoke(
            cli, ["report", session, "-f", "json", "-o", str(output)],
            env={"HEAPSCOPE_APP_NAME": "billing"},
        )
        assert result.exit_code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["report"]["config"]["app_name"] == "billing"

    def test_insufficient_snapshots(self, runner, small_session, tmp_path):
        result = runner.invoke(
            cli, ["report", small_session, "-o", str(tmp_path / "r.html")],
        )
        assert result.exit_code == 1
        assert not (tmp_path / "r.html").exists()


class _StaticReader:
    def read(self):
        return MemoryReading(
            timestamp=1_700_000_000_000.0, heap_used=10 * MB,
            heap_total=20 * MB, heap_limit=100 * MB,
        )


class TestMonitorCommand:
    @patch("src.cli.main.ProcessMemoryReader")
    def test_monitor_writes_session(self, mock_reader_cls, runner, tmp_path):
        mock_reader_cls.return_value = _StaticReader()
        output = tmp_path / "session.json"
        result = runner.invoke(
            cli,
            ["monitor", "--duration", "0", "--schedule", "off", "-o", str(output)],
        )
        assert result.exit_code == 0
        assert "Scheduling is off" in result.output

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["metadata"]["tool"] == "heapscope"
        assert data["settings"]["schedule_interval"] == "off"
        assert data["snapshots"] == []

    @patch("src.cli.main.ProcessMemoryReader")
    def test_monitor_report_needs_snapshots(self, mock_reader_cls, runner, tmp_path):
        mock_reader_cls.return_value = _StaticReader()
        report_path = tmp_path / "report.html"
        result = runner.invoke(
            cli,
            [
                "monitor", "--duration", "0", "--schedule", "off",
                "-o", str(tmp_path / "s.json"), "--report", str(report_path),
            ],
        )
        assert result.exit_code == 0
        assert not report_path.exists()
