"""Tests for src.analysis.report_compiler."""

import pytest

from src.analysis.health import HealthGrade
from src.analysis.leak_patterns import LeakPattern
from src.analysis.report_compiler import (
    InsufficientDataError,
    ReportConfig,
    can_generate_report,
    count_severities,
    count_trends,
    generate_memory_report,
)
from src.monitor.snapshot import AnalysisContext, Severity, Snapshot, Trend


MB = 1024 * 1024


def _make_snapshot(i: int, heap_mb: float = 20.0, ts: float = None, context=None, **overrides) -> Snapshot:
    fields = dict(
        id=f"snapshot-{i}",
        label=f"Snapshot {i + 1}",
        timestamp=float(i * 1000) if ts is None else ts,
        heap_used=heap_mb * MB,
        heap_total=heap_mb * 2 * MB,
        heap_limit=100 * MB,
        analysis_context=context,
    )
    fields.update(overrides)
    return Snapshot(**fields)


def _make_snapshots(n: int) -> list[Snapshot]:
    return [_make_snapshot(i) for i in range(n)]


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------

class TestEligibility:
    def test_four_snapshots_insufficient(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            generate_memory_report(_make_snapshots(4))
        assert exc_info.value.required == 5
        assert exc_info.value.actual == 4
        assert str(exc_info.value) == "Insufficient snapshots. Required: 5, Got: 4"

    def test_five_snapshots_succeed(self):
        report = generate_memory_report(_make_snapshots(5))
        assert report.snapshot_count == 5

    def test_insufficient_is_value_error(self):
        with pytest.raises(ValueError):
            generate_memory_report([])

    def test_custom_minimum(self):
        report = generate_memory_report(_make_snapshots(2), ReportConfig(min_snapshots=2))
        assert report.snapshot_count == 2

    def test_zero_minimum_still_needs_one(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            generate_memory_report([], ReportConfig(min_snapshots=0))
        assert exc_info.value.required == 1

    def test_can_generate_report(self):
        assert can_generate_report(_make_snapshots(4)) is False
        assert can_generate_report(_make_snapshots(5)) is True
        assert can_generate_report(_make_snapshots(2), min_snapshots=2) is True


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class TestGenerateMemoryReport:
    def test_sorted_by_timestamp(self):
        snaps = [_make_snapshot(i, ts=float(t)) for i, t in enumerate([5000, 1000, 3000, 2000, 4000])]
        report = generate_memory_report(snaps)
        assert [s.timestamp for s in report.snapshots] == [1000, 2000, 3000, 4000, 5000]
        assert report.time_range.start == 1000
        assert report.time_range.end == 5000
        assert report.time_range.duration_ms == 4000

    def test_input_not_mutated(self):
        snaps = [_make_snapshot(i, ts=float(t)) for i, t in enumerate([3000, 1000, 2000, 4000, 5000])]
        original = list(snaps)
        generate_memory_report(snaps)
        assert snaps == original

    def test_steady_session(self):
        report = generate_memory_report(_make_snapshots(6))
        assert report.health.grade is HealthGrade.A
        assert report.leak_report.pattern is LeakPattern.none
        assert report.cv_percent == 0.0
        assert report.stability_score == 100.0

    def test_stability_score_floor(self):
        heaps = [1, 50, 1, 50, 1, 50]
        report = generate_memory_report([_make_snapshot(i, mb) for i, mb in enumerate(heaps)])
        assert report.cv_percent > 50
        assert report.stability_score == 0.0

    def test_chart_series(self):
        snaps = [_make_snapshot(i, 10 + i, dom_nodes=100 if i == 2 else None) for i in range(5)]
        chart = generate_memory_report(snaps).chart
        assert chart.heap_used_mb == pytest.approx([10, 11, 12, 13, 14])
        assert chart.dom_nodes == [0, 0, 100, 0, 0]
        assert chart.has_dom_data is True
        assert chart.has_listener_data is False

    def test_config_carried(self):
        config = ReportConfig(app_name="checkout", include_leak_analysis=False)
        report = generate_memory_report(_make_snapshots(5), config)
        assert report.config is config

    def test_to_dict(self):
        d = generate_memory_report(_make_snapshots(5)).to_dict()
        assert d["snapshot_count"] == 5
        assert d["health"]["grade"] == "A"
        assert d["leak_analysis"]["pattern"] == "none"
        assert len(d["snapshots"]) == 5
        assert d["time_range"]["duration_ms"] == 4000


class TestDistributions:
    def test_count_trends(self):
        snaps = [
            _make_snapshot(0, context=AnalysisContext(trend=Trend.increasing)),
            _make_snapshot(1, context=AnalysisContext(trend=Trend.increasing)),
            _make_snapshot(2, context=AnalysisContext(trend=Trend.stable)),
            _make_snapshot(3),
        ]
        assert count_trends(snaps) == {
            "stable": 1, "increasing": 2, "decreasing": 0, "unknown": 1,
        }

    def test_count_severities(self):
        snaps = [
            _make_snapshot(0, context=AnalysisContext(severity=Severity.critical)),
            _make_snapshot(1, context=AnalysisContext(severity=Severity.normal)),
            _make_snapshot(2),
        ]
        assert count_severities(snaps) == {
            "normal": 1, "warning": 0, "critical": 1, "unknown": 1,
        }
