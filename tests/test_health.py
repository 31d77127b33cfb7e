"""Tests for src.analysis.health."""

import pytest

from src.analysis.health import (
    HealthGrade,
    assess_memory_health,
    generate_recommendations,
    generate_summary,
    score_to_grade,
)
from src.analysis.leak_patterns import LeakPattern, LeakPatternReport, identify_leak_patterns
from src.analysis.statistics import (
    OutlierInfo,
    ReportStatistics,
    StatsSummary,
    calculate_statistics,
)
from src.monitor.snapshot import AnalysisContext, Snapshot, Trend


MB = 1024 * 1024


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_snapshot(i: int, heap_mb: float, limit_mb: float = 100.0, trend=None, **overrides) -> Snapshot:
    context = AnalysisContext(trend=trend) if trend is not None else None
    fields = dict(
        id=f"snapshot-{i}",
        label=f"Snapshot {i + 1}",
        timestamp=float(i * 1000),
        heap_used=heap_mb * MB,
        heap_total=heap_mb * MB,
        heap_limit=limit_mb * MB,
        analysis_context=context,
    )
    fields.update(overrides)
    return Snapshot(**fields)


def _assess(snapshots):
    stats = calculate_statistics(snapshots)
    leak = identify_leak_patterns(snapshots)
    return assess_memory_health(snapshots, stats, leak)


def _outlier(i: int) -> OutlierInfo:
    return OutlierInfo(
        snapshot_label=f"Snapshot {i}", snapshot_id=f"id-{i}",
        value=1.0, deviation=3.0, timestamp=0.0,
    )


def _stats(peak_usage=10.0, mean=100.0, std_dev=0.0, outliers=0, dom_max=None, listeners_max=None):
    return ReportStatistics(
        heap_used=StatsSummary(
            min=mean, max=mean, mean=mean, median=mean, std_dev=std_dev,
            outliers=[_outlier(i) for i in range(outliers)],
        ),
        heap_total=StatsSummary(),
        usage_percentage=StatsSummary(max=peak_usage, mean=peak_usage),
        dom_nodes=StatsSummary(max=dom_max) if dom_max is not None else None,
        event_listeners=StatsSummary(max=listeners_max) if listeners_max is not None else None,
    )


# ---------------------------------------------------------------------------
# Grades
# ---------------------------------------------------------------------------

class TestGrades:
    @pytest.mark.parametrize("score, grade", [
        (100.0, HealthGrade.A),
        (90.0, HealthGrade.A),
        (89.9, HealthGrade.B),
        (80.0, HealthGrade.B),
        (70.0, HealthGrade.C),
        (60.0, HealthGrade.D),
        (59.9, HealthGrade.F),
        (0.0, HealthGrade.F),
    ])
    def test_score_to_grade(self, score, grade):
        assert score_to_grade(score) is grade

    def test_grade_colors(self):
        assert HealthGrade.A.color.startswith("#")
        assert HealthGrade.A.color != HealthGrade.F.color


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestAssessMemoryHealth:
    def test_steady_low_usage_is_perfect(self):
        health = _assess([_make_snapshot(i, 20) for i in range(5)])
        assert health.score == 100.0
        assert health.grade is HealthGrade.A
        assert health.summary.startswith("Excellent")

    def test_critical_peak_scores_seventy(self):
        health = _assess([_make_snapshot(i, 95) for i in range(5)])
        assert health.score == pytest.approx(70.0)
        assert health.grade is HealthGrade.C
        assert health.recommendations[0].startswith("CRITICAL")

    def test_warning_peak(self):
        health = _assess([_make_snapshot(i, 75) for i in range(5)])
        assert health.score == pytest.approx(85.0)
        assert health.grade is HealthGrade.B

    def test_increasing_majority_penalised(self):
        snaps = [
            _make_snapshot(i, 20, trend=Trend.increasing if i < 3 else Trend.stable)
            for i in range(5)
        ]
        # AnalysisContext defaults leak_probability to 0, so only the trend counts.
        assert _assess(snaps).score == pytest.approx(90.0)

    def test_increasing_half_not_penalised(self):
        snaps = [
            _make_snapshot(i, 20, trend=Trend.increasing if i < 2 else Trend.stable)
            for i in range(4)
        ]
        stats = calculate_statistics(snaps)
        health = assess_memory_health(snaps, stats, LeakPatternReport())
        assert health.score == 100.0

    def test_score_clamped_at_zero(self):
        snaps = [_make_snapshot(i, 20, trend=Trend.increasing) for i in range(5)]
        stats = _stats(peak_usage=99.0, mean=100.0, std_dev=80.0, outliers=6)
        leak = LeakPatternReport(detected=True, confidence=100.0, pattern=LeakPattern.gradual)
        health = assess_memory_health(snaps, stats, leak)
        assert health.score == 0.0
        assert health.grade is HealthGrade.F
        assert health.summary.startswith("Critical")

    def test_outlier_penalty_capped(self):
        four = assess_memory_health([], _stats(outliers=4), LeakPatternReport())
        nine = assess_memory_health([], _stats(outliers=9), LeakPatternReport())
        assert four.score == nine.score == pytest.approx(80.0)

    def test_variability_penalties(self):
        moderate = assess_memory_health([], _stats(std_dev=40.0), LeakPatternReport())
        high = assess_memory_health([], _stats(std_dev=60.0), LeakPatternReport())
        assert moderate.score == pytest.approx(90.0)
        assert high.score == pytest.approx(80.0)

    def test_leak_confidence_penalty(self):
        leak = LeakPatternReport(detected=True, confidence=50.0, pattern=LeakPattern.sudden)
        assert assess_memory_health([], _stats(), leak).score == pytest.approx(85.0)

    def test_to_dict(self):
        d = _assess([_make_snapshot(i, 20) for i in range(5)]).to_dict()
        assert d["grade"] == "A"
        assert d["recommendations"]


# ---------------------------------------------------------------------------
# Recommendations / summary
# ---------------------------------------------------------------------------

class TestRecommendations:
    def test_fallback_when_healthy(self):
        recs = generate_recommendations(_stats(), LeakPatternReport())
        assert len(recs) == 1
        assert "healthy" in recs[0]

    def test_rule_order(self):
        leak = LeakPatternReport(
            detected=True, confidence=72.0, pattern=LeakPattern.gradual, growth_rate=2048.0,
        )
        stats = _stats(
            peak_usage=80.0, std_dev=60.0, outliers=2, dom_max=20_000, listeners_max=900,
        )
        recs = generate_recommendations(stats, leak)
        assert recs[0].startswith("WARNING")
        assert recs[1] == "Investigate gradual memory leak pattern (72% confidence)."
        assert recs[2] == "Memory growing at approximately 2 KB/second."
        assert recs[3].startswith("2 outlier snapshot(s)")
        assert recs[4].startswith("High memory variability")
        assert "DOM node" in recs[5]
        assert "event listener" in recs[6]
        assert len(recs) == 7

    def test_no_growth_line_without_growth(self):
        leak = LeakPatternReport(detected=True, confidence=60.0, pattern=LeakPattern.sudden)
        recs = generate_recommendations(_stats(), leak)
        assert recs == ["Investigate sudden memory leak pattern (60% confidence)."]

    def test_moderate_variability(self):
        recs = generate_recommendations(_stats(std_dev=40.0), LeakPatternReport())
        assert recs == [
            "Moderate memory variability observed. Consider stabilizing memory usage patterns."
        ]

    def test_summary_mentions_detected_pattern(self):
        leak = LeakPatternReport(detected=True, confidence=45.0, pattern=LeakPattern.intermittent)
        summary = generate_summary(HealthGrade.D, _stats(peak_usage=50.0), leak)
        assert "intermittent leak pattern with 45% confidence" in summary
        assert summary.endswith("Investigation required.")

    def test_summary_without_leak(self):
        summary = generate_summary(HealthGrade.F, _stats(peak_usage=95.0), LeakPatternReport())
        assert "High memory pressure observed." in summary
