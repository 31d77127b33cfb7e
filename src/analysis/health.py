"""Memory health scoring, grading and recommendations.

The score starts at 100 and loses points for high peak usage, leak
confidence, variability, outliers and a dominant increasing live trend.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from src.analysis.formatting import format_bytes
from src.analysis.leak_patterns import LeakPatternReport
from src.analysis.statistics import ReportStatistics
from src.monitor.snapshot import Snapshot, Trend

logger = logging.getLogger(__name__)

CRITICAL_USAGE_PCT: float = 90.0
WARNING_USAGE_PCT: float = 70.0
HIGH_VARIABILITY_CV: float = 0.5
MODERATE_VARIABILITY_CV: float = 0.3
HIGH_DOM_NODE_COUNT: int = 10_000
HIGH_EVENT_LISTENER_COUNT: int = 500


class HealthGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"

    @property
    def color(self) -> str:
        return _GRADE_COLORS[self]


_GRADE_COLORS: Dict[HealthGrade, str] = {
    HealthGrade.A: "#22c55e",
    HealthGrade.B: "#84cc16",
    HealthGrade.C: "#f59e0b",
    HealthGrade.D: "#f97316",
    HealthGrade.F: "#ef4444",
}


@dataclass
class MemoryHealthAssessment:
    score: float
    grade: HealthGrade
    summary: str
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": self.score,
            "grade": self.grade.value,
            "summary": self.summary,
            "recommendations": list(self.recommendations),
        }


def score_to_grade(score: float) -> HealthGrade:
    if score >= 90:
        return HealthGrade.A
    if score >= 80:
        return HealthGrade.B
    if score >= 70:
        return HealthGrade.C
    if score >= 60:
        return HealthGrade.D
    return HealthGrade.F


def generate_summary(
    grade: HealthGrade,
    stats: ReportStatistics,
    leak_report: LeakPatternReport,
) -> str:
    avg_usage = f"{stats.usage_percentage.mean:.1f}"
    max_usage = f"{stats.usage_percentage.max:.1f}"
    pattern = leak_report.pattern.value

    if grade is HealthGrade.A:
        return (
            f"Excellent memory health. Average usage at {avg_usage}% with stable "
            "patterns. No significant issues detected."
        )
    if grade is HealthGrade.B:
        return (
            f"Good memory health. Average usage at {avg_usage}% (max {max_usage}%). "
            "Minor optimization opportunities may exist."
        )
    if grade is HealthGrade.C:
        leak = f"{pattern} leak pattern detected. " if leak_report.detected else ""
        return (
            "Moderate memory health concerns. Average usage at "
            f"{avg_usage}% (max {max_usage}%). {leak}Review recommended."
        )
    if grade is HealthGrade.D:
        leak = (
            f"{pattern} leak pattern with {leak_report.confidence:.0f}% confidence. "
            if leak_report.detected
            else ""
        )
        return (
            "Memory health issues detected. Average usage at "
            f"{avg_usage}% (max {max_usage}%). {leak}Investigation required."
        )
    leak = (
        f"Significant {pattern} leak pattern detected."
        if leak_report.detected
        else "High memory pressure observed."
    )
    return (
        "Critical memory health issues. Average usage at "
        f"{avg_usage}% (max {max_usage}%). {leak} Immediate attention required."
    )


def generate_recommendations(
    stats: ReportStatistics,
    leak_report: LeakPatternReport,
) -> List[str]:
    """Independent rules, each adding at most one line; never empty."""
    recs: List[str] = []

    peak = stats.usage_percentage.max
    if peak > CRITICAL_USAGE_PCT:
        recs.append(
            "CRITICAL: Maximum memory usage exceeds 90%. Implement immediate "
            "memory optimization."
        )
    elif peak > WARNING_USAGE_PCT:
        recs.append(
            "WARNING: Maximum memory usage exceeds 70%. Monitor closely and "
            "consider optimization."
        )

    if leak_report.detected:
        recs.append(
            f"Investigate {leak_report.pattern.value} memory leak pattern "
            f"({leak_report.confidence:.0f}% confidence)."
        )
        if leak_report.growth_rate > 0:
            recs.append(
                f"Memory growing at approximately {format_bytes(leak_report.growth_rate)}/second."
            )

    outliers = len(stats.heap_used.outliers)
    if outliers > 0:
        recs.append(
            f"{outliers} outlier snapshot(s) detected. Review specific operations "
            "at those times."
        )

    cv = stats.heap_used.coefficient_of_variation
    if cv > HIGH_VARIABILITY_CV:
        recs.append(
            "High memory variability detected. Implement more consistent memory management."
        )
    elif cv > MODERATE_VARIABILITY_CV:
        recs.append(
            "Moderate memory variability observed. Consider stabilizing memory usage patterns."
        )

    if stats.dom_nodes is not None and stats.dom_nodes.max > HIGH_DOM_NODE_COUNT:
        recs.append(
            "High DOM node count detected. Consider virtualization or lazy loading "
            "for large lists."
        )

    if stats.event_listeners is not None and stats.event_listeners.max > HIGH_EVENT_LISTENER_COUNT:
        recs.append(
            "High event listener count detected. Verify listeners are properly "
            "removed on cleanup."
        )

    if not recs:
        recs.append("Memory usage appears healthy. Continue monitoring for long-term trends.")

    return recs


def assess_memory_health(
    snapshots: Sequence[Snapshot],
    stats: ReportStatistics,
    leak_report: LeakPatternReport,
) -> MemoryHealthAssessment:
    """Combine statistics and the leak report into a 0-100 score and grade."""
    score = 100.0

    peak = stats.usage_percentage.max
    if peak > CRITICAL_USAGE_PCT:
        score -= 30
    elif peak > WARNING_USAGE_PCT:
        score -= 15

    score -= leak_report.confidence * 0.3

    cv = stats.heap_used.coefficient_of_variation
    if cv > HIGH_VARIABILITY_CV:
        score -= 20
    elif cv > MODERATE_VARIABILITY_CV:
        score -= 10

    score -= min(20, len(stats.heap_used.outliers) * 5)

    increasing = sum(
        1 for s in snapshots
        if s.analysis_context is not None and s.analysis_context.trend is Trend.increasing
    )
    if increasing > len(snapshots) * 0.5:
        score -= 10

    score = max(0.0, min(100.0, score))
    grade = score_to_grade(score)
    logger.debug("Memory health score %.1f (grade %s).", score, grade.value)

    return MemoryHealthAssessment(
        score=score,
        grade=grade,
        summary=generate_summary(grade, stats, leak_report),
        recommendations=generate_recommendations(stats, leak_report),
    )
