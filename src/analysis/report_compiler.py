"""Assemble the structured memory diagnostic report.

:func:`generate_memory_report` validates the snapshot count, sorts the
snapshots by timestamp and runs statistics, leak pattern classification and
health assessment in that order.  The resulting :class:`MemoryReport` is a
plain document; rendering it is the job of
:class:`~src.analysis.report_generator.ReportGenerator`.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence

from src.analysis.health import MemoryHealthAssessment, assess_memory_health
from src.analysis.leak_patterns import LeakPatternReport, identify_leak_patterns
from src.analysis.statistics import ReportStatistics, calculate_statistics
from src.monitor.snapshot import Severity, Snapshot, Trend

logger = logging.getLogger(__name__)

MIN_SNAPSHOTS_FOR_REPORT: int = 5
RECOMMENDED_SNAPSHOTS: int = 10

_BYTES_PER_MB: float = 1024.0 * 1024.0


class InsufficientDataError(ValueError):
    """Raised when a report is requested with too few snapshots."""

    def __init__(self, required: int, actual: int) -> None:
        self.required = required
        self.actual = actual
        super().__init__(
            f"Insufficient snapshots. Required: {required}, Got: {actual}"
        )


# ============================================================================
# Data classes
# ============================================================================


@dataclass
class ReportConfig:
    min_snapshots: int = MIN_SNAPSHOTS_FOR_REPORT
    app_name: Optional[str] = None
    include_leak_analysis: bool = True
    include_dom_analysis: bool = True

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class TimeRange:
    start: float
    end: float

    @property
    def duration_ms(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, object]:
        return {"start": self.start, "end": self.end, "duration_ms": self.duration_ms}


@dataclass
class ChartSeries:
    """Per-snapshot series for plotting, in sorted snapshot order."""

    timestamps: List[float] = field(default_factory=list)
    heap_used_mb: List[float] = field(default_factory=list)
    heap_total_mb: List[float] = field(default_factory=list)
    usage_percentage: List[float] = field(default_factory=list)
    dom_nodes: List[int] = field(default_factory=list)
    event_listeners: List[int] = field(default_factory=list)
    has_dom_data: bool = False
    has_listener_data: bool = False

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class MemoryReport:
    """The complete diagnostic document for one snapshot set."""

    config: ReportConfig
    generated_at: datetime.datetime
    snapshots: List[Snapshot]
    statistics: ReportStatistics
    leak_report: LeakPatternReport
    health: MemoryHealthAssessment
    time_range: TimeRange
    trend_counts: Dict[str, int]
    severity_counts: Dict[str, int]
    cv_percent: float
    stability_score: float
    chart: ChartSeries

    @property
    def snapshot_count(self) -> int:
        return len(self.snapshots)

    def to_dict(self) -> Dict[str, object]:
        return {
            "config": self.config.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "snapshot_count": self.snapshot_count,
            "snapshots": [s.to_dict() for s in self.snapshots],
            "statistics": self.statistics.to_dict(),
            "leak_analysis": self.leak_report.to_dict(),
            "health": self.health.to_dict(),
            "time_range": self.time_range.to_dict(),
            "trend_counts": dict(self.trend_counts),
            "severity_counts": dict(self.severity_counts),
            "cv_percent": self.cv_percent,
            "stability_score": self.stability_score,
            "chart": self.chart.to_dict(),
        }


# ============================================================================
# Aggregates
# ============================================================================


def count_trends(snapshots: Sequence[Snapshot]) -> Dict[str, int]:
    counts = {t.value: 0 for t in (Trend.stable, Trend.increasing, Trend.decreasing)}
    counts["unknown"] = 0
    for snap in snapshots:
        ctx = snap.analysis_context
        if ctx is None or ctx.trend is None:
            counts["unknown"] += 1
        else:
            counts[ctx.trend.value] += 1
    return counts


def count_severities(snapshots: Sequence[Snapshot]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Severity}
    counts["unknown"] = 0
    for snap in snapshots:
        ctx = snap.analysis_context
        if ctx is None or ctx.severity is None:
            counts["unknown"] += 1
        else:
            counts[ctx.severity.value] += 1
    return counts


def _chart_series(snapshots: Sequence[Snapshot]) -> ChartSeries:
    return ChartSeries(
        timestamps=[s.timestamp for s in snapshots],
        heap_used_mb=[s.heap_used / _BYTES_PER_MB for s in snapshots],
        heap_total_mb=[s.heap_total / _BYTES_PER_MB for s in snapshots],
        usage_percentage=[s.usage_percentage for s in snapshots],
        dom_nodes=[s.dom_nodes or 0 for s in snapshots],
        event_listeners=[s.event_listeners or 0 for s in snapshots],
        has_dom_data=any(s.dom_nodes is not None for s in snapshots),
        has_listener_data=any(s.event_listeners is not None for s in snapshots),
    )


# ============================================================================
# Public API
# ============================================================================


def can_generate_report(
    snapshots: Sequence[Snapshot],
    min_snapshots: int = MIN_SNAPSHOTS_FOR_REPORT,
) -> bool:
    return len(snapshots) >= min_snapshots


def generate_memory_report(
    snapshots: Sequence[Snapshot],
    config: Optional[ReportConfig] = None,
) -> MemoryReport:
    """Analyse ``snapshots`` and build the diagnostic document.

    Parameters
    ----------
    snapshots:
        Snapshot set in any order; it is sorted by timestamp first.
    config:
        Report options.  Defaults to :class:`ReportConfig`.

    Raises
    ------
    InsufficientDataError
        If fewer than ``config.min_snapshots`` snapshots are supplied.
    """
    config = config if config is not None else ReportConfig()

    required = max(config.min_snapshots, 1)
    if len(snapshots) < required:
        raise InsufficientDataError(required, len(snapshots))

    ordered = sorted(snapshots, key=lambda s: s.timestamp)

    stats = calculate_statistics(ordered)
    leak_report = identify_leak_patterns(ordered)
    health = assess_memory_health(ordered, stats, leak_report)

    cv_percent = stats.heap_used.coefficient_of_variation * 100.0
    stability_score = max(0.0, 100.0 - cv_percent * 2)

    logger.debug(
        "Compiled memory report over %d snapshots (grade %s).",
        len(ordered), health.grade.value,
    )

    return MemoryReport(
        config=config,
        generated_at=datetime.datetime.now(),
        snapshots=ordered,
        statistics=stats,
        leak_report=leak_report,
        health=health,
        time_range=TimeRange(start=ordered[0].timestamp, end=ordered[-1].timestamp),
        trend_counts=count_trends(ordered),
        severity_counts=count_severities(ordered),
        cv_percent=cv_percent,
        stability_score=stability_score,
        chart=_chart_series(ordered),
    )
