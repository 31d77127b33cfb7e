"""Per-metric summary statistics over a snapshot set.

Pure functions: no function in this module raises on structurally valid
input.  Empty series summarise to zeros, a constant series has no outliers,
and optional metrics nobody measured are omitted rather than zeroed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, Optional, Sequence

from src.monitor.snapshot import Snapshot

# Values further than this many standard deviations from the mean are outliers.
OUTLIER_THRESHOLD: float = 2.0


# ============================================================================
# Data classes
# ============================================================================


@dataclass(frozen=True)
class OutlierInfo:
    """A value that sits more than two standard deviations from the mean."""

    snapshot_label: str
    snapshot_id: str
    value: float
    deviation: float  # in standard deviations
    timestamp: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class StatsSummary:
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    outliers: List[OutlierInfo] = field(default_factory=list)

    @property
    def coefficient_of_variation(self) -> float:
        """``std_dev / mean``, or 0 when the mean is 0."""
        return self.std_dev / self.mean if self.mean > 0 else 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "min": self.min,
            "max": self.max,
            "mean": self.mean,
            "median": self.median,
            "std_dev": self.std_dev,
            "outliers": [o.to_dict() for o in self.outliers],
        }


@dataclass
class ReportStatistics:
    """Summaries for every metric; optional metrics are ``None`` when unmeasured."""

    heap_used: StatsSummary
    heap_total: StatsSummary
    usage_percentage: StatsSummary
    dom_nodes: Optional[StatsSummary] = None
    event_listeners: Optional[StatsSummary] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "heap_used": self.heap_used.to_dict(),
            "heap_total": self.heap_total.to_dict(),
            "usage_percentage": self.usage_percentage.to_dict(),
            "dom_nodes": self.dom_nodes.to_dict() if self.dom_nodes is not None else None,
            "event_listeners": (
                self.event_listeners.to_dict() if self.event_listeners is not None else None
            ),
        }


# ============================================================================
# Statistics
# ============================================================================


def calculate_stats_summary(
    values: Sequence[float],
    labels: Sequence[str],
    ids: Sequence[str],
    timestamps: Sequence[float],
) -> StatsSummary:
    """Summarise one metric.

    ``labels``, ``ids`` and ``timestamps`` are parallel to ``values`` and are
    only used to describe outliers.  Standard deviation is the population
    form (divide by N).
    """
    if not values:
        return StatsSummary()

    ordered = sorted(values)
    n = len(ordered)
    mean = sum(values) / n

    mid = n // 2
    if n % 2 == 0:
        median = (ordered[mid - 1] + ordered[mid]) / 2
    else:
        median = ordered[mid]

    variance = sum((v - mean) ** 2 for v in values) / n
    std_dev = math.sqrt(variance)

    outliers: List[OutlierInfo] = []
    if std_dev > 0:
        for i, v in enumerate(values):
            deviation = abs(v - mean)
            if deviation > OUTLIER_THRESHOLD * std_dev:
                outliers.append(
                    OutlierInfo(
                        snapshot_label=labels[i],
                        snapshot_id=ids[i],
                        value=v,
                        deviation=deviation / std_dev,
                        timestamp=timestamps[i],
                    )
                )

    return StatsSummary(
        min=ordered[0],
        max=ordered[-1],
        mean=mean,
        median=median,
        std_dev=std_dev,
        outliers=outliers,
    )


def _summarise(
    snapshots: Sequence[Snapshot],
    metric: Callable[[Snapshot], Optional[float]],
) -> Optional[StatsSummary]:
    present = [s for s in snapshots if metric(s) is not None]
    if not present:
        return None
    return calculate_stats_summary(
        [float(metric(s)) for s in present],  # type: ignore[arg-type]
        [s.label for s in present],
        [s.id for s in present],
        [s.timestamp for s in present],
    )


def calculate_statistics(snapshots: Sequence[Snapshot]) -> ReportStatistics:
    """Summaries of heap used/total, usage percentage and optional counts."""
    labels = [s.label for s in snapshots]
    ids = [s.id for s in snapshots]
    timestamps = [s.timestamp for s in snapshots]

    return ReportStatistics(
        heap_used=calculate_stats_summary(
            [s.heap_used for s in snapshots], labels, ids, timestamps,
        ),
        heap_total=calculate_stats_summary(
            [s.heap_total for s in snapshots], labels, ids, timestamps,
        ),
        usage_percentage=calculate_stats_summary(
            [s.usage_percentage for s in snapshots], labels, ids, timestamps,
        ),
        dom_nodes=_summarise(snapshots, lambda s: s.dom_nodes),
        event_listeners=_summarise(snapshots, lambda s: s.event_listeners),
    )
