"""Snapshot data model.

A :class:`Snapshot` is an immutable record of memory state at one instant,
optionally carrying a frozen copy of the live monitor's derived state
(:class:`AnalysisContext`) as it was observed at capture time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Enumerations
# ============================================================================


class Trend(str, Enum):
    """Direction of memory usage over the recent sample window."""

    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class Severity(str, Enum):
    """Live monitor classification of current heap usage."""

    normal = "normal"
    warning = "warning"
    critical = "critical"


def _optional_int(value: object) -> Optional[int]:
    if value is None:
        return None
    return int(value)  # type: ignore[call-overload]


# ============================================================================
# Data classes
# ============================================================================


@dataclass(frozen=True)
class AnalysisContext:
    """Live-monitor state frozen into a snapshot at capture time."""

    trend: Optional[Trend] = None
    leak_probability: float = 0.0  # 0-100
    severity: Optional[Severity] = None
    usage_percentage: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "trend": self.trend.value if self.trend is not None else None,
            "leak_probability": self.leak_probability,
            "severity": self.severity.value if self.severity is not None else None,
            "usage_percentage": self.usage_percentage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> AnalysisContext:
        raw_trend = data.get("trend")
        raw_severity = data.get("severity")
        return cls(
            trend=Trend(raw_trend) if raw_trend else None,
            leak_probability=float(data.get("leak_probability", 0.0)),  # type: ignore[arg-type]
            severity=Severity(raw_severity) if raw_severity else None,
            usage_percentage=float(data.get("usage_percentage", 0.0)),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class Snapshot:
    """A captured, immutable record of memory metrics at one instant.

    ``heap_used <= heap_total <= heap_limit`` is assumed but not enforced;
    the analysis functions tolerate values that break it.
    """

    id: str
    label: str
    timestamp: float  # milliseconds since the epoch
    heap_used: float
    heap_total: float
    heap_limit: float
    dom_nodes: Optional[int] = None
    event_listeners: Optional[int] = None
    is_auto: bool = False
    analysis_context: Optional[AnalysisContext] = None

    @property
    def usage_percentage(self) -> float:
        """Heap used as a percentage of the heap limit (0 when the limit is 0)."""
        if self.heap_limit == 0:
            return 0.0
        return self.heap_used / self.heap_limit * 100.0

    # -- serialisation helpers ------------------------------------------------

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["analysis_context"] = (
            self.analysis_context.to_dict() if self.analysis_context is not None else None
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> Snapshot:
        raw_context = data.get("analysis_context")
        context = (
            AnalysisContext.from_dict(raw_context)  # type: ignore[arg-type]
            if isinstance(raw_context, dict)
            else None
        )
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            timestamp=float(data.get("timestamp", 0.0)),  # type: ignore[arg-type]
            heap_used=float(data.get("heap_used", 0.0)),  # type: ignore[arg-type]
            heap_total=float(data.get("heap_total", 0.0)),  # type: ignore[arg-type]
            heap_limit=float(data.get("heap_limit", 0.0)),  # type: ignore[arg-type]
            dom_nodes=_optional_int(data.get("dom_nodes")),
            event_listeners=_optional_int(data.get("event_listeners")),
            is_auto=bool(data.get("is_auto", False)),
            analysis_context=context,
        )
