"""Live trend and leak-probability estimation over a rolling heap history.

These are the signals the live monitor exposes while sampling: a coarse
trend direction, a 0-100 leak probability from a least-squares fit of heap
usage against sample index, and a severity derived from usage thresholds.
Snapshots copy them into their :class:`~src.monitor.snapshot.AnalysisContext`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from src.monitor.snapshot import Severity, Trend

logger = logging.getLogger(__name__)


# Minimum samples before a leak probability is estimated.
MIN_LEAK_DETECTION_SAMPLES: int = 5

# Slope (relative to the mean heap) beyond which the trend is not stable.
TREND_INCREASING_THRESHOLD: float = 0.01
TREND_DECREASING_THRESHOLD: float = -0.01

DEFAULT_WARNING_THRESHOLD: float = 70.0
DEFAULT_CRITICAL_THRESHOLD: float = 90.0


class LeakSensitivity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


@dataclass(frozen=True)
class SensitivityConfig:
    min_slope: float  # bytes per sample
    min_r2: float
    probability_multiplier: float


SENSITIVITY_CONFIG: Dict[LeakSensitivity, SensitivityConfig] = {
    LeakSensitivity.low: SensitivityConfig(100_000.0, 0.7, 0.8),
    LeakSensitivity.medium: SensitivityConfig(50_000.0, 0.6, 1.0),
    LeakSensitivity.high: SensitivityConfig(10_000.0, 0.5, 1.2),
}


# ============================================================================
# Data classes
# ============================================================================


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float


@dataclass
class LeakAnalysis:
    """Rolling-window leak estimate produced by the live monitor."""

    is_leaking: bool
    probability: float
    trend: Trend
    average_growth: float  # bytes per sample
    r_squared: float
    recommendation: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["trend"] = self.trend.value
        return data


# ============================================================================
# Regression
# ============================================================================


def linear_regression(points: Sequence[Tuple[float, float]]) -> RegressionResult:
    """Ordinary least squares fit of ``y`` against ``x``.

    Returns zeros for fewer than two points.  A degenerate x-range yields a
    flat line through the mean.  R² is clamped to [0, 1].
    """
    n = len(points)
    if n < 2:
        return RegressionResult(0.0, 0.0, 0.0)

    sum_x = sum(x for x, _ in points)
    sum_y = sum(y for _, y in points)
    sum_xy = sum(x * y for x, y in points)
    sum_x2 = sum(x * x for x, _ in points)

    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return RegressionResult(0.0, sum_y / n, 0.0)

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_tot = sum((y - mean_y) ** 2 for _, y in points)
    ss_res = sum((y - (slope * x + intercept)) ** 2 for x, y in points)
    r_squared = 0.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot

    return RegressionResult(slope, intercept, max(0.0, min(1.0, r_squared)))


def _indexed(values: Sequence[float]) -> List[Tuple[float, float]]:
    return [(float(i), float(v)) for i, v in enumerate(values)]


# ============================================================================
# Trend / severity
# ============================================================================


def calculate_trend(heap_values: Sequence[float]) -> Trend:
    """Classify the direction of ``heap_values`` relative to their mean."""
    if len(heap_values) < 2:
        return Trend.stable

    slope = linear_regression(_indexed(heap_values)).slope
    avg = sum(heap_values) / len(heap_values)
    normalized = slope / avg if avg > 0 else 0.0

    if normalized > TREND_INCREASING_THRESHOLD:
        return Trend.increasing
    if normalized < TREND_DECREASING_THRESHOLD:
        return Trend.decreasing
    return Trend.stable


def calculate_average_growth(heap_values: Sequence[float]) -> float:
    """Average growth in bytes per sample (regression slope)."""
    if len(heap_values) < 2:
        return 0.0
    return linear_regression(_indexed(heap_values)).slope


def classify_severity(
    usage_pct: float,
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
    critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD,
) -> Severity:
    if usage_pct >= critical_threshold:
        return Severity.critical
    if usage_pct >= warning_threshold:
        return Severity.warning
    return Severity.normal


# ============================================================================
# Leak probability
# ============================================================================


def _format_growth(bytes_per_sample: float) -> str:
    magnitude = abs(bytes_per_sample)
    if magnitude >= 1024 * 1024:
        return f"{bytes_per_sample / (1024 * 1024):.2f} MB"
    if magnitude >= 1024:
        return f"{bytes_per_sample / 1024:.2f} KB"
    return f"{bytes_per_sample:.0f} bytes"


def leak_recommendation(
    probability: float, trend: Trend, average_growth: float,
) -> Optional[str]:
    """One-line guidance for a live leak estimate, or ``None`` below 30%."""
    if probability < 30:
        return None
    if probability >= 80:
        return (
            "Critical: High probability of memory leak detected. Memory is "
            f"growing at {_format_growth(average_growth)} per sample. "
            "Consider profiling with a heap snapshot tool."
        )
    if probability >= 60:
        return (
            "Warning: Possible memory leak detected. Memory trend is "
            f"{trend.value}. Monitor closely and check for retained references."
        )
    if trend is Trend.increasing:
        return (
            "Note: Memory usage is trending upward. This may be normal for "
            "your application, but consider monitoring."
        )
    return None


def analyze_leak_probability(
    heap_values: Sequence[float],
    sensitivity: LeakSensitivity = LeakSensitivity.medium,
    custom_threshold: Optional[float] = None,
) -> LeakAnalysis:
    """Estimate the probability that ``heap_values`` reflect a leak.

    Parameters
    ----------
    heap_values:
        Heap-used samples, oldest first.
    sensitivity:
        Selects slope / R² thresholds from :data:`SENSITIVITY_CONFIG`.
    custom_threshold:
        Overrides the sensitivity's minimum slope (bytes per sample).
    """
    trend = calculate_trend(heap_values)

    if len(heap_values) < MIN_LEAK_DETECTION_SAMPLES:
        return LeakAnalysis(
            is_leaking=False,
            probability=0.0,
            trend=trend,
            average_growth=calculate_average_growth(heap_values),
            r_squared=0.0,
        )

    config = SENSITIVITY_CONFIG[LeakSensitivity(sensitivity)]
    threshold = custom_threshold if custom_threshold is not None else config.min_slope

    fit = linear_regression(_indexed(heap_values))

    probability = 0.0
    if fit.slope > 0 and fit.r_squared >= config.min_r2 and threshold > 0:
        slope_ratio = fit.slope / threshold
        probability = min(
            100.0, slope_ratio * 50.0 * fit.r_squared * config.probability_multiplier,
        )

    if trend is Trend.increasing and fit.r_squared > 0.7 and probability < 60:
        probability = max(probability, 40.0)

    probability = min(100.0, max(0.0, probability))

    return LeakAnalysis(
        is_leaking=probability > 50,
        probability=float(math.floor(probability + 0.5)),
        trend=trend,
        average_growth=fit.slope,
        r_squared=fit.r_squared,
        recommendation=leak_recommendation(probability, trend, fit.slope),
    )
