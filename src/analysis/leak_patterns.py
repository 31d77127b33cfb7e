"""Leak pattern classification over a chronologically sorted snapshot list.

The heap-used series is classified with first-match precedence:

1. **sudden**: any single step grows by more than 30%;
2. **intermittent**: at least 30% of steps rise *and* at least 30% fall;
3. **gradual**: the time-normalised least-squares slope exceeds 1000 B/s;
4. otherwise **none**.

Confidence prefers the live monitor's leak probabilities frozen into the
snapshots and falls back to a pattern-based estimate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Sequence

from src.monitor.snapshot import Snapshot

logger = logging.getLogger(__name__)

# Minimum snapshots before a pattern is attempted.
MIN_PATTERN_SAMPLES: int = 5

# Relative single-step growth that counts as a spike.
SPIKE_THRESHOLD: float = 0.3

# Fraction of steps required in each direction for an oscillation.
OSCILLATION_THRESHOLD: float = 0.3
MIN_OSCILLATION_SAMPLES: int = 4

# Normalised slope (bytes per second) above which growth is a gradual leak.
GRADUAL_LEAK_SLOPE_THRESHOLD: float = 1000.0

# Confidence above which a classified pattern is reported as detected.
DETECTION_CONFIDENCE_THRESHOLD: float = 30.0


class LeakPattern(str, Enum):
    gradual = "gradual"
    sudden = "sudden"
    intermittent = "intermittent"
    none = "none"

    @property
    def description(self) -> str:
        return _PATTERN_DESCRIPTIONS[self]


_PATTERN_DESCRIPTIONS: Dict[LeakPattern, str] = {
    LeakPattern.gradual: "Gradual Increase",
    LeakPattern.sudden: "Sudden Spike",
    LeakPattern.intermittent: "Intermittent Fluctuation",
    LeakPattern.none: "No Pattern Detected",
}


# ============================================================================
# Advisory text
# ============================================================================

_SUSPECTED_CAUSES: Dict[LeakPattern, List[str]] = {
    LeakPattern.gradual: [
        "Event listeners not being removed",
        "Closures retaining references to large objects",
        "Timers/intervals not being cleared",
        "Accumulating cache without size limits",
        "DOM nodes being added without removal",
    ],
    LeakPattern.sudden: [
        "Large data structure allocation",
        "Bulk DOM manipulation",
        "Image/media loading without cleanup",
        "Memory-intensive computation",
        "Third-party library initialization",
    ],
    LeakPattern.intermittent: [
        "Periodic data fetching without cleanup",
        "Component mount/unmount cycles",
        "Temporary cache buildup",
        "Event handler accumulation on re-renders",
    ],
    LeakPattern.none: [],
}

_COMMON_GUIDANCE: List[str] = [
    "Take heap snapshots with your runtime's memory profiler",
    "Compare heap snapshots before and after suspected operations",
    "Track heap size in real time while reproducing the workload",
]

_PATTERN_GUIDANCE: Dict[LeakPattern, List[str]] = {
    LeakPattern.gradual: [
        "Check cleanup callbacks of long-lived components",
        "Verify every listener registration has a matching removal",
        "Ensure intervals and timeouts are cleared on teardown",
        "Look for growing arrays or objects in long-lived state",
        "Check for subscriptions (event emitters, streams) not being unsubscribed",
    ],
    LeakPattern.sudden: [
        "Profile the specific operation that causes the spike",
        "Check for unnecessary deep cloning of large objects",
        "Verify image/media resources are properly disposed",
        "Look for synchronous operations loading large datasets",
    ],
    LeakPattern.intermittent: [
        "Monitor component lifecycle methods",
        "Check for memory accumulation across navigation",
        "Verify cached data is being properly invalidated",
        "Look for duplicate event handler registration",
    ],
    LeakPattern.none: [],
}


def suspected_causes(pattern: LeakPattern) -> List[str]:
    return list(_SUSPECTED_CAUSES[pattern])


def investigation_guidance(pattern: LeakPattern) -> List[str]:
    """Common guidance followed by pattern-specific items."""
    return _COMMON_GUIDANCE + _PATTERN_GUIDANCE[pattern]


# ============================================================================
# Data classes
# ============================================================================


@dataclass
class LeakPatternReport:
    detected: bool = False
    confidence: float = 0.0  # 0-100
    pattern: LeakPattern = LeakPattern.none
    growth_rate: float = 0.0  # bytes per second
    suspected_causes: List[str] = field(default_factory=list)
    investigation_guidance: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "detected": self.detected,
            "confidence": self.confidence,
            "pattern": self.pattern.value,
            "growth_rate": self.growth_rate,
            "suspected_causes": list(self.suspected_causes),
            "investigation_guidance": list(self.investigation_guidance),
        }


# ============================================================================
# Series analysis
# ============================================================================


def linear_regression_slope(values: Sequence[float]) -> float:
    """Least-squares slope of ``values`` against their index (per sample)."""
    n = len(values)
    if n < 2:
        return 0.0

    x_mean = (n - 1) / 2
    y_mean = sum(values) / n

    numerator = 0.0
    denominator = 0.0
    for i, v in enumerate(values):
        numerator += (i - x_mean) * (v - y_mean)
        denominator += (i - x_mean) ** 2

    return numerator / denominator if denominator else 0.0


def normalized_growth_rate(snapshots: Sequence[Snapshot]) -> float:
    """Slope of heap used rescaled to bytes per second of wall-clock time.

    The per-sample slope is multiplied by the sample count and divided by the
    elapsed seconds between the first and last snapshot.  Zero elapsed time
    yields 0.
    """
    if len(snapshots) < 2:
        return 0.0
    slope = linear_regression_slope([s.heap_used for s in snapshots])
    elapsed_s = (snapshots[-1].timestamp - snapshots[0].timestamp) / 1000.0
    if elapsed_s <= 0:
        return 0.0
    return slope * len(snapshots) / elapsed_s


def detect_spikes(values: Sequence[float]) -> bool:
    for prev, cur in zip(values, values[1:]):
        if prev == 0:
            if cur > 0:
                return True
            continue
        if (cur - prev) / prev > SPIKE_THRESHOLD:
            return True
    return False


def detect_oscillation(values: Sequence[float]) -> bool:
    if len(values) < MIN_OSCILLATION_SAMPLES:
        return False

    increasing = 0
    decreasing = 0
    for prev, cur in zip(values, values[1:]):
        if cur > prev:
            increasing += 1
        elif cur < prev:
            decreasing += 1

    ratio = min(increasing, decreasing) / (len(values) - 1)
    return ratio > OSCILLATION_THRESHOLD


def classify_leak_pattern(snapshots: Sequence[Snapshot]) -> LeakPattern:
    heap = [s.heap_used for s in snapshots]

    if detect_spikes(heap):
        return LeakPattern.sudden
    if detect_oscillation(heap):
        return LeakPattern.intermittent
    if normalized_growth_rate(snapshots) > GRADUAL_LEAK_SLOPE_THRESHOLD:
        return LeakPattern.gradual
    return LeakPattern.none


def _estimate_confidence(pattern: LeakPattern, growth_rate: float) -> float:
    if pattern is LeakPattern.gradual:
        return min(80.0, abs(growth_rate) / 100.0)
    if pattern is LeakPattern.sudden:
        return 60.0
    if pattern is LeakPattern.intermittent:
        return 40.0
    return 0.0


def identify_leak_patterns(snapshots: Sequence[Snapshot]) -> LeakPatternReport:
    """Classify the leak pattern of a chronologically sorted snapshot list."""
    if len(snapshots) < MIN_PATTERN_SAMPLES:
        return LeakPatternReport()

    pattern = classify_leak_pattern(snapshots)
    growth_rate = 0.0 if pattern is LeakPattern.none else normalized_growth_rate(snapshots)

    with_context = [s for s in snapshots if s.analysis_context is not None]
    if with_context:
        confidence = sum(
            s.analysis_context.leak_probability for s in with_context  # type: ignore[union-attr]
        ) / len(with_context)
    else:
        confidence = _estimate_confidence(pattern, growth_rate)

    detected = pattern is not LeakPattern.none and confidence > DETECTION_CONFIDENCE_THRESHOLD
    logger.debug(
        "Leak pattern %s (confidence=%.1f, growth=%.1f B/s, detected=%s).",
        pattern.value, confidence, growth_rate, detected,
    )

    return LeakPatternReport(
        detected=detected,
        confidence=confidence,
        pattern=pattern,
        growth_rate=growth_rate,
        suspected_causes=suspected_causes(pattern),
        investigation_guidance=investigation_guidance(pattern),
    )
