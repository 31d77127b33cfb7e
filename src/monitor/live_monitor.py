"""Live process memory monitor.

Samples process memory on a background thread, keeps a bounded history and
derives the live ``{trend, leak_probability, severity, usage_percentage}``
state that the snapshot store freezes into each snapshot's analysis context.

Readings come from a pluggable reader.  :class:`ProcessMemoryReader` uses
psutil to report the resident set size of the current process against total
system memory; object counts that a host can measure (DOM nodes, event
listeners or their equivalents) are supplied through optional callables.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, asdict
from typing import Callable, Deque, Dict, List, Optional

import psutil

from src.monitor.snapshot import AnalysisContext, Severity
from src.monitor.trend import (
    DEFAULT_CRITICAL_THRESHOLD,
    DEFAULT_WARNING_THRESHOLD,
    LeakAnalysis,
    LeakSensitivity,
    analyze_leak_probability,
    classify_severity,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS: int = 5000
DEFAULT_HISTORY_SIZE: int = 50
DEFAULT_LEAK_WINDOW_SIZE: int = 10


def now_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


# ============================================================================
# Readings
# ============================================================================


@dataclass(frozen=True)
class MemoryReading:
    """A single raw memory measurement supplied to the monitor."""

    timestamp: float  # milliseconds since the epoch
    heap_used: float
    heap_total: float
    heap_limit: float
    dom_nodes: Optional[int] = None
    event_listeners: Optional[int] = None

    @property
    def usage_percentage(self) -> float:
        if self.heap_limit <= 0:
            return 0.0
        return self.heap_used / self.heap_limit * 100.0

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class ProcessMemoryReader:
    """Read memory usage of a process with psutil.

    ``heap_used`` is the resident set size, ``heap_total`` the virtual size
    capped at the limit, and ``heap_limit`` total physical memory.
    """

    def __init__(
        self,
        pid: Optional[int] = None,
        dom_nodes: Optional[Callable[[], Optional[int]]] = None,
        event_listeners: Optional[Callable[[], Optional[int]]] = None,
    ) -> None:
        self._process = psutil.Process(pid)
        self._dom_nodes = dom_nodes
        self._event_listeners = event_listeners

    def read(self) -> MemoryReading:
        info = self._process.memory_info()
        limit = float(psutil.virtual_memory().total)
        used = float(info.rss)
        total = min(max(float(info.vms), used), limit)
        return MemoryReading(
            timestamp=now_ms(),
            heap_used=used,
            heap_total=total,
            heap_limit=limit,
            dom_nodes=self._dom_nodes() if self._dom_nodes is not None else None,
            event_listeners=(
                self._event_listeners() if self._event_listeners is not None else None
            ),
        )


# ============================================================================
# Live Monitor
# ============================================================================


class LiveMonitor:
    """Background memory sampler with rolling leak analysis.

    Usage::

        monitor = LiveMonitor(interval_ms=1000)
        monitor.start()
        ...
        context = monitor.analysis_context()
        monitor.stop()
    """

    def __init__(
        self,
        reader: Optional[ProcessMemoryReader] = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        history_size: int = DEFAULT_HISTORY_SIZE,
        leak_window: int = DEFAULT_LEAK_WINDOW_SIZE,
        sensitivity: LeakSensitivity = LeakSensitivity.medium,
        warning_threshold: float = DEFAULT_WARNING_THRESHOLD,
        critical_threshold: float = DEFAULT_CRITICAL_THRESHOLD,
    ) -> None:
        self._reader = reader if reader is not None else ProcessMemoryReader()
        self._interval_s: float = max(interval_ms, 1) / 1000.0
        self._leak_window: int = max(leak_window, 2)
        self._sensitivity = LeakSensitivity(sensitivity)
        self._warning_threshold = warning_threshold
        self._critical_threshold = critical_threshold

        self._history: Deque[MemoryReading] = deque(maxlen=max(history_size, 1))
        self._lock: threading.Lock = threading.Lock()
        self._stop_event: threading.Event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Begin background sampling."""
        if self.is_monitoring:
            logger.warning("LiveMonitor is already running; ignoring duplicate start().")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._collect_readings,
            name="live-memory-monitor",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Live monitor started (interval=%.1f ms).", self._interval_s * 1000)

    def stop(self) -> None:
        """Stop background sampling.  History is kept."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=max(self._interval_s * 5, 2.0))
            self._thread = None
        logger.debug("Live monitor stopped.")

    def _collect_readings(self) -> None:
        while not self._stop_event.is_set():
            loop_start = time.monotonic()
            self.poll()
            elapsed = time.monotonic() - loop_start
            sleep_time = self._interval_s - elapsed
            if sleep_time > 0:
                self._stop_event.wait(timeout=sleep_time)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def poll(self) -> Optional[MemoryReading]:
        """Take one reading synchronously and append it to the history.

        Reader failures are logged and the sample is skipped.
        """
        try:
            reading = self._reader.read()
        except (psutil.Error, OSError):
            logger.debug("Failed to read process memory.", exc_info=True)
            return None
        with self._lock:
            self._history.append(reading)
        return reading

    def latest(self) -> Optional[MemoryReading]:
        with self._lock:
            return self._history[-1] if self._history else None

    def history(self) -> List[MemoryReading]:
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def leak_analysis(self) -> LeakAnalysis:
        """Leak estimate over the most recent ``leak_window`` readings."""
        with self._lock:
            window = list(self._history)[-self._leak_window:]
        return analyze_leak_probability(
            [r.heap_used for r in window], sensitivity=self._sensitivity,
        )

    def severity(self) -> Severity:
        reading = self.latest()
        usage = reading.usage_percentage if reading is not None else 0.0
        return classify_severity(usage, self._warning_threshold, self._critical_threshold)

    def analysis_context(self) -> Optional[AnalysisContext]:
        """Freeze the current derived state, or ``None`` before the first reading."""
        reading = self.latest()
        if reading is None:
            return None
        analysis = self.leak_analysis()
        return AnalysisContext(
            trend=analysis.trend,
            leak_probability=analysis.probability,
            severity=classify_severity(
                reading.usage_percentage,
                self._warning_threshold,
                self._critical_threshold,
            ),
            usage_percentage=reading.usage_percentage,
        )

    def read(self) -> Optional[MemoryReading]:
        """Reading used for a snapshot capture: a fresh poll, else the latest."""
        reading = self.poll()
        return reading if reading is not None else self.latest()
