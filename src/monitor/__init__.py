"""Live memory sampling, snapshot capture and scheduling."""

from src.monitor.snapshot import AnalysisContext, Severity, Snapshot, Trend
from src.monitor.live_monitor import LiveMonitor, MemoryReading, ProcessMemoryReader
from src.monitor.settings import ScheduleInterval, SnapshotSettings
from src.monitor.snapshot_store import SnapshotStore
from src.monitor.scheduler import SnapshotScheduler

__all__ = [
    "AnalysisContext",
    "Severity",
    "Snapshot",
    "Trend",
    "LiveMonitor",
    "MemoryReading",
    "ProcessMemoryReader",
    "ScheduleInterval",
    "SnapshotSettings",
    "SnapshotStore",
    "SnapshotScheduler",
]
