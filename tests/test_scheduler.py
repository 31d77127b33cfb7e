"""Tests for src.monitor.scheduler."""

import threading
import time

from src.monitor.live_monitor import MemoryReading
from src.monitor.scheduler import SnapshotScheduler
from src.monitor.settings import ScheduleInterval, SnapshotSettings
from src.monitor.snapshot_store import SnapshotStore


class _FakeSource:
    def __init__(self):
        self.reads = 0

    def read(self):
        self.reads += 1
        return MemoryReading(
            timestamp=float(self.reads), heap_used=1.0, heap_total=2.0, heap_limit=4.0,
        )

    def analysis_context(self):
        return None


def _make_store(max_snapshots=10) -> SnapshotStore:
    return SnapshotStore(_FakeSource(), SnapshotSettings(max_snapshots=max_snapshots))


def _wait_for(predicate, timeout=2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _scheduler_threads() -> int:
    return sum(1 for t in threading.enumerate() if t.name == "snapshot-scheduler")


class TestSnapshotScheduler:
    def test_inactive_does_not_run(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.s1)
        assert scheduler.is_running is False
        assert len(store) == 0

    def test_off_does_not_run(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.off, active=True)
        assert scheduler.is_running is False

    def test_arming_captures_immediately(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1)
        try:
            scheduler.set_active(True)
            assert scheduler.is_running
            assert _wait_for(lambda: len(store) == 1)
            snap = store.snapshots[0]
            assert snap.label == "Auto 1"
            assert snap.is_auto is True
        finally:
            scheduler.stop()

    def test_stop_cancels_timer(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1, active=True)
        assert _wait_for(lambda: len(store) == 1)
        scheduler.stop()
        assert scheduler.is_running is False
        assert scheduler.active is False
        assert _wait_for(lambda: _scheduler_threads() == 0)

    def test_set_interval_off_cancels(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1, active=True)
        scheduler.set_interval(ScheduleInterval.off)
        assert scheduler.is_running is False
        assert store.settings.schedule_interval is ScheduleInterval.off

    def test_interval_change_keeps_single_timer(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1, active=True)
        try:
            scheduler.set_interval(ScheduleInterval.h6)
            scheduler.set_interval(ScheduleInterval.h24)
            assert scheduler.interval is ScheduleInterval.h24
            assert store.settings.schedule_interval is ScheduleInterval.h24
            assert _wait_for(lambda: _scheduler_threads() == 1)
        finally:
            scheduler.stop()

    def test_repeated_captures(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.s1, active=True)
        try:
            assert _wait_for(lambda: len(store) >= 2, timeout=3.0)
        finally:
            scheduler.stop()
        assert all(s.label.startswith("Auto ") for s in store.snapshots)

    def test_deactivate(self):
        store = _make_store()
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1, active=True)
        scheduler.set_active(False)
        assert scheduler.is_running is False
        scheduler.set_active(False)
        assert scheduler.is_running is False


class _SlowSource(_FakeSource):
    """Source whose reads block long enough to overlap a toggle."""

    def __init__(self, delay=0.5):
        super().__init__()
        self.delay = delay
        self.started = threading.Event()

    def read(self):
        self.started.set()
        time.sleep(self.delay)
        return super().read()


class TestSlowCapture:
    def test_toggle_during_capture_keeps_single_timer(self):
        source = _SlowSource()
        store = SnapshotStore(source, SnapshotSettings(max_snapshots=10))
        scheduler = SnapshotScheduler(store, ScheduleInterval.h1, active=True)
        try:
            assert source.started.wait(timeout=2.0)
            scheduler.set_active(False)
            # Deactivation returns only after the in-flight capture finished.
            assert len(store) == 1
            assert _scheduler_threads() == 0

            scheduler.set_active(True)
            assert _scheduler_threads() <= 1
            assert scheduler.is_running
        finally:
            scheduler.stop()
        assert _scheduler_threads() == 0
        assert len(store) == 2
