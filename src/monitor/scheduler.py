"""Periodic automatic snapshot capture.

At most one timer thread is active per scheduler.  Any change to the
interval or the activation gate cancels the running timer (and waits for it
to exit) before a new one is armed, so two timers never coexist.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from src.monitor.settings import ScheduleInterval
from src.monitor.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotScheduler:
    """Capture ``Auto {n}`` snapshots into a store at a fixed cadence.

    The scheduler runs only while ``active`` is true and the interval is not
    ``off``.  Arming performs one immediate capture, then one per interval.

    Usage::

        scheduler = SnapshotScheduler(store, ScheduleInterval.s10)
        scheduler.set_active(True)
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        store: SnapshotStore,
        interval: ScheduleInterval = ScheduleInterval.off,
        active: bool = False,
    ) -> None:
        self._store = store
        self._interval = ScheduleInterval.from_value(interval)
        self._active = active

        # ``None`` means no timer is armed.
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._control_lock = threading.Lock()

        self._reconcile()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def interval(self) -> ScheduleInterval:
        return self._interval

    @property
    def active(self) -> bool:
        return self._active

    @property
    def is_running(self) -> bool:
        return self._thread is not None

    def set_interval(self, interval: ScheduleInterval) -> None:
        """Change the cadence, restarting the timer if it should run."""
        with self._control_lock:
            self._interval = ScheduleInterval.from_value(interval)
            self._store.update_settings(schedule_interval=self._interval)
            self._reconcile()

    def set_active(self, active: bool) -> None:
        """Set the external "should the monitor run at all" gate."""
        with self._control_lock:
            if active == self._active:
                return
            self._active = active
            self._reconcile()

    def stop(self) -> None:
        """Cancel any armed timer and deactivate."""
        with self._control_lock:
            self._active = False
            self._cancel()

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _reconcile(self) -> None:
        self._cancel()
        if not self._active or self._interval is ScheduleInterval.off:
            return
        self._arm()

    def _cancel(self) -> None:
        if self._thread is None or self._stop_event is None:
            return
        self._stop_event.set()
        # Wait out any in-flight capture; the handle is cleared only once the
        # old timer has exited.
        if self._thread is not threading.current_thread():
            self._thread.join()
        logger.debug("Snapshot schedule cancelled.")
        self._thread = None
        self._stop_event = None

    def _arm(self) -> None:
        stop_event = threading.Event()
        interval_s = self._interval.interval_ms / 1000.0
        thread = threading.Thread(
            target=self._run,
            args=(stop_event, interval_s),
            name="snapshot-scheduler",
            daemon=True,
        )
        self._stop_event = stop_event
        self._thread = thread
        thread.start()
        logger.debug("Snapshot schedule armed (interval=%s).", self._interval.value)

    def _run(self, stop_event: threading.Event, interval_s: float) -> None:
        self._store.capture(is_auto=True)
        while not stop_event.wait(timeout=interval_s):
            self._store.capture(is_auto=True)
