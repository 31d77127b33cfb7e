"""Bounded, ordered snapshot collection.

The store is the sole owner of snapshot records.  It assigns sequential
labels from a counter that is never reused (eviction does not rewind it),
enforces the capacity policy, and keeps a two-slot selection used for
side-by-side comparison.  Every mutation is serialised by one lock so the
scheduler thread and callers can share a store.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable, List, Optional, Union

from src.monitor.live_monitor import MemoryReading, now_ms
from src.monitor.settings import ScheduleInterval, SnapshotSettings, clamp_max_snapshots
from src.monitor.snapshot import AnalysisContext, Snapshot

logger = logging.getLogger(__name__)

Subscriber = Callable[["SnapshotStore"], None]


class SnapshotStore:
    """Capacity-bounded snapshot collection with sequential numbering.

    ``source`` is the live feed: any object exposing ``read()`` returning a
    :class:`MemoryReading` (or ``None``) and ``analysis_context()``.  A
    :class:`~src.monitor.live_monitor.LiveMonitor` satisfies both.

    Usage::

        store = SnapshotStore(monitor, SnapshotSettings(max_snapshots=20))
        snap = store.capture()
        store.select(snap)
    """

    def __init__(
        self,
        source: Any,
        settings: Optional[SnapshotSettings] = None,
    ) -> None:
        self._source = source
        self._settings = settings if settings is not None else SnapshotSettings()
        self._snapshots: List[Snapshot] = []
        self._counter: int = 0
        self._selected_id: Optional[str] = None
        self._compare_id: Optional[str] = None
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def settings(self) -> SnapshotSettings:
        return self._settings

    @property
    def snapshots(self) -> List[Snapshot]:
        with self._lock:
            return list(self._snapshots)

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def is_at_capacity(self) -> bool:
        with self._lock:
            return len(self._snapshots) >= self._settings.max_snapshots

    @property
    def can_capture(self) -> bool:
        return not self.is_at_capacity or self._settings.auto_delete_oldest

    @property
    def selected(self) -> Optional[Snapshot]:
        with self._lock:
            return self._find(self._selected_id)

    @property
    def compare(self) -> Optional[Snapshot]:
        with self._lock:
            return self._find(self._compare_id)

    def get(self, snapshot_id: str) -> Optional[Snapshot]:
        with self._lock:
            return self._find(snapshot_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._snapshots)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def capture(self, is_auto: bool = False) -> Optional[Snapshot]:
        """Capture a snapshot from the live source.

        Returns the new snapshot, or ``None`` when the store is at capacity
        and ``auto_delete_oldest`` is off.  The source is read before the
        store lock is taken.
        """
        if not self.can_capture:
            return self._reject()

        reading: Optional[MemoryReading] = self._source.read()
        context: Optional[AnalysisContext] = self._source.analysis_context()

        with self._lock:
            # Capacity may have been filled while the source was being read.
            at_capacity = len(self._snapshots) >= self._settings.max_snapshots
            if at_capacity and not self._settings.auto_delete_oldest:
                return self._reject()

            self._counter += 1
            number = self._counter
            label = f"Auto {number}" if is_auto else f"Snapshot {number}"

            snapshot = Snapshot(
                id=f"snapshot-{uuid.uuid4().hex[:12]}",
                label=label,
                timestamp=reading.timestamp if reading is not None else now_ms(),
                heap_used=reading.heap_used if reading is not None else 0.0,
                heap_total=reading.heap_total if reading is not None else 0.0,
                heap_limit=reading.heap_limit if reading is not None else 0.0,
                dom_nodes=reading.dom_nodes if reading is not None else None,
                event_listeners=reading.event_listeners if reading is not None else None,
                is_auto=is_auto,
                analysis_context=context,
            )

            while len(self._snapshots) >= self._settings.max_snapshots:
                evicted = self._snapshots.pop(0)
                self._clear_dangling(evicted.id)
                logger.debug("Evicted oldest snapshot %s.", evicted.label)

            self._snapshots.append(snapshot)
            logger.debug("Captured %s (auto=%s).", label, is_auto)

        self._notify()
        return snapshot

    def add(self, snapshot: Snapshot) -> None:
        """Insert an existing snapshot (e.g. loaded from a session file).

        Capacity and eviction apply as for :meth:`capture`; the counter is
        advanced past any trailing number in the label so new captures never
        reuse it.
        """
        with self._lock:
            if (
                len(self._snapshots) >= self._settings.max_snapshots
                and not self._settings.auto_delete_oldest
            ):
                return
            while len(self._snapshots) >= self._settings.max_snapshots:
                evicted = self._snapshots.pop(0)
                self._clear_dangling(evicted.id)
            self._snapshots.append(snapshot)
            tail = snapshot.label.rsplit(" ", 1)[-1]
            if tail.isdigit():
                self._counter = max(self._counter, int(tail))
        self._notify()

    def delete(self, snapshot_id: str) -> bool:
        """Remove one snapshot.  Returns ``False`` when the id is unknown."""
        with self._lock:
            before = len(self._snapshots)
            self._snapshots = [s for s in self._snapshots if s.id != snapshot_id]
            removed = len(self._snapshots) != before
            self._clear_dangling(snapshot_id)
        if removed:
            self._notify()
        return removed

    def delete_all(self) -> None:
        with self._lock:
            self._snapshots = []
            self._selected_id = None
            self._compare_id = None
        self._notify()

    def select(self, snapshot: Union[Snapshot, str]) -> None:
        """Two-slot selection.

        Picking the current primary clears both slots; with nothing selected
        the pick becomes primary; otherwise the previous primary moves to the
        compare slot and the pick becomes primary.  Ids not held by the store
        are ignored.
        """
        snapshot_id = snapshot.id if isinstance(snapshot, Snapshot) else snapshot
        with self._lock:
            if self._find(snapshot_id) is None:
                logger.debug("Ignoring selection of unknown snapshot %s.", snapshot_id)
                return
            if self._selected_id == snapshot_id:
                self._selected_id = None
                self._compare_id = None
            elif self._selected_id is None:
                self._selected_id = snapshot_id
            else:
                self._compare_id = self._selected_id
                self._selected_id = snapshot_id
        self._notify()

    def update_settings(
        self,
        max_snapshots: Optional[int] = None,
        auto_delete_oldest: Optional[bool] = None,
        schedule_interval: Optional[ScheduleInterval] = None,
    ) -> SnapshotSettings:
        """Change settings in place.  Lowering capacity trims the oldest entries."""
        with self._lock:
            if max_snapshots is not None:
                self._settings.max_snapshots = clamp_max_snapshots(max_snapshots)
            if auto_delete_oldest is not None:
                self._settings.auto_delete_oldest = auto_delete_oldest
            if schedule_interval is not None:
                self._settings.schedule_interval = ScheduleInterval.from_value(schedule_interval)
            while len(self._snapshots) > self._settings.max_snapshots:
                evicted = self._snapshots.pop(0)
                self._clear_dangling(evicted.id)
            settings = self._settings
        self._notify()
        return settings

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(store)`` to run after each mutation.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            callback(self)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find(self, snapshot_id: Optional[str]) -> Optional[Snapshot]:
        if snapshot_id is None:
            return None
        for snap in self._snapshots:
            if snap.id == snapshot_id:
                return snap
        return None

    def _clear_dangling(self, snapshot_id: str) -> None:
        if self._selected_id == snapshot_id:
            self._selected_id = None
        if self._compare_id == snapshot_id:
            self._compare_id = None

    def _reject(self) -> None:
        logger.debug(
            "Snapshot capture rejected: store at capacity (%d).",
            self._settings.max_snapshots,
        )
        return None
