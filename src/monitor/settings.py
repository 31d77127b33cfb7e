"""Snapshot capture settings and the enumerated schedule intervals."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

# Legal range for the snapshot store capacity.
MIN_MAX_SNAPSHOTS: int = 1
MAX_MAX_SNAPSHOTS: int = 50
DEFAULT_MAX_SNAPSHOTS: int = 10


class ScheduleInterval(str, Enum):
    """Automatic snapshot cadence.  ``off`` disables scheduling."""

    off = "off"
    s1 = "1s"
    s10 = "10s"
    m1 = "1m"
    m5 = "5m"
    m10 = "10m"
    m30 = "30m"
    h1 = "1h"
    h6 = "6h"
    h24 = "24h"

    @property
    def interval_ms(self) -> int:
        return _INTERVAL_MS[self]

    @classmethod
    def from_value(cls, value: object) -> ScheduleInterval:
        """Parse ``"10s"``-style values; unknown values raise ``ValueError``."""
        if isinstance(value, ScheduleInterval):
            return value
        return cls(str(value).strip().lower())


_INTERVAL_MS: Dict[ScheduleInterval, int] = {
    ScheduleInterval.off: 0,
    ScheduleInterval.s1: 1_000,
    ScheduleInterval.s10: 10_000,
    ScheduleInterval.m1: 60_000,
    ScheduleInterval.m5: 5 * 60_000,
    ScheduleInterval.m10: 10 * 60_000,
    ScheduleInterval.m30: 30 * 60_000,
    ScheduleInterval.h1: 3_600_000,
    ScheduleInterval.h6: 6 * 3_600_000,
    ScheduleInterval.h24: 24 * 3_600_000,
}


def clamp_max_snapshots(value: int) -> int:
    return max(MIN_MAX_SNAPSHOTS, min(MAX_MAX_SNAPSHOTS, int(value)))


@dataclass
class SnapshotSettings:
    """Capacity and scheduling policy for a snapshot store."""

    max_snapshots: int = DEFAULT_MAX_SNAPSHOTS
    auto_delete_oldest: bool = True
    schedule_interval: ScheduleInterval = ScheduleInterval.off

    def __post_init__(self) -> None:
        self.max_snapshots = clamp_max_snapshots(self.max_snapshots)
        self.schedule_interval = ScheduleInterval.from_value(self.schedule_interval)

    def to_dict(self) -> Dict[str, object]:
        return {
            "max_snapshots": self.max_snapshots,
            "auto_delete_oldest": self.auto_delete_oldest,
            "schedule_interval": self.schedule_interval.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> SnapshotSettings:
        return cls(
            max_snapshots=int(data.get("max_snapshots", DEFAULT_MAX_SNAPSHOTS)),  # type: ignore[arg-type]
            auto_delete_oldest=bool(data.get("auto_delete_oldest", True)),
            schedule_interval=ScheduleInterval.from_value(
                data.get("schedule_interval", ScheduleInterval.off.value)
            ),
        )
