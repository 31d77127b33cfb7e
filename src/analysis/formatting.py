"""Human-readable formatting for byte counts, durations and timestamps."""

from __future__ import annotations

import datetime
from typing import Optional

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(value: Optional[float]) -> str:
    """Format a byte count using 1024-based units (``"1.5 MB"``)."""
    if value is None:
        return "N/A"
    if value == 0:
        return "0 B"
    i = 0
    scaled = float(value)
    while abs(scaled) >= 1024 and i < len(_BYTE_UNITS) - 1:
        scaled /= 1024
        i += 1
    return f"{scaled:.{1 if i > 1 else 0}f} {_BYTE_UNITS[i]}"


def format_duration(ms: float) -> str:
    """Format a duration in milliseconds (``"1h 5m"``, ``"2m 3s"``, ``"42s"``)."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_timestamp(timestamp_ms: float) -> str:
    return datetime.datetime.fromtimestamp(timestamp_ms / 1000.0).strftime("%Y-%m-%d %H:%M:%S")


def format_time(timestamp_ms: float) -> str:
    return datetime.datetime.fromtimestamp(timestamp_ms / 1000.0).strftime("%H:%M:%S")
