from __future__ import annotations

import time
from datetime import datetime, timezone

# otcfeed/core/time.py
US_PER_MS = 1_000
US_PER_SECOND = 1_000_000
US_PER_MINUTE = 60_000_000


def now_us() -> int:
    return time.time_ns() // 1_000


def floor_us(ts_us: int, step_us: int) -> int:
    return (ts_us // step_us) * step_us


def to_datetime(ts_us: int) -> datetime:
    return datetime.fromtimestamp(ts_us / US_PER_SECOND, tz=timezone.utc)


def from_datetime(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * US_PER_SECOND)
