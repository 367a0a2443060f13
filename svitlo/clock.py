"""
Local-time projection for a fixed UTC offset.

All scheduling math runs on a shifted epoch timeline: local_ms = utc_ms + offset.
The local day origin is local_ms floored to a whole day on that timeline, so
converting a minute-of-day back to UTC is a pure arithmetic step that works
for negative and non-hour offsets.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz

MS_PER_MINUTE = 60 * 1000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE


@dataclass(frozen=True)
class LocalClock:
    offset_minutes: int
    now_utc_ms: int
    local_ms: int
    minute_of_day: int
    day_origin_ms: int

    def to_datetime(self) -> datetime:
        """Aware datetime for the current instant in the configured offset."""
        tz = pytz.FixedOffset(self.offset_minutes)
        return datetime.fromtimestamp(self.now_utc_ms / 1000, tz)


def utc_now_ms() -> int:
    return int(time.time() * 1000)


def local_day_start_ms(local_ms: int) -> int:
    # Python floor division keeps this correct for pre-epoch values too
    return (local_ms // MS_PER_DAY) * MS_PER_DAY


def local_now(offset_minutes, now_utc_ms: Optional[int] = None) -> LocalClock:
    """Builds a LocalClock for the given offset; now defaults to the wall clock."""
    offset = int(offset_minutes)
    now = utc_now_ms() if now_utc_ms is None else int(now_utc_ms)
    local_ms = now + offset * MS_PER_MINUTE
    day_origin = local_day_start_ms(local_ms)
    return LocalClock(
        offset_minutes=offset,
        now_utc_ms=now,
        local_ms=local_ms,
        minute_of_day=(local_ms - day_origin) // MS_PER_MINUTE,
        day_origin_ms=day_origin,
    )


def minute_to_utc_ms(clock: LocalClock, minute: int) -> int:
    """
    Absolute UTC instant of a minute-of-day counted from the clock's local day.
    Minutes >= 1440 land on the following local day.
    """
    return clock.day_origin_ms + int(minute) * MS_PER_MINUTE - clock.offset_minutes * MS_PER_MINUTE


def format_utc_ms(utc_ms: int, offset_minutes) -> str:
    """Renders a UTC instant as 'YYYY-MM-DD HH:MM' in the fixed offset (for logs)."""
    tz = pytz.FixedOffset(int(offset_minutes))
    return datetime.fromtimestamp(utc_ms / 1000, tz).strftime("%Y-%m-%d %H:%M")
