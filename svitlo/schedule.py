"""
Schedule blocks, normalization and status evaluation.

A schedule is an ordered list of ScheduleBlock items taken in source order.
Minutes are counted from local midnight; a block that crosses midnight
keeps its end rolled forward by a full day (e.g. 22:00–02:00 -> 1320..1560).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

MINUTES_PER_DAY = 24 * 60


class PowerState(str, Enum):
    ON = "on"
    OFF = "off"
    UNKNOWN = "unknown"

    def opposite(self) -> "PowerState":
        if self is PowerState.ON:
            return PowerState.OFF
        if self is PowerState.OFF:
            return PowerState.ON
        return PowerState.UNKNOWN


@dataclass(frozen=True)
class ScheduleBlock:
    """One contiguous interval of a single power state."""
    start: str                  # "HH:MM"
    end: str                    # "HH:MM"
    state: PowerState = PowerState.UNKNOWN
    start_minute: int = 0
    end_minute: int = 0


@dataclass(frozen=True)
class StatusResult:
    status_line: str
    next_line: str = ""
    next_change_minute: Optional[int] = None
    next_change_type: Optional[PowerState] = None
    next_change_at: Optional[str] = None

    @property
    def has_next_change(self) -> bool:
        return self.next_change_minute is not None


NO_DATA_LINE = "❓ Нема даних"


def to_minute(label: str) -> int:
    """Converts 'HH:MM' to minutes from midnight."""
    hours, minutes = label.strip().split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes_to_hh_mm(minutes: int) -> str:
    """Formats minutes from midnight as HH:MM (24:00 and above are kept as is)."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_block(start: str, end: str, state: PowerState = PowerState.UNKNOWN) -> ScheduleBlock:
    """
    Builds a block with minute values. If the end is earlier than the start
    the interval crosses midnight and the end is moved to the next day.
    """
    start_minute = to_minute(start)
    end_minute = to_minute(end)
    if end_minute < start_minute:
        end_minute += MINUTES_PER_DAY
    return ScheduleBlock(
        start=start,
        end=end,
        state=state,
        start_minute=start_minute,
        end_minute=end_minute,
    )


def split_days(blocks: List[ScheduleBlock]) -> List[List[ScheduleBlock]]:
    """
    Groups source-ordered blocks into days.
    A new day starts whenever a block begins earlier than the previous one.
    """
    days: List[List[ScheduleBlock]] = []
    previous_start = None
    for block in blocks:
        if previous_start is None or block.start_minute < previous_start:
            days.append([])
        days[-1].append(block)
        previous_start = block.start_minute
    return days


def find_current_block(blocks: List[ScheduleBlock], now_minute: int) -> Optional[ScheduleBlock]:
    for block in blocks:
        if block.start_minute <= now_minute < block.end_minute:
            return block
    return None


def find_next_block(blocks: List[ScheduleBlock], now_minute: int) -> Optional[ScheduleBlock]:
    for block in blocks:
        if block.start_minute > now_minute:
            return block
    return None


def fmt_delta(minutes) -> str:
    """Human readable duration: '1 год 5 хв'. Negative values clamp to zero."""
    m = max(0, int(minutes))
    return f"{m // 60} год {m % 60} хв"


STATE_EMOJI = {
    PowerState.ON: "🟢",
    PowerState.OFF: "🔴",
    PowerState.UNKNOWN: "🟡",
}


def format_blocks(blocks: List[ScheduleBlock]) -> str:
    if not blocks:
        return "❌ Нема даних"
    return "\n".join(f"{STATE_EMOJI[b.state]} {b.start} – {b.end}" for b in blocks)


def compute_status(blocks: List[ScheduleBlock], now_minute: int) -> StatusResult:
    """
    Determines the current power state and the next transition.

    Blocks are scanned in source order and the first match wins; they are
    never re-sorted. Returns a "no data" result without next-change fields
    when neither a current nor a future block exists.
    """
    current = find_current_block(blocks, now_minute)

    if current:
        delta = fmt_delta(current.end_minute - now_minute)
        if current.state is PowerState.ON:
            status_line = "🟢 ЗАРАЗ Є СВІТЛО"
            next_line = f"⏰ Вимкнуть о {current.end}\n⏳ Через {delta}"
        elif current.state is PowerState.OFF:
            status_line = "🔴 ЗАРАЗ НЕМА СВІТЛА"
            next_line = f"⏰ Увімкнуть о {current.end}\n⏳ Через {delta}"
        else:
            status_line = "🟡 ЗАРАЗ: невідомо"
            next_line = f"⏳ До {current.end}: {delta}"
        return StatusResult(
            status_line=status_line,
            next_line=next_line,
            next_change_minute=current.end_minute,
            next_change_type=current.state.opposite(),
            next_change_at=current.end,
        )

    upcoming = find_next_block(blocks, now_minute)
    if upcoming:
        # Gap before the next block: we can only infer the state we are leaving
        if upcoming.state is PowerState.ON:
            status_line = "🔴 ЗАРАЗ НЕМА СВІТЛА"
        elif upcoming.state is PowerState.OFF:
            status_line = "🟢 ЗАРАЗ Є СВІТЛО"
        else:
            status_line = "🟡 ЗАРАЗ: невідомо"
        return StatusResult(
            status_line=status_line,
            next_line=f"⏰ Наступна зміна о {upcoming.start}\n⏳ Через {fmt_delta(upcoming.start_minute - now_minute)}",
            next_change_minute=upcoming.start_minute,
            next_change_type=upcoming.state,
            next_change_at=upcoming.start,
        )

    return StatusResult(status_line=NO_DATA_LINE)
