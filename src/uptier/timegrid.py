"""Clock-time arithmetic on the day-planner grid.

Times are ``HH:MM`` strings within a single day. Nothing here spans midnight:
snapped starts stay inside the day and end times stop at ``24:00``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class WorkingDay:
    start_hour: int = 6
    end_hour: int = 22
    snap_minutes: int = 15

    def __post_init__(self):
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(f"invalid working day {self.start_hour}-{self.end_hour}")
        if self.snap_minutes <= 0:
            raise ValueError("snap interval must be positive")

    @property
    def start_minutes(self) -> int:
        return self.start_hour * 60

    @property
    def end_minutes(self) -> int:
        return self.end_hour * 60

    @property
    def total_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_minutes)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_minutes)


@dataclass(frozen=True)
class TimeBlock:
    start_time: str
    end_time: str

    @property
    def duration_minutes(self) -> int:
        return time_to_minutes(self.end_time) - time_to_minutes(self.start_time)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
        }


def time_to_minutes(value: str) -> int:
    """``"09:30"`` -> 570. Accepts ``HH:MM`` and ``HH:MM:SS``."""
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"invalid time: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 24 and 0 <= minutes < 60) or hours * 60 + minutes > MINUTES_PER_DAY:
        raise ValueError(f"invalid time: {value!r}")
    return hours * 60 + minutes


def minutes_to_time(total: int) -> str:
    total = max(0, min(MINUTES_PER_DAY, total))
    return f"{total // 60:02d}:{total % 60:02d}"


def snap_minutes(total: int, interval: int = 15) -> int:
    """Round to the nearest multiple of ``interval``; exact halves round up."""
    snapped = (total * 2 + interval) // (2 * interval) * interval
    # the last grid line at or before midnight keeps the result inside the day
    last_line = (MINUTES_PER_DAY - 1) // interval * interval
    return min(snapped, last_line)


def snap_to_grid(value: str, interval: int = 15) -> str:
    return minutes_to_time(snap_minutes(time_to_minutes(value), interval))


def compute_end_time(start: str, duration_minutes: int) -> str:
    return minutes_to_time(time_to_minutes(start) + max(0, duration_minutes))


def free_blocks(intervals: Iterable[tuple[str, str]], day: WorkingDay) -> list[TimeBlock]:
    """Gaps in the working day not covered by ``intervals``.

    ``intervals`` must be sorted by start. Each is clipped to the working day;
    overlapping intervals are tolerated by tracking the furthest end seen.
    """
    blocks: list[TimeBlock] = []
    cursor = day.start_minutes
    for start, end in intervals:
        s = max(time_to_minutes(start), day.start_minutes)
        e = min(time_to_minutes(end), day.end_minutes)
        if e <= s:
            continue
        if s > cursor:
            blocks.append(TimeBlock(minutes_to_time(cursor), minutes_to_time(s)))
        cursor = max(cursor, e)
    if cursor < day.end_minutes:
        blocks.append(TimeBlock(minutes_to_time(cursor), minutes_to_time(day.end_minutes)))
    return blocks
