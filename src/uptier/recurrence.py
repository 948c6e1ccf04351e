"""Recurrence rules and calendar arithmetic."""

from __future__ import annotations

import calendar
import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

MAX_OCCURRENCES = 366


class Frequency(enum.StrEnum):
    DAILY = "daily"
    WEEKDAYS = "weekdays"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping to the end of shorter months (Jan 31 + 1 -> Feb 28/29)."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    interval: int = 1

    def to_dict(self) -> dict:
        return {"frequency": self.frequency.value, "interval": self.interval}

    @classmethod
    def from_dict(cls, d: Mapping | None) -> RecurrenceRule | None:
        if not d:
            return None
        try:
            frequency = Frequency(d.get("frequency"))
        except ValueError:
            return None
        interval = d.get("interval") or 1
        return cls(frequency=frequency, interval=max(1, int(interval)))


def occurrences(
    rule: RecurrenceRule,
    anchor: date,
    range_start: date,
    range_end: date,
    until: date | None = None,
) -> Iterator[date]:
    """Yield the rule's dates inside [range_start, range_end], starting from ``anchor``.

    Weekday rules step one day at a time and skip Saturday and Sunday. At most
    MAX_OCCURRENCES steps are taken from the anchor.
    """
    end = min(until, range_end) if until else range_end
    for step in range(MAX_OCCURRENCES):
        if rule.frequency is Frequency.DAILY:
            current = anchor + timedelta(days=step * rule.interval)
        elif rule.frequency is Frequency.WEEKDAYS:
            current = anchor + timedelta(days=step)
        elif rule.frequency is Frequency.WEEKLY:
            current = anchor + timedelta(weeks=step * rule.interval)
        else:
            current = add_months(anchor, step * rule.interval)
        if current > end:
            return
        if current < range_start:
            continue
        if rule.frequency is Frequency.WEEKDAYS and current.weekday() >= 5:
            continue
        yield current
