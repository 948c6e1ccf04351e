"""Quick-add text parsing.

Turns ``"Buy milk tomorrow #errands !1 ~30m"`` into a clean title plus due date,
due time, priority tier, tags and estimated minutes.

Matchers run in a fixed order, most specific first. Each one scans the whole
input; a match overlapping a span claimed by an earlier match is skipped. The
first value found for date, time, priority and duration wins, tags accumulate.
Invalid dates and clock times are left in the title untouched.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from uptier.models import PRIORITY_TIERS
from uptier.recurrence import add_months

_FLAGS = re.IGNORECASE | re.ASCII

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
WEEKDAYS = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}
PRIORITY_WORDS = {"now": 1, "soon": 2, "backlog": 3}


@dataclass
class ParsedToken:
    type: str  # date | time | priority | tag | duration
    raw: str
    value: str  # display value, e.g. "Tomorrow", "3:00 PM", "#errands"
    start: int
    end: int

    def to_dict(self) -> dict:
        return {"type": self.type, "raw": self.raw, "value": self.value, "start": self.start, "end": self.end}


@dataclass
class ParsedTask:
    clean_title: str
    due_date: date | None = None
    due_time: str | None = None
    priority_tier: int | None = None
    tags: list[str] = field(default_factory=list)
    estimated_minutes: int | None = None
    tokens: list[ParsedToken] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "clean_title": self.clean_title,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "due_time": self.due_time,
            "priority_tier": self.priority_tier,
            "tags": self.tags,
            "estimated_minutes": self.estimated_minutes,
            "tokens": [t.to_dict() for t in self.tokens],
        }


@dataclass
class _Hit:
    value: object
    display: str


@dataclass
class _Matcher:
    type: str
    pattern: re.Pattern
    handler: Callable[[re.Match, date], _Hit | None]


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def format_date(d: date) -> str:
    return f"{d:%b} {d.day}"


def format_minutes(total: int) -> str:
    hours, minutes = divmod(total, 60)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


def _clock(hour: int, minute: int) -> _Hit:
    suffix = "PM" if hour >= 12 else "AM"
    display_hour = hour % 12 or 12
    return _Hit(f"{hour:02d}:{minute:02d}", f"{display_hour}:{minute:02d} {suffix}")


def _to_24h(hour: int, minute: int, meridiem: str | None) -> tuple[int, int] | None:
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem.lower() == "pm" and hour < 12:
            hour += 12
        elif meridiem.lower() == "am" and hour == 12:
            hour = 0
    elif hour > 23:
        return None
    return hour, minute


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _upcoming(month: int, day: int, today: date) -> date | None:
    """This year's month/day, or next year's when it has already passed."""
    candidate = _safe_date(today.year, month, day)
    if candidate is None:
        return None
    if candidate < today:
        candidate = _safe_date(today.year + 1, month, day)
    return candidate


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _duration_hm(m: re.Match, today: date) -> _Hit:
    total = int(m.group(1)) * 60 + int(m.group(2))
    return _Hit(total, format_minutes(total))


def _duration_h(m: re.Match, today: date) -> _Hit:
    total = int(m.group(1)) * 60
    return _Hit(total, format_minutes(total))


def _duration_m(m: re.Match, today: date) -> _Hit:
    total = int(m.group(1))
    return _Hit(total, format_minutes(total))


def _priority_number(m: re.Match, today: date) -> _Hit:
    tier = int(m.group(1))
    return _Hit(tier, PRIORITY_TIERS[tier])


def _priority_word(m: re.Match, today: date) -> _Hit:
    tier = PRIORITY_WORDS[m.group(1).lower()]
    return _Hit(tier, PRIORITY_TIERS[tier])


def _tag(m: re.Match, today: date) -> _Hit:
    return _Hit(m.group(1), f"#{m.group(1)}")


def _time_hm(m: re.Match, today: date) -> _Hit | None:
    parsed = _to_24h(int(m.group(1)), int(m.group(2)), m.group(3))
    return _clock(*parsed) if parsed else None


def _time_h(m: re.Match, today: date) -> _Hit | None:
    parsed = _to_24h(int(m.group(1)), 0, m.group(2))
    return _clock(*parsed) if parsed else None


def _time_word(m: re.Match, today: date) -> _Hit:
    return _clock(12, 0) if m.group(1).lower() == "noon" else _clock(0, 0)


def _today(m: re.Match, today: date) -> _Hit:
    return _Hit(today, "Today")


def _tomorrow(m: re.Match, today: date) -> _Hit:
    return _Hit(today + timedelta(days=1), "Tomorrow")


def _next_weekday(m: re.Match, today: date) -> _Hit:
    target = WEEKDAYS[m.group(1)[:3].lower()]
    ahead = (target - today.weekday()) % 7 or 7
    d = today + timedelta(days=ahead)
    return _Hit(d, format_date(d))


def _next_period(m: re.Match, today: date) -> _Hit:
    if m.group(1).lower() == "week":
        d = today + timedelta(days=7)
    else:
        d = add_months(today, 1)
    return _Hit(d, format_date(d))


def _in_n(m: re.Match, today: date) -> _Hit:
    n = int(m.group(1))
    unit = m.group(2).lower()
    if unit.startswith("day"):
        d = today + timedelta(days=n)
    elif unit.startswith("week"):
        d = today + timedelta(weeks=n)
    else:
        d = add_months(today, n)
    return _Hit(d, format_date(d))


def _month_day(m: re.Match, today: date) -> _Hit | None:
    d = _upcoming(MONTHS[m.group(1)[:3].lower()], int(m.group(2)), today)
    return _Hit(d, format_date(d)) if d else None


def _numeric_date(m: re.Match, today: date) -> _Hit | None:
    month, day = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    d = _upcoming(month, day, today)
    return _Hit(d, format_date(d)) if d else None


_WEEKDAY_NAMES = (
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tues?|wed|thu(?:rs?)?|fri|sat|sun"
)
_MONTH_NAMES = (
    r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)

MATCHERS: list[_Matcher] = [
    _Matcher("duration", re.compile(r"~(\d+)\s*h\s*(\d+)\s*m(?:in)?\b", _FLAGS), _duration_hm),
    _Matcher("duration", re.compile(r"~(\d+)\s*h(?:rs?|ours?)?\b", _FLAGS), _duration_h),
    _Matcher("duration", re.compile(r"~(\d+)\s*m(?:ins?|inutes?)?\b", _FLAGS), _duration_m),
    _Matcher("priority", re.compile(r"!([123])\b", _FLAGS), _priority_number),
    _Matcher("priority", re.compile(r"!(now|soon|backlog)\b", _FLAGS), _priority_word),
    _Matcher("tag", re.compile(r"#([a-z][\w-]*)\b", _FLAGS), _tag),
    _Matcher("time", re.compile(r"\bat\s+(\d{1,2}):(\d{2})\s*(am|pm)?\b", _FLAGS), _time_hm),
    _Matcher("time", re.compile(r"\bat\s+(\d{1,2})\s*(am|pm)\b", _FLAGS), _time_h),
    _Matcher("time", re.compile(r"\bat\s+(noon|midnight)\b", _FLAGS), _time_word),
    _Matcher("date", re.compile(r"\btoday\b", _FLAGS), _today),
    _Matcher("date", re.compile(r"\btomorrow\b", _FLAGS), _tomorrow),
    _Matcher("date", re.compile(rf"\bnext\s+({_WEEKDAY_NAMES})\b", _FLAGS), _next_weekday),
    _Matcher("date", re.compile(r"\bnext\s+(week|month)\b", _FLAGS), _next_period),
    _Matcher("date", re.compile(r"\bin\s+(\d+)\s+(days?|weeks?|months?)\b", _FLAGS), _in_n),
    _Matcher("date", re.compile(rf"\b({_MONTH_NAMES})\s+(\d{{1,2}})(?:st|nd|rd|th)?\b", _FLAGS), _month_day),
    _Matcher("date", re.compile(r"\b(\d{1,2})[/-](\d{1,2})\b", _FLAGS), _numeric_date),
]


def parse_task_input(text: str, now: datetime | date | None = None) -> ParsedTask:
    """Parse quick-add text. ``now`` pins relative dates for deterministic results."""
    if now is None:
        now = datetime.now()
    today = now.date() if isinstance(now, datetime) else now

    result = ParsedTask(clean_title="")
    claimed: list[tuple[int, int]] = []

    for matcher in MATCHERS:
        for m in matcher.pattern.finditer(text):
            start, end = m.span()
            if any(start < c_end and end > c_start for c_start, c_end in claimed):
                continue
            hit = matcher.handler(m, today)
            if hit is None:
                continue
            claimed.append((start, end))
            result.tokens.append(ParsedToken(matcher.type, m.group(0), hit.display, start, end))
            _apply(result, matcher.type, hit.value)

    if not result.tokens:
        result.clean_title = text.strip()
        return result

    cleaned = text
    for token in sorted(result.tokens, key=lambda t: t.start, reverse=True):
        cleaned = cleaned[: token.start] + cleaned[token.end :]
    result.clean_title = re.sub(r"\s+", " ", cleaned).strip()
    result.tokens.sort(key=lambda t: t.start)
    return result


def _apply(result: ParsedTask, kind: str, value) -> None:
    if kind == "tag":
        result.tags.append(value)
    elif kind == "date" and result.due_date is None:
        result.due_date = value
    elif kind == "time" and result.due_time is None:
        result.due_time = value
    elif kind == "priority" and result.priority_tier is None:
        result.priority_tier = value
    elif kind == "duration" and not result.estimated_minutes:
        # a zero duration is consumed but does not count
        result.estimated_minutes = value or None
