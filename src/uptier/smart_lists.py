"""Smart lists: saved filters evaluated against tasks at query time."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from uptier.models import Task


class FilterField(enum.StrEnum):
    DUE_DATE = "due_date"
    PRIORITY_TIER = "priority_tier"
    TAGS = "tags"
    ENERGY_REQUIRED = "energy_required"
    LIST_ID = "list_id"
    ESTIMATED_MINUTES = "estimated_minutes"
    COMPLETED = "completed"


class FilterOperator(enum.StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    IS_SET = "is_set"
    IS_NOT_SET = "is_not_set"
    TODAY = "today"
    THIS_WEEK = "this_week"
    OVERDUE = "overdue"
    GTE = "gte"
    LTE = "lte"


COMPLETED_LIMIT = 100

BUILTIN_FILTERS: dict[str, list[dict]] = {
    "smart:my_day": [
        {"field": "due_date", "operator": "today"},
        {"field": "completed", "operator": "equals", "value": False},
    ],
    "smart:important": [
        {"field": "priority_tier", "operator": "equals", "value": 1},
        {"field": "completed", "operator": "equals", "value": False},
    ],
    "smart:planned": [
        {"field": "due_date", "operator": "is_set"},
        {"field": "completed", "operator": "equals", "value": False},
    ],
    "smart:completed": [{"field": "completed", "operator": "equals", "value": True}],
    "smart:all": [{"field": "completed", "operator": "equals", "value": False}],
}


def _field_value(task: Task, field: FilterField) -> Any:
    if field is FilterField.TAGS:
        return [t.name for t in task.tags]
    value = getattr(task, field.value)
    return value.value if isinstance(value, enum.Enum) else value


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def rule_matches(task: Task, rule: Mapping, today: date) -> bool:
    field = FilterField(rule["field"])
    op = FilterOperator(rule["operator"])
    expected = rule.get("value")
    actual = _field_value(task, field)

    if op is FilterOperator.IS_SET:
        return bool(actual) if field is FilterField.TAGS else actual is not None
    if op is FilterOperator.IS_NOT_SET:
        return not actual if field is FilterField.TAGS else actual is None

    if op in (FilterOperator.TODAY, FilterOperator.THIS_WEEK, FilterOperator.OVERDUE):
        if task.due_date is None:
            return False
        due = date.fromisoformat(task.due_date)
        if op is FilterOperator.TODAY:
            return due == today
        if op is FilterOperator.OVERDUE:
            return due < today and not task.completed
        week_start = today - timedelta(days=today.weekday())
        return week_start <= due <= week_start + timedelta(days=6)

    if field is FilterField.TAGS:
        names = {n.lower() for n in actual}
        wanted = {str(v).lower() for v in _as_list(expected)}
        if op in (FilterOperator.EQUALS, FilterOperator.IN):
            return bool(names & wanted)
        if op in (FilterOperator.NOT_EQUALS, FilterOperator.NOT_IN):
            return not names & wanted
        return False

    if op is FilterOperator.EQUALS:
        return actual == expected
    if op is FilterOperator.NOT_EQUALS:
        return actual != expected
    if op is FilterOperator.IN:
        return actual in _as_list(expected)
    if op is FilterOperator.NOT_IN:
        return actual not in _as_list(expected)
    if actual is None or expected is None:
        return False
    if op is FilterOperator.GTE:
        return actual >= expected
    return actual <= expected


def matches(task: Task, rules: Sequence[Mapping], today: date) -> bool:
    """All rules must hold (an empty rule set matches everything)."""
    return all(rule_matches(task, rule, today) for rule in rules)


def evaluate(list_id: str, smart_filter: Mapping | None, tasks: Iterable[Task], today: date) -> list[Task]:
    rules = BUILTIN_FILTERS.get(list_id)
    if rules is None:
        rules = (smart_filter or {}).get("rules", [])
    selected = [t for t in tasks if matches(t, rules, today)]
    if list_id == "smart:completed":
        selected.sort(key=lambda t: t.completed_at or "", reverse=True)
        return selected[:COMPLETED_LIMIT]
    selected.sort(key=lambda t: (t.due_date is None, t.due_date or "", t.priority_tier or 99, t.position))
    return selected
