from datetime import date

from uptier.models import EnergyLevel, Tag, Task
from uptier.smart_lists import COMPLETED_LIMIT, evaluate, matches, rule_matches

TODAY = date(2026, 10, 21)  # a Wednesday


def _task(task_id="t", **kwargs):
    return Task(id=task_id, list_id="l", title=task_id, **kwargs)


def test_date_operators():
    due_today = _task(due_date="2026-10-21")
    overdue = _task(due_date="2026-10-20")
    sunday = _task(due_date="2026-10-25")
    next_monday = _task(due_date="2026-10-26")

    assert rule_matches(due_today, {"field": "due_date", "operator": "today"}, TODAY)
    assert rule_matches(overdue, {"field": "due_date", "operator": "overdue"}, TODAY)
    assert not rule_matches(due_today, {"field": "due_date", "operator": "overdue"}, TODAY)
    # the week runs Monday to Sunday
    assert rule_matches(sunday, {"field": "due_date", "operator": "this_week"}, TODAY)
    assert not rule_matches(next_monday, {"field": "due_date", "operator": "this_week"}, TODAY)
    assert not rule_matches(_task(), {"field": "due_date", "operator": "today"}, TODAY)


def test_tag_rules_compare_names_case_insensitively():
    task = _task(tags=[Tag("g1", "Work"), Tag("g2", "urgent")])
    assert rule_matches(task, {"field": "tags", "operator": "equals", "value": "work"}, TODAY)
    assert rule_matches(task, {"field": "tags", "operator": "in", "value": ["home", "URGENT"]}, TODAY)
    assert rule_matches(task, {"field": "tags", "operator": "not_in", "value": ["home"]}, TODAY)
    assert rule_matches(task, {"field": "tags", "operator": "is_set"}, TODAY)
    assert rule_matches(_task(), {"field": "tags", "operator": "is_not_set"}, TODAY)


def test_value_operators():
    task = _task(priority_tier=2, estimated_minutes=45, energy_required=EnergyLevel.LOW)
    assert rule_matches(task, {"field": "priority_tier", "operator": "lte", "value": 2}, TODAY)
    assert not rule_matches(task, {"field": "estimated_minutes", "operator": "gte", "value": 60}, TODAY)
    assert rule_matches(task, {"field": "energy_required", "operator": "equals", "value": "low"}, TODAY)
    assert rule_matches(task, {"field": "priority_tier", "operator": "not_in", "value": [1, 3]}, TODAY)
    assert not rule_matches(_task(), {"field": "estimated_minutes", "operator": "lte", "value": 30}, TODAY)


def test_all_rules_must_match():
    task = _task(priority_tier=1, due_date="2026-10-21")
    rules = [
        {"field": "priority_tier", "operator": "equals", "value": 1},
        {"field": "due_date", "operator": "today"},
    ]
    assert matches(task, rules, TODAY)
    assert not matches(task, rules + [{"field": "completed", "operator": "equals", "value": True}], TODAY)
    assert matches(task, [], TODAY)


def test_builtin_lists_ignore_stored_filters():
    open_today = _task("a", due_date="2026-10-21")
    done_today = _task("b", due_date="2026-10-21", completed=True)
    later = _task("c", due_date="2026-10-30")
    my_day = evaluate("smart:my_day", {"rules": []}, [open_today, done_today, later], TODAY)
    assert [t.id for t in my_day] == ["a"]


def test_custom_filter_sorts_by_due_date_then_tier():
    tasks = [
        _task("undated", priority_tier=1),
        _task("late", due_date="2026-10-30", priority_tier=1),
        _task("soon-t2", due_date="2026-10-22", priority_tier=2),
        _task("soon-t1", due_date="2026-10-22", priority_tier=1),
    ]
    selected = evaluate("custom", {"rules": [{"field": "completed", "operator": "equals", "value": False}]},
                        tasks, TODAY)
    assert [t.id for t in selected] == ["soon-t1", "soon-t2", "late", "undated"]


def test_completed_list_is_newest_first_and_capped():
    tasks = [
        _task(f"t{i:03d}", completed=True, completed_at=f"2026-10-{1 + i % 20:02d} 09:{i % 60:02d}:00")
        for i in range(COMPLETED_LIMIT + 20)
    ]
    selected = evaluate("smart:completed", None, tasks, TODAY)
    assert len(selected) == COMPLETED_LIMIT
    stamps = [t.completed_at for t in selected]
    assert stamps == sorted(stamps, reverse=True)
