from datetime import date

from uptier.changelog import ChangeLog
from uptier.goals import build_goal_graph, goal_tree, would_create_cycle
from uptier.models import (
    TASK_ENCODERS,
    EnergyLevel,
    Goal,
    Task,
    decode_json,
    decode_json_list,
    encode_columns,
    tier_label,
)
from uptier.recurrence import Frequency, RecurrenceRule, add_months, occurrences


def test_task_row_decoding():
    row = {
        "id": "t1",
        "list_id": "l1",
        "title": "Write tests",
        "completed": 1,
        "energy_required": "high",
        "context_tags": '["@desk", "@focus"]',
        "recurrence_rule": '{"frequency": "weekly", "interval": 2}',
        "list_name": "Work",
    }
    task = Task.from_row(row)
    assert task.completed is True
    assert task.energy_required is EnergyLevel.HIGH
    assert task.context_tags == ["@desk", "@focus"]
    assert task.recurrence_rule == {"frequency": "weekly", "interval": 2}

    d = task.to_dict()
    assert d["energy_required"] == "high"
    assert d["list_name"] == "Work"
    assert d["goals"] == [] and d["tags"] == []


def test_storage_encoding_never_leaks():
    encoded = encode_columns(
        {"completed": True, "context_tags": ["a"], "recurrence_rule": {"frequency": "daily"},
         "energy_required": EnergyLevel.LOW},
        TASK_ENCODERS,
    )
    assert encoded == {
        "completed": 1,
        "context_tags": '["a"]',
        "recurrence_rule": '{"frequency": "daily"}',
        "energy_required": "low",
    }


def test_json_decoders_tolerate_garbage():
    assert decode_json_list("not json") is None
    assert decode_json_list('{"a": 1}') is None
    assert decode_json_list("") is None
    assert decode_json("[1, 2]") is None
    assert decode_json(None) is None


def test_tier_labels():
    assert tier_label(1) == "Do Now"
    assert tier_label(3) == "Backlog"
    assert tier_label(None) is None


# ---------------------------------------------------------------------------
# Recurrence
# ---------------------------------------------------------------------------


def test_add_months_clamps_to_month_end():
    assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
    assert add_months(date(2028, 1, 31), 1) == date(2028, 2, 29)
    assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)


def test_rule_from_dict():
    assert RecurrenceRule.from_dict({"frequency": "weekly", "interval": 2}) == RecurrenceRule(Frequency.WEEKLY, 2)
    assert RecurrenceRule.from_dict({"frequency": "hourly"}) is None
    assert RecurrenceRule.from_dict(None) is None
    assert RecurrenceRule.from_dict({"frequency": "daily", "interval": 0}).interval == 1


def test_weekday_occurrences_skip_weekends():
    rule = RecurrenceRule(Frequency.WEEKDAYS)
    days = list(occurrences(rule, date(2026, 10, 16), date(2026, 10, 16), date(2026, 10, 21)))
    assert days == [date(2026, 10, 16), date(2026, 10, 19), date(2026, 10, 20), date(2026, 10, 21)]


def test_occurrences_respect_range_and_end_date():
    rule = RecurrenceRule(Frequency.DAILY, interval=2)
    days = list(occurrences(rule, date(2026, 10, 1), date(2026, 10, 4), date(2026, 10, 31), until=date(2026, 10, 9)))
    assert days == [date(2026, 10, 5), date(2026, 10, 7), date(2026, 10, 9)]
    monthly = RecurrenceRule(Frequency.MONTHLY)
    assert list(occurrences(monthly, date(2026, 1, 31), date(2026, 2, 1), date(2026, 3, 31))) == [
        date(2026, 2, 28),
        date(2026, 3, 31),
    ]


# ---------------------------------------------------------------------------
# Goal hierarchy
# ---------------------------------------------------------------------------


def _goals():
    return [
        Goal("career", "Career"),
        Goal("promo", "Get promoted", parent_goal_id="career"),
        Goal("talk", "Give a talk", parent_goal_id="promo"),
        Goal("health", "Health"),
    ]


def test_cycle_detection():
    G = build_goal_graph(_goals())
    assert would_create_cycle(G, "career", "talk")
    assert would_create_cycle(G, "promo", "promo")
    assert not would_create_cycle(G, "health", "talk")
    assert not would_create_cycle(G, "talk", None)


def test_goal_tree_nests_children():
    tree = goal_tree(_goals())
    assert [g["id"] for g in tree] == ["career", "health"]
    assert tree[0]["children"][0]["id"] == "promo"
    assert tree[0]["children"][0]["children"][0]["name"] == "Give a talk"
    assert tree[1]["children"] == []


# ---------------------------------------------------------------------------
# Change log
# ---------------------------------------------------------------------------


def test_changelog_appends_and_truncates(tmp_path):
    log = ChangeLog(tmp_path / "db.changelog", max_bytes=200)
    log.notify("task", "create", "t1")
    log.notify("task", "update", "t1")
    entries = log.read()
    assert [(e["type"], e["op"], e["id"]) for e in entries] == [("task", "create", "t1"), ("task", "update", "t1")]

    for _ in range(10):
        log.notify("task", "update", "t1")
    assert (tmp_path / "db.changelog").stat().st_size <= 200 + 100


def test_changelog_failures_are_silent(tmp_path):
    log = ChangeLog(tmp_path / "missing-dir" / "db.changelog")
    log.notify("task", "create", "t1")
    assert log.read() == []
