from datetime import date, datetime, timedelta

import pytest

from uptier.errors import InvalidOperationError, NotFoundError
from uptier.persistence import SYSTEM_LISTS


def test_system_lists_are_seeded_once(store, db):
    ids = [lst.id for lst in store.get_lists()]
    assert ids[: len(SYSTEM_LISTS)] == [list_id for list_id, *_ in SYSTEM_LISTS]
    db.initialize()
    assert len(store.get_lists()) == len(SYSTEM_LISTS)


def test_smart_list_counts_are_computed(store, inbox):
    store.create_task(inbox.id, {"title": "today", "due_date": "2026-10-19"})
    store.create_task(inbox.id, {"title": "later", "due_date": "2026-11-01"})
    lists = {lst.id: lst for lst in store.get_lists()}
    assert lists["smart:my_day"].task_count == 1
    assert lists["smart:planned"].incomplete_count == 2
    assert lists[inbox.id].task_count == 2


def test_system_and_smart_lists_cannot_be_deleted(store, inbox):
    custom = store.create_list("Quick wins", smart_filter={"rules": [{"field": "estimated_minutes", "operator": "lte", "value": 15}]})
    assert store.delete_list("smart:my_day") is False
    assert store.delete_list(custom.id) is False
    with pytest.raises(NotFoundError):
        store.delete_list("nope")


def test_deleting_a_list_removes_its_tasks(store, inbox):
    task = store.create_task(inbox.id, {"title": "gone"})
    assert store.delete_list(inbox.id) is True
    with pytest.raises(NotFoundError):
        store.get_task(task.id)


def test_smart_lists_cannot_hold_tasks(store, inbox):
    with pytest.raises(InvalidOperationError):
        store.create_task("smart:important", {"title": "x"})
    task = store.create_task(inbox.id, {"title": "x"})
    with pytest.raises(InvalidOperationError):
        store.move_task(task.id, "smart:all")


def test_default_list_is_created_on_demand(store):
    first = store.default_list("Inbox")
    assert first.icon == "inbox"
    assert store.default_list("Inbox").id == first.id


def test_create_task_appends_and_stamps_priority(store, inbox):
    plain = store.create_task(inbox.id, {"title": "a"})
    ranked = store.create_task(inbox.id, {"title": "b", "priority_tier": 2})
    assert (plain.position, ranked.position) == (0, 1)
    assert plain.prioritized_at is None
    assert ranked.prioritized_at == "2026-10-19 10:00:00"
    assert ranked.list_name == "Inbox"


def test_bulk_create_rolls_back_on_a_bad_goal(store, inbox):
    with pytest.raises(NotFoundError):
        store.bulk_create_tasks(inbox.id, [{"title": "one"}, {"title": "two", "goal_ids": ["missing"]}])
    assert store.get_tasks(inbox.id) == []

    goal = store.create_goal({"name": "Ship v1"})
    created = store.bulk_create_tasks(inbox.id, [{"title": "one"}, {"title": "two", "goal_ids": [goal.id]}])
    assert [t.position for t in created] == [0, 1]
    assert created[1].goals[0].name == "Ship v1"


def test_update_task_with_none_clears_the_column(store, inbox):
    task = store.create_task(inbox.id, {"title": "a", "due_date": "2026-10-20", "notes": "n"})
    updated = store.update_task(task.id, {"due_date": None, "ignored": "x"})
    assert updated.due_date is None
    assert updated.notes == "n"
    with pytest.raises(NotFoundError):
        store.update_task("nope", {"title": "b"})


def test_complete_and_reopen(store, inbox, clock):
    task = store.create_task(inbox.id, {"title": "a"})
    clock.now = datetime(2026, 10, 19, 16, 30)
    done = store.set_completed(task.id, True)
    assert done.completed and done.completed_at == "2026-10-19 16:30:00"
    assert store.count_completed_on(date(2026, 10, 19)) == 1
    reopened = store.set_completed(task.id, False)
    assert not reopened.completed and reopened.completed_at is None


def test_move_and_reorder(store, inbox):
    work = store.create_list("Work")
    a = store.create_task(inbox.id, {"title": "a"})
    b = store.create_task(inbox.id, {"title": "b"})
    store.create_task(work.id, {"title": "c"})
    moved = store.move_task(a.id, work.id)
    assert (moved.list_id, moved.position) == (work.id, 1)

    c = store.create_task(inbox.id, {"title": "c"})
    store.reorder_tasks(inbox.id, [c.id, b.id])
    assert [t.title for t in store.get_tasks(inbox.id)] == ["c", "b"]


def test_search_skips_completed_tasks(store, inbox):
    store.create_task(inbox.id, {"title": "Write report"})
    done = store.create_task(inbox.id, {"title": "Write invoice"})
    store.set_completed(done.id, True)
    assert [t.title for t in store.search_tasks("write")] == ["Write report"]


def test_date_range_expands_recurring_tasks(store, inbox):
    store.create_task(inbox.id, {"title": "Standup", "due_date": "2026-10-05",
                                 "recurrence_rule": {"frequency": "weekly"}})
    store.create_task(inbox.id, {"title": "Dentist", "due_date": "2026-10-20", "due_time": "09:00"})
    store.create_task(inbox.id, {"title": "Ended", "due_date": "2026-10-01",
                                 "recurrence_rule": {"frequency": "daily"}, "recurrence_end_date": "2026-10-10"})
    tasks = store.get_tasks_by_date_range(date(2026, 10, 19), date(2026, 11, 1))
    assert [(t.title, t.due_date) for t in tasks] == [
        ("Standup", "2026-10-19"),
        ("Dentist", "2026-10-20"),
        ("Standup", "2026-10-26"),
    ]


def test_available_tasks(store, inbox):
    store.create_task(inbox.id, {"title": "overdue", "due_date": "2026-10-10"})
    store.create_task(inbox.id, {"title": "urgent later", "due_date": "2026-12-01", "priority_tier": 1})
    store.create_task(inbox.id, {"title": "undated soon", "priority_tier": 2})
    store.create_task(inbox.id, {"title": "undated backlog", "priority_tier": 3})
    store.create_task(inbox.id, {"title": "next month", "due_date": "2026-11-20", "priority_tier": 2})
    titles = {t.title for t in store.available_tasks(date(2026, 10, 19))}
    assert titles == {"overdue", "urgent later", "undated soon"}


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def test_goal_hierarchy_rejects_cycles(store):
    career = store.create_goal({"name": "Career", "timeframe": "yearly"})
    promo = store.create_goal({"name": "Promotion", "parent_goal_id": career.id})
    with pytest.raises(InvalidOperationError):
        store.update_goal(career.id, {"parent_goal_id": promo.id})
    with pytest.raises(NotFoundError):
        store.create_goal({"name": "Orphan", "parent_goal_id": "missing"})
    assert [g.name for g in store.get_goals(parent_id=career.id)] == ["Promotion"]


def test_goal_progress_and_links(store, inbox):
    goal = store.create_goal({"name": "Launch"})
    a = store.create_task(inbox.id, {"title": "a"})
    b = store.create_task(inbox.id, {"title": "b"})
    assert store.link_tasks_to_goal(goal.id, [a.id, b.id], alignment_strength=5) == 2
    store.set_completed(a.id, True)
    assert store.goal_progress(goal.id) == (2, 1)
    assert store.get_task(b.id).goals[0].alignment_strength == 5
    assert store.unlink_tasks_from_goal(goal.id, [a.id, "missing"]) == 1
    assert [t.id for t in store.tasks_for_goal(goal.id)] == [b.id]
    with pytest.raises(NotFoundError):
        store.link_tasks_to_goal(goal.id, ["missing"])


# ---------------------------------------------------------------------------
# Subtasks and tags
# ---------------------------------------------------------------------------


def test_decompose_replaces_the_estimate(store, inbox):
    task = store.create_task(inbox.id, {"title": "Write talk", "estimated_minutes": 30})
    created, total = store.decompose_task(task.id, [
        {"title": "Outline", "estimated_minutes": 20},
        {"title": "Slides", "estimated_minutes": 60},
        {"title": "Rehearse"},
    ])
    assert total == 80
    assert [s.position for s in created] == [0, 1, 2]
    assert store.get_task(task.id).estimated_minutes == 80

    store.decompose_task(task.id, [{"title": "Buffer"}])
    assert store.get_task(task.id).estimated_minutes == 80


def test_tags_are_unique_and_matched_without_case(store, inbox):
    work = store.create_tag("Work")
    with pytest.raises(InvalidOperationError):
        store.create_tag("Work")
    tags = store.ensure_tags(["work", "home", "home"])
    assert [t.id for t in tags][0] == work.id
    assert [t.name for t in store.get_tags()] == ["Work", "home"]

    task = store.create_task(inbox.id, {"title": "a"})
    store.add_tag_to_task(task.id, work.id)
    store.add_tag_to_task(task.id, work.id)
    assert [t.name for t in store.get_task_tags(task.id)] == ["Work"]
    assert store.remove_tag_from_task(task.id, work.id) is True
    assert store.remove_tag_from_task(task.id, work.id) is False


# ---------------------------------------------------------------------------
# Focus sessions and planned dates
# ---------------------------------------------------------------------------


def test_focus_session_lifecycle(store, inbox, clock):
    task = store.create_task(inbox.id, {"title": "Deep work"})
    session = store.start_focus_session(task.id, 25)
    assert store.get_active_focus_session().id == session.id
    assert session.task_title == "Deep work"

    clock.now += timedelta(minutes=25)
    ended = store.end_focus_session(session.id, completed=True)
    assert ended.ended_at == "2026-10-19 10:25:00"
    assert store.get_active_focus_session() is None
    assert store.focus_minutes_on(date(2026, 10, 19)) == 25

    abandoned = store.start_focus_session(task.id, 50)
    store.end_focus_session(abandoned.id, completed=False)
    assert store.focus_minutes_on(date(2026, 10, 19)) == 25
    assert len(store.get_focus_sessions(task.id)) == 2
    store.delete_focus_session(abandoned.id)
    with pytest.raises(NotFoundError):
        store.delete_focus_session(abandoned.id)


def test_planned_dates_keep_the_most_recent(store):
    for day in (date(2026, 10, 17), date(2026, 10, 19), date(2026, 10, 18)):
        store.add_planned_date(day, retention=2)
    assert store.get_planned_dates() == ["2026-10-18", "2026-10-19"]
    assert store.last_planned_date() == "2026-10-19"
