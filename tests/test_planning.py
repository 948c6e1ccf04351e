from datetime import date, datetime

import pytest

from uptier.errors import InvalidOperationError
from uptier.planning import (
    DailyPlanner,
    PlanningMode,
    PlanningSession,
    PlanningStep,
    compute_capacity,
    projected_finish,
)
from uptier.scheduler import DayPlanner

DAY = date(2026, 10, 19)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


def test_navigation_stays_within_the_steps():
    session = PlanningSession.single(DAY)
    assert session.mode is PlanningMode.SINGLE
    assert session.back() is PlanningStep.REVIEW
    assert session.next() is PlanningStep.BUILD
    assert session.jump("confirm") is PlanningStep.CONFIRM
    assert session.next() is PlanningStep.CONFIRM
    assert session.back() is PlanningStep.SCHEDULE


def test_finish_only_from_confirm():
    session = PlanningSession.single(DAY)
    with pytest.raises(InvalidOperationError):
        session.finish()
    session.jump(PlanningStep.CONFIRM)
    assert session.finish() is True
    assert session.is_day_completed(DAY)
    with pytest.raises(InvalidOperationError):
        session.next()


def test_week_mode_advances_day_by_day():
    session = PlanningSession.week(DAY, days=3)
    assert session.mode is PlanningMode.WEEK
    session.jump("confirm")
    assert session.finish() is False
    assert (session.target_date, session.step) == (date(2026, 10, 20), PlanningStep.REVIEW)

    session.jump("confirm")
    session.finish()
    session.jump("confirm")
    assert session.finish() is True
    assert session.to_dict()["completed_days"] == ["2026-10-19", "2026-10-20", "2026-10-21"]


def test_selecting_a_date_resets_the_session():
    session = PlanningSession.week(DAY)
    session.jump("schedule")
    session.select_date(date(2026, 10, 25))
    assert session.to_dict() == {
        "mode": "single",
        "step": "review",
        "target_date": "2026-10-25",
        "dates": ["2026-10-25"],
        "completed_days": [],
        "closed": False,
    }


# ---------------------------------------------------------------------------
# Capacity and finish time
# ---------------------------------------------------------------------------


def test_capacity_is_clamped_and_flags_overload():
    light = compute_capacity(240)
    assert (light.available_minutes, light.percent, light.over_threshold) == (480, 50.0, False)
    assert compute_capacity(400).over_threshold is True
    full = compute_capacity(600)
    assert full.percent == 100.0
    assert compute_capacity(60, working_hours=0).percent == 100.0


def test_projected_finish():
    now = datetime(2026, 10, 19, 14, 10)
    assert projected_finish(90, DAY, now) == "15:40"
    assert projected_finish(90, date(2026, 10, 20), now) == "10:30"
    # planning today before the grid opens starts at the grid start
    assert projected_finish(60, DAY, datetime(2026, 10, 19, 5, 0)) == "07:00"
    assert projected_finish(20 * 60, date(2026, 10, 20), now) == "24:00"


# ---------------------------------------------------------------------------
# Step data and actions
# ---------------------------------------------------------------------------


@pytest.fixture
def planner(store):
    return DailyPlanner(store, DayPlanner(store))


def test_previous_day_summary(planner, store, inbox, clock):
    done = store.create_task(inbox.id, {"title": "shipped", "due_date": "2026-10-18"})
    store.create_task(inbox.id, {"title": "slipped", "due_date": "2026-10-18"})
    store.create_task(inbox.id, {"title": "unrelated", "due_date": "2026-10-17"})
    clock.now = datetime(2026, 10, 18, 17, 0)
    store.set_completed(done.id, True)

    summary = planner.previous_day_summary(DAY)
    assert summary["date"] == "2026-10-18"
    assert [t["title"] for t in summary["completed"]] == ["shipped"]
    assert [t["title"] for t in summary["incomplete"]] == ["slipped"]


def test_review_actions(planner, store, inbox):
    task = store.create_task(inbox.id, {"title": "slipped", "due_date": "2026-10-18", "due_time": "09:00"})
    assert planner.reschedule_to(task.id, DAY).due_date == "2026-10-19"
    assert planner.defer(task.id).due_date is None
    planner.add_to_day(task.id, DAY)
    removed = planner.remove_from_day(task.id)
    assert (removed.due_date, removed.due_time) == (None, None)
    assert planner.complete_anyway(task.id).completed


def test_available_tasks_are_flagged(planner, store, inbox):
    store.create_task(inbox.id, {"title": "late", "due_date": "2026-10-15"})
    store.create_task(inbox.id, {"title": "today", "due_date": "2026-10-19"})
    flags = {t["title"]: (t["on_day"], t["overdue"]) for t in planner.available_tasks(DAY)}
    assert flags == {"late": (False, True), "today": (True, False)}


def test_capacity_counts_estimates_due_on_the_day(planner, store, inbox):
    store.create_task(inbox.id, {"title": "a", "due_date": "2026-10-19", "estimated_minutes": 300})
    store.create_task(inbox.id, {"title": "b", "due_date": "2026-10-19", "estimated_minutes": 120})
    store.create_task(inbox.id, {"title": "c", "due_date": "2026-10-19"})
    capacity = planner.capacity(DAY)
    assert capacity.planned_minutes == 420
    assert capacity.over_threshold is True


def test_confirm_summary_and_finish(planner, store, inbox):
    store.create_task(inbox.id, {"title": "a", "due_date": "2026-10-19", "due_time": "11:00",
                                 "estimated_minutes": 60})
    store.create_task(inbox.id, {"title": "b", "due_date": "2026-10-19", "estimated_minutes": 30})
    summary = planner.confirm_summary(DAY)
    assert (summary["task_count"], summary["scheduled_count"], summary["total_minutes"]) == (2, 1, 90)
    assert summary["finish_time"] == "11:30"

    session = PlanningSession.single(DAY)
    session.jump("confirm")
    assert planner.finish(session) is True
    assert store.get_planned_dates() == ["2026-10-19"]
    assert planner.planning_context(DAY)["last_planning_date"] == "2026-10-19"
