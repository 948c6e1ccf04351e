from datetime import date

import pytest

from uptier.models import Task
from uptier.priorities import STRATEGIES, Prioritizer, Strategy, summarize


@pytest.fixture
def prioritizer(store):
    return Prioritizer(store)


def test_every_strategy_is_described():
    assert set(STRATEGIES) == set(Strategy)
    assert all(info.prompt_hint for info in STRATEGIES.values())


def test_prepare_lists_open_tasks_with_guidance(prioritizer, store, inbox):
    goal = store.create_goal({"name": "Launch"})
    store.create_task(inbox.id, {"title": "open"})
    done = store.create_task(inbox.id, {"title": "done"})
    store.set_completed(done.id, True)

    request = prioritizer.prepare(inbox.id, Strategy.QUICK_WINS, context="Busy week", goal_ids=[goal.id])
    assert [t.title for t in request.tasks] == ["open"]
    assert "Quick Wins" in request.instructions
    assert "bulk_set_priorities" in request.instructions
    assert "Launch" in request.instructions

    d = request.to_dict()
    assert d["strategy"] == "quick_wins"
    assert d["list_name"] == "Inbox"
    assert d["score_scales"]["urgency"][5] == "Today or overdue"


def test_bulk_update_is_partial(prioritizer, store, inbox):
    a = store.create_task(inbox.id, {"title": "a"})
    b = store.create_task(inbox.id, {"title": "b"})
    result = prioritizer.bulk_set_priorities([
        {"task_id": a.id, "priority_tier": 1, "impact_score": 5, "priority_reasoning": "blocks release"},
        {"task_id": "missing", "priority_tier": 2},
        {"task_id": b.id},
    ])
    assert result.updated == [a.id]
    assert result.failed == ["missing"]
    assert result.skipped == [b.id]
    assert result.to_dict()["updated"] == 1

    ranked = store.get_task(a.id)
    assert (ranked.priority_tier, ranked.impact_score) == (1, 5)
    assert ranked.prioritized_at == "2026-10-19 10:00:00"
    assert store.get_task(b.id).prioritized_at is None


def _task(task_id, **kwargs):
    return Task(id=task_id, list_id="l", title=task_id, **kwargs)


def test_summary_counts():
    tasks = [
        _task("quick", priority_tier=1, effort_score=1, impact_score=5, due_date="2026-10-18"),
        _task("big", priority_tier=2, effort_score=5, impact_score=4, due_date="2026-10-19"),
        _task("meh", effort_score=3, impact_score=2),
        _task("unscored", priority_tier=3),
    ]
    summary = summarize(tasks, date(2026, 10, 19))
    assert summary["total_tasks"] == 4
    assert summary["by_tier"] == {"tier_1": 1, "tier_2": 1, "tier_3": 1, "unprioritized": 1}
    assert (summary["overdue_count"], summary["due_today_count"]) == (1, 1)
    assert [t["id"] for t in summary["quick_wins"]] == ["quick"]
    assert [t["id"] for t in summary["high_impact_tasks"]] == ["quick", "big"]
    assert summary["effort_distribution"] == {"low": 1, "medium": 1, "high": 1, "unscored": 1}


def test_summary_scopes_to_lists(prioritizer, store, inbox):
    work = store.create_list("Work")
    store.create_task(inbox.id, {"title": "a", "priority_tier": 1})
    store.create_task(work.id, {"title": "b"})
    assert prioritizer.summary([work.id])["by_tier"]["unprioritized"] == 1
    assert prioritizer.summary()["total_tasks"] == 2


def test_summary_shortlists_rank_open_tasks_by_impact_then_effort():
    tasks = [_task(f"imp4_{i}", effort_score=2, impact_score=4) for i in range(5)]
    tasks.append(_task("done", effort_score=1, impact_score=5, completed=True))
    tasks.append(_task("easy4", effort_score=1, impact_score=4))
    tasks.append(_task("imp5", effort_score=4, impact_score=5))

    summary = summarize(tasks, date(2026, 10, 19))
    high_impact = [t["id"] for t in summary["high_impact_tasks"]]
    assert high_impact == ["imp5", "easy4", "imp4_0", "imp4_1", "imp4_2"]
    quick_wins = [t["id"] for t in summary["quick_wins"]]
    assert quick_wins == ["easy4", "imp4_0", "imp4_1", "imp4_2", "imp4_3"]
    assert summary["total_tasks"] == 8
