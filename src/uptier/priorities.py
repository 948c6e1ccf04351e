"""Prioritization strategies, the prepare/apply workflow and the priority summary.

The LLM (or the user) does the ranking. This module hands it a list's open
tasks plus strategy guidance, then persists whatever scores and tiers come back.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from uptier.errors import BatchPolicy
from uptier.models import PRIORITY_FIELDS, Goal, Task
from uptier.store import Store

logger = logging.getLogger(__name__)

SHORTLIST_SIZE = 5


class Strategy(enum.StrEnum):
    BALANCED = "balanced"
    URGENT_FIRST = "urgent_first"
    QUICK_WINS = "quick_wins"
    HIGH_IMPACT = "high_impact"
    EISENHOWER = "eisenhower"


@dataclass(frozen=True)
class StrategyInfo:
    name: Strategy
    label: str
    description: str
    prompt_hint: str

    def to_dict(self) -> dict:
        return {
            "name": self.name.value,
            "label": self.label,
            "description": self.description,
            "prompt_hint": self.prompt_hint,
        }


STRATEGIES: dict[Strategy, StrategyInfo] = {
    Strategy.BALANCED: StrategyInfo(
        Strategy.BALANCED,
        "Balanced",
        "Weighs effort, impact, urgency and importance equally",
        "Give effort, impact, urgency and importance equal weight, and favour tasks linked to goals.",
    ),
    Strategy.URGENT_FIRST: StrategyInfo(
        Strategy.URGENT_FIRST,
        "Urgent First",
        "Deadlines and urgency come first",
        "Rank by urgency_score and due date. Overdue tasks are Tier 1, tasks due soon are Tier 2.",
    ),
    Strategy.QUICK_WINS: StrategyInfo(
        Strategy.QUICK_WINS,
        "Quick Wins",
        "Low effort, high impact tasks first",
        "Put low-effort (1-2), high-impact (4-5) tasks at the top to build momentum.",
    ),
    Strategy.HIGH_IMPACT: StrategyInfo(
        Strategy.HIGH_IMPACT,
        "High Impact",
        "Largest impact first, whatever the effort",
        "Rank by impact_score above everything else. High-impact tasks are Tier 1 regardless of effort.",
    ),
    Strategy.EISENHOWER: StrategyInfo(
        Strategy.EISENHOWER,
        "Eisenhower",
        "The urgent/important matrix",
        "Tier 1 is important and urgent, Tier 2 is important but not urgent, Tier 3 is everything "
        "not important. Suggest delegating or dropping urgent but unimportant work.",
    ),
}

SCORE_SCALES: dict[str, dict[int, str]] = {
    "effort": {1: "Trivial, under 15 minutes", 2: "Easy, up to an hour", 3: "Moderate, a few hours",
               4: "Substantial, most of a day", 5: "Major, several days"},
    "impact": {1: "Minimal", 2: "Low", 3: "Medium", 4: "High", 5: "Critical"},
    "urgency": {1: "Someday", 2: "This month", 3: "This week", 4: "Next few days", 5: "Today or overdue"},
    "importance": {1: "Optional", 2: "Low stakes", 3: "Matters to goals", 4: "Significant", 5: "Core"},
}


@dataclass
class PrioritizationRequest:
    list_id: str
    list_name: str
    strategy: StrategyInfo
    tasks: list[Task]
    context: str | None = None
    focused_goals: list[Goal] = field(default_factory=list)

    @property
    def instructions(self) -> str:
        lines = [
            f'Analyze these {len(self.tasks)} tasks using the "{self.strategy.label}" strategy.',
            self.strategy.prompt_hint,
        ]
        if self.context:
            lines.append(f"User context: {self.context}")
        if self.focused_goals:
            lines.append("Favour tasks aligned with these goals: " + ", ".join(g.name for g in self.focused_goals))
        lines.append(
            "Then call bulk_set_priorities with your scores, a priority_tier for each task "
            "and a short priority_reasoning."
        )
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "list_id": self.list_id,
            "list_name": self.list_name,
            "strategy": self.strategy.name.value,
            "strategy_info": self.strategy.to_dict(),
            "context": self.context,
            "focused_goals": [{"id": g.id, "name": g.name} for g in self.focused_goals],
            "score_scales": SCORE_SCALES,
            "tasks": [t.to_dict() for t in self.tasks],
            "instructions": self.instructions,
        }


@dataclass
class BulkPriorityResult:
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "updated": len(self.updated),
            "updated_ids": self.updated,
            "failed": self.failed,
            "skipped": self.skipped,
        }


def _brief(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "effort_score": task.effort_score,
        "impact_score": task.impact_score,
        "priority_tier": task.priority_tier,
        "due_date": task.due_date,
    }


def _shortlist(tasks: list[Task]) -> list[dict]:
    # unscored effort ranks after any scored task of equal impact
    ranked = sorted(tasks, key=lambda t: (-t.impact_score, t.effort_score if t.effort_score is not None else 6))
    return [_brief(t) for t in ranked[:SHORTLIST_SIZE]]


def summarize(tasks: Sequence[Task], today: date) -> dict:
    """Tier counts, overdue/due-today counts, quick wins, high-impact tasks, effort histogram."""
    today_iso = today.isoformat()
    by_tier = {"tier_1": 0, "tier_2": 0, "tier_3": 0, "unprioritized": 0}
    effort = {"low": 0, "medium": 0, "high": 0, "unscored": 0}
    overdue = due_today = 0
    quick_wins: list[Task] = []
    high_impact: list[Task] = []

    for t in tasks:
        by_tier[f"tier_{t.priority_tier}" if t.priority_tier else "unprioritized"] += 1
        if t.due_date and not t.completed:
            if t.due_date < today_iso:
                overdue += 1
            elif t.due_date == today_iso:
                due_today += 1
        if t.effort_score is None:
            effort["unscored"] += 1
        elif t.effort_score <= 2:
            effort["low"] += 1
        elif t.effort_score == 3:
            effort["medium"] += 1
        else:
            effort["high"] += 1
        if not t.completed and t.impact_score is not None and t.impact_score >= 4:
            high_impact.append(t)
            if t.effort_score is not None and t.effort_score <= 2:
                quick_wins.append(t)

    return {
        "total_tasks": len(tasks),
        "by_tier": by_tier,
        "overdue_count": overdue,
        "due_today_count": due_today,
        "quick_wins": _shortlist(quick_wins),
        "high_impact_tasks": _shortlist(high_impact),
        "effort_distribution": effort,
    }


class Prioritizer:
    """Prepares prioritization requests and applies the decisions."""

    batch_policy = BatchPolicy.PARTIAL

    def __init__(self, store: Store):
        self.store = store

    def prepare(
        self,
        list_id: str,
        strategy: Strategy = Strategy.BALANCED,
        context: str | None = None,
        goal_ids: Sequence[str] = (),
    ) -> PrioritizationRequest:
        lst = self.store.get_list(list_id)
        tasks = self.store.get_tasks(list_id)
        goals = self.store.goals_by_ids(goal_ids) if goal_ids else []
        return PrioritizationRequest(
            list_id=lst.id,
            list_name=lst.name,
            strategy=STRATEGIES[Strategy(strategy)],
            tasks=tasks,
            context=context,
            focused_goals=goals,
        )

    def bulk_set_priorities(self, updates: Sequence[Mapping]) -> BulkPriorityResult:
        """Apply per-task partial updates in one transaction.

        Missing tasks are reported in ``failed``; the other updates still commit.
        Updates carrying no priority field are skipped.
        """
        result = BulkPriorityResult()
        with self.store.db.transaction():
            for update in updates:
                task_id = update["task_id"]
                fields = {k: update[k] for k in PRIORITY_FIELDS if k in update and update[k] is not None}
                if not fields:
                    result.skipped.append(task_id)
                    continue
                if self.store.apply_priority(task_id, fields):
                    result.updated.append(task_id)
                else:
                    result.failed.append(task_id)
        if result.failed:
            logger.warning("Priority updates for missing tasks", extra={"failed": result.failed})
        return result

    def summary(self, list_ids: Sequence[str] | None = None, include_completed: bool = False,
                today: date | None = None) -> dict:
        tasks = self.store.tasks_in_lists(list_ids, include_completed)
        return summarize(tasks, today or self.store.db.today())
