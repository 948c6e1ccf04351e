"""Productivity statistics: today's numbers, the weekly trend, streaks and deadline risk."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from uptier.nlp import format_minutes
from uptier.store import Store

MILESTONES = (100, 30, 7)
STREAK_LOOKBACK_DAYS = 365
AT_RISK_HORIZON_DAYS = 7


# ---------------------------------------------------------------------------
# Pure streak helpers
# ---------------------------------------------------------------------------


def current_streak(completion_days: Iterable[date], today: date) -> int:
    """Consecutive days with a completion, ending today, or yesterday if today has none."""
    days = set(completion_days)
    if today in days:
        cursor = today
    elif today - timedelta(days=1) in days:
        cursor = today - timedelta(days=1)
    else:
        return 0
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(completion_days: Iterable[date]) -> int:
    ordered = sorted(set(completion_days))
    if not ordered:
        return 0
    longest = run = 1
    for prev, cur in zip(ordered, ordered[1:]):
        run = run + 1 if (cur - prev).days == 1 else 1
        longest = max(longest, run)
    return longest


def milestone_for(streak: int) -> int | None:
    return next((m for m in MILESTONES if streak == m), None)


def completion_rate(completed: int, planned: int) -> int:
    """Percentage of the day's due tasks completed; 0 when nothing was due."""
    if planned <= 0:
        return 0
    return round(completed / planned * 100)


@dataclass(frozen=True)
class StreakInfo:
    current_streak: int
    longest_streak: int
    last_completion_date: str | None
    milestone_reached: int | None

    def to_dict(self) -> dict:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_completion_date": self.last_completion_date,
            "milestone_reached": self.milestone_reached,
        }


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class Analytics:
    def __init__(self, store: Store, daily_focus_goal_minutes: int = 120):
        self.store = store
        self.daily_focus_goal_minutes = daily_focus_goal_minutes

    def _today(self, today: date | None) -> date:
        return today or self.store.db.today()

    def today_summary(self, today: date | None = None) -> dict:
        today = self._today(today)
        completed = self.store.count_completed_on(today)
        planned = self.store.count_due_on(today)
        tiers = self.store.tier_counts_due_on(today)
        return {
            "date": today.isoformat(),
            "completed_today": completed,
            "planned_today": planned,
            "completion_rate": completion_rate(completed, planned),
            "focus_minutes": self.store.focus_minutes_on(today),
            "tier_breakdown": {
                "tier1": tiers.get(1, 0),
                "tier2": tiers.get(2, 0),
                "tier3": tiers.get(3, 0),
                "unset": tiers.get(None, 0),
            },
        }

    def weekly_trend(self, today: date | None = None) -> dict:
        today = self._today(today)
        start = today - timedelta(days=6)
        counts = self.store.completion_counts(start, today)
        days = []
        for offset in range(7):
            day = start + timedelta(days=offset)
            days.append({"date": day.isoformat(), "day_label": f"{day:%a}", "completed": counts.get(day.isoformat(), 0)})
        total = sum(d["completed"] for d in days)
        return {"days": days, "total_completions": total, "daily_average": round(total / 7, 1)}

    def streak_info(self, today: date | None = None) -> StreakInfo:
        today = self._today(today)
        raw = self.store.completion_dates(STREAK_LOOKBACK_DAYS)
        if not raw:
            return StreakInfo(0, 0, None, None)
        days = [date.fromisoformat(d) for d in raw]
        current = current_streak(days, today)
        return StreakInfo(current, longest_streak(days), raw[0], milestone_for(current))

    def focus_goal_progress(self, today: date | None = None) -> dict:
        today = self._today(today)
        minutes = self.store.focus_minutes_on(today)
        goal = self.daily_focus_goal_minutes
        return {
            "focus_minutes": minutes,
            "goal_minutes": goal,
            "percent": min(100, round(minutes / goal * 100)) if goal else 0,
            "goal_met": minutes >= goal,
        }

    def dashboard(self, today: date | None = None) -> dict:
        today = self._today(today)
        return {
            "today": self.today_summary(today),
            "weekly_trend": self.weekly_trend(today),
            "streak": self.streak_info(today).to_dict(),
            "focus_goal": self.focus_goal_progress(today),
        }

    def all_tasks_completed_today(self, today: date | None = None) -> bool:
        today = self._today(today)
        tasks = self.store.tasks_due_on(today, include_completed=True)
        return bool(tasks) and all(t.completed for t in tasks)

    def at_risk_tasks(self, now: datetime | None = None) -> list[dict]:
        """Estimated tasks due within a week whose remaining time is short.

        critical: less time left than the estimate. warning: less than twice
        the estimate. A task without a due time is due at 23:59.
        """
        now = now or self.store.db.now()
        today = now.date()
        out = []
        for task in self.store.estimated_tasks_due_between(today, today + timedelta(days=AT_RISK_HORIZON_DAYS)):
            deadline = datetime.fromisoformat(f"{task.due_date}T{task.due_time or '23:59'}")
            remaining = max(0, int((deadline - now).total_seconds() // 60))
            estimate = task.estimated_minutes
            if remaining >= estimate * 2:
                continue
            if remaining < estimate:
                level = "critical"
                reason = f"Only {format_minutes(remaining)} left but the task needs about {format_minutes(estimate)}"
            else:
                level = "warning"
                reason = f"{format_minutes(remaining)} left for a task of about {format_minutes(estimate)}"
            out.append({
                "task_id": task.id,
                "title": task.title,
                "due_date": task.due_date,
                "due_time": task.due_time,
                "estimated_minutes": estimate,
                "remaining_minutes": remaining,
                "risk_level": level,
                "reason": reason,
            })
        out.sort(key=lambda r: (r["risk_level"] != "critical", r["remaining_minutes"]))
        return out
