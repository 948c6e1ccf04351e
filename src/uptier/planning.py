"""Daily planning: review yesterday, build today's list, schedule it, confirm.

``PlanningSession`` is the workflow state (pure, no I/O). ``DailyPlanner``
supplies the data for each step and performs the step actions.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from uptier.errors import InvalidOperationError
from uptier.models import Task
from uptier.scheduler import DayPlanner
from uptier.store import Store
from uptier.timegrid import minutes_to_time

logger = logging.getLogger(__name__)


class PlanningStep(enum.StrEnum):
    REVIEW = "review"
    BUILD = "build"
    SCHEDULE = "schedule"
    CONFIRM = "confirm"


STEPS: list[PlanningStep] = list(PlanningStep)


class PlanningMode(enum.StrEnum):
    SINGLE = "single"
    WEEK = "week"


@dataclass
class PlanningSession:
    """Where the user is in the planning workflow.

    Navigation is free (next, back, jump). Finishing the confirm step moves a
    week session on to its next day; the session closes after the last day.
    """

    dates: list[date]
    index: int = 0
    step: PlanningStep = PlanningStep.REVIEW
    completed_days: list[date] = field(default_factory=list)
    closed: bool = False

    @classmethod
    def single(cls, target: date) -> PlanningSession:
        return cls(dates=[target])

    @classmethod
    def week(cls, start: date, days: int = 7) -> PlanningSession:
        return cls(dates=[start + timedelta(days=i) for i in range(days)])

    @property
    def mode(self) -> PlanningMode:
        return PlanningMode.WEEK if len(self.dates) > 1 else PlanningMode.SINGLE

    @property
    def target_date(self) -> date:
        return self.dates[self.index]

    @property
    def is_last_day(self) -> bool:
        return self.index >= len(self.dates) - 1

    def _require_open(self) -> None:
        if self.closed:
            raise InvalidOperationError("Planning session is closed")

    def next(self) -> PlanningStep:
        self._require_open()
        position = STEPS.index(self.step)
        if position < len(STEPS) - 1:
            self.step = STEPS[position + 1]
        return self.step

    def back(self) -> PlanningStep:
        self._require_open()
        position = STEPS.index(self.step)
        if position > 0:
            self.step = STEPS[position - 1]
        return self.step

    def jump(self, step: PlanningStep | str) -> PlanningStep:
        self._require_open()
        self.step = PlanningStep(step)
        return self.step

    def finish(self) -> bool:
        """Finish the current day. Returns True once the whole session is closed."""
        self._require_open()
        if self.step is not PlanningStep.CONFIRM:
            raise InvalidOperationError("Planning can only be finished from the confirm step")
        if self.target_date not in self.completed_days:
            self.completed_days.append(self.target_date)
        if self.is_last_day:
            self.closed = True
        else:
            self.index += 1
            self.step = PlanningStep.REVIEW
        return self.closed

    def select_date(self, target: date) -> None:
        self.dates, self.index, self.step = [target], 0, PlanningStep.REVIEW
        self.completed_days, self.closed = [], False

    def select_week(self, start: date, days: int = 7) -> None:
        self.select_date(start)
        self.dates = [start + timedelta(days=i) for i in range(days)]

    def is_day_completed(self, day: date) -> bool:
        return day in self.completed_days

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "step": self.step.value,
            "target_date": self.target_date.isoformat(),
            "dates": [d.isoformat() for d in self.dates],
            "completed_days": [d.isoformat() for d in self.completed_days],
            "closed": self.closed,
        }


@dataclass(frozen=True)
class Capacity:
    planned_minutes: int
    available_minutes: int
    percent: float  # clamped to 100 for display
    over_threshold: bool

    def to_dict(self) -> dict:
        return {
            "planned_minutes": self.planned_minutes,
            "available_minutes": self.available_minutes,
            "percent": round(self.percent, 1),
            "over_threshold": self.over_threshold,
        }


def compute_capacity(planned_minutes: int, working_hours: float = 8.0, threshold: float = 80) -> Capacity:
    available = int(working_hours * 60)
    percent = min(100.0, planned_minutes / available * 100) if available > 0 else 100.0
    return Capacity(planned_minutes, available, percent, percent > threshold)


def projected_finish(total_minutes: int, target: date, now: datetime,
                     grid_start_hour: int = 6, plan_start_hour: int = 9) -> str:
    """Finish time of the day's plan.

    Planning today starts from now (not before the grid opens); any other day
    starts at ``plan_start_hour``. Clamped to 24:00.
    """
    if target == now.date():
        start = max(now.hour * 60 + now.minute, grid_start_hour * 60)
    else:
        start = plan_start_hour * 60
    return minutes_to_time(start + total_minutes)


def _brief(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "due_date": task.due_date,
        "due_time": task.due_time,
        "priority_tier": task.priority_tier,
        "estimated_minutes": task.estimated_minutes,
        "energy_required": task.energy_required.value if task.energy_required else None,
        "completed": task.completed,
        "list_name": task.list_name,
        "goals": [g.to_dict() for g in task.goals],
        "tags": [t.name for t in task.tags],
    }


class DailyPlanner:
    """Data and actions behind each planning step."""

    def __init__(
        self,
        store: Store,
        day_planner: DayPlanner,
        working_hours: float = 8.0,
        capacity_warning_percent: float = 80,
        plan_start_hour: int = 9,
        planned_dates_retention: int = 90,
    ):
        self.store = store
        self.day_planner = day_planner
        self.working_hours = working_hours
        self.capacity_warning_percent = capacity_warning_percent
        self.plan_start_hour = plan_start_hour
        self.planned_dates_retention = planned_dates_retention

    # -- review ---------------------------------------------------------

    def previous_day_summary(self, target: date) -> dict:
        previous = target - timedelta(days=1)
        tasks = self.store.previous_day_tasks(previous, target)
        return {
            "date": previous.isoformat(),
            "completed": [_brief(t) for t in tasks if t.completed],
            "incomplete": [_brief(t) for t in tasks if not t.completed],
        }

    def reschedule_to(self, task_id: str, target: date) -> Task:
        return self.store.update_task(task_id, {"due_date": target.isoformat()})

    def defer(self, task_id: str) -> Task:
        return self.store.update_task(task_id, {"due_date": None})

    def complete_anyway(self, task_id: str) -> Task:
        return self.store.set_completed(task_id, True)

    # -- build ----------------------------------------------------------

    def available_tasks(self, target: date) -> list[dict]:
        target_iso = target.isoformat()
        out = []
        for task in self.store.available_tasks(target):
            d = _brief(task)
            d["on_day"] = task.due_date == target_iso
            d["overdue"] = task.due_date is not None and task.due_date < target_iso
            out.append(d)
        return out

    def add_to_day(self, task_id: str, target: date) -> Task:
        return self.store.update_task(task_id, {"due_date": target.isoformat()})

    def remove_from_day(self, task_id: str) -> Task:
        return self.store.update_task(task_id, {"due_date": None, "due_time": None})

    def capacity(self, target: date) -> Capacity:
        planned = sum(t.estimated_minutes or 0 for t in self.store.tasks_due_on(target))
        return compute_capacity(planned, self.working_hours, self.capacity_warning_percent)

    # -- schedule / overview --------------------------------------------

    def day_overview(self, target: date) -> dict:
        tasks = self.store.tasks_due_on(target)
        scheduled = [t for t in tasks if t.due_time]
        unscheduled = [t for t in tasks if not t.due_time]
        return {
            "date": target.isoformat(),
            "scheduled": [_brief(t) for t in scheduled],
            "unscheduled": [_brief(t) for t in unscheduled],
            "total_minutes": sum(t.estimated_minutes or 0 for t in tasks),
        }

    def planning_context(self, target: date) -> dict:
        """Everything an assistant needs to plan ``target`` in one call."""
        return {
            "target_date": target.isoformat(),
            "previous_day": self.previous_day_summary(target),
            "schedule": self.day_planner.get_day_schedule(target).to_dict(),
            "available_tasks": self.available_tasks(target),
            "capacity": self.capacity(target).to_dict(),
            "last_planning_date": self.store.last_planned_date(),
        }

    # -- confirm --------------------------------------------------------

    def confirm_summary(self, target: date, now: datetime | None = None) -> dict:
        now = now or self.store.db.now()
        tasks = self.store.tasks_due_on(target)
        total = sum(t.estimated_minutes or 0 for t in tasks)
        capacity = compute_capacity(total, self.working_hours, self.capacity_warning_percent)
        return {
            "date": target.isoformat(),
            "task_count": len(tasks),
            "scheduled_count": sum(1 for t in tasks if t.due_time),
            "total_minutes": total,
            "finish_time": projected_finish(
                total, target, now, self.day_planner.day.start_hour, self.plan_start_hour
            ),
            "capacity": capacity.to_dict(),
            "tasks": [_brief(t) for t in tasks],
        }

    def record_planned(self, target: date) -> list[str]:
        dates = self.store.add_planned_date(target, self.planned_dates_retention)
        logger.info("Day planned", extra={"date": target.isoformat()})
        return dates

    def finish(self, session: PlanningSession) -> bool:
        """Advance the session past its current day and record that day as planned."""
        target = session.target_date
        closed = session.finish()
        self.record_planned(target)
        return closed
