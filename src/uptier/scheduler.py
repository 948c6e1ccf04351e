"""Day schedule: what is placed on a date's time grid, what is not, and what is free."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from uptier.errors import BatchAbortedError, BatchPolicy, NotFoundError
from uptier.models import Task
from uptier.store import Store
from uptier.timegrid import TimeBlock, WorkingDay, compute_end_time, free_blocks, snap_to_grid

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 30
MIN_DURATION_MINUTES = 15


@dataclass
class ScheduledTask:
    """A task with a start time on the grid and its computed end."""

    task: Task
    start_time: str
    end_time: str
    duration_minutes: int

    def to_dict(self) -> dict:
        return {
            "id": self.task.id,
            "title": self.task.title,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
            "priority_tier": self.task.priority_tier,
            "energy_required": self.task.energy_required.value if self.task.energy_required else None,
            "list_id": self.task.list_id,
            "list_name": self.task.list_name,
        }


@dataclass
class DaySchedule:
    date: date
    day: WorkingDay
    scheduled: list[ScheduledTask]
    unscheduled: list[Task]
    free_blocks: list[TimeBlock]

    @property
    def scheduled_minutes(self) -> int:
        return sum(s.duration_minutes for s in self.scheduled)

    @property
    def free_minutes(self) -> int:
        return sum(b.duration_minutes for b in self.free_blocks)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "day_start": self.day.start_time,
            "day_end": self.day.end_time,
            "scheduled": [s.to_dict() for s in self.scheduled],
            "unscheduled": [
                {
                    "id": t.id,
                    "title": t.title,
                    "estimated_minutes": t.estimated_minutes,
                    "priority_tier": t.priority_tier,
                    "energy_required": t.energy_required.value if t.energy_required else None,
                    "list_id": t.list_id,
                    "list_name": t.list_name,
                    "needs_estimate": t.estimated_minutes is None,
                }
                for t in self.unscheduled
            ],
            "free_blocks": [b.to_dict() for b in self.free_blocks],
            "summary": {
                "total_scheduled": len(self.scheduled),
                "total_unscheduled": len(self.unscheduled),
                "total_scheduled_minutes": self.scheduled_minutes,
                "total_free_minutes": self.free_minutes,
            },
        }


@dataclass
class Placement:
    task_id: str
    start_time: str
    duration_minutes: int | None = None


@dataclass
class PlacementResult:
    task_id: str
    title: str
    start_time: str
    end_time: str
    duration_minutes: int

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "title": self.title,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_minutes": self.duration_minutes,
        }


class DayPlanner:
    """Builds day schedules and writes grid placements."""

    batch_policy = BatchPolicy.ALL_OR_NOTHING

    def __init__(
        self,
        store: Store,
        day: WorkingDay | None = None,
        default_duration: int = DEFAULT_DURATION_MINUTES,
        min_duration: int = MIN_DURATION_MINUTES,
    ):
        self.store = store
        self.day = day or WorkingDay()
        self.default_duration = default_duration
        self.min_duration = min_duration

    def get_day_schedule(self, target: date) -> DaySchedule:
        scheduled: list[ScheduledTask] = []
        unscheduled: list[Task] = []
        for task in self.store.tasks_due_on(target):
            if task.due_time:
                duration = task.estimated_minutes or self.default_duration
                scheduled.append(
                    ScheduledTask(task, task.due_time, compute_end_time(task.due_time, duration), duration)
                )
            else:
                unscheduled.append(task)
        scheduled.sort(key=lambda s: s.start_time)
        blocks = free_blocks([(s.start_time, s.end_time) for s in scheduled], self.day)
        return DaySchedule(target, self.day, scheduled, unscheduled, blocks)

    def resolve_duration(self, requested: int | None, existing: int | None) -> int:
        """Explicit duration, else the task's estimate, else the default; never below the minimum."""
        minutes = requested or existing or self.default_duration
        return max(self.min_duration, minutes)

    def schedule_tasks(self, target: date, placements: Sequence[Placement]) -> list[PlacementResult]:
        """Place every task on the grid or none of them.

        Raises BatchAbortedError naming the first missing task; the transaction
        is rolled back so no task in the batch is modified.
        """
        results: list[PlacementResult] = []
        with self.store.db.transaction():
            for placement in placements:
                try:
                    task = self.store.get_task(placement.task_id)
                except NotFoundError as exc:
                    raise BatchAbortedError(f"Task not found: {placement.task_id}", placement.task_id) from exc
                start = snap_to_grid(placement.start_time, self.day.snap_minutes)
                minutes = self.resolve_duration(placement.duration_minutes, task.estimated_minutes)
                self.store.place_task(task.id, target, start, minutes)
                results.append(
                    PlacementResult(task.id, task.title, start, compute_end_time(start, minutes), minutes)
                )
        logger.info("Scheduled tasks", extra={"date": target.isoformat(), "count": len(results)})
        return results

    def unschedule_task(self, task_id: str) -> Task:
        """Clear the due time only; the task stays due on its date."""
        return self.store.update_task(task_id, {"due_time": None})
