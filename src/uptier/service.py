"""The capability interface shared by the IPC router and the MCP server.

Every public operation takes one payload mapping, validates it against its
input schema and returns a result envelope: ``{"success": True, ...}`` or
``{"success": False, "error": ..., "error_type": ...}``. Operations register
themselves in ``OPERATIONS`` together with their IPC channel name; the MCP
tool name is the operation name.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ValidationError

from uptier import schemas
from uptier.analytics import Analytics
from uptier.changelog import ChangeLog
from uptier.config import Settings
from uptier.errors import InvalidOperationError, UptierError, failure, from_exception, from_validation_error, ok
from uptier.goals import goal_tree
from uptier.nlp import parse_task_input
from uptier.persistence import TIMESTAMP_FORMAT, Database
from uptier.planning import DailyPlanner
from uptier.priorities import STRATEGIES, Prioritizer
from uptier.scheduler import DayPlanner, Placement
from uptier.store import Store
from uptier.timegrid import WorkingDay

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Operation:
    name: str
    channel: str
    schema: type[BaseModel]


OPERATIONS: dict[str, Operation] = {}


def operation(channel: str, schema: type[BaseModel] = schemas.NoInput) -> Callable:
    """Register a service method as an operation reachable from both adapters."""

    def decorator(method: Callable) -> Callable:
        name = method.__name__

        @functools.wraps(method)
        def wrapper(self: UptierService, payload: Mapping[str, Any] | None = None) -> dict:
            try:
                data = schema.model_validate(payload or {})
            except ValidationError as exc:
                logger.info("Rejected payload", extra={"operation": name, "errors": exc.error_count()})
                return from_validation_error(exc)
            try:
                return method(self, data)
            except UptierError as exc:
                logger.info("Operation failed", extra={"operation": name, "error": str(exc)})
                return from_exception(exc)

        OPERATIONS[name] = wrapper.operation = Operation(name, channel, schema)
        return wrapper

    return decorator


def _dicts(items) -> list[dict]:
    return [i.to_dict() for i in items]


def _changes(data: BaseModel, *exclude: str) -> dict[str, Any]:
    """Fields the caller actually sent, JSON-shaped (dates as ISO strings)."""
    return data.model_dump(mode="json", exclude_unset=True, exclude=set(exclude))


class UptierService:
    """All operations of the application, over one injected database."""

    def __init__(self, db: Database, settings: Settings | None = None, changelog: ChangeLog | None = None):
        self.db = db
        self.settings = settings or Settings()
        self.changelog = changelog
        self.store = Store(db)
        s = self.settings
        self.day = WorkingDay(s.day_start_hour, s.day_end_hour, s.snap_minutes)
        self.day_planner = DayPlanner(self.store, self.day, s.default_duration_minutes, s.min_duration_minutes)
        self.prioritizer = Prioritizer(self.store)
        self.daily_planner = DailyPlanner(
            self.store,
            self.day_planner,
            working_hours=s.working_hours,
            capacity_warning_percent=s.capacity_warning_percent,
            plan_start_hour=s.plan_start_hour,
            planned_dates_retention=s.planned_dates_retention,
        )
        self.analytics = Analytics(self.store, s.daily_focus_goal_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> UptierService:
        db = Database.open(settings.db_path, busy_timeout_ms=settings.busy_timeout_ms)
        changelog = ChangeLog(settings.changelog_path, settings.changelog_max_bytes)
        return cls(db, settings, changelog)

    def _changed(self, entity: str, op: str, entity_id: str | None = None) -> None:
        if self.changelog is not None:
            self.changelog.notify(entity, op, entity_id)

    def _day(self, data) -> Any:
        return data.date or self.db.today()

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    @operation("lists:getAll")
    def get_lists(self, data: schemas.NoInput) -> dict:
        return ok(lists=_dicts(self.store.get_lists()))

    @operation("lists:create", schemas.CreateListInput)
    def create_list(self, data: schemas.CreateListInput) -> dict:
        lst = self.store.create_list(data.name, data.description, data.icon, data.color)
        self._changed("list", "create", lst.id)
        return ok(list=lst.to_dict())

    @operation("lists:createSmart", schemas.CreateSmartListInput)
    def create_smart_list(self, data: schemas.CreateSmartListInput) -> dict:
        lst = self.store.create_list(
            data.name, icon=data.icon or "filter", color=data.color, smart_filter=data.filter.model_dump(mode="json")
        )
        self._changed("list", "create", lst.id)
        return ok(list=lst.to_dict())

    @operation("lists:update", schemas.UpdateListInput)
    def update_list(self, data: schemas.UpdateListInput) -> dict:
        fields = _changes(data, "id")
        if "filter" in fields:
            if not self.store.get_list(data.id).is_smart_list:
                raise InvalidOperationError("Only smart lists have a filter")
            fields["smart_filter"] = fields.pop("filter")
        lst = self.store.update_list(data.id, fields)
        self._changed("list", "update", lst.id)
        return ok(list=lst.to_dict())

    @operation("lists:delete", schemas.IdInput)
    def delete_list(self, data: schemas.IdInput) -> dict:
        if not self.store.delete_list(data.id):
            return failure("System and smart lists cannot be deleted", "invalid")
        self._changed("list", "delete", data.id)
        return ok(deleted=data.id)

    @operation("lists:reorder", schemas.ReorderInput)
    def reorder_lists(self, data: schemas.ReorderInput) -> dict:
        self.store.reorder_lists(data.ids)
        self._changed("list", "reorder")
        return ok(reordered=len(data.ids))

    @operation("lists:getSmartTasks", schemas.IdInput)
    def get_smart_list_tasks(self, data: schemas.IdInput) -> dict:
        return ok(tasks=_dicts(self.store.smart_list_tasks(data.id)))

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @operation("tasks:getByList", schemas.GetTasksInput)
    def get_tasks(self, data: schemas.GetTasksInput) -> dict:
        tasks = self.store.get_tasks(
            list_id=data.list_id,
            include_completed=data.include_completed,
            priority_tier=data.priority_tier,
            due_before=data.due_before.isoformat() if data.due_before else None,
            energy_required=data.energy_required.value if data.energy_required else None,
        )
        return ok(tasks=_dicts(tasks), count=len(tasks))

    @operation("tasks:get", schemas.IdInput)
    def get_task(self, data: schemas.IdInput) -> dict:
        task = self.store.get_task(data.id).to_dict()
        task["subtasks"] = _dicts(self.store.get_subtasks(data.id))
        return ok(task=task)

    @operation("tasks:create", schemas.CreateTaskInput)
    def create_task(self, data: schemas.CreateTaskInput) -> dict:
        fields = data.model_dump(mode="json", exclude={"list_id", "goal_ids", "add_to_my_day", "mark_important"})
        if data.add_to_my_day:
            fields["due_date"] = self.db.today().isoformat()
        if data.mark_important:
            fields["priority_tier"] = 1
        task = self.store.create_task(data.list_id, fields, data.goal_ids)
        self._changed("task", "create", task.id)
        return ok(task=task.to_dict())

    @operation("tasks:bulkCreate", schemas.BulkCreateTasksInput)
    def bulk_create_tasks(self, data: schemas.BulkCreateTasksInput) -> dict:
        items = [item.model_dump(mode="json") for item in data.tasks]
        tasks = self.store.bulk_create_tasks(data.list_id, items)
        self._changed("task", "bulk_create")
        return ok(created=len(tasks), tasks=_dicts(tasks))

    @operation("tasks:parseInput", schemas.ParseTaskInput)
    def parse_task_input(self, data: schemas.ParseTaskInput) -> dict:
        return ok(parsed=parse_task_input(data.text, self.db.now()).to_dict())

    @operation("tasks:quickAdd", schemas.QuickAddInput)
    def quick_add_task(self, data: schemas.QuickAddInput) -> dict:
        parsed = parse_task_input(data.text, self.db.now())
        if not parsed.clean_title:
            return failure("Nothing left for a title once dates, tags and priorities are removed", "validation")
        if data.list_id:
            lst = self.store.get_list(data.list_id)
        else:
            lst = self.store.default_list(self.settings.default_list_name)
        fields = {
            "title": parsed.clean_title,
            "due_date": parsed.due_date.isoformat() if parsed.due_date else None,
            "due_time": parsed.due_time,
            "priority_tier": parsed.priority_tier,
            "estimated_minutes": parsed.estimated_minutes,
        }
        with self.db.transaction():
            task = self.store.create_task(lst.id, fields)
            for tag in self.store.ensure_tags(parsed.tags):
                self.store.add_tag_to_task(task.id, tag.id)
        self._changed("task", "create", task.id)
        return ok(task=self.store.get_task(task.id).to_dict(), parsed=parsed.to_dict())

    @operation("tasks:update", schemas.UpdateTaskInput)
    def update_task(self, data: schemas.UpdateTaskInput) -> dict:
        task = self.store.update_task(data.id, _changes(data, "id"))
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict())

    @operation("tasks:delete", schemas.IdInput)
    def delete_task(self, data: schemas.IdInput) -> dict:
        self.store.delete_task(data.id)
        self._changed("task", "delete", data.id)
        return ok(deleted=data.id)

    @operation("tasks:complete", schemas.IdInput)
    def complete_task(self, data: schemas.IdInput) -> dict:
        task = self.store.set_completed(data.id, True)
        self._changed("task", "complete", task.id)
        return ok(task=task.to_dict())

    @operation("tasks:uncomplete", schemas.IdInput)
    def uncomplete_task(self, data: schemas.IdInput) -> dict:
        task = self.store.set_completed(data.id, False)
        self._changed("task", "uncomplete", task.id)
        return ok(task=task.to_dict())

    @operation("tasks:move", schemas.MoveTaskInput)
    def move_task(self, data: schemas.MoveTaskInput) -> dict:
        task = self.store.move_task(data.id, data.list_id)
        self._changed("task", "move", task.id)
        return ok(task=task.to_dict())

    @operation("tasks:reorder", schemas.ReorderTasksInput)
    def reorder_tasks(self, data: schemas.ReorderTasksInput) -> dict:
        self.store.reorder_tasks(data.list_id, data.ids)
        self._changed("task", "reorder")
        return ok(reordered=len(data.ids))

    @operation("tasks:search", schemas.SearchTasksInput)
    def search_tasks(self, data: schemas.SearchTasksInput) -> dict:
        tasks = self.store.search_tasks(data.query, data.limit)
        return ok(tasks=_dicts(tasks), count=len(tasks))

    @operation("tasks:getByDateRange", schemas.DateRangeInput)
    def get_tasks_by_date_range(self, data: schemas.DateRangeInput) -> dict:
        tasks = self.store.get_tasks_by_date_range(data.start_date, data.end_date)
        return ok(tasks=_dicts(tasks), count=len(tasks))

    @operation("notifications:setReminderFromDueDate", schemas.IdInput)
    def set_reminder_from_due_date(self, data: schemas.IdInput) -> dict:
        task = self.store.get_task(data.id)
        if not task.due_date:
            return failure("Task has no due date", "invalid")
        due = datetime.fromisoformat(f"{task.due_date}T{task.due_time or '09:00'}")
        remind_at = due - timedelta(minutes=self.settings.reminder_minutes_before)
        if remind_at <= self.db.now():
            return failure("Reminder time has already passed", "invalid")
        task = self.store.set_reminder(task.id, remind_at.strftime(TIMESTAMP_FORMAT))
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict(), reminder_at=task.reminder_at)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @operation("tags:getAll")
    def get_tags(self, data: schemas.NoInput) -> dict:
        return ok(tags=_dicts(self.store.get_tags()))

    @operation("tags:create", schemas.CreateTagInput)
    def create_tag(self, data: schemas.CreateTagInput) -> dict:
        tag = self.store.create_tag(data.name, data.color)
        self._changed("tag", "create", tag.id)
        return ok(tag=tag.to_dict())

    @operation("tags:update", schemas.UpdateTagInput)
    def update_tag(self, data: schemas.UpdateTagInput) -> dict:
        tag = self.store.update_tag(data.id, _changes(data, "id"))
        self._changed("tag", "update", tag.id)
        return ok(tag=tag.to_dict())

    @operation("tags:delete", schemas.IdInput)
    def delete_tag(self, data: schemas.IdInput) -> dict:
        self.store.delete_tag(data.id)
        self._changed("tag", "delete", data.id)
        return ok(deleted=data.id)

    @operation("tasks:addTag", schemas.TaskTagInput)
    def add_tag_to_task(self, data: schemas.TaskTagInput) -> dict:
        self.store.add_tag_to_task(data.task_id, data.tag_id)
        self._changed("task", "update", data.task_id)
        return ok(tags=_dicts(self.store.get_task_tags(data.task_id)))

    @operation("tasks:removeTag", schemas.TaskTagInput)
    def remove_tag_from_task(self, data: schemas.TaskTagInput) -> dict:
        removed = self.store.remove_tag_from_task(data.task_id, data.tag_id)
        self._changed("task", "update", data.task_id)
        return ok(removed=removed, tags=_dicts(self.store.get_task_tags(data.task_id)))

    @operation("tasks:getTags", schemas.TaskRefInput)
    def get_task_tags(self, data: schemas.TaskRefInput) -> dict:
        return ok(tags=_dicts(self.store.get_task_tags(data.task_id)))

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def _progress(self, goal_id: str) -> dict:
        total, done = self.store.goal_progress(goal_id)
        return {
            "goal_id": goal_id,
            "total_tasks": total,
            "completed_tasks": done,
            "progress_percent": round(done / total * 100) if total else 0,
        }

    @operation("goals:getAll", schemas.GetGoalsInput)
    def get_goals(self, data: schemas.GetGoalsInput) -> dict:
        return ok(goals=_dicts(self.store.get_goals(data.include_completed, data.parent_id)))

    @operation("goals:getAllWithProgress", schemas.GetGoalsInput)
    def get_goals_with_progress(self, data: schemas.GetGoalsInput) -> dict:
        goals = []
        for goal in self.store.get_goals(data.include_completed, data.parent_id):
            d = goal.to_dict()
            d["progress"] = self._progress(goal.id)
            goals.append(d)
        return ok(goals=goals)

    @operation("goals:getHierarchy", schemas.GetGoalsInput)
    def get_goal_hierarchy(self, data: schemas.GetGoalsInput) -> dict:
        return ok(goals=goal_tree(self.store.get_goals(data.include_completed, data.parent_id)))

    @operation("goals:create", schemas.CreateGoalInput)
    def create_goal(self, data: schemas.CreateGoalInput) -> dict:
        goal = self.store.create_goal(data.model_dump(mode="json"))
        self._changed("goal", "create", goal.id)
        return ok(goal=goal.to_dict())

    @operation("goals:update", schemas.UpdateGoalInput)
    def update_goal(self, data: schemas.UpdateGoalInput) -> dict:
        goal = self.store.update_goal(data.id, _changes(data, "id"))
        self._changed("goal", "update", goal.id)
        return ok(goal=goal.to_dict())

    @operation("goals:delete", schemas.IdInput)
    def delete_goal(self, data: schemas.IdInput) -> dict:
        self.store.delete_goal(data.id)
        self._changed("goal", "delete", data.id)
        return ok(deleted=data.id)

    @operation("goals:linkTasks", schemas.LinkTasksInput)
    def link_tasks_to_goal(self, data: schemas.LinkTasksInput) -> dict:
        linked = self.store.link_tasks_to_goal(data.goal_id, data.task_ids, data.alignment_strength)
        self._changed("goal", "link", data.goal_id)
        return ok(linked=linked, goal_id=data.goal_id)

    @operation("goals:unlinkTasks", schemas.UnlinkTasksInput)
    def unlink_tasks_from_goal(self, data: schemas.UnlinkTasksInput) -> dict:
        removed = self.store.unlink_tasks_from_goal(data.goal_id, data.task_ids)
        self._changed("goal", "unlink", data.goal_id)
        return ok(unlinked=removed, goal_id=data.goal_id)

    @operation("tasks:addGoal", schemas.TaskGoalInput)
    def add_goal_to_task(self, data: schemas.TaskGoalInput) -> dict:
        self.store.link_tasks_to_goal(data.goal_id, [data.task_id], data.alignment_strength)
        self._changed("task", "update", data.task_id)
        return ok(task=self.store.get_task(data.task_id).to_dict())

    @operation("tasks:removeGoal", schemas.TaskGoalInput)
    def remove_goal_from_task(self, data: schemas.TaskGoalInput) -> dict:
        self.store.unlink_tasks_from_goal(data.goal_id, [data.task_id])
        self._changed("task", "update", data.task_id)
        return ok(task=self.store.get_task(data.task_id).to_dict())

    @operation("goals:getProgress", schemas.IdInput)
    def get_goal_progress(self, data: schemas.IdInput) -> dict:
        return ok(progress=self._progress(data.id))

    @operation("goals:getTasks", schemas.GoalTasksInput)
    def get_goal_tasks(self, data: schemas.GoalTasksInput) -> dict:
        tasks = self.store.tasks_for_goal(data.id, data.include_completed)
        return ok(tasks=_dicts(tasks), count=len(tasks))

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    @operation("subtasks:getByTask", schemas.TaskRefInput)
    def get_subtasks(self, data: schemas.TaskRefInput) -> dict:
        return ok(subtasks=_dicts(self.store.get_subtasks(data.task_id)))

    @operation("subtasks:add", schemas.AddSubtaskInput)
    def add_subtask(self, data: schemas.AddSubtaskInput) -> dict:
        subtask = self.store.add_subtask(data.task_id, data.title)
        self._changed("subtask", "create", subtask.id)
        return ok(subtask=subtask.to_dict())

    @operation("subtasks:update", schemas.UpdateSubtaskInput)
    def update_subtask(self, data: schemas.UpdateSubtaskInput) -> dict:
        subtask = self.store.update_subtask(data.id, _changes(data, "id"))
        self._changed("subtask", "update", subtask.id)
        return ok(subtask=subtask.to_dict())

    @operation("subtasks:delete", schemas.IdInput)
    def delete_subtask(self, data: schemas.IdInput) -> dict:
        self.store.delete_subtask(data.id)
        self._changed("subtask", "delete", data.id)
        return ok(deleted=data.id)

    @operation("subtasks:complete", schemas.IdInput)
    def complete_subtask(self, data: schemas.IdInput) -> dict:
        subtask = self.store.update_subtask(data.id, {"completed": True})
        self._changed("subtask", "complete", subtask.id)
        return ok(subtask=subtask.to_dict())

    @operation("subtasks:uncomplete", schemas.IdInput)
    def uncomplete_subtask(self, data: schemas.IdInput) -> dict:
        subtask = self.store.update_subtask(data.id, {"completed": False})
        self._changed("subtask", "uncomplete", subtask.id)
        return ok(subtask=subtask.to_dict())

    @operation("subtasks:reorder", schemas.ReorderSubtasksInput)
    def reorder_subtasks(self, data: schemas.ReorderSubtasksInput) -> dict:
        self.store.reorder_subtasks(data.task_id, data.ids)
        self._changed("subtask", "reorder", data.task_id)
        return ok(subtasks=_dicts(self.store.get_subtasks(data.task_id)))

    @operation("subtasks:decompose", schemas.DecomposeTaskInput)
    def decompose_task(self, data: schemas.DecomposeTaskInput) -> dict:
        created, total = self.store.decompose_task(data.task_id, [s.model_dump() for s in data.subtasks])
        self._changed("subtask", "create", data.task_id)
        return ok(subtasks=_dicts(created), total_estimated_minutes=total)

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    @operation("focus:start", schemas.StartFocusInput)
    def start_focus_session(self, data: schemas.StartFocusInput) -> dict:
        session = self.store.start_focus_session(data.task_id, data.duration_minutes)
        self._changed("focus", "start", session.id)
        return ok(session=session.to_dict())

    @operation("focus:end", schemas.EndFocusInput)
    def end_focus_session(self, data: schemas.EndFocusInput) -> dict:
        session = self.store.end_focus_session(data.id, data.completed)
        self._changed("focus", "end", session.id)
        return ok(session=session.to_dict())

    @operation("focus:getActive")
    def get_active_focus_session(self, data: schemas.NoInput) -> dict:
        session = self.store.get_active_focus_session()
        return ok(session=session.to_dict() if session else None)

    @operation("focus:getAll", schemas.FocusSessionsInput)
    def get_focus_sessions(self, data: schemas.FocusSessionsInput) -> dict:
        return ok(sessions=_dicts(self.store.get_focus_sessions(data.task_id, data.limit)))

    @operation("focus:delete", schemas.IdInput)
    def delete_focus_session(self, data: schemas.IdInput) -> dict:
        self.store.delete_focus_session(data.id)
        self._changed("focus", "delete", data.id)
        return ok(deleted=data.id)

    # ------------------------------------------------------------------
    # Priorities
    # ------------------------------------------------------------------

    @operation("priorities:getStrategies")
    def get_prioritization_strategies(self, data: schemas.NoInput) -> dict:
        return ok(strategies=[info.to_dict() for info in STRATEGIES.values()])

    @operation("priorities:prepare", schemas.PrioritizeListInput)
    def prioritize_list(self, data: schemas.PrioritizeListInput) -> dict:
        request = self.prioritizer.prepare(data.list_id, data.strategy, data.context, data.goal_ids)
        return ok(**request.to_dict())

    @operation("priorities:bulkSet", schemas.BulkSetPrioritiesInput)
    def bulk_set_priorities(self, data: schemas.BulkSetPrioritiesInput) -> dict:
        result = self.prioritizer.bulk_set_priorities([u.model_dump() for u in data.updates])
        self._changed("task", "prioritize")
        return ok(**result.to_dict())

    @operation("priorities:getSummary", schemas.PrioritizationSummaryInput)
    def get_prioritization_summary(self, data: schemas.PrioritizationSummaryInput) -> dict:
        return ok(summary=self.prioritizer.summary(data.list_ids, data.include_completed))

    # ------------------------------------------------------------------
    # Day schedule
    # ------------------------------------------------------------------

    @operation("schedule:getDay", schemas.DateInput)
    def get_day_schedule(self, data: schemas.DateInput) -> dict:
        return ok(**self.day_planner.get_day_schedule(self._day(data)).to_dict())

    @operation("schedule:placeTasks", schemas.ScheduleTasksInput)
    def schedule_tasks(self, data: schemas.ScheduleTasksInput) -> dict:
        placements = [Placement(p.task_id, p.start_time, p.duration_minutes) for p in data.tasks]
        results = self.day_planner.schedule_tasks(data.date, placements)
        self._changed("task", "schedule")
        return ok(date=data.date.isoformat(), scheduled=_dicts(results))

    @operation("schedule:unschedule", schemas.TaskRefInput)
    def unschedule_task(self, data: schemas.TaskRefInput) -> dict:
        task = self.day_planner.unschedule_task(data.task_id)
        self._changed("task", "unschedule", task.id)
        return ok(task=task.to_dict())

    # ------------------------------------------------------------------
    # Daily planning
    # ------------------------------------------------------------------

    @operation("planning:getContext", schemas.DateInput)
    def get_daily_planning_context(self, data: schemas.DateInput) -> dict:
        return ok(**self.daily_planner.planning_context(self._day(data)))

    @operation("planning:getPreviousDay", schemas.DateInput)
    def get_previous_day_summary(self, data: schemas.DateInput) -> dict:
        return ok(**self.daily_planner.previous_day_summary(self._day(data)))

    @operation("planning:getAvailableTasks", schemas.DateInput)
    def get_available_tasks(self, data: schemas.DateInput) -> dict:
        tasks = self.daily_planner.available_tasks(self._day(data))
        return ok(tasks=tasks, count=len(tasks))

    @operation("planning:getDayOverview", schemas.DateInput)
    def get_day_overview(self, data: schemas.DateInput) -> dict:
        return ok(**self.daily_planner.day_overview(self._day(data)))

    @operation("planning:getCapacity", schemas.DateInput)
    def get_planning_capacity(self, data: schemas.DateInput) -> dict:
        return ok(**self.daily_planner.capacity(self._day(data)).to_dict())

    @operation("planning:getSummary", schemas.DateInput)
    def get_planning_summary(self, data: schemas.DateInput) -> dict:
        return ok(**self.daily_planner.confirm_summary(self._day(data)))

    @operation("planning:reschedule", schemas.TaskDateInput)
    def reschedule_task_to_day(self, data: schemas.TaskDateInput) -> dict:
        task = self.daily_planner.reschedule_to(data.task_id, self._day(data))
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict())

    @operation("planning:defer", schemas.TaskRefInput)
    def defer_task(self, data: schemas.TaskRefInput) -> dict:
        task = self.daily_planner.defer(data.task_id)
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict())

    @operation("planning:addToDay", schemas.TaskDateInput)
    def add_task_to_day(self, data: schemas.TaskDateInput) -> dict:
        task = self.daily_planner.add_to_day(data.task_id, self._day(data))
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict())

    @operation("planning:removeFromDay", schemas.TaskRefInput)
    def remove_task_from_day(self, data: schemas.TaskRefInput) -> dict:
        task = self.daily_planner.remove_from_day(data.task_id)
        self._changed("task", "update", task.id)
        return ok(task=task.to_dict())

    @operation("planning:complete", schemas.DateInput)
    def complete_planning(self, data: schemas.DateInput) -> dict:
        day = self._day(data)
        dates = self.daily_planner.record_planned(day)
        return ok(date=day.isoformat(), planned_dates=dates)

    @operation("planning:getPlannedDates")
    def get_planned_dates(self, data: schemas.NoInput) -> dict:
        return ok(planned_dates=self.store.get_planned_dates(), last_planning_date=self.store.last_planned_date())

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @operation("analytics:getToday", schemas.DateInput)
    def get_today_summary(self, data: schemas.DateInput) -> dict:
        return ok(**self.analytics.today_summary(self._day(data)))

    @operation("analytics:getWeeklyTrend", schemas.DateInput)
    def get_weekly_trend(self, data: schemas.DateInput) -> dict:
        return ok(**self.analytics.weekly_trend(self._day(data)))

    @operation("analytics:getStreak", schemas.DateInput)
    def get_streak_info(self, data: schemas.DateInput) -> dict:
        return ok(**self.analytics.streak_info(self._day(data)).to_dict())

    @operation("analytics:getFocusGoal", schemas.DateInput)
    def get_focus_goal_progress(self, data: schemas.DateInput) -> dict:
        return ok(**self.analytics.focus_goal_progress(self._day(data)))

    @operation("analytics:getDashboard", schemas.DateInput)
    def get_productivity_dashboard(self, data: schemas.DateInput) -> dict:
        day = self._day(data)
        return ok(**self.analytics.dashboard(day), all_done_today=self.analytics.all_tasks_completed_today(day))

    @operation("analytics:getAtRisk")
    def get_at_risk_tasks(self, data: schemas.NoInput) -> dict:
        tasks = self.analytics.at_risk_tasks()
        return ok(tasks=tasks, count=len(tasks))
