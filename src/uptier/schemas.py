"""Input schemas for every service operation.

Payloads from either adapter are validated here before any database access.
Unknown keys are rejected. Update models are read with ``exclude_unset`` so an
explicit ``null`` clears a field while an omitted key leaves it alone.
"""

from __future__ import annotations

import datetime as dt
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from uptier.models import EnergyLevel, GoalStatus, Timeframe
from uptier.priorities import Strategy
from uptier.recurrence import Frequency
from uptier.smart_lists import FilterField, FilterOperator

Id = Annotated[str, Field(min_length=1, max_length=64)]
Title = Annotated[str, Field(min_length=1, max_length=500)]
Score = Annotated[int, Field(ge=1, le=5)]
Tier = Annotated[int, Field(ge=1, le=3)]
Minutes = Annotated[int, Field(ge=1, le=1440)]
ClockTime = Annotated[str, Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="HH:MM, 24-hour")]
Color = Annotated[str, Field(max_length=32)]


class Input(BaseModel):
    model_config = ConfigDict(extra="forbid")


class NoInput(Input):
    pass


class IdInput(Input):
    id: Id


class TaskRefInput(Input):
    task_id: Id


class DateInput(Input):
    date: dt.date | None = Field(default=None, description="YYYY-MM-DD; defaults to today")


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


class FilterRule(Input):
    field: FilterField
    operator: FilterOperator
    value: Any = None


class SmartFilter(Input):
    rules: list[FilterRule] = Field(default_factory=list)


class CreateListInput(Input):
    name: Title
    description: str | None = None
    icon: str | None = None
    color: Color | None = None


class CreateSmartListInput(Input):
    name: Title
    icon: str | None = None
    color: Color | None = None
    filter: SmartFilter


class UpdateListInput(Input):
    id: Id
    name: Title | None = None
    description: str | None = None
    icon: str | None = None
    color: Color | None = None
    filter: SmartFilter | None = None


class ReorderInput(Input):
    ids: list[Id] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class RecurrenceRuleInput(Input):
    frequency: Frequency
    interval: int = Field(default=1, ge=1, le=365)


class TaskFields(Input):
    notes: str | None = None
    due_date: dt.date | None = None
    due_time: ClockTime | None = None
    reminder_at: str | None = None
    effort_score: Score | None = None
    impact_score: Score | None = None
    urgency_score: Score | None = None
    importance_score: Score | None = None
    priority_tier: Tier | None = None
    priority_reasoning: str | None = None
    estimated_minutes: Minutes | None = None
    energy_required: EnergyLevel | None = None
    context_tags: list[str] | None = None
    recurrence_rule: RecurrenceRuleInput | None = None
    recurrence_end_date: dt.date | None = None


class NewTask(TaskFields):
    title: Title
    goal_ids: list[Id] = Field(default_factory=list)


class CreateTaskInput(NewTask):
    list_id: Id
    add_to_my_day: bool = False
    mark_important: bool = False


class BulkCreateTasksInput(Input):
    list_id: Id
    tasks: list[NewTask] = Field(min_length=1, max_length=100)


class UpdateTaskInput(TaskFields):
    id: Id
    title: Title | None = None


class GetTasksInput(Input):
    list_id: Id | None = None
    include_completed: bool = False
    priority_tier: Tier | None = None
    due_before: dt.date | None = None
    energy_required: EnergyLevel | None = None


class QuickAddInput(Input):
    text: Title
    list_id: Id | None = None


class ParseTaskInput(Input):
    text: str = Field(max_length=1000)


class MoveTaskInput(Input):
    id: Id
    list_id: Id


class ReorderTasksInput(Input):
    list_id: Id
    ids: list[Id] = Field(min_length=1)


class SearchTasksInput(Input):
    query: Annotated[str, Field(min_length=1, max_length=200)]
    limit: int = Field(default=20, ge=1, le=100)


class DateRangeInput(Input):
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TaskDateInput(Input):
    task_id: Id
    date: dt.date | None = Field(default=None, description="YYYY-MM-DD; defaults to today")


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


class GetGoalsInput(Input):
    include_completed: bool = False
    parent_id: Id | None = None


class CreateGoalInput(Input):
    name: Title
    description: str | None = None
    timeframe: Timeframe | None = None
    target_date: dt.date | None = None
    parent_goal_id: Id | None = None


class UpdateGoalInput(Input):
    id: Id
    name: Title | None = None
    description: str | None = None
    timeframe: Timeframe | None = None
    target_date: dt.date | None = None
    parent_goal_id: Id | None = None
    status: GoalStatus | None = None


class LinkTasksInput(Input):
    goal_id: Id
    task_ids: list[Id] = Field(min_length=1)
    alignment_strength: Score = 3


class UnlinkTasksInput(Input):
    goal_id: Id
    task_ids: list[Id] = Field(min_length=1)


class TaskGoalInput(Input):
    task_id: Id
    goal_id: Id
    alignment_strength: Score = 3


class GoalTasksInput(Input):
    id: Id
    include_completed: bool = True


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


class AddSubtaskInput(Input):
    task_id: Id
    title: Title


class UpdateSubtaskInput(Input):
    id: Id
    title: Title | None = None
    completed: bool | None = None


class ReorderSubtasksInput(Input):
    task_id: Id
    ids: list[Id] = Field(min_length=1)


class SubtaskDraft(Input):
    title: Title
    estimated_minutes: Minutes | None = None


class DecomposeTaskInput(Input):
    task_id: Id
    subtasks: list[SubtaskDraft] = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class CreateTagInput(Input):
    name: Annotated[str, Field(min_length=1, max_length=100)]
    color: Color | None = None


class UpdateTagInput(Input):
    id: Id
    name: Annotated[str, Field(min_length=1, max_length=100)] | None = None
    color: Color | None = None


class TaskTagInput(Input):
    task_id: Id
    tag_id: Id


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------


class StartFocusInput(Input):
    task_id: Id
    duration_minutes: int = Field(default=25, ge=1, le=480)


class EndFocusInput(Input):
    id: Id
    completed: bool = True


class FocusSessionsInput(Input):
    task_id: Id | None = None
    limit: int = Field(default=50, ge=1, le=500)


# ---------------------------------------------------------------------------
# Priorities
# ---------------------------------------------------------------------------


class PrioritizeListInput(Input):
    list_id: Id
    strategy: Strategy = Strategy.BALANCED
    context: str | None = Field(default=None, max_length=2000)
    goal_ids: list[Id] = Field(default_factory=list)


class PriorityUpdate(Input):
    task_id: Id
    effort_score: Score | None = None
    impact_score: Score | None = None
    urgency_score: Score | None = None
    importance_score: Score | None = None
    priority_tier: Tier | None = None
    priority_reasoning: str | None = None


class BulkSetPrioritiesInput(Input):
    updates: list[PriorityUpdate] = Field(min_length=1, max_length=500)


class PrioritizationSummaryInput(Input):
    list_ids: list[Id] | None = None
    include_completed: bool = False


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------


class PlacementInput(Input):
    task_id: Id
    start_time: ClockTime
    duration_minutes: Minutes | None = None


class ScheduleTasksInput(Input):
    date: dt.date
    tasks: list[PlacementInput] = Field(min_length=1, max_length=100)
