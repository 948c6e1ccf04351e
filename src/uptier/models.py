"""Domain records and the column codecs used at the storage boundary."""

from __future__ import annotations

import enum
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class EnergyLevel(enum.StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Timeframe(enum.StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class GoalStatus(enum.StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


PRIORITY_TIERS: dict[int, str] = {1: "Do Now", 2: "Do Soon", 3: "Backlog"}

SCORE_FIELDS = ("effort_score", "impact_score", "urgency_score", "importance_score")
PRIORITY_FIELDS = (*SCORE_FIELDS, "priority_tier", "priority_reasoning")


def tier_label(tier: int | None) -> str | None:
    return PRIORITY_TIERS.get(tier) if tier is not None else None


# ---------------------------------------------------------------------------
# Column codecs
# ---------------------------------------------------------------------------


def encode_bool(value: bool | None) -> int:
    return 1 if value else 0


def decode_bool(value: Any) -> bool:
    return bool(value)


def encode_json_list(value: list[str] | None) -> str | None:
    if value is None:
        return None
    return json.dumps(list(value))


def decode_json_list(value: str | None) -> list[str] | None:
    if value is None or value == "":
        return None
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return None
    return [str(v) for v in decoded] if isinstance(decoded, list) else None


def encode_json(value: Mapping | None) -> str | None:
    return json.dumps(dict(value)) if value is not None else None


def decode_json(value: str | None) -> dict | None:
    if not value:
        return None
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None


# Columns whose storage form differs from their domain form.
TASK_ENCODERS = {
    "completed": encode_bool,
    "context_tags": encode_json_list,
    "recurrence_rule": encode_json,
}
LIST_ENCODERS = {"is_smart_list": encode_bool, "smart_filter": encode_json}


def encode_columns(values: Mapping[str, Any], encoders: Mapping[str, Any]) -> dict[str, Any]:
    encoded = {}
    for column, value in values.items():
        if isinstance(value, enum.Enum):
            value = value.value
        encoder = encoders.get(column)
        encoded[column] = encoder(value) if encoder else value
    return encoded


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class TaskList:
    """A task container, or a saved filter when is_smart_list is set."""

    id: str
    name: str
    description: str | None = None
    icon: str = "list"
    color: str = "#3b82f6"
    position: int = 0
    is_smart_list: bool = False
    smart_filter: dict | None = None
    created_at: str | None = None
    updated_at: str | None = None
    task_count: int | None = None
    incomplete_count: int | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "position": self.position,
            "is_smart_list": self.is_smart_list,
            "smart_filter": self.smart_filter,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.task_count is not None:
            d["task_count"] = self.task_count
            d["incomplete_count"] = self.incomplete_count or 0
        return d

    @classmethod
    def from_row(cls, row: Mapping) -> TaskList:
        d = dict(row)
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description"),
            icon=d.get("icon") or "list",
            color=d.get("color") or "#3b82f6",
            position=d.get("position") or 0,
            is_smart_list=decode_bool(d.get("is_smart_list")),
            smart_filter=decode_json(d.get("smart_filter")),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
            task_count=d.get("task_count"),
            incomplete_count=d.get("incomplete_count"),
        )


@dataclass
class Tag:
    id: str
    name: str
    color: str = "#6b7280"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_row(cls, row: Mapping) -> Tag:
        return cls(id=row["id"], name=row["name"], color=row["color"] or "#6b7280")


@dataclass
class GoalLink:
    """A goal as seen from one of its linked tasks."""

    id: str
    name: str
    alignment_strength: int = 3

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "alignment_strength": self.alignment_strength}


@dataclass
class Task:
    """A single to-do item."""

    id: str
    list_id: str
    title: str
    notes: str | None = None
    due_date: str | None = None  # YYYY-MM-DD
    due_time: str | None = None  # HH:MM, independent of due_date
    reminder_at: str | None = None
    completed: bool = False
    completed_at: str | None = None
    position: int = 0
    effort_score: int | None = None
    impact_score: int | None = None
    urgency_score: int | None = None
    importance_score: int | None = None
    priority_tier: int | None = None
    priority_reasoning: str | None = None
    estimated_minutes: int | None = None
    energy_required: EnergyLevel | None = None
    context_tags: list[str] | None = None
    recurrence_rule: dict | None = None
    recurrence_end_date: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    prioritized_at: str | None = None
    list_name: str | None = None
    goals: list[GoalLink] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "list_id": self.list_id,
            "title": self.title,
            "notes": self.notes,
            "due_date": self.due_date,
            "due_time": self.due_time,
            "reminder_at": self.reminder_at,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "position": self.position,
            "effort_score": self.effort_score,
            "impact_score": self.impact_score,
            "urgency_score": self.urgency_score,
            "importance_score": self.importance_score,
            "priority_tier": self.priority_tier,
            "priority_reasoning": self.priority_reasoning,
            "estimated_minutes": self.estimated_minutes,
            "energy_required": self.energy_required.value if self.energy_required else None,
            "context_tags": self.context_tags,
            "recurrence_rule": self.recurrence_rule,
            "recurrence_end_date": self.recurrence_end_date,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "prioritized_at": self.prioritized_at,
            "goals": [g.to_dict() for g in self.goals],
            "tags": [t.to_dict() for t in self.tags],
        }
        if self.list_name is not None:
            d["list_name"] = self.list_name
        return d

    @classmethod
    def from_row(cls, row: Mapping) -> Task:
        d = dict(row)
        energy = d.get("energy_required")
        return cls(
            id=d["id"],
            list_id=d["list_id"],
            title=d["title"],
            notes=d.get("notes"),
            due_date=d.get("due_date"),
            due_time=d.get("due_time"),
            reminder_at=d.get("reminder_at"),
            completed=decode_bool(d.get("completed")),
            completed_at=d.get("completed_at"),
            position=d.get("position") or 0,
            effort_score=d.get("effort_score"),
            impact_score=d.get("impact_score"),
            urgency_score=d.get("urgency_score"),
            importance_score=d.get("importance_score"),
            priority_tier=d.get("priority_tier"),
            priority_reasoning=d.get("priority_reasoning"),
            estimated_minutes=d.get("estimated_minutes"),
            energy_required=EnergyLevel(energy) if energy else None,
            context_tags=decode_json_list(d.get("context_tags")),
            recurrence_rule=decode_json(d.get("recurrence_rule")),
            recurrence_end_date=d.get("recurrence_end_date"),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
            prioritized_at=d.get("prioritized_at"),
            list_name=d.get("list_name"),
        )


@dataclass
class Goal:
    id: str
    name: str
    description: str | None = None
    timeframe: Timeframe | None = None
    target_date: str | None = None
    parent_goal_id: str | None = None
    status: GoalStatus = GoalStatus.ACTIVE
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "timeframe": self.timeframe.value if self.timeframe else None,
            "target_date": self.target_date,
            "parent_goal_id": self.parent_goal_id,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping) -> Goal:
        d = dict(row)
        return cls(
            id=d["id"],
            name=d["name"],
            description=d.get("description"),
            timeframe=Timeframe(d["timeframe"]) if d.get("timeframe") else None,
            target_date=d.get("target_date"),
            parent_goal_id=d.get("parent_goal_id"),
            status=GoalStatus(d.get("status") or "active"),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
        )


@dataclass
class Subtask:
    id: str
    task_id: str
    title: str
    completed: bool = False
    position: int = 0
    created_at: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "completed": self.completed,
            "position": self.position,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: Mapping) -> Subtask:
        return cls(
            id=row["id"],
            task_id=row["task_id"],
            title=row["title"],
            completed=decode_bool(row["completed"]),
            position=row["position"] or 0,
            created_at=row["created_at"],
        )


@dataclass
class FocusSession:
    """A timed work block on one task; completed only if it ran the full duration."""

    id: str
    task_id: str
    duration_minutes: int
    started_at: str
    ended_at: str | None = None
    completed: bool = False
    created_at: str | None = None
    task_title: str | None = None

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "task_id": self.task_id,
            "duration_minutes": self.duration_minutes,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "completed": self.completed,
            "created_at": self.created_at,
        }
        if self.task_title is not None:
            d["task_title"] = self.task_title
        return d

    @classmethod
    def from_row(cls, row: Mapping) -> FocusSession:
        d = dict(row)
        return cls(
            id=d["id"],
            task_id=d["task_id"],
            duration_minutes=d["duration_minutes"],
            started_at=d["started_at"],
            ended_at=d.get("ended_at"),
            completed=decode_bool(d.get("completed")),
            created_at=d.get("created_at"),
            task_title=d.get("task_title"),
        )
