"""Data access: every SQL statement the application runs lives here."""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from uptier.errors import InvalidOperationError, NotFoundError
from uptier.goals import build_goal_graph, would_create_cycle
from uptier.models import (
    LIST_ENCODERS,
    PRIORITY_FIELDS,
    TASK_ENCODERS,
    FocusSession,
    Goal,
    GoalLink,
    Subtask,
    Tag,
    Task,
    TaskList,
    encode_bool,
    encode_columns,
    encode_json,
)
from uptier.persistence import Database, generate_id
from uptier.recurrence import RecurrenceRule, occurrences
from uptier.smart_lists import evaluate

logger = logging.getLogger(__name__)

LIST_COLUMNS = frozenset({"name", "description", "icon", "color", "smart_filter"})
TASK_COLUMNS = frozenset({
    "title", "notes", "due_date", "due_time", "reminder_at",
    "effort_score", "impact_score", "urgency_score", "importance_score",
    "priority_tier", "priority_reasoning", "estimated_minutes", "energy_required",
    "context_tags", "recurrence_rule", "recurrence_end_date",
})
GOAL_COLUMNS = frozenset({"name", "description", "timeframe", "target_date", "parent_goal_id", "status"})
TAG_COLUMNS = frozenset({"name", "color"})

TASK_SELECT = "SELECT t.*, l.name AS list_name FROM tasks t JOIN lists l ON l.id = t.list_id"
SCHEDULE_ORDER = "t.due_time IS NULL, t.due_time, t.priority_tier IS NULL, t.priority_tier, t.position"

_CHUNK = 500


def _marks(values: Sequence) -> str:
    return ", ".join("?" for _ in values)


def _chunks(values: Sequence, size: int = _CHUNK) -> Iterable[Sequence]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


class Store:
    """Reads and writes lists, tasks, goals, subtasks, tags and focus sessions."""

    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _insert(self, table: str, values: Mapping[str, Any]) -> None:
        columns = ", ".join(values)
        self.db.execute(f"INSERT INTO {table} ({columns}) VALUES ({_marks(values)})", tuple(values.values()))

    def _update(self, table: str, row_id: str, values: Mapping[str, Any]) -> int:
        if not values:
            return 1 if self._exists(table, row_id) else 0
        assignments = ", ".join(f"{column} = ?" for column in values)
        cur = self.db.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", (*values.values(), row_id))
        return cur.rowcount

    def _exists(self, table: str, row_id: str) -> bool:
        return self.db.fetchone(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)) is not None

    def _require(self, table: str, row_id: str, entity: str) -> None:
        if not self._exists(table, row_id):
            raise NotFoundError(entity, row_id)

    def _next_position(self, table: str, parent_column: str, parent_id: str) -> int:
        row = self.db.fetchone(
            f"SELECT COALESCE(MAX(position), -1) + 1 AS next FROM {table} WHERE {parent_column} = ?",
            (parent_id,),
        )
        return row["next"]

    def _resequence(self, table: str, ordered_ids: Sequence[str], parent_column: str | None = None,
                    parent_id: str | None = None) -> None:
        with self.db.transaction():
            for position, row_id in enumerate(ordered_ids):
                if parent_column:
                    self.db.execute(
                        f"UPDATE {table} SET position = ? WHERE id = ? AND {parent_column} = ?",
                        (position, row_id, parent_id),
                    )
                else:
                    self.db.execute(f"UPDATE {table} SET position = ? WHERE id = ?", (position, row_id))

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def get_lists(self) -> list[TaskList]:
        rows = self.db.fetchall(
            """
            SELECT l.*,
                   (SELECT COUNT(*) FROM tasks t WHERE t.list_id = l.id) AS task_count,
                   (SELECT COUNT(*) FROM tasks t WHERE t.list_id = l.id AND t.completed = 0) AS incomplete_count
            FROM lists l
            ORDER BY l.position, l.created_at
            """
        )
        lists = [TaskList.from_row(r) for r in rows]
        if any(lst.is_smart_list for lst in lists):
            everything = self.all_tasks(include_completed=True)
            today = self.db.today()
            for lst in lists:
                if lst.is_smart_list:
                    matched = evaluate(lst.id, lst.smart_filter, everything, today)
                    lst.task_count = len(matched)
                    lst.incomplete_count = sum(1 for t in matched if not t.completed)
        return lists

    def get_list(self, list_id: str) -> TaskList:
        row = self.db.fetchone("SELECT * FROM lists WHERE id = ?", (list_id,))
        if row is None:
            raise NotFoundError("List", list_id)
        return TaskList.from_row(row)

    def _container_list(self, list_id: str) -> TaskList:
        lst = self.get_list(list_id)
        if lst.is_smart_list:
            raise InvalidOperationError(f"'{lst.name}' is a smart list and cannot hold tasks")
        return lst

    def create_list(self, name: str, description: str | None = None, icon: str | None = None,
                    color: str | None = None, smart_filter: Mapping | None = None) -> TaskList:
        list_id = generate_id()
        now = self.db.now_iso()
        row = self.db.fetchone("SELECT COALESCE(MAX(position), -1) + 1 AS next FROM lists")
        self._insert("lists", {
            "id": list_id,
            "name": name,
            "description": description,
            "icon": icon or "list",
            "color": color or "#3b82f6",
            "position": row["next"],
            "is_smart_list": encode_bool(smart_filter is not None),
            "smart_filter": encode_json(smart_filter),
            "created_at": now,
            "updated_at": now,
        })
        return self.get_list(list_id)

    def update_list(self, list_id: str, fields: Mapping[str, Any]) -> TaskList:
        values = encode_columns({k: v for k, v in fields.items() if k in LIST_COLUMNS}, LIST_ENCODERS)
        if self._update("lists", list_id, values) == 0:
            raise NotFoundError("List", list_id)
        return self.get_list(list_id)

    def delete_list(self, list_id: str) -> bool:
        """Delete a regular list and its tasks. System and smart lists are refused (False)."""
        self.get_list(list_id)
        cur = self.db.execute("DELETE FROM lists WHERE id = ? AND is_smart_list = 0", (list_id,))
        return cur.rowcount > 0

    def reorder_lists(self, ordered_ids: Sequence[str]) -> None:
        self._resequence("lists", ordered_ids)

    def default_list(self, name: str) -> TaskList:
        """First regular list called ``name``, created when missing."""
        row = self.db.fetchone(
            "SELECT * FROM lists WHERE is_smart_list = 0 AND name = ? ORDER BY position LIMIT 1", (name,)
        )
        if row is not None:
            return TaskList.from_row(row)
        return self.create_list(name, icon="inbox")

    def smart_list_tasks(self, list_id: str) -> list[Task]:
        lst = self.get_list(list_id)
        if not lst.is_smart_list:
            raise InvalidOperationError(f"'{lst.name}' is not a smart list")
        return evaluate(lst.id, lst.smart_filter, self.all_tasks(include_completed=True), self.db.today())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _attach_links(self, tasks: list[Task]) -> list[Task]:
        by_id = {t.id: t for t in tasks}
        for chunk in _chunks(list(by_id)):
            marks = _marks(chunk)
            for row in self.db.fetchall(
                f"""
                SELECT tg.task_id, g.id, g.name, tg.alignment_strength
                FROM task_goals tg JOIN goals g ON g.id = tg.goal_id
                WHERE tg.task_id IN ({marks}) ORDER BY g.name
                """,
                chunk,
            ):
                by_id[row["task_id"]].goals.append(GoalLink(row["id"], row["name"], row["alignment_strength"]))
            for row in self.db.fetchall(
                f"""
                SELECT tt.task_id, tg.id, tg.name, tg.color
                FROM task_tags tt JOIN tags tg ON tg.id = tt.tag_id
                WHERE tt.task_id IN ({marks}) ORDER BY tg.name
                """,
                chunk,
            ):
                by_id[row["task_id"]].tags.append(Tag(row["id"], row["name"], row["color"]))
        return tasks

    def _select_tasks(self, where: str = "1 = 1", params: Sequence = (), order_by: str = "t.position",
                      limit: int | None = None) -> list[Task]:
        sql = f"{TASK_SELECT} WHERE {where} ORDER BY {order_by}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return self._attach_links([Task.from_row(r) for r in self.db.fetchall(sql, params)])

    def get_task(self, task_id: str) -> Task:
        tasks = self._select_tasks("t.id = ?", (task_id,))
        if not tasks:
            raise NotFoundError("Task", task_id)
        return tasks[0]

    def get_tasks(
        self,
        list_id: str | None = None,
        include_completed: bool = False,
        priority_tier: int | None = None,
        due_before: str | None = None,
        energy_required: str | None = None,
    ) -> list[Task]:
        clauses, params = [], []
        if list_id is not None:
            lst = self.get_list(list_id)
            if lst.is_smart_list:
                tasks = self.smart_list_tasks(list_id)
                return tasks if include_completed or list_id == "smart:completed" else [
                    t for t in tasks if not t.completed
                ]
            clauses.append("t.list_id = ?")
            params.append(list_id)
        if not include_completed:
            clauses.append("t.completed = 0")
        if priority_tier is not None:
            clauses.append("t.priority_tier = ?")
            params.append(priority_tier)
        if due_before is not None:
            clauses.append("t.due_date IS NOT NULL AND t.due_date <= ?")
            params.append(due_before)
        if energy_required is not None:
            clauses.append("t.energy_required = ?")
            params.append(energy_required)
        where = " AND ".join(clauses) or "1 = 1"
        return self._select_tasks(where, params, "t.completed, t.position, t.created_at")

    def all_tasks(self, include_completed: bool = False) -> list[Task]:
        where = "1 = 1" if include_completed else "t.completed = 0"
        return self._select_tasks(where, (), "t.list_id, t.position")

    def create_task(self, list_id: str, fields: Mapping[str, Any], goal_ids: Sequence[str] = ()) -> Task:
        self._container_list(list_id)
        values = encode_columns(
            {k: v for k, v in fields.items() if k in TASK_COLUMNS and v is not None}, TASK_ENCODERS
        )
        task_id = generate_id()
        now = self.db.now_iso()
        values.update(id=task_id, list_id=list_id, created_at=now, updated_at=now)
        if any(fields.get(f) is not None for f in PRIORITY_FIELDS):
            values["prioritized_at"] = now
        with self.db.transaction():
            values["position"] = self._next_position("tasks", "list_id", list_id)
            self._insert("tasks", values)
            for goal_id in goal_ids:
                self._require("goals", goal_id, "Goal")
                self.db.execute(
                    "INSERT OR REPLACE INTO task_goals (task_id, goal_id, alignment_strength) VALUES (?, ?, 3)",
                    (task_id, goal_id),
                )
        logger.debug("Created task", extra={"task_id": task_id, "list_id": list_id})
        return self.get_task(task_id)

    def bulk_create_tasks(self, list_id: str, items: Sequence[Mapping[str, Any]]) -> list[Task]:
        """Create several tasks atomically; one bad item rolls the batch back."""
        with self.db.transaction():
            created = [self.create_task(list_id, item, item.get("goal_ids") or ()) for item in items]
        return created

    def update_task(self, task_id: str, fields: Mapping[str, Any]) -> Task:
        values = encode_columns({k: v for k, v in fields.items() if k in TASK_COLUMNS}, TASK_ENCODERS)
        if any(f in fields for f in PRIORITY_FIELDS):
            values["prioritized_at"] = self.db.now_iso()
        if self._update("tasks", task_id, values) == 0:
            raise NotFoundError("Task", task_id)
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> None:
        if self.db.execute("DELETE FROM tasks WHERE id = ?", (task_id,)).rowcount == 0:
            raise NotFoundError("Task", task_id)

    def set_completed(self, task_id: str, completed: bool) -> Task:
        completed_at = self.db.now_iso() if completed else None
        cur = self.db.execute(
            "UPDATE tasks SET completed = ?, completed_at = ? WHERE id = ?",
            (encode_bool(completed), completed_at, task_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError("Task", task_id)
        return self.get_task(task_id)

    def move_task(self, task_id: str, list_id: str) -> Task:
        self._container_list(list_id)
        with self.db.transaction():
            position = self._next_position("tasks", "list_id", list_id)
            cur = self.db.execute(
                "UPDATE tasks SET list_id = ?, position = ? WHERE id = ?", (list_id, position, task_id)
            )
            if cur.rowcount == 0:
                raise NotFoundError("Task", task_id)
        return self.get_task(task_id)

    def reorder_tasks(self, list_id: str, ordered_ids: Sequence[str]) -> None:
        self._container_list(list_id)
        self._resequence("tasks", ordered_ids, "list_id", list_id)

    def search_tasks(self, query: str, limit: int = 20) -> list[Task]:
        return self._select_tasks(
            "t.completed = 0 AND t.title LIKE ?", (f"%{query}%",), "t.updated_at DESC", limit=limit
        )

    def get_tasks_by_date_range(self, start: date, end: date) -> list[Task]:
        """Incomplete tasks due in [start, end], recurring tasks expanded into occurrences."""
        plain = self._select_tasks(
            "t.completed = 0 AND t.due_date >= ? AND t.due_date <= ? "
            "AND (t.recurrence_rule IS NULL OR t.recurrence_rule = '')",
            (start.isoformat(), end.isoformat()),
        )
        recurring = self._select_tasks(
            "t.completed = 0 AND t.recurrence_rule IS NOT NULL AND t.recurrence_rule != '' "
            "AND t.due_date <= ? AND (t.recurrence_end_date IS NULL OR t.recurrence_end_date >= ?)",
            (end.isoformat(), start.isoformat()),
        )
        expanded: list[Task] = []
        for task in recurring:
            rule = RecurrenceRule.from_dict(task.recurrence_rule)
            if rule is None or task.due_date is None:
                expanded.append(task)
                continue
            until = date.fromisoformat(task.recurrence_end_date) if task.recurrence_end_date else None
            for day in occurrences(rule, date.fromisoformat(task.due_date), start, end, until):
                expanded.append(dataclasses.replace(task, due_date=day.isoformat()))
        tasks = plain + expanded
        tasks.sort(key=lambda t: (t.due_date or "", t.due_time or "zz", t.priority_tier or 99))
        return tasks

    def tasks_due_on(self, day: date, include_completed: bool = False) -> list[Task]:
        where = "t.due_date = ?" if include_completed else "t.due_date = ? AND t.completed = 0"
        return self._select_tasks(where, (day.isoformat(),), SCHEDULE_ORDER)

    def set_reminder(self, task_id: str, reminder_at: str | None) -> Task:
        return self.update_task(task_id, {"reminder_at": reminder_at})

    def place_task(self, task_id: str, due_date: date, due_time: str, minutes: int) -> bool:
        """Write a grid placement. False when the task does not exist."""
        cur = self.db.execute(
            "UPDATE tasks SET due_date = ?, due_time = ?, estimated_minutes = ? WHERE id = ?",
            (due_date.isoformat(), due_time, minutes, task_id),
        )
        return cur.rowcount > 0

    def apply_priority(self, task_id: str, fields: Mapping[str, Any]) -> bool:
        """Write priority fields and stamp prioritized_at. False when the task does not exist."""
        values = {k: v for k, v in fields.items() if k in PRIORITY_FIELDS}
        values["prioritized_at"] = self.db.now_iso()
        return self._update("tasks", task_id, values) > 0

    def tasks_in_lists(self, list_ids: Sequence[str] | None, include_completed: bool = False) -> list[Task]:
        clauses, params = [], []
        if not include_completed:
            clauses.append("t.completed = 0")
        if list_ids:
            clauses.append(f"t.list_id IN ({_marks(list_ids)})")
            params.extend(list_ids)
        return self._select_tasks(" AND ".join(clauses) or "1 = 1", params, "t.list_id, t.position")

    def previous_day_tasks(self, previous: date, target: date) -> list[Task]:
        """Tasks due on ``previous`` or completed during it; completed first."""
        return self._select_tasks(
            "t.due_date = ? OR (t.completed_at >= ? AND t.completed_at < ?)",
            (previous.isoformat(), previous.isoformat(), target.isoformat()),
            "t.completed DESC, t.priority_tier IS NULL, t.priority_tier, t.position",
        )

    def available_tasks(self, target: date) -> list[Task]:
        """Candidates for a day: due by then, tier 1, or undated tier 1-2."""
        return self._select_tasks(
            "t.completed = 0 AND (t.due_date <= ? OR t.priority_tier = 1 "
            "OR (t.due_date IS NULL AND t.priority_tier <= 2))",
            (target.isoformat(),),
            "t.priority_tier IS NULL, t.priority_tier, t.due_date IS NULL, t.due_date, t.position",
        )

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def get_goal(self, goal_id: str) -> Goal:
        row = self.db.fetchone("SELECT * FROM goals WHERE id = ?", (goal_id,))
        if row is None:
            raise NotFoundError("Goal", goal_id)
        return Goal.from_row(row)

    def get_goals(self, include_completed: bool = False, parent_id: str | None = None) -> list[Goal]:
        clauses, params = [], []
        if not include_completed:
            clauses.append("status = 'active'")
        if parent_id is not None:
            clauses.append("parent_goal_id = ?")
            params.append(parent_id)
        where = " AND ".join(clauses) or "1 = 1"
        rows = self.db.fetchall(f"SELECT * FROM goals WHERE {where} ORDER BY created_at, name", params)
        return [Goal.from_row(r) for r in rows]

    def goals_by_ids(self, goal_ids: Sequence[str]) -> list[Goal]:
        if not goal_ids:
            return []
        rows = self.db.fetchall(f"SELECT * FROM goals WHERE id IN ({_marks(goal_ids)})", list(goal_ids))
        return [Goal.from_row(r) for r in rows]

    def create_goal(self, fields: Mapping[str, Any]) -> Goal:
        values = encode_columns({k: v for k, v in fields.items() if k in GOAL_COLUMNS and v is not None}, {})
        if values.get("parent_goal_id"):
            self._require("goals", values["parent_goal_id"], "Parent goal")
        goal_id = generate_id()
        now = self.db.now_iso()
        values.update(id=goal_id, created_at=now, updated_at=now)
        self._insert("goals", values)
        return self.get_goal(goal_id)

    def update_goal(self, goal_id: str, fields: Mapping[str, Any]) -> Goal:
        values = encode_columns({k: v for k, v in fields.items() if k in GOAL_COLUMNS}, {})
        parent = values.get("parent_goal_id")
        if parent:
            self._require("goals", parent, "Parent goal")
            graph = build_goal_graph(self.get_goals(include_completed=True))
            if would_create_cycle(graph, goal_id, parent):
                raise InvalidOperationError("A goal cannot be nested under itself or one of its sub-goals")
        if self._update("goals", goal_id, values) == 0:
            raise NotFoundError("Goal", goal_id)
        return self.get_goal(goal_id)

    def delete_goal(self, goal_id: str) -> None:
        if self.db.execute("DELETE FROM goals WHERE id = ?", (goal_id,)).rowcount == 0:
            raise NotFoundError("Goal", goal_id)

    def link_tasks_to_goal(self, goal_id: str, task_ids: Sequence[str], alignment_strength: int = 3) -> int:
        self._require("goals", goal_id, "Goal")
        with self.db.transaction():
            for task_id in task_ids:
                self._require("tasks", task_id, "Task")
                self.db.execute(
                    "INSERT OR REPLACE INTO task_goals (task_id, goal_id, alignment_strength) VALUES (?, ?, ?)",
                    (task_id, goal_id, alignment_strength),
                )
        return len(task_ids)

    def unlink_tasks_from_goal(self, goal_id: str, task_ids: Sequence[str]) -> int:
        self._require("goals", goal_id, "Goal")
        removed = 0
        with self.db.transaction():
            for task_id in task_ids:
                removed += self.db.execute(
                    "DELETE FROM task_goals WHERE task_id = ? AND goal_id = ?", (task_id, goal_id)
                ).rowcount
        return removed

    def goal_progress(self, goal_id: str) -> tuple[int, int]:
        """(total linked tasks, completed linked tasks)."""
        self._require("goals", goal_id, "Goal")
        row = self.db.fetchone(
            """
            SELECT COUNT(*) AS total, COALESCE(SUM(t.completed), 0) AS done
            FROM task_goals tg JOIN tasks t ON t.id = tg.task_id
            WHERE tg.goal_id = ?
            """,
            (goal_id,),
        )
        return row["total"], row["done"]

    def tasks_for_goal(self, goal_id: str, include_completed: bool = True) -> list[Task]:
        self._require("goals", goal_id, "Goal")
        where = "t.id IN (SELECT task_id FROM task_goals WHERE goal_id = ?)"
        if not include_completed:
            where += " AND t.completed = 0"
        return self._select_tasks(where, (goal_id,), "t.completed, t.priority_tier IS NULL, t.priority_tier")

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    def get_subtask(self, subtask_id: str) -> Subtask:
        row = self.db.fetchone("SELECT * FROM subtasks WHERE id = ?", (subtask_id,))
        if row is None:
            raise NotFoundError("Subtask", subtask_id)
        return Subtask.from_row(row)

    def get_subtasks(self, task_id: str) -> list[Subtask]:
        self._require("tasks", task_id, "Task")
        rows = self.db.fetchall("SELECT * FROM subtasks WHERE task_id = ? ORDER BY position, created_at", (task_id,))
        return [Subtask.from_row(r) for r in rows]

    def add_subtask(self, task_id: str, title: str) -> Subtask:
        self._require("tasks", task_id, "Task")
        subtask_id = generate_id()
        with self.db.transaction():
            self._insert("subtasks", {
                "id": subtask_id,
                "task_id": task_id,
                "title": title,
                "position": self._next_position("subtasks", "task_id", task_id),
                "created_at": self.db.now_iso(),
            })
        return self.get_subtask(subtask_id)

    def update_subtask(self, subtask_id: str, fields: Mapping[str, Any]) -> Subtask:
        values = {}
        if fields.get("title") is not None:
            values["title"] = fields["title"]
        if fields.get("completed") is not None:
            values["completed"] = encode_bool(fields["completed"])
        if self._update("subtasks", subtask_id, values) == 0:
            raise NotFoundError("Subtask", subtask_id)
        return self.get_subtask(subtask_id)

    def delete_subtask(self, subtask_id: str) -> None:
        if self.db.execute("DELETE FROM subtasks WHERE id = ?", (subtask_id,)).rowcount == 0:
            raise NotFoundError("Subtask", subtask_id)

    def reorder_subtasks(self, task_id: str, ordered_ids: Sequence[str]) -> None:
        self._require("tasks", task_id, "Task")
        self._resequence("subtasks", ordered_ids, "task_id", task_id)

    def decompose_task(self, task_id: str, items: Sequence[Mapping[str, Any]]) -> tuple[list[Subtask], int]:
        """Add subtasks in one go; a positive estimate total replaces the parent's estimate."""
        self._require("tasks", task_id, "Task")
        total = sum(item.get("estimated_minutes") or 0 for item in items)
        with self.db.transaction():
            created = [self.add_subtask(task_id, item["title"]) for item in items]
            if total > 0:
                self.db.execute("UPDATE tasks SET estimated_minutes = ? WHERE id = ?", (total, task_id))
        return created, total

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def get_tags(self) -> list[Tag]:
        return [Tag.from_row(r) for r in self.db.fetchall("SELECT * FROM tags ORDER BY name")]

    def get_tag(self, tag_id: str) -> Tag:
        row = self.db.fetchone("SELECT * FROM tags WHERE id = ?", (tag_id,))
        if row is None:
            raise NotFoundError("Tag", tag_id)
        return Tag.from_row(row)

    def create_tag(self, name: str, color: str | None = None) -> Tag:
        tag_id = generate_id()
        try:
            self._insert("tags", {"id": tag_id, "name": name, "color": color or "#6b7280"})
        except sqlite3.IntegrityError as exc:
            raise InvalidOperationError(f"Tag '{name}' already exists") from exc
        return self.get_tag(tag_id)

    def update_tag(self, tag_id: str, fields: Mapping[str, Any]) -> Tag:
        values = {k: v for k, v in fields.items() if k in TAG_COLUMNS and v is not None}
        try:
            updated = self._update("tags", tag_id, values)
        except sqlite3.IntegrityError as exc:
            raise InvalidOperationError(f"Tag '{values.get('name')}' already exists") from exc
        if updated == 0:
            raise NotFoundError("Tag", tag_id)
        return self.get_tag(tag_id)

    def delete_tag(self, tag_id: str) -> None:
        if self.db.execute("DELETE FROM tags WHERE id = ?", (tag_id,)).rowcount == 0:
            raise NotFoundError("Tag", tag_id)

    def ensure_tags(self, names: Iterable[str]) -> list[Tag]:
        """Tags by name (case-insensitive), creating the missing ones."""
        tags: list[Tag] = []
        for name in dict.fromkeys(names):
            row = self.db.fetchone("SELECT * FROM tags WHERE name = ? COLLATE NOCASE", (name,))
            tags.append(Tag.from_row(row) if row else self.create_tag(name))
        return tags

    def add_tag_to_task(self, task_id: str, tag_id: str) -> None:
        self._require("tasks", task_id, "Task")
        self._require("tags", tag_id, "Tag")
        self.db.execute("INSERT OR IGNORE INTO task_tags (task_id, tag_id) VALUES (?, ?)", (task_id, tag_id))

    def remove_tag_from_task(self, task_id: str, tag_id: str) -> bool:
        cur = self.db.execute("DELETE FROM task_tags WHERE task_id = ? AND tag_id = ?", (task_id, tag_id))
        return cur.rowcount > 0

    def get_task_tags(self, task_id: str) -> list[Tag]:
        self._require("tasks", task_id, "Task")
        rows = self.db.fetchall(
            "SELECT tg.* FROM tags tg JOIN task_tags tt ON tt.tag_id = tg.id WHERE tt.task_id = ? ORDER BY tg.name",
            (task_id,),
        )
        return [Tag.from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Focus sessions
    # ------------------------------------------------------------------

    def get_focus_session(self, session_id: str) -> FocusSession:
        row = self.db.fetchone(
            "SELECT f.*, t.title AS task_title FROM focus_sessions f JOIN tasks t ON t.id = f.task_id WHERE f.id = ?",
            (session_id,),
        )
        if row is None:
            raise NotFoundError("Focus session", session_id)
        return FocusSession.from_row(row)

    def start_focus_session(self, task_id: str, duration_minutes: int) -> FocusSession:
        self._require("tasks", task_id, "Task")
        session_id = generate_id()
        now = self.db.now_iso()
        self._insert("focus_sessions", {
            "id": session_id,
            "task_id": task_id,
            "duration_minutes": duration_minutes,
            "started_at": now,
            "created_at": now,
        })
        return self.get_focus_session(session_id)

    def end_focus_session(self, session_id: str, completed: bool) -> FocusSession:
        cur = self.db.execute(
            "UPDATE focus_sessions SET ended_at = ?, completed = ? WHERE id = ?",
            (self.db.now_iso(), encode_bool(completed), session_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError("Focus session", session_id)
        return self.get_focus_session(session_id)

    def get_active_focus_session(self) -> FocusSession | None:
        row = self.db.fetchone(
            """
            SELECT f.*, t.title AS task_title FROM focus_sessions f JOIN tasks t ON t.id = f.task_id
            WHERE f.ended_at IS NULL ORDER BY f.started_at DESC LIMIT 1
            """
        )
        return FocusSession.from_row(row) if row else None

    def get_focus_sessions(self, task_id: str | None = None, limit: int = 50) -> list[FocusSession]:
        where, params = ("f.task_id = ?", [task_id]) if task_id else ("1 = 1", [])
        rows = self.db.fetchall(
            f"""
            SELECT f.*, t.title AS task_title FROM focus_sessions f JOIN tasks t ON t.id = f.task_id
            WHERE {where} ORDER BY f.started_at DESC LIMIT ?
            """,
            [*params, limit],
        )
        return [FocusSession.from_row(r) for r in rows]

    def delete_focus_session(self, session_id: str) -> None:
        if self.db.execute("DELETE FROM focus_sessions WHERE id = ?", (session_id,)).rowcount == 0:
            raise NotFoundError("Focus session", session_id)

    # ------------------------------------------------------------------
    # Planned dates
    # ------------------------------------------------------------------

    def add_planned_date(self, day: date, retention: int = 90) -> list[str]:
        """Record a planned day, keeping only the ``retention`` most recent. Returns dates ascending."""
        with self.db.transaction():
            self.db.execute(
                "INSERT OR REPLACE INTO planned_dates (planned_date, planned_at) VALUES (?, ?)",
                (day.isoformat(), self.db.now_iso()),
            )
            self.db.execute(
                """
                DELETE FROM planned_dates WHERE planned_date NOT IN (
                    SELECT planned_date FROM planned_dates ORDER BY planned_date DESC LIMIT ?
                )
                """,
                (retention,),
            )
        return self.get_planned_dates()

    def get_planned_dates(self) -> list[str]:
        rows = self.db.fetchall("SELECT planned_date FROM planned_dates ORDER BY planned_date")
        return [r["planned_date"] for r in rows]

    def last_planned_date(self) -> str | None:
        row = self.db.fetchone("SELECT planned_date FROM planned_dates ORDER BY planned_at DESC, planned_date DESC LIMIT 1")
        return row["planned_date"] if row else None

    # ------------------------------------------------------------------
    # Aggregates for analytics
    # ------------------------------------------------------------------

    def count_completed_on(self, day: date) -> int:
        row = self.db.fetchone(
            "SELECT COUNT(*) AS n FROM tasks WHERE completed = 1 AND date(completed_at) = ?", (day.isoformat(),)
        )
        return row["n"]

    def count_due_on(self, day: date) -> int:
        row = self.db.fetchone("SELECT COUNT(*) AS n FROM tasks WHERE due_date = ?", (day.isoformat(),))
        return row["n"]

    def tier_counts_due_on(self, day: date) -> dict[int | None, int]:
        rows = self.db.fetchall(
            "SELECT priority_tier, COUNT(*) AS n FROM tasks WHERE due_date = ? GROUP BY priority_tier",
            (day.isoformat(),),
        )
        return {r["priority_tier"]: r["n"] for r in rows}

    def focus_minutes_on(self, day: date) -> int:
        row = self.db.fetchone(
            """
            SELECT COALESCE(SUM(duration_minutes), 0) AS minutes FROM focus_sessions
            WHERE completed = 1 AND date(started_at) = ?
            """,
            (day.isoformat(),),
        )
        return row["minutes"]

    def completion_counts(self, start: date, end: date) -> dict[str, int]:
        rows = self.db.fetchall(
            """
            SELECT date(completed_at) AS day, COUNT(*) AS n FROM tasks
            WHERE completed = 1 AND date(completed_at) BETWEEN ? AND ?
            GROUP BY date(completed_at)
            """,
            (start.isoformat(), end.isoformat()),
        )
        return {r["day"]: r["n"] for r in rows}

    def completion_dates(self, limit: int = 365) -> list[str]:
        """Distinct completion dates, newest first."""
        rows = self.db.fetchall(
            """
            SELECT DISTINCT date(completed_at) AS day FROM tasks
            WHERE completed = 1 AND completed_at IS NOT NULL
            ORDER BY day DESC LIMIT ?
            """,
            (limit,),
        )
        return [r["day"] for r in rows]

    def estimated_tasks_due_between(self, start: date, end: date) -> list[Task]:
        return self._select_tasks(
            "t.completed = 0 AND t.due_date IS NOT NULL AND t.estimated_minutes > 0 "
            "AND t.due_date >= ? AND t.due_date <= ?",
            (start.isoformat(), end.isoformat()),
            "t.due_date, t.due_time IS NULL, t.due_time",
        )
