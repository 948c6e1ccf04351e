"""MCP server for UpTier: exposes task management and planning tools to AI assistants."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from mcp.server.fastmcp import FastMCP

from uptier.config import get_settings
from uptier.errors import failure
from uptier.log import configure_logging
from uptier.service import UptierService

logger = logging.getLogger(__name__)

INSTRUCTIONS = """\
UpTier is a task manager built around prioritization and daily planning. Tasks \
live in lists; smart lists (My Day, Important, Planned, Completed, All Tasks and \
user-defined filters) are computed views and cannot hold tasks directly.

Key concepts:
- **Scores**: effort, impact, urgency and importance, each 1-5.
- **Priority tiers**: 1 = Do Now, 2 = Do Soon, 3 = Backlog. A task without a tier is unprioritized.
- **Goals**: hierarchical (a goal may have a parent goal). Tasks link to goals with an \
alignment strength of 1-5.
- **Day schedule**: a task with a due_date and a due_time is scheduled on that day's \
time grid (06:00-22:00, 15-minute slots). A due_date without a due_time means the \
task is planned for the day but not yet placed.
- **IDs**: every entity has an opaque ID. Look IDs up with get_lists, get_tasks or \
search_tasks before referring to them.

Every tool returns JSON with "success". On failure it carries "error" and "error_type" \
(validation, not_found, invalid, batch_aborted).

Prioritizing a list:
1. prioritize_list returns the open tasks, strategy guidance and score scales
2. Decide scores, a tier and a one-line reasoning for each task
3. bulk_set_priorities saves them (tasks that no longer exist are reported, not fatal)

Planning a day:
1. get_daily_planning_context for yesterday's leftovers, the schedule, free time and capacity
2. reschedule_task_to_day / defer_task / complete_task for yesterday's incomplete tasks
3. add_task_to_day for what the user wants to do today
4. schedule_tasks to place tasks on the grid (all-or-nothing)
5. get_planning_summary, then complete_planning

Use quick_add_task when the user dictates a task in natural language \
("Call mom tomorrow at 3pm #family !1 ~30m").\
"""


def _reply(result: dict) -> str:
    return json.dumps(result, indent=2, default=str)


def _args(**kwargs: Any) -> dict:
    """Drop arguments the caller left out so service defaults apply."""
    return {k: v for k, v in kwargs.items() if v is not None}


def _update_args(clear_fields: list[str] | None, **kwargs: Any) -> dict:
    payload = _args(**kwargs)
    for name in clear_fields or []:
        payload[name] = None
    return payload


def _call(op: Callable[[dict], dict], payload: dict | None = None) -> str:
    try:
        result = op(payload or {})
    except Exception as exc:
        logger.exception("Tool failed", extra={"tool": getattr(op, "__name__", "?")})
        result = failure(f"Internal error: {exc}", "internal")
    return _reply(result)


def build_server(service: UptierService) -> FastMCP:
    mcp = FastMCP("uptier", instructions=INSTRUCTIONS)
    _list_tools(mcp, service)
    _task_tools(mcp, service)
    _tag_tools(mcp, service)
    _goal_tools(mcp, service)
    _subtask_tools(mcp, service)
    _focus_tools(mcp, service)
    _priority_tools(mcp, service)
    _schedule_tools(mcp, service)
    _planning_tools(mcp, service)
    _analytics_tools(mcp, service)
    return mcp


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


def _list_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_lists() -> str:
        """Get all lists, including smart lists, with task counts."""
        return _call(service.get_lists)

    @mcp.tool()
    def create_list(name: str, description: str | None = None, icon: str | None = None,
                    color: str | None = None) -> str:
        """Create a regular task list.

        Args:
            name: List name
            description: Optional description
            icon: Icon name (default "list")
            color: Hex color (default "#3b82f6")
        """
        return _call(service.create_list, _args(name=name, description=description, icon=icon, color=color))

    @mcp.tool()
    def create_smart_list(name: str, rules: list[dict], icon: str | None = None, color: str | None = None) -> str:
        """Create a smart list: a saved filter over all tasks.

        Args:
            name: List name
            rules: Filter rules, all of which must match. Each rule is
                {"field": ..., "operator": ..., "value": ...}. Fields: due_date,
                priority_tier, tags, energy_required, list_id, estimated_minutes, completed.
                Operators: equals, not_equals, in, not_in, is_set, is_not_set,
                today, this_week, overdue, gte, lte.
            icon: Icon name (default "filter")
            color: Hex color
        """
        payload = _args(name=name, icon=icon, color=color)
        payload["filter"] = {"rules": rules}
        return _call(service.create_smart_list, payload)

    @mcp.tool()
    def update_list(id: str, name: str | None = None, description: str | None = None, icon: str | None = None,
                    color: str | None = None, rules: list[dict] | None = None,
                    clear_fields: list[str] | None = None) -> str:
        """Update a list. Only the fields you pass change.

        Args:
            id: List ID
            name: New name
            description: New description
            icon: New icon
            color: New color
            rules: New filter rules (smart lists only)
            clear_fields: Field names to reset to empty (e.g. ["description"])
        """
        payload = _update_args(clear_fields, id=id, name=name, description=description, icon=icon, color=color)
        if rules is not None:
            payload["filter"] = {"rules": rules}
        return _call(service.update_list, payload)

    @mcp.tool()
    def delete_list(id: str) -> str:
        """Delete a regular list and all its tasks. System and smart lists cannot be deleted.

        Args:
            id: List ID
        """
        return _call(service.delete_list, {"id": id})

    @mcp.tool()
    def reorder_lists(ids: list[str]) -> str:
        """Set the display order of lists.

        Args:
            ids: List IDs in the new order
        """
        return _call(service.reorder_lists, {"ids": ids})

    @mcp.tool()
    def get_smart_list_tasks(id: str) -> str:
        """Evaluate a smart list and return its tasks.

        Args:
            id: Smart list ID (e.g. "smart:my_day", "smart:important")
        """
        return _call(service.get_smart_list_tasks, {"id": id})


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def _task_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_tasks(list_id: str | None = None, include_completed: bool = False, priority_tier: int | None = None,
                  due_before: str | None = None, energy_required: str | None = None) -> str:
        """Get tasks, optionally filtered.

        Args:
            list_id: Only tasks in this list (smart list IDs work too)
            include_completed: Include completed tasks (default false)
            priority_tier: Only this tier (1, 2 or 3)
            due_before: Only tasks due on or before this date (YYYY-MM-DD)
            energy_required: Only tasks needing this energy (low, medium, high)
        """
        return _call(service.get_tasks, _args(
            list_id=list_id, include_completed=include_completed, priority_tier=priority_tier,
            due_before=due_before, energy_required=energy_required,
        ))

    @mcp.tool()
    def get_task(id: str) -> str:
        """Get one task with its goals, tags and subtasks.

        Args:
            id: Task ID
        """
        return _call(service.get_task, {"id": id})

    @mcp.tool()
    def create_task(
        list_id: str,
        title: str,
        notes: str | None = None,
        due_date: str | None = None,
        due_time: str | None = None,
        effort_score: int | None = None,
        impact_score: int | None = None,
        urgency_score: int | None = None,
        importance_score: int | None = None,
        priority_tier: int | None = None,
        priority_reasoning: str | None = None,
        estimated_minutes: int | None = None,
        energy_required: str | None = None,
        context_tags: list[str] | None = None,
        recurrence_rule: dict | None = None,
        recurrence_end_date: str | None = None,
        goal_ids: list[str] | None = None,
        add_to_my_day: bool = False,
        mark_important: bool = False,
    ) -> str:
        """Create a task in a regular list.

        Args:
            list_id: Target list ID (smart lists cannot hold tasks)
            title: Task title
            notes: Free-form notes
            due_date: Due date, YYYY-MM-DD
            due_time: Due time, HH:MM (24-hour)
            effort_score: Effort 1-5
            impact_score: Impact 1-5
            urgency_score: Urgency 1-5
            importance_score: Importance 1-5
            priority_tier: 1 (Do Now), 2 (Do Soon) or 3 (Backlog)
            priority_reasoning: Why the task has this priority
            estimated_minutes: Estimated duration in minutes
            energy_required: low, medium or high
            context_tags: Free-form context labels (e.g. ["@home"])
            recurrence_rule: {"frequency": "daily|weekdays|weekly|monthly", "interval": 1}
            recurrence_end_date: Last date the task recurs, YYYY-MM-DD
            goal_ids: Goals to link the task to
            add_to_my_day: Set the due date to today
            mark_important: Set priority tier 1
        """
        return _call(service.create_task, _args(
            list_id=list_id, title=title, notes=notes, due_date=due_date, due_time=due_time,
            effort_score=effort_score, impact_score=impact_score, urgency_score=urgency_score,
            importance_score=importance_score, priority_tier=priority_tier,
            priority_reasoning=priority_reasoning, estimated_minutes=estimated_minutes,
            energy_required=energy_required, context_tags=context_tags, recurrence_rule=recurrence_rule,
            recurrence_end_date=recurrence_end_date, goal_ids=goal_ids,
            add_to_my_day=add_to_my_day, mark_important=mark_important,
        ))

    @mcp.tool()
    def bulk_create_tasks(list_id: str, tasks: list[dict]) -> str:
        """Create several tasks in one list at once (e.g. from meeting notes).

        All tasks are created or none are.

        Args:
            list_id: Target list ID
            tasks: Task objects with "title" and any create_task fields
                (e.g. [{"title": "Draft intro", "estimated_minutes": 45}])
        """
        return _call(service.bulk_create_tasks, {"list_id": list_id, "tasks": tasks})

    @mcp.tool()
    def quick_add_task(text: str, list_id: str | None = None) -> str:
        """Create a task from natural language.

        Understands dates (today, tomorrow, next friday, in 3 days, Jan 15, 3/15),
        times (at 3pm, at 14:30, at noon), priorities (!1-!3, !now, !soon, !backlog),
        tags (#work) and durations (~30m, ~2h, ~1h30m). The rest becomes the title.

        Args:
            text: The task as the user said it
            list_id: Target list ID (default: the Inbox list)
        """
        return _call(service.quick_add_task, _args(text=text, list_id=list_id))

    @mcp.tool()
    def parse_task_input(text: str) -> str:
        """Preview how quick_add_task would read some text, without creating anything.

        Args:
            text: The text to parse
        """
        return _call(service.parse_task_input, {"text": text})

    @mcp.tool()
    def update_task(
        id: str,
        title: str | None = None,
        notes: str | None = None,
        due_date: str | None = None,
        due_time: str | None = None,
        effort_score: int | None = None,
        impact_score: int | None = None,
        urgency_score: int | None = None,
        importance_score: int | None = None,
        priority_tier: int | None = None,
        priority_reasoning: str | None = None,
        estimated_minutes: int | None = None,
        energy_required: str | None = None,
        context_tags: list[str] | None = None,
        recurrence_rule: dict | None = None,
        recurrence_end_date: str | None = None,
        clear_fields: list[str] | None = None,
    ) -> str:
        """Update a task. Only the fields you pass change.

        Args:
            id: Task ID
            title: New title
            notes: New notes
            due_date: New due date, YYYY-MM-DD
            due_time: New due time, HH:MM
            effort_score: Effort 1-5
            impact_score: Impact 1-5
            urgency_score: Urgency 1-5
            importance_score: Importance 1-5
            priority_tier: 1, 2 or 3
            priority_reasoning: Why the task has this priority
            estimated_minutes: Estimated duration in minutes
            energy_required: low, medium or high
            context_tags: Replaces the context labels
            recurrence_rule: {"frequency": ..., "interval": ...}
            recurrence_end_date: YYYY-MM-DD
            clear_fields: Field names to reset to empty (e.g. ["due_date", "due_time"])
        """
        return _call(service.update_task, _update_args(
            clear_fields, id=id, title=title, notes=notes, due_date=due_date, due_time=due_time,
            effort_score=effort_score, impact_score=impact_score, urgency_score=urgency_score,
            importance_score=importance_score, priority_tier=priority_tier,
            priority_reasoning=priority_reasoning, estimated_minutes=estimated_minutes,
            energy_required=energy_required, context_tags=context_tags, recurrence_rule=recurrence_rule,
            recurrence_end_date=recurrence_end_date,
        ))

    @mcp.tool()
    def delete_task(id: str) -> str:
        """Delete a task with its subtasks, goal links, tags and focus sessions.

        Args:
            id: Task ID
        """
        return _call(service.delete_task, {"id": id})

    @mcp.tool()
    def complete_task(id: str) -> str:
        """Mark a task as completed.

        Args:
            id: Task ID
        """
        return _call(service.complete_task, {"id": id})

    @mcp.tool()
    def uncomplete_task(id: str) -> str:
        """Mark a completed task as not completed.

        Args:
            id: Task ID
        """
        return _call(service.uncomplete_task, {"id": id})

    @mcp.tool()
    def move_task(id: str, list_id: str) -> str:
        """Move a task to another regular list (it goes to the end).

        Args:
            id: Task ID
            list_id: Destination list ID
        """
        return _call(service.move_task, {"id": id, "list_id": list_id})

    @mcp.tool()
    def reorder_tasks(list_id: str, ids: list[str]) -> str:
        """Set the order of tasks within a list.

        Args:
            list_id: List ID
            ids: Task IDs in the new order
        """
        return _call(service.reorder_tasks, {"list_id": list_id, "ids": ids})

    @mcp.tool()
    def search_tasks(query: str, limit: int = 20) -> str:
        """Search task titles and notes.

        Args:
            query: Text to look for
            limit: Maximum results (default 20)
        """
        return _call(service.search_tasks, {"query": query, "limit": limit})

    @mcp.tool()
    def get_tasks_by_date_range(start_date: str, end_date: str) -> str:
        """Get tasks due within a date range, including occurrences of recurring tasks.

        Args:
            start_date: First day, YYYY-MM-DD
            end_date: Last day, YYYY-MM-DD
        """
        return _call(service.get_tasks_by_date_range, {"start_date": start_date, "end_date": end_date})

    @mcp.tool()
    def set_reminder_from_due_date(id: str) -> str:
        """Set a task's reminder shortly before its due date and time (09:00 when no time is set).

        Args:
            id: Task ID
        """
        return _call(service.set_reminder_from_due_date, {"id": id})


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def _tag_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_tags() -> str:
        """Get all tags."""
        return _call(service.get_tags)

    @mcp.tool()
    def create_tag(name: str, color: str | None = None) -> str:
        """Create a tag. Tag names are unique.

        Args:
            name: Tag name
            color: Hex color
        """
        return _call(service.create_tag, _args(name=name, color=color))

    @mcp.tool()
    def update_tag(id: str, name: str | None = None, color: str | None = None) -> str:
        """Rename or recolor a tag.

        Args:
            id: Tag ID
            name: New name
            color: New color
        """
        return _call(service.update_tag, _args(id=id, name=name, color=color))

    @mcp.tool()
    def delete_tag(id: str) -> str:
        """Delete a tag and remove it from all tasks.

        Args:
            id: Tag ID
        """
        return _call(service.delete_tag, {"id": id})

    @mcp.tool()
    def add_tag_to_task(task_id: str, tag_id: str) -> str:
        """Attach a tag to a task.

        Args:
            task_id: Task ID
            tag_id: Tag ID
        """
        return _call(service.add_tag_to_task, {"task_id": task_id, "tag_id": tag_id})

    @mcp.tool()
    def remove_tag_from_task(task_id: str, tag_id: str) -> str:
        """Detach a tag from a task.

        Args:
            task_id: Task ID
            tag_id: Tag ID
        """
        return _call(service.remove_tag_from_task, {"task_id": task_id, "tag_id": tag_id})

    @mcp.tool()
    def get_task_tags(task_id: str) -> str:
        """Get the tags on a task.

        Args:
            task_id: Task ID
        """
        return _call(service.get_task_tags, {"task_id": task_id})


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def _goal_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_goals(include_completed: bool = False, parent_id: str | None = None) -> str:
        """Get goals as a flat list.

        Args:
            include_completed: Include completed and abandoned goals
            parent_id: Only direct children of this goal
        """
        return _call(service.get_goals, _args(include_completed=include_completed, parent_id=parent_id))

    @mcp.tool()
    def get_goals_with_progress(include_completed: bool = False, parent_id: str | None = None) -> str:
        """Get goals with completed/total linked task counts.

        Args:
            include_completed: Include completed and abandoned goals
            parent_id: Only direct children of this goal
        """
        return _call(service.get_goals_with_progress, _args(include_completed=include_completed, parent_id=parent_id))

    @mcp.tool()
    def get_goal_hierarchy(include_completed: bool = False, parent_id: str | None = None) -> str:
        """Get goals as a tree: each goal carries its "children".

        Args:
            include_completed: Include completed and abandoned goals
            parent_id: Only the subtree under this goal
        """
        return _call(service.get_goal_hierarchy, _args(include_completed=include_completed, parent_id=parent_id))

    @mcp.tool()
    def create_goal(name: str, description: str | None = None, timeframe: str | None = None,
                    target_date: str | None = None, parent_goal_id: str | None = None) -> str:
        """Create a goal.

        Args:
            name: Goal name
            description: What achieving it means
            timeframe: daily, weekly, monthly, quarterly or yearly
            target_date: YYYY-MM-DD
            parent_goal_id: Parent goal ID for sub-goals
        """
        return _call(service.create_goal, _args(
            name=name, description=description, timeframe=timeframe, target_date=target_date,
            parent_goal_id=parent_goal_id,
        ))

    @mcp.tool()
    def update_goal(id: str, name: str | None = None, description: str | None = None, timeframe: str | None = None,
                    target_date: str | None = None, parent_goal_id: str | None = None, status: str | None = None,
                    clear_fields: list[str] | None = None) -> str:
        """Update a goal. A goal cannot become its own ancestor.

        Args:
            id: Goal ID
            name: New name
            description: New description
            timeframe: daily, weekly, monthly, quarterly or yearly
            target_date: YYYY-MM-DD
            parent_goal_id: New parent goal ID
            status: active, completed or abandoned
            clear_fields: Field names to reset to empty (e.g. ["parent_goal_id"])
        """
        return _call(service.update_goal, _update_args(
            clear_fields, id=id, name=name, description=description, timeframe=timeframe,
            target_date=target_date, parent_goal_id=parent_goal_id, status=status,
        ))

    @mcp.tool()
    def delete_goal(id: str) -> str:
        """Delete a goal. Sub-goals lose their parent; linked tasks are kept.

        Args:
            id: Goal ID
        """
        return _call(service.delete_goal, {"id": id})

    @mcp.tool()
    def link_tasks_to_goal(goal_id: str, task_ids: list[str], alignment_strength: int = 3) -> str:
        """Link tasks to a goal.

        Args:
            goal_id: Goal ID
            task_ids: Task IDs to link
            alignment_strength: How strongly the tasks serve the goal, 1-5 (default 3)
        """
        return _call(service.link_tasks_to_goal, {
            "goal_id": goal_id, "task_ids": task_ids, "alignment_strength": alignment_strength,
        })

    @mcp.tool()
    def unlink_tasks_from_goal(goal_id: str, task_ids: list[str]) -> str:
        """Remove task links from a goal.

        Args:
            goal_id: Goal ID
            task_ids: Task IDs to unlink
        """
        return _call(service.unlink_tasks_from_goal, {"goal_id": goal_id, "task_ids": task_ids})

    @mcp.tool()
    def add_goal_to_task(task_id: str, goal_id: str, alignment_strength: int = 3) -> str:
        """Link one task to one goal.

        Args:
            task_id: Task ID
            goal_id: Goal ID
            alignment_strength: 1-5 (default 3)
        """
        return _call(service.add_goal_to_task, {
            "task_id": task_id, "goal_id": goal_id, "alignment_strength": alignment_strength,
        })

    @mcp.tool()
    def remove_goal_from_task(task_id: str, goal_id: str) -> str:
        """Unlink one task from one goal.

        Args:
            task_id: Task ID
            goal_id: Goal ID
        """
        return _call(service.remove_goal_from_task, {"task_id": task_id, "goal_id": goal_id})

    @mcp.tool()
    def get_goal_progress(id: str) -> str:
        """Completed vs. total linked tasks for a goal.

        Args:
            id: Goal ID
        """
        return _call(service.get_goal_progress, {"id": id})

    @mcp.tool()
    def get_goal_tasks(id: str, include_completed: bool = True) -> str:
        """Tasks linked to a goal.

        Args:
            id: Goal ID
            include_completed: Include completed tasks (default true)
        """
        return _call(service.get_goal_tasks, {"id": id, "include_completed": include_completed})


# ---------------------------------------------------------------------------
# Subtasks
# ---------------------------------------------------------------------------


def _subtask_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_subtasks(task_id: str) -> str:
        """Get a task's subtasks in order.

        Args:
            task_id: Parent task ID
        """
        return _call(service.get_subtasks, {"task_id": task_id})

    @mcp.tool()
    def add_subtask(task_id: str, title: str) -> str:
        """Add a subtask at the end of a task's checklist.

        Args:
            task_id: Parent task ID
            title: Subtask title
        """
        return _call(service.add_subtask, {"task_id": task_id, "title": title})

    @mcp.tool()
    def update_subtask(id: str, title: str | None = None, completed: bool | None = None) -> str:
        """Update a subtask.

        Args:
            id: Subtask ID
            title: New title
            completed: New completion state
        """
        return _call(service.update_subtask, _args(id=id, title=title, completed=completed))

    @mcp.tool()
    def delete_subtask(id: str) -> str:
        """Delete a subtask.

        Args:
            id: Subtask ID
        """
        return _call(service.delete_subtask, {"id": id})

    @mcp.tool()
    def complete_subtask(id: str) -> str:
        """Check off a subtask.

        Args:
            id: Subtask ID
        """
        return _call(service.complete_subtask, {"id": id})

    @mcp.tool()
    def uncomplete_subtask(id: str) -> str:
        """Uncheck a subtask.

        Args:
            id: Subtask ID
        """
        return _call(service.uncomplete_subtask, {"id": id})

    @mcp.tool()
    def reorder_subtasks(task_id: str, ids: list[str]) -> str:
        """Set the order of a task's subtasks.

        Args:
            task_id: Parent task ID
            ids: Subtask IDs in the new order
        """
        return _call(service.reorder_subtasks, {"task_id": task_id, "ids": ids})

    @mcp.tool()
    def decompose_task(task_id: str, subtasks: list[dict]) -> str:
        """Break a task into subtasks. The task's estimate becomes the sum of the subtask estimates.

        Args:
            task_id: Task to break down
            subtasks: [{"title": ..., "estimated_minutes": ...}, ...]
        """
        return _call(service.decompose_task, {"task_id": task_id, "subtasks": subtasks})


# ---------------------------------------------------------------------------
# Focus sessions
# ---------------------------------------------------------------------------


def _focus_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def start_focus_session(task_id: str, duration_minutes: int = 25) -> str:
        """Start a focus (pomodoro) session on a task.

        Args:
            task_id: Task to focus on
            duration_minutes: Planned length (default 25)
        """
        return _call(service.start_focus_session, {"task_id": task_id, "duration_minutes": duration_minutes})

    @mcp.tool()
    def end_focus_session(id: str, completed: bool = True) -> str:
        """End a focus session and record the actual minutes.

        Args:
            id: Focus session ID
            completed: Whether the session ran its full course
        """
        return _call(service.end_focus_session, {"id": id, "completed": completed})

    @mcp.tool()
    def get_active_focus_session() -> str:
        """Get the focus session currently running, if any."""
        return _call(service.get_active_focus_session)

    @mcp.tool()
    def get_focus_sessions(task_id: str | None = None, limit: int = 50) -> str:
        """Get recent focus sessions, newest first.

        Args:
            task_id: Only sessions for this task
            limit: Maximum results (default 50)
        """
        return _call(service.get_focus_sessions, _args(task_id=task_id, limit=limit))

    @mcp.tool()
    def delete_focus_session(id: str) -> str:
        """Delete a focus session.

        Args:
            id: Focus session ID
        """
        return _call(service.delete_focus_session, {"id": id})


# ---------------------------------------------------------------------------
# Priorities
# ---------------------------------------------------------------------------


def _priority_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_prioritization_strategies() -> str:
        """List the prioritization strategies and what each one favours."""
        return _call(service.get_prioritization_strategies)

    @mcp.tool()
    def prioritize_list(list_id: str, strategy: str = "balanced", context: str | None = None,
                        goal_ids: list[str] | None = None) -> str:
        """Get a list's open tasks with guidance for prioritizing them.

        Nothing is saved. Read the returned instructions, decide scores and tiers,
        then call bulk_set_priorities.

        Args:
            list_id: List to prioritize
            strategy: balanced, urgent_first, quick_wins, high_impact or eisenhower
            context: Anything the user said about their situation
            goal_ids: Goals to favour
        """
        return _call(service.prioritize_list, _args(
            list_id=list_id, strategy=strategy, context=context, goal_ids=goal_ids,
        ))

    @mcp.tool()
    def bulk_set_priorities(updates: list[dict]) -> str:
        """Save scores, tiers and reasoning for many tasks at once.

        Updates for tasks that no longer exist are reported under "failed"; the
        rest are still saved.

        Args:
            updates: [{"task_id": ..., "effort_score": 1-5, "impact_score": 1-5,
                "urgency_score": 1-5, "importance_score": 1-5, "priority_tier": 1-3,
                "priority_reasoning": "..."}, ...]. Every field except task_id is optional.
        """
        return _call(service.bulk_set_priorities, {"updates": updates})

    @mcp.tool()
    def get_prioritization_summary(list_ids: list[str] | None = None, include_completed: bool = False) -> str:
        """Tier counts, overdue and due-today counts, quick wins and high-impact tasks.

        Args:
            list_ids: Restrict to these lists (default: all)
            include_completed: Include completed tasks
        """
        return _call(service.get_prioritization_summary, _args(
            list_ids=list_ids, include_completed=include_completed,
        ))


# ---------------------------------------------------------------------------
# Day schedule
# ---------------------------------------------------------------------------


def _schedule_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_day_schedule(date: str | None = None) -> str:
        """Get a day's time grid: scheduled tasks, unscheduled tasks and free blocks.

        Unscheduled tasks without an estimate are flagged with needs_estimate.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_day_schedule, _args(date=date))

    @mcp.tool()
    def schedule_tasks(date: str, tasks: list[dict]) -> str:
        """Place tasks on a day's time grid.

        Typical use: call get_day_schedule, ask the user for a start time and
        for estimates of tasks marked needs_estimate, pick start times inside the
        free blocks, then call this. Start times snap to the 15-minute grid. If any
        task ID does not exist nothing is scheduled and the error names it.

        Args:
            date: YYYY-MM-DD
            tasks: [{"task_id": ..., "start_time": "HH:MM", "duration_minutes": 45}, ...].
                duration_minutes is optional; the task's estimate (or 30) is used.
        """
        return _call(service.schedule_tasks, {"date": date, "tasks": tasks})

    @mcp.tool()
    def unschedule_task(task_id: str) -> str:
        """Take a task off the time grid. It stays planned for its day.

        Args:
            task_id: Task ID
        """
        return _call(service.unschedule_task, {"task_id": task_id})


# ---------------------------------------------------------------------------
# Daily planning
# ---------------------------------------------------------------------------


def _planning_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_daily_planning_context(date: str | None = None) -> str:
        """Everything needed to plan a day: yesterday's results, the schedule, available tasks, capacity.

        Args:
            date: Day to plan, YYYY-MM-DD (default today)
        """
        return _call(service.get_daily_planning_context, _args(date=date))

    @mcp.tool()
    def get_previous_day_summary(date: str | None = None) -> str:
        """Completed and incomplete tasks from the day before.

        Args:
            date: Day being planned, YYYY-MM-DD (default today)
        """
        return _call(service.get_previous_day_summary, _args(date=date))

    @mcp.tool()
    def get_available_tasks(date: str | None = None) -> str:
        """Open tasks that could be worked on: undated, overdue or due on the day.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_available_tasks, _args(date=date))

    @mcp.tool()
    def get_day_overview(date: str | None = None) -> str:
        """A day's scheduled and unscheduled tasks with total estimated minutes.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_day_overview, _args(date=date))

    @mcp.tool()
    def get_planning_capacity(date: str | None = None) -> str:
        """Planned minutes against the working-hours budget for a day.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_planning_capacity, _args(date=date))

    @mcp.tool()
    def get_planning_summary(date: str | None = None) -> str:
        """Confirmation summary: task count, total time, projected finish time, capacity.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_planning_summary, _args(date=date))

    @mcp.tool()
    def reschedule_task_to_day(task_id: str, date: str | None = None) -> str:
        """Move a task's due date to a day.

        Args:
            task_id: Task ID
            date: YYYY-MM-DD (default today)
        """
        return _call(service.reschedule_task_to_day, _args(task_id=task_id, date=date))

    @mcp.tool()
    def defer_task(task_id: str) -> str:
        """Remove a task's due date so it waits in its list.

        Args:
            task_id: Task ID
        """
        return _call(service.defer_task, {"task_id": task_id})

    @mcp.tool()
    def add_task_to_day(task_id: str, date: str | None = None) -> str:
        """Plan a task for a day.

        Args:
            task_id: Task ID
            date: YYYY-MM-DD (default today)
        """
        return _call(service.add_task_to_day, _args(task_id=task_id, date=date))

    @mcp.tool()
    def remove_task_from_day(task_id: str) -> str:
        """Take a task out of a day's plan, clearing its due date and time.

        Args:
            task_id: Task ID
        """
        return _call(service.remove_task_from_day, {"task_id": task_id})

    @mcp.tool()
    def complete_planning(date: str | None = None) -> str:
        """Record that a day has been planned.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.complete_planning, _args(date=date))

    @mcp.tool()
    def get_planned_dates() -> str:
        """Days that have been planned recently, oldest first."""
        return _call(service.get_planned_dates)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def _analytics_tools(mcp: FastMCP, service: UptierService) -> None:
    @mcp.tool()
    def get_today_summary(date: str | None = None) -> str:
        """Completed vs. planned tasks, completion rate, focus minutes and tier breakdown.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_today_summary, _args(date=date))

    @mcp.tool()
    def get_weekly_trend(date: str | None = None) -> str:
        """Completions per day for the seven days ending on a date.

        Args:
            date: Last day, YYYY-MM-DD (default today)
        """
        return _call(service.get_weekly_trend, _args(date=date))

    @mcp.tool()
    def get_streak_info(date: str | None = None) -> str:
        """Current and longest run of days with at least one completed task.

        Args:
            date: Reference day, YYYY-MM-DD (default today)
        """
        return _call(service.get_streak_info, _args(date=date))

    @mcp.tool()
    def get_focus_goal_progress(date: str | None = None) -> str:
        """Focus minutes against the daily focus goal.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_focus_goal_progress, _args(date=date))

    @mcp.tool()
    def get_productivity_dashboard(date: str | None = None) -> str:
        """Today's summary, weekly trend, streak and focus goal in one call.

        Args:
            date: YYYY-MM-DD (default today)
        """
        return _call(service.get_productivity_dashboard, _args(date=date))

    @mcp.tool()
    def get_at_risk_tasks() -> str:
        """Tasks due within a week that may not fit in the time left before their deadline."""
        return _call(service.get_at_risk_tasks)


def main():
    """Entry point for the MCP server."""
    settings = get_settings()
    configure_logging(settings, service_name="uptier-mcp")
    service = UptierService.from_settings(settings)
    logger.info("Starting MCP server", extra={"db": str(settings.db_path)})
    build_server(service).run(transport="stdio")


if __name__ == "__main__":
    main()
