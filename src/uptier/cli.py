"""Typer CLI for UpTier."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from uptier.config import get_settings
from uptier.log import configure_logging
from uptier.models import tier_label
from uptier.nlp import format_date, format_minutes
from uptier.planning import PlanningSession, PlanningStep
from uptier.service import UptierService
from uptier.timegrid import time_to_minutes

app = typer.Typer(
    name="uptier",
    help="Prioritize tasks and plan your day from the command line.",
    no_args_is_help=True,
)
console = Console()

TIER_STYLES = {1: "bold red", 2: "yellow", 3: "dim"}


@contextmanager
def _open_service() -> Iterator[UptierService]:
    settings = get_settings()
    configure_logging(settings)
    service = UptierService.from_settings(settings)
    try:
        yield service
    finally:
        service.db.close()


def _check(result: dict) -> dict:
    """Print the error and exit when an operation failed."""
    if not result["success"]:
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(1)
    return result


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and title."""
    try:
        with _open_service() as service:
            tasks = service.store.all_tasks()
    except Exception:
        return []
    q = incomplete.lower()
    # Title first so the shell's prefix matching works on what the user types
    return [f"{t.title} ({t.id})" for t in tasks if q in t.id or q in t.title.lower()]


def _resolve_task_id(service: UptierService, arg: str) -> str:
    """Accept a full ID, the completed 'Title (ID)' form or a unique ID prefix."""
    if "(" in arg and arg.endswith(")"):
        arg = arg.rsplit("(", 1)[-1].rstrip(")")
    arg = arg.strip()
    matches = [t.id for t in service.store.all_tasks(include_completed=True) if t.id.startswith(arg)]
    if arg in matches:
        return arg
    if len(matches) != 1:
        problem = "matches several tasks" if matches else "matches no task"
        console.print(f"[red]'{arg}' {problem}.[/red]")
        raise typer.Exit(1)
    return matches[0]


def _resolve_list_id(service: UptierService, arg: str) -> str:
    """A list ID or a (case-insensitive) list name."""
    for lst in service.store.get_lists():
        if arg in (lst.id, lst.id.removeprefix("smart:")) or lst.name.lower() == arg.lower():
            return lst.id
    console.print(f"[red]List '{arg}' not found.[/red]")
    raise typer.Exit(1)


def _parse_date(value: str | None) -> str | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        console.print(f"[red]Invalid date '{value}'. Use YYYY-MM-DD.[/red]")
        raise typer.Exit(1)


def _tier(tier: int | None) -> str:
    if tier is None:
        return ""
    return f"[{TIER_STYLES[tier]}]{tier} {tier_label(tier)}[/{TIER_STYLES[tier]}]"


def _due(task: dict) -> str:
    if not task.get("due_date"):
        return ""
    text = format_date(date.fromisoformat(task["due_date"]))
    return f"{text} {task['due_time']}" if task.get("due_time") else text


def _estimate(minutes: int | None) -> str:
    return format_minutes(minutes) if minutes else ""


def _task_table(title: str, tasks: list[dict]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Due")
    table.add_column("Tier")
    table.add_column("Est.", justify="right")
    table.add_column("Tags", style="magenta")
    for t in tasks:
        name = f"[strike dim]{t['title']}[/strike dim]" if t["completed"] else t["title"]
        table.add_row(
            t["id"][:8],
            name,
            _due(t),
            _tier(t["priority_tier"]),
            _estimate(t["estimated_minutes"]),
            ", ".join(tag["name"] for tag in t["tags"]),
        )
    return table


def _print_schedule(schedule: dict) -> None:
    table = Table(title=f"Schedule for {schedule['date']} ({schedule['day_start']}-{schedule['day_end']})")
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("Task")
    table.add_column("Tier")
    table.add_column("List", style="dim")
    rows = [(s["start_time"], s["end_time"], s) for s in schedule["scheduled"]]
    rows += [(b["start_time"], b["end_time"], None) for b in schedule["free_blocks"]]
    for start, end, entry in sorted(rows, key=lambda r: r[0]):
        if entry is None:
            table.add_row(f"{start}-{end}", f"[dim green]free ({format_minutes(time_to_minutes(end) - time_to_minutes(start))})[/dim green]", "", "")
        else:
            table.add_row(f"{start}-{end}", entry["title"], _tier(entry["priority_tier"]), entry["list_name"] or "")
    console.print(table)

    if schedule["unscheduled"]:
        console.print("\n[bold]Not yet placed[/bold]")
        for t in schedule["unscheduled"]:
            est = "[yellow]needs estimate[/yellow]" if t["needs_estimate"] else _estimate(t["estimated_minutes"])
            console.print(f"  [cyan]{t['id'][:8]}[/cyan]  {t['title']}  {est}")
    summary = schedule["summary"]
    console.print(
        f"\n[dim]{summary['total_scheduled']} scheduled ({format_minutes(summary['total_scheduled_minutes'])}), "
        f"{summary['total_unscheduled']} unscheduled, "
        f"{format_minutes(summary['total_free_minutes'])} free[/dim]"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    text: Annotated[str, typer.Argument(help='Task in plain language, e.g. "Call mom tomorrow at 3pm #family !1 ~30m"')],
    list_name: Annotated[Optional[str], typer.Option("--list", "-l", help="List name or ID (default: Inbox)")] = None,
) -> None:
    """Add a task, reading dates, times, priorities, tags and durations from the text."""
    with _open_service() as service:
        payload = {"text": text}
        if list_name:
            payload["list_id"] = _resolve_list_id(service, list_name)
        result = _check(service.quick_add_task(payload))
    task = result["task"]
    console.print(f"[green]Added '{task['title']}' as {task['id'][:8]} in {task['list_name']}[/green]")
    details = []
    if task["due_date"]:
        details.append(f"due {_due(task)}")
    if task["priority_tier"]:
        details.append(f"tier {task['priority_tier']} ({tier_label(task['priority_tier'])})")
    if task["estimated_minutes"]:
        details.append(f"~{format_minutes(task['estimated_minutes'])}")
    if task["tags"]:
        details.append(" ".join(f"#{t['name']}" for t in task["tags"]))
    if details:
        console.print(f"  [dim]{', '.join(details)}[/dim]")


@app.command("list")
def list_tasks(
    list_name: Annotated[Optional[str], typer.Option("--list", "-l", help="List name or ID")] = None,
    show_all: Annotated[bool, typer.Option("--all", "-a", help="Include completed tasks")] = False,
    tier: Annotated[Optional[int], typer.Option("--tier", min=1, max=3, help="Only this priority tier")] = None,
    search: Annotated[Optional[str], typer.Option("--search", "-q", help="Search open task titles")] = None,
) -> None:
    """List tasks."""
    with _open_service() as service:
        if search:
            result = _check(service.search_tasks({"query": search, "limit": 100}))
            title = f"Tasks matching '{search}'"
        else:
            payload: dict = {"include_completed": show_all}
            title = "Tasks"
            if list_name:
                payload["list_id"] = _resolve_list_id(service, list_name)
                title = service.store.get_list(payload["list_id"]).name
            if tier:
                payload["priority_tier"] = tier
            result = _check(service.get_tasks(payload))
    tasks = result["tasks"]
    if not tasks:
        console.print("No tasks found.")
        return
    console.print(_task_table(title, tasks))


@app.command()
def done(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Mark a task as completed."""
    with _open_service() as service:
        tid = _resolve_task_id(service, task_id)
        task = _check(service.complete_task({"id": tid}))["task"]
        streak = service.analytics.streak_info()
    console.print(f"[green]Completed '{task['title']}'[/green]")
    if streak.milestone_reached:
        console.print(f"  [bold yellow]{streak.milestone_reached}-day streak![/bold yellow]")


@app.command()
def undone(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Mark a completed task as not completed."""
    with _open_service() as service:
        task = _check(service.uncomplete_task({"id": _resolve_task_id(service, task_id)}))["task"]
    console.print(f"[green]Reopened '{task['title']}'[/green]")


@app.command()
def lists() -> None:
    """Show all lists with their task counts."""
    with _open_service() as service:
        result = _check(service.get_lists())
    table = Table(title="Lists")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Open", justify="right")
    table.add_column("Total", justify="right")
    for lst in result["lists"]:
        name = f"[italic]{lst['name']}[/italic]" if lst["is_smart_list"] else lst["name"]
        list_id = lst["id"] if lst["is_smart_list"] else lst["id"][:8]
        table.add_row(list_id, name, str(lst["incomplete_count"]), str(lst["task_count"]))
    console.print(table)


@app.command()
def today(
    date_str: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to show (YYYY-MM-DD)")] = None,
) -> None:
    """Show a day's schedule, unplaced tasks and free time."""
    with _open_service() as service:
        result = _check(service.get_day_schedule({"date": _parse_date(date_str)}))
    _print_schedule(result)


@app.command()
def schedule(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    minutes: Annotated[Optional[int], typer.Option("--minutes", "-m", help="Duration in minutes")] = None,
    date_str: Annotated[Optional[str], typer.Option("--date", "-d", help="Day (YYYY-MM-DD, default today)")] = None,
) -> None:
    """Place a task on a day's time grid."""
    with _open_service() as service:
        day = _parse_date(date_str) or service.db.today().isoformat()
        placement = {"task_id": _resolve_task_id(service, task_id), "start_time": start}
        if minutes:
            placement["duration_minutes"] = minutes
        result = _check(service.schedule_tasks({"date": day, "tasks": [placement]}))
    for p in result["scheduled"]:
        console.print(f"[green]Scheduled '{p['title']}' on {day} {p['start_time']}-{p['end_time']}[/green]")


@app.command()
def unschedule(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Take a task off the time grid (it stays planned for its day)."""
    with _open_service() as service:
        task = _check(service.unschedule_task({"task_id": _resolve_task_id(service, task_id)}))["task"]
    console.print(f"[green]Unscheduled '{task['title']}'[/green]")


@app.command()
def priorities(
    list_name: Annotated[Optional[str], typer.Option("--list", "-l", help="List name or ID")] = None,
) -> None:
    """Summarize priorities: tiers, overdue work, quick wins and high-impact tasks."""
    with _open_service() as service:
        payload = {}
        if list_name:
            payload["list_ids"] = [_resolve_list_id(service, list_name)]
        summary = _check(service.get_prioritization_summary(payload))["summary"]

    tiers = summary["by_tier"]
    console.print(f"\n[bold]{summary['total_tasks']} open tasks[/bold]")
    for n in (1, 2, 3):
        console.print(f"  {_tier(n)}: {tiers[f'tier_{n}']}")
    console.print(f"  Unprioritized: {tiers['unprioritized']}")
    if summary["overdue_count"]:
        console.print(f"  [bold red]{summary['overdue_count']} overdue[/bold red]")
    console.print(f"  Due today: {summary['due_today_count']}")
    effort = summary["effort_distribution"]
    console.print(
        f"  Effort: {effort['low']} low, {effort['medium']} medium, {effort['high']} high, {effort['unscored']} unscored"
    )
    if summary["quick_wins"]:
        console.print("\n[bold green]Quick wins[/bold green]")
        for t in summary["quick_wins"]:
            console.print(f"  [cyan]{t['id'][:8]}[/cyan]  {t['title']}")
    if summary["high_impact_tasks"]:
        console.print("\n[bold]High impact[/bold]")
        for t in summary["high_impact_tasks"]:
            console.print(f"  [cyan]{t['id'][:8]}[/cyan]  {t['title']}")
    console.print()


@app.command()
def stats(
    date_str: Annotated[Optional[str], typer.Option("--date", "-d", help="Reference day (YYYY-MM-DD)")] = None,
) -> None:
    """Show completion stats, the weekly trend, streaks and focus time."""
    with _open_service() as service:
        dash = _check(service.get_productivity_dashboard({"date": _parse_date(date_str)}))
        at_risk = _check(service.get_at_risk_tasks())["tasks"]

    t = dash["today"]
    console.print(f"\n[bold]Today ({t['date']})[/bold]")
    console.print(f"  Completed: {t['completed_today']} of {t['planned_today']} planned ({t['completion_rate']}%)")
    console.print(f"  Focus:     {format_minutes(t['focus_minutes'])}")
    if dash["all_done_today"]:
        console.print("  [bold green]Everything planned for today is done.[/bold green]")

    trend = dash["weekly_trend"]
    console.print(f"\n[bold]Last 7 days[/bold]  ({trend['total_completions']} done, {trend['daily_average']}/day)")
    for day in trend["days"]:
        console.print(f"  {day['day_label']}  {'#' * day['completed']} {day['completed']}")

    streak = dash["streak"]
    console.print(f"\n[bold]Streak[/bold]  current {streak['current_streak']}, longest {streak['longest_streak']}")
    focus = dash["focus_goal"]
    console.print(f"[bold]Focus goal[/bold]  {focus['percent']}% of {format_minutes(focus['goal_minutes'])}")

    if at_risk:
        console.print("\n[bold red]At risk[/bold red]")
        for r in at_risk:
            style = "red" if r["risk_level"] == "critical" else "yellow"
            console.print(f"  [{style}]{r['title']}[/{style}]  {r['reason']}")
    console.print()


# ---------------------------------------------------------------------------
# Interactive daily planning
# ---------------------------------------------------------------------------


def _plan_review(service: UptierService, day: date) -> None:
    prev = _check(service.get_previous_day_summary({"date": day.isoformat()}))
    console.print(f"\n[bold]Review {prev['date']}[/bold]: {len(prev['completed'])} done, {len(prev['incomplete'])} left")
    for t in prev["incomplete"]:
        choice = typer.prompt(
            f"  '{t['title']}': [m]ove to {day.isoformat()}, [d]efer, [c]omplete, [s]kip", default="m"
        ).lower()
        if choice.startswith("m"):
            _check(service.reschedule_task_to_day({"task_id": t["id"], "date": day.isoformat()}))
        elif choice.startswith("d"):
            _check(service.defer_task({"task_id": t["id"]}))
        elif choice.startswith("c"):
            _check(service.complete_task({"id": t["id"]}))


def _plan_build(service: UptierService, day: date) -> None:
    available = _check(service.get_available_tasks({"date": day.isoformat()}))["tasks"]
    candidates = [t for t in available if not t["on_day"]]
    console.print(f"\n[bold]Build the list for {day.isoformat()}[/bold]")
    for i, t in enumerate(candidates, 1):
        flag = " [red](overdue)[/red]" if t["overdue"] else ""
        console.print(f"  {i:>2}. {t['title']}  {_estimate(t['estimated_minutes'])}{flag}")
    if candidates:
        picked = typer.prompt("  Add which (e.g. 1,3)", default="")
        for part in picked.split(","):
            if part.strip().isdigit() and 1 <= int(part) <= len(candidates):
                _check(service.add_task_to_day({"task_id": candidates[int(part) - 1]["id"], "date": day.isoformat()}))
    cap = _check(service.get_planning_capacity({"date": day.isoformat()}))
    style = "red" if cap["over_threshold"] else "green"
    console.print(
        f"  [{style}]{format_minutes(cap['planned_minutes'])} of "
        f"{format_minutes(cap['available_minutes'])} planned ({cap['percent']}%)[/{style}]"
    )


def _plan_schedule(service: UptierService, day: date) -> None:
    _print_schedule(_check(service.get_day_schedule({"date": day.isoformat()})))


def _plan_confirm(service: UptierService, day: date) -> None:
    summary = _check(service.get_planning_summary({"date": day.isoformat()}))
    console.print(
        f"\n[bold]{summary['task_count']} tasks, {format_minutes(summary['total_minutes'])}[/bold], "
        f"finishing around {summary['finish_time']}"
    )


STEP_VIEWS = {
    PlanningStep.REVIEW: _plan_review,
    PlanningStep.BUILD: _plan_build,
    PlanningStep.SCHEDULE: _plan_schedule,
    PlanningStep.CONFIRM: _plan_confirm,
}


@app.command()
def plan(
    date_str: Annotated[Optional[str], typer.Option("--date", "-d", help="Day to plan (YYYY-MM-DD)")] = None,
    week: Annotated[bool, typer.Option("--week", "-w", help="Plan seven days starting at the date")] = False,
) -> None:
    """Walk through daily planning: review, build, schedule, confirm."""
    with _open_service() as service:
        start = date.fromisoformat(_parse_date(date_str)) if date_str else service.db.today()
        session = PlanningSession.week(start) if week else PlanningSession.single(start)
        while not session.closed:
            day = session.target_date
            STEP_VIEWS[session.step](service, day)
            if session.step is not PlanningStep.CONFIRM:
                session.next()
                continue
            if not typer.confirm(f"Finish planning {day.isoformat()}?", default=True):
                console.print("[yellow]Planning stopped.[/yellow]")
                raise typer.Exit(0)
            service.daily_planner.finish(session)
            console.print(f"[green]Planned {day.isoformat()}.[/green]")


@app.command()
def serve() -> None:
    """Run the MCP server on stdio."""
    from uptier.mcp_server import main

    main()


if __name__ == "__main__":
    app()
