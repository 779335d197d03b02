"""Typer CLI for pmac."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from pmac.critical_path import calculate_critical_path, show_critical_path
from pmac.errors import BacklogError, BacklogNotFoundError
from pmac.graph import find_cycles, find_task, get_all_tasks, task_map, validate_dependencies
from pmac.log import setup_logging
from pmac.models import ProjectBacklog, TaskPriority, TaskStatus
from pmac.mutations import (
    MutationResult,
    TaskAttribute,
    add_dependency,
    add_note,
    bulk_update_phase,
    create_task,
    move_task,
    remove_dependency,
    set_attribute,
    update_status,
)
from pmac.persistence import DEFAULT_BACKLOG_FILE, Store
from pmac.status import effective_status
from pmac.view import filter_tasks, project_stats, tasks_with_phase, transform_for_ui

app = typer.Typer(
    name="pmac",
    help="Project management as code: track a YAML backlog of phases and tasks.",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)

_state = {"backlog": DEFAULT_BACKLOG_FILE}

STATUS_STYLES = {
    TaskStatus.READY: "cyan",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.TESTING: "magenta",
    TaskStatus.COMPLETED: "green",
    TaskStatus.BLOCKED: "bold red",
}

PRIORITY_STYLES = {
    TaskPriority.CRITICAL: "bold red",
    TaskPriority.HIGH: "yellow",
    TaskPriority.MEDIUM: "white",
    TaskPriority.LOW: "dim",
}


@app.callback()
def main(
    backlog: Annotated[
        str,
        typer.Option("--backlog", "-b", envvar="PMAC_BACKLOG", help="Path to the backlog YAML file"),
    ] = DEFAULT_BACKLOG_FILE,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", envvar="PMAC_DEBUG", help="Log debug details to stderr"),
    ] = False,
) -> None:
    """Project management as code."""
    _state["backlog"] = backlog
    setup_logging(verbose)
    logger.debug("Using backlog file: %s", backlog)


def _get_store() -> Store:
    return Store(_state["backlog"])


def _load(store: Store) -> ProjectBacklog:
    try:
        return store.load()
    except BacklogNotFoundError as e:
        console.print(f"[red]Backlog not found: {e.path}[/red]")
        console.print("[dim]Create project-backlog.yml or pass --backlog <path>.[/dim]")
        raise typer.Exit(1)
    except BacklogError as e:
        console.print(f"[red]Could not load backlog: {e}[/red]")
        raise typer.Exit(1)


def _complete_task_id(incomplete: str) -> list[str]:
    """Shell completion for task IDs. Matches against both ID and title."""
    try:
        backlog = Store(_state["backlog"]).load()
    except BacklogError:
        return []

    q = incomplete.lower()
    return [
        task.id
        for _, task in get_all_tasks(backlog)
        if q in task.id.lower() or q in task.title.lower()
    ]


def _complete_phase(incomplete: str) -> list[str]:
    try:
        backlog = Store(_state["backlog"]).load()
    except BacklogError:
        return []
    return [name for name in backlog.phases if name.startswith(incomplete)]


def _apply(store: Store, backlog: ProjectBacklog, result: MutationResult) -> None:
    """Persist and report an applied mutation; report a rejected one and leave the file alone."""
    if result.ok:
        store.save(backlog)
        console.print(f"[green]{result.message}[/green]")
        return

    console.print(f"[yellow]{result.message}[/yellow]")
    for line in result.details:
        console.print(f"  [dim]{line}[/dim]")


def _styled_status(status: TaskStatus) -> str:
    return f"[{STATUS_STYLES[status]}]{status.value}[/{STATUS_STYLES[status]}]"


# ---------------------------------------------------------------------------
# Read commands
# ---------------------------------------------------------------------------


@app.command("list")
def list_tasks(
    status_filter: Annotated[Optional[TaskStatus], typer.Option("--status", "-s", help="Filter by effective status")] = None,
    priority: Annotated[Optional[TaskPriority], typer.Option("--priority", "-p", help="Filter by priority")] = None,
    phase: Annotated[Optional[str], typer.Option("--phase", help="Filter by phase name", autocompletion=_complete_phase)] = None,
    search: Annotated[Optional[str], typer.Option("--search", "-q", help="Match id, title, requirements or acceptance criteria")] = None,
    hide_completed: Annotated[bool, typer.Option("--hide-completed", help="Hide completed tasks")] = False,
) -> None:
    """List tasks grouped by phase."""
    backlog = _load(_get_store())
    rows = tasks_with_phase(backlog)
    if not rows:
        console.print("No tasks found.")
        return

    filtered = filter_tasks(
        rows,
        status=status_filter,
        priority=priority,
        phase=phase,
        search=search,
        show_completed=not hide_completed,
    )
    if not filtered:
        console.print("No tasks match the filter.")
        return

    for phase_name, phase_obj in backlog.phases.items():
        phase_rows = [r for r in filtered if r.phase == phase_name]
        if not phase_rows:
            continue

        table = Table(title=f"{phase_obj.title} ({phase_name})", title_justify="left")
        table.add_column("ID")
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Priority")
        table.add_column("Hours")
        table.add_column("Depends On")
        table.add_column("Blocks")

        for row in phase_rows:
            t = row.task
            status_cell = _styled_status(row.shown_status)
            if row.shown_status != t.status:
                status_cell += f" [dim](stored: {t.status.value})[/dim]"
            table.add_row(
                t.id,
                t.title,
                status_cell,
                f"[{PRIORITY_STYLES[t.priority]}]{t.priority.value}[/{PRIORITY_STYLES[t.priority]}]",
                f"{t.estimated_hours:g}",
                ", ".join(t.dependencies) or "-",
                ", ".join(t.blocks) or "-",
            )
        console.print(table)

    if len(filtered) != len(rows):
        console.print(f"[dim]Showing {len(filtered)} of {len(rows)} tasks[/dim]")


@app.command()
def show(task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)]) -> None:
    """Show all details for a single task."""
    backlog = _load(_get_store())
    loc = find_task(backlog, task_id)
    if loc is None:
        console.print(f"[yellow]Task {task_id} not found[/yellow]")
        return

    t = loc.task
    all_tasks = [task for _, task in get_all_tasks(backlog)]
    shown = effective_status(t, all_tasks)

    console.print(f"\n[bold]{t.id}[/bold]  {t.title}")
    console.print(f"  Phase:      {loc.phase} ({backlog.phases[loc.phase].title})")
    status_line = _styled_status(shown)
    if shown != t.status:
        status_line += f" [dim](stored: {t.status.value})[/dim]"
    console.print(f"  Status:     {status_line}")
    console.print(f"  Priority:   {t.priority.value}")
    console.print(f"  Estimated:  {t.estimated_hours:g}h")
    if t.actual_hours is not None:
        console.print(f"  Actual:     {t.actual_hours:g}h")
    console.print(f"  Assignee:   {t.assignee or 'unassigned'}")
    console.print(f"  Depends on: {', '.join(t.dependencies) or 'none'}")
    console.print(f"  Blocks:     {', '.join(t.blocks) or 'none'}")

    for heading, items in (
        ("Requirements", t.requirements),
        ("Acceptance criteria", t.acceptance_criteria),
        ("Notes", t.notes),
    ):
        if items:
            console.print(f"\n  [dim]── {heading} ──[/dim]")
            for item in items:
                console.print(f"  - {item}", markup=False)
    console.print()


@app.command()
def phases() -> None:
    """List all phases and their details."""
    backlog = _load(_get_store())
    if not backlog.phases:
        console.print("No phases found.")
        return

    table = Table(title="Phases")
    table.add_column("Phase")
    table.add_column("Title")
    table.add_column("Description")
    table.add_column("Status")
    table.add_column("Duration")
    table.add_column("Tasks")

    for name, phase in backlog.phases.items():
        table.add_row(
            name,
            phase.title,
            phase.description,
            phase.status,
            phase.estimated_duration,
            str(len(phase.tasks)),
        )
    console.print(table)


@app.command()
def validate() -> None:
    """Validate dependency and blocks references and look for cycles."""
    backlog = _load(_get_store())
    issues = validate_dependencies(backlog)

    console.print("\n[bold underline]Dependency Validation[/bold underline]\n")
    if not issues:
        console.print("[green]All dependencies are valid[/green]")
        return

    console.print(f"[red]{len(issues)} issue(s) found:[/red]")
    for issue in issues:
        console.print(f"  [red]✗[/red] {issue.message}")

    cycles = find_cycles(backlog)
    if cycles:
        console.print("\n[bold]Cycles[/bold]")
        for cycle in cycles:
            console.print(f"  {' → '.join([*cycle, cycle[0]])}")


@app.command("critical-path")
def critical_path() -> None:
    """Show entry points and the longest chain of work by estimated hours."""
    backlog = _load(_get_store())
    report = show_critical_path(backlog)
    tasks = task_map(backlog)

    console.print("\n[bold]Entry Points (no dependencies)[/bold]")
    if not report.entry_points:
        console.print("  [dim]none[/dim]")
    for task in report.entry_points:
        console.print(f"  {_styled_status(task.status)}  [bold]{task.id}[/bold]  {task.title}  ({task.estimated_hours:g}h)")

    if not report.path.tasks:
        console.print("\nNo critical path found.")
        return

    table = Table(title="Critical Path")
    table.add_column("#")
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Hours")
    for i, tid in enumerate(report.path.tasks, 1):
        task = tasks[tid]
        table.add_row(str(i), tid, task.title, _styled_status(task.status), f"{task.estimated_hours:g}")
    console.print(table)
    console.print(f"\nTotal critical path duration: [bold]{report.total_hours:g}[/bold] hours")


@app.command("status")
def project_status() -> None:
    """Project overview: task counts and hours by phase."""
    backlog = _load(_get_store())
    stats = project_stats(backlog)

    table = Table(title=str(backlog.metadata.get("project") or "Project Status"))
    table.add_column("Phase")
    table.add_column("Tasks")
    table.add_column("Completed")
    table.add_column("In Progress")
    table.add_column("Blocked")
    table.add_column("Pending")
    table.add_column("Hours")

    for name, ps in stats.phase_stats.items():
        table.add_row(
            name,
            str(ps.total),
            str(ps.completed),
            str(ps.in_progress),
            str(ps.blocked),
            str(ps.pending),
            f"{ps.completed_hours:g}/{ps.total_hours:g}",
        )
    console.print(table)
    console.print(
        f"  Progress: {stats.completed_tasks}/{stats.total_tasks} tasks "
        f"({stats.completion_percentage:.0f}%), {stats.completed_hours:g}h of {stats.total_hours:g}h"
    )


@app.command("ui-data")
def ui_data() -> None:
    """Print the viewer's JSON feed: raw backlog content plus the derived projection."""
    store = _get_store()
    backlog = _load(store)
    data = transform_for_ui(backlog)
    view = data.to_dict()
    view["dependencyNodes"] = [n.to_dict() for n in calculate_critical_path(data.dependency_nodes)]

    payload = {
        "content": store.read_text(),
        "path": str(store.backlog_path.resolve()),
        "view": view,
    }
    typer.echo(json.dumps(payload, indent=2, default=str))


# ---------------------------------------------------------------------------
# Write commands
# ---------------------------------------------------------------------------


@app.command()
def create(
    task_id: str,
    title: str,
    phase: Annotated[str, typer.Argument(autocompletion=_complete_phase)],
    priority: Annotated[TaskPriority, typer.Argument(help="critical, high, medium or low")] = TaskPriority.MEDIUM,
    hours: Annotated[float, typer.Argument(help="Estimated hours")] = 8,
) -> None:
    """Create a new task in a phase."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, create_task(backlog, task_id, title, phase, priority, hours))


@app.command()
def update(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    status: TaskStatus,
    note: Annotated[Optional[str], typer.Argument(help="Optional note to record with the change")] = None,
) -> None:
    """Set a task's status, optionally recording a note."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, update_status(backlog, task_id, status, note))


@app.command()
def note(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    text: Annotated[list[str], typer.Argument(help="Note text")],
) -> None:
    """Append a timestamped note to a task."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, add_note(backlog, task_id, " ".join(text)))


@app.command("set")
def set_cmd(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    attribute: TaskAttribute,
    value: Annotated[list[str], typer.Argument(help="New value; lists are comma-separated")],
) -> None:
    """Update a task attribute.

    Lists (dependencies, blocks, requirements) are comma-separated,
    e.g. pmac set API-002 dependencies "API-001,INFRA-001".
    """
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, set_attribute(backlog, task_id, attribute, " ".join(value)))


@app.command()
def move(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    target_phase: Annotated[str, typer.Argument(autocompletion=_complete_phase)],
    position: Annotated[Optional[int], typer.Argument(help="Index in the target phase (default: end)")] = None,
) -> None:
    """Move a task to a different phase."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, move_task(backlog, task_id, target_phase, position))


@app.command("add-dep")
def add_dep(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    dependency_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
) -> None:
    """Make a task depend on another task."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, add_dependency(backlog, task_id, dependency_id))


@app.command("rm-dep")
def rm_dep(
    task_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
    dependency_id: Annotated[str, typer.Argument(autocompletion=_complete_task_id)],
) -> None:
    """Remove a dependency from a task."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, remove_dependency(backlog, task_id, dependency_id))


@app.command("bulk-phase")
def bulk_phase(
    phase: Annotated[str, typer.Argument(autocompletion=_complete_phase)],
    status: TaskStatus,
) -> None:
    """Set the status of every task in a phase."""
    store = _get_store()
    backlog = _load(store)
    _apply(store, backlog, bulk_update_phase(backlog, phase, status))
