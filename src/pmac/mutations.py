"""Edits to a backlog.

Every operation takes the backlog it edits, changes it in place only when
all preconditions hold, and reports the outcome as a ``MutationResult``.
Expected failures (unknown ids, conflicts, cycles, bad values) never raise.
Each applied change appends a timestamped audit note to the task it touches.
"""

from __future__ import annotations

import enum
import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from pmac.graph import find_task, would_create_cycle
from pmac.models import ProjectBacklog, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

NOTE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"


class ResultKind(enum.StrEnum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    CYCLE = "cycle"
    INVALID = "invalid"


class _CircularDependency(ValueError):
    pass


class TaskAttribute(enum.StrEnum):
    PRIORITY = "priority"
    ESTIMATED_HOURS = "estimated_hours"
    TITLE = "title"
    ASSIGNEE = "assignee"
    DEPENDENCIES = "dependencies"
    BLOCKS = "blocks"
    REQUIREMENTS = "requirements"


@dataclass
class MutationResult:
    ok: bool
    message: str
    kind: ResultKind | None = None
    details: list[str] = field(default_factory=list)


def _applied(message: str) -> MutationResult:
    return MutationResult(ok=True, message=message)


def _rejected(kind: ResultKind, message: str, details: list[str] | None = None) -> MutationResult:
    logger.debug("Rejected (%s): %s", kind, message)
    return MutationResult(ok=False, message=message, kind=kind, details=details or [])


def note_timestamp(now: datetime | None = None) -> str:
    """Local date-time with timezone abbreviation, e.g. ``2025-01-31 14:05:09 CET``."""
    if now is None:
        now = datetime.now()
    return now.astimezone().strftime(NOTE_TIMESTAMP_FORMAT)


def _append_note(task: Task, description: str) -> None:
    task.notes.append(f"{note_timestamp()}: {description}")


def _task_not_found(task_id: str) -> MutationResult:
    return _rejected(ResultKind.NOT_FOUND, f"Task {task_id} not found")


def _phase_not_found(backlog: ProjectBacklog, phase: str) -> MutationResult:
    return _rejected(
        ResultKind.NOT_FOUND,
        f"Phase '{phase}' not found",
        [f"Available phases: {', '.join(backlog.phases) or 'none'}"],
    )


def parse_list_input(value: str) -> list[str]:
    """Split comma-separated input, trimming items and dropping empty ones."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_hours(value: str | float) -> float:
    """Positive, finite number of hours. Raises ValueError otherwise."""
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise ValueError("Estimated hours must be a positive number") from None
    if not math.isfinite(hours) or hours <= 0:
        raise ValueError("Estimated hours must be a positive number")
    return int(hours) if hours.is_integer() else hours


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def suggest_task_ids(backlog: ProjectBacklog, task_id: str, count: int = 3) -> list[str]:
    """Unused ids close to *task_id*: next numeric suffix first, then letter suffixes."""
    taken = {t.id for p in backlog.phases.values() for t in p.tasks}
    suggestions: list[str] = []

    m = re.match(r"^(.*?)(\d+)$", task_id)
    if m:
        prefix, digits = m.groups()
        n = int(digits) + 1
        while f"{prefix}{str(n).zfill(len(digits))}" in taken:
            n += 1
        suggestions.append(f"{prefix}{str(n).zfill(len(digits))}")

    for letter in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
        if len(suggestions) >= count:
            break
        candidate = f"{task_id}-{letter}"
        if candidate not in taken:
            suggestions.append(candidate)
    return suggestions


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def create_task(
    backlog: ProjectBacklog,
    task_id: str,
    title: str,
    phase: str,
    priority: TaskPriority = TaskPriority.MEDIUM,
    estimated_hours: float | str = 8,
) -> MutationResult:
    """Append a new ``ready`` task to *phase*. Ids are unique across all phases."""
    if phase not in backlog.phases:
        return _phase_not_found(backlog, phase)

    existing = find_task(backlog, task_id)
    if existing is not None:
        suggestions = suggest_task_ids(backlog, task_id)
        return _rejected(
            ResultKind.CONFLICT,
            f"Task {task_id} already exists in phase {existing.phase}",
            [f"Try one of: {', '.join(suggestions)}"],
        )

    try:
        hours = parse_hours(estimated_hours)
        priority = TaskPriority(priority)
    except ValueError as e:
        return _rejected(ResultKind.INVALID, str(e))

    task = Task(id=task_id, title=title, priority=priority, estimated_hours=hours)
    _append_note(task, "Task created via pmac CLI")
    backlog.phases[phase].tasks.append(task)
    return _applied(f"Created task {task_id}: {title} in phase {phase}")


def update_status(
    backlog: ProjectBacklog,
    task_id: str,
    status: TaskStatus,
    note: str | None = None,
) -> MutationResult:
    """Set a task's stored status. Any transition is allowed."""
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)

    loc.task.status = TaskStatus(status)
    if note:
        _append_note(loc.task, note)
    return _applied(f"Updated {task_id} status to {loc.task.status}")


def add_note(backlog: ProjectBacklog, task_id: str, note: str) -> MutationResult:
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)
    _append_note(loc.task, note)
    return _applied(f"Added note to {task_id}: {note}")


def _set_priority(backlog: ProjectBacklog, task: Task, value: str) -> str:
    try:
        priority = TaskPriority(value)
    except ValueError:
        raise ValueError("Priority must be: critical, high, medium, or low") from None
    old = task.priority
    task.priority = priority
    return f"Priority changed from {old} to {priority}"


def _set_estimated_hours(backlog: ProjectBacklog, task: Task, value: str) -> str:
    hours = parse_hours(value)
    old = task.estimated_hours
    task.estimated_hours = hours
    return f"Estimated hours changed from {old} to {hours}"


def _set_title(backlog: ProjectBacklog, task: Task, value: str) -> str:
    old = task.title
    task.title = value
    return f'Title changed from "{old}" to "{value}"'


def _set_assignee(backlog: ProjectBacklog, task: Task, value: str) -> str:
    old = task.assignee or "unassigned"
    task.assignee = value
    return f"Assignee changed from {old} to {value}"


def _set_dependencies(backlog: ProjectBacklog, task: Task, value: str) -> str:
    deps = _unique(parse_list_input(value))
    for dep in deps:
        if would_create_cycle(backlog, task.id, dep):
            raise _CircularDependency(f"Depending on {dep} would create a circular dependency")
    task.dependencies = deps
    return f"Dependencies updated to: {', '.join(deps) or 'none'}"


def _set_blocks(backlog: ProjectBacklog, task: Task, value: str) -> str:
    task.blocks = _unique(parse_list_input(value))
    return f"Blocks updated to: {', '.join(task.blocks) or 'none'}"


def _set_requirements(backlog: ProjectBacklog, task: Task, value: str) -> str:
    task.requirements = parse_list_input(value)
    return f"Requirements updated ({len(task.requirements)} items)"


_SETTERS: dict[TaskAttribute, Callable[[ProjectBacklog, Task, str], str]] = {
    TaskAttribute.PRIORITY: _set_priority,
    TaskAttribute.ESTIMATED_HOURS: _set_estimated_hours,
    TaskAttribute.TITLE: _set_title,
    TaskAttribute.ASSIGNEE: _set_assignee,
    TaskAttribute.DEPENDENCIES: _set_dependencies,
    TaskAttribute.BLOCKS: _set_blocks,
    TaskAttribute.REQUIREMENTS: _set_requirements,
}


def set_attribute(
    backlog: ProjectBacklog,
    task_id: str,
    attribute: TaskAttribute,
    value: str,
) -> MutationResult:
    """Parse *value* for *attribute* and overwrite it.

    Setters validate before assigning, so a rejected value leaves the task
    untouched.
    """
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)

    try:
        attribute = TaskAttribute(attribute)
        description = _SETTERS[attribute](backlog, loc.task, value)
    except _CircularDependency as e:
        return _rejected(ResultKind.CYCLE, str(e))
    except ValueError as e:
        return _rejected(ResultKind.INVALID, str(e))

    _append_note(loc.task, description)
    return _applied(f"Updated {task_id} {attribute}: {description}")


def add_dependency(backlog: ProjectBacklog, task_id: str, dependency_id: str) -> MutationResult:
    """Make *task_id* depend on *dependency_id*, unless that closes a cycle."""
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)
    if find_task(backlog, dependency_id) is None:
        return _rejected(ResultKind.NOT_FOUND, f"Dependency task {dependency_id} not found")

    task = loc.task
    if dependency_id in task.dependencies:
        return _rejected(ResultKind.CONFLICT, f"{task_id} already depends on {dependency_id}")

    if would_create_cycle(backlog, task_id, dependency_id):
        return _rejected(
            ResultKind.CYCLE,
            f"Adding dependency {dependency_id} to {task_id} would create a circular dependency",
        )

    task.dependencies.append(dependency_id)
    _append_note(task, f"Added dependency on {dependency_id}")
    return _applied(f"Added dependency: {task_id} now depends on {dependency_id}")


def remove_dependency(backlog: ProjectBacklog, task_id: str, dependency_id: str) -> MutationResult:
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)

    task = loc.task
    if dependency_id not in task.dependencies:
        return _rejected(ResultKind.NOT_FOUND, f"{task_id} does not depend on {dependency_id}")

    task.dependencies = [d for d in task.dependencies if d != dependency_id]
    _append_note(task, f"Removed dependency on {dependency_id}")
    return _applied(f"Removed dependency: {task_id} no longer depends on {dependency_id}")


def move_task(
    backlog: ProjectBacklog,
    task_id: str,
    target_phase: str,
    position: int | None = None,
) -> MutationResult:
    """Move a task to another phase, at *position* (clamped) or at the end."""
    loc = find_task(backlog, task_id)
    if loc is None:
        return _task_not_found(task_id)
    if target_phase not in backlog.phases:
        return _phase_not_found(backlog, target_phase)
    if loc.phase == target_phase:
        return _rejected(ResultKind.CONFLICT, f"Task {task_id} is already in phase {target_phase}")

    task = backlog.phases[loc.phase].tasks.pop(loc.index)
    target_tasks = backlog.phases[target_phase].tasks
    if position is None:
        target_tasks.append(task)
    else:
        target_tasks.insert(max(0, min(position, len(target_tasks))), task)

    _append_note(task, f"Moved from {loc.phase} to {target_phase}")
    return _applied(f"Moved task {task_id} from {loc.phase} to {target_phase}")


def bulk_update_phase(backlog: ProjectBacklog, phase: str, status: TaskStatus) -> MutationResult:
    """Set *status* on every task in *phase*."""
    if phase not in backlog.phases:
        return _phase_not_found(backlog, phase)

    status = TaskStatus(status)
    tasks = backlog.phases[phase].tasks
    for task in tasks:
        task.status = status
        _append_note(task, f"Bulk status update to {status}")
    return _applied(f"Updated {len(tasks)} task(s) in phase '{phase}' to status '{status}'")
