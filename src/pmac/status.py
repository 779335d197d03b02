"""Displayed (effective) task status.

A ``ready`` task whose dependencies are not all completed is shown as
``blocked``. Stored status is never changed here.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pmac.models import Task, TaskStatus

_AUTHORITATIVE = {
    TaskStatus.BLOCKED,
    TaskStatus.COMPLETED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.TESTING,
}


def _index(all_tasks: Iterable[Task] | Mapping[str, Task]) -> Mapping[str, Task]:
    if isinstance(all_tasks, Mapping):
        return all_tasks
    index: dict[str, Task] = {}
    for task in all_tasks:
        index.setdefault(task.id, task)
    return index


def is_effectively_blocked(task: Task, all_tasks: Iterable[Task] | Mapping[str, Task]) -> bool:
    if task.status == TaskStatus.BLOCKED:
        return True
    if task.status in _AUTHORITATIVE:
        return False

    tasks = _index(all_tasks)
    for dep_id in task.dependencies:
        dep = tasks.get(dep_id)
        if dep is None or dep.status != TaskStatus.COMPLETED:
            return True
    return False


def effective_status(task: Task, all_tasks: Iterable[Task] | Mapping[str, Task]) -> TaskStatus:
    """Status to display for *task*, given every task in the backlog."""
    if is_effectively_blocked(task, all_tasks):
        return TaskStatus.BLOCKED
    return task.status
