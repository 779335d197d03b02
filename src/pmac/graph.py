"""Task lookup, cycle detection and dependency validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import networkx as nx

from pmac.models import ProjectBacklog, Task

logger = logging.getLogger(__name__)


@dataclass
class TaskLocation:
    """Where a task lives: owning phase name and index within that phase."""

    phase: str
    index: int
    task: Task


@dataclass(frozen=True)
class DependencyIssue:
    task_id: str
    kind: str  # missing_dependency | missing_block | circular
    ref: str | None = None

    @property
    def message(self) -> str:
        if self.kind == "missing_dependency":
            return f"{self.task_id}: Dependency '{self.ref}' does not exist"
        if self.kind == "missing_block":
            return f"{self.task_id}: Blocks '{self.ref}' which does not exist"
        return f"{self.task_id}: Circular dependency detected"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def find_task(backlog: ProjectBacklog, task_id: str) -> TaskLocation | None:
    """Return the first task with *task_id*, scanning phases in order."""
    for phase_name, phase in backlog.phases.items():
        for index, task in enumerate(phase.tasks):
            if task.id == task_id:
                return TaskLocation(phase=phase_name, index=index, task=task)
    return None


def all_task_ids(backlog: ProjectBacklog) -> set[str]:
    return {task.id for phase in backlog.phases.values() for task in phase.tasks}


def get_all_tasks(backlog: ProjectBacklog) -> list[tuple[str, Task]]:
    """All tasks as (phase_name, task), phase order then position order."""
    return [(name, task) for name, phase in backlog.phases.items() for task in phase.tasks]


def task_map(backlog: ProjectBacklog) -> dict[str, Task]:
    """Id -> task. On duplicate ids the first occurrence wins, like find_task."""
    tasks: dict[str, Task] = {}
    for _, task in get_all_tasks(backlog):
        tasks.setdefault(task.id, task)
    return tasks


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------


def has_circular_dependency(backlog: ProjectBacklog, task_id: str) -> bool:
    """True if following ``dependencies`` from *task_id* re-enters the current path.

    Unknown ids end their branch.
    """
    return _reaches_cycle(task_map(backlog), task_id, {})


def _reaches_cycle(tasks: dict[str, Task], task_id: str, known: dict[str, bool]) -> bool:
    """Depth-first walk with an explicit stack and an on-path set.

    *known* maps task ids to whether a cycle is reachable from them. It is
    filled in as the walk settles each task, so callers may share it between
    walks over the same tasks.
    """
    if task_id not in tasks:
        return False
    if task_id in known:
        return known[task_id]

    on_path = {task_id}
    stack = [(task_id, iter(tasks[task_id].dependencies))]
    while stack:
        tid, deps = stack[-1]
        for dep in deps:
            if dep in on_path or known.get(dep):
                # every task on the path reaches this cycle too
                for path_id, _ in stack:
                    known[path_id] = True
                return True
            if dep in known or dep not in tasks:
                continue
            on_path.add(dep)
            stack.append((dep, iter(tasks[dep].dependencies)))
            break
        else:
            stack.pop()
            on_path.discard(tid)
            known[tid] = False
    return False


def would_create_cycle(backlog: ProjectBacklog, task_id: str, new_dependency_id: str) -> bool:
    """True if adding ``task_id -> new_dependency_id`` would close a cycle.

    That happens exactly when *new_dependency_id* already reaches *task_id*
    through existing ``dependencies`` edges (or is *task_id* itself).
    """
    tasks = task_map(backlog)
    visited: set[str] = set()
    stack = [new_dependency_id]

    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        if current == task_id:
            logger.debug("Edge %s -> %s would close a cycle", task_id, new_dependency_id)
            return True
        task = tasks.get(current)
        if task is not None:
            stack.extend(task.dependencies)

    return False


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_dependencies(backlog: ProjectBacklog) -> list[DependencyIssue]:
    """Collect every referential-integrity and cycle issue in the backlog.

    Issues are reported per task in phase order: missing dependencies,
    then missing blocks targets, then a circular-dependency flag.
    """
    ids = all_task_ids(backlog)
    tasks = task_map(backlog)
    known: dict[str, bool] = {}
    issues: list[DependencyIssue] = []

    for _, task in get_all_tasks(backlog):
        for dep in task.dependencies:
            if dep not in ids:
                issues.append(DependencyIssue(task.id, "missing_dependency", dep))
        for target in task.blocks:
            if target not in ids:
                issues.append(DependencyIssue(task.id, "missing_block", target))
        if _reaches_cycle(tasks, task.id, known):
            issues.append(DependencyIssue(task.id, "circular"))

    logger.debug("Dependency validation found %d issue(s)", len(issues))
    return issues


def build_dependency_graph(backlog: ProjectBacklog) -> nx.DiGraph:
    """Directed graph with an edge ``dep -> task`` for every resolvable dependency."""
    G = nx.DiGraph()
    tasks = task_map(backlog)
    for tid, task in tasks.items():
        G.add_node(tid, task=task)
    for tid, task in tasks.items():
        for dep in task.dependencies:
            if dep in tasks:
                G.add_edge(dep, tid)
    return G


def find_cycles(backlog: ProjectBacklog) -> list[list[str]]:
    """Every elementary dependency cycle, each as a list of task ids."""
    G = build_dependency_graph(backlog)
    return [list(cycle) for cycle in nx.simple_cycles(G)]
