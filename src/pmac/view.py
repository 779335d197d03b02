"""Read-only projections of a backlog for display and the viewer feed."""

from __future__ import annotations

from dataclasses import dataclass, field

from pmac.graph import get_all_tasks
from pmac.models import ProjectBacklog, Task, TaskPriority, TaskStatus
from pmac.status import effective_status


@dataclass
class TaskWithPhase:
    task: Task
    phase: str
    phase_title: str
    effective_status: TaskStatus | None = None

    @property
    def shown_status(self) -> TaskStatus:
        return self.effective_status or self.task.status

    def to_dict(self) -> dict:
        d = self.task.to_dict()
        d["phase"] = self.phase
        d["phaseTitle"] = self.phase_title
        if self.effective_status is not None:
            d["effectiveStatus"] = self.effective_status.value
        return d


@dataclass
class DependencyNode:
    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    phase: str
    dependencies: list[str]
    blocks: list[str]
    estimated_hours: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "phase": self.phase,
            "dependencies": list(self.dependencies),
            "blocks": list(self.blocks),
            "estimated_hours": self.estimated_hours,
        }


@dataclass(frozen=True)
class DependencyEdge:
    source: str
    target: str
    type: str  # dependency | blocking

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.target, "type": self.type}


@dataclass
class PhaseStats:
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    blocked: int = 0
    total_hours: float = 0
    completed_hours: float = 0

    def count(self, status: TaskStatus, hours: float) -> None:
        self.total_hours += hours
        if status == TaskStatus.COMPLETED:
            self.completed += 1
            self.completed_hours += hours
        elif status in (TaskStatus.IN_PROGRESS, TaskStatus.TESTING):
            self.in_progress += 1
        elif status == TaskStatus.BLOCKED:
            self.blocked += 1
        else:
            self.pending += 1

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "inProgress": self.in_progress,
            "pending": self.pending,
            "blocked": self.blocked,
            "totalHours": self.total_hours,
            "completedHours": self.completed_hours,
        }


@dataclass
class ProjectStats:
    total_tasks: int = 0
    completed_tasks: int = 0
    total_hours: float = 0
    completed_hours: float = 0
    phase_stats: dict[str, PhaseStats] = field(default_factory=dict)

    @property
    def completion_percentage(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.completed_tasks / self.total_tasks * 100

    def to_dict(self) -> dict:
        return {
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "totalHours": self.total_hours,
            "completedHours": self.completed_hours,
            "phaseStats": {name: s.to_dict() for name, s in self.phase_stats.items()},
            "completionPercentage": self.completion_percentage,
        }


@dataclass
class UIData:
    tasks_with_phase: list[TaskWithPhase]
    stats: ProjectStats
    dependency_nodes: list[DependencyNode]
    dependency_edges: list[DependencyEdge]

    def to_dict(self) -> dict:
        return {
            "tasksWithPhase": [t.to_dict() for t in self.tasks_with_phase],
            "stats": self.stats.to_dict(),
            "dependencyNodes": [n.to_dict() for n in self.dependency_nodes],
            "dependencyEdges": [e.to_dict() for e in self.dependency_edges],
        }


def _collect_stats(rows: list[TaskWithPhase], backlog: ProjectBacklog, use_effective: bool) -> ProjectStats:
    stats = ProjectStats(phase_stats={name: PhaseStats() for name in backlog.phases})
    for row in rows:
        status = row.shown_status if use_effective else row.task.status
        hours = row.task.estimated_hours
        phase = stats.phase_stats.setdefault(row.phase, PhaseStats())
        phase.total += 1
        phase.count(status, hours)

        stats.total_tasks += 1
        stats.total_hours += hours
        if status == TaskStatus.COMPLETED:
            stats.completed_tasks += 1
            stats.completed_hours += hours
    return stats


def tasks_with_phase(backlog: ProjectBacklog) -> list[TaskWithPhase]:
    """Every task paired with its phase and effective status."""
    rows = [
        TaskWithPhase(task=task, phase=name, phase_title=backlog.phases[name].title)
        for name, task in get_all_tasks(backlog)
    ]
    all_tasks = [row.task for row in rows]
    for row in rows:
        row.effective_status = effective_status(row.task, all_tasks)
    return rows


def project_stats(backlog: ProjectBacklog) -> ProjectStats:
    """Statistics counted by effective status."""
    return _collect_stats(tasks_with_phase(backlog), backlog, use_effective=True)


def transform_for_ui(backlog: ProjectBacklog) -> UIData:
    """Viewer projection: tasks with phase, stats by stored status, nodes and edges."""
    rows = [
        TaskWithPhase(task=task, phase=name, phase_title=backlog.phases[name].title)
        for name, task in get_all_tasks(backlog)
    ]

    nodes: list[DependencyNode] = []
    edges: list[DependencyEdge] = []
    for row in rows:
        task = row.task
        nodes.append(
            DependencyNode(
                id=task.id,
                title=task.title,
                status=task.status,
                priority=task.priority,
                phase=row.phase,
                dependencies=list(task.dependencies),
                blocks=list(task.blocks),
                estimated_hours=task.estimated_hours,
            )
        )
        for dep in task.dependencies:
            edges.append(DependencyEdge(source=dep, target=task.id, type="dependency"))
        for target in task.blocks:
            edges.append(DependencyEdge(source=task.id, target=target, type="blocking"))

    return UIData(
        tasks_with_phase=rows,
        stats=_collect_stats(rows, backlog, use_effective=False),
        dependency_nodes=nodes,
        dependency_edges=edges,
    )


def filter_tasks(
    rows: list[TaskWithPhase],
    status: TaskStatus | None = None,
    priority: TaskPriority | None = None,
    phase: str | None = None,
    search: str | None = None,
    show_completed: bool = True,
) -> list[TaskWithPhase]:
    """Viewer filter semantics. Status matches the effective status."""
    filtered = rows
    if status:
        filtered = [r for r in filtered if r.shown_status == status]
    if priority:
        filtered = [r for r in filtered if r.task.priority == priority]
    if phase:
        filtered = [r for r in filtered if r.phase == phase]
    if search:
        q = search.lower()
        filtered = [
            r
            for r in filtered
            if q in r.task.title.lower()
            or q in r.task.id.lower()
            or any(q in req.lower() for req in r.task.requirements)
            or any(q in c.lower() for c in r.task.acceptance_criteria)
        ]
    if not show_completed:
        filtered = [r for r in filtered if r.task.status != TaskStatus.COMPLETED]
    return filtered
