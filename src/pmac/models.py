"""Backlog model: tasks, phases and the project root."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class TaskStatus(enum.StrEnum):
    READY = "ready"
    IN_PROGRESS = "in_progress"
    TESTING = "testing"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(enum.StrEnum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_TASK_KEYS = {
    "id",
    "title",
    "status",
    "priority",
    "estimated_hours",
    "actual_hours",
    "assignee",
    "requirements",
    "acceptance_criteria",
    "dependencies",
    "blocks",
    "notes",
}

_PHASE_KEYS = {"title", "description", "status", "estimated_duration", "tasks"}

_BACKLOG_KEYS = {"metadata", "phases", "epic_summary", "risks"}


@dataclass
class Task:
    """A unit of tracked work.

    ``dependencies`` and ``blocks`` are independent lists; neither is
    derived from the other.
    """

    id: str
    title: str
    status: TaskStatus = TaskStatus.READY
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_hours: float = 8
    actual_hours: float | None = None
    assignee: str | None = None
    requirements: list[str] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)  # unknown keys, written back as-is

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "status": self.status.value,
            "priority": self.priority.value,
            "estimated_hours": self.estimated_hours,
        }
        if self.actual_hours is not None:
            d["actual_hours"] = self.actual_hours
        if self.assignee is not None:
            d["assignee"] = self.assignee
        d["requirements"] = list(self.requirements)
        if self.acceptance_criteria:
            d["acceptance_criteria"] = list(self.acceptance_criteria)
        d["dependencies"] = list(self.dependencies)
        d["blocks"] = list(self.blocks)
        d["notes"] = list(self.notes)
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Task:
        return cls(
            id=str(d["id"]),
            title=str(d["title"]),
            status=TaskStatus(d.get("status") or "ready"),
            priority=TaskPriority(d.get("priority") or "medium"),
            estimated_hours=d.get("estimated_hours", 8),
            actual_hours=d.get("actual_hours"),
            assignee=d.get("assignee"),
            requirements=list(d.get("requirements") or []),
            acceptance_criteria=list(d.get("acceptance_criteria") or []),
            dependencies=[str(x) for x in d.get("dependencies") or []],
            blocks=[str(x) for x in d.get("blocks") or []],
            notes=list(d.get("notes") or []),
            extra={k: v for k, v in d.items() if k not in _TASK_KEYS},
        )


@dataclass
class Phase:
    """A named, ordered group of tasks."""

    title: str
    description: str = ""
    status: str = ""
    estimated_duration: str = ""
    tasks: list[Task] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "estimated_duration": self.estimated_duration,
            "tasks": [t.to_dict() for t in self.tasks],
        }
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Phase:
        return cls(
            title=d.get("title", ""),
            description=d.get("description") or "",
            status=d.get("status") or "",
            estimated_duration=d.get("estimated_duration") or "",
            tasks=[Task.from_dict(t) for t in d.get("tasks") or []],
            extra={k: v for k, v in d.items() if k not in _PHASE_KEYS},
        )


@dataclass
class ProjectBacklog:
    """Root document. Phase insertion order is display order."""

    metadata: dict[str, Any] = field(default_factory=dict)
    phases: dict[str, Phase] = field(default_factory=dict)
    epic_summary: dict[str, Any] | None = None
    risks: dict[str, Any] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "metadata": dict(self.metadata),
            "phases": {name: p.to_dict() for name, p in self.phases.items()},
        }
        if self.epic_summary is not None:
            d["epic_summary"] = self.epic_summary
        if self.risks is not None:
            d["risks"] = self.risks
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ProjectBacklog:
        return cls(
            metadata=dict(d.get("metadata") or {}),
            phases={str(name): Phase.from_dict(p) for name, p in (d.get("phases") or {}).items()},
            epic_summary=d.get("epic_summary"),
            risks=d.get("risks"),
            extra={k: v for k, v in d.items() if k not in _BACKLOG_KEYS},
        )
