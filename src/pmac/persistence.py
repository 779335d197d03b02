"""YAML file persistence for the project backlog."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import yaml

from pmac.errors import BacklogNotFoundError, BacklogParseError
from pmac.models import ProjectBacklog

DEFAULT_BACKLOG_FILE = "project-backlog.yml"

logger = logging.getLogger(__name__)

_LIST_KEYS = ("requirements", "acceptance_criteria", "dependencies", "blocks", "notes")


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def _check_structure(raw: Any, path: str) -> None:
    """Reject documents that cannot be turned into a ProjectBacklog."""
    if not isinstance(raw, dict):
        raise BacklogParseError("top-level document must be a mapping", path=path)

    phases = raw.get("phases")
    if not isinstance(phases, dict):
        raise BacklogParseError("phases is required and must be a mapping", path=path, location="phases")

    for name, phase in phases.items():
        where = f"phases.{name}"
        if not isinstance(phase, dict):
            raise BacklogParseError("phase must be a mapping", path=path, location=where)
        tasks = phase.get("tasks")
        if tasks is not None and not isinstance(tasks, list):
            raise BacklogParseError("tasks must be a list", path=path, location=f"{where}.tasks")
        for i, task in enumerate(tasks or []):
            task_where = f"{where}.tasks[{i}]"
            if not isinstance(task, dict):
                raise BacklogParseError("task must be a mapping", path=path, location=task_where)
            for key in ("id", "title"):
                if task.get(key) in (None, ""):
                    raise BacklogParseError(
                        f"{key} is required", path=path, location=f"{task_where}.{key}"
                    )
            # null is read as an empty list
            for key in _LIST_KEYS:
                if task.get(key) is not None and not isinstance(task[key], list):
                    raise BacklogParseError(
                        f"{key} must be a list", path=path, location=f"{task_where}.{key}"
                    )
            if "estimated_hours" in task and not _is_positive_number(task["estimated_hours"]):
                raise BacklogParseError(
                    "estimated_hours must be a positive number",
                    path=path,
                    location=f"{task_where}.estimated_hours",
                )


class Store:
    """Reads and writes the backlog document (YAML file)."""

    def __init__(self, backlog_path: str | Path = DEFAULT_BACKLOG_FILE):
        self.backlog_path = Path(backlog_path)

    def read_text(self) -> str:
        if not self.backlog_path.exists():
            raise BacklogNotFoundError("backlog file does not exist", path=str(self.backlog_path))
        return self.backlog_path.read_text(encoding="utf-8")

    def load(self) -> ProjectBacklog:
        """Parse the backlog file into a ProjectBacklog."""
        text = self.read_text()
        path = str(self.backlog_path)
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise BacklogParseError(f"invalid YAML: {e}", path=path) from e

        _check_structure(raw, path)
        try:
            backlog = ProjectBacklog.from_dict(raw)
        except ValueError as e:
            # Unknown status or priority values
            raise BacklogParseError(str(e), path=path) from e

        logger.debug("Loaded %d phase(s) from %s", len(backlog.phases), path)
        return backlog

    def save(self, backlog: ProjectBacklog) -> None:
        """Overwrite the backlog file with the given backlog."""
        text = yaml.safe_dump(
            backlog.to_dict(),
            sort_keys=False,
            allow_unicode=True,
            width=120,
            indent=2,
        )
        self.backlog_path.write_text(text, encoding="utf-8")
        logger.debug("Saved backlog to %s", self.backlog_path)
