"""Critical path analysis over ``blocks`` edges.

Two separate metrics live here:

* the hours-based path (``find_longest_path`` / ``show_critical_path``),
  summing ``estimated_hours`` along a chain, used by the CLI;
* the depth ranking (``calculate_critical_path``), counting nodes along the
  longest downstream chain of every node, used by the viewer.

Both are the same walk with different weights: hours per task, or 1.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields

from pmac.graph import get_all_tasks, task_map
from pmac.models import ProjectBacklog, Task
from pmac.view import DependencyNode


@dataclass
class HoursPath:
    """A chain of task ids and the sum of their estimated hours."""

    tasks: list[str] = field(default_factory=list)
    total_hours: float = 0


@dataclass
class CriticalPathReport:
    entry_points: list[Task]
    path: HoursPath

    @property
    def total_hours(self) -> float:
        return self.path.total_hours


@dataclass
class _Frame:
    node_id: str
    targets: Iterator[str]
    best: HoursPath = field(default_factory=HoursPath)
    skipped: bool = False

    def consider(self, sub: HoursPath) -> None:
        # strict: on equal totals the earlier target stays
        if sub.total_hours > self.best.total_hours:
            self.best = sub


def _heaviest_chain(
    start: str,
    blocks: Mapping[str, list[str]],
    weight: Mapping[str, float],
    memo: dict[str, HoursPath],
) -> HoursPath:
    """Heaviest chain from *start* following *blocks*, walked with an explicit stack.

    Targets already on the current chain are skipped, unknown targets add
    nothing. A node's result goes into *memo* only when no skip happened
    beneath it; such a result does not depend on the chain that reached it.
    """
    if start not in blocks:
        return HoursPath()
    if start in memo:
        return memo[start]

    on_chain = {start}
    stack = [_Frame(start, iter(blocks[start]))]
    while True:
        frame = stack[-1]
        for target in frame.targets:
            if target in on_chain:
                frame.skipped = True
            elif target in memo:
                frame.consider(memo[target])
            elif target in blocks:
                on_chain.add(target)
                stack.append(_Frame(target, iter(blocks[target])))
                break
        else:
            stack.pop()
            on_chain.discard(frame.node_id)
            path = HoursPath(
                tasks=[frame.node_id, *frame.best.tasks],
                total_hours=weight[frame.node_id] + frame.best.total_hours,
            )
            if not frame.skipped:
                memo[frame.node_id] = path
            if not stack:
                return path
            stack[-1].consider(path)
            stack[-1].skipped |= frame.skipped


def _hours_graph(tasks: dict[str, Task]) -> tuple[dict[str, list[str]], dict[str, float]]:
    return (
        {tid: task.blocks for tid, task in tasks.items()},
        {tid: task.estimated_hours for tid, task in tasks.items()},
    )


def find_longest_path(backlog: ProjectBacklog, task_id: str) -> HoursPath:
    """Longest chain by hours starting at *task_id* and following ``blocks``.

    On equal totals the first ``blocks`` target wins. Targets already on the
    current chain are skipped so a cyclic ``blocks`` list still terminates.
    """
    blocks, hours = _hours_graph(task_map(backlog))
    return _heaviest_chain(task_id, blocks, hours, {})


def show_critical_path(backlog: ProjectBacklog) -> CriticalPathReport:
    """Entry points (tasks without dependencies) and the heaviest chain from any of them."""
    blocks, hours = _hours_graph(task_map(backlog))
    entry_points = [task for _, task in get_all_tasks(backlog) if not task.dependencies]

    memo: dict[str, HoursPath] = {}
    longest = HoursPath()
    for entry in entry_points:
        candidate = _heaviest_chain(entry.id, blocks, hours, memo)
        if candidate.total_hours > longest.total_hours:
            longest = candidate

    return CriticalPathReport(entry_points=entry_points, path=longest)


# ---------------------------------------------------------------------------
# Viewer depth ranking
# ---------------------------------------------------------------------------


@dataclass
class CriticalPathNode(DependencyNode):
    is_critical: bool = False
    longest_path_length: int = 0

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["isCritical"] = self.is_critical
        d["longestPathLength"] = self.longest_path_length
        return d


def calculate_critical_path(nodes: list[DependencyNode]) -> list[CriticalPathNode]:
    """Annotate every node with its longest downstream chain length (in nodes).

    Every node whose length equals the maximum is flagged critical.
    """
    blocks: dict[str, list[str]] = {}
    for node in nodes:
        blocks.setdefault(node.id, node.blocks)
    ones = dict.fromkeys(blocks, 1)

    memo: dict[str, HoursPath] = {}
    ranked = [
        CriticalPathNode(
            **{f.name: getattr(node, f.name) for f in fields(DependencyNode)},
            longest_path_length=len(_heaviest_chain(node.id, blocks, ones, memo).tasks),
        )
        for node in nodes
    ]
    if not ranked:
        return ranked

    max_length = max(n.longest_path_length for n in ranked)
    for node in ranked:
        node.is_critical = node.longest_path_length == max_length
    return ranked
