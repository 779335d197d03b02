from pmac.models import Phase, ProjectBacklog, Task, TaskPriority, TaskStatus

RAW = {
    "metadata": {"project": "Demo", "version": "1.0.0", "owner": "ops"},
    "phases": {
        "foundation": {
            "title": "Foundation",
            "description": "Groundwork",
            "status": "in_progress",
            "estimated_duration": "2 weeks",
            "tasks": [
                {
                    "id": "CORE-001",
                    "title": "Schema",
                    "status": "testing",
                    "priority": "high",
                    "estimated_hours": 6,
                    "assignee": "kim",
                    "requirements": ["r1"],
                    "acceptance_criteria": ["a1"],
                    "dependencies": [],
                    "blocks": ["CORE-002"],
                    "notes": ["2025-01-01 10:00:00 UTC: created"],
                    "labels": ["backend"],
                },
            ],
            "owner": "team-a",
        },
    },
    "epic_summary": {"total_estimated_hours": 6},
    "risks": {"high": [{"risk": "scope", "mitigation": "cut"}]},
    "changelog": ["v1"],
}


def test_task_defaults():
    t = Task(id="T-1", title="Test")
    assert t.status == TaskStatus.READY
    assert t.priority == TaskPriority.MEDIUM
    assert t.estimated_hours == 8
    assert t.dependencies == []
    assert t.blocks == []
    assert t.notes == []


def test_backlog_from_dict():
    backlog = ProjectBacklog.from_dict(RAW)
    assert list(backlog.phases) == ["foundation"]

    phase = backlog.phases["foundation"]
    assert phase.title == "Foundation"
    assert phase.estimated_duration == "2 weeks"

    task = phase.tasks[0]
    assert task.status == TaskStatus.TESTING
    assert task.priority == TaskPriority.HIGH
    assert task.blocks == ["CORE-002"]
    assert task.assignee == "kim"
    assert task.extra == {"labels": ["backend"]}


def test_unknown_keys_survive_serialization():
    d = ProjectBacklog.from_dict(RAW).to_dict()
    assert d["changelog"] == ["v1"]
    assert d["risks"] == RAW["risks"]
    assert d["epic_summary"] == RAW["epic_summary"]
    assert d["phases"]["foundation"]["owner"] == "team-a"
    task = d["phases"]["foundation"]["tasks"][0]
    assert task["labels"] == ["backend"]
    assert task["status"] == "testing"


def test_task_to_dict_omits_unset_optionals():
    d = Task(id="T-1", title="x").to_dict()
    assert "assignee" not in d
    assert "actual_hours" not in d
    assert "acceptance_criteria" not in d
    assert d["dependencies"] == [] and d["blocks"] == [] and d["notes"] == []


def test_phase_order_is_preserved():
    backlog = ProjectBacklog(
        phases={
            "zeta": Phase(title="Z"),
            "alpha": Phase(title="A"),
        }
    )
    assert list(ProjectBacklog.from_dict(backlog.to_dict()).phases) == ["zeta", "alpha"]
