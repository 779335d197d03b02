import re

from pmac.graph import find_task
from pmac.models import Phase, ProjectBacklog, Task, TaskPriority, TaskStatus
from pmac.mutations import (
    ResultKind,
    TaskAttribute,
    add_dependency,
    add_note,
    bulk_update_phase,
    create_task,
    move_task,
    note_timestamp,
    parse_list_input,
    remove_dependency,
    set_attribute,
    suggest_task_ids,
    update_status,
)

NOTE_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \S+: (.*)$")


def _backlog() -> ProjectBacklog:
    return ProjectBacklog(
        metadata={"project": "test", "version": "1.0.0"},
        phases={
            "phaseA": Phase(
                title="Phase A",
                tasks=[
                    Task("A-1", "first", estimated_hours=5, blocks=["A-2"]),
                    Task("A-2", "second", estimated_hours=3, dependencies=["A-1"]),
                ],
            ),
            "phaseB": Phase(title="Phase B", tasks=[Task("B-1", "third")]),
        },
    )


def _note_text(note: str) -> str:
    m = NOTE_RE.match(note)
    assert m, note
    return m.group(1)


def test_note_timestamp_format():
    assert re.match(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} \S+$", note_timestamp())


def test_create_task():
    backlog = _backlog()
    result = create_task(backlog, "T-1", "x", "phaseA", TaskPriority.HIGH, 12)
    assert result.ok

    task = backlog.phases["phaseA"].tasks[-1]
    assert task.id == "T-1"
    assert task.status == TaskStatus.READY
    assert task.priority == TaskPriority.HIGH
    assert task.estimated_hours == 12
    assert task.dependencies == [] and task.blocks == [] and task.requirements == []
    assert len(task.notes) == 1
    assert _note_text(task.notes[0]) == "Task created via pmac CLI"


def test_create_task_id_collision_across_phases():
    backlog = _backlog()
    assert create_task(backlog, "T-1", "x", "phaseA").ok

    result = create_task(backlog, "T-1", "y", "phaseB")
    assert not result.ok
    assert result.kind == ResultKind.CONFLICT
    assert "T-1 already exists in phase phaseA" in result.message
    assert "T-2" in result.details[0]
    assert [t.id for t in backlog.phases["phaseB"].tasks] == ["B-1"]


def test_create_task_unknown_phase_lists_available():
    backlog = _backlog()
    result = create_task(backlog, "T-1", "x", "nowhere")
    assert result.kind == ResultKind.NOT_FOUND
    assert result.details == ["Available phases: phaseA, phaseB"]


def test_create_task_rejects_bad_hours():
    backlog = _backlog()
    result = create_task(backlog, "T-1", "x", "phaseA", estimated_hours=0)
    assert result.kind == ResultKind.INVALID
    assert find_task(backlog, "T-1") is None


def test_suggest_task_ids_skips_taken():
    backlog = _backlog()
    backlog.phases["phaseB"].tasks.append(Task("A-3", "taken"))
    assert suggest_task_ids(backlog, "A-1") == ["A-4", "A-1-A", "A-1-B"]
    assert suggest_task_ids(backlog, "SETUP") == ["SETUP-A", "SETUP-B", "SETUP-C"]
    assert suggest_task_ids(backlog, "API-009", count=1) == ["API-010"]


def test_update_status_any_transition():
    backlog = _backlog()
    assert update_status(backlog, "A-1", TaskStatus.COMPLETED).ok
    assert update_status(backlog, "A-1", TaskStatus.READY, "reopened").ok

    task = find_task(backlog, "A-1").task
    assert task.status == TaskStatus.READY
    assert [_note_text(n) for n in task.notes] == ["reopened"]


def test_update_status_missing_task():
    result = update_status(_backlog(), "NOPE", TaskStatus.COMPLETED)
    assert not result.ok
    assert result.kind == ResultKind.NOT_FOUND
    assert result.message == "Task NOPE not found"


def test_add_note():
    backlog = _backlog()
    assert add_note(backlog, "B-1", "looked into it").ok
    assert _note_text(find_task(backlog, "B-1").task.notes[-1]) == "looked into it"
    assert add_note(backlog, "NOPE", "x").kind == ResultKind.NOT_FOUND


def test_set_priority_and_hours():
    backlog = _backlog()
    task = find_task(backlog, "A-1").task

    assert set_attribute(backlog, "A-1", TaskAttribute.PRIORITY, "critical").ok
    assert task.priority == TaskPriority.CRITICAL
    assert _note_text(task.notes[-1]) == "Priority changed from medium to critical"

    assert set_attribute(backlog, "A-1", TaskAttribute.ESTIMATED_HOURS, "2.5").ok
    assert task.estimated_hours == 2.5
    assert _note_text(task.notes[-1]) == "Estimated hours changed from 5 to 2.5"


def test_set_attribute_rejects_bad_values():
    backlog = _backlog()
    task = find_task(backlog, "A-1").task

    result = set_attribute(backlog, "A-1", TaskAttribute.PRIORITY, "urgent")
    assert result.kind == ResultKind.INVALID
    assert result.message == "Priority must be: critical, high, medium, or low"

    for bad in ("0", "-3", "lots", "nan"):
        result = set_attribute(backlog, "A-1", TaskAttribute.ESTIMATED_HOURS, bad)
        assert result.kind == ResultKind.INVALID

    assert task.priority == TaskPriority.MEDIUM
    assert task.estimated_hours == 5
    assert task.notes == []


def test_set_unknown_attribute():
    backlog = _backlog()
    result = set_attribute(backlog, "A-1", "colour", "blue")
    assert result.kind == ResultKind.INVALID
    assert find_task(backlog, "A-1").task.notes == []


def test_set_text_attributes():
    backlog = _backlog()
    task = find_task(backlog, "B-1").task

    set_attribute(backlog, "B-1", TaskAttribute.TITLE, "renamed")
    assert task.title == "renamed"
    assert _note_text(task.notes[-1]) == 'Title changed from "third" to "renamed"'

    set_attribute(backlog, "B-1", TaskAttribute.ASSIGNEE, "sam")
    assert task.assignee == "sam"
    assert _note_text(task.notes[-1]) == "Assignee changed from unassigned to sam"


def test_set_list_attributes():
    backlog = _backlog()
    task = find_task(backlog, "B-1").task

    set_attribute(backlog, "B-1", TaskAttribute.DEPENDENCIES, " A-1, ,A-2,A-1 ")
    assert task.dependencies == ["A-1", "A-2"]

    set_attribute(backlog, "B-1", TaskAttribute.BLOCKS, "")
    assert task.blocks == []
    assert _note_text(task.notes[-1]) == "Blocks updated to: none"

    set_attribute(backlog, "B-1", TaskAttribute.REQUIREMENTS, "fast, safe")
    assert task.requirements == ["fast", "safe"]
    assert _note_text(task.notes[-1]) == "Requirements updated (2 items)"


def test_set_dependencies_rejects_cycle():
    backlog = _backlog()
    result = set_attribute(backlog, "A-1", TaskAttribute.DEPENDENCIES, "B-1,A-2")
    assert result.kind == ResultKind.CYCLE
    assert find_task(backlog, "A-1").task.dependencies == []


def test_set_attribute_does_not_mirror_edges():
    backlog = _backlog()
    set_attribute(backlog, "B-1", TaskAttribute.DEPENDENCIES, "A-1")
    assert "B-1" not in find_task(backlog, "A-1").task.blocks


def test_add_dependency():
    backlog = _backlog()
    result = add_dependency(backlog, "B-1", "A-2")
    assert result.ok
    task = find_task(backlog, "B-1").task
    assert task.dependencies == ["A-2"]
    assert _note_text(task.notes[-1]) == "Added dependency on A-2"
    # blocks is not mirrored
    assert find_task(backlog, "A-2").task.blocks == []


def test_add_dependency_rejections():
    backlog = _backlog()
    assert add_dependency(backlog, "NOPE", "A-1").kind == ResultKind.NOT_FOUND

    result = add_dependency(backlog, "A-1", "NOPE")
    assert result.message == "Dependency task NOPE not found"

    result = add_dependency(backlog, "A-2", "A-1")
    assert result.kind == ResultKind.CONFLICT
    assert result.message == "A-2 already depends on A-1"


def test_add_dependency_rejects_cycle():
    backlog = _backlog()
    before = backlog.to_dict()

    result = add_dependency(backlog, "A-1", "A-2")
    assert result.kind == ResultKind.CYCLE
    assert "circular dependency" in result.message
    assert backlog.to_dict() == before

    assert add_dependency(backlog, "A-1", "A-1").kind == ResultKind.CYCLE


def test_remove_dependency():
    backlog = _backlog()
    assert remove_dependency(backlog, "A-2", "A-1").ok
    task = find_task(backlog, "A-2").task
    assert task.dependencies == []
    assert _note_text(task.notes[-1]) == "Removed dependency on A-1"

    result = remove_dependency(backlog, "A-2", "A-1")
    assert result.kind == ResultKind.NOT_FOUND
    assert result.message == "A-2 does not depend on A-1"


def test_move_task_to_position():
    backlog = _backlog()
    result = move_task(backlog, "A-1", "phaseB", 0)
    assert result.ok
    assert [t.id for t in backlog.phases["phaseB"].tasks] == ["A-1", "B-1"]
    assert [t.id for t in backlog.phases["phaseA"].tasks] == ["A-2"]
    assert find_task(backlog, "A-1").phase == "phaseB"
    assert _note_text(find_task(backlog, "A-1").task.notes[-1]) == "Moved from phaseA to phaseB"


def test_move_task_clamps_or_appends():
    backlog = _backlog()
    move_task(backlog, "A-1", "phaseB", 99)
    assert [t.id for t in backlog.phases["phaseB"].tasks] == ["B-1", "A-1"]

    move_task(backlog, "A-2", "phaseB", -5)
    assert [t.id for t in backlog.phases["phaseB"].tasks] == ["A-2", "B-1", "A-1"]

    move_task(backlog, "B-1", "phaseA")
    assert [t.id for t in backlog.phases["phaseA"].tasks] == ["B-1"]


def test_move_task_rejections():
    backlog = _backlog()
    before = backlog.to_dict()
    assert move_task(backlog, "NOPE", "phaseB").kind == ResultKind.NOT_FOUND
    assert move_task(backlog, "A-1", "nowhere").kind == ResultKind.NOT_FOUND

    result = move_task(backlog, "A-1", "phaseA")
    assert result.kind == ResultKind.CONFLICT
    assert result.message == "Task A-1 is already in phase phaseA"
    assert backlog.to_dict() == before


def test_bulk_update_phase():
    backlog = _backlog()
    result = bulk_update_phase(backlog, "phaseA", TaskStatus.TESTING)
    assert result.ok
    for task in backlog.phases["phaseA"].tasks:
        assert task.status == TaskStatus.TESTING
        assert [_note_text(n) for n in task.notes] == ["Bulk status update to testing"]
    assert backlog.phases["phaseB"].tasks[0].status == TaskStatus.READY

    assert bulk_update_phase(backlog, "nowhere", TaskStatus.TESTING).kind == ResultKind.NOT_FOUND


def test_parse_list_input():
    assert parse_list_input("a, b,,c ") == ["a", "b", "c"]
    assert parse_list_input("   ") == []
