# tests/test_task_models.py

from __future__ import annotations

from datetime import date

import pytest

from tasklist_sync.tasks.task_models import (
    Task,
    TaskDraft,
    TaskFilter,
    TaskPriority,
    TaskStatus,
    format_due_date,
    tasks_from_collection,
)


def test_from_draft_trims_and_starts_pending() -> None:
    draft = TaskDraft(title="  Buy milk ", description=" 2l ", due_date=" 5/1/2026 ", assigned_to=" bob ")
    task = Task.from_draft(draft, owner_id="u1")

    assert task.title == "Buy milk"
    assert task.description == "2l"
    assert task.due_date == "5/1/2026"
    assert task.assigned_to == "bob"
    assert task.status == TaskStatus.PENDING
    assert task.owner_id == "u1"
    assert not task.persisted
    assert task.created_at > 0


def test_record_uses_store_field_names() -> None:
    task = Task(title="A", priority=TaskPriority.HIGH, owner_id="u1", id="t1", created_at=42)
    record = task.to_record()

    assert record == {
        "title": "A",
        "description": "",
        "dueDate": "",
        "priority": "High",
        "status": "Pending",
        "assignedTo": "",
        "ownerId": "u1",
        "createdAt": 42,
    }
    assert Task.from_record("t1", record) == task


def test_from_record_fills_defaults_for_missing_or_unknown_values() -> None:
    task = Task.from_record("t9", {"status": "Archived", "priority": "Urgent", "createdAt": "oops"})

    assert task.id == "t9"
    assert task.title == ""
    assert task.status == TaskStatus.PENDING
    assert task.priority == TaskPriority.MEDIUM
    assert task.created_at == 0


def test_tasks_from_collection_skips_malformed_entries() -> None:
    tasks = tasks_from_collection({"a": {"title": "A"}, "b": "junk", "c": {"title": "C", "status": "Completed"}})
    assert [(t.id, t.completed) for t in tasks] == [("a", False), ("c", True)]

    assert tasks_from_collection(None) == []
    assert tasks_from_collection(["not", "a", "mapping"]) == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("all", TaskFilter.ALL), ("Pending", TaskFilter.PENDING), (" COMPLETED ", TaskFilter.COMPLETED)],
)
def test_filter_parse(raw: str, expected: TaskFilter) -> None:
    assert TaskFilter.parse(raw) == expected


def test_filter_parse_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        TaskFilter.parse("done")


def test_format_due_date_has_no_padding() -> None:
    assert format_due_date(date(2026, 3, 9)) == "9/3/2026"
