# src/tasklist_sync/tasks/task_models.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    PENDING = "Pending"
    COMPLETED = "Completed"

    @classmethod
    def from_raw(cls, raw: Any) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(str(raw))
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def from_raw(cls, raw: Any) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw))
        except ValueError:
            return cls.MEDIUM


class TaskFilter(StrEnum):
    """Status filter selectable in the task list ("All" disables filtering)."""

    ALL = "All"
    PENDING = "Pending"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, raw: str) -> TaskFilter:
        """Case-insensitive lookup used by text front-ends."""
        key = (raw or "").strip().lower()
        for f in cls:
            if f.value.lower() == key:
                return f
        raise ValueError(f"Unknown filter: {raw!r} (expected one of: All, Pending, Completed)")


def now_ms() -> int:
    return int(time.time() * 1000)


def format_due_date(d: date) -> str:
    """Due dates travel as D/M/YYYY without zero padding."""
    return f"{d.day}/{d.month}/{d.year}"


@dataclass(slots=True, frozen=True)
class TaskDraft:
    """User-entered fields of a task that has not been created yet."""

    title: str
    description: str = ""
    due_date: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str = ""


@dataclass(slots=True)
class Task:
    title: str
    description: str = ""
    due_date: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str = ""
    owner_id: str = ""
    id: str = ""
    created_at: int = field(default_factory=now_ms)

    @property
    def persisted(self) -> bool:
        return bool(self.id)

    @property
    def completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @classmethod
    def from_draft(cls, draft: TaskDraft, *, owner_id: str) -> Task:
        return cls(
            title=draft.title.strip(),
            description=draft.description.strip(),
            due_date=draft.due_date.strip(),
            priority=draft.priority,
            status=TaskStatus.PENDING,
            assigned_to=draft.assigned_to.strip(),
            owner_id=owner_id,
        )

    def to_record(self) -> dict[str, Any]:
        """
        Store representation.

        The id is the record's key in the store, so it is not part of the record.
        """
        return {
            "title": self.title,
            "description": self.description,
            "dueDate": self.due_date,
            "priority": self.priority.value,
            "status": self.status.value,
            "assignedTo": self.assigned_to,
            "ownerId": self.owner_id,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_record(cls, task_id: str, data: dict[str, Any]) -> Task:
        created_raw = data.get("createdAt")
        try:
            created_at = int(created_raw) if created_raw is not None else 0
        except (TypeError, ValueError):
            created_at = 0

        return cls(
            id=str(task_id),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            due_date=str(data.get("dueDate") or ""),
            priority=TaskPriority.from_raw(data.get("priority")),
            status=TaskStatus.from_raw(data.get("status")),
            assigned_to=str(data.get("assignedTo") or ""),
            owner_id=str(data.get("ownerId") or ""),
            created_at=created_at,
        )


def tasks_from_collection(collection: Any) -> list[Task]:
    """
    Decode a `{task_id: record}` mapping delivered by a store.

    Order is the mapping's iteration order. Entries that are not objects are skipped.
    """
    if not collection:
        return []
    if not isinstance(collection, dict):
        logger.warning("Ignoring task collection of type %s", type(collection).__name__)
        return []

    out: list[Task] = []
    for key, record in collection.items():
        if not isinstance(record, dict):
            logger.warning("Skipping malformed task record key=%s", key)
            continue
        out.append(Task.from_record(str(key), record))
    return out
