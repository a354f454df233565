# src/tasklist_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the remote backend swappable (Firebase REST, in-memory) and makes testing easier.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol

from ..tasks.task_models import Task


class TaskStore(Protocol):
    """
    Hierarchical key-value store addressed by owner_id/task_id.

    subscribe() yields the complete collection of the owner on every change (never a diff)
    and raises StoreSubscribeFailed when the stream breaks.
    Mutations raise StoreWriteFailed.
    """

    def subscribe(self, owner_id: str) -> AsyncIterator[list[Task]]: ...

    async def generate_id(self, owner_id: str) -> str: ...

    async def write(self, owner_id: str, task_id: str, record: dict[str, Any]) -> None: ...

    async def write_field(self, owner_id: str, task_id: str, field: str, value: Any) -> None: ...

    async def remove(self, owner_id: str, task_id: str) -> None: ...


class AuthSession(Protocol):
    """
    Identity-service session.

    The flags reflect the last state fetched from the service; reload_session() refreshes them.
    """

    def is_logged_in(self) -> bool: ...
    def is_verified(self) -> bool: ...
    def current_email(self) -> str: ...
    def current_user_id(self) -> str: ...

    async def send_verification_email(self) -> None: ...
    async def reload_session(self) -> None: ...

    def logout(self) -> None: ...
    async def login(self, email: str, password: str) -> str: ...
    async def register(self, email: str, password: str, username: str) -> str: ...
