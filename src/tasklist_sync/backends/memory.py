# src/tasklist_sync/backends/memory.py

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from ..core.errors import (
    AuthFailed,
    SessionReloadFailed,
    StoreSubscribeFailed,
    VerificationEmailFailed,
)
from ..tasks.task_models import Task, tasks_from_collection
from .push_ids import PushIdGenerator

logger = logging.getLogger(__name__)

_Message = list[Task] | StoreSubscribeFailed


class InMemoryTaskStore:
    """
    Process-local TaskStore.

    Used for offline runs and tests. Behaves like the realtime database:
    - subscribe() yields the full collection right away and again after every change
    - records are deep-copied on the way in and out
    - write_field() on a missing task creates a partial record (store semantics, no checks)
    """

    def __init__(self, *, latency_seconds: float = 0.0) -> None:
        self._latency = max(0.0, float(latency_seconds))
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscribers: dict[str, list[asyncio.Queue[_Message]]] = {}
        self._ids = PushIdGenerator()

    # ---- helpers ----

    async def _io(self) -> None:
        # Always yield to the loop so callers see a real suspension point.
        await asyncio.sleep(self._latency)

    def snapshot(self, owner_id: str) -> list[Task]:
        return tasks_from_collection(copy.deepcopy(self._data.get(owner_id, {})))

    def records(self, owner_id: str) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._data.get(owner_id, {}))

    def subscriber_count(self, owner_id: str) -> int:
        return len(self._subscribers.get(owner_id, []))

    def _notify(self, owner_id: str) -> None:
        queues = self._subscribers.get(owner_id, [])
        if not queues:
            return
        for q in queues:
            q.put_nowait(self.snapshot(owner_id))
        logger.debug("Pushed snapshot owner=%s subscribers=%d", owner_id, len(queues))

    def fail_subscribers(self, owner_id: str, reason: str) -> None:
        """Break every open stream of owner_id (e.g. permission revoked)."""
        for q in self._subscribers.get(owner_id, []):
            q.put_nowait(StoreSubscribeFailed(reason))

    # ---- TaskStore ----

    async def subscribe(self, owner_id: str) -> AsyncIterator[list[Task]]:
        queue: asyncio.Queue[_Message] = asyncio.Queue()
        self._subscribers.setdefault(owner_id, []).append(queue)
        queue.put_nowait(self.snapshot(owner_id))
        try:
            while True:
                msg = await queue.get()
                if isinstance(msg, StoreSubscribeFailed):
                    raise msg
                yield msg
        finally:
            subs = self._subscribers.get(owner_id, [])
            if queue in subs:
                subs.remove(queue)

    async def generate_id(self, owner_id: str) -> str:
        return self._ids.next_id()

    async def write(self, owner_id: str, task_id: str, record: dict[str, Any]) -> None:
        await self._io()
        self._data.setdefault(owner_id, {})[task_id] = copy.deepcopy(record)
        self._notify(owner_id)

    async def write_field(self, owner_id: str, task_id: str, field: str, value: Any) -> None:
        await self._io()
        self._data.setdefault(owner_id, {}).setdefault(task_id, {})[field] = copy.deepcopy(value)
        self._notify(owner_id)

    async def remove(self, owner_id: str, task_id: str) -> None:
        await self._io()
        tasks = self._data.get(owner_id)
        if tasks is not None:
            tasks.pop(task_id, None)
        self._notify(owner_id)


@dataclass(slots=True)
class _Account:
    user_id: str
    email: str
    password: str
    username: str
    verified: bool = False


class InMemoryAuthSession:
    """
    Process-local identity service + session.

    `is_verified()` reflects the account as of the last login / reload, like a real
    client-side session; mark_verified() only changes the server-side account.

    auto_verify=True confirms the account as soon as a verification email is "sent"
    (offline demo: the user still has to check the status to pick it up).
    """

    def __init__(self, *, auto_verify: bool = False, latency_seconds: float = 0.0) -> None:
        self._auto_verify = auto_verify
        self._latency = max(0.0, float(latency_seconds))
        self._accounts: dict[str, _Account] = {}
        self._current: _Account | None = None
        self._session_verified = False
        self.outbox: list[str] = []

    async def _io(self) -> None:
        await asyncio.sleep(self._latency)

    # ---- server-side helpers ----

    def mark_verified(self, email: str) -> None:
        account = self._accounts.get(email.lower())
        if account is None:
            raise KeyError(email)
        account.verified = True

    def username_of(self, user_id: str) -> str | None:
        for account in self._accounts.values():
            if account.user_id == user_id:
                return account.username
        return None

    # ---- AuthSession ----

    def is_logged_in(self) -> bool:
        return self._current is not None

    def is_verified(self) -> bool:
        return self._current is not None and self._session_verified

    def current_email(self) -> str:
        return self._current.email if self._current is not None else ""

    def current_user_id(self) -> str:
        return self._current.user_id if self._current is not None else ""

    async def register(self, email: str, password: str, username: str) -> str:
        await self._io()
        key = email.lower()
        if key in self._accounts:
            raise AuthFailed("The email address is already in use by another account.")
        if len(password) < 6:
            raise AuthFailed("The given password is invalid. Password should be at least 6 characters")

        account = _Account(user_id=uuid.uuid4().hex, email=email, password=password, username=username)
        self._accounts[key] = account
        self._current = account
        self._session_verified = False
        logger.info("User registered: %s", account.user_id)
        return account.user_id

    async def login(self, email: str, password: str) -> str:
        await self._io()
        account = self._accounts.get(email.lower())
        if account is None:
            raise AuthFailed("There is no user record corresponding to this identifier.")
        if account.password != password:
            raise AuthFailed("The password is invalid or the user does not have a password.")

        self._current = account
        self._session_verified = account.verified
        logger.info("User logged in: %s", account.user_id)
        return account.user_id

    def logout(self) -> None:
        self._current = None
        self._session_verified = False
        logger.info("User logged out")

    async def send_verification_email(self) -> None:
        await self._io()
        account = self._current
        if account is None:
            raise VerificationEmailFailed("No user is currently signed in")
        if account.verified and self._session_verified:
            logger.debug("Email already verified")
            return
        self.outbox.append(account.email)
        if self._auto_verify:
            account.verified = True

    async def reload_session(self) -> None:
        await self._io()
        account = self._current
        if account is None:
            raise SessionReloadFailed("User not logged in")
        self._session_verified = account.verified
