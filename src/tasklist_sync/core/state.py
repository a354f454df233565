# src/tasklist_sync/core/state.py

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..auth.verification import EmailVerificationFlow
from ..tasks.task_sync import TaskSyncController
from ..tasks.task_view import TaskCollectionView
from .ports import AuthSession, TaskStore


@dataclass
class AppState:
    """Everything a front-end needs for one user session, wired by cli.bootstrap."""

    settings: Any

    session: AuthSession
    store: TaskStore
    view: TaskCollectionView
    controller: TaskSyncController
    verification: EmailVerificationFlow

    # Async cleanup hooks (HTTP clients, ...) run on shutdown.
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)
