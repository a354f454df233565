# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklist_sync.backends.memory import InMemoryAuthSession, InMemoryTaskStore
from tasklist_sync.cli.bootstrap import create_initial_state
from tasklist_sync.core.state import AppState
from tasklist_sync.tasks.task_view import TaskCollectionView

from .fakes import FakeAuthSession, ScriptedTaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment / .env.
    """
    return SimpleNamespace(
        app_name="tasklist-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        backend="memory",
        firebase_api_key="",
        firebase_database_url="",
        offline_auto_verify=False,
        request_timeout_seconds=1.0,
        subscribe_timeout_seconds=1.0,
        verification_send_timeout_seconds=1.0,
        session_reload_timeout_seconds=1.0,
        resend_cooldown_seconds=60.0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState on the in-memory backend (real view / controller / flow)."""
    return create_initial_state(settings=settings)


@pytest.fixture()
def view() -> TaskCollectionView:
    return TaskCollectionView()


@pytest.fixture()
def session() -> FakeAuthSession:
    return FakeAuthSession()


@pytest.fixture()
def scripted_store() -> ScriptedTaskStore:
    return ScriptedTaskStore()


@pytest.fixture()
def memory_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def memory_auth() -> InMemoryAuthSession:
    return InMemoryAuthSession()
