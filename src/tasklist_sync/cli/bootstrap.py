# src/tasklist_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the backend (in-memory or Firebase) and wires it into AppState.
"""

from __future__ import annotations

import logging

from ..auth.verification import EmailVerificationFlow
from ..backends.firebase_auth import FirebaseAuthSession
from ..backends.firebase_db import FirebaseTaskStore
from ..backends.memory import InMemoryAuthSession, InMemoryTaskStore
from ..config import BACKEND_FIREBASE, BACKEND_MEMORY, get_settings
from ..core.errors import TaskListError
from ..core.ports import AuthSession, TaskStore
from ..core.state import AppState
from ..tasks.task_sync import ErrorCallback, TaskSyncController
from ..tasks.task_view import TaskCollectionView

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def _log_sync_error(error: TaskListError) -> None:
    logger.warning("Task sync error: %s", error)


def create_initial_state(*, settings=None, on_sync_error: ErrorCallback | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    session: AuthSession
    store: TaskStore
    closers = []

    backend = str(getattr(settings, "backend", BACKEND_MEMORY))
    if backend == BACKEND_FIREBASE:
        fb_session = FirebaseAuthSession(
            settings.firebase_api_key,
            database_url=settings.firebase_database_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        fb_store = FirebaseTaskStore(
            settings.firebase_database_url,
            fb_session.fresh_id_token,
            timeout_seconds=settings.request_timeout_seconds,
        )
        session, store = fb_session, fb_store
        closers.extend([fb_store.aclose, fb_session.aclose])
    elif backend == BACKEND_MEMORY:
        session = InMemoryAuthSession(auto_verify=settings.offline_auto_verify)
        store = InMemoryTaskStore()
    else:
        raise RuntimeError(f"Unknown backend {backend!r}. Use '{BACKEND_MEMORY}' or '{BACKEND_FIREBASE}'.")

    logger.info("Backend: %s", backend)

    view = TaskCollectionView()
    controller = TaskSyncController(
        store,
        session,
        view,
        subscribe_timeout=settings.subscribe_timeout_seconds,
        on_error=on_sync_error or _log_sync_error,
    )
    verification = EmailVerificationFlow(
        session,
        cooldown_seconds=settings.resend_cooldown_seconds,
        send_timeout=settings.verification_send_timeout_seconds,
        reload_timeout=settings.session_reload_timeout_seconds,
        on_session_change=controller.reset,
    )

    return AppState(
        settings=settings,
        session=session,
        store=store,
        view=view,
        controller=controller,
        verification=verification,
        closers=closers,
    )


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.controller.stop()
    except Exception:
        logger.exception("Failed to stop task subscription.")

    for close in state.closers:
        try:
            await close()
        except Exception:
            logger.debug("Closer failed.", exc_info=True)
