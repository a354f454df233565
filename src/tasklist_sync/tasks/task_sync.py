# src/tasklist_sync/tasks/task_sync.py

from __future__ import annotations

"""
Task sync controller.

Bridges the push-based remote store and the pull-based in-memory view:
- one background subscription per owner feeds every full snapshot into the view,
- user mutations (create / set_status / delete) are forwarded to the store.

Mutations are accepted only for the owner the list was opened for with start(),
and never touch the view. Their effect shows up with the next snapshot push,
so there is no read-after-write guarantee. Concurrent edits from other sessions are
resolved by the store (last write wins); no merge happens here.
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from ..auth.validation import validate_task_title
from ..core.errors import (
    NotAuthenticated,
    OperationTimeout,
    StoreSubscribeFailed,
    StoreWriteFailed,
    TaskListError,
)
from ..core.ports import AuthSession, TaskStore
from .task_models import Task, TaskDraft, TaskFilter, TaskStatus
from .task_view import TaskCollectionView

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[TaskListError], None]


class TaskSyncController:
    def __init__(
        self,
        store: TaskStore,
        session: AuthSession,
        view: TaskCollectionView,
        *,
        subscribe_timeout: float = 15.0,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self._view = view
        self._subscribe_timeout = float(subscribe_timeout)
        self._on_error = on_error

        self._runner: asyncio.Task[None] | None = None
        self._owner_id: str | None = None
        self._last_error: TaskListError | None = None

    # ---- state ----

    @property
    def view(self) -> TaskCollectionView:
        return self._view

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    @property
    def owner_id(self) -> str | None:
        return self._owner_id

    @property
    def last_error(self) -> TaskListError | None:
        return self._last_error

    # ---- subscription ----

    async def start(self, owner_id: str) -> None:
        """
        Open the standing subscription for owner_id.

        Returns once the first snapshot is applied, or once subscribe_timeout elapses
        (reported as OperationTimeout, the subscription keeps running).
        Raises StoreSubscribeFailed if the stream breaks before the first snapshot.
        """
        if not self._session.is_logged_in() or not owner_id:
            raise NotAuthenticated()

        await self.stop()

        first_snapshot: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._owner_id = owner_id
        self._last_error = None
        self._runner = asyncio.create_task(
            self._run_subscription(owner_id, first_snapshot),
            name=f"task-sync:{owner_id}",
        )
        logger.info("Task subscription started owner=%s", owner_id)

        try:
            await asyncio.wait_for(asyncio.shield(first_snapshot), timeout=self._subscribe_timeout)
        except asyncio.TimeoutError:
            # Later failures go to on_error instead of this future.
            first_snapshot.cancel()
            self._report(OperationTimeout("initial task subscription", self._subscribe_timeout))
        except StoreSubscribeFailed:
            self._owner_id = None
            self._runner = None
            raise

    async def stop(self) -> None:
        runner, owner_id = self._runner, self._owner_id
        self._runner = None
        self._owner_id = None
        if runner is None:
            return
        if not runner.done():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        logger.info("Task subscription stopped owner=%s", owner_id)

    async def reset(self) -> None:
        """Stop syncing and forget the last snapshot (the session identity changed)."""
        await self.stop()
        self._view.replace_all([])

    async def _run_subscription(self, owner_id: str, first_snapshot: asyncio.Future[None]) -> None:
        try:
            async for tasks in self._store.subscribe(owner_id):
                self._view.replace_all(tasks)
                if not first_snapshot.done():
                    first_snapshot.set_result(None)
            # A store closing the stream without an error still ends live updates.
            raise StoreSubscribeFailed("Task stream closed")
        except asyncio.CancelledError:
            raise
        except StoreSubscribeFailed as e:
            self._fail_subscription(e, first_snapshot)
        except Exception as e:
            logger.exception("Task subscription crashed owner=%s", owner_id)
            self._fail_subscription(StoreSubscribeFailed(str(e) or e.__class__.__name__), first_snapshot)

    def _fail_subscription(self, error: StoreSubscribeFailed, first_snapshot: asyncio.Future[None]) -> None:
        logger.warning("Failed to load tasks: %s", error.reason)
        if not first_snapshot.done():
            # start() is still waiting and re-raises it to its caller.
            self._last_error = error
            first_snapshot.set_exception(error)
            return
        self._report(error)

    def _report(self, error: TaskListError) -> None:
        self._last_error = error
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("on_error callback failed")

    # ---- view pass-throughs ----

    def set_filter(self, task_filter: TaskFilter) -> None:
        self._view.set_filter(task_filter)

    def set_query(self, query: str | None) -> None:
        self._view.set_query(query)

    # ---- mutations ----

    def _require_owner(self) -> str:
        owner_id = self._session.current_user_id() if self._session.is_logged_in() else ""
        if not owner_id:
            raise NotAuthenticated()
        # Only the owner whose list was opened by start() may write to it.
        if owner_id != self._owner_id:
            raise NotAuthenticated("Task list is not open for the current user")
        return owner_id

    async def create(self, draft: TaskDraft) -> str:
        """
        Persist a new task and return its id.

        The view is not updated here; the task appears with the next snapshot.
        """
        validate_task_title(draft.title).raise_for_failure()
        owner_id = self._require_owner()

        try:
            task_id = await self._store.generate_id(owner_id)
        except StoreWriteFailed:
            logger.warning("Failed to generate task id owner=%s", owner_id)
            raise
        if not task_id:
            raise StoreWriteFailed("Failed to generate task ID")

        task = Task.from_draft(draft, owner_id=owner_id)
        task.id = task_id

        logger.debug("Adding task id=%s owner=%s", task_id, owner_id)
        try:
            await self._store.write(owner_id, task_id, task.to_record())
        except StoreWriteFailed as e:
            logger.warning("Failed to add task id=%s: %s", task_id, e.reason)
            raise
        logger.info("Task added id=%s", task_id)
        return task_id

    async def set_status(self, task_id: str, completed: bool) -> None:
        owner_id = self._require_owner()
        status = TaskStatus.COMPLETED if completed else TaskStatus.PENDING

        try:
            await self._store.write_field(owner_id, task_id, "status", status.value)
        except StoreWriteFailed as e:
            logger.warning("Failed to update task %s status: %s", task_id, e.reason)
            raise
        logger.info("Task %s -> %s", task_id, status.value)

    async def delete(self, task_id: str) -> None:
        owner_id = self._require_owner()

        try:
            await self._store.remove(owner_id, task_id)
        except StoreWriteFailed as e:
            logger.warning("Failed to delete task %s: %s", task_id, e.reason)
            raise
        logger.info("Task deleted id=%s", task_id)
