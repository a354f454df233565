# src/tasklist_sync/tasks/task_view.py

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from .task_models import Task, TaskFilter, TaskStatus

logger = logging.getLogger(__name__)

ViewListener = Callable[[list[Task]], None]


def derive(tasks: Iterable[Task], task_filter: TaskFilter, query: str) -> list[Task]:
    """
    Compute the visible subsequence of `tasks`.

    - non-empty query: title or description contains it (case-insensitive); the
      status filter is ignored while searching
    - filter All: every task
    - otherwise: tasks whose status equals the filter

    Order of `tasks` is preserved.
    """
    if query:
        q = query.lower()
        return [t for t in tasks if q in t.title.lower() or q in t.description.lower()]
    if task_filter == TaskFilter.ALL:
        return list(tasks)
    return [t for t in tasks if t.status.value == task_filter.value]


class TaskCollectionView:
    """
    In-memory mirror of the last snapshot delivered by the store.

    Only the sync controller calls replace_all(); presentation code calls
    set_filter() / set_query() and reads `visible`.

    Thread-safety:
    - every read and write of the snapshot goes through one RLock, so derive()
      never sees tasks from two different snapshots
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._all: tuple[Task, ...] = ()
        self._filter = TaskFilter.ALL
        self._query = ""
        self._visible: list[Task] = []
        self._listeners: list[ViewListener] = []

    # ---- state ----

    @property
    def all_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._all)

    @property
    def active_filter(self) -> TaskFilter:
        return self._filter

    @property
    def active_query(self) -> str:
        return self._query

    @property
    def visible(self) -> list[Task]:
        with self._lock:
            return list(self._visible)

    def get(self, task_id: str) -> Task | None:
        with self._lock:
            for t in self._all:
                if t.id == task_id:
                    return t
        return None

    def counts(self) -> dict[TaskStatus, int]:
        with self._lock:
            out = {s: 0 for s in TaskStatus}
            for t in self._all:
                out[t.status] += 1
            return out

    # ---- listeners ----

    def add_listener(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ViewListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # ---- operations ----

    def replace_all(self, tasks: Iterable[Task]) -> None:
        kept: list[Task] = []
        dropped = 0
        for t in tasks:
            if t.persisted:
                kept.append(t)
            else:
                dropped += 1
        if dropped:
            logger.warning("Dropped %d task(s) without id from snapshot", dropped)

        with self._lock:
            self._all = tuple(kept)
            self._recompute()
        logger.debug("Snapshot applied: %d tasks", len(kept))

    def set_filter(self, task_filter: TaskFilter) -> None:
        with self._lock:
            self._filter = task_filter
            self._query = ""
            self._recompute()

    def set_query(self, query: str | None) -> None:
        with self._lock:
            self._query = query or ""
            self._recompute()

    def derive(self) -> list[Task]:
        with self._lock:
            return derive(self._all, self._filter, self._query)

    def _recompute(self) -> None:
        # Caller holds the lock.
        self._visible = derive(self._all, self._filter, self._query)
        snapshot = list(self._visible)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("View listener failed")
