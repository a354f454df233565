# tests/test_task_view.py

from __future__ import annotations

import itertools
import threading

from tasklist_sync.tasks.task_models import Task, TaskFilter, TaskStatus
from tasklist_sync.tasks.task_view import TaskCollectionView, derive

from .fakes import make_task


def _sample() -> list[Task]:
    return [
        make_task("a", "Buy milk", description="2 litres"),
        make_task("b", "Call mom", status="Completed"),
        make_task("c", "Write report", description="quarterly MILK numbers"),
        make_task("d", "Gym", status="Completed", description="legs"),
        make_task("e", "Pay rent"),
    ]


def test_filters_return_ordered_subsequence(view: TaskCollectionView) -> None:
    tasks = _sample()
    view.replace_all(tasks)

    for f in TaskFilter:
        view.set_filter(f)
        got = [t.id for t in view.derive()]
        if f == TaskFilter.ALL:
            expected = [t.id for t in tasks]
        else:
            expected = [t.id for t in tasks if t.status.value == f.value]
        assert got == expected
        assert [t.id for t in view.visible] == expected


def test_query_overrides_filter_and_is_case_insensitive(view: TaskCollectionView) -> None:
    view.replace_all(_sample())
    view.set_filter(TaskFilter.COMPLETED)

    view.set_query("milk")
    assert [t.id for t in view.visible] == ["a", "c"]
    assert view.active_filter == TaskFilter.COMPLETED

    view.set_query("")
    assert [t.id for t in view.visible] == ["b", "d"]


def test_set_filter_clears_query_and_is_idempotent(view: TaskCollectionView) -> None:
    view.replace_all(_sample())
    view.set_query("rent")
    view.set_filter(TaskFilter.PENDING)
    assert view.active_query == ""
    once = [t.id for t in view.visible]

    view.set_filter(TaskFilter.PENDING)
    assert [t.id for t in view.visible] == once == ["a", "c", "e"]


def test_replace_all_reapplies_active_view_and_drops_unpersisted(view: TaskCollectionView) -> None:
    view.set_filter(TaskFilter.PENDING)
    unsaved = Task(title="draft only")
    view.replace_all([make_task("x", "One"), unsaved, make_task("y", "Two", status="Completed")])

    assert [t.id for t in view.all_tasks] == ["x", "y"]
    assert [t.id for t in view.visible] == ["x"]
    assert view.get("y") is not None
    assert view.counts() == {TaskStatus.PENDING: 1, TaskStatus.COMPLETED: 1}


def test_listeners_receive_every_recompute(view: TaskCollectionView) -> None:
    seen: list[list[str]] = []

    def broken(_tasks) -> None:
        raise RuntimeError("boom")

    view.add_listener(broken)
    view.add_listener(lambda tasks: seen.append([t.id for t in tasks]))

    view.replace_all(_sample())
    view.set_filter(TaskFilter.COMPLETED)
    view.set_query("gym")

    assert seen == [["a", "b", "c", "d", "e"], ["b", "d"], ["d"]]


def test_derive_is_pure() -> None:
    tasks = _sample()
    before = [t.id for t in tasks]
    assert [t.id for t in derive(tasks, TaskFilter.PENDING, "")] == ["a", "c", "e"]
    assert [t.id for t in derive(tasks, TaskFilter.ALL, "CALL")] == ["b"]
    assert [t.id for t in tasks] == before


def test_derive_never_mixes_snapshots(view: TaskCollectionView) -> None:
    snap_a = [make_task(f"a{i}", f"A{i}") for i in range(50)]
    snap_b = [make_task(f"b{i}", f"B{i}") for i in range(50)]
    stop = threading.Event()
    mixed: list[set[str]] = []

    def writer() -> None:
        for snap in itertools.cycle([snap_a, snap_b]):
            if stop.is_set():
                return
            view.replace_all(snap)

    t = threading.Thread(target=writer)
    t.start()
    try:
        for _ in range(500):
            prefixes = {task.id[0] for task in view.derive()}
            if len(prefixes) > 1:
                mixed.append(prefixes)
    finally:
        stop.set()
        t.join()

    assert mixed == []
