# tests/test_task_sync.py

from __future__ import annotations

import asyncio

import pytest

from tasklist_sync.backends.memory import InMemoryTaskStore
from tasklist_sync.core.errors import (
    NotAuthenticated,
    OperationTimeout,
    StoreSubscribeFailed,
    StoreWriteFailed,
    TaskListError,
    ValidationFailed,
)
from tasklist_sync.tasks.task_models import TaskDraft, TaskFilter, TaskStatus
from tasklist_sync.tasks.task_sync import TaskSyncController
from tasklist_sync.tasks.task_view import TaskCollectionView

from .fakes import FakeAuthSession, ScriptedTaskStore, make_task, wait_until


def _controller(store, session, view, **kwargs) -> tuple[TaskSyncController, list[TaskListError]]:
    errors: list[TaskListError] = []
    controller = TaskSyncController(store, session, view, on_error=errors.append, **kwargs)
    return controller, errors


@pytest.mark.asyncio
async def test_end_to_end_create_toggle_delete(
    memory_store: InMemoryTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, errors = _controller(memory_store, session, view)
    await controller.start(session.user_id)
    assert controller.running
    assert view.all_tasks == []

    # Scenario 1: create -> next push contains the task.
    task_id = await controller.create(TaskDraft(title="Buy milk"))
    await wait_until(lambda: view.get(task_id) is not None)
    view.set_filter(TaskFilter.PENDING)
    assert [t.id for t in view.visible] == [task_id]
    assert view.get(task_id).owner_id == session.user_id

    # Scenario 2: toggle -> Completed only.
    await controller.set_status(task_id, True)
    await wait_until(lambda: view.get(task_id).status == TaskStatus.COMPLETED)
    assert view.visible == []
    view.set_filter(TaskFilter.COMPLETED)
    assert [t.id for t in view.visible] == [task_id]

    # Scenario 3: delete -> gone under every filter.
    await controller.delete(task_id)
    await wait_until(lambda: view.get(task_id) is None)
    for f in TaskFilter:
        view.set_filter(f)
        assert view.visible == []

    await controller.stop()
    assert not controller.running
    assert memory_store.subscriber_count(session.user_id) == 0
    assert errors == []


@pytest.mark.asyncio
async def test_mutations_do_not_touch_view_before_push(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    scripted_store.ids = ["t1"]
    controller, _ = _controller(scripted_store, session, view)

    start = asyncio.create_task(controller.start(session.user_id))
    await wait_until(lambda: scripted_store.subscribers == 1)
    scripted_store.push([])
    await start

    assert await controller.create(TaskDraft(title="  Buy milk ", description="2l")) == "t1"
    await controller.set_status("t1", True)
    assert view.all_tasks == []

    call = scripted_store.calls[0]
    assert (call.op, call.owner_id, call.task_id) == ("write", "owner-1", "t1")
    assert call.payload["title"] == "Buy milk"
    assert call.payload["status"] == "Pending"
    assert call.payload["ownerId"] == "owner-1"
    assert scripted_store.calls[1].payload == ("status", "Completed")

    scripted_store.push([make_task("t1", "Buy milk", status="Completed")])
    await wait_until(lambda: len(view.all_tasks) == 1)
    assert view.all_tasks[0].completed

    await controller.stop()


@pytest.mark.asyncio
async def test_create_validates_before_touching_store(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view)
    with pytest.raises(ValidationFailed) as exc:
        await controller.create(TaskDraft(title="   "))
    assert exc.value.field == "title"
    assert scripted_store.calls == []


@pytest.mark.asyncio
async def test_mutations_require_session(
    scripted_store: ScriptedTaskStore,
    view: TaskCollectionView,
) -> None:
    session = FakeAuthSession(logged_in=False)
    controller, _ = _controller(scripted_store, session, view)

    with pytest.raises(NotAuthenticated):
        await controller.create(TaskDraft(title="x"))
    with pytest.raises(NotAuthenticated):
        await controller.set_status("t1", True)
    with pytest.raises(NotAuthenticated):
        await controller.delete("t1")
    with pytest.raises(NotAuthenticated):
        await controller.start("owner-1")
    assert scripted_store.subscribers == 0
    assert scripted_store.calls == []


@pytest.mark.asyncio
async def test_write_failure_is_passed_through_and_view_kept(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view, subscribe_timeout=0.01)
    await controller.start(session.user_id)
    view.replace_all([make_task("t1", "Keep me")])
    scripted_store.write_error = "Permission denied"

    with pytest.raises(StoreWriteFailed) as exc:
        await controller.delete("t1")
    assert exc.value.reason == "Permission denied"
    assert [t.id for t in view.all_tasks] == ["t1"]

    # Retryable once the store recovers.
    scripted_store.write_error = None
    await controller.delete("t1")
    assert scripted_store.calls[-1].op == "remove"

    await controller.stop()


@pytest.mark.asyncio
async def test_subscribe_failure_before_first_snapshot_raises(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, errors = _controller(scripted_store, session, view)

    start = asyncio.create_task(controller.start(session.user_id))
    await wait_until(lambda: scripted_store.subscribers == 1)
    scripted_store.fail("Permission denied")

    with pytest.raises(StoreSubscribeFailed):
        await start
    assert not controller.running
    assert isinstance(controller.last_error, StoreSubscribeFailed)
    assert errors == []


@pytest.mark.asyncio
async def test_subscribe_failure_later_keeps_last_snapshot(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, errors = _controller(scripted_store, session, view)

    start = asyncio.create_task(controller.start(session.user_id))
    await wait_until(lambda: scripted_store.subscribers == 1)
    scripted_store.push([make_task("t1", "Buy milk")])
    await start

    scripted_store.fail("Permission denied")
    await wait_until(lambda: bool(errors))

    assert isinstance(errors[0], StoreSubscribeFailed)
    assert errors[0].reason == "Permission denied"
    assert [t.id for t in view.all_tasks] == ["t1"]
    assert not controller.running
    # No automatic retry.
    assert scripted_store.subscribers == 0


@pytest.mark.asyncio
async def test_initial_snapshot_timeout_is_reported_not_fatal(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, errors = _controller(scripted_store, session, view, subscribe_timeout=0.01)

    await controller.start(session.user_id)
    assert len(errors) == 1
    assert isinstance(errors[0], OperationTimeout)
    assert controller.running

    scripted_store.push([make_task("late", "Arrived late")])
    await wait_until(lambda: view.get("late") is not None)

    # A later failure is reported through the callback too.
    scripted_store.fail("gone")
    await wait_until(lambda: len(errors) == 2)
    assert isinstance(errors[1], StoreSubscribeFailed)


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_restart_replaces_subscription(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view, subscribe_timeout=0.01)
    await controller.stop()

    await controller.start("owner-1")
    await controller.start("owner-1")
    assert scripted_store.subscribers == 1

    await controller.stop()
    await controller.stop()
    assert scripted_store.subscribers == 0


@pytest.mark.asyncio
async def test_filter_and_query_pass_through(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view)
    view.replace_all([make_task("a", "Alpha"), make_task("b", "Beta", status="Completed")])

    controller.set_filter(TaskFilter.COMPLETED)
    assert [t.id for t in view.visible] == ["b"]
    controller.set_query("alp")
    assert [t.id for t in view.visible] == ["a"]


@pytest.mark.asyncio
async def test_mutations_need_the_list_opened_for_the_current_user(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view, subscribe_timeout=0.01)

    # Logged in, but the list was never opened.
    with pytest.raises(NotAuthenticated):
        await controller.create(TaskDraft(title="x"))

    await controller.start(session.user_id)
    await controller.set_status("t1", True)
    assert len(scripted_store.calls) == 1

    # Another account took over the session without reopening the list.
    session.user_id = "owner-2"
    with pytest.raises(NotAuthenticated):
        await controller.create(TaskDraft(title="x"))
    with pytest.raises(NotAuthenticated):
        await controller.set_status("t1", True)
    with pytest.raises(NotAuthenticated):
        await controller.delete("t1")
    assert len(scripted_store.calls) == 1

    session.user_id = "owner-1"
    await controller.stop()
    assert controller.owner_id is None
    with pytest.raises(NotAuthenticated):
        await controller.delete("t1")
    assert len(scripted_store.calls) == 1


@pytest.mark.asyncio
async def test_reset_stops_and_clears_view(
    scripted_store: ScriptedTaskStore,
    session: FakeAuthSession,
    view: TaskCollectionView,
) -> None:
    controller, _ = _controller(scripted_store, session, view)

    start = asyncio.create_task(controller.start(session.user_id))
    await wait_until(lambda: scripted_store.subscribers == 1)
    scripted_store.push([make_task("t1", "Buy milk")])
    await start
    assert controller.owner_id == "owner-1"

    await controller.reset()
    assert not controller.running
    assert controller.owner_id is None
    assert view.all_tasks == []
    assert scripted_store.subscribers == 0

    # Safe when nothing is running.
    await controller.reset()
    assert view.all_tasks == []
