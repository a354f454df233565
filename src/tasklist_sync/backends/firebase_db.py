# src/tasklist_sync/backends/firebase_db.py

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any
from urllib.parse import quote

import httpx

from ..core.errors import NotAuthenticated, StoreSubscribeFailed, StoreWriteFailed, TaskListError
from ..tasks.task_models import Task, tasks_from_collection
from .push_ids import PushIdGenerator

logger = logging.getLogger(__name__)

# Called with force_refresh; returns "" when nobody is signed in.
TokenProvider = Callable[[bool], Awaitable[str]]

TASKS_ROOT = "tasks"


def _segments(path: str) -> list[str]:
    return [p for p in path.split("/") if p]


def apply_put(tree: dict[str, Any], path: str, data: Any) -> dict[str, Any]:
    """
    Apply an event-stream `put`: replace the node at `path` (relative to the
    subscribed location) with `data`. null deletes the node.
    Returns the new root, which is always a dict.
    """
    parts = _segments(path)
    if not parts:
        return data if isinstance(data, dict) else {}

    node: dict[str, Any] = tree
    for key in parts[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            if data is None:
                return tree
            child = {}
            node[key] = child
        node = child

    last = parts[-1]
    if data is None:
        node.pop(last, None)
    else:
        node[last] = data
    return tree


def apply_patch(tree: dict[str, Any], path: str, data: Any) -> dict[str, Any]:
    """Apply an event-stream `patch`: each child of `data` is a put under `path`."""
    if not isinstance(data, dict):
        return tree
    base = "/".join(_segments(path))
    for key, value in data.items():
        tree = apply_put(tree, f"{base}/{key}" if base else str(key), value)
    return tree


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


class _AuthRevoked(Exception):
    """The event stream reported that its id token is no longer valid."""


class FirebaseTaskStore:
    """
    TaskStore on the Realtime Database REST API.

    Layout: tasks/<owner_id>/<task_id> -> task record.

    Writes are plain PUT / DELETE requests. subscribe() opens a server-sent-events
    stream on tasks/<owner_id>, keeps a local copy of that subtree, and yields the
    whole collection after each put/patch event.

    The id token comes from `token_provider` on every request. A request rejected
    with 401, or a stream that reports auth_revoked, is retried once with a
    forced token refresh.
    """

    def __init__(
        self,
        database_url: str,
        token_provider: TokenProvider,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not database_url.strip():
            raise RuntimeError("Database URL is not set. Set TASKLIST_FIREBASE_DATABASE_URL in your .env.")
        self._base = database_url.rstrip("/")
        self._token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
        )
        self._ids = PushIdGenerator()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- helpers ----

    def _url(self, *parts: str) -> str:
        path = "/".join(quote(p, safe="") for p in parts)
        return f"{self._base}/{path}.json"

    async def _params(self, error_cls: type[TaskListError], *, force_refresh: bool = False) -> dict[str, str]:
        try:
            token = await self._token_provider(force_refresh)
        except NotAuthenticated:
            raise
        except TaskListError as e:
            raise error_cls(str(e)) from e
        if not token:
            raise NotAuthenticated()
        return {"auth": token}

    async def _request(self, method: str, url: str, body: Any, *, force_refresh: bool) -> httpx.Response:
        params = await self._params(StoreWriteFailed, force_refresh=force_refresh)
        try:
            if body is None:
                return await self._client.request(method, url, params=params)
            return await self._client.request(method, url, params=params, json=body)
        except httpx.HTTPError as e:
            raise StoreWriteFailed(str(e) or e.__class__.__name__) from e

    async def _send(self, method: str, url: str, *, body: Any = None) -> None:
        resp = await self._request(method, url, body, force_refresh=False)
        if resp.status_code == 401:
            logger.info("Token rejected by database; refreshing and retrying %s", method)
            resp = await self._request(method, url, body, force_refresh=True)

        if resp.is_error:
            raise StoreWriteFailed(_error_message(resp))

    # ---- TaskStore ----

    async def generate_id(self, owner_id: str) -> str:
        # Push keys are generated client-side; no round trip.
        return self._ids.next_id()

    async def write(self, owner_id: str, task_id: str, record: dict[str, Any]) -> None:
        await self._send("PUT", self._url(TASKS_ROOT, owner_id, task_id), body=record)
        logger.debug("PUT task owner=%s id=%s", owner_id, task_id)

    async def write_field(self, owner_id: str, task_id: str, field: str, value: Any) -> None:
        await self._send("PUT", self._url(TASKS_ROOT, owner_id, task_id, field), body=value)
        logger.debug("PUT task field owner=%s id=%s field=%s", owner_id, task_id, field)

    async def remove(self, owner_id: str, task_id: str) -> None:
        await self._send("DELETE", self._url(TASKS_ROOT, owner_id, task_id))
        logger.debug("DELETE task owner=%s id=%s", owner_id, task_id)

    async def subscribe(self, owner_id: str) -> AsyncIterator[list[Task]]:
        url = self._url(TASKS_ROOT, owner_id)
        tree: dict[str, Any] = {}
        # Set after a forced token refresh; cleared once the new stream delivers data.
        refreshed = False

        while True:
            try:
                params = await self._params(StoreSubscribeFailed, force_refresh=refreshed)
            except NotAuthenticated as e:
                raise StoreSubscribeFailed(str(e)) from e

            event: str | None = None
            data_lines: list[str] = []
            revoked = False

            try:
                async with self._client.stream(
                    "GET",
                    url,
                    params=params,
                    headers={"Accept": "text/event-stream"},
                    timeout=httpx.Timeout(None, connect=5.0),
                    follow_redirects=True,
                ) as resp:
                    if resp.is_error:
                        await resp.aread()
                        if resp.status_code == 401 and not refreshed:
                            refreshed = True
                            continue
                        raise StoreSubscribeFailed(_error_message(resp))

                    logger.info("Event stream open owner=%s", owner_id)
                    async for line in resp.aiter_lines():
                        if line.startswith(":"):
                            continue
                        if line.startswith("event:"):
                            event = line[len("event:"):].strip()
                            continue
                        if line.startswith("data:"):
                            data_lines.append(line[len("data:"):].strip())
                            continue
                        if line.strip():
                            continue

                        # Blank line: dispatch the buffered event.
                        name, raw = event, "\n".join(data_lines)
                        event, data_lines = None, []
                        if name is None:
                            continue

                        try:
                            updated = self._handle_event(name, raw, tree)
                        except _AuthRevoked:
                            revoked = True
                            break
                        if updated is None:
                            continue
                        tree = updated
                        refreshed = False
                        yield tasks_from_collection(tree)
            except httpx.HTTPError as e:
                raise StoreSubscribeFailed(str(e) or e.__class__.__name__) from e

            if not revoked:
                raise StoreSubscribeFailed("Event stream closed by server")
            if refreshed:
                raise StoreSubscribeFailed("Auth token revoked")
            logger.info("Event stream token revoked owner=%s; reconnecting", owner_id)
            refreshed = True

    def _handle_event(self, name: str, raw: str, tree: dict[str, Any]) -> dict[str, Any] | None:
        """Returns the updated tree, or None when the event carries no data change."""
        if name == "keep-alive":
            return None
        if name == "cancel":
            raise StoreSubscribeFailed("Permission denied")
        if name == "auth_revoked":
            raise _AuthRevoked()
        if name not in ("put", "patch"):
            logger.debug("Ignoring event %s", name)
            return None

        try:
            payload = json.loads(raw) if raw else None
        except ValueError:
            logger.warning("Malformed %s event payload: %r", name, raw[:200])
            return None
        if not isinstance(payload, dict):
            return None

        path = str(payload.get("path") or "/")
        data = payload.get("data")
        if name == "put":
            return apply_put(tree, path, data)
        return apply_patch(tree, path, data)
