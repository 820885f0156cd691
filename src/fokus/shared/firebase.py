"""Firebase Realtime Database adapter over its REST streaming API."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from typing import Any

import aiohttp

from fokus.shared.store import OnChange, OnError, RemoteStore, StoreError

logger = logging.getLogger(__name__)


class EventStream:
    """Incremental parser for ``text/event-stream`` lines."""

    def __init__(self):
        self._event = "message"
        self._data: list[str] = []

    def feed(self, line: str) -> tuple[str, str] | None:
        """Feed one line; returns ``(event, data)`` when an event is complete."""
        line = line.rstrip("\r\n")
        if not line:
            if not self._data:
                self._event = "message"
                return None
            event = (self._event, "\n".join(self._data))
            self._event = "message"
            self._data = []
            return event

        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None


def _merge(target: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    for key, value in changes.items():
        if value is None:
            target.pop(key, None)
        else:
            target[key] = value
    return target


def apply_event(current: Any, event: str, payload: dict[str, Any]) -> Any:
    """Apply a Firebase ``put`` or ``patch`` payload to the cached value."""
    parts = [p for p in str(payload.get("path", "/")).split("/") if p]
    data = payload.get("data")

    if not parts:
        if event == "put":
            return data
        base = copy.deepcopy(current) if isinstance(current, dict) else {}
        return _merge(base, data or {}) or None

    root = copy.deepcopy(current) if isinstance(current, dict) else {}
    node = root
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child

    leaf = parts[-1]
    if event == "put":
        if data is None:
            node.pop(leaf, None)
        else:
            node[leaf] = data
    else:
        existing = node.get(leaf)
        node[leaf] = _merge(existing if isinstance(existing, dict) else {}, data or {})

    return root or None


class FirebaseStore(RemoteStore):
    """RemoteStore for a Firebase Realtime Database.

    Writes replace the whole record with ``PUT {url}/{key}.json``. The
    subscription holds a streaming ``GET`` open and reconnects with a backoff
    when it drops.
    """

    RECONNECT_DELAYS = (1, 2, 5, 10, 30)

    def __init__(self, database_url: str, auth_token: str | None = None, timeout: float = 10.0):
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def available(self) -> bool:
        return bool(self.database_url)

    def _url(self, key: str) -> str:
        return f"{self.database_url}/{key.strip('/')}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self.auth_token} if self.auth_token else {}

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def write(self, key: str, record: dict[str, Any]) -> None:
        session = await self._get_session()
        async with session.put(
            self._url(key),
            json=record,
            params=self._params(),
            timeout=self._timeout,
        ) as resp:
            if resp.status != 200:
                text = await resp.text()
                raise StoreError(f"Failed to write {key}: {resp.status} - {text}")

    async def subscribe(
        self, key: str, on_change: OnChange, on_error: OnError | None = None
    ) -> None:
        await self.unsubscribe()
        self._running = True
        self._task = asyncio.create_task(self._listen(key, on_change, on_error))
        logger.info(f"Listening to {self._url(key)}")

    async def unsubscribe(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._session:
            await self._session.close()
            self._session = None

    async def _listen(self, key: str, on_change: OnChange, on_error: OnError | None) -> None:
        """Keep a streaming subscription open until unsubscribed."""
        attempt = 0
        while self._running:
            try:
                session = await self._get_session()
                async with session.get(
                    self._url(key),
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                    timeout=aiohttp.ClientTimeout(total=None, sock_read=90),
                ) as resp:
                    if resp.status != 200:
                        text = await resp.text()
                        raise StoreError(f"Failed to subscribe to {key}: {resp.status} - {text}")

                    attempt = 0
                    await self._consume(resp, key, on_change)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Firebase listener error: {e}")
                if on_error:
                    on_error(e)

            if not self._running:
                break
            delay = self.RECONNECT_DELAYS[min(attempt, len(self.RECONNECT_DELAYS) - 1)]
            attempt += 1
            await asyncio.sleep(delay)

    async def _consume(self, resp: aiohttp.ClientResponse, key: str, on_change: OnChange) -> None:
        stream = EventStream()
        value: Any = None
        async for raw in resp.content:
            event = stream.feed(raw.decode("utf-8"))
            if event is None:
                continue

            name, data = event
            if name in ("put", "patch"):
                value = apply_event(value, name, json.loads(data))
                on_change(copy.deepcopy(value))
            elif name in ("cancel", "auth_revoked"):
                raise StoreError(f"Subscription to {key} closed by server: {name}")
