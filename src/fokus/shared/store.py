"""Remote state store interface and an in-process implementation."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

OnChange = Callable[[Any], None]
OnError = Callable[[Exception], None]


class StoreError(Exception):
    """Raised when the remote store rejects an operation."""


class RemoteStore:
    """Durable keyed records with push-based change notification.

    ``on_change`` receives the full record under the key (``None`` when
    missing), every time it changes, including changes caused by this
    client's own writes.
    """

    @property
    def available(self) -> bool:
        return True

    async def subscribe(
        self, key: str, on_change: OnChange, on_error: OnError | None = None
    ) -> None:
        raise NotImplementedError

    async def write(self, key: str, record: dict[str, Any]) -> None:
        raise NotImplementedError

    async def unsubscribe(self) -> None:
        raise NotImplementedError


class MemoryHub:
    """Process-local record space shared by any number of MemoryStore clients."""

    def __init__(self):
        self._records: dict[str, Any] = {}
        self._listeners: list[tuple[str, OnChange]] = []

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._records.get(key))

    def put(self, key: str, record: Any) -> None:
        self._records[key] = copy.deepcopy(record)
        for listener_key, callback in list(self._listeners):
            if listener_key == key:
                self._schedule(key, callback)

    def add_listener(self, key: str, callback: OnChange) -> None:
        self._listeners.append((key, callback))
        self._schedule(key, callback)

    def remove_listener(self, key: str, callback: OnChange) -> None:
        self._listeners = [
            (k, cb) for k, cb in self._listeners if not (k == key and cb is callback)
        ]

    def _schedule(self, key: str, callback: OnChange) -> None:
        # Delivered on a later loop iteration, like a network notification
        asyncio.get_running_loop().call_soon(self._deliver, key, callback)

    def _deliver(self, key: str, callback: OnChange) -> None:
        if (key, callback) not in self._listeners:
            return
        try:
            callback(self.get(key))
        except Exception as e:
            logger.error(f"Error in store listener for {key}: {e}")


class MemoryStore(RemoteStore):
    """RemoteStore backed by a MemoryHub.

    Usage:
        hub = MemoryHub()
        alice, bob = MemoryStore(hub), MemoryStore(hub)
        await alice.subscribe("sharedTimer", print)
        await bob.write("sharedTimer", {"status": "idle"})  # alice is notified
    """

    def __init__(self, hub: MemoryHub | None = None):
        self.hub = hub or MemoryHub()
        self._subscription: tuple[str, OnChange] | None = None

    async def subscribe(
        self, key: str, on_change: OnChange, on_error: OnError | None = None
    ) -> None:
        await self.unsubscribe()
        self._subscription = (key, on_change)
        self.hub.add_listener(key, on_change)

    async def write(self, key: str, record: dict[str, Any]) -> None:
        self.hub.put(key, record)

    async def unsubscribe(self) -> None:
        if self._subscription is not None:
            self.hub.remove_listener(*self._subscription)
            self._subscription = None
