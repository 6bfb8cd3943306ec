"""In-process realtime store.

Used by the test suite and for development runs with STORE_BACKEND=memory.
"""

import asyncio
import copy
from collections import defaultdict
from collections.abc import Mapping
from typing import Any, override

from warehouse.lib.models import Snapshot
from warehouse.lib.store.base import (
    PushKeyGenerator,
    RealtimeStore,
    Subscription,
    match_children,
    normalize_path,
)
from warehouse.logging import get_logger

logger = get_logger("lib.store.memory")


class _MemorySubscription(Subscription):
    def __init__(self, store: "MemoryStore", path: str) -> None:
        self._store = store
        self._path = path
        # True signals a change, False signals close
        self._signals: asyncio.Queue[bool] = asyncio.Queue()
        self._signals.put_nowait(True)
        self._closed = False

    def notify(self) -> None:
        if not self._closed:
            self._signals.put_nowait(True)

    @override
    async def __anext__(self) -> Snapshot:
        if self._closed:
            raise StopAsyncIteration
        if not await self._signals.get():
            raise StopAsyncIteration
        return await self._store.get(self._path)

    @override
    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._signals.put_nowait(False)
        self._store._unsubscribe(self._path, self)


class MemoryStore(RealtimeStore):
    """Realtime store keeping all nodes in process memory."""

    def __init__(self) -> None:
        self._nodes: dict[str, dict[str, Any]] = {}
        self._subscribers: defaultdict[str, set[_MemorySubscription]] = (
            defaultdict(set)
        )
        self._next_key = PushKeyGenerator()

    @override
    async def connect(self) -> None:
        """No-op for the in-memory store."""

    @override
    async def close(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.close()

    @override
    async def ping(self) -> None:
        """Always reachable."""

    @property
    def subscriber_count(self) -> int:
        return sum(len(s) for s in self._subscribers.values())

    def _notify(self, path: str) -> None:
        for subscription in list(self._subscribers.get(path, ())):
            subscription.notify()

    def _unsubscribe(
        self, path: str, subscription: _MemorySubscription
    ) -> None:
        subscribers = self._subscribers.get(path)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[path]

    @override
    async def get(self, path: str) -> Snapshot:
        node = self._nodes.get(normalize_path(path))
        return copy.deepcopy(node) if node else None

    @override
    async def set(self, path: str, value: Mapping[str, Any]) -> None:
        path = normalize_path(path)
        self._nodes[path] = copy.deepcopy(dict(value))
        self._notify(path)

    @override
    async def update(self, path: str, key: str, value: Any) -> None:
        path = normalize_path(path)
        self._nodes.setdefault(path, {})[key] = copy.deepcopy(value)
        self._notify(path)

    @override
    async def push(self, path: str, value: Any) -> str:
        key = self._next_key()
        await self.update(path, key, value)
        return key

    @override
    async def query_by_child(
        self, path: str, field: str, value: Any, limit: int
    ) -> list[tuple[str, dict[str, Any]]]:
        node = self._nodes.get(normalize_path(path))
        return copy.deepcopy(match_children(node, field, value, limit))

    @override
    async def subscribe(self, path: str) -> Subscription:
        path = normalize_path(path)
        subscription = _MemorySubscription(self, path)
        self._subscribers[path].add(subscription)
        logger.debug("Subscribed to %s", path)
        return subscription
