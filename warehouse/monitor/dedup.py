"""Notification deduplication.

A breach is identified by its dedup key (type, parameter, breach type, data
timestamp). The value and message are derived from those and are not part of
the key.

Two strategies are available:

- ``MemoryDedupGuard`` remembers emitted keys for the lifetime of the
  process. A restart forgets them, so a breach observed again after a
  restart is notified again.
- ``DurableDedupGuard`` looks up existing notifications in the sink before
  emitting, so history survives restarts.

Both serialize the check-then-persist sequence per key, which prevents
concurrent handling of the same reading from emitting twice.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import Counter, OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import NamedTuple, Self, override

from warehouse.lib.config import DedupStrategy, NotificationType
from warehouse.lib.models import Notification
from warehouse.logging import get_logger
from warehouse.monitor.evaluator import BreachCandidate
from warehouse.monitor.stores import NotificationSink

logger = get_logger("monitor.dedup")

_DEFAULT_CACHE_SIZE = 1024


class DedupKey(NamedTuple):
    type: str
    parameter: str
    breach_type: str
    data_timestamp: str

    @classmethod
    def from_candidate(cls, candidate: BreachCandidate) -> Self:
        return cls(
            str(NotificationType.THRESHOLD_BREACH),
            str(candidate.parameter),
            str(candidate.breach_type),
            candidate.data_timestamp,
        )

    @classmethod
    def from_notification(cls, notification: Notification) -> Self:
        return cls(
            str(notification.type),
            str(notification.parameter),
            str(notification.breach_type),
            notification.data_timestamp,
        )


class SeenKeys:
    """Most recently emitted dedup keys, oldest evicted first."""

    def __init__(self, max_size: int = _DEFAULT_CACHE_SIZE) -> None:
        self._max_size = max_size
        self._keys: OrderedDict[DedupKey, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def add(self, key: DedupKey) -> None:
        self._keys[key] = None
        self._keys.move_to_end(key)
        while len(self._keys) > self._max_size:
            self._keys.popitem(last=False)


class KeyedLock:
    """One asyncio lock per key, dropped once no task holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[DedupKey, asyncio.Lock] = {}
        self._users: Counter[DedupKey] = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: DedupKey) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


class DedupGuard(ABC):
    """Decides whether a breach candidate still needs a notification."""

    def __init__(self) -> None:
        self._locks = KeyedLock()

    @abstractmethod
    async def should_emit(self, candidate: BreachCandidate) -> bool:
        """Return True if no notification exists for the candidate's key."""

    @abstractmethod
    def mark_emitted(self, candidate: BreachCandidate) -> None:
        """Record that a notification was stored for the candidate's key."""

    @asynccontextmanager
    async def claim(self, candidate: BreachCandidate) -> AsyncIterator[bool]:
        """Hold the candidate's key while the caller persists a notification.

        Yields whether the caller should emit. The key is marked as emitted
        only if the block completes without raising.

        Usage:
            async with guard.claim(candidate) as novel:
                if novel:
                    await sink.append(...)
        """
        key = DedupKey.from_candidate(candidate)
        async with self._locks.hold(key):
            emit = await self.should_emit(candidate)
            yield emit
            if emit:
                self.mark_emitted(candidate)


class MemoryDedupGuard(DedupGuard):
    """Process-lifetime memory of emitted keys.

    Only the most recent ``cache_size`` keys are kept. Readings only move
    forward, so an evicted key belongs to a reading that is no longer the
    latest one.
    """

    def __init__(self, cache_size: int = _DEFAULT_CACHE_SIZE) -> None:
        super().__init__()
        self._seen = SeenKeys(cache_size)

    @override
    async def should_emit(self, candidate: BreachCandidate) -> bool:
        return DedupKey.from_candidate(candidate) not in self._seen

    @override
    def mark_emitted(self, candidate: BreachCandidate) -> None:
        self._seen.add(DedupKey.from_candidate(candidate))


class DurableDedupGuard(DedupGuard):
    """Looks up existing notifications in the sink before emitting.

    Recently confirmed keys are cached to skip repeated lookups.
    """

    def __init__(
        self,
        sink: NotificationSink,
        query_limit: int = 50,
        cache_size: int = _DEFAULT_CACHE_SIZE,
    ) -> None:
        super().__init__()
        self._sink = sink
        self._query_limit = query_limit
        self._seen = SeenKeys(cache_size)

    @override
    async def should_emit(self, candidate: BreachCandidate) -> bool:
        key = DedupKey.from_candidate(candidate)
        if key in self._seen:
            return False

        existing = await self._sink.query_by_field(
            "dataTimestamp", candidate.data_timestamp, self._query_limit
        )
        if any(DedupKey.from_notification(n) == key for n in existing):
            logger.debug("Found stored notification for %s", key)
            self._seen.add(key)
            return False
        return True

    @override
    def mark_emitted(self, candidate: BreachCandidate) -> None:
        self._seen.add(DedupKey.from_candidate(candidate))


def create_dedup_guard(
    strategy: DedupStrategy,
    sink: NotificationSink,
    query_limit: int = 50,
    cache_size: int = _DEFAULT_CACHE_SIZE,
) -> DedupGuard:
    """Factory function to get a guard for the configured strategy."""
    if strategy == DedupStrategy.MEMORY:
        logger.warning(
            "Using in-memory deduplication, notifications may repeat "
            "after a restart"
        )
        return MemoryDedupGuard(cache_size)
    return DurableDedupGuard(sink, query_limit, cache_size)
