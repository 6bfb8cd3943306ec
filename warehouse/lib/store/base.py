"""Path-addressed realtime store interface.

A store holds nodes addressed by paths such as ``/warehouse/data``. Each node
is a mapping of child keys to JSON values. Writes notify subscribers of the
node, which receive a fresh snapshot of the whole node.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Self

from warehouse.lib.models import Snapshot


def normalize_path(path: str) -> str:
    """Return a path with a single leading slash and no trailing slash."""
    return "/" + path.strip("/")


class PushKeyGenerator:
    """Generate unique keys that sort in creation order."""

    def __init__(self) -> None:
        self._last_ns = 0

    def __call__(self) -> str:
        now_ns = max(time.time_ns(), self._last_ns + 1)
        self._last_ns = now_ns
        return f"n{now_ns:020d}"


def match_children(
    node: Mapping[str, Any] | None,
    field: str,
    value: Any,
    limit: int,
) -> list[tuple[str, dict[str, Any]]]:
    """Return the last ``limit`` children whose ``field`` equals ``value``."""
    if not node:
        return []
    matches = [
        (key, child)
        for key, child in sorted(node.items())
        if isinstance(child, dict) and child.get(field) == value
    ]
    return matches[-limit:] if limit > 0 else []


class Subscription(ABC):
    """Async iterator over snapshots of a single node.

    Yields the current snapshot first, then a new snapshot after every write
    to the node. Once closed it cannot be restarted.
    """

    def __aiter__(self) -> Self:
        return self

    @abstractmethod
    async def __anext__(self) -> Snapshot:
        """Wait for and return the next snapshot."""

    @abstractmethod
    async def close(self) -> None:
        """Unsubscribe and release the listener."""

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()


class RealtimeStore(ABC):
    """Abstract base class for realtime store backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the store connection. Safe to call more than once."""

    @abstractmethod
    async def close(self) -> None:
        """Close the store connection."""

    @abstractmethod
    async def ping(self) -> None:
        """Check the store is reachable."""

    @abstractmethod
    async def get(self, path: str) -> Snapshot:
        """Return the node at path, or None if it is empty."""

    @abstractmethod
    async def set(self, path: str, value: Mapping[str, Any]) -> None:
        """Replace the node at path."""

    @abstractmethod
    async def update(self, path: str, key: str, value: Any) -> None:
        """Set a single child of the node at path."""

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append a child under a generated key and return the key."""

    @abstractmethod
    async def query_by_child(
        self, path: str, field: str, value: Any, limit: int
    ) -> list[tuple[str, dict[str, Any]]]:
        """Return children whose field equals value, ordered by key.

        Only the last ``limit`` matches are returned.
        """

    @abstractmethod
    async def subscribe(self, path: str) -> Subscription:
        """Subscribe to changes of the node at path."""

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
