"""Typed access to the thresholds, readings and notifications nodes."""

from typing import Any

from warehouse.lib.exceptions import MalformedDataError
from warehouse.lib.models import (
    Notification,
    Reading,
    ThresholdSet,
    latest_reading,
)
from warehouse.lib.store import RealtimeStore, Subscription, normalize_path
from warehouse.logging import get_logger

logger = get_logger("monitor.stores")


class ThresholdStore:
    """Operator-configured thresholds at a single node."""

    def __init__(self, store: RealtimeStore, path: str) -> None:
        self._store = store
        self.path = normalize_path(path)

    async def read(self) -> ThresholdSet | None:
        """Return the current thresholds, or None if absent or malformed."""
        snapshot = await self._store.get(self.path)
        if snapshot is None:
            return None
        try:
            return ThresholdSet.from_snapshot(snapshot)
        except MalformedDataError as e:
            logger.warning("%s", e)
            return None

    async def write(self, thresholds: ThresholdSet) -> None:
        await self._store.set(self.path, thresholds.to_record())

    async def subscribe(self) -> Subscription:
        return await self._store.subscribe(self.path)


class ReadingStore:
    """Append-only reading log keyed by timestamp."""

    def __init__(self, store: RealtimeStore, path: str) -> None:
        self._store = store
        self.path = normalize_path(path)

    async def read(self) -> dict[str, Any] | None:
        """Return all stored reading records keyed by timestamp."""
        return await self._store.get(self.path)

    async def latest(self) -> Reading | None:
        return latest_reading(await self.read())

    async def add(self, key: str, record: dict[str, Any]) -> None:
        await self._store.update(self.path, key, record)

    async def subscribe(self) -> Subscription:
        return await self._store.subscribe(self.path)


class NotificationSink:
    """Append-only notification log."""

    def __init__(self, store: RealtimeStore, path: str) -> None:
        self._store = store
        self.path = normalize_path(path)

    async def append(self, notification: Notification) -> str:
        """Store a notification under a generated key and return the key."""
        return await self._store.push(self.path, notification.to_record())

    async def query_by_field(
        self, field: str, value: Any, limit: int
    ) -> list[Notification]:
        """Return the last ``limit`` notifications whose field equals value.

        Records that are not valid notifications are left out.
        """
        records = await self._store.query_by_child(
            self.path, field, value, limit
        )
        notifications: list[Notification] = []
        for key, record in records:
            try:
                notifications.append(Notification.from_record(key, record))
            except MalformedDataError as e:
                logger.debug("Skipping stored notification: %s", e)
        return notifications

    async def all(self) -> list[Notification]:
        """Return every valid stored notification, oldest first."""
        snapshot = await self._store.get(self.path) or {}
        notifications: list[Notification] = []
        for key in sorted(snapshot):
            try:
                notifications.append(
                    Notification.from_record(key, snapshot[key])
                )
            except MalformedDataError as e:
                logger.debug("Skipping stored notification: %s", e)
        return notifications
