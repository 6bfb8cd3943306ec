"""Live threshold monitoring of warehouse readings.

The monitor subscribes to the thresholds and readings nodes. Both
subscriptions are pumped into a single event queue and handled in arrival
order:

- A thresholds snapshot replaces the cached threshold state.
- A readings snapshot selects the most recent reading, evaluates it against
  the cached thresholds and stores a notification for every breach the
  dedup guard has not seen yet.

Errors while handling an event are logged and never stop the listeners.
The two subscriptions are not ordered relative to each other, so a reading
can be evaluated against thresholds that are about to be replaced.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum, StrEnum, auto
from typing import Self

from warehouse.lib.config import PathSettings, get_settings
from warehouse.lib.exceptions import (
    MalformedDataError,
    StartupError,
    TransientStoreError,
)
from warehouse.lib.models import (
    Notification,
    Snapshot,
    ThresholdSet,
    latest_reading,
)
from warehouse.lib.retry import with_retry
from warehouse.lib.store import RealtimeStore, Subscription
from warehouse.logging import get_logger
from warehouse.monitor.dedup import DedupGuard, create_dedup_guard
from warehouse.monitor.evaluator import BreachCandidate, evaluate
from warehouse.monitor.stores import (
    NotificationSink,
    ReadingStore,
    ThresholdStore,
)

logger = get_logger("monitor.orchestrator")

# Pause before reading again from a subscription that failed
_PUMP_RETRY_DELAY_SEC = 1.0


class MonitorPhase(Enum):
    """Lifecycle of the monitor's threshold state."""

    IDLE = auto()  # no thresholds cached yet
    ARMED = auto()  # thresholds cached, waiting for readings
    EVALUATING = auto()  # handling a readings snapshot


class _Source(StrEnum):
    THRESHOLDS = "thresholds"
    READINGS = "readings"


@dataclass(frozen=True, slots=True)
class ThresholdState:
    """The threshold snapshot in effect and when it took effect."""

    thresholds: ThresholdSet
    updated_at: datetime


def build_notification(
    candidate: BreachCandidate, created_at: datetime
) -> Notification:
    """Build the notification record for a breach candidate."""
    return Notification(
        parameter=candidate.parameter,
        breach_type=candidate.breach_type,
        value=candidate.value,
        data_timestamp=candidate.data_timestamp,
        message=candidate.message,
        created_at=created_at.isoformat(),
    )


class Monitor:
    """Watches readings and stores deduplicated breach notifications."""

    def __init__(
        self,
        store: RealtimeStore,
        *,
        paths: PathSettings | None = None,
        guard: DedupGuard | None = None,
        staleness_filter: bool | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            store: Realtime store holding all three nodes.
            paths: Node paths, defaults to the configured paths.
            guard: Dedup guard, defaults to the configured strategy.
            staleness_filter: Skip readings not newer than the thresholds.
            clock: Returns the current time, used to time-stamp threshold
                updates without an ``updatedAt`` and new notifications.
        """
        settings = get_settings()
        monitor_cfg = settings.monitor
        paths = paths or settings.paths

        self._store = store
        self._threshold_store = ThresholdStore(store, paths.thresholds)
        self._reading_store = ReadingStore(store, paths.readings)
        self.sink = NotificationSink(store, paths.notifications)
        self._guard = guard or create_dedup_guard(
            monitor_cfg.dedup_strategy,
            self.sink,
            monitor_cfg.dedup_query_limit,
            monitor_cfg.dedup_cache_size,
        )
        self._staleness_filter = (
            monitor_cfg.staleness_filter
            if staleness_filter is None
            else staleness_filter
        )
        self._clock = clock or (lambda: datetime.now(UTC))
        self._startup_retries = monitor_cfg.startup_max_retries
        self._startup_backoff_sec = monitor_cfg.startup_initial_backoff_sec

        self._state: ThresholdState | None = None
        self._evaluating = 0
        self._subscriptions: list[Subscription] = []
        self._pumps: list[asyncio.Task[None]] = []
        self._events: asyncio.Queue[tuple[_Source, Snapshot]] = asyncio.Queue()

    @property
    def state(self) -> ThresholdState | None:
        return self._state

    @property
    def phase(self) -> MonitorPhase:
        if self._state is None:
            return MonitorPhase.IDLE
        if self._evaluating:
            return MonitorPhase.EVALUATING
        return MonitorPhase.ARMED

    @property
    def running(self) -> bool:
        return any(not pump.done() for pump in self._pumps)

    async def start(self) -> None:
        """Connect to the store and subscribe to thresholds and readings.

        Raises:
            StartupError: If the subscriptions cannot be established.
        """

        async def subscribe() -> None:
            await self._close_subscriptions()
            await self._store.connect()
            self._subscriptions.append(await self._threshold_store.subscribe())
            self._subscriptions.append(await self._reading_store.subscribe())

        ok = await with_retry(
            subscribe,
            name="Store subscription",
            logger=logger,
            max_retries=self._startup_retries,
            initial_backoff_sec=self._startup_backoff_sec,
        )
        if not ok:
            await self._close_subscriptions()
            raise StartupError(
                f"Could not subscribe to {self._threshold_store.path} "
                f"and {self._reading_store.path}"
            )

        thresholds_sub, readings_sub = self._subscriptions
        self._pumps = [
            asyncio.create_task(
                self._pump(_Source.THRESHOLDS, thresholds_sub)
            ),
            asyncio.create_task(
                self._pump(_Source.READINGS, readings_sub)
            ),
        ]
        logger.info(
            "Monitoring %s against %s",
            self._reading_store.path,
            self._threshold_store.path,
        )

    async def run(self) -> None:
        """Handle subscription events until cancelled."""
        while True:
            source, snapshot = await self._events.get()
            try:
                await self._dispatch(source, snapshot)
            finally:
                self._events.task_done()

    async def stop(self) -> None:
        """Stop the pumps and unsubscribe from both nodes."""
        for pump in self._pumps:
            pump.cancel()
        await asyncio.gather(*self._pumps, return_exceptions=True)
        self._pumps = []
        await self._close_subscriptions()
        logger.info("Monitoring stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.stop()

    async def _close_subscriptions(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.close()

    async def _pump(self, source: _Source, subscription: Subscription) -> None:
        """Forward snapshots from a subscription to the event queue."""
        while True:
            try:
                snapshot = await anext(subscription)
            except StopAsyncIteration:
                logger.info("%s subscription closed", source.capitalize())
                return
            except TransientStoreError as e:
                logger.warning(
                    "%s subscription error: %s", source.capitalize(), e
                )
                await asyncio.sleep(_PUMP_RETRY_DELAY_SEC)
                continue
            self._events.put_nowait((source, snapshot))

    async def _dispatch(self, source: _Source, snapshot: Snapshot) -> None:
        """Handle one event, logging any failure."""
        try:
            if source == _Source.THRESHOLDS:
                self.handle_thresholds(snapshot)
            else:
                await self.handle_readings(snapshot)
        except TransientStoreError as e:
            logger.error("Store error while handling %s update: %s", source, e)
        except Exception:
            logger.exception("Error processing %s update", source)

    def handle_thresholds(self, snapshot: Snapshot) -> None:
        """Replace the cached thresholds with a new snapshot."""
        if snapshot is None:
            logger.info("No thresholds at %s", self._threshold_store.path)
            return
        try:
            thresholds = ThresholdSet.from_snapshot(snapshot)
        except MalformedDataError as e:
            logger.warning("Ignoring threshold update: %s", e)
            return

        updated_at = thresholds.updated_at or self._clock()
        self._state = ThresholdState(
            thresholds=thresholds, updated_at=updated_at
        )
        logger.info(
            "Thresholds updated at %s: %s",
            updated_at.isoformat(),
            thresholds.to_record(),
        )

    async def handle_readings(self, snapshot: Snapshot) -> list[Notification]:
        """Evaluate the most recent reading of a readings snapshot.

        Returns:
            The notifications stored for this snapshot.
        """
        state = self._state
        if state is None:
            logger.debug("No thresholds yet, ignoring readings update")
            return []

        reading = latest_reading(snapshot)
        if reading is None:
            logger.debug("No valid readings at %s", self._reading_store.path)
            return []

        if self._staleness_filter and reading.recorded_at <= state.updated_at:
            logger.info("Skipping old data point: %s", reading.timestamp)
            return []

        logger.info(
            "Processing data point: time=%s temperature=%s humidity=%s",
            reading.timestamp,
            reading.temperature,
            reading.humidity,
        )

        self._evaluating += 1
        try:
            stored: list[Notification] = []
            for candidate in evaluate(reading, state.thresholds):
                notification = await self._emit(candidate)
                if notification is not None:
                    stored.append(notification)
            return stored
        finally:
            self._evaluating -= 1

    async def _emit(self, candidate: BreachCandidate) -> Notification | None:
        """Store a notification for the candidate unless one already exists."""
        async with self._guard.claim(candidate) as novel:
            if not novel:
                logger.info(
                    "Identical notification found, skipping: %s",
                    candidate.message,
                )
                return None
            notification = build_notification(candidate, self._clock())
            key = await self.sink.append(notification)
            logger.info("New notification saved: %s", candidate.message)
            return notification.model_copy(update={"id": key})
