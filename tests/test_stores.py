"""Tests for the typed thresholds, readings and notifications stores."""

from datetime import UTC, datetime

import pytest

from tests.conftest import (
    NOTIFICATIONS_PATH,
    READINGS_PATH,
    THRESHOLDS_PATH,
    readings_snapshot,
)
from warehouse.lib.models import ThresholdSet
from warehouse.monitor import NotificationSink, ReadingStore, ThresholdStore
from warehouse.monitor.evaluator import BreachCandidate
from warehouse.monitor.orchestrator import build_notification


class TestThresholdStore:
    """Tests for ThresholdStore."""

    @pytest.mark.asyncio
    async def test_read_missing(self, store):
        assert await ThresholdStore(store, THRESHOLDS_PATH).read() is None

    @pytest.mark.asyncio
    async def test_read_stored_thresholds(self, store, thresholds_record):
        await store.set(THRESHOLDS_PATH, thresholds_record)

        thresholds = await ThresholdStore(store, THRESHOLDS_PATH).read()

        assert thresholds == ThresholdSet(
            temp_high=30, temp_low=10, hum_high=80, hum_low=20
        )

    @pytest.mark.asyncio
    async def test_read_malformed(self, store, caplog):
        await store.set(THRESHOLDS_PATH, {"tempHighThreshold": "warm"})

        assert await ThresholdStore(store, THRESHOLDS_PATH).read() is None
        assert "Thresholds are malformed" in caplog.text

    @pytest.mark.asyncio
    async def test_write_then_read(self, store, thresholds):
        threshold_store = ThresholdStore(store, "warehouse/thresholds/")

        await threshold_store.write(thresholds)

        assert threshold_store.path == THRESHOLDS_PATH
        assert await threshold_store.read() == thresholds
        assert await store.get(THRESHOLDS_PATH) == thresholds.to_record()


class TestReadingStore:
    """Tests for ReadingStore."""

    @pytest.mark.asyncio
    async def test_latest_missing(self, store):
        assert await ReadingStore(store, READINGS_PATH).latest() is None

    @pytest.mark.asyncio
    async def test_latest_picks_most_recent(self, store):
        readings = ReadingStore(store, READINGS_PATH)
        snapshot = readings_snapshot(
            ("2024-01-01T00:05:00", 21, 51),
            ("2024-01-01T00:00:00", 35, 50),
        )
        for key, record in snapshot.items():
            await readings.add(key, record)

        latest = await readings.latest()

        assert latest.timestamp == "2024-01-01T00:05:00"
        assert latest.temperature == 21
        assert await readings.read() == snapshot

    @pytest.mark.asyncio
    async def test_latest_skips_malformed(self, store):
        readings = ReadingStore(store, READINGS_PATH)
        await readings.add(
            "2024-01-01_00:00:00", {"temperature": 20, "humidity": 50}
        )
        await readings.add("2024-01-01_00:05:00", {"temperature": 21})

        latest = await readings.latest()

        assert latest.recorded_at == datetime(2024, 1, 1, tzinfo=UTC)


class TestNotificationSink:
    """Tests for NotificationSink."""

    @staticmethod
    def _notification(data_timestamp: str):
        candidate = BreachCandidate(
            parameter="temperature",
            breach_type="high",
            value=35,
            data_timestamp=data_timestamp,
            message=f"Temperature above maximum at {data_timestamp}",
        )
        return build_notification(candidate, datetime(2024, 1, 1, tzinfo=UTC))

    @pytest.mark.asyncio
    async def test_query_by_field(self, store):
        sink = NotificationSink(store, NOTIFICATIONS_PATH)
        first = await sink.append(self._notification("t1"))
        await sink.append(self._notification("t2"))
        await store.push(NOTIFICATIONS_PATH, {"dataTimestamp": "t1"})

        matches = await sink.query_by_field("dataTimestamp", "t1", limit=50)

        assert [n.id for n in matches] == [first]

    @pytest.mark.asyncio
    async def test_all_in_append_order(self, store):
        sink = NotificationSink(store, NOTIFICATIONS_PATH)
        await sink.append(self._notification("t1"))
        await sink.append(self._notification("t2"))

        stored = await sink.all()

        assert [n.data_timestamp for n in stored] == ["t1", "t2"]
