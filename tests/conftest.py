"""Shared pytest fixtures for the test suite."""

import logging
from datetime import UTC, datetime

import pytest

from warehouse.lib.config import Settings
from warehouse.lib.config.testing import set_settings
from warehouse.lib.models import Reading, ThresholdSet
from warehouse.lib.store import MemoryStore

THRESHOLDS_PATH = "/warehouse/thresholds"
READINGS_PATH = "/warehouse/data"
NOTIFICATIONS_PATH = "/warehouse/notifications/general"


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the warehouse namespace."""
    caplog.set_level(logging.DEBUG, logger="warehouse")


@pytest.fixture(autouse=True)
def test_settings():
    """Use the in-memory store and no startup backoff in tests."""
    settings = Settings(
        store_backend="memory",
        startup_max_retries=2,
        startup_initial_backoff_sec=0,
    )
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def frozen_time():
    """Return a fixed datetime before any sample reading."""
    return datetime(2023, 12, 31, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def clock(frozen_time):
    """A monitor clock that always returns the frozen time."""
    return lambda: frozen_time


@pytest.fixture
def thresholds_record():
    """Stored thresholds document."""
    return {
        "tempHighThreshold": 30,
        "tempLowThreshold": 10,
        "humHighThreshold": 80,
        "humLowThreshold": 20,
    }


@pytest.fixture
def thresholds(thresholds_record):
    return ThresholdSet.from_snapshot(thresholds_record)


@pytest.fixture
def store():
    return MemoryStore()


def make_reading(
    temperature: float = 20.0,
    humidity: float = 50.0,
    timestamp: str = "2024-01-01T00:00:00",
) -> Reading:
    return Reading(
        timestamp=timestamp, temperature=temperature, humidity=humidity
    )


def readings_snapshot(*records: tuple[str, float, float]) -> dict:
    """Build a readings node from (timestamp, temperature, humidity) tuples."""
    return {
        ts.replace("T", "_"): {
            "createdAt_time": ts,
            "temperature": temperature,
            "humidity": humidity,
        }
        for ts, temperature, humidity in records
    }
