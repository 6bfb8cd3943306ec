"""Tests for stored record models."""

from datetime import UTC, datetime

import pytest

from warehouse.lib.config import BreachType, Parameter
from warehouse.lib.exceptions import MalformedDataError
from warehouse.lib.models import (
    Notification,
    Reading,
    ThresholdSet,
    latest_reading,
    parse_timestamp,
)


class TestParseTimestamp:
    """Tests for reading timestamp parsing."""

    def test_iso_naive_is_utc(self):
        assert parse_timestamp("2024-01-01T00:00:00") == datetime(
            2024, 1, 1, tzinfo=UTC
        )

    def test_store_key_format(self):
        assert parse_timestamp("2024-01-01_12:30:00") == datetime(
            2024, 1, 1, 12, 30, tzinfo=UTC
        )

    def test_zulu_suffix(self):
        assert parse_timestamp("2024-01-01T00:00:00.000Z") == datetime(
            2024, 1, 1, tzinfo=UTC
        )

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestReading:
    """Tests for Reading records."""

    def test_from_record_prefers_created_at_time(self):
        reading = Reading.from_record(
            "2024-01-01_00:00:00",
            {
                "createdAt_time": "2024-01-01T00:00:05",
                "temperature": 21.5,
                "humidity": 40,
            },
        )

        assert reading.timestamp == "2024-01-01T00:00:05"
        assert reading.temperature == 21.5
        assert reading.humidity == 40.0

    def test_from_record_falls_back_to_key(self):
        reading = Reading.from_record(
            "2024-01-01_00:00:00", {"temperature": 21.5, "humidity": 40}
        )
        assert reading.timestamp == "2024-01-01_00:00:00"

    def test_missing_field_is_malformed(self):
        with pytest.raises(MalformedDataError, match="humidity"):
            Reading.from_record("2024-01-01_00:00:00", {"temperature": 20})

    def test_bad_timestamp_is_malformed(self):
        with pytest.raises(MalformedDataError):
            Reading.from_record(
                "key", {"temperature": 20, "humidity": 50, "createdAt_time": "x"}
            )

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedDataError):
            Reading.from_record("2024-01-01_00:00:00", 42)

    def test_value_by_parameter(self):
        reading = Reading(
            timestamp="2024-01-01T00:00:00", temperature=1.0, humidity=2.0
        )
        assert reading.value(Parameter.TEMPERATURE) == 1.0
        assert reading.value(Parameter.HUMIDITY) == 2.0


class TestLatestReading:
    """Tests for selecting the most recent reading."""

    def test_empty(self):
        assert latest_reading(None) is None
        assert latest_reading({}) is None

    def test_selects_max_timestamp(self):
        snapshot = {
            "2024-01-01_00:00:02": {"temperature": 2, "humidity": 50},
            "2024-01-01_00:00:10": {"temperature": 10, "humidity": 50},
            "2024-01-01_00:00:05": {"temperature": 5, "humidity": 50},
        }
        assert latest_reading(snapshot).temperature == 10

    def test_skips_malformed_entries(self):
        snapshot = {
            "2024-01-01_00:00:02": {"temperature": 2, "humidity": 50},
            "2024-01-01_00:00:10": {"temperature": "hot"},
        }
        assert latest_reading(snapshot).temperature == 2

    def test_all_malformed(self):
        assert latest_reading({"bad": {"temperature": 1}}) is None


class TestThresholdSet:
    """Tests for threshold records."""

    def test_from_stored_names(self, thresholds_record):
        thresholds = ThresholdSet.from_snapshot(thresholds_record)

        assert thresholds.limits(Parameter.TEMPERATURE) == (30, 10)
        assert thresholds.limits(Parameter.HUMIDITY) == (80, 20)
        assert thresholds.updated_at is None

    def test_from_short_names(self):
        thresholds = ThresholdSet.from_snapshot(
            {"tempHigh": 30, "tempLow": 10, "humHigh": 80, "humLow": 20}
        )
        assert thresholds.temp_high == 30

    def test_updated_at_naive_is_utc(self, thresholds_record):
        thresholds = ThresholdSet.from_snapshot(
            {**thresholds_record, "updatedAt": "2024-01-01T00:00:00"}
        )
        assert thresholds.updated_at == datetime(2024, 1, 1, tzinfo=UTC)

    def test_missing_limit_is_malformed(self):
        with pytest.raises(MalformedDataError, match="tempLowThreshold"):
            ThresholdSet.from_snapshot(
                {"tempHighThreshold": 30, "humHighThreshold": 80, "humLowThreshold": 20}
            )

    def test_to_record_round_trips_stored_names(self, thresholds_record):
        record = ThresholdSet.from_snapshot(thresholds_record).to_record()
        assert record == {key: float(v) for key, v in thresholds_record.items()}


class TestNotification:
    """Tests for notification records."""

    def test_to_record_uses_stored_names(self):
        notification = Notification(
            id="abc",
            parameter=Parameter.TEMPERATURE,
            breach_type=BreachType.HIGH,
            value=35,
            data_timestamp="2024-01-01T00:00:00",
            message="Temperature above maximum threshold of 30°C",
            created_at="2024-01-01T00:00:01+00:00",
        )

        assert notification.to_record() == {
            "type": "threshold_breach",
            "parameter": "temperature",
            "breachType": "high",
            "value": 35.0,
            "dataTimestamp": "2024-01-01T00:00:00",
            "message": "Temperature above maximum threshold of 30°C",
            "createdAt": "2024-01-01T00:00:01+00:00",
            "readBy": {},
        }

    def test_from_record_accepts_legacy_timestamp(self):
        notification = Notification.from_record(
            "key-1",
            {
                "type": "threshold_breach",
                "parameter": "humidity",
                "breachType": "low",
                "value": 10,
                "dataTimestamp": "2024-01-01T00:00:00",
                "message": "Humidity below minimum threshold of 20%",
                "timestamp": "2024-01-01T00:00:01Z",
            },
        )

        assert notification.id == "key-1"
        assert notification.created_at == "2024-01-01T00:00:01Z"
        assert notification.read_by == {}

    def test_from_record_without_breach_fields_is_malformed(self):
        with pytest.raises(MalformedDataError):
            Notification.from_record(
                "key-1",
                {"type": "threshold_breach", "message": "old", "value": 1},
            )
