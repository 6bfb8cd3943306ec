"""Tests for the configuration module."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from warehouse.lib.config import (
    DedupStrategy,
    Parameter,
    Settings,
    StoreBackend,
    Unit,
    get_settings,
)
from warehouse.lib.config.testing import set_settings


class TestEnums:
    def test_parameter_labels_and_units(self):
        assert Parameter.TEMPERATURE.label == "Temperature"
        assert Parameter.TEMPERATURE.unit == Unit.CELSIUS
        assert Parameter.HUMIDITY.label == "Humidity"
        assert Parameter.HUMIDITY.unit == Unit.PERCENT

    def test_parameter_order(self):
        assert list(Parameter) == [Parameter.TEMPERATURE, Parameter.HUMIDITY]


class TestSettings:
    """Tests for Settings loaded from the environment."""

    @patch.dict("os.environ", {}, clear=True)
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.store.backend == StoreBackend.REDIS
        assert settings.store.prefix == "rtdb:"
        assert settings.paths.thresholds == "/warehouse/thresholds"
        assert settings.paths.readings == "/warehouse/data"
        assert settings.paths.notifications == (
            "/warehouse/notifications/general"
        )
        assert settings.monitor.dedup_strategy == DedupStrategy.DURABLE
        assert settings.monitor.dedup_query_limit == 50
        assert settings.monitor.staleness_filter is True
        assert settings.server.host == "0.0.0.0"
        assert settings.server.port == 3000

    @patch.dict(
        "os.environ",
        {
            "STORE_BACKEND": "memory",
            "REDIS_URL": "redis://cache:6379/1",
            "READINGS_PATH": "site-a/readings/",
            "DEDUP_STRATEGY": "memory",
            "DEDUP_QUERY_LIMIT": "10",
            "STALENESS_FILTER": "0",
            "PORT": "8080",
            "LOG_LEVEL": "debug",
        },
        clear=True,
    )
    def test_from_env(self):
        settings = Settings(_env_file=None)

        assert settings.store.backend == StoreBackend.MEMORY
        assert settings.store.redis_url == "redis://cache:6379/1"
        assert settings.paths.readings == "/site-a/readings"
        assert settings.monitor.dedup_strategy == DedupStrategy.MEMORY
        assert settings.monitor.dedup_query_limit == 10
        assert settings.monitor.staleness_filter is False
        assert settings.server.port == 8080
        assert settings.log_level == "debug"

    @patch.dict(
        "os.environ",
        {
            "STORE_INDEXED_FIELDS": "dataTimestamp, parameter,",
            "DEDUP_CACHE_SIZE": "16",
        },
        clear=True,
    )
    def test_index_and_cache_settings(self):
        settings = Settings(_env_file=None)

        assert settings.store.indexed_fields == ("dataTimestamp", "parameter")
        assert settings.monitor.dedup_cache_size == 16

    @patch.dict("os.environ", {}, clear=True)
    def test_index_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.store.indexed_fields == ("dataTimestamp",)
        assert settings.monitor.dedup_cache_size == 1024

    @patch.dict("os.environ", {"STALENESS_FILTER": "1"}, clear=True)
    def test_staleness_filter_enabled_from_env(self):
        assert Settings(_env_file=None).staleness_filter is True

    def test_paths_must_be_distinct(self):
        with pytest.raises(ValidationError, match="distinct"):
            Settings(
                _env_file=None,
                readings_path="/warehouse/data",
                notifications_path="warehouse/data/",
            )

    def test_paths_must_not_be_empty(self):
        with pytest.raises(ValidationError, match="THRESHOLDS_PATH"):
            Settings(_env_file=None, thresholds_path="/")

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, port=0)

    def test_invalid_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, store_backend="firebase")


class TestGetSettings:
    def test_returns_override(self, test_settings):
        assert get_settings() is test_settings

    @patch.dict("os.environ", {"PORT": "9000"}, clear=True)
    def test_loads_from_env_without_override(self):
        set_settings(None)

        assert get_settings().server.port == 9000
        assert get_settings() is get_settings()
