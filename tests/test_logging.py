"""Tests for logging setup."""

import logging

import pytest

from warehouse.logging import configure, get_logger


@pytest.fixture
def restore_level():
    app_logger = logging.getLogger("warehouse")
    level = app_logger.level
    yield app_logger
    app_logger.setLevel(level)


class TestConfigure:
    def test_accepts_level_names(self, restore_level):
        configure("debug")

        assert restore_level.level == logging.DEBUG

    def test_reconfigure_changes_level_only(self, restore_level):
        configure(logging.INFO)
        handlers = list(restore_level.handlers)

        configure("WARNING")

        assert restore_level.level == logging.WARNING
        assert restore_level.handlers == handlers

    def test_unknown_level(self, restore_level):
        with pytest.raises(ValueError, match="verbose"):
            configure("verbose")

    def test_quiets_access_log(self, restore_level):
        configure()

        assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_get_logger_namespace():
    assert get_logger("monitor").name == "warehouse.monitor"
