"""Centralized configuration for the warehouse monitor.

This package provides:
- Enums for monitored parameters, breach types and backends
- Pydantic settings models for configuration
"""

from .enums import (
    BreachType,
    DedupStrategy,
    NotificationType,
    Parameter,
    StoreBackend,
    Unit,
)
from .settings import (
    NOTIFICATIONS_PATH,
    READINGS_PATH,
    THRESHOLDS_PATH,
    MonitorSettings,
    PathSettings,
    ServerSettings,
    Settings,
    StoreSettings,
    get_settings,
)

__all__ = [
    # Enums
    "BreachType",
    "DedupStrategy",
    "NotificationType",
    "Parameter",
    "StoreBackend",
    "Unit",
    # Settings models
    "MonitorSettings",
    "PathSettings",
    "ServerSettings",
    "Settings",
    "StoreSettings",
    # Constants
    "NOTIFICATIONS_PATH",
    "READINGS_PATH",
    "THRESHOLDS_PATH",
    # Functions
    "get_settings",
]
