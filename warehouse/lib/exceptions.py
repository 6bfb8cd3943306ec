"""Custom exceptions for the warehouse monitor.

Per-event errors (store failures, malformed records) are caught at the
boundary of each monitor event handler. Only StartupError is fatal.
"""


class WarehouseMonitorError(Exception):
    """Base exception for all application errors."""


class StoreError(WarehouseMonitorError):
    """Base exception for realtime store errors."""


class TransientStoreError(StoreError):
    """Raised when a store read, write or subscription fails."""


class MalformedDataError(WarehouseMonitorError):
    """Raised when a reading or threshold record is missing expected fields."""


class StartupError(WarehouseMonitorError):
    """Raised when the store subscriptions cannot be established at startup."""


class StoreNotConnectedError(TransientStoreError):
    """Raised when attempting store operations without a connection."""

    def __init__(self, message: str = "Store not connected") -> None:
        super().__init__(message)
