"""Realtime store backends."""

from warehouse.lib.config import StoreBackend, get_settings

from .base import RealtimeStore, Subscription, normalize_path
from .memory_store import MemoryStore
from .redis_store import RedisStore

__all__ = [
    "MemoryStore",
    "RealtimeStore",
    "RedisStore",
    "Subscription",
    "create_store",
    "normalize_path",
]


def create_store() -> RealtimeStore:
    """Factory function to get the configured store backend."""
    if get_settings().store.backend == StoreBackend.MEMORY:
        return MemoryStore()
    return RedisStore()
