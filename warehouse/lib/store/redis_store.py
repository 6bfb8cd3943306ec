"""Redis-backed realtime store.

Each node is stored as a Redis hash whose fields are the child keys and whose
values are JSON documents. Every write publishes on a per-node channel;
subscriptions listen on that channel and re-read the node on each message.

Children are also indexed by the configured scalar fields: one sorted set per
(node, field, value) holds the matching child keys, so child queries on those
fields read only the matching children. Members share a score of 0 and are
ordered by key.
"""

import json
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from typing import Any, override

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from warehouse.lib.config import get_settings
from warehouse.lib.exceptions import (
    StoreNotConnectedError,
    TransientStoreError,
)
from warehouse.lib.models import Snapshot
from warehouse.lib.store.base import (
    PushKeyGenerator,
    RealtimeStore,
    Subscription,
    match_children,
    normalize_path,
)
from warehouse.logging import get_logger

logger = get_logger("lib.store.redis")

_STORE_ERRORS = (RedisError, OSError)
_INDEXABLE = (str, int, float, bool)


@asynccontextmanager
async def _store_errors(action: str, path: str) -> AsyncIterator[None]:
    """Wrap Redis failures into TransientStoreError."""
    try:
        yield
    except _STORE_ERRORS as e:
        raise TransientStoreError(f"Failed to {action} {path}: {e}") from e


def _decode_child(path: str, field: bytes, value: bytes | None) -> Any:
    """Decode one stored child, returning None if it is not valid JSON."""
    if value is None:
        return None
    try:
        return json.loads(value)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(
            "Skipping invalid child %r at %s: %s",
            field.decode(errors="replace"),
            path,
            e,
        )
        return None


class _RedisSubscription(Subscription):
    def __init__(
        self, store: "RedisStore", path: str, pubsub: aioredis.client.PubSub
    ) -> None:
        self._store = store
        self._path = path
        self._pubsub: aioredis.client.PubSub | None = pubsub
        self._primed = False

    @override
    async def __anext__(self) -> Snapshot:
        if self._pubsub is None:
            raise StopAsyncIteration
        try:
            if not self._primed:
                snapshot = await self._store.get(self._path)
                self._primed = True
                return snapshot
            return await self._next_change()
        except TransientStoreError:
            # Changes may have been missed, re-read the node on the next call
            self._primed = False
            raise

    async def _next_change(self) -> Snapshot:
        while True:
            async with _store_errors("listen on", self._path):
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=None
                )
            if self._pubsub is None:
                raise StopAsyncIteration
            if message is not None and message["type"] == "message":
                return await self._store.get(self._path)

    @override
    async def close(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        except _STORE_ERRORS as e:
            logger.warning("Failed to unsubscribe from %s: %s", self._path, e)
        logger.debug("Unsubscribed from %s", self._path)


class RedisStore(RealtimeStore):
    """Realtime store on top of Redis hashes and pub/sub."""

    def __init__(
        self,
        redis_url: str | None = None,
        prefix: str | None = None,
        indexed_fields: Iterable[str] | None = None,
    ) -> None:
        cfg = get_settings().store
        self._redis_url = redis_url or cfg.redis_url
        self._prefix = cfg.prefix if prefix is None else prefix
        self._indexed_fields = frozenset(
            cfg.indexed_fields if indexed_fields is None else indexed_fields
        )
        self._client: aioredis.Redis | None = None
        self._next_key = PushKeyGenerator()

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise StoreNotConnectedError()
        return self._client

    def _key(self, path: str) -> str:
        return f"{self._prefix}{normalize_path(path)}"

    def _channel(self, path: str) -> str:
        return f"{self._prefix}changes:{normalize_path(path)}"

    def _index_registry(self, path: str) -> str:
        return f"{self._prefix}indexes:{normalize_path(path)}"

    def _index_key(self, path: str, field: str, value: Any) -> str:
        return (
            f"{self._prefix}index:{normalize_path(path)}:{field}:"
            f"{json.dumps(value)}"
        )

    def _index_entries(self, path: str, value: Any) -> list[str]:
        """Return the index keys a child value belongs to."""
        if not isinstance(value, Mapping):
            return []
        return [
            self._index_key(path, field, value[field])
            for field in sorted(self._indexed_fields)
            if isinstance(value.get(field), _INDEXABLE)
        ]

    def _add_to_indexes(
        self, pipe: aioredis.client.Pipeline, path: str, key: str, value: Any
    ) -> None:
        for index_key in self._index_entries(path, value):
            pipe.zadd(index_key, {key: 0})
            pipe.sadd(self._index_registry(path), index_key)

    @override
    async def connect(self) -> None:
        if self._client is not None:
            return
        client = aioredis.from_url(self._redis_url)
        try:
            async with _store_errors("connect to", self._redis_url):
                await client.ping()
        except TransientStoreError:
            await client.aclose()
            raise
        self._client = client
        logger.info("Connected to Redis store")

    @override
    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Redis store closed")

    @override
    async def ping(self) -> None:
        async with _store_errors("ping", self._redis_url):
            await self.client.ping()

    @override
    async def get(self, path: str) -> Snapshot:
        """Return the node at path, skipping children that fail to decode."""
        async with _store_errors("read", path):
            raw = await self.client.hgetall(self._key(path))
        if not raw:
            return None
        snapshot = {}
        for field, value in raw.items():
            child = _decode_child(path, field, value)
            if child is not None:
                snapshot[field.decode(errors="replace")] = child
        return snapshot or None

    @override
    async def set(self, path: str, value: Mapping[str, Any]) -> None:
        key = self._key(path)
        registry = self._index_registry(path)
        async with _store_errors("write", path):
            stale_indexes = await self.client.smembers(registry)
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(key, registry, *stale_indexes)
                if value:
                    pipe.hset(
                        key,
                        mapping={k: json.dumps(v) for k, v in value.items()},
                    )
                    for child_key, child in value.items():
                        self._add_to_indexes(pipe, path, child_key, child)
                pipe.publish(self._channel(path), "set")
                await pipe.execute()

    @override
    async def update(self, path: str, key: str, value: Any) -> None:
        async with _store_errors("write", path):
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(self._key(path), key, json.dumps(value))
                self._add_to_indexes(pipe, path, key, value)
                pipe.publish(self._channel(path), "update")
                await pipe.execute()

    @override
    async def push(self, path: str, value: Any) -> str:
        key = self._next_key()
        await self.update(path, key, value)
        return key

    @override
    async def query_by_child(
        self, path: str, field: str, value: Any, limit: int
    ) -> list[tuple[str, dict[str, Any]]]:
        if limit <= 0:
            return []
        if field not in self._indexed_fields or not isinstance(
            value, _INDEXABLE
        ):
            # No index for this field, filter the whole node client-side
            return match_children(await self.get(path), field, value, limit)

        index_key = self._index_key(path, field, value)
        async with _store_errors("query", path):
            keys = await self.client.zrange(index_key, -limit, -1)
            if not keys:
                return []
            values = await self.client.hmget(self._key(path), keys)

        node = {}
        for key, raw in zip(keys, values, strict=True):
            child = _decode_child(path, key, raw)
            if child is not None:
                node[key.decode(errors="replace")] = child
        # An updated child can leave a stale index entry behind
        return match_children(node, field, value, limit)

    @override
    async def subscribe(self, path: str) -> Subscription:
        pubsub = self.client.pubsub()
        try:
            async with _store_errors("subscribe to", path):
                await pubsub.subscribe(self._channel(path))
        except TransientStoreError:
            await pubsub.aclose()
            raise
        logger.debug("Subscribed to %s", path)
        return _RedisSubscription(self, normalize_path(path), pubsub)
