"""
Redis-backed cache repository.

Values cross the Redis boundary as JSON text produced and parsed by
pydantic TypeAdapters, so models, dataclasses and plain containers all
round-trip with their declared type.

Usage:
    cache = RedisCacheRepository(await get_redis_pool(), key_prefix="recordkeeper")
    await cache.set("customer:42", customer, ttl=300)
    customer = await cache.get("customer:42", CustomerDto)
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Any, TypeVar

import redis.asyncio as redis
from pydantic import TypeAdapter

from recordkeeper.config.constants import CacheKeys
from recordkeeper.config.logging import cache_logger as logger
from recordkeeper.utils.exceptions import InvalidArgumentError

T = TypeVar("T")

Expiry = int | timedelta | None


@lru_cache(maxsize=256)
def _adapter(value_type: Any) -> TypeAdapter:
    return TypeAdapter(value_type)


class RedisCacheRepository:
    """Typed get/set/remove/exists over an injected redis.asyncio client."""

    def __init__(self, client: redis.Redis, key_prefix: str | None = None):
        if client is None:
            raise InvalidArgumentError("redis client must not be None")
        self._client = client
        self._key_prefix = key_prefix

    @property
    def client(self) -> redis.Redis:
        return self._client

    def _key(self, key: str) -> str:
        if not key:
            raise InvalidArgumentError("cache key must not be empty")
        return CacheKeys.build(key, prefix=self._key_prefix)

    async def get(self, key: str, value_type: type[T] | Any = Any) -> T | None:
        """
        Cached value for ``key`` parsed as ``value_type``.

        Returns None when the key is absent or holds an empty string.
        """
        full_key = self._key(key)
        raw = await self._client.get(full_key)
        if raw is None or len(raw) == 0:
            logger.debug("Cache miss", key=full_key)
            return None

        logger.debug("Cache hit", key=full_key)
        return _adapter(value_type).validate_json(raw)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Expiry = None,
        *,
        value_type: Any = Any,
    ) -> None:
        """Store ``value`` as JSON. No ttl means no expiry."""
        full_key = self._key(key)
        payload = _adapter(value_type).dump_json(value)
        await self._client.set(full_key, payload, ex=ttl)
        logger.debug("Cache set", key=full_key, ttl=_ttl_seconds(ttl))

    async def remove(self, key: str) -> bool:
        """Delete ``key``. True when something was removed."""
        full_key = self._key(key)
        removed = await self._client.delete(full_key)
        return bool(removed)

    async def exists(self, key: str) -> bool:
        return bool(await self._client.exists(self._key(key)))


def _ttl_seconds(ttl: Expiry) -> int | None:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return ttl
