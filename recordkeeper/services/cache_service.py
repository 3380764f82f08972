"""
Cache-aside service.

Usage:
    cache_service = CacheService(RedisCacheRepository(client))

    async def load_customer():
        return await repo.get_by_id(customer_id)

    customer = await cache_service.get_or_add(
        f"customer:{customer_id}", load_customer, ttl=300, value_type=CustomerDto
    )

There is no single-flight: concurrent misses on one key each call populate.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from recordkeeper.config.logging import cache_logger as logger
from recordkeeper.config.settings import settings

if TYPE_CHECKING:
    from recordkeeper.repositories.cache import RedisCacheRepository

T = TypeVar("T")

_FALSY_IS_EMPTY = (
    bool,
    int,
    float,
    complex,
    Decimal,
    str,
    bytes,
    bytearray,
    list,
    tuple,
    set,
    frozenset,
    dict,
)


def is_empty(value: Any) -> bool:
    """
    True for None and for falsy numbers, bools, strings, bytes and collections.

    Empty values are never served from the cache nor written to it.
    """
    if value is None:
        return True
    if isinstance(value, _FALSY_IS_EMPTY):
        return not value
    return False


class CacheService:
    """Read-through cache over a cache repository."""

    def __init__(
        self,
        cache_repository: "RedisCacheRepository",
        default_ttl: int | timedelta | None = None,
    ):
        self._cache = cache_repository
        self._default_ttl = default_ttl if default_ttl is not None else settings.cache_default_ttl_seconds

    @property
    def default_ttl(self) -> int | timedelta:
        return self._default_ttl

    async def get_or_add(
        self,
        key: str,
        populate: Callable[[], Awaitable[T]],
        ttl: int | timedelta | None = None,
        *,
        value_type: Any = Any,
    ) -> T | None:
        """
        Cached value for ``key``, computing and storing it on a miss.

        Args:
            key: Cache key
            populate: Coroutine function computing the value on a miss
            ttl: Expiry for a newly stored value, defaults to default_ttl
            value_type: Type the cached JSON is parsed as

        Returns:
            The cached or freshly computed value (possibly empty)
        """
        value = await self._cache.get(key, value_type)
        if not is_empty(value):
            return value

        value = await populate()
        if is_empty(value):
            logger.debug("Populate returned an empty value, not cached", key=key)
            return value

        await self._cache.set(
            key,
            value,
            ttl if ttl is not None else self._default_ttl,
            value_type=value_type,
        )
        return value

    async def remove(self, key: str) -> bool:
        return await self._cache.remove(key)

    async def exists(self, key: str) -> bool:
        return await self._cache.exists(key)
