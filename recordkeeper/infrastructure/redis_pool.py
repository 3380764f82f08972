"""
Redis connection pool management.

The cache repository only uses a client handed to it; this module is the
host-side helper that builds and disposes that client.
"""

from __future__ import annotations

import asyncio
import threading

import redis.asyncio as redis

from recordkeeper.config.logging import get_logger
from recordkeeper.config.settings import settings

logger = get_logger(__name__)


# Global Redis client singleton (async)
_redis_pool: redis.Redis | None = None
_redis_pool_lock: asyncio.Lock | None = None
_pool_lock_init = threading.Lock()


def _get_pool_lock() -> asyncio.Lock:
    """
    Get or create the pool lock (lazy initialization for event loop safety).

    Uses threading.Lock with double-check so concurrent first callers
    never create two different asyncio.Lock instances.
    """
    global _redis_pool_lock
    if _redis_pool_lock is None:
        with _pool_lock_init:
            if _redis_pool_lock is None:
                _redis_pool_lock = asyncio.Lock()
    return _redis_pool_lock


def create_redis_client(redis_url: str | None = None) -> redis.Redis:
    """Build a pooled async client from settings."""
    return redis.from_url(
        redis_url or settings.redis_url,
        max_connections=settings.redis_pool_max_connections,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
        socket_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )


async def get_redis_pool() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_pool

    # Fast path: pool already initialized
    if _redis_pool is not None:
        return _redis_pool

    async with _get_pool_lock():
        # Double-check after acquiring lock
        if _redis_pool is None:
            _redis_pool = create_redis_client()
            logger.info(
                "Redis async pool initialized",
                max_connections=settings.redis_pool_max_connections,
                timeout=settings.redis_socket_timeout,
            )
    return _redis_pool


async def close_redis_pool() -> None:
    """Close the shared client. Call from host shutdown."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis async pool closed")
