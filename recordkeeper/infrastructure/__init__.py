"""
Infrastructure helpers for hosts: engine, sessions and Redis client.
"""

from recordkeeper.infrastructure.db import (
    create_engine,
    create_session_factory,
    init_models,
    safe_commit,
    session_scope,
)
from recordkeeper.infrastructure.redis_pool import (
    close_redis_pool,
    create_redis_client,
    get_redis_pool,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "init_models",
    "safe_commit",
    "session_scope",
    "close_redis_pool",
    "create_redis_client",
    "get_redis_pool",
]
