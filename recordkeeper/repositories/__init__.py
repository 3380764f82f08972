"""
Repositories: generic entity access, audit trail and cache.

Usage:
    from recordkeeper.repositories import get_repository

    repo = get_repository(Customer, session)
    customer_id = await repo.add(customer)
"""

from typing import TypeVar

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from recordkeeper.config.settings import settings
from recordkeeper.repositories.base import BaseDatabaseRepository
from recordkeeper.repositories.cache import RedisCacheRepository
from recordkeeper.repositories.filters import (
    Contains,
    Equals,
    FieldKind,
    FieldRef,
    GreaterOrEqual,
    GreaterThan,
    LessOrEqual,
    LessThan,
    Literal,
    Predicate,
    build_ordering,
    build_predicate,
    build_predicates,
    compile_predicates,
    resolve_field,
)
from recordkeeper.repositories.merge import is_default_value, merge_into, patch_fields
from recordkeeper.repositories.object_versioning import ObjectVersioningRepository

ModelT = TypeVar("ModelT")


def get_repository(
    model: type[ModelT],
    session: AsyncSession,
    versioning: ObjectVersioningRepository | None = None,
) -> BaseDatabaseRepository[ModelT]:
    """Repository for ``model`` whose audit trail shares ``session`` unless given one."""
    return BaseDatabaseRepository(model, session, versioning or ObjectVersioningRepository(session))


def get_cache_repository(client: redis.Redis) -> RedisCacheRepository:
    """Cache repository with the configured key prefix."""
    return RedisCacheRepository(client, key_prefix=settings.cache_key_prefix)


__all__ = [
    # Repositories
    "BaseDatabaseRepository",
    "ObjectVersioningRepository",
    "RedisCacheRepository",
    "get_repository",
    "get_cache_repository",
    # Filters
    "FieldKind",
    "FieldRef",
    "Literal",
    "Predicate",
    "Equals",
    "Contains",
    "LessThan",
    "GreaterThan",
    "LessOrEqual",
    "GreaterOrEqual",
    "build_predicate",
    "build_predicates",
    "compile_predicates",
    "build_ordering",
    "resolve_field",
    # Merge
    "is_default_value",
    "merge_into",
    "patch_fields",
]
