"""
recordkeeper: async data-access layer with an audit trail and cache-aside helpers.

Usage:
    from recordkeeper import BaseDatabaseRepository, SearchParameterRequest

    repo = BaseDatabaseRepository(Customer, session)
    page = await repo.search_paginated(SearchParameterRequest(page=1, page_size=20))
"""

from recordkeeper.config import DatabaseEntityStatus, SearchOperator, SearchOrder, settings
from recordkeeper.models import Base, EntityMixin, ObjectVersion, TableColumns, TenantEntityMixin
from recordkeeper.repositories import (
    BaseDatabaseRepository,
    ObjectVersioningRepository,
    RedisCacheRepository,
    get_cache_repository,
    get_repository,
)
from recordkeeper.schemas import PaginatedResponse, SearchParameter, SearchParameterRequest
from recordkeeper.services import CacheService
from recordkeeper.utils import ColumnTypeGroup, get_group

__version__ = "1.0.0"

__all__ = [
    "DatabaseEntityStatus",
    "SearchOperator",
    "SearchOrder",
    "settings",
    "Base",
    "EntityMixin",
    "TenantEntityMixin",
    "ObjectVersion",
    "TableColumns",
    "BaseDatabaseRepository",
    "ObjectVersioningRepository",
    "RedisCacheRepository",
    "get_repository",
    "get_cache_repository",
    "PaginatedResponse",
    "SearchParameter",
    "SearchParameterRequest",
    "CacheService",
    "ColumnTypeGroup",
    "get_group",
]
