"""
Enumerations and constants shared by the data-access layer.

Usage:
    from recordkeeper.config.constants import DatabaseEntityStatus, SearchOperator

    if entity.status == DatabaseEntityStatus.ACTIVE:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# Entity Lifecycle
# =============================================================================


class DatabaseEntityStatus(str, Enum):
    """
    Lifecycle status of a stored entity.

    Active, Inactive and Draft move freely between each other.
    Deleted is terminal: entities are soft-deleted and never come back.
    """

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DELETED = "Deleted"
    DRAFT = "Draft"


LIVE_STATUSES: Final[frozenset[DatabaseEntityStatus]] = frozenset(
    {DatabaseEntityStatus.ACTIVE, DatabaseEntityStatus.INACTIVE, DatabaseEntityStatus.DRAFT}
)


# =============================================================================
# Search
# =============================================================================


class SearchOperator(str, Enum):
    """Operators accepted by SearchParameter."""

    CONTAINS = "Contains"
    EQUALS = "Equals"
    LESS_THAN = "LessThan"
    GREATER_THAN = "GreaterThan"
    LESS_OR_EQUAL_THAN = "LessOrEqualThan"
    GREATER_OR_EQUAL_THAN = "GreaterOrEqualThan"


ORDERING_OPERATORS: Final[frozenset[SearchOperator]] = frozenset(
    {
        SearchOperator.LESS_THAN,
        SearchOperator.GREATER_THAN,
        SearchOperator.LESS_OR_EQUAL_THAN,
        SearchOperator.GREATER_OR_EQUAL_THAN,
    }
)


class SearchOrder(str, Enum):
    """Sort direction of a search parameter's field."""

    ASCENDING = "Ascending"
    DESCENDING = "Descending"


# =============================================================================
# Cache
# =============================================================================


class CacheKeys:
    """Cache key building helpers."""

    SEPARATOR: Final[str] = ":"

    @staticmethod
    def build(*parts: object, prefix: str | None = None) -> str:
        """
        Join key parts with ':' and an optional prefix.

        CacheKeys.build("customer", 42, prefix="recordkeeper")
        -> "recordkeeper:customer:42"
        """
        segments = [str(part) for part in parts if part is not None and str(part) != ""]
        if prefix:
            segments.insert(0, prefix)
        return CacheKeys.SEPARATOR.join(segments)
