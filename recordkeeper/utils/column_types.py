"""
Database column type classification.

Maps raw column type names, as reported by SQL Server or Postgres
catalogs, to a semantic group.

Usage:
    from recordkeeper.utils.column_types import get_group, ColumnTypeGroup

    get_group("NVARCHAR")           # ColumnTypeGroup.TEXT
    get_group("timestamptz")        # ColumnTypeGroup.DATE
    get_group("geometry")           # None
"""

from enum import Enum
from typing import Final


class ColumnTypeGroup(str, Enum):
    """Semantic group of a column type."""

    TEXT = "Text"
    NUMBER = "Number"
    DATE = "Date"
    BINARY = "Binary"
    BOOLEAN = "Boolean"
    LOOKUP = "Lookup"


TEXT_TYPES: Final[frozenset[str]] = frozenset({
    # SQL Server
    "char", "nchar", "varchar", "nvarchar", "text", "ntext",
    # Postgres
    "character varying", "character", "bpchar",
})

NUMBER_TYPES: Final[frozenset[str]] = frozenset({
    # SQL Server
    "int", "smallint", "bigint", "tinyint", "decimal", "numeric",
    "float", "real", "money", "smallmoney",
    # Postgres
    "integer", "int2", "int4", "int8", "float4", "float8", "double precision",
})

DATE_TYPES: Final[frozenset[str]] = frozenset({
    # SQL Server
    "date", "datetime", "datetime2", "smalldatetime", "datetimeoffset", "time",
    # Postgres
    "timestamp", "timestamp without time zone", "timestamp with time zone",
    "timestamptz", "time without time zone", "time with time zone", "timetz",
    "interval",
})

BINARY_TYPES: Final[frozenset[str]] = frozenset({"binary", "varbinary", "image", "bytea"})

BOOLEAN_TYPES: Final[frozenset[str]] = frozenset({"bit", "boolean", "bool"})

LOOKUP_TYPES: Final[frozenset[str]] = frozenset({"uniqueidentifier", "uuid"})

# The sets are disjoint.
_GROUPS: Final[tuple[tuple[ColumnTypeGroup, frozenset[str]], ...]] = (
    (ColumnTypeGroup.TEXT, TEXT_TYPES),
    (ColumnTypeGroup.NUMBER, NUMBER_TYPES),
    (ColumnTypeGroup.DATE, DATE_TYPES),
    (ColumnTypeGroup.BINARY, BINARY_TYPES),
    (ColumnTypeGroup.BOOLEAN, BOOLEAN_TYPES),
    (ColumnTypeGroup.LOOKUP, LOOKUP_TYPES),
)


def get_group(data_type: str | None) -> ColumnTypeGroup | None:
    """
    Return the group a column type belongs to, or None when unknown.

    Matching is case-insensitive. Never raises.
    """
    if not data_type:
        return None

    normalized = data_type.strip().lower()
    for group, members in _GROUPS:
        if normalized in members:
            return group
    return None
