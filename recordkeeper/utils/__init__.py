"""
Utilities: error taxonomy and column type classification.
"""

from recordkeeper.utils.column_types import ColumnTypeGroup, get_group
from recordkeeper.utils.exceptions import (
    AuditWriteError,
    AuditWriteWarning,
    InvalidArgumentError,
    InvalidFilterValueError,
    InvalidStatusTransitionError,
    NotFoundError,
    NotSupportedError,
    RecordkeeperError,
    StoreError,
)

__all__ = [
    "ColumnTypeGroup",
    "get_group",
    "AuditWriteError",
    "AuditWriteWarning",
    "InvalidArgumentError",
    "InvalidFilterValueError",
    "InvalidStatusTransitionError",
    "NotFoundError",
    "NotSupportedError",
    "RecordkeeperError",
    "StoreError",
]
