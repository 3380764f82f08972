"""
Services: audit snapshots, cache-aside and table-columns mapping.
"""

from recordkeeper.services import table_columns
from recordkeeper.services.audit import build_version, serialize_model, snapshot
from recordkeeper.services.cache_service import CacheService, is_empty

__all__ = [
    "build_version",
    "serialize_model",
    "snapshot",
    "CacheService",
    "is_empty",
    "table_columns",
]
