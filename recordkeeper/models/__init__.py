"""
ORM models.

Import from here so every table is registered on Base.metadata:
    from recordkeeper.models import Base, EntityMixin, ObjectVersion
"""

from .base import Base, EntityMixin, TenantEntityMixin, utcnow
from .object_version import ObjectVersion
from .table_columns import TableColumns

__all__ = [
    "Base",
    "EntityMixin",
    "TenantEntityMixin",
    "utcnow",
    "ObjectVersion",
    "TableColumns",
]
