"""
Base class and entity mixins for all SQLAlchemy ORM models.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Enum, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from recordkeeper.config.constants import DatabaseEntityStatus


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class EntityMixin:
    """
    Capability set every entity handled by BaseDatabaseRepository exposes.

    Fields added:
    - id: UUID primary key, assigned by the repository on add, never changed
    - created_at / created_by: set once, at creation
    - updated_at / updated_by: set on every update
    - status: lifecycle status; Deleted means soft-deleted

    Transient instances keep unset columns as None, which is what the
    partial-update merge treats as "not provided".
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[DatabaseEntityStatus] = mapped_column(
        Enum(DatabaseEntityStatus, name="database_entity_status", native_enum=False, length=16),
        default=DatabaseEntityStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    @property
    def is_deleted(self) -> bool:
        """True once the entity has been soft-deleted."""
        return self.status == DatabaseEntityStatus.DELETED

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        status = self.status.value if self.status is not None else "new"
        return f"<{class_name}(id={self.id}, {status})>"


class TenantEntityMixin(EntityMixin):
    """
    Entity that belongs to a tenant.

    When tenant_id is set, audit records are filed under it instead of
    under the entity's own id.
    """

    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
