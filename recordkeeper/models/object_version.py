"""
Object Version Model.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ObjectVersion(Base):
    """
    Append-only audit record of one mutation.

    Stores which object changed, who changed it, when, and the serialized
    state before and after. Rows are written once and never modified.
    """

    __tablename__ = "object_version"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)

    # What was changed
    object_type: Mapped[str] = mapped_column(String(255), nullable=False)
    object_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    object_tenant: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # Snapshots (JSON); no before_value on creation
    before_value: Mapped[Optional[str]] = mapped_column(Text)
    after_value: Mapped[str] = mapped_column(Text, nullable=False)

    # When and by whom
    updated_on: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (
        Index("ix_object_version_type_tenant_object", "object_type", "object_tenant", "object_id"),
        Index("ix_object_version_updated_on", "updated_on"),
    )

    def __repr__(self) -> str:
        return f"<ObjectVersion(id={self.id}, {self.object_type}:{self.object_id})>"
