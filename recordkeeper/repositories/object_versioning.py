"""
Audit/versioning store.

Append-only: ObjectVersion rows are added and read, never rewritten.

Usage:
    versioning = ObjectVersioningRepository(session)
    version_id = await versioning.add(version)
    history = await versioning.get_by_object("Customer", tenant_id, customer_id)
"""

from __future__ import annotations

import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from recordkeeper.config.logging import audit_logger
from recordkeeper.infrastructure.db import safe_commit
from recordkeeper.models import ObjectVersion, utcnow
from recordkeeper.utils.exceptions import InvalidArgumentError, NotSupportedError


class ObjectVersioningRepository:
    """Reads and appends ObjectVersion records."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    def _ordered(self):
        return select(ObjectVersion).order_by(ObjectVersion.updated_on.desc())

    async def add(self, version: ObjectVersion) -> uuid.UUID:
        """
        Append an audit record.

        Assigns a fresh id and updated_on in UTC, overwriting whatever the
        caller set, then commits.
        """
        if version is None:
            raise InvalidArgumentError("version must not be None")

        version.id = uuid.uuid4()
        version.updated_on = utcnow()

        self._session.add(version)
        await safe_commit(
            self._session,
            "object_version.add",
            object_type=version.object_type,
            object_id=str(version.object_id),
        )

        audit_logger.debug(
            "Audit record appended",
            version_id=str(version.id),
            object_type=version.object_type,
            object_id=str(version.object_id),
        )
        return version.id

    async def get_by_id(self, version_id: uuid.UUID) -> ObjectVersion | None:
        return await self._session.get(ObjectVersion, version_id)

    async def get_all(self) -> Sequence[ObjectVersion]:
        result = await self._session.scalars(self._ordered())
        return result.all()

    async def get_by_object(
        self,
        object_type: str,
        object_tenant: uuid.UUID,
        object_id: uuid.UUID,
    ) -> Sequence[ObjectVersion]:
        """History of one object within a tenant, most recent first."""
        query = self._ordered().where(
            ObjectVersion.object_type == object_type,
            ObjectVersion.object_tenant == object_tenant,
            ObjectVersion.object_id == object_id,
        )
        result = await self._session.scalars(query)
        return result.all()

    async def get_by_object_id(self, object_id: uuid.UUID) -> Sequence[ObjectVersion]:
        """History of one object regardless of type or tenant, most recent first."""
        result = await self._session.scalars(
            self._ordered().where(ObjectVersion.object_id == object_id)
        )
        return result.all()

    async def update(self, version: ObjectVersion) -> ObjectVersion:
        raise NotSupportedError("update", "ObjectVersioningRepository")

    async def delete(self, version_id: uuid.UUID) -> bool:
        raise NotSupportedError("delete", "ObjectVersioningRepository")
