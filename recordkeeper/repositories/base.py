"""
Generic entity repository.

CRUD, dynamic search and pagination over any mapped class with EntityMixin.
Every mutation is committed and then recorded in the audit trail.

Usage:
    from recordkeeper.repositories import BaseDatabaseRepository

    repo = BaseDatabaseRepository(Customer, session)

    customer_id = await repo.add(Customer(name="Ada", created_by="ops"))
    customer = await repo.update(Customer(id=customer_id, name="Ada L.", updated_by="ops"))
    deleted = await repo.delete(customer_id)

    page = await repo.search_paginated(
        SearchParameterRequest(
            page=1,
            page_size=20,
            search_parameters=[SearchParameter(key="Name", value="Ad", operator="Contains")],
        )
    )

Subclass to add entity-specific queries; the generic ones stay available.
"""

from __future__ import annotations

import uuid
import warnings
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import func, inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from recordkeeper.config.constants import LIVE_STATUSES, DatabaseEntityStatus
from recordkeeper.config.logging import repository_logger as logger
from recordkeeper.config.settings import settings
from recordkeeper.infrastructure.db import safe_commit
from recordkeeper.models import ObjectVersion, TableColumns, utcnow
from recordkeeper.repositories.filters import build_ordering, build_predicates, compile_predicates
from recordkeeper.repositories.merge import merge_into
from recordkeeper.repositories.object_versioning import ObjectVersioningRepository
from recordkeeper.schemas import PaginatedResponse, SearchParameterRequest
from recordkeeper.services.audit import build_version, committed_value, snapshot
from recordkeeper.utils.exceptions import (
    AuditWriteError,
    AuditWriteWarning,
    InvalidArgumentError,
    InvalidStatusTransitionError,
    NotFoundError,
    RecordkeeperError,
)

ModelT = TypeVar("ModelT")


class BaseDatabaseRepository(Generic[ModelT]):
    """
    Repository for one entity type.

    The session and the versioning store are injected; the repository
    never opens, closes or shares ownership of them.
    """

    def __init__(
        self,
        model: type[ModelT],
        session: AsyncSession,
        versioning: ObjectVersioningRepository | None = None,
        *,
        audit_failure_raises: bool | None = None,
    ):
        self._model = model
        self._session = session
        self._versioning = versioning if versioning is not None else ObjectVersioningRepository(session)
        self._audit_failure_raises = (
            settings.audit_failure_raises if audit_failure_raises is None else audit_failure_raises
        )

    @property
    def model(self) -> type[ModelT]:
        """The SQLAlchemy model class."""
        return self._model

    @property
    def session(self) -> AsyncSession:
        """The database session."""
        return self._session

    @property
    def versioning(self) -> ObjectVersioningRepository:
        return self._versioning

    @property
    def entity_name(self) -> str:
        return self._model.__name__

    # =========================================================================
    # Query helpers
    # =========================================================================

    def _base_query(self) -> Select:
        """Create base select query."""
        return select(self._model)

    def _apply_active_filter(self, query: Select, include_not_active: bool) -> Select:
        """Keep only Active rows unless include_not_active."""
        if not include_not_active:
            query = query.where(self._model.status == DatabaseEntityStatus.ACTIVE)
        return query

    def _default_order(self, query: Select) -> Select:
        return query.order_by(self._model.created_at.asc())

    async def _count(self, query: Select) -> int:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        return (await self._session.scalar(count_query)) or 0

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_all(self) -> Sequence[ModelT]:
        """Every row, deleted ones included, oldest first."""
        result = await self._session.scalars(self._default_order(self._base_query()))
        return result.all()

    async def get_all_active(self) -> Sequence[ModelT]:
        """Active rows only, oldest first."""
        query = self._apply_active_filter(self._base_query(), include_not_active=False)
        result = await self._session.scalars(self._default_order(query))
        return result.all()

    async def get_by_id(self, entity_id: uuid.UUID) -> ModelT | None:
        """Entity with ``entity_id`` in any status, or None."""
        if entity_id is None:
            return None
        return await self._session.get(self._model, entity_id)

    async def exists(self, entity_id: uuid.UUID) -> bool:
        query = select(self._model.id).where(self._model.id == entity_id).limit(1)
        return (await self._session.scalar(query)) is not None

    async def count(self, include_not_active: bool = True) -> int:
        query = self._apply_active_filter(self._base_query(), include_not_active)
        return await self._count(query)

    async def get_history(self, entity_id: uuid.UUID) -> Sequence[ObjectVersion]:
        """Audit records of one entity of this type, most recent first."""
        versions = await self._versioning.get_by_object_id(entity_id)
        return [v for v in versions if v.object_type == self.entity_name]

    async def get_table_columns(self, table_name: str | None = None) -> TableColumns | None:
        """
        Schema metadata row for ``table_name``.

        Defaults to the mapped class name, which is how the catalog names
        tables it describes.
        """
        name = table_name or self.entity_name
        return await self._session.get(TableColumns, name)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add(self, entity: ModelT) -> uuid.UUID:
        """
        Insert ``entity`` and record its creation.

        Assigns a new id and created_at (UTC); status defaults to Active.

        Returns:
            The new id
        """
        if entity is None:
            raise InvalidArgumentError("entity must not be None", entity=self.entity_name)

        entity.id = uuid.uuid4()
        entity.created_at = utcnow()
        if entity.status is None:
            entity.status = DatabaseEntityStatus.ACTIVE

        entity_id = entity.id
        version = build_version(entity, updated_by=entity.created_by)

        self._session.add(entity)
        await safe_commit(self._session, f"{self.entity_name}.add", entity_id=str(entity_id))

        logger.info("Entity created", entity=self.entity_name, entity_id=str(entity_id))
        await self._record_version(version, "add", entity_id)
        return entity_id

    async def update(self, entity: ModelT) -> ModelT:
        """
        Merge the provided fields of ``entity`` into the stored row.

        Fields holding a default value (None, nil UUID, datetime.min, empty
        collection) are left untouched. id and created_at never change.

        Raises:
            InvalidArgumentError: entity is None
            NotFoundError: no row with entity.id
            InvalidStatusTransitionError: a Deleted row asked to come back
        """
        if entity is None:
            raise InvalidArgumentError("entity must not be None", entity=self.entity_name)

        entity_id = entity.id
        stored = await self.get_by_id(entity_id) if entity_id is not None else None
        if stored is None:
            raise NotFoundError(self.entity_name, entity_id)

        # The caller may pass the stored instance itself, already modified
        in_place = stored is entity
        previous_status = committed_value(stored, "status") if in_place else stored.status

        incoming_status = entity.status
        if (
            previous_status == DatabaseEntityStatus.DELETED
            and incoming_status is not None
            and incoming_status in LIVE_STATUSES
        ):
            raise InvalidStatusTransitionError(self.entity_name, previous_status, incoming_status)

        before = snapshot(stored, committed=in_place)
        if not in_place:
            merge_into(stored, entity)
        stored.updated_at = utcnow()

        version = build_version(
            stored,
            before_value=before,
            updated_by=stored.updated_by or stored.created_by,
        )

        await safe_commit(self._session, f"{self.entity_name}.update", entity_id=str(entity_id))

        logger.info("Entity updated", entity=self.entity_name, entity_id=str(entity_id))
        await self._record_version(version, "update", stored)
        return stored

    async def delete(self, entity_id: uuid.UUID, deleted_by: str | None = None) -> bool:
        """
        Soft-delete: set status to Deleted.

        Returns:
            True when a row was changed, False when the id does not exist
        """
        stored = await self.get_by_id(entity_id)
        if stored is None:
            logger.debug("Delete of missing entity", entity=self.entity_name, entity_id=str(entity_id))
            return False

        before = snapshot(stored)
        values: dict[str, Any] = {
            "status": DatabaseEntityStatus.DELETED,
            "updated_at": utcnow(),
        }
        if deleted_by:
            values["updated_by"] = deleted_by

        result = await self._session.execute(
            update(self._model)
            .where(self._model.id == entity_id)
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
        rowcount = result.rowcount or 0

        # "evaluate" has applied the new values to the loaded instance
        version = build_version(
            stored,
            before_value=before,
            updated_by=stored.updated_by or stored.created_by,
        )

        await safe_commit(self._session, f"{self.entity_name}.delete", entity_id=str(entity_id))

        deleted = rowcount > 0
        if deleted:
            logger.info("Entity deleted", entity=self.entity_name, entity_id=str(entity_id))
            await self._record_version(version, "delete", deleted)
        return deleted

    async def _record_version(self, version: ObjectVersion, operation: str, result: Any) -> None:
        """
        Append the audit record of a committed mutation.

        The mutation is never rolled back. A failed append raises
        AuditWriteError (carrying ``result``) in raising mode, otherwise it
        is logged and surfaced as AuditWriteWarning.
        """
        try:
            await self._versioning.add(version)
        except (RecordkeeperError, SQLAlchemyError) as e:
            if self._audit_failure_raises:
                raise AuditWriteError(
                    operation,
                    version.object_type,
                    version.object_id,
                    result=result,
                    cause=str(e),
                ) from e

            logger.error(
                "Audit append failed; primary change kept",
                operation=operation,
                object_type=version.object_type,
                object_id=str(version.object_id),
                cause=str(e),
            )
            warnings.warn(
                f"Audit append failed after {operation} of {version.object_type} {version.object_id}",
                AuditWriteWarning,
                stacklevel=3,
            )
            await self._refresh_expired(result)

    async def _refresh_expired(self, result: Any) -> None:
        # A rollback inside the audit append expires instances of a shared session
        if isinstance(result, self._model):
            state = inspect(result)
            if state.persistent and state.expired_attributes:
                await self._session.refresh(result)

    # =========================================================================
    # Search & pagination
    # =========================================================================

    def _search_query(self, request: SearchParameterRequest) -> Select:
        predicates = build_predicates(self._model, request.search_parameters)
        query = self._apply_active_filter(self._base_query(), request.include_not_active)
        clauses = compile_predicates(predicates)
        if clauses:
            query = query.where(*clauses)
        return query

    async def search(self, request: SearchParameterRequest) -> Sequence[ModelT]:
        """
        One page of entities matching ``request``.

        Raises:
            InvalidFilterValueError: a value cannot be parsed for its field
        """
        query = self._search_query(request)
        query = query.order_by(*build_ordering(self._model, request.search_parameters))
        query = query.offset(request.offset).limit(request.page_size)

        result = await self._session.scalars(query)
        return result.all()

    async def search_paginated(self, request: SearchParameterRequest) -> PaginatedResponse[ModelT]:
        """Like search(), with total_count over the whole filtered set."""
        query = self._search_query(request)
        total = await self._count(query)

        paged = (
            query.order_by(*build_ordering(self._model, request.search_parameters))
            .offset(request.offset)
            .limit(request.page_size)
        )
        result = await self._session.scalars(paged)
        return PaginatedResponse(
            page=request.page,
            page_size=request.page_size,
            total_count=total,
            data=list(result.all()),
        )

    async def get_paginated(self, page: int, page_size: int) -> PaginatedResponse[ModelT]:
        """
        One page over every row, oldest first, with no filters.

        Raises:
            InvalidArgumentError: page or page_size below 1
        """
        if page < 1 or page_size < 1:
            raise InvalidArgumentError(
                "page and page_size must be >= 1",
                entity=self.entity_name,
                page=page,
                page_size=page_size,
            )

        total = await self._count(self._base_query())
        query = self._default_order(self._base_query()).offset((page - 1) * page_size).limit(page_size)
        result = await self._session.scalars(query)
        return PaginatedResponse(
            page=page,
            page_size=page_size,
            total_count=total,
            data=list(result.all()),
        )
