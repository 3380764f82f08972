"""
Database engine and session management.
Uses SQLAlchemy 2.0 async engine and session factory.

The repositories never create or close sessions themselves: the host
owns the lifecycle and injects an AsyncSession.
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from recordkeeper.config.logging import get_logger
from recordkeeper.config.settings import settings
from recordkeeper.utils.exceptions import StoreError

logger = get_logger(__name__)


def _calculate_pool_size() -> int:
    """
    Pool size based on CPU cores.
    Formula: (2 * CPU cores) + 1, capped at 20.
    """
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def create_engine(database_url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """
    Create an async engine.

    SQLite URLs (tests, local tooling) get a StaticPool so every session
    sees the same in-memory database; other drivers get a sized pool.
    """
    url = database_url or settings.database_url
    engine_kwargs: dict = {
        "echo": settings.database_echo if echo is None else echo,
    }

    if url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        engine_kwargs["poolclass"] = StaticPool
    else:
        engine_kwargs.update(
            pool_pre_ping=True,  # Verify connections before using
            pool_size=_calculate_pool_size(),
            max_overflow=15,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
        )

    return create_async_engine(url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to ``engine``.

    expire_on_commit=False keeps attributes readable after the repository
    commits, without an implicit refresh (which async sessions cannot do).
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for a session outside of any framework.

    Usage:
        async with session_scope(factory) as session:
            repo = CustomerRepository(session)
            await repo.get_all()
    """
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


async def safe_commit(session: AsyncSession, operation: str, **log_context) -> None:
    """
    Commit with automatic rollback on failure.

    Raises StoreError chained to the original SQLAlchemy error.
    """
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        raise StoreError(operation, cause=str(e), **log_context) from e


async def init_models(engine: AsyncEngine) -> None:
    """
    Create all registered tables.

    For tests and local tooling only; production schemas are migrated
    outside this layer.
    """
    # Import models so metadata is populated before create_all()
    from recordkeeper import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    logger.info("Database tables created", url=engine.url.render_as_string(hide_password=True))
