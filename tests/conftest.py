"""
Pytest configuration and fixtures.
"""

from datetime import timedelta

import pytest
import pytest_asyncio

from recordkeeper.infrastructure.db import create_engine, create_session_factory
from recordkeeper.models import Base
from recordkeeper.repositories import BaseDatabaseRepository, ObjectVersioningRepository
from recordkeeper.repositories.cache import RedisCacheRepository
from tests.entities import Widget

# SQLite in-memory database for testing (StaticPool shares one connection)
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with every table created."""
    engine = create_engine(SQLALCHEMY_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session


@pytest.fixture
def versioning(db_session):
    return ObjectVersioningRepository(db_session)


@pytest.fixture
def widget_repo(db_session, versioning):
    """Widget repository in the default (warning) audit failure mode."""
    return BaseDatabaseRepository(Widget, db_session, versioning, audit_failure_raises=False)


class FakeRedis:
    """
    In-memory stand-in for redis.asyncio.Redis with decode_responses=True.

    Only the commands the cache repository uses. Expiry is recorded,
    never enforced.
    """

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.set_calls = 0

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if isinstance(value, bytes):
            value = value.decode()
        self.store[key] = value
        if isinstance(ex, timedelta):
            ex = int(ex.total_seconds())
        self.expiry[key] = ex
        self.set_calls += 1
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.expiry.pop(key, None)
                removed += 1
        return removed

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.store)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache_repo(fake_redis):
    return RedisCacheRepository(fake_redis)
