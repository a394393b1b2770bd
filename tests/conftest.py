"""Shared fixtures: a fresh in-memory database seeded with staff accounts."""

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from vipauto.models import client, order, report  # noqa: F401  (register tables)
from vipauto.models.user import Base
from tests.factories import STAFF, make_user


@pytest_asyncio.fixture
async def engine():
    """Create every table in a fresh in-memory DB and yield the engine."""
    test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory over *engine*, with the four staff accounts seeded."""
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        session.add_all([make_user(identity) for identity in STAFF])
        await session.commit()
    return factory
