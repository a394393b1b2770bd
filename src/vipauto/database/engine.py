"""Database engine and async session factory."""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from vipauto.config import settings
from vipauto.models import client, order, report  # noqa: F401  (register tables)
from vipauto.models.user import Base

engine = create_async_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables that don't yet exist."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
