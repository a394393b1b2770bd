"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from vipauto.api.router import router as api_router
from vipauto.config import settings
from vipauto.database import engine as db
from vipauto.realtime.handler import router as realtime_router
from vipauto.services.broadcaster import Broadcaster
from vipauto.services.command_router import CommandRouter
from vipauto.services.view_builder import MastersPolicy

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(engine: AsyncEngine | None = None) -> FastAPI:
    """Build the application around *engine* (the configured one by default)."""
    bind = engine or db.engine
    session_factory = (
        db.async_session_factory
        if engine is None
        else async_sessionmaker(engine, expire_on_commit=False)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting %s …", settings.app_name)
        await db.init_db(bind)
        logger.info("Database initialised")
        yield
        logger.info("Shutting down %s …", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        description="Work orders, weekly payroll closing and live leaderboard for an auto-repair shop",
        version="0.1.0",
        lifespan=lifespan,
    )

    # ── Shared instances (created once, reused across connections) ──
    broadcaster = Broadcaster(session_factory, MastersPolicy.from_settings())
    app.state.session_factory = session_factory
    app.state.broadcaster = broadcaster
    app.state.command_router = CommandRouter(
        session_factory,
        broadcaster,
        allow_client_deletion=settings.allow_client_deletion,
    )

    app.include_router(api_router)
    app.include_router(realtime_router)

    @app.get("/health")
    async def health_check():
        """Simple liveness probe."""
        return {"status": "healthy", "app": settings.app_name}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run("vipauto.main:app", host=settings.host, port=settings.port)
