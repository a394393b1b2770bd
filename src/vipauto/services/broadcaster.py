"""Broadcaster — owns the live audience and pushes full views to it."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from vipauto.database.repository import SnapshotRepository
from vipauto.services.view_builder import MastersPolicy, project

if TYPE_CHECKING:
    from fastapi import WebSocket
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from vipauto.services.auth import Identity

logger = logging.getLogger(__name__)

INITIAL_DATA_EVENT = "initialData"
DATA_UPDATE_EVENT = "dataUpdate"


class Broadcaster:
    """In-memory registry of connections keyed by identity.

    :pymeth:`connect` and :pymeth:`disconnect` are the only mutation points;
    live connections should come in through :pymeth:`join`.
    A connection is anything with an async ``send_json``; in production it
    is a :class:`fastapi.WebSocket`.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        masters: MastersPolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._masters = masters or MastersPolicy()
        self._connections: dict[Identity, set[WebSocket]] = {}
        # Held around every snapshot read and the sends that follow it.
        self._push_lock = asyncio.Lock()

    def connect(self, identity: Identity, connection: WebSocket) -> None:
        self._connections.setdefault(identity, set()).add(connection)
        logger.info("Connected: %r (%d open)", identity.name, self.connection_count)

    def disconnect(self, identity: Identity, connection: WebSocket) -> None:
        connections = self._connections.get(identity)
        if connections is None:
            return
        connections.discard(connection)
        if not connections:
            del self._connections[identity]
        logger.info("Disconnected: %r (%d open)", identity.name, self.connection_count)

    @property
    def audience(self) -> list[Identity]:
        """Identities with at least one live connection."""
        return list(self._connections)

    @property
    def connection_count(self) -> int:
        return sum(len(c) for c in self._connections.values())

    async def view_for(self, identity: Identity) -> dict[str, Any]:
        """Read a fresh snapshot and project it for *identity*."""
        async with self._session_factory() as session:
            snapshot = await SnapshotRepository(session).load()
        return project(identity, snapshot, masters=self._masters).to_wire()

    async def broadcast(self) -> None:
        """Push a freshly computed view to every connected identity.

        Call only after the triggering write has committed.  A failure for
        one identity or one connection is logged and the rest still get
        their update.
        """
        async with self._push_lock:
            # Copy first: disconnect may run while we await below.
            audience = [(identity, list(conns)) for identity, conns in self._connections.items()]
            logger.debug("Broadcasting to %d identities", len(audience))

            for identity, connections in audience:
                try:
                    view = await self.view_for(identity)
                except Exception:
                    logger.exception("Could not build view for %s", identity.login)
                    continue

                message = {"event": DATA_UPDATE_EVENT, "data": view}
                for connection in connections:
                    try:
                        await connection.send_json(message)
                    except Exception:
                        logger.warning(
                            "Push to a connection of %s failed", identity.login, exc_info=True
                        )

    async def join(self, identity: Identity, connection: WebSocket) -> None:
        """Send *connection* its initial view, then register it.

        Runs under the same lock as :pymeth:`broadcast`: a broadcast that
        starts meanwhile reaches this connection only after the initial view.
        """
        async with self._push_lock:
            view = await self.view_for(identity)
            await connection.send_json({"event": INITIAL_DATA_EVENT, "data": view})
            self.connect(identity, connection)
