"""Realtime channel — one WebSocket per browser tab.

Frames in both directions are JSON envelopes::

    {"event": "addOrder", "data": {"carModel": "Lada Vesta", ...}}
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError

from vipauto.errors import AuthenticationFailure
from vipauto.services.auth import decode_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class Envelope(BaseModel):
    event: str
    data: Any = None


def _bearer(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization", "")
    scheme, _, credential = header.partition(" ")
    if scheme.lower() == "bearer" and credential:
        return credential.strip()
    return None


# ──────────────────────────────────────────────────────────────
# WS /ws — authenticated realtime channel
# ──────────────────────────────────────────────────────────────
@router.websocket("/ws")
async def realtime_channel(
    websocket: WebSocket,
    token: str | None = Query(None),
) -> None:
    """Authenticate, send the initial view, then serve commands until close."""
    try:
        identity = decode_token(token or _bearer(websocket))
    except AuthenticationFailure as exc:
        logger.warning("Rejected realtime connection: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    broadcaster = websocket.app.state.broadcaster
    commands = websocket.app.state.command_router

    await websocket.accept()
    try:
        await broadcaster.join(identity, websocket)

        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                logger.debug("Binary frame from %s ignored", identity.login)
                continue
            try:
                envelope = Envelope.model_validate_json(raw)
            except ValidationError:
                logger.debug("Malformed frame from %s ignored: %s", identity.login, raw[:80])
                continue

            reply = await commands.dispatch(identity, envelope.event, envelope.data)
            if reply is not None:
                await websocket.send_json(reply.to_wire())
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(identity, websocket)
