"""HTTP API router — credential issuance.

Endpoints
---------
POST /login   → signed token + user info, or 401
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from vipauto.models.user import Role
from vipauto.services.auth import Identity, authenticate, issue_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Response / request models ────────────────────────────

class LoginRequest(BaseModel):
    login: str
    password: str


class UserInfo(BaseModel):
    login: str
    name: str
    role: Role


class LoginResponse(BaseModel):
    token: str
    user: UserInfo


# ── Endpoints ────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, request: Request):
    """Exchange login and password for a time-limited token."""
    async with request.app.state.session_factory() as session:
        user = await authenticate(session, body.login, body.password)

    if user is None:
        raise HTTPException(status_code=401, detail="Invalid login or password")

    identity = Identity.from_user(user)
    return LoginResponse(
        token=issue_token(identity),
        user=UserInfo(login=identity.login, name=identity.name, role=identity.role),
    )
