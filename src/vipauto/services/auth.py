"""Session gate — password check, token issuance and token verification.

A token embeds ``{login, name, role}`` and is valid until it expires.
Privilege is read from the token only, so it stays fixed for the lifetime of
every connection opened with it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import bcrypt
import jwt

from vipauto.config import settings
from vipauto.database.repository import UserRepository
from vipauto.errors import AuthenticationFailure
from vipauto.models.user import Role, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Who is on the other end of a connection."""

    login: str
    name: str
    role: Role

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(login=user.login, name=user.name, role=user.role)


# ── Passwords ────────────────────────────────────────────


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Return ``True`` if *password* matches the stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Not a bcrypt hash at all
        logger.warning("Stored password hash has an unexpected format")
        return False


async def authenticate(session: AsyncSession, login: str, password: str) -> User | None:
    """Look up *login* and check *password*; ``None`` on any mismatch.

    The bcrypt check runs in a worker thread, off the event loop.
    """
    user = await UserRepository(session).find_by_login(login)
    if user is None or not await asyncio.to_thread(
        verify_password, password, user.password_hash
    ):
        logger.info("Login failed for %r", login)
        return None
    logger.info("Login succeeded for %s (%s)", user.login, user.role.value)
    return user


# ── Tokens ───────────────────────────────────────────────


def issue_token(identity: Identity, ttl: timedelta | None = None) -> str:
    now = datetime.now(UTC)
    claims = {
        "login": identity.login,
        "name": identity.name,
        "role": identity.role.value,
        "iat": now,
        "exp": now + (ttl or timedelta(hours=settings.token_ttl_hours)),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str | None) -> Identity:
    """Verify signature and expiry and return the embedded identity.

    Raises
    ------
    AuthenticationFailure
        If the token is missing, malformed, expired, tampered with, or
        carries an unknown role.
    """
    if not token:
        raise AuthenticationFailure("Missing token")
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "login", "name", "role"]},
        )
        return Identity(
            login=claims["login"], name=claims["name"], role=Role(claims["role"])
        )
    except jwt.InvalidTokenError as exc:
        raise AuthenticationFailure(f"Invalid token: {exc}") from exc
    except ValueError as exc:
        raise AuthenticationFailure("Invalid token: unknown role") from exc
