"""SQLAlchemy User model and the closed role enumeration."""

import enum

from sqlalchemy import Enum, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class Role(str, enum.Enum):
    """Workshop roles. Capabilities derive from the role, never from its spelling."""

    DIRECTOR = "DIRECTOR"
    SENIOR_MASTER = "SENIOR_MASTER"
    MASTER = "MASTER"

    @property
    def is_privileged(self) -> bool:
        return self in (Role.DIRECTOR, Role.SENIOR_MASTER)

    @property
    def is_mechanic(self) -> bool:
        return self in (Role.SENIOR_MASTER, Role.MASTER)


class User(Base):
    """A member of staff who can log in.

    Users are provisioned out of band (see ``seed.py``); nothing in the
    running server mutates them.
    """

    __tablename__ = "users"

    login: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, native_enum=False, length=32), nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(128), nullable=False)

    def __repr__(self) -> str:
        return f"<User login={self.login!r} name={self.name!r} role={self.role.value}>"
