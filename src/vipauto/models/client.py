"""SQLAlchemy Client model."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from vipauto.models.user import Base


class Client(Base):
    """A customer of the workshop, identified by a unique phone number."""

    __tablename__ = "clients"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    car_model: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("ix_clients_name", "name"),)

    def __repr__(self) -> str:
        return f"<Client id={self.id!r} name={self.name!r} phone={self.phone!r}>"
