"""SQLAlchemy Order model."""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vipauto.models.user import Base


class Order(Base):
    """A work order ("заказ-наряд").

    ``week_id`` is ``NULL`` while the order belongs to the open week and is
    stamped exactly once, when the week is closed.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    master_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    car_model: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    license_plate: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    payment_type: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="new")
    client_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    client_name: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    client_phone: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    week_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("ix_orders_week_id", "week_id"),
        Index("ix_orders_master_name", "master_name"),
    )

    @property
    def is_open(self) -> bool:
        return self.week_id is None

    def __repr__(self) -> str:
        return (
            f"<Order id={self.id!r} master={self.master_name!r} "
            f"amount={self.amount} week={self.week_id!r}>"
        )
