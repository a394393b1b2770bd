"""SQLAlchemy models for weekly reports and per-user search history."""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vipauto.models.user import Base


class WeeklyReport(Base):
    """An append-only record of a closed week.

    ``salary_report`` is computed by the browser and stored untouched.
    """

    __tablename__ = "weekly_reports"

    week_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )
    salary_report: Mapped[Any] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<WeeklyReport week_id={self.week_id!r}>"


class SearchHistoryEntry(Base):
    __tablename__ = "search_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_login: Mapped[str] = mapped_column(String(64), nullable=False)
    query: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("ix_search_history_user_login", "user_login"),)
