"""Repositories — the data access layer for every table.

Each repository wraps an ``AsyncSession`` owned by the caller.  None of them
commit: the caller opens the transaction (``session.begin()``) and decides
when it ends, which is what lets :pymeth:`WeeklyReportRepository.close_week`
be all-or-nothing.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, not_, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vipauto.models.client import Client
from vipauto.models.order import Order
from vipauto.models.report import SearchHistoryEntry, WeeklyReport
from vipauto.models.user import User

SEARCH_RESULTS_LIMIT = 10
SEARCH_HISTORY_LIMIT = 10


def new_id(prefix: str) -> str:
    """Return a fresh prefixed identifier, e.g. ``ord-3f2a…``."""
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


def new_week_id() -> str:
    """Week ids are derived from the closing time (epoch milliseconds)."""
    return f"week-{int(time.time() * 1000)}"


class UserRepository:
    """Read-only access to staff accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_login(self, login: str) -> User | None:
        return await self._session.get(User, login)

    async def list_all(self) -> list[User]:
        result = await self._session.execute(select(User).order_by(User.login))
        return list(result.scalars())


class ClientRepository:
    """Encapsulates all database queries related to clients."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Client]:
        stmt = select(Client).order_by(Client.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def find_by_phone(self, phone: str) -> Client | None:
        stmt = select(Client).where(Client.phone == phone)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def add(
        self,
        *,
        name: str,
        phone: str | None,
        car_model: str = "",
        license_plate: str = "",
        client_id: str | None = None,
    ) -> Client:
        """Insert a client, or return the existing one holding *phone*.

        The insert is ``ON CONFLICT (phone) DO NOTHING`` followed by a
        re-read, so concurrent submissions of the same new phone number
        converge on a single row.
        """
        phone = phone or None
        values = {
            "id": client_id or new_id("client"),
            "name": name,
            "phone": phone,
            "car_model": car_model,
            "license_plate": license_plate,
            "favorite": False,
            "created_at": datetime.now(UTC),
        }

        if phone is None:
            client = Client(**values)
            self._session.add(client)
            await self._session.flush()
            return client

        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(Client).values(**values).on_conflict_do_nothing(
                index_elements=["phone"]
            )
            await self._session.execute(stmt)
        elif dialect == "sqlite":
            stmt = sqlite_insert(Client).values(**values).on_conflict_do_nothing(
                index_elements=["phone"]
            )
            await self._session.execute(stmt)
        elif await self.find_by_phone(phone) is None:
            self._session.add(Client(**values))
            await self._session.flush()

        return await self.find_by_phone(phone)

    async def update(self, client_id: str, **fields: Any) -> bool:
        if "phone" in fields:
            fields["phone"] = fields["phone"] or None
        stmt = update(Client).where(Client.id == client_id).values(**fields)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def set_favorite(self, client_id: str, favorite: bool | None = None) -> bool:
        """Set the favourite flag, or flip it when *favorite* is ``None``."""
        value = not_(Client.favorite) if favorite is None else favorite
        stmt = update(Client).where(Client.id == client_id).values(favorite=value)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete(self, client_id: str) -> bool:
        # Orders keep their denormalised client_name / client_phone.
        await self._session.execute(
            update(Order).where(Order.client_id == client_id).values(client_id=None)
        )
        result = await self._session.execute(delete(Client).where(Client.id == client_id))
        return result.rowcount > 0

    async def search(self, query: str, limit: int = SEARCH_RESULTS_LIMIT) -> list[Client]:
        """Case-insensitive substring match on name or phone."""
        stmt = (
            select(Client)
            .where(
                or_(
                    Client.name.icontains(query, autoescape=True),
                    Client.phone.icontains(query, autoescape=True),
                )
            )
            .order_by(Client.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())


class OrderRepository:
    """Encapsulates all database queries related to work orders."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Order]:
        """Open and closed orders, newest first."""
        stmt = select(Order).order_by(Order.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def list_open(self) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.week_id.is_(None))
            .order_by(Order.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def count_open(self) -> int:
        stmt = select(func.count()).select_from(Order).where(Order.week_id.is_(None))
        return (await self._session.execute(stmt)).scalar_one()

    async def get(self, order_id: str) -> Order | None:
        return await self._session.get(Order, order_id)

    async def add(self, **fields: Any) -> Order:
        fields.setdefault("id", new_id("ord"))
        fields.setdefault("amount", Decimal("0"))
        order = Order(**fields)
        self._session.add(order)
        await self._session.flush()
        return order

    async def update(self, order_id: str, **fields: Any) -> bool:
        stmt = update(Order).where(Order.id == order_id).values(**fields)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update_status(self, order_id: str, status: str) -> bool:
        return await self.update(order_id, status=status)

    async def delete(self, order_id: str) -> bool:
        result = await self._session.execute(delete(Order).where(Order.id == order_id))
        return result.rowcount > 0

    async def stamp_open(self, week_id: str) -> int:
        """Attach every open order to *week_id*; returns the number stamped."""
        stmt = update(Order).where(Order.week_id.is_(None)).values(week_id=week_id)
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_all(self) -> int:
        result = await self._session.execute(delete(Order))
        return result.rowcount


class WeeklyReportRepository:
    """Weekly reports and the week-closing operation."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[WeeklyReport]:
        stmt = select(WeeklyReport).order_by(WeeklyReport.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def add(self, week_id: str, salary_report: Any) -> WeeklyReport:
        report = WeeklyReport(
            week_id=week_id,
            salary_report=salary_report,
            created_at=datetime.now(UTC),
        )
        self._session.add(report)
        await self._session.flush()
        return report

    async def close_week(self, salary_report: Any) -> WeeklyReport | None:
        """Insert one report and stamp every open order with its week id.

        Returns ``None`` (and writes nothing) when there are no open orders.
        Must run inside the caller's transaction: if stamping fails the
        caller's rollback discards the report as well.
        """
        orders = OrderRepository(self._session)
        if await orders.count_open() == 0:
            return None

        report = await self.add(new_week_id(), salary_report)
        await orders.stamp_open(report.week_id)
        return report

    async def delete_all(self) -> int:
        result = await self._session.execute(delete(WeeklyReport))
        return result.rowcount


class SearchHistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, user_login: str, query: str) -> SearchHistoryEntry:
        entry = SearchHistoryEntry(
            id=new_id("search"),
            user_login=user_login,
            query=query,
            timestamp=datetime.now(UTC),
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def recent(
        self, user_login: str, limit: int = SEARCH_HISTORY_LIMIT
    ) -> list[SearchHistoryEntry]:
        stmt = (
            select(SearchHistoryEntry)
            .where(SearchHistoryEntry.user_login == user_login)
            .order_by(SearchHistoryEntry.timestamp.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())


# ── Snapshot for the view builder ────────────────────────


@dataclass
class Snapshot:
    """One consistent read of everything a view projection needs."""

    open_orders: list[Order] = field(default_factory=list)
    all_orders: list[Order] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    reports: list[WeeklyReport] = field(default_factory=list)
    clients: list[Client] = field(default_factory=list)


class SnapshotRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load(self) -> Snapshot:
        """Read all tables inside a single transaction.

        Open orders are derived from the same result as all orders, so the
        two can never disagree about a week that was closed mid-read.
        """
        async with self._session.begin():
            all_orders = await OrderRepository(self._session).list_all()
            users = await UserRepository(self._session).list_all()
            reports = await WeeklyReportRepository(self._session).list_all()
            clients = await ClientRepository(self._session).list_all()

        return Snapshot(
            open_orders=[o for o in all_orders if o.is_open],
            all_orders=all_orders,
            users=users,
            reports=reports,
            clients=clients,
        )
