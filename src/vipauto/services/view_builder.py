"""View builder — what one identity is allowed to see.

:func:`project` is pure: it only reads the snapshot it is given, so the
broadcaster can call it once per connected identity without touching the
database again.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from vipauto.config import settings
from vipauto.schemas import (
    ClientView,
    HistoryEntry,
    LeaderboardEntry,
    OrderView,
    UserView,
    ViewPayload,
    WeekStats,
)

if TYPE_CHECKING:
    from vipauto.database.repository import Snapshot
    from vipauto.models.order import Order
    from vipauto.models.user import User
    from vipauto.services.auth import Identity


@dataclass(frozen=True)
class MastersPolicy:
    """Which users appear in the masters drop-down.

    ``exclude_by="role"`` keeps users with a mechanic role;
    ``exclude_by="name"`` keeps everyone except ``director_name``.
    """

    exclude_by: str = "role"
    director_name: str = ""

    @classmethod
    def from_settings(cls) -> MastersPolicy:
        return cls(exclude_by=settings.masters_exclude_by, director_name=settings.director_name)

    def select(self, users: Iterable[User]) -> list[str]:
        if self.exclude_by == "name":
            names = (u.name for u in users if u.name != self.director_name)
        else:
            names = (u.name for u in users if u.role.is_mechanic)
        return list(dict.fromkeys(names))


def _utc_day(moment: datetime | None) -> date | None:
    if moment is None:
        return None
    # SQLite hands timestamps back naive; they were written in UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).date()


def _amount(order: Order) -> Decimal:
    return Decimal(order.amount or 0)


def week_stats(orders: list[Order]) -> WeekStats:
    revenue = sum((_amount(o) for o in orders), Decimal("0"))
    count = len(orders)
    avg_check = (
        int((revenue / count).quantize(Decimal("1"), rounding=ROUND_HALF_UP)) if count else 0
    )
    return WeekStats(revenue=revenue, orders_count=count, avg_check=avg_check)


def leaderboard(orders: list[Order]) -> list[LeaderboardEntry]:
    """Revenue per master, highest first; ties keep first-seen order."""
    revenue: dict[str, Decimal] = {}
    counts: dict[str, int] = defaultdict(int)
    for order in orders:
        revenue[order.master_name] = revenue.get(order.master_name, Decimal("0")) + _amount(order)
        counts[order.master_name] += 1

    ranked = sorted(revenue.items(), key=lambda item: item[1], reverse=True)
    return [
        LeaderboardEntry(name=name, revenue=total, orders_count=counts[name])
        for name, total in ranked
    ]


def project(
    identity: Identity,
    snapshot: Snapshot,
    *,
    today: date | None = None,
    masters: MastersPolicy | None = None,
) -> ViewPayload:
    """Compute the full view for *identity* from *snapshot*."""
    today = today or datetime.now(UTC).date()
    masters = masters or MastersPolicy()

    if identity.is_privileged:
        visible = list(snapshot.open_orders)
    else:
        visible = [o for o in snapshot.open_orders if o.master_name == identity.name]

    orders_by_week: dict[str, list[Order]] = defaultdict(list)
    for order in snapshot.all_orders:
        if order.week_id is not None:
            orders_by_week[order.week_id].append(order)

    history = [
        HistoryEntry(
            week_id=report.week_id,
            created_at=report.created_at,
            salary_report=report.salary_report,
            orders=[OrderView.model_validate(o) for o in orders_by_week.get(report.week_id, [])],
        )
        for report in snapshot.reports
    ]

    return ViewPayload(
        week_orders=[OrderView.model_validate(o) for o in visible],
        week_stats=week_stats(visible),
        today_orders=[
            OrderView.model_validate(o) for o in visible if _utc_day(o.created_at) == today
        ],
        leaderboard=leaderboard(list(snapshot.open_orders)),
        masters=masters.select(snapshot.users),
        user=UserView(login=identity.login, name=identity.name, role=identity.role),
        history=history,
        clients=[ClientView.model_validate(c) for c in snapshot.clients],
    )
