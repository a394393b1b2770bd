"""Tests for the view projection — visibility, stats, leaderboard and history."""

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

from vipauto.database.repository import Snapshot
from vipauto.services.view_builder import MastersPolicy, project
from tests.factories import (
    ANDREY,
    DANILA,
    DIRECTOR,
    SENIOR,
    STAFF,
    make_client,
    make_order,
    make_report,
    make_user,
)

TODAY = date(2026, 10, 19)


def _snapshot(open_orders=(), closed_orders=(), reports=(), clients=()):
    open_orders = list(open_orders)
    return Snapshot(
        open_orders=open_orders,
        all_orders=open_orders + list(closed_orders),
        users=[make_user(identity) for identity in STAFF],
        reports=list(reports),
        clients=list(clients),
    )


def _week():
    return [
        make_order(id="o1", master_name="Andrey", amount=Decimal("1500")),
        make_order(id="o2", master_name="Danila", amount=Decimal("3000")),
        make_order(id="o3", master_name="Andrey", amount=Decimal("1000")),
        make_order(id="o4", master_name="Vlad", amount=Decimal("700")),
    ]


# ── Visibility ───────────────────────────────────────────

def test_privileged_identities_see_every_open_order():
    snapshot = _snapshot(_week())
    for identity in (DIRECTOR, SENIOR):
        view = project(identity, snapshot, today=TODAY)
        assert [o.id for o in view.week_orders] == ["o1", "o2", "o3", "o4"]


def test_masters_see_only_their_own_open_orders():
    view = project(ANDREY, _snapshot(_week()), today=TODAY)
    assert [o.id for o in view.week_orders] == ["o1", "o3"]
    assert all(o.master_name == "Andrey" for o in view.week_orders)


def test_closed_orders_are_not_part_of_the_week():
    closed = [make_order(id="old", master_name="Andrey", week_id="week-1")]
    view = project(DIRECTOR, _snapshot(closed_orders=closed), today=TODAY)
    assert view.week_orders == []


# ── Stats ────────────────────────────────────────────────

def test_week_stats_cover_the_visible_set_only():
    view = project(ANDREY, _snapshot(_week()), today=TODAY)
    assert view.week_stats.revenue == Decimal("2500")
    assert view.week_stats.orders_count == 2
    assert view.week_stats.avg_check == 1250


def test_average_check_rounds_half_up():
    orders = [
        make_order(id="a", amount=Decimal("100")),
        make_order(id="b", amount=Decimal("101")),
    ]
    view = project(DIRECTOR, _snapshot(orders), today=TODAY)
    assert view.week_stats.avg_check == 101


def test_average_check_is_zero_without_orders():
    view = project(DANILA, _snapshot([make_order(master_name="Andrey")]), today=TODAY)
    assert view.week_stats.orders_count == 0
    assert view.week_stats.revenue == 0
    assert view.week_stats.avg_check == 0


# ── Leaderboard ──────────────────────────────────────────

def test_leaderboard_ranks_all_masters_regardless_of_viewer():
    orders = _week()
    view = project(ANDREY, _snapshot(orders), today=TODAY)

    assert [(e.name, e.revenue, e.orders_count) for e in view.leaderboard] == [
        ("Danila", Decimal("3000"), 1),
        ("Andrey", Decimal("2500"), 2),
        ("Vlad", Decimal("700"), 1),
    ]
    assert sum(e.revenue for e in view.leaderboard) == sum(o.amount for o in orders)


def test_leaderboard_ties_keep_first_seen_order():
    orders = [
        make_order(id="a", master_name="Vlad", amount=Decimal("500")),
        make_order(id="b", master_name="Danila", amount=Decimal("900")),
        make_order(id="c", master_name="Andrey", amount=Decimal("500")),
    ]
    view = project(DIRECTOR, _snapshot(orders), today=TODAY)
    assert [e.name for e in view.leaderboard] == ["Danila", "Vlad", "Andrey"]
    revenues = [e.revenue for e in view.leaderboard]
    assert revenues == sorted(revenues, reverse=True)


# ── Today ────────────────────────────────────────────────

def test_today_orders_use_the_utc_calendar_day():
    moscow = timezone(timedelta(hours=3))
    orders = [
        make_order(id="late", created_at=datetime(2026, 10, 19, 23, 30, tzinfo=UTC)),
        make_order(id="naive", created_at=datetime(2026, 10, 19, 8, 0)),
        make_order(id="msk", created_at=datetime(2026, 10, 20, 1, 0, tzinfo=moscow)),
        make_order(id="yesterday", created_at=datetime(2026, 10, 18, 12, 0, tzinfo=UTC)),
    ]
    view = project(DIRECTOR, _snapshot(orders), today=TODAY)
    assert [o.id for o in view.today_orders] == ["late", "naive", "msk"]


def test_today_orders_are_filtered_by_visibility():
    orders = [
        make_order(id="mine", master_name="Danila"),
        make_order(id="theirs", master_name="Andrey"),
    ]
    view = project(DANILA, _snapshot(orders), today=TODAY)
    assert [o.id for o in view.today_orders] == ["mine"]


# ── Masters list ─────────────────────────────────────────

def test_masters_policy_by_role_excludes_the_director():
    view = project(ANDREY, _snapshot(), today=TODAY)
    assert view.masters == ["Vlad", "Andrey", "Danila"]


def test_masters_policy_by_name():
    policy = MastersPolicy(exclude_by="name", director_name="Vlad")
    view = project(ANDREY, _snapshot(), today=TODAY, masters=policy)
    assert view.masters == ["Orlov", "Andrey", "Danila"]


# ── History ──────────────────────────────────────────────

def test_history_attaches_the_orders_of_each_week():
    closed = [
        make_order(id="w1-a", week_id="week-1"),
        make_order(id="w2-a", week_id="week-2"),
        make_order(id="w1-b", week_id="week-1"),
    ]
    reports = [make_report("week-2"), make_report("week-1"), make_report("week-3")]
    view = project(DANILA, _snapshot(closed_orders=closed, reports=reports), today=TODAY)

    assert [h.week_id for h in view.history] == ["week-2", "week-1", "week-3"]
    assert [[o.id for o in h.orders] for h in view.history] == [["w2-a"], ["w1-a", "w1-b"], []]


# ── Wire format ──────────────────────────────────────────

def test_wire_payload_is_camel_case_with_numeric_amounts():
    view = project(
        ANDREY,
        _snapshot([make_order(id="o1", amount=Decimal("1500.50"))], clients=[make_client()]),
        today=TODAY,
    )
    wire = view.to_wire()

    assert set(wire) == {
        "weekOrders",
        "weekStats",
        "todayOrders",
        "leaderboard",
        "masters",
        "user",
        "history",
        "clients",
    }
    assert wire["weekStats"] == {"revenue": 1500.5, "ordersCount": 1, "avgCheck": 1501}
    assert wire["weekOrders"][0]["masterName"] == "Andrey"
    assert wire["weekOrders"][0]["amount"] == 1500.5
    assert wire["weekOrders"][0]["plateParts"] == {
        "letter": "А",
        "digits": "123",
        "series": "ВС",
        "region": "77",
    }
    assert wire["user"] == {"login": "Master.Andrey", "name": "Andrey", "role": "MASTER"}
    assert wire["clients"][0]["licensePlate"] == "А123ВС77"
