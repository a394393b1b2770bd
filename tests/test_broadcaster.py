"""Tests for the Broadcaster — registry bookkeeping and per-identity fan-out."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from vipauto.services import view_builder
from vipauto.services.broadcaster import DATA_UPDATE_EVENT, INITIAL_DATA_EVENT, Broadcaster
from tests.factories import ANDREY, DANILA, DIRECTOR, make_order


def _connection(**kwargs):
    """A stand-in websocket: only ``send_json`` is ever called."""
    conn = AsyncMock()
    conn.send_json = AsyncMock(**kwargs)
    return conn


def _pushed(conn):
    (message,), _ = conn.send_json.await_args
    return message


@pytest_asyncio.fixture
async def broadcaster(session_factory):
    async with session_factory() as session, session.begin():
        session.add_all(
            [
                make_order(id="ord-a", master_name="Andrey"),
                make_order(id="ord-d", master_name="Danila"),
            ]
        )
    return Broadcaster(session_factory)


# ── Registry ─────────────────────────────────────────────

def test_connect_and_disconnect_track_the_audience():
    broadcaster = Broadcaster(MagicMock())
    first, second = _connection(), _connection()

    broadcaster.connect(ANDREY, first)
    broadcaster.connect(ANDREY, second)
    broadcaster.connect(DIRECTOR, _connection())
    assert broadcaster.audience == [ANDREY, DIRECTOR]
    assert broadcaster.connection_count == 3

    broadcaster.disconnect(ANDREY, first)
    assert ANDREY in broadcaster.audience
    broadcaster.disconnect(ANDREY, second)
    assert broadcaster.audience == [DIRECTOR]
    assert broadcaster.connection_count == 1


def test_disconnect_of_unknown_connection_is_harmless():
    broadcaster = Broadcaster(MagicMock())
    broadcaster.disconnect(DANILA, _connection())
    assert broadcaster.audience == []


# ── Fan-out ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_each_identity_receives_its_own_view(broadcaster):
    director, andrey, danila = _connection(), _connection(), _connection()
    broadcaster.connect(DIRECTOR, director)
    broadcaster.connect(ANDREY, andrey)
    broadcaster.connect(DANILA, danila)

    await broadcaster.broadcast()

    for conn in (director, andrey, danila):
        assert _pushed(conn)["event"] == DATA_UPDATE_EVENT
    assert {o["id"] for o in _pushed(director)["data"]["weekOrders"]} == {"ord-a", "ord-d"}
    assert [o["id"] for o in _pushed(andrey)["data"]["weekOrders"]] == ["ord-a"]
    assert [o["id"] for o in _pushed(danila)["data"]["weekOrders"]] == ["ord-d"]
    assert _pushed(danila)["data"]["user"]["login"] == DANILA.login


@pytest.mark.asyncio
async def test_every_connection_of_an_identity_is_updated(broadcaster):
    laptop, phone = _connection(), _connection()
    broadcaster.connect(ANDREY, laptop)
    broadcaster.connect(ANDREY, phone)

    await broadcaster.broadcast()

    assert _pushed(laptop) == _pushed(phone)


@pytest.mark.asyncio
async def test_failing_connection_does_not_block_the_rest(broadcaster):
    dead = _connection(side_effect=RuntimeError("socket closed"))
    alive = _connection()
    other = _connection()
    broadcaster.connect(ANDREY, dead)
    broadcaster.connect(ANDREY, alive)
    broadcaster.connect(DIRECTOR, other)

    await broadcaster.broadcast()

    dead.send_json.assert_awaited_once()
    alive.send_json.assert_awaited_once()
    other.send_json.assert_awaited_once()


@pytest.mark.asyncio
async def test_view_failure_for_one_identity_does_not_block_the_rest(broadcaster):
    real_project = view_builder.project

    def flaky(identity, snapshot, **kwargs):
        if identity == ANDREY:
            raise ValueError("corrupt row")
        return real_project(identity, snapshot, **kwargs)

    andrey, danila = _connection(), _connection()
    broadcaster.connect(ANDREY, andrey)
    broadcaster.connect(DANILA, danila)

    with patch("vipauto.services.broadcaster.project", side_effect=flaky):
        await broadcaster.broadcast()

    andrey.send_json.assert_not_awaited()
    assert [o["id"] for o in _pushed(danila)["data"]["weekOrders"]] == ["ord-d"]


@pytest.mark.asyncio
async def test_join_sends_initial_view_then_registers(broadcaster):
    conn = _connection()

    await broadcaster.join(DANILA, conn)

    message = _pushed(conn)
    assert message["event"] == INITIAL_DATA_EVENT
    assert [o["id"] for o in message["data"]["weekOrders"]] == ["ord-d"]
    assert broadcaster.audience == [DANILA]


@pytest.mark.asyncio
async def test_broadcast_during_join_arrives_after_initial_data(broadcaster):
    conn = _connection()
    release = asyncio.Event()
    real_view_for = broadcaster.view_for

    async def slow_view_for(identity):
        view = await real_view_for(identity)
        await release.wait()
        return view

    with patch.object(broadcaster, "view_for", slow_view_for):
        joining = asyncio.create_task(broadcaster.join(ANDREY, conn))
        await asyncio.sleep(0)
        pushing = asyncio.create_task(broadcaster.broadcast())
        await asyncio.sleep(0.05)
        release.set()
        await asyncio.gather(joining, pushing)

    events = [call.args[0]["event"] for call in conn.send_json.await_args_list]
    assert events == [INITIAL_DATA_EVENT, DATA_UPDATE_EVENT]


@pytest.mark.asyncio
async def test_disconnected_identity_gets_nothing(broadcaster):
    conn = _connection()
    broadcaster.connect(ANDREY, conn)
    broadcaster.disconnect(ANDREY, conn)

    await broadcaster.broadcast()

    conn.send_json.assert_not_awaited()
