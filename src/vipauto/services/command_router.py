"""Command router — authorises, executes and broadcasts named commands."""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from vipauto.database.repository import (
    ClientRepository,
    OrderRepository,
    SearchHistoryRepository,
    WeeklyReportRepository,
)
from vipauto.errors import (
    ADD_ORDER_FAILED_MESSAGE,
    ORDER_EDIT_DENIED_MESSAGE,
    SAVE_FAILED_MESSAGE,
    AuthorizationDenied,
    PersistenceFailure,
    ValidationFailure,
    VipAutoError,
)
from vipauto.schemas import (
    ClientCreate,
    ClientUpdate,
    ClientView,
    CloseWeek,
    EntityRef,
    FavoriteToggle,
    OrderCreate,
    OrderUpdate,
    SearchHistoryView,
    SearchQuery,
    StatusChange,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from vipauto.services.auth import Identity
    from vipauto.services.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

SERVER_ERROR_EVENT = "serverError"
CLIENT_SEARCH_RESULTS_EVENT = "clientSearchResults"
SEARCH_HISTORY_RESULTS_EVENT = "searchHistoryResults"

NEW_CLIENT_NAME = "New client"


class Command(str, enum.Enum):
    """Every command a connection may send, by its wire name."""

    ADD_CLIENT = "addClient"
    UPDATE_CLIENT = "updateClient"
    DELETE_CLIENT = "deleteClient"
    TOGGLE_FAVORITE_CLIENT = "toggleFavoriteClient"
    ADD_ORDER = "addOrder"
    UPDATE_ORDER = "updateOrder"
    DELETE_ORDER = "deleteOrder"
    UPDATE_ORDER_STATUS = "updateOrderStatus"
    CLOSE_WEEK = "closeWeek"
    CLEAR_DATA = "clearData"
    CLEAR_HISTORY = "clearHistory"
    SEARCH_CLIENTS = "searchClients"
    GET_SEARCH_HISTORY = "getSearchHistory"


@dataclass
class Reply:
    """A message addressed to the originating connection only."""

    event: str
    data: Any

    def to_wire(self) -> dict[str, Any]:
        return {"event": self.event, "data": self.data}


@dataclass
class CommandResult:
    """What a handler did: whether the store changed, and what to answer."""

    changed: bool = False
    reply: Reply | None = None


Handler = Callable[["AsyncSession", "Identity", Any], Awaitable[CommandResult]]


@dataclass(frozen=True)
class Route:
    handler: Handler
    payload: type[BaseModel] | None = None
    privileged_only: bool = False
    failure_message: str = SAVE_FAILED_MESSAGE
    report_invalid: bool = False


class CommandRouter:
    """Single authorise-then-execute entry point for every command.

    Flow
    ----
    1. Resolve the wire name to a :class:`Command`; unknown names are dropped.
    2. Check the route's privilege requirement; denials are dropped silently.
    3. Validate the payload; invalid payloads are dropped silently unless
       the route reports them to the caller.
    4. Run the handler in its own transaction.
    5. If the store changed, broadcast once after commit.

    Handlers may raise :class:`AuthorizationDenied` with ``notify=True`` to
    answer the caller with ``serverError``.  Any other failure inside the
    transaction rolls it back and answers the caller with the route's
    generic failure message; other connections never see it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: Broadcaster,
        allow_client_deletion: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self._broadcaster = broadcaster
        self._allow_client_deletion = allow_client_deletion
        self._routes: dict[Command, Route] = {
            Command.ADD_CLIENT: Route(self._add_client, ClientCreate, privileged_only=True),
            Command.UPDATE_CLIENT: Route(self._update_client, ClientUpdate, privileged_only=True),
            Command.DELETE_CLIENT: Route(self._delete_client, EntityRef, privileged_only=True),
            Command.TOGGLE_FAVORITE_CLIENT: Route(
                self._toggle_favorite, FavoriteToggle, privileged_only=True
            ),
            Command.ADD_ORDER: Route(
                self._add_order,
                OrderCreate,
                failure_message=ADD_ORDER_FAILED_MESSAGE,
                report_invalid=True,
            ),
            Command.UPDATE_ORDER: Route(self._update_order, OrderUpdate),
            Command.DELETE_ORDER: Route(self._delete_order, EntityRef, privileged_only=True),
            Command.UPDATE_ORDER_STATUS: Route(self._update_order_status, StatusChange),
            Command.CLOSE_WEEK: Route(self._close_week, CloseWeek, privileged_only=True),
            Command.CLEAR_DATA: Route(self._clear_data, privileged_only=True),
            Command.CLEAR_HISTORY: Route(self._clear_history, privileged_only=True),
            Command.SEARCH_CLIENTS: Route(self._search_clients, SearchQuery),
            Command.GET_SEARCH_HISTORY: Route(self._get_search_history),
        }

    async def dispatch(self, identity: Identity, event: str | None, data: Any = None) -> Reply | None:
        """Run one command for *identity* and return the reply for its connection."""
        try:
            command = Command(event)
        except ValueError:
            logger.warning("Unknown command %r from %s", event, identity.login)
            return None

        route = self._routes[command]
        try:
            if route.privileged_only and not identity.is_privileged:
                raise AuthorizationDenied(f"{command.value} requires a privileged role")
            payload = self._parse(route, data)
            result = await self._execute(route, identity, payload)
        except AuthorizationDenied as exc:
            if exc.notify:
                logger.warning("Denied %s for %s: %s", command.value, identity.login, exc)
                return Reply(SERVER_ERROR_EVENT, str(exc))
            logger.info("Ignoring %s from %s: %s", command.value, identity.login, exc)
            return None
        except ValidationFailure as exc:
            if route.report_invalid:
                logger.warning("Rejected %s from %s: %s", command.value, identity.login, exc)
                return Reply(SERVER_ERROR_EVENT, route.failure_message)
            logger.info("Ignoring %s from %s: %s", command.value, identity.login, exc)
            return None
        except PersistenceFailure:
            logger.exception("Command %s failed for user %s", command.value, identity.login)
            return Reply(SERVER_ERROR_EVENT, route.failure_message)

        if result.changed:
            await self._broadcaster.broadcast()
        return result.reply

    # ── Plumbing ─────────────────────────────────────────

    @staticmethod
    def _parse(route: Route, data: Any) -> BaseModel | None:
        if route.payload is None:
            return None
        try:
            return route.payload.model_validate(data if data is not None else {})
        except ValidationError as exc:
            raise ValidationFailure(
                f"invalid payload: {exc.error_count()} error(s)"
            ) from exc

    async def _execute(
        self, route: Route, identity: Identity, payload: BaseModel | None
    ) -> CommandResult:
        try:
            async with self._session_factory() as session, session.begin():
                return await route.handler(session, identity, payload)
        except VipAutoError:
            raise
        except Exception as exc:
            raise PersistenceFailure(str(exc)) from exc

    # ── Clients ──────────────────────────────────────────

    async def _add_client(
        self, session: AsyncSession, identity: Identity, payload: ClientCreate
    ) -> CommandResult:
        await ClientRepository(session).add(**payload.model_dump())
        return CommandResult(changed=True)

    async def _update_client(
        self, session: AsyncSession, identity: Identity, payload: ClientUpdate
    ) -> CommandResult:
        fields = payload.model_dump(exclude_unset=True, exclude={"id"})
        if not fields:
            return CommandResult()
        changed = await ClientRepository(session).update(payload.id, **fields)
        return CommandResult(changed=changed)

    async def _delete_client(
        self, session: AsyncSession, identity: Identity, payload: EntityRef
    ) -> CommandResult:
        if not self._allow_client_deletion:
            raise AuthorizationDenied("client deletion is disabled")
        changed = await ClientRepository(session).delete(payload.id)
        return CommandResult(changed=changed)

    async def _toggle_favorite(
        self, session: AsyncSession, identity: Identity, payload: FavoriteToggle
    ) -> CommandResult:
        changed = await ClientRepository(session).set_favorite(payload.id, payload.favorite)
        return CommandResult(changed=changed)

    async def _search_clients(
        self, session: AsyncSession, identity: Identity, payload: SearchQuery
    ) -> CommandResult:
        query = payload.query.strip()
        if len(query) > 1:
            await SearchHistoryRepository(session).add(identity.login, query)
        clients = await ClientRepository(session).search(query)
        results = [ClientView.model_validate(c).model_dump(mode="json", by_alias=True) for c in clients]
        return CommandResult(reply=Reply(CLIENT_SEARCH_RESULTS_EVENT, results))

    async def _get_search_history(
        self, session: AsyncSession, identity: Identity, payload: None
    ) -> CommandResult:
        entries = await SearchHistoryRepository(session).recent(identity.login)
        results = [
            SearchHistoryView.model_validate(e).model_dump(mode="json", by_alias=True)
            for e in entries
        ]
        return CommandResult(reply=Reply(SEARCH_HISTORY_RESULTS_EVENT, results))

    # ── Orders ───────────────────────────────────────────

    async def _add_order(
        self, session: AsyncSession, identity: Identity, payload: OrderCreate
    ) -> CommandResult:
        fields = payload.model_dump()
        if not identity.is_privileged:
            fields["master_name"] = identity.name

        client = None
        if payload.client_phone:
            clients = ClientRepository(session)
            client = await clients.find_by_phone(payload.client_phone)
            if client is None:
                client = await clients.add(
                    name=payload.client_name or NEW_CLIENT_NAME,
                    phone=payload.client_phone,
                    car_model=payload.car_model,
                    license_plate=payload.license_plate,
                )
                logger.info("Created client %s for phone %s", client.id, client.phone)

        order = await OrderRepository(session).add(
            **fields, client_id=client.id if client else None
        )
        logger.info("Order %s added by %s for %r", order.id, identity.login, order.master_name)
        return CommandResult(changed=True)

    async def _update_order(
        self, session: AsyncSession, identity: Identity, payload: OrderUpdate
    ) -> CommandResult:
        orders = OrderRepository(session)
        order = await orders.get(payload.id)
        if order is None:
            return CommandResult()
        if not identity.is_privileged and order.master_name != identity.name:
            raise AuthorizationDenied(ORDER_EDIT_DENIED_MESSAGE, notify=True)

        fields = payload.model_dump(exclude_unset=True, exclude={"id"})
        if not identity.is_privileged:
            # Masters cannot hand their orders to somebody else.
            fields.pop("master_name", None)
        if not fields:
            return CommandResult()
        changed = await orders.update(payload.id, **fields)
        return CommandResult(changed=changed)

    async def _delete_order(
        self, session: AsyncSession, identity: Identity, payload: EntityRef
    ) -> CommandResult:
        changed = await OrderRepository(session).delete(payload.id)
        return CommandResult(changed=changed)

    async def _update_order_status(
        self, session: AsyncSession, identity: Identity, payload: StatusChange
    ) -> CommandResult:
        changed = await OrderRepository(session).update_status(payload.id, payload.status)
        return CommandResult(changed=changed)

    # ── Week cycle ───────────────────────────────────────

    async def _close_week(
        self, session: AsyncSession, identity: Identity, payload: CloseWeek
    ) -> CommandResult:
        report = await WeeklyReportRepository(session).close_week(payload.salary_report)
        if report is None:
            logger.info("closeWeek from %s ignored: no open orders", identity.login)
            return CommandResult()
        logger.info("Week %s closed by %s", report.week_id, identity.login)
        return CommandResult(changed=True)

    async def _clear_data(
        self, session: AsyncSession, identity: Identity, payload: None
    ) -> CommandResult:
        orders = await OrderRepository(session).delete_all()
        reports = await WeeklyReportRepository(session).delete_all()
        logger.warning(
            "%s cleared %d orders and %d weekly reports", identity.login, orders, reports
        )
        return CommandResult(changed=True)

    async def _clear_history(
        self, session: AsyncSession, identity: Identity, payload: None
    ) -> CommandResult:
        reports = await WeeklyReportRepository(session).delete_all()
        logger.warning("%s cleared %d weekly reports", identity.login, reports)
        return CommandResult(changed=True)
