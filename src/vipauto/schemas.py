"""Pydantic models for the realtime channel.

Inbound command payloads accept camelCase (what the browser sends) as well
as snake_case.  Outbound view models are built from ORM rows and dumped with
camelCase keys.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationInfo,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from vipauto.models.user import Role
from vipauto.services.plates import normalize_plate, split_plate

# Decimal in Python, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# ──────────────────────────────────────────────────────────────
# Inbound command payloads
# ──────────────────────────────────────────────────────────────


class CommandPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, v: Any, info: ValidationInfo) -> Any:
        # The browser sends null for fields left empty.
        if v is None and info.field_name is not None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return v


class EntityRef(CommandPayload):
    id: str = Field(min_length=1)


class ClientFields(CommandPayload):
    name: str = ""
    phone: str | None = None
    car_model: str = ""
    license_plate: str = ""

    @field_validator("license_plate")
    @classmethod
    def _normalize_plate(cls, v: str) -> str:
        return normalize_plate(v)

    @field_validator("phone")
    @classmethod
    def _strip_phone(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class ClientCreate(ClientFields):
    pass


class ClientUpdate(ClientFields):
    id: str = Field(min_length=1)


class FavoriteToggle(EntityRef):
    favorite: bool | None = None


class OrderFields(CommandPayload):
    master_name: str = ""
    car_model: str = ""
    license_plate: str = ""
    description: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_type: str = ""
    client_name: str = ""
    client_phone: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def _blank_amount(cls, v: Any) -> Any:
        return Decimal("0") if v is None or v == "" else v

    @field_validator("license_plate")
    @classmethod
    def _normalize_plate(cls, v: str) -> str:
        return normalize_plate(v)

    @field_validator("client_phone", mode="before")
    @classmethod
    def _strip_phone(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v


class OrderCreate(OrderFields):
    pass


class OrderUpdate(OrderFields):
    id: str = Field(min_length=1)


class StatusChange(EntityRef):
    status: str = Field(min_length=1)


class CloseWeek(CommandPayload):
    salary_report: Any = None


class SearchQuery(CommandPayload):
    query: str = ""

    @model_validator(mode="before")
    @classmethod
    def _bare_string(cls, data: Any) -> Any:
        # The browser sends the search box contents as-is.
        if data is None:
            return {}
        if isinstance(data, str):
            return {"query": data}
        return data


# ──────────────────────────────────────────────────────────────
# Outbound views
# ──────────────────────────────────────────────────────────────


class ViewModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=AliasGenerator(serialization_alias=to_camel),
        from_attributes=True,
    )


class UserView(ViewModel):
    login: str
    name: str
    role: Role


class ClientView(ViewModel):
    id: str
    name: str
    phone: str | None = None
    car_model: str = ""
    license_plate: str = ""
    favorite: bool = False
    created_at: datetime | None = None

    @computed_field(alias="plateParts")
    @property
    def plate_parts(self) -> dict[str, str] | None:
        parts = split_plate(self.license_plate)
        return parts._asdict() if parts else None


class OrderView(ViewModel):
    id: str
    master_name: str
    car_model: str = ""
    license_plate: str = ""
    description: str = ""
    amount: Money = Decimal("0")
    payment_type: str = ""
    status: str = ""
    client_id: str | None = None
    client_name: str = ""
    client_phone: str = ""
    created_at: datetime | None = None
    week_id: str | None = None

    @computed_field(alias="plateParts")
    @property
    def plate_parts(self) -> dict[str, str] | None:
        parts = split_plate(self.license_plate)
        return parts._asdict() if parts else None


class WeekStats(ViewModel):
    revenue: Money
    orders_count: int
    avg_check: int


class LeaderboardEntry(ViewModel):
    name: str
    revenue: Money
    orders_count: int


class HistoryEntry(ViewModel):
    week_id: str
    created_at: datetime | None = None
    salary_report: Any = None
    orders: list[OrderView] = []


class SearchHistoryView(ViewModel):
    id: str
    user_login: str
    query: str
    timestamp: datetime | None = None


class ViewPayload(ViewModel):
    """Everything one identity is allowed to see, as a single replacement."""

    week_orders: list[OrderView]
    week_stats: WeekStats
    today_orders: list[OrderView]
    leaderboard: list[LeaderboardEntry]
    masters: list[str]
    user: UserView
    history: list[HistoryEntry]
    clients: list[ClientView]

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
