"""Shared fixtures for fastapi-logistics-sync tests."""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import pytest

from fastapi_logistics.config import LogisticsConfig, ProviderSettings
from fastapi_logistics.orchestrator import SyncOrchestrator
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.providers.dummy import reset_simulator
from fastapi_logistics.registry import AdapterRegistry, SettingsConfigSource
from fastapi_logistics.types import (
    CanonicalStatus,
    DeliveryType,
    Order,
    OrderItem,
    ProviderStatus,
    SyncResult,
)


def make_order(order_id: str = "O1", **overrides: Any) -> Order:
    """A valid, unsynced outside-valley NCM order."""
    values: dict[str, Any] = {
        "readable_id": f"26-01-{order_id}",
        "customer_name": "Ram Sharma",
        "customer_phone": "+977-98-4512-3456",
        "shipping_address": "Lakeside, Pokhara",
        "total_amount": Decimal("1100"),
        "payable_amount": Decimal("1200"),
        "payment_method": "cod",
        "fulfillment_type": "outside_valley",
        "courier_partner": "Nepal Can Move",
        "destination_branch": "POKHARA",
        "delivery_type": None,
        "items": [OrderItem(product_name="Ladies Work Bag", quantity=2)],
    }
    values.update(overrides)
    return Order(id=order_id, **values)


@dataclass
class Comment:
    order_id: str
    text: str
    source: str
    external_id: str | None
    event_type: str | None


class InMemoryOrderStore:
    """Order store double with knobs for simulating write failures."""

    def __init__(self, *orders: Order) -> None:
        self.orders: dict[str, Order] = {o.id: o for o in orders}
        self.comments: list[Comment] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        # Number of upcoming sync-state writes to silently drop.
        self.drop_sync_writes = 0
        # Number of upcoming writes of any kind that raise.
        self.fail_updates = 0
        self.fail_failure_records = False

    def add(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    async def get(self, order_id: str) -> Order | None:
        order = self.orders.get(order_id)
        return copy.deepcopy(order) if order is not None else None

    async def update(self, order_id: str, fields: dict[str, Any]) -> Order:
        self.updates.append((order_id, dict(fields)))
        order = self.orders[order_id]
        is_failure_record = set(fields) == {"logistics_response"}
        if is_failure_record and self.fail_failure_records:
            raise RuntimeError("audit column unavailable")
        if self.fail_updates and not is_failure_record:
            self.fail_updates -= 1
            raise RuntimeError("database unavailable")
        if self.drop_sync_writes and "is_logistics_synced" in fields:
            self.drop_sync_writes -= 1
            return copy.deepcopy(order)
        for key, value in fields.items():
            setattr(order, key, value)
        return copy.deepcopy(order)

    async def find_by_tracking_id(self, tracking_id: str) -> Order | None:
        wanted = tracking_id.upper()
        for order in self.orders.values():
            for value in (order.external_order_id, order.waybill):
                if value and value.upper() == wanted:
                    return copy.deepcopy(order)
        return None

    async def has_comment(self, order_id: str, external_id: str) -> bool:
        return any(
            c.order_id == order_id and c.external_id == external_id
            for c in self.comments
        )

    async def add_comment(
        self,
        order_id: str,
        text: str,
        *,
        source: str,
        external_id: str | None = None,
        event_type: str | None = None,
    ) -> None:
        self.comments.append(
            Comment(order_id, text, source, external_id, event_type)
        )


class InMemoryWebhookLog:
    def __init__(self) -> None:
        self.entries: list = []

    async def append(self, entry) -> None:
        self.entries.append(entry)

    @property
    def statuses(self) -> list[str]:
        return [str(e.status) for e in self.entries]


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def notify(self, order, status: str, event) -> None:
        self.calls.append((str(order.id), status))


@dataclass
class FakeAdapterState:
    """Shared counters for every FakeCourier instance of one test."""

    tracking_ids: list[str] = field(default_factory=lambda: ["NCM555"])
    pushes: list[tuple[str, DeliveryType]] = field(default_factory=list)
    error: Exception | None = None
    status: str = "In Transit"


class FakeCourier(ProviderAdapter):
    """Adapter double that records pushes instead of calling a courier."""

    code = "ncm"
    display_name = "Nepal Can Move"
    default_status_table = {
        "In Transit": CanonicalStatus.IN_TRANSIT,
        "Delivered": CanonicalStatus.DELIVERED,
    }
    rejection_prefix = "NCM"
    initial_status_label = "Order Created"
    state: FakeAdapterState

    async def push_order(self, order, delivery_type) -> SyncResult:
        self.state.pushes.append((order.id, delivery_type))
        if self.state.error is not None:
            raise self.state.error
        index = len(self.state.pushes) - 1
        ids = self.state.tracking_ids
        tracking_id = ids[index] if index < len(ids) else f"NCM{index}"
        return SyncResult(
            provider=self.code,
            tracking_id=tracking_id,
            waybill=tracking_id,
            message="Order created successfully",
            delivery_type=delivery_type,
            raw_response={"orderid": tracking_id},
        )

    async def pull_status(self, tracking_id: str) -> ProviderStatus:
        return ProviderStatus(
            tracking_id=tracking_id,
            raw_status=self.state.status,
            canonical_status=self.map_status(self.state.status),
        )


@pytest.fixture(autouse=True)
def isolate_dummy_simulator() -> Iterator[None]:
    reset_simulator()
    try:
        yield
    finally:
        reset_simulator()


@pytest.fixture()
def config() -> LogisticsConfig:
    return LogisticsConfig(
        providers={
            "ncm": ProviderSettings(
                api_token="ncm-token", webhook_secret="ncm-secret"
            ),
            "dummy": ProviderSettings(webhook_secret="dummy-secret"),
        },
        bulk_delay_seconds=0,
    )


@pytest.fixture()
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore(make_order("O1"))


@pytest.fixture()
def courier_state() -> FakeAdapterState:
    return FakeAdapterState()


@pytest.fixture()
def registry(config, order_store, courier_state) -> AdapterRegistry:
    """Registry with the real couriers plus ``ncm`` replaced by a fake."""
    fake = type("BoundFakeCourier", (FakeCourier,), {"state": courier_state})
    reg = AdapterRegistry(
        SettingsConfigSource(config), order_store=order_store
    )
    reg.discover()
    reg.register("ncm", fake)
    return reg


@pytest.fixture()
def orchestrator(order_store, registry, config) -> SyncOrchestrator:
    return SyncOrchestrator(order_store, registry, config)


@pytest.fixture()
def webhook_log() -> InMemoryWebhookLog:
    return InMemoryWebhookLog()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    pytest.importorskip("sqlalchemy")
    from sqlalchemy.ext.asyncio import create_async_engine

    from fastapi_logistics.contrib.sqlalchemy.models import Base

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory


@pytest.fixture()
def sqlalchemy_order_store(async_session_factory):
    """Create an SQLAlchemyOrderStore."""
    from fastapi_logistics.contrib.sqlalchemy.repository import (
        SQLAlchemyOrderStore,
    )

    return SQLAlchemyOrderStore(async_session_factory)
