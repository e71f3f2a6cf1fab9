"""FastAPI example app demonstrating fastapi-logistics-sync.

Orders live in SQLite through the SQLAlchemy contrib store and are
shipped with the built-in dummy courier. ``/dummy-sim`` moves a
simulated shipment forward and feeds the resulting status back through
the webhook intake, the way a real courier callback would.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fastapi_logistics import LogisticsConfig, create_logistics_router
from fastapi_logistics.config import ProviderSettings
from fastapi_logistics.contrib.sqlalchemy.models import Base
from fastapi_logistics.contrib.sqlalchemy.repository import (
    SQLAlchemyOrderStore,
)
from fastapi_logistics.contrib.sqlalchemy.stores import (
    SQLAlchemyWebhookLogStore,
)
from fastapi_logistics.providers.dummy import advance_shipment
from fastapi_logistics.registry import build_registry

# --- Database setup ---

DATABASE_URL = os.environ.get(
    "LOGISTICS_EXAMPLE_DATABASE_URL", "sqlite+aiosqlite:///./example.db"
)
engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# --- Library integration ---

DUMMY_WEBHOOK_SECRET = "example-secret"

config = LogisticsConfig()
if config.provider("dummy") is None:
    config.providers["dummy"] = ProviderSettings(
        webhook_secret=DUMMY_WEBHOOK_SECRET
    )

order_store = SQLAlchemyOrderStore(async_session)
webhook_log = SQLAlchemyWebhookLogStore(async_session)
registry = build_registry(config, order_store=order_store)

logistics_router = create_logistics_router(
    config=config,
    order_store=order_store,
    registry=registry,
    webhook_log_store=webhook_log,
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(title="fastapi-logistics-sync demo", lifespan=lifespan)
app.include_router(logistics_router, prefix="/api/logistics")


# --- Order management ---


class ItemIn(BaseModel):
    product_name: str
    quantity: int = 1


class OrderIn(BaseModel):
    customer_name: str
    customer_phone: str
    shipping_address: str
    destination_branch: str
    payable_amount: Decimal
    payment_method: str = "cod"
    courier_partner: str = "Dummy Logistics"
    fulfillment_type: str = "outside_valley"
    delivery_type: str | None = None
    items: list[ItemIn] = Field(default_factory=list)


@app.post("/orders", status_code=201)
async def create_order(body: OrderIn) -> dict:
    """Create an order ready to be synced."""
    order_id = uuid4().hex[:12]
    order = await order_store.create(
        id=order_id,
        readable_id=f"EX-{order_id[:6].upper()}",
        **body.model_dump(exclude={"items"}),
        items=[item.model_dump() for item in body.items],
    )
    return {"id": order.id, "readable_id": order.readable_id}


@app.get("/orders/{order_id}/comments")
async def order_comments(order_id: str) -> list[dict]:
    """Order activity feed written by courier webhooks."""
    comments = await order_store.list_comments(order_id)
    return [
        {
            "text": c.text,
            "source": c.source,
            "external_id": c.external_comment_id,
        }
        for c in comments
    ]


@app.get("/webhook-log")
async def recent_webhooks(provider: str | None = None) -> list[dict]:
    entries = await webhook_log.list_entries(provider=provider)
    return [
        {
            "provider": e.provider,
            "status": e.status,
            "tracking_id": e.tracking_id,
            "order_id": e.order_id,
        }
        for e in entries
    ]


# --- Dummy courier simulator ---

sim_router = APIRouter(prefix="/dummy-sim", tags=["simulator"])


@sim_router.post("/{tracking_id}/advance")
async def advance(request: Request, tracking_id: str) -> dict:
    """Advance a dummy shipment and deliver the status as a webhook."""
    try:
        status = advance_shipment(tracking_id)
    except KeyError:
        raise HTTPException(
            status_code=404, detail="Unknown simulated shipment"
        ) from None

    intake = request.app.state.logistics_webhook_intake
    outcome = await intake.handle(
        "dummy",
        {
            "tracking_id": tracking_id,
            "status": status,
            "event_id": f"{tracking_id}:{status}",
            "remarks": "Simulated courier update",
        },
        config.provider("dummy").webhook_secret or DUMMY_WEBHOOK_SECRET,
    )
    return {"status": status, "webhook": str(outcome.status)}


app.include_router(sim_router)
