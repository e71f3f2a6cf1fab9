"""SQLAlchemy order, comment, webhook log and courier partner models."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class OrderModel(Base):
    """Order columns the logistics layer reads and writes."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    readable_id: Mapped[str | None] = mapped_column(String(64))
    customer_name: Mapped[str | None] = mapped_column(String(255))
    customer_phone: Mapped[str | None] = mapped_column(String(32))
    alt_phone: Mapped[str | None] = mapped_column(String(32))
    shipping_address: Mapped[str | None] = mapped_column(Text)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    payable_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    payment_method: Mapped[str | None] = mapped_column(String(32))
    fulfillment_type: Mapped[str | None] = mapped_column(String(32))
    courier_partner: Mapped[str | None] = mapped_column(String(128))
    destination_branch: Mapped[str | None] = mapped_column(String(128))
    delivery_type: Mapped[str | None] = mapped_column(String(32))
    source_name: Mapped[str | None] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(String(32), default="packed")
    is_logistics_synced: Mapped[bool] = mapped_column(Boolean, default=False)
    external_order_id: Mapped[str | None] = mapped_column(
        String(128), index=True
    )
    waybill: Mapped[str | None] = mapped_column(String(128), index=True)
    logistics_provider: Mapped[str | None] = mapped_column(String(32))
    logistics_status: Mapped[str | None] = mapped_column(String(128))
    logistics_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    logistics_response: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    handover_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    last_known_location: Mapped[str | None] = mapped_column(String(255))

    items: Mapped[list[OrderItemModel]] = relationship(
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"))
    product_name: Mapped[str] = mapped_column(String(255))
    variant: Mapped[str | None] = mapped_column(String(128))
    sku: Mapped[str | None] = mapped_column(String(64))
    quantity: Mapped[int] = mapped_column(Integer, default=1)

    order: Mapped[OrderModel] = relationship(back_populates="items")


class OrderCommentModel(Base):
    """Order activity feed entry; courier events carry their event id."""

    __tablename__ = "order_comments"
    __table_args__ = (
        UniqueConstraint("order_id", "external_comment_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id"), index=True
    )
    text: Mapped[str] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(32))
    external_comment_id: Mapped[str | None] = mapped_column(String(128))
    event_type: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class WebhookLogModel(Base):
    """Append-only webhook audit log."""

    __tablename__ = "logistics_webhook_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), index=True)
    status: Mapped[str] = mapped_column(String(32))
    tracking_id: Mapped[str | None] = mapped_column(String(128))
    order_id: Mapped[str | None] = mapped_column(String(64))
    error: Mapped[str | None] = mapped_column(Text)
    headers: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class CourierPartnerModel(Base):
    """Provider configuration row keyed by provider code."""

    __tablename__ = "courier_partners"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(128))
    api_url: Mapped[str | None] = mapped_column(String(512))
    api_token: Mapped[str | None] = mapped_column(String(512))
    source_branch: Mapped[str | None] = mapped_column(String(128))
    webhook_secret: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(32))
    timeout_seconds: Mapped[float | None] = mapped_column(Float)
    status_map: Mapped[dict[str, str]] = mapped_column(JSON, default=dict)
    options: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
