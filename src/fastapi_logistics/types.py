"""Value types shared by adapters, the orchestrator and webhook intake."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any


class DeliveryType(StrEnum):
    """Home delivery (D2D) or branch pickup (D2B)."""

    D2D = "D2D"
    D2B = "D2B"


class CanonicalStatus(StrEnum):
    """Internal shipment status every courier vocabulary maps into."""

    HANDOVER_TO_COURIER = "handover_to_courier"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    HOLD = "hold"
    DELIVERED = "delivered"
    RTO_INITIATED = "rto_initiated"
    RTO_VERIFICATION_PENDING = "rto_verification_pending"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class WebhookStatus(StrEnum):
    """Terminal processing status recorded for an inbound webhook."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    ORDER_NOT_FOUND = "order_not_found"
    PROVIDER_UNKNOWN = "provider_unknown"
    UNAUTHORIZED = "unauthorized"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class OrderItem:
    product_name: str
    quantity: int = 1
    variant: str | None = None
    sku: str | None = None


@dataclass
class Order:
    """Order record as read from the order store.

    Stores may hand back their own row objects instead; the orchestrator
    only relies on attribute access with these names.
    """

    id: str
    readable_id: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    alt_phone: str | None = None
    shipping_address: str | None = None
    total_amount: Decimal | float | None = None
    payable_amount: Decimal | float | None = None
    payment_method: str | None = None
    fulfillment_type: str | None = None
    courier_partner: str | None = None
    destination_branch: str | None = None
    delivery_type: str | None = None
    source_name: str | None = None
    status: str = "packed"
    is_logistics_synced: bool = False
    external_order_id: str | None = None
    waybill: str | None = None
    logistics_provider: str | None = None
    logistics_status: str | None = None
    logistics_synced_at: datetime | None = None
    logistics_response: dict[str, Any] | None = None
    handover_at: datetime | None = None
    delivered_at: datetime | None = None
    last_known_location: str | None = None
    items: list[OrderItem] = field(default_factory=list)


@dataclass(frozen=True)
class ProviderConfig:
    """Resolved configuration an adapter instance is bound to."""

    name: str | None = None
    api_url: str | None = None
    api_token: str | None = None
    source_branch: str | None = None
    webhook_secret: str | None = None
    contact_phone: str | None = None
    timeout_seconds: float | None = None
    status_map: dict[str, str] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.name, self.api_url, self.api_token, self.source_branch)
        )


@dataclass
class SyncResult:
    """Outcome of a successful create-shipment call."""

    provider: str
    tracking_id: str
    waybill: str
    message: str
    delivery_type: DeliveryType
    raw_response: Any = None


@dataclass
class ProviderStatus:
    tracking_id: str
    raw_status: str | None
    canonical_status: CanonicalStatus
    location: str | None = None
    remarks: str | None = None
    timestamp: str | None = None
    raw_response: Any = None


@dataclass
class NormalizedEvent:
    """A courier callback translated into the internal vocabulary."""

    tracking_id: str | None
    canonical_status: CanonicalStatus
    raw_status: str | None = None
    remarks: str | None = None
    location: str | None = None
    timestamp: str | None = None
    event_id: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class OperationResult:
    """Result of a best-effort courier operation (cancel, pickup, rates)."""

    success: bool
    message: str
    supported: bool = True
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def unsupported(cls, message: str) -> OperationResult:
        return cls(success=False, message=message, supported=False)


@dataclass
class SyncOutcome:
    order_id: str
    provider: str
    tracking_id: str
    waybill: str
    delivery_type: DeliveryType
    message: str


@dataclass
class BulkFailure:
    order_id: str
    error: str
    code: str


@dataclass
class BulkOutcome:
    succeeded: list[SyncOutcome] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)


@dataclass
class StatusSnapshot:
    order_id: str
    is_synced: bool
    external_order_id: str | None
    waybill: str | None
    provider: str | None
    logistics_status: str | None
    status: str | None
    delivery_type: str | None
    synced_at: datetime | None
    last_response: dict[str, Any] | None = None


@dataclass
class WebhookLogEntry:
    """Append-only audit record for one inbound webhook."""

    provider: str
    status: WebhookStatus
    tracking_id: str | None = None
    order_id: str | None = None
    error: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None


@dataclass
class ProcessingOutcome:
    provider: str
    status: WebhookStatus
    order_id: str | None = None
    tracking_id: str | None = None
    applied_status: CanonicalStatus | None = None
    message: str = ""
