"""In-process courier simulator for development and tests."""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import uuid4

from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.status_map import DUMMY_STATUSES
from fastapi_logistics.types import (
    DeliveryType,
    NormalizedEvent,
    OperationResult,
    ProviderStatus,
    SyncResult,
)

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_SECRET = "dummy_secret_key_2026"
TEST_MODE_SIGNATURE = "test_mode"

STATUS_PROGRESSION = ["BOOKED", "PICKED", "INTRANSIT", "OFD", "DELIVERED"]

# --- Simulator state (in-memory, ephemeral) ---

_dummy_shipments: dict[str, dict[str, Any]] = {}


def reset_simulator() -> None:
    _dummy_shipments.clear()


def advance_shipment(tracking_id: str) -> str:
    """Move a simulated shipment one step along ``STATUS_PROGRESSION``."""
    entry = _dummy_shipments[tracking_id]
    current = entry["status"]
    if current in STATUS_PROGRESSION:
        index = STATUS_PROGRESSION.index(current)
        entry["status"] = STATUS_PROGRESSION[
            min(index + 1, len(STATUS_PROGRESSION) - 1)
        ]
    return entry["status"]


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


class DummyAdapter(ProviderAdapter):
    """Courier that books shipments in a module-level table.

    Supports every operation, so it doubles as a reference for what a
    fully featured courier integration returns.
    """

    code: ClassVar[str] = "dummy"
    display_name: ClassVar[str] = "Dummy Logistics"
    default_status_table = DUMMY_STATUSES
    rejection_prefix: ClassVar[str] = "Dummy"
    initial_status_label: ClassVar[str] = "Pickup Order Created"

    async def _simulate_latency(self) -> None:
        delay = float(self.config.options.get("delay_seconds", 0))
        if delay > 0:
            await asyncio.sleep(delay)

    async def push_order(
        self, order: Any, delivery_type: DeliveryType
    ) -> SyncResult:
        customer = self.customer_fields(order)
        await self._simulate_latency()
        tracking_id = f"DMY{uuid4().hex[:10].upper()}"
        waybill = f"AWB{tracking_id}"
        _dummy_shipments[tracking_id] = {
            "tracking_id": tracking_id,
            "waybill": waybill,
            "order_id": str(order.id),
            "status": "BOOKED",
            "delivery_type": str(delivery_type),
            "cod_charge": customer["cod"],
            "comments": [],
            "updated_at": _now(),
        }
        logger.info(
            "Dummy shipment %s booked for order %s", tracking_id, order.id
        )
        return SyncResult(
            provider=self.code,
            tracking_id=tracking_id,
            waybill=waybill,
            message="Order pushed to dummy logistics",
            delivery_type=delivery_type,
            raw_response=dict(_dummy_shipments[tracking_id]),
        )

    def _shipment(self, tracking_id: str) -> dict[str, Any]:
        entry = _dummy_shipments.get(tracking_id)
        if entry is None:
            raise self.rejected(f"Shipment {tracking_id} not found")
        return entry

    async def pull_status(self, tracking_id: str) -> ProviderStatus:
        entry = self._shipment(tracking_id)
        return ProviderStatus(
            tracking_id=tracking_id,
            raw_status=entry["status"],
            canonical_status=self.map_status(entry["status"]),
            location=entry.get("location", "Kathmandu"),
            remarks=f"Shipment is {entry['status']}",
            timestamp=entry["updated_at"],
            raw_response=dict(entry),
        )

    async def cancel_shipment(
        self, tracking_id: str, reason: str = ""
    ) -> OperationResult:
        entry = _dummy_shipments.get(tracking_id)
        if entry is None:
            return OperationResult(
                success=False, message=f"Shipment {tracking_id} not found"
            )
        if entry["status"] == "DELIVERED":
            return OperationResult(
                success=False, message="Delivered shipments cannot be cancelled"
            )
        entry["status"] = "CANCELLED"
        entry["updated_at"] = _now()
        return OperationResult(
            success=True,
            message="Shipment cancelled",
            data={"cancellation_id": f"CNL{tracking_id}", "reason": reason},
        )

    async def request_pickup(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        await self._simulate_latency()
        return OperationResult(
            success=True,
            message="Pickup scheduled",
            data={
                "pickup_id": f"PKP{uuid4().hex[:8].upper()}",
                "scheduled_time": details.get("preferred_date") or _now(),
            },
        )

    async def get_shipping_rates(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        charge = Decimal(str(self.config.options.get("rate", 150)))
        return OperationResult(
            success=True,
            message=f"Rs. {charge}",
            data={
                "charge": charge,
                "d2d_price": charge,
                "d2b_price": max(Decimal(0), charge - 50),
                "currency": "NPR",
            },
        )

    async def post_comment(
        self, tracking_id: str, text: str
    ) -> OperationResult:
        entry = self._shipment(tracking_id)
        comment = {
            "id": len(entry["comments"]) + 1,
            "comments": text.strip(),
            "created_at": _now(),
        }
        entry["comments"].append(comment)
        return OperationResult(
            success=True,
            message="Comment posted",
            data={"comment_id": comment["id"]},
        )

    async def get_comments(self, tracking_id: str) -> OperationResult:
        entry = self._shipment(tracking_id)
        return OperationResult(
            success=True,
            message=f"{len(entry['comments'])} comments",
            data={"comments": list(entry["comments"])},
        )

    def normalize_webhook_data(
        self, payload: Mapping[str, Any]
    ) -> NormalizedEvent:
        tracking_id = self.first_present(payload, "tracking_id", "trackingId")
        raw_status = payload.get("status")
        return NormalizedEvent(
            tracking_id=str(tracking_id) if tracking_id is not None else None,
            canonical_status=self.map_status(raw_status),
            raw_status=raw_status,
            remarks=self.first_present(payload, "remarks", "comment")
            or "No remarks",
            location=payload.get("location") or "Unknown",
            timestamp=payload.get("timestamp") or _now(),
            event_id=self.event_id_from(payload),
            raw_payload=dict(payload),
        )

    def verify_webhook_signature(
        self,
        signature: str | None,
        payload: Mapping[str, Any],
        raw_body: bytes | None = None,
    ) -> bool:
        """Shared secret; the built-in secrets need ``options.test_mode``."""
        if not signature:
            return False
        test_mode = bool(self.config.options.get("test_mode"))
        secret = self.config.webhook_secret
        if not secret and test_mode:
            secret = DEFAULT_WEBHOOK_SECRET
        if secret and hmac.compare_digest(str(signature), secret):
            return True
        return test_mode and signature == TEST_MODE_SIGNATURE
