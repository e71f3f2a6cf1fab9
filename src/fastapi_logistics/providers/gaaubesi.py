"""Gaau Besi (GBL) courier adapter."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

from fastapi_logistics import sanitizers
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.status_map import GAAUBESI_STATUSES
from fastapi_logistics.transport import CourierResponse
from fastapi_logistics.types import (
    DeliveryType,
    OperationResult,
    ProviderStatus,
    SyncResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTACT_PHONE = "9802359033"
_ERROR_WORDS = ("error", "failed", "invalid", "rejected")


class GaauBesiAdapter(ProviderAdapter):
    """Adapter for the Gaau Besi v1 API.

    Cancellation and pickup requests are not exposed by the courier's
    API and return an unsupported result.
    """

    code: ClassVar[str] = "gaaubesi"
    display_name: ClassVar[str] = "Gaau Besi"
    default_api_url: ClassVar[str] = "https://delivery.gaaubesi.com/api/v1"
    default_source_branch: ClassVar[str] = "HEAD OFFICE"
    default_status_table = GAAUBESI_STATUSES
    rejection_prefix: ClassVar[str] = "GBL"
    initial_status_label: ClassVar[str] = "Pickup Order Created"
    description_limit: ClassVar[int] = 250
    field_labels: ClassVar[Mapping[str, str]] = {
        "receiver_number": "Phone Number",
        "receiver_name": "Customer Name",
        "receiver_address": "Address",
        "destination_branch": "Branch",
        "branch": "Source Branch",
        "cod_charge": "COD Amount",
        "delivery_type": "Delivery Type",
    }
    delivery_type_names: ClassVar[Mapping[DeliveryType, str]] = {
        DeliveryType.D2D: "Drop Off",
        DeliveryType.D2B: "Pickup",
    }

    def build_payload(
        self, order: Any, delivery_type: DeliveryType
    ) -> dict[str, Any]:
        customer = self.customer_fields(order)
        description = self.package_description(order)
        destination = (
            sanitizers.clean_branch(getattr(order, "destination_branch", None))
            or self.default_source_branch
        )
        return {
            "branch": self.source_branch,
            "destination_branch": destination,
            "receiver_name": customer["name"],
            "receiver_number": customer["phone"],
            "alt_receiver_number": customer["phone2"],
            "receiver_address": customer["address"],
            "cod_charge": customer["cod"],
            "delivery_type": self.delivery_type_names[delivery_type],
            "product_name": description,
            "package_type": description,
            "package_access": "Can't Open" if customer["is_cod"] else "Can Open",
            "remarks": sanitizers.format_instruction(self.order_number(order)),
            "order_contact_name": getattr(order, "source_name", None)
            or self.name,
            "order_contact_number": self.config.contact_phone
            or DEFAULT_CONTACT_PHONE,
        }

    async def push_order(
        self, order: Any, delivery_type: DeliveryType
    ) -> SyncResult:
        payload = self.build_payload(order, delivery_type)
        logger.info(
            "Creating Gaau Besi order for %s (%s -> %s, %s, COD %s)",
            self.order_number(order),
            payload["branch"],
            payload["destination_branch"],
            payload["delivery_type"],
            payload["cod_charge"],
        )
        response = await self.client().post("order/create/", json=payload)
        body = self.check_create_response(response)
        tracking_id = str(
            self.first_present(body, "order_id", "tracking_id", "id")
        )
        return SyncResult(
            provider=self.code,
            tracking_id=tracking_id,
            waybill=tracking_id,
            message=body.get("message") or "Order created successfully",
            delivery_type=delivery_type,
            raw_response=body,
        )

    def check_create_response(
        self, response: CourierResponse
    ) -> dict[str, Any]:
        body = self.require_mapping(response)
        if body.get("success") is False:
            raise self.rejected(
                body.get("error") or body.get("message") or "Request failed",
                body,
            )
        if body.get("error"):
            raise self.rejected(body["error"], body)
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            raise self.rejected(
                ", ".join(
                    e
                    if isinstance(e, str)
                    else str(e.get("message") or e.get("msg") or e)
                    for e in errors
                ),
                body,
            )
        message = str(body.get("message") or "")
        if (
            any(word in message.lower() for word in _ERROR_WORDS)
            and body.get("success") is not True
            and not body.get("order_id")
        ):
            raise self.rejected(message, body)
        if not response.ok:
            raise self.rejected(
                body or f"HTTP {response.status_code}", body
            )
        if not self.first_present(body, "order_id", "tracking_id", "id"):
            raise self.rejected(
                "GBL did not return an order id; "
                "the order may not have been created",
                body,
            )
        return body

    async def pull_status(self, tracking_id: str) -> ProviderStatus:
        response = await self.client().get(
            "order/status/", params={"order_id": tracking_id}
        )
        body = self.require_mapping(response)
        if not body.get("success"):
            raise self.rejected(
                body.get("message") or "Failed to get status", body
            )
        history = body.get("status") or []
        if isinstance(history, str):
            history = [history]
        raw_status = history[0] if history else None
        return ProviderStatus(
            tracking_id=tracking_id,
            raw_status=raw_status,
            canonical_status=self.map_status(raw_status),
            remarks=raw_status,
            raw_response=body,
        )

    async def get_shipping_rates(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        response = await self.client().get("locations_data/")
        rates = response.body if isinstance(response.body, Mapping) else {}
        if not rates:
            return OperationResult(
                success=False, message="Failed to get rates"
            )
        destination = sanitizers.clean_branch(
            details.get("destination") or details.get("destination_branch")
        )
        if destination and destination not in rates:
            return OperationResult(
                success=False,
                message=f"No Gaau Besi rate for {destination}",
                data={"rates": dict(rates)},
            )
        data: dict[str, Any] = {"rates": dict(rates)}
        if destination:
            try:
                data["charge"] = Decimal(str(rates[destination]))
            except InvalidOperation:
                data["charge"] = None
            data["destination_branch"] = destination
        return OperationResult(
            success=True,
            message=f"{len(rates)} branches",
            data=data,
        )

    async def post_comment(
        self, tracking_id: str, text: str
    ) -> OperationResult:
        if not text or not text.strip():
            return OperationResult(
                success=False, message="Comment text is required"
            )
        response = await self.client().post(
            "order/comment/create/",
            json={"order": tracking_id, "comments": text.strip()},
        )
        body = response.body if isinstance(response.body, Mapping) else {}
        return OperationResult(
            success=bool(body.get("success", response.ok)),
            message=body.get("message") or "Comment posted",
            data=dict(body),
        )

    async def get_comments(self, tracking_id: str) -> OperationResult:
        response = await self.client().get(
            "order/comment/list/", params={"order_id": tracking_id}
        )
        body = response.body if isinstance(response.body, Mapping) else {}
        comments = []
        if body.get("success"):
            comments = body.get("comments") or []
        return OperationResult(
            success=True,
            message=f"{len(comments)} comments",
            data={"comments": comments},
        )
