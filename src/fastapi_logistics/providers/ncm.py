"""Nepal Can Move (NCM) courier adapter."""

from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, ClassVar

from fastapi_logistics import sanitizers
from fastapi_logistics.exceptions import (
    MissingDestinationBranch,
    ProviderUnavailable,
)
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.status_map import NCM_STATUSES
from fastapi_logistics.transport import CourierResponse
from fastapi_logistics.types import (
    DeliveryType,
    NormalizedEvent,
    OperationResult,
    ProviderStatus,
    SyncResult,
)

logger = logging.getLogger(__name__)

BRANCH_PICKUP_DISCOUNT = Decimal(50)


class NCMAdapter(ProviderAdapter):
    """Adapter for the NCM v1 order API."""

    code: ClassVar[str] = "ncm"
    display_name: ClassVar[str] = "Nepal Can Move"
    default_api_url: ClassVar[str] = "https://api.nepalcanmove.com/api/v1"
    default_source_branch: ClassVar[str] = "TINKUNE"
    default_status_table = NCM_STATUSES
    rejection_prefix: ClassVar[str] = "NCM"
    initial_status_label: ClassVar[str] = "Order Created"
    description_limit: ClassVar[int] = 200
    field_labels: ClassVar[Mapping[str, str]] = {
        "phone": "Phone Number",
        "phone2": "Secondary Phone",
        "name": "Customer Name",
        "address": "Address",
        "branch": "Branch",
        "fbranch": "Source Branch",
        "cod_charge": "COD Amount",
        "delivery_type": "Delivery Type",
    }
    delivery_type_names: ClassVar[Mapping[DeliveryType, str]] = {
        DeliveryType.D2D: "Door2Door",
        DeliveryType.D2B: "Door2Branch",
    }

    def build_payload(
        self, order: Any, delivery_type: DeliveryType
    ) -> dict[str, Any]:
        customer = self.customer_fields(order)
        branch = sanitizers.clean_branch(
            getattr(order, "destination_branch", None)
        )
        if not branch:
            raise MissingDestinationBranch(
                "NCM Rejected: Destination branch is missing"
            )
        return {
            "name": customer["name"],
            "phone": customer["phone"],
            "phone2": customer["phone2"],
            # NCM expects the amount as a string
            "cod_charge": str(customer["cod"]),
            "address": customer["address"],
            "fbranch": self.source_branch,
            "branch": branch,
            "package": self.package_description(order),
            "vref_id": getattr(order, "source_name", None) or "",
            "instruction": sanitizers.format_instruction(
                self.order_number(order)
            ),
            "delivery_type": self.delivery_type_names[delivery_type],
        }

    async def push_order(
        self, order: Any, delivery_type: DeliveryType
    ) -> SyncResult:
        payload = self.build_payload(order, delivery_type)
        logger.info(
            "Creating NCM order for %s (%s -> %s, %s, COD %s)",
            self.order_number(order),
            payload["fbranch"],
            payload["branch"],
            payload["delivery_type"],
            payload["cod_charge"],
        )
        response = await self.client().post("order/create", json=payload)
        body = self.check_create_response(response)

        tracking_id = str(
            self.first_present(body, "orderid", "order_id", "tracking_id")
        )
        waybill = self.first_present(body, "waybill", "awb_number")
        return SyncResult(
            provider=self.code,
            tracking_id=tracking_id,
            waybill=str(waybill or tracking_id),
            message=self.first_present(body, "Message", "message")
            or "Order created successfully",
            delivery_type=delivery_type,
            raw_response=body,
        )

    def check_create_response(
        self, response: CourierResponse
    ) -> dict[str, Any]:
        """Classify a create-order response; raise on any error marker.

        NCM reports rejections with HTTP 200 and an ``Error`` object
        keyed by field, so status codes alone are not trusted.
        """
        body = self.require_mapping(response)
        error_object = body.get("Error")
        if error_object:
            if isinstance(error_object, Mapping):
                raise self.rejected(error_object, body)
            raise self.rejected(str(error_object), body)
        if isinstance(body.get("error"), str) and body["error"].strip():
            raise self.rejected(body["error"], body)
        if (
            str(body.get("code", "")).upper() == "ERROR"
            or str(body.get("status", "")).lower() == "error"
            or body.get("success") is False
        ):
            raise self.rejected(
                self.first_present(body, "message", "Message", "detail")
                or "Order creation failed",
                body,
            )
        if not response.ok:
            raise self.rejected(
                body or f"HTTP {response.status_code}", body
            )
        if not self.first_present(body, "orderid", "order_id", "tracking_id"):
            raise self.rejected(
                "No order id returned; the order may not have been created",
                body,
            )
        return body

    async def pull_status(self, tracking_id: str) -> ProviderStatus:
        response = await self.client().get(
            "order/status", params={"id": tracking_id}
        )
        body = response.body
        if isinstance(body, list):
            # Newest event first
            latest = body[0] if body and isinstance(body[0], Mapping) else {}
        else:
            latest = self.require_mapping(response)
            if latest.get("Error") or latest.get("success") is False:
                raise self.rejected(
                    latest.get("Error")
                    or latest.get("message")
                    or "Failed to get status",
                    latest,
                )
        raw_status = self.first_present(latest, "status", "current_status")
        return ProviderStatus(
            tracking_id=tracking_id,
            raw_status=raw_status,
            canonical_status=self.map_status(raw_status),
            location=self.first_present(
                latest, "location", "current_location"
            ),
            remarks=self.first_present(latest, "remarks", "comments"),
            timestamp=self.first_present(
                latest, "added_time", "updated_at", "timestamp"
            ),
            raw_response=body,
        )

    async def cancel_shipment(
        self, tracking_id: str, reason: str = ""
    ) -> OperationResult:
        try:
            response = await self.client().post(
                "order/cancel",
                json={
                    "order_id": tracking_id,
                    "reason": reason or "Customer request",
                },
            )
        except ProviderUnavailable as exc:
            logger.error("NCM cancel for %s failed: %s", tracking_id, exc)
            return OperationResult(success=False, message=str(exc))

        body = response.body if isinstance(response.body, Mapping) else {}
        if body.get("Error"):
            return OperationResult(
                success=False,
                message=self.format_rejection(body["Error"]),
                data=dict(body),
            )
        return OperationResult(
            success=bool(body.get("success", response.ok)),
            message=self.first_present(body, "message", "Message")
            or "Cancellation request submitted",
            data=dict(body),
        )

    async def get_shipping_rates(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        destination = sanitizers.clean_branch(
            details.get("destination") or details.get("destination_branch")
        )
        if not destination:
            return OperationResult(
                success=False, message="Destination branch is required"
            )
        response = await self.client().get(
            "shipping-rate",
            params={
                "creation": self.source_branch,
                "destination": destination,
                "type": details.get("type", "Pickup/Collect"),
            },
        )
        body = response.body if isinstance(response.body, Mapping) else {}
        try:
            charge = Decimal(str(body["charge"]))
        except (KeyError, InvalidOperation):
            return OperationResult(
                success=False,
                message=f"Invalid rate response for {destination}",
                data={"raw_response": response.body},
            )
        return OperationResult(
            success=True,
            message=f"Rs. {charge} from {self.source_branch} to {destination}",
            data={
                "charge": charge,
                "d2d_price": charge,
                "d2b_price": max(Decimal(0), charge - BRANCH_PICKUP_DISCOUNT),
                "source_branch": self.source_branch,
                "destination_branch": destination,
            },
        )

    async def post_comment(
        self, tracking_id: str, text: str
    ) -> OperationResult:
        if not text or not text.strip():
            return OperationResult(
                success=False, message="Comment text is required"
            )
        response = await self.client().post(
            "comment",
            json={"orderid": str(tracking_id), "comments": text.strip()},
        )
        body = response.body if isinstance(response.body, Mapping) else {}
        if body.get("Error") or not response.ok:
            return OperationResult(
                success=False,
                message=self.format_rejection(
                    body.get("Error") or f"HTTP {response.status_code}"
                ),
                data=dict(body),
            )
        return OperationResult(
            success=True,
            message=self.first_present(body, "Message", "message")
            or "Comment posted successfully",
            data={"comment_id": self.first_present(body, "id", "comment_id")},
        )

    async def get_comments(self, tracking_id: str) -> OperationResult:
        response = await self.client().get(
            "order/comment", params={"id": str(tracking_id)}
        )
        body = response.body
        if isinstance(body, Mapping):
            comments = body.get("comments") or body.get("data") or []
        else:
            comments = body if isinstance(body, list) else []
        return OperationResult(
            success=response.ok,
            message=f"{len(comments)} comments",
            data={"comments": comments},
        )

    def is_test_ping(self, payload: Mapping[str, Any]) -> bool:
        test_flag = payload.get("test")
        return (
            test_flag is True
            or str(test_flag).lower() == "true"
            or payload.get("event") in ("test", "webhook.test")
            or payload.get("type") == "test"
            or not self.first_present(payload, "order_id", "tracking_id")
        )

    def normalize_webhook_data(
        self, payload: Mapping[str, Any]
    ) -> NormalizedEvent:
        tracking_id = self.first_present(
            payload, "order_id", "tracking_id", "awb_number"
        )
        raw_status = self.first_present(payload, "status", "status_code")
        return NormalizedEvent(
            tracking_id=str(tracking_id) if tracking_id is not None else None,
            canonical_status=self.map_status(raw_status),
            raw_status=raw_status,
            remarks=self.first_present(
                payload, "remarks", "status_description", "comments"
            ),
            location=payload.get("location"),
            timestamp=self.first_present(
                payload, "timestamp", "updated_at", "delivery_date"
            ),
            event_id=self.event_id_from(payload),
            raw_payload=dict(payload),
        )

    def verify_webhook_signature(
        self,
        signature: str | None,
        payload: Mapping[str, Any],
        raw_body: bytes | None = None,
    ) -> bool:
        """Accept the shared secret itself or an HMAC-SHA256 of the body."""
        if super().verify_webhook_signature(signature, payload, raw_body):
            return True
        secret = self.config.webhook_secret
        if not secret or not signature:
            return False
        body = raw_body if raw_body is not None else self.canonical_body(payload)
        expected = self.hmac_sha256(secret, body)
        return hmac.compare_digest(str(signature).lower(), expected)
