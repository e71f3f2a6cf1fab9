"""Base class every courier adapter implements."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

from fastapi_logistics import sanitizers
from fastapi_logistics.exceptions import (
    InvalidCustomerPhone,
    MissingCustomerName,
    ProviderRejected,
)
from fastapi_logistics.status_map import StatusMap
from fastapi_logistics.transport import CourierClient, CourierResponse
from fastapi_logistics.types import (
    CanonicalStatus,
    DeliveryType,
    NormalizedEvent,
    OperationResult,
    ProviderConfig,
    ProviderStatus,
    SyncResult,
)

logger = logging.getLogger(__name__)

# Body keys that carry a message rather than name a field.
_MESSAGE_KEYS = frozenset(
    {"", "error", "errors", "message", "detail", "non_field_errors"}
)


class ProviderAdapter(ABC):
    """One courier's REST dialect behind a common interface.

    Subclasses implement :meth:`push_order` and :meth:`pull_status`, and
    override :meth:`normalize_webhook_data` when their callback shape
    differs from the common one. Optional operations (cancel, pickup,
    rates and comments) return an "unsupported" result unless
    overridden.
    """

    code: ClassVar[str]
    display_name: ClassVar[str]
    default_api_url: ClassVar[str] = ""
    default_source_branch: ClassVar[str | None] = None
    auth_scheme: ClassVar[str] = "Token"
    default_status_table: ClassVar[Mapping[str, CanonicalStatus]] = {}
    field_labels: ClassVar[Mapping[str, str]] = {}
    rejection_prefix: ClassVar[str] = ""
    initial_status_label: ClassVar[str] = "Pickup Order Created"
    description_limit: ClassVar[int] = 200

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        self.status_map = StatusMap(self.default_status_table).merged(
            self.config.status_map
        )
        self._transport = transport
        self._request_timeout = request_timeout

    @property
    def name(self) -> str:
        return self.config.name or self.display_name

    @property
    def api_url(self) -> str:
        return self.config.api_url or self.default_api_url

    @property
    def source_branch(self) -> str:
        return sanitizers.clean_branch(
            self.config.source_branch or self.default_source_branch
        )

    def client(self) -> CourierClient:
        return CourierClient(
            provider=self.code,
            base_url=self.api_url,
            token=self.config.api_token,
            auth_scheme=self.auth_scheme,
            timeout=self.config.timeout_seconds or self._request_timeout,
            transport=self._transport,
        )

    # -- required operations -------------------------------------------------

    @abstractmethod
    async def push_order(
        self, order: Any, delivery_type: DeliveryType
    ) -> SyncResult:
        """Create the shipment on the courier's books."""

    @abstractmethod
    async def pull_status(self, tracking_id: str) -> ProviderStatus:
        """Poll the courier for the current shipment status."""

    # -- optional operations -------------------------------------------------

    def _unsupported(self, operation: str) -> OperationResult:
        return OperationResult.unsupported(
            f"{operation} is not supported via API. "
            f"Please contact {self.name} support."
        )

    async def cancel_shipment(
        self, tracking_id: str, reason: str = ""
    ) -> OperationResult:
        return self._unsupported("Cancellation")

    async def request_pickup(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        return self._unsupported("Pickup request")

    async def get_shipping_rates(
        self, details: Mapping[str, Any]
    ) -> OperationResult:
        return self._unsupported("Rate lookup")

    async def post_comment(
        self, tracking_id: str, text: str
    ) -> OperationResult:
        return self._unsupported("Posting comments")

    async def get_comments(self, tracking_id: str) -> OperationResult:
        return self._unsupported("Reading comments")

    # -- status and webhooks -------------------------------------------------

    def map_status(self, raw: str | None) -> CanonicalStatus:
        status = self.status_map.translate(raw)
        if status is CanonicalStatus.UNKNOWN and raw:
            logger.warning("Unmapped %s status %r", self.code, raw)
        return status

    def normalize_webhook_data(
        self, payload: Mapping[str, Any]
    ) -> NormalizedEvent:
        """Map a courier callback body into a :class:`NormalizedEvent`.

        Understands the common ``tracking_id`` / ``status`` / ``remarks``
        shape; couriers with their own field names override this.
        """
        tracking_id = self.first_present(
            payload, "tracking_id", "awb", "trackingId"
        )
        raw_status = self.first_present(payload, "status", "event")
        return NormalizedEvent(
            tracking_id=str(tracking_id) if tracking_id is not None else None,
            canonical_status=self.map_status(raw_status),
            raw_status=raw_status,
            remarks=self.first_present(payload, "remarks", "comment", "message"),
            location=self.first_present(payload, "location", "city"),
            timestamp=self.first_present(payload, "timestamp", "date"),
            event_id=self.event_id_from(payload),
            raw_payload=dict(payload),
        )

    @staticmethod
    def event_id_from(payload: Mapping[str, Any]) -> str | None:
        for key in ("event_id", "comment_id"):
            value = payload.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    def is_test_ping(self, payload: Mapping[str, Any]) -> bool:
        """Whether a callback is a connectivity check, not an event."""
        return False

    def verify_webhook_signature(
        self,
        signature: str | None,
        payload: Mapping[str, Any],
        raw_body: bytes | None = None,
    ) -> bool:
        """Shared-secret comparison. No configured secret rejects all."""
        secret = self.config.webhook_secret
        if not secret or not signature:
            return False
        return hmac.compare_digest(str(signature), secret)

    @staticmethod
    def hmac_sha256(secret: str, body: bytes) -> str:
        return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()

    @staticmethod
    def canonical_body(payload: Mapping[str, Any]) -> bytes:
        return json.dumps(
            payload, sort_keys=True, separators=(",", ":"), default=str
        ).encode()

    # -- helpers for subclasses ----------------------------------------------

    def customer_fields(self, order: Any) -> dict[str, Any]:
        """Sanitized customer contact and COD fields shared by couriers."""
        name = sanitizers.clean_name(getattr(order, "customer_name", None))
        if not name:
            raise MissingCustomerName(
                f"{self.rejection_prefix} Rejected: Customer name is missing"
            )
        raw_phone = getattr(order, "customer_phone", None)
        phone = sanitizers.clean_phone(raw_phone)
        if phone is None:
            raise InvalidCustomerPhone(
                f"{self.rejection_prefix} Rejected: Invalid Phone Number "
                f"(must be 10 digits)"
            )
        return {
            "name": name,
            "phone": phone,
            "phone2": sanitizers.clean_secondary_phone(
                getattr(order, "alt_phone", None)
            ),
            "address": sanitizers.clean_address(
                getattr(order, "shipping_address", None)
            ),
            "cod": sanitizers.cod_amount(
                getattr(order, "payable_amount", None),
                getattr(order, "total_amount", None),
                getattr(order, "payment_method", None),
            ),
            "is_cod": sanitizers.is_cod(getattr(order, "payment_method", None)),
        }

    def order_number(self, order: Any) -> str:
        return str(getattr(order, "readable_id", None) or order.id)

    def package_description(self, order: Any) -> str:
        return sanitizers.format_package_description(
            getattr(order, "items", None),
            self.description_limit,
            self.order_number(order),
        )

    def label_for(self, field_name: str) -> str:
        if field_name in self.field_labels:
            return self.field_labels[field_name]
        return field_name.replace("_", " ").strip().title()

    def format_rejection(self, errors: Mapping[str, Any] | str) -> str:
        """Flatten courier field errors into one readable line.

        ``{"phone": "Invalid Phone Number"}`` becomes
        ``"NCM Rejected: Phone Number: Invalid Phone Number"``.
        """
        prefix = f"{self.rejection_prefix} Rejected: "
        if isinstance(errors, str):
            return prefix + errors
        parts = []
        for field_name, messages in errors.items():
            if isinstance(messages, (list, tuple)):
                text = ", ".join(str(m) for m in messages)
            elif isinstance(messages, Mapping):
                text = "; ".join(str(m) for m in messages.values())
            else:
                text = str(messages)
            if str(field_name).lower() in _MESSAGE_KEYS:
                parts.append(text)
            else:
                parts.append(f"{self.label_for(str(field_name))}: {text}")
        return prefix + "; ".join(parts)

    def rejected(
        self,
        errors: Mapping[str, Any] | str,
        raw_response: Any = None,
    ) -> ProviderRejected:
        field_errors = (
            {str(k): str(v) for k, v in errors.items()}
            if isinstance(errors, Mapping)
            else {}
        )
        return ProviderRejected(
            self.format_rejection(errors),
            provider=self.code,
            field_errors=field_errors,
            raw_response=raw_response,
        )

    def require_mapping(
        self, response: CourierResponse
    ) -> dict[str, Any]:
        """Reject anything that is not a JSON object."""
        if isinstance(response.body, dict):
            return response.body
        detail = str(response.body or "").strip()[:200]
        raise self.rejected(
            detail or f"Unexpected response (HTTP {response.status_code})",
            raw_response=response.body,
        )

    @staticmethod
    def first_present(data: Mapping[str, Any], *keys: str) -> Any:
        for key in keys:
            value = data.get(key)
            if value not in (None, ""):
                return value
        return None
