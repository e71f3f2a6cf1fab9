"""Inbound courier status callbacks."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from fastapi_logistics.exceptions import UnknownProvider, WebhookUnauthorized
from fastapi_logistics.locks import KeyedLock
from fastapi_logistics.protocols import Notifier, OrderStore, WebhookLogStore
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.registry import AdapterRegistry, resolve_provider_code
from fastapi_logistics.sanitizers import sanitize_tracking_id
from fastapi_logistics.status_map import is_forward_progress
from fastapi_logistics.types import (
    CanonicalStatus,
    NormalizedEvent,
    ProcessingOutcome,
    WebhookLogEntry,
    WebhookStatus,
)

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-logistics-secret",
        "x-webhook-secret",
        "x-signature",
    }
)


def event_fingerprint(provider: str, payload: Mapping[str, Any]) -> str:
    """Deterministic id for callbacks that carry none of their own."""
    canonical = json.dumps(
        payload, sort_keys=True, separators=(",", ":"), default=str
    )
    digest = hashlib.sha256(f"{provider}:{canonical}".encode()).hexdigest()
    return f"{provider}:{digest[:32]}"


def redact_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {
        key: "***" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in (headers or {}).items()
    }


def _order_provider(order: Any) -> str | None:
    """Provider code an order was shipped with."""
    stored = getattr(order, "logistics_provider", None)
    if stored:
        code = str(stored).strip().lower()
        return resolve_provider_code(code) or code
    return resolve_provider_code(getattr(order, "courier_partner", None))


class WebhookIntake:
    """Verify, normalize and apply courier callbacks.

    Every call appends exactly one audit entry. Only an authenticity
    failure raises; every other outcome is returned so the HTTP layer
    can answer 200 and keep couriers from retrying.
    """

    def __init__(
        self,
        order_store: OrderStore,
        registry: AdapterRegistry,
        log_store: WebhookLogStore | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.order_store = order_store
        self.registry = registry
        self.log_store = log_store
        self.notifier = notifier
        self._locks = KeyedLock()

    async def handle(
        self,
        provider_code: str,
        payload: Mapping[str, Any] | None,
        signature: str | None,
        *,
        raw_body: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ProcessingOutcome:
        data = dict(payload or {})
        snapshot = redact_headers(headers)
        code = AdapterRegistry.normalize_code(provider_code)

        try:
            adapter = await self.registry.get(code)
        except UnknownProvider:
            logger.warning("Webhook for unknown provider %r", provider_code)
            return await self._finish(
                code,
                WebhookStatus.PROVIDER_UNKNOWN,
                data,
                snapshot,
                message=f"Unknown provider {provider_code!r}",
            )

        if adapter.is_test_ping(data):
            logger.info("%s webhook test ping acknowledged", adapter.code)
            return await self._finish(
                adapter.code,
                WebhookStatus.IGNORED,
                data,
                snapshot,
                message="Test ping acknowledged",
            )

        if not adapter.verify_webhook_signature(signature, data, raw_body):
            logger.warning("Rejected %s webhook: bad signature", adapter.code)
            await self._finish(
                adapter.code,
                WebhookStatus.UNAUTHORIZED,
                data,
                snapshot,
                message="Invalid webhook signature",
            )
            raise WebhookUnauthorized(
                f"Invalid webhook signature for {adapter.code}"
            )

        tracking_id = None
        try:
            event = adapter.normalize_webhook_data(data)
            tracking_id = sanitize_tracking_id(event.tracking_id)
            if not tracking_id:
                return await self._finish(
                    adapter.code,
                    WebhookStatus.IGNORED,
                    data,
                    snapshot,
                    message="Missing tracking id",
                )
            event_id = event.event_id or event_fingerprint(adapter.code, data)
            async with self._locks.hold(tracking_id.upper()):
                return await self._apply(
                    adapter, event, tracking_id, event_id, data, snapshot
                )
        except Exception as exc:
            logger.exception(
                "Processing %s webhook for %s failed", adapter.code, tracking_id
            )
            return await self._finish(
                adapter.code,
                WebhookStatus.FAILED,
                data,
                snapshot,
                tracking_id=tracking_id,
                error=str(exc),
                message="Processing failed",
            )

    async def _apply(
        self,
        adapter: ProviderAdapter,
        event: NormalizedEvent,
        tracking_id: str,
        event_id: str,
        payload: dict[str, Any],
        headers: dict[str, str],
    ) -> ProcessingOutcome:
        order = await self.order_store.find_by_tracking_id(tracking_id)
        if order is None:
            logger.warning(
                "%s webhook for unknown tracking id %s",
                adapter.code,
                tracking_id,
            )
            return await self._finish(
                adapter.code,
                WebhookStatus.ORDER_NOT_FOUND,
                payload,
                headers,
                tracking_id=tracking_id,
                message="Order not found for this tracking id",
            )

        owner = _order_provider(order)
        if owner != adapter.code:
            logger.warning(
                "%s webhook for tracking id %s shipped with %s",
                adapter.code,
                tracking_id,
                owner,
            )
            return await self._finish(
                adapter.code,
                WebhookStatus.ORDER_NOT_FOUND,
                payload,
                headers,
                tracking_id=tracking_id,
                message="Order not found for this tracking id",
            )

        order_id = str(order.id)
        if await self.order_store.has_comment(order_id, event_id):
            logger.info(
                "Duplicate %s webhook %s for order %s",
                adapter.code,
                event_id,
                order_id,
            )
            return await self._finish(
                adapter.code,
                WebhookStatus.DUPLICATE,
                payload,
                headers,
                tracking_id=tracking_id,
                order_id=order_id,
                message="Event already processed",
            )

        current = getattr(order, "status", None)
        new = event.canonical_status
        applied = None
        if is_forward_progress(current, new):
            order = await self.order_store.update(
                order_id, self._status_fields(event)
            )
            applied = new
            logger.info(
                "Order %s moved %s -> %s by %s webhook",
                order_id,
                current,
                new,
                adapter.code,
            )
        elif new is not CanonicalStatus.UNKNOWN and new != current:
            logger.warning(
                "Ignoring %s webhook moving order %s from %s back to %s",
                adapter.code,
                order_id,
                current,
                new,
            )

        await self.order_store.add_comment(
            order_id,
            self._comment_text(adapter, event),
            source=adapter.code,
            external_id=event_id,
            event_type=str(payload.get("event") or "status_update"),
        )
        if applied is not None:
            await self._notify(order, applied, event)

        return await self._finish(
            adapter.code,
            WebhookStatus.PROCESSED,
            payload,
            headers,
            tracking_id=tracking_id,
            order_id=order_id,
            applied_status=applied,
            message="Status updated" if applied else "Comment recorded",
        )

    @staticmethod
    def _status_fields(event: NormalizedEvent) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "status": str(event.canonical_status),
            "logistics_status": event.raw_status or str(event.canonical_status),
        }
        if event.location:
            fields["last_known_location"] = event.location
        if event.canonical_status is CanonicalStatus.DELIVERED:
            fields["delivered_at"] = datetime.now(tz=UTC)
        return fields

    @staticmethod
    def _comment_text(adapter: ProviderAdapter, event: NormalizedEvent) -> str:
        text = f"[{adapter.name}] {event.raw_status or 'Update'}"
        if event.remarks:
            text += f" - {event.remarks}"
        if event.location:
            text += f" ({event.location})"
        return text

    async def _notify(
        self, order: Any, status: CanonicalStatus, event: NormalizedEvent
    ) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(order, str(status), event)
        except Exception:
            logger.warning(
                "Notifier failed for order %s",
                getattr(order, "id", None),
                exc_info=True,
            )

    async def _finish(
        self,
        provider: str,
        status: WebhookStatus,
        payload: dict[str, Any],
        headers: dict[str, str],
        *,
        tracking_id: str | None = None,
        order_id: str | None = None,
        applied_status: CanonicalStatus | None = None,
        error: str | None = None,
        message: str = "",
    ) -> ProcessingOutcome:
        if self.log_store is not None:
            entry = WebhookLogEntry(
                provider=provider,
                status=status,
                tracking_id=tracking_id,
                order_id=order_id,
                error=error,
                headers=headers,
                payload=payload,
                created_at=datetime.now(tz=UTC),
            )
            try:
                await self.log_store.append(entry)
            except Exception:
                logger.warning(
                    "Could not write webhook audit entry for %s",
                    provider,
                    exc_info=True,
                )
        return ProcessingOutcome(
            provider=provider,
            status=status,
            order_id=order_id,
            tracking_id=tracking_id,
            applied_status=applied_status,
            message=message,
        )
