"""Pushing orders to couriers and reconciling the result locally."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from fastapi_logistics.config import LogisticsConfig
from fastapi_logistics.delivery import resolve_delivery_type
from fastapi_logistics.exceptions import (
    AlreadySynced,
    InvalidFulfillmentType,
    InvalidOrderId,
    LogisticsError,
    MissingCourierPartner,
    MissingCustomerAddress,
    MissingCustomerName,
    MissingCustomerPhone,
    NotSynced,
    OrderNotFound,
    PersistenceVerificationFailed,
    ProviderRejected,
    ProviderUnavailable,
    UnknownProvider,
    ValidationError,
)
from fastapi_logistics.locks import KeyedLock
from fastapi_logistics.protocols import OrderStore
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.registry import AdapterRegistry, resolve_provider_code
from fastapi_logistics.types import (
    BulkFailure,
    BulkOutcome,
    CanonicalStatus,
    ProviderStatus,
    StatusSnapshot,
    SyncOutcome,
    SyncResult,
)

logger = logging.getLogger(__name__)

PERSIST_ATTEMPTS = 2


def _is_blank(value: Any) -> bool:
    return not str(value or "").strip()


def _jsonable_response(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    return {"data": raw}


class SyncOrchestrator:
    """Facade the application uses to put orders on a courier's books.

    A successful sync writes the courier's identifiers back to the order
    and verifies the write by reading the order again. Every failure
    after the order has been read leaves a trace in the order's
    ``logistics_response`` before the error propagates.
    """

    def __init__(
        self,
        order_store: OrderStore,
        registry: AdapterRegistry,
        config: LogisticsConfig | None = None,
    ) -> None:
        self.order_store = order_store
        self.registry = registry
        self.config = config or LogisticsConfig()
        self._order_id_re = re.compile(self.config.order_id_pattern)
        self._locks = KeyedLock()
        self._sleep = asyncio.sleep

    def _validate_order_id(self, order_id: Any) -> str:
        clean = str(order_id or "").strip()
        if not self._order_id_re.fullmatch(clean):
            raise InvalidOrderId(f"Invalid order id: {order_id!r}")
        return clean

    async def _fetch(self, order_id: str) -> Any:
        order = await self.order_store.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _check_ready(self, order: Any) -> None:
        order_id = str(order.id)
        external_id = getattr(order, "external_order_id", None)
        if getattr(order, "is_logistics_synced", False) and external_id:
            raise AlreadySynced(order_id, external_id)

        fulfillment = str(getattr(order, "fulfillment_type", "") or "")
        expected = self.config.external_fulfillment_type
        if fulfillment.strip().lower() != expected.lower():
            raise InvalidFulfillmentType(
                f"Order {order_id} is not marked for {expected} fulfillment "
                f"(got {fulfillment or 'none'!r})"
            )
        if _is_blank(getattr(order, "courier_partner", None)):
            raise MissingCourierPartner(
                f"Order {order_id} has no courier partner assigned"
            )
        if _is_blank(getattr(order, "customer_name", None)):
            raise MissingCustomerName(f"Order {order_id} has no customer name")
        if _is_blank(getattr(order, "customer_phone", None)):
            raise MissingCustomerPhone(
                f"Order {order_id} has no customer phone"
            )
        if _is_blank(getattr(order, "shipping_address", None)):
            raise MissingCustomerAddress(
                f"Order {order_id} has no shipping address"
            )

    async def _adapter_for(self, partner: str | None) -> ProviderAdapter:
        code = resolve_provider_code(partner)
        if code is None:
            raise UnknownProvider(partner or "")
        return await self.registry.get(code)

    async def sync_order(
        self,
        order_id: str,
        delivery_type: str | None = None,
    ) -> SyncOutcome:
        """Push one order to its courier.

        Raises the specific :class:`LogisticsError` subclass describing
        why the order could not be synced.
        """
        order_id = self._validate_order_id(order_id)
        async with self._locks.hold(order_id):
            order = await self._fetch(order_id)
            try:
                self._check_ready(order)
            except ValidationError as exc:
                logger.info("Order %s not ready for sync: %s", order_id, exc)
                raise
            except AlreadySynced as exc:
                logger.info(
                    "Order %s already synced as %s",
                    order_id,
                    exc.external_order_id,
                )
                raise

            try:
                adapter = await self._adapter_for(order.courier_partner)
                resolved = resolve_delivery_type(
                    getattr(order, "delivery_type", None), delivery_type
                )
                logger.info(
                    "Syncing order %s to %s as %s",
                    order_id,
                    adapter.code,
                    resolved,
                )
                result = await adapter.push_order(order, resolved)
                await self._persist(order_id, adapter, result)
            except Exception as exc:
                self._log_failure(order_id, exc)
                await self._record_sync_failure(order_id, exc)
                raise

        logger.info(
            "Order %s synced to %s with tracking id %s",
            order_id,
            result.provider,
            result.tracking_id,
        )
        return SyncOutcome(
            order_id=order_id,
            provider=result.provider,
            tracking_id=result.tracking_id,
            waybill=result.waybill,
            delivery_type=result.delivery_type,
            message=result.message,
        )

    def _log_failure(self, order_id: str, exc: Exception) -> None:
        if isinstance(
            exc,
            (ProviderRejected, ProviderUnavailable, PersistenceVerificationFailed),
        ):
            logger.error("Sync of order %s failed: %s", order_id, exc)
        elif isinstance(exc, LogisticsError):
            logger.warning("Sync of order %s refused: %s", order_id, exc)
        else:
            logger.exception("Unexpected error syncing order %s", order_id)

    async def _persist(
        self,
        order_id: str,
        adapter: ProviderAdapter,
        result: SyncResult,
    ) -> Any:
        """Write the sync state and confirm it by reading the order back.

        A write that raises or reads back without the new flags counts
        as a failed attempt. One retry is made before giving up.
        """
        now = datetime.now(tz=UTC)
        fields = {
            "is_logistics_synced": True,
            "external_order_id": result.tracking_id,
            "waybill": result.waybill,
            "logistics_provider": adapter.code,
            "logistics_status": adapter.initial_status_label,
            "delivery_type": str(result.delivery_type),
            "status": str(CanonicalStatus.HANDOVER_TO_COURIER),
            "logistics_synced_at": now,
            "handover_at": now,
            "logistics_response": _jsonable_response(result.raw_response),
        }
        last_error: Exception | None = None
        for attempt in range(1, PERSIST_ATTEMPTS + 1):
            try:
                await self.order_store.update(order_id, fields)
                persisted = await self.order_store.get(order_id)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Writing sync state for order %s failed (attempt %d): %s",
                    order_id,
                    attempt,
                    exc,
                )
                continue
            if self._is_persisted(persisted, result):
                return persisted
            logger.warning(
                "Sync state for order %s did not persist (attempt %d)",
                order_id,
                attempt,
            )
        raise PersistenceVerificationFailed(
            order_id, result.tracking_id
        ) from last_error

    @staticmethod
    def _is_persisted(order: Any, result: SyncResult) -> bool:
        if order is None:
            return False
        return bool(getattr(order, "is_logistics_synced", False)) and (
            getattr(order, "external_order_id", None) == result.tracking_id
        )

    async def _record_sync_failure(
        self, order_id: str, exc: Exception
    ) -> None:
        """Store the error on the order. Never raises."""
        record = {
            "success": False,
            "error": str(exc),
            "code": getattr(exc, "code", type(exc).__name__),
            "timestamp": datetime.now(tz=UTC).isoformat(),
        }
        try:
            await self.order_store.update(
                order_id, {"logistics_response": record}
            )
        except Exception:
            logger.warning(
                "Could not record sync failure for order %s",
                order_id,
                exc_info=True,
            )

    async def sync_orders_bulk(
        self,
        order_ids: Iterable[str],
        delivery_type: str | None = None,
    ) -> BulkOutcome:
        """Sync orders one after another.

        A failing order is reported in ``failed`` and the batch goes on.
        Successful pushes are spaced by ``bulk_delay_seconds``.
        """
        ids = list(order_ids)
        outcome = BulkOutcome()
        for index, order_id in enumerate(ids):
            try:
                synced = await self.sync_order(order_id, delivery_type)
            except LogisticsError as exc:
                outcome.failed.append(
                    BulkFailure(
                        order_id=str(order_id), error=str(exc), code=exc.code
                    )
                )
                continue
            except Exception as exc:
                logger.exception("Bulk sync of order %s crashed", order_id)
                outcome.failed.append(
                    BulkFailure(
                        order_id=str(order_id),
                        error=str(exc),
                        code="unexpected_error",
                    )
                )
                continue
            outcome.succeeded.append(synced)
            if index < len(ids) - 1 and self.config.bulk_delay_seconds > 0:
                await self._sleep(self.config.bulk_delay_seconds)

        logger.info(
            "Bulk sync finished: %d succeeded, %d failed",
            len(outcome.succeeded),
            len(outcome.failed),
        )
        return outcome

    async def get_sync_status(self, order_id: str) -> StatusSnapshot:
        order_id = self._validate_order_id(order_id)
        order = await self._fetch(order_id)
        return StatusSnapshot(
            order_id=order_id,
            is_synced=bool(
                getattr(order, "is_logistics_synced", False)
                and getattr(order, "external_order_id", None)
            ),
            external_order_id=getattr(order, "external_order_id", None),
            waybill=getattr(order, "waybill", None),
            provider=getattr(order, "logistics_provider", None),
            logistics_status=getattr(order, "logistics_status", None),
            status=getattr(order, "status", None),
            delivery_type=getattr(order, "delivery_type", None),
            synced_at=getattr(order, "logistics_synced_at", None),
            last_response=getattr(order, "logistics_response", None),
        )

    async def get_tracking_info(self, order_id: str) -> ProviderStatus:
        """Poll the courier for an already synced order."""
        order_id = self._validate_order_id(order_id)
        order = await self._fetch(order_id)
        external_id = getattr(order, "external_order_id", None)
        if not (getattr(order, "is_logistics_synced", False) and external_id):
            raise NotSynced(f"Order {order_id} has not been synced to a courier")

        code = getattr(order, "logistics_provider", None)
        if code:
            adapter = await self.registry.get(code)
        else:
            adapter = await self._adapter_for(order.courier_partner)
        return await adapter.pull_status(external_id)
