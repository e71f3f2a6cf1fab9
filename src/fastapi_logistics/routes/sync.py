"""Order sync endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fastapi_logistics.dependencies import get_orchestrator, get_registry
from fastapi_logistics.orchestrator import SyncOrchestrator
from fastapi_logistics.registry import AdapterRegistry
from fastapi_logistics.schemas import (
    BulkSyncRequest,
    BulkSyncResponse,
    SyncOutcomeResponse,
    SyncRequest,
    SyncStatusResponse,
    TrackingResponse,
)

router = APIRouter()


@router.get("/logistics/health")
async def logistics_health(
    registry: AdapterRegistry = Depends(get_registry),
) -> dict[str, object]:
    """Healthcheck listing the registered provider codes."""
    return {"status": "ok", "providers": registry.codes()}


@router.post("/orders/sync/bulk", response_model=BulkSyncResponse)
async def sync_orders_bulk(
    body: BulkSyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> BulkSyncResponse:
    """Sync several orders; failures are reported per order."""
    outcome = await orchestrator.sync_orders_bulk(
        body.order_ids, body.delivery_type
    )
    return BulkSyncResponse.from_outcome(outcome)


@router.post("/orders/{order_id}/sync", response_model=SyncOutcomeResponse)
async def sync_order(
    order_id: str,
    body: SyncRequest | None = None,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncOutcomeResponse:
    """Push one order to its assigned courier."""
    delivery_type = body.delivery_type if body is not None else None
    outcome = await orchestrator.sync_order(order_id, delivery_type)
    return SyncOutcomeResponse.from_outcome(outcome)


@router.get(
    "/orders/{order_id}/sync-status", response_model=SyncStatusResponse
)
async def sync_status(
    order_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncStatusResponse:
    """Return the locally stored sync state."""
    snapshot = await orchestrator.get_sync_status(order_id)
    return SyncStatusResponse.from_snapshot(snapshot)


@router.get("/orders/{order_id}/tracking", response_model=TrackingResponse)
async def tracking(
    order_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> TrackingResponse:
    """Poll the courier for the live shipment status."""
    status = await orchestrator.get_tracking_info(order_id)
    return TrackingResponse.from_status(status)
