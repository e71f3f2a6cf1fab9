"""Pydantic request and response models for the logistics routes."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from fastapi_logistics.types import (
    BulkOutcome,
    ProcessingOutcome,
    ProviderStatus,
    StatusSnapshot,
    SyncOutcome,
)


class SyncRequest(BaseModel):
    """Optional body for a single-order sync."""

    delivery_type: str | None = None


class BulkSyncRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    delivery_type: str | None = None


class SyncOutcomeResponse(BaseModel):
    order_id: str
    provider: str
    tracking_id: str
    waybill: str
    delivery_type: str
    message: str

    @classmethod
    def from_outcome(cls, outcome: SyncOutcome) -> SyncOutcomeResponse:
        return cls(
            order_id=outcome.order_id,
            provider=outcome.provider,
            tracking_id=outcome.tracking_id,
            waybill=outcome.waybill,
            delivery_type=str(outcome.delivery_type),
            message=outcome.message,
        )


class BulkFailureResponse(BaseModel):
    order_id: str
    error: str
    code: str


class BulkSyncResponse(BaseModel):
    succeeded: list[SyncOutcomeResponse]
    failed: list[BulkFailureResponse]

    @classmethod
    def from_outcome(cls, outcome: BulkOutcome) -> BulkSyncResponse:
        return cls(
            succeeded=[
                SyncOutcomeResponse.from_outcome(item)
                for item in outcome.succeeded
            ],
            failed=[
                BulkFailureResponse(
                    order_id=item.order_id, error=item.error, code=item.code
                )
                for item in outcome.failed
            ],
        )


class SyncStatusResponse(BaseModel):
    order_id: str
    is_synced: bool
    external_order_id: str | None = None
    waybill: str | None = None
    provider: str | None = None
    logistics_status: str | None = None
    status: str | None = None
    delivery_type: str | None = None
    synced_at: datetime | None = None
    last_response: dict[str, Any] | None = None

    @classmethod
    def from_snapshot(cls, snapshot: StatusSnapshot) -> SyncStatusResponse:
        return cls(
            order_id=snapshot.order_id,
            is_synced=snapshot.is_synced,
            external_order_id=snapshot.external_order_id,
            waybill=snapshot.waybill,
            provider=snapshot.provider,
            logistics_status=snapshot.logistics_status,
            status=snapshot.status,
            delivery_type=snapshot.delivery_type,
            synced_at=snapshot.synced_at,
            last_response=snapshot.last_response,
        )


class TrackingResponse(BaseModel):
    tracking_id: str
    raw_status: str | None = None
    status: str
    location: str | None = None
    remarks: str | None = None
    timestamp: str | None = None

    @classmethod
    def from_status(cls, status: ProviderStatus) -> TrackingResponse:
        return cls(
            tracking_id=status.tracking_id,
            raw_status=status.raw_status,
            status=str(status.canonical_status),
            location=status.location,
            remarks=status.remarks,
            timestamp=status.timestamp,
        )


class WebhookResponse(BaseModel):
    provider: str
    status: str
    order_id: str | None = None
    applied: str | None = None
    message: str = ""

    @classmethod
    def from_outcome(cls, outcome: ProcessingOutcome) -> WebhookResponse:
        return cls(
            provider=outcome.provider,
            status=str(outcome.status),
            order_id=outcome.order_id,
            applied=(
                str(outcome.applied_status)
                if outcome.applied_status is not None
                else None
            ),
            message=outcome.message,
        )
