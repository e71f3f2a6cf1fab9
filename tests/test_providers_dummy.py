"""Dummy courier simulator tests."""

from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import make_order

from fastapi_logistics.exceptions import InvalidCustomerPhone, ProviderRejected
from fastapi_logistics.providers.dummy import (
    DEFAULT_WEBHOOK_SECRET,
    DummyAdapter,
    advance_shipment,
)
from fastapi_logistics.types import (
    CanonicalStatus,
    DeliveryType,
    ProviderConfig,
)


async def test_push_books_a_shipment() -> None:
    adapter = DummyAdapter()

    result = await adapter.push_order(make_order(), DeliveryType.D2B)

    assert result.tracking_id.startswith("DMY")
    assert len(result.tracking_id) == 13
    assert result.waybill == f"AWB{result.tracking_id}"
    assert result.raw_response["cod_charge"] == 1200
    assert result.raw_response["delivery_type"] == "D2B"


async def test_push_validates_customer() -> None:
    with pytest.raises(InvalidCustomerPhone):
        await DummyAdapter().push_order(
            make_order(customer_phone=""), DeliveryType.D2D
        )


async def test_status_follows_the_progression() -> None:
    adapter = DummyAdapter()
    booked = await adapter.push_order(make_order(), DeliveryType.D2D)

    first = await adapter.pull_status(booked.tracking_id)
    advance_shipment(booked.tracking_id)
    second = await adapter.pull_status(booked.tracking_id)

    assert first.canonical_status is CanonicalStatus.HANDOVER_TO_COURIER
    assert second.canonical_status is CanonicalStatus.IN_TRANSIT


async def test_progression_stops_at_delivered() -> None:
    adapter = DummyAdapter()
    booked = await adapter.push_order(make_order(), DeliveryType.D2D)
    for _ in range(10):
        advance_shipment(booked.tracking_id)
    status = await adapter.pull_status(booked.tracking_id)
    assert status.canonical_status is CanonicalStatus.DELIVERED


async def test_unknown_shipment_is_rejected() -> None:
    with pytest.raises(ProviderRejected, match="DMYNOPE not found"):
        await DummyAdapter().pull_status("DMYNOPE")


async def test_cancel() -> None:
    adapter = DummyAdapter()
    booked = await adapter.push_order(make_order(), DeliveryType.D2D)

    result = await adapter.cancel_shipment(booked.tracking_id, "Duplicate")
    status = await adapter.pull_status(booked.tracking_id)

    assert result.success
    assert status.canonical_status is CanonicalStatus.CANCELLED


async def test_delivered_cannot_be_cancelled() -> None:
    adapter = DummyAdapter()
    booked = await adapter.push_order(make_order(), DeliveryType.D2D)
    for _ in range(4):
        advance_shipment(booked.tracking_id)

    result = await adapter.cancel_shipment(booked.tracking_id)

    assert not result.success


async def test_pickup_rates_and_comments() -> None:
    adapter = DummyAdapter(ProviderConfig(options={"rate": 200}))
    booked = await adapter.push_order(make_order(), DeliveryType.D2D)

    pickup = await adapter.request_pickup({"preferred_date": "2026-02-01"})
    rates = await adapter.get_shipping_rates({})
    await adapter.post_comment(booked.tracking_id, " Fragile ")
    comments = await adapter.get_comments(booked.tracking_id)

    assert pickup.data["scheduled_time"] == "2026-02-01"
    assert pickup.data["pickup_id"].startswith("PKP")
    assert rates.data["d2d_price"] == Decimal(200)
    assert rates.data["d2b_price"] == Decimal(150)
    assert [c["comments"] for c in comments.data["comments"]] == ["Fragile"]


def test_signature() -> None:
    configured = DummyAdapter(ProviderConfig(webhook_secret="s3cret"))
    default = DummyAdapter()

    assert configured.verify_webhook_signature("s3cret", {})
    assert not configured.verify_webhook_signature("test_mode", {})
    assert not configured.verify_webhook_signature(DEFAULT_WEBHOOK_SECRET, {})
    assert not default.verify_webhook_signature(DEFAULT_WEBHOOK_SECRET, {})
    assert not default.verify_webhook_signature("test_mode", {})
    assert not default.verify_webhook_signature(None, {})


def test_built_in_secrets_need_test_mode() -> None:
    testing = DummyAdapter(ProviderConfig(options={"test_mode": True}))
    configured = DummyAdapter(
        ProviderConfig(webhook_secret="s3cret", options={"test_mode": True})
    )

    assert testing.verify_webhook_signature(DEFAULT_WEBHOOK_SECRET, {})
    assert testing.verify_webhook_signature("test_mode", {})
    assert configured.verify_webhook_signature("test_mode", {})
    assert not configured.verify_webhook_signature(DEFAULT_WEBHOOK_SECRET, {})
    assert not testing.verify_webhook_signature("guess", {})


def test_normalize_defaults() -> None:
    event = DummyAdapter().normalize_webhook_data(
        {"trackingId": "DMY1", "status": "OFD"}
    )
    assert event.tracking_id == "DMY1"
    assert event.canonical_status is CanonicalStatus.OUT_FOR_DELIVERY
    assert event.remarks == "No remarks"
    assert event.location == "Unknown"
