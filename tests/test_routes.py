"""HTTP route tests."""

from __future__ import annotations

import json

import pytest
from conftest import make_order
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fastapi_logistics.exceptions import ProviderRejected
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.router import create_logistics_router


@pytest.fixture()
def client(config, order_store, registry, webhook_log, notifier):
    app = FastAPI()
    app.include_router(
        create_logistics_router(
            config=config,
            order_store=order_store,
            registry=registry,
            webhook_log_store=webhook_log,
            notifier=notifier,
        )
    )
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def test_health_lists_providers(client) -> None:
    resp = client.get("/logistics/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert {"ncm", "gaaubesi", "dummy"} <= set(body["providers"])


class TestSync:
    def test_sync_with_branch_pickup(self, client, order_store) -> None:
        resp = client.post("/orders/O1/sync", json={"delivery_type": "D2B"})

        assert resp.status_code == 200
        assert resp.json() == {
            "order_id": "O1",
            "provider": "ncm",
            "tracking_id": "NCM555",
            "waybill": "NCM555",
            "delivery_type": "D2B",
            "message": "Order created successfully",
        }
        assert order_store.orders["O1"].is_logistics_synced

    def test_sync_without_body(self, client) -> None:
        resp = client.post("/orders/O1/sync")
        assert resp.status_code == 200
        assert resp.json()["delivery_type"] == "D2D"

    def test_second_sync_conflicts(self, client, courier_state) -> None:
        client.post("/orders/O1/sync")
        resp = client.post("/orders/O1/sync")

        assert resp.status_code == 409
        assert resp.json()["code"] == "already_synced"
        assert resp.json()["external_order_id"] == "NCM555"
        assert len(courier_state.pushes) == 1

    def test_unknown_order(self, client) -> None:
        resp = client.post("/orders/missing/sync")
        assert resp.status_code == 404
        assert resp.json()["code"] == "order_not_found"

    def test_not_ready(self, client, order_store) -> None:
        order_store.add(make_order("O2", fulfillment_type="inside_valley"))
        resp = client.post("/orders/O2/sync")
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_fulfillment_type"

    def test_courier_rejection(self, client, courier_state) -> None:
        courier_state.error = ProviderRejected(
            "NCM Rejected: Phone Number: Invalid Phone Number",
            provider="ncm",
        )
        resp = client.post("/orders/O1/sync")
        assert resp.status_code == 422
        assert resp.json()["detail"] == (
            "NCM Rejected: Phone Number: Invalid Phone Number"
        )

    def test_bulk(self, client, order_store) -> None:
        order_store.add(make_order("O2", customer_phone=None))
        order_store.add(make_order("O3"))

        resp = client.post(
            "/orders/sync/bulk", json={"order_ids": ["O1", "O2", "O3"]}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert [s["order_id"] for s in body["succeeded"]] == ["O1", "O3"]
        assert body["failed"][0]["order_id"] == "O2"
        assert body["failed"][0]["code"] == "missing_customer_phone"

    def test_bulk_requires_ids(self, client) -> None:
        resp = client.post("/orders/sync/bulk", json={"order_ids": []})
        assert resp.status_code == 422

    def test_sync_status(self, client) -> None:
        before = client.get("/orders/O1/sync-status").json()
        client.post("/orders/O1/sync")
        after = client.get("/orders/O1/sync-status").json()

        assert before["is_synced"] is False
        assert after["is_synced"] is True
        assert after["external_order_id"] == "NCM555"
        assert after["status"] == "handover_to_courier"

    def test_tracking(self, client) -> None:
        client.post("/orders/O1/sync")
        resp = client.get("/orders/O1/tracking")
        assert resp.status_code == 200
        assert resp.json()["status"] == "in_transit"

    def test_tracking_before_sync(self, client) -> None:
        resp = client.get("/orders/O1/tracking")
        assert resp.status_code == 400
        assert resp.json()["code"] == "not_synced"


class TestWebhooks:
    def _sync(self, client) -> None:
        assert client.post("/orders/O1/sync").status_code == 200

    def test_status_update(self, client, order_store, webhook_log) -> None:
        self._sync(client)

        resp = client.post(
            "/webhooks/ncm",
            headers={"X-Webhook-Secret": "ncm-secret"},
            json={"tracking_id": "NCM555", "status": "Delivered"},
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "processed"
        assert resp.json()["applied"] == "delivered"
        assert order_store.orders["O1"].status == "delivered"
        assert webhook_log.entries[0].headers["x-webhook-secret"] == "***"

    def test_replay_is_acknowledged(self, client, order_store) -> None:
        self._sync(client)
        payload = {
            "tracking_id": "NCM555",
            "status": "Delivered",
            "event_id": "e1",
        }
        headers = {"X-Webhook-Secret": "ncm-secret"}

        client.post("/webhooks/ncm", headers=headers, json=payload)
        resp = client.post("/webhooks/ncm", headers=headers, json=payload)

        assert resp.status_code == 200
        assert resp.json()["status"] == "duplicate"
        assert len(order_store.comments) == 1

    def test_bad_signature_is_401(self, client, webhook_log) -> None:
        resp = client.post(
            "/webhooks/ncm",
            headers={"X-Webhook-Secret": "guess"},
            json={"tracking_id": "NCM555", "status": "Delivered"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "webhook_unauthorized"
        assert webhook_log.statuses == ["unauthorized"]

    def test_unknown_provider_is_200(self, client) -> None:
        resp = client.post("/webhooks/pathao", json={"tracking_id": "X"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "provider_unknown"

    def test_signature_in_body(self, client) -> None:
        resp = client.post(
            "/webhooks/dummy",
            json={"signature": "dummy-secret", "tracking_id": "DMYNONE"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "order_not_found"

    def test_bearer_signature(self, client) -> None:
        resp = client.post(
            "/webhooks/dummy",
            headers={"Authorization": "Bearer dummy-secret"},
            json={"tracking_id": "DMYNONE"},
        )
        assert resp.json()["status"] == "order_not_found"

    def test_non_json_body(self, client) -> None:
        resp = client.post(
            "/webhooks/dummy",
            headers={"X-Signature": "dummy-secret"},
            content=b"not json",
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "ignored"


class TestNcmWebhookRoute:
    """Route-level checks against the real NCM adapter."""

    @pytest.fixture()
    def ncm_client(self, config, order_store, webhook_log):
        from fastapi_logistics.registry import build_registry

        order_store.add(
            make_order(
                "O9",
                is_logistics_synced=True,
                external_order_id="4321",
                logistics_provider="ncm",
                status="in_transit",
            )
        )
        app = FastAPI()
        app.include_router(
            create_logistics_router(
                config=config,
                order_store=order_store,
                registry=build_registry(config, order_store=order_store),
                webhook_log_store=webhook_log,
            )
        )
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client

    def test_hmac_signature_over_raw_body(
        self, ncm_client, order_store
    ) -> None:
        body = json.dumps({"order_id": 4321, "status": "Out for Delivery"})
        signature = ProviderAdapter.hmac_sha256(
            "ncm-secret", body.encode()
        )

        resp = ncm_client.post(
            "/webhooks/ncm",
            headers={
                "X-Signature": signature,
                "Content-Type": "application/json",
            },
            content=body,
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "processed"
        assert order_store.orders["O9"].status == "out_for_delivery"

    def test_test_ping_needs_no_signature(
        self, ncm_client, webhook_log
    ) -> None:
        resp = ncm_client.post("/webhooks/ncm", json={"test": True})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ignored"
        assert webhook_log.statuses == ["ignored"]
