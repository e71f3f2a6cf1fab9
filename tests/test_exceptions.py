"""Exception handler tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fastapi_logistics.exceptions import (
    AlreadySynced,
    InvalidCustomerPhone,
    LogisticsError,
    NotSynced,
    OrderNotFound,
    PersistenceVerificationFailed,
    ProviderRejected,
    ProviderUnavailable,
    UnknownProvider,
    ValidationError,
    WebhookUnauthorized,
    register_exception_handlers,
)


def _client_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


def test_order_not_found_has_order_id() -> None:
    exc = OrderNotFound("O-42")
    assert exc.order_id == "O-42"
    assert "O-42" in str(exc)


def test_validation_subclasses_keep_their_code() -> None:
    exc = InvalidCustomerPhone("bad phone")
    assert isinstance(exc, ValidationError)
    assert exc.code == "invalid_customer_phone"
    assert exc.status_code == 400


def test_error_without_message_uses_class_name() -> None:
    assert str(WebhookUnauthorized()) == "WebhookUnauthorized"


@pytest.mark.parametrize(
    ("exc", "status", "code"),
    [
        (NotSynced("not synced"), 400, "not_synced"),
        (UnknownProvider("pathao"), 400, "unknown_provider"),
        (OrderNotFound("O1"), 404, "order_not_found"),
        (WebhookUnauthorized("nope"), 401, "webhook_unauthorized"),
        (LogisticsError("generic"), 400, "logistics_error"),
    ],
)
def test_status_and_code(exc, status, code) -> None:
    resp = _client_raising(exc).get("/boom")
    assert resp.status_code == status
    assert resp.json() == {"detail": str(exc), "code": code}


def test_already_synced_returns_409_with_tracking_id() -> None:
    resp = _client_raising(AlreadySynced("O1", "NCM555")).get("/boom")
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "already_synced"
    assert body["external_order_id"] == "NCM555"


def test_provider_rejected_returns_422() -> None:
    exc = ProviderRejected(
        "NCM Rejected: Phone Number: Invalid Phone Number", provider="ncm"
    )
    resp = _client_raising(exc).get("/boom")
    assert resp.status_code == 422
    assert resp.json() == {
        "detail": "NCM Rejected: Phone Number: Invalid Phone Number",
        "code": "provider_rejected",
        "provider": "ncm",
    }


def test_provider_unavailable_returns_502() -> None:
    exc = ProviderUnavailable("timeout", provider="gaaubesi", http_status=503)
    resp = _client_raising(exc).get("/boom")
    assert resp.status_code == 502
    assert resp.json()["provider"] == "gaaubesi"


def test_persistence_failure_returns_500() -> None:
    resp = _client_raising(
        PersistenceVerificationFailed("O1", "NCM555")
    ).get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "persistence_verification_failed"
    assert body["external_order_id"] == "NCM555"
