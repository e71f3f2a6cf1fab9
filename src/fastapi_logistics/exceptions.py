"""Logistics error taxonomy and the handlers mapping it to HTTP responses."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class LogisticsError(Exception):
    """Base class for every error raised by the logistics layer."""

    code = "logistics_error"
    status_code = 400

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message
        self.context = context


class ValidationError(LogisticsError):
    """An order field is missing or malformed. Never retried."""

    code = "validation_error"


class InvalidOrderId(ValidationError):
    code = "invalid_order_id"


class InvalidFulfillmentType(ValidationError):
    code = "invalid_fulfillment_type"


class MissingCourierPartner(ValidationError):
    code = "missing_courier_partner"


class MissingCustomerName(ValidationError):
    code = "missing_customer_name"


class MissingCustomerPhone(ValidationError):
    code = "missing_customer_phone"


class InvalidCustomerPhone(ValidationError):
    code = "invalid_customer_phone"


class MissingCustomerAddress(ValidationError):
    code = "missing_customer_address"


class MissingDestinationBranch(ValidationError):
    code = "missing_destination_branch"


class NotSynced(ValidationError):
    code = "not_synced"


class OrderNotFound(LogisticsError):
    code = "order_not_found"
    status_code = 404

    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class AlreadySynced(LogisticsError):
    """The order already has a shipment on a courier's books."""

    code = "already_synced"
    status_code = 409

    def __init__(self, order_id: str, external_order_id: str) -> None:
        super().__init__(
            f"Order {order_id} is already synced with tracking id "
            f"{external_order_id}"
        )
        self.order_id = order_id
        self.external_order_id = external_order_id


class UnknownProvider(LogisticsError):
    code = "unknown_provider"

    def __init__(self, provider: str) -> None:
        super().__init__(f"Unknown logistics provider: {provider!r}")
        self.provider = provider


class ProviderRejected(LogisticsError):
    """The courier refused the request, often inside an HTTP 200 body."""

    code = "provider_rejected"
    status_code = 422

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        field_errors: dict[str, str] | None = None,
        raw_response: Any = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.field_errors = field_errors or {}
        self.raw_response = raw_response


class ProviderUnavailable(LogisticsError):
    """Network failure, timeout or 5xx. Safe for the caller to retry."""

    code = "provider_unavailable"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.http_status = http_status


class PersistenceVerificationFailed(LogisticsError):
    """The courier accepted the order but the local write did not stick."""

    code = "persistence_verification_failed"
    status_code = 500

    def __init__(self, order_id: str, external_order_id: str) -> None:
        super().__init__(
            f"Order {order_id} was accepted by the courier as "
            f"{external_order_id} but the sync state could not be persisted"
        )
        self.order_id = order_id
        self.external_order_id = external_order_id


class WebhookUnauthorized(LogisticsError):
    code = "webhook_unauthorized"
    status_code = 401


def _error_response(exc: LogisticsError, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code, **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register logistics exception handlers on a FastAPI app.

    More specific handlers are registered first so FastAPI matches
    them before the generic LogisticsError handler. Subclasses of a
    handled class keep their own ``code`` in the response body.

    Handler order (most specific first):
    1. AlreadySynced → 409 (includes the existing external id)
    2. ProviderRejected → 422
    3. ProviderUnavailable → 502
    4. PersistenceVerificationFailed → 500
    5. OrderNotFound → 404
    6. WebhookUnauthorized → 401
    7. ValidationError → 400
    8. LogisticsError → status of the raised class (catch-all)
    """

    @app.exception_handler(AlreadySynced)
    async def _already_synced(
        request: Request,
        exc: AlreadySynced,
    ) -> JSONResponse:
        return _error_response(exc, external_order_id=exc.external_order_id)

    @app.exception_handler(ProviderRejected)
    async def _provider_rejected(
        request: Request,
        exc: ProviderRejected,
    ) -> JSONResponse:
        return _error_response(exc, provider=exc.provider)

    @app.exception_handler(ProviderUnavailable)
    async def _provider_unavailable(
        request: Request,
        exc: ProviderUnavailable,
    ) -> JSONResponse:
        return _error_response(exc, provider=exc.provider)

    @app.exception_handler(PersistenceVerificationFailed)
    async def _persistence_failed(
        request: Request,
        exc: PersistenceVerificationFailed,
    ) -> JSONResponse:
        return _error_response(exc, external_order_id=exc.external_order_id)

    @app.exception_handler(OrderNotFound)
    async def _not_found(
        request: Request,
        exc: OrderNotFound,
    ) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(WebhookUnauthorized)
    async def _unauthorized(
        request: Request,
        exc: WebhookUnauthorized,
    ) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(ValidationError)
    async def _validation_error(
        request: Request,
        exc: ValidationError,
    ) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(LogisticsError)
    async def _logistics_error(
        request: Request,
        exc: LogisticsError,
    ) -> JSONResponse:
        return _error_response(exc)
