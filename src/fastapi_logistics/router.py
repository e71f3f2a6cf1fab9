"""Router factory for fastapi-logistics-sync."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from fastapi_logistics.config import LogisticsConfig
from fastapi_logistics.exceptions import register_exception_handlers
from fastapi_logistics.orchestrator import SyncOrchestrator
from fastapi_logistics.protocols import (
    Notifier,
    OrderStore,
    ProviderConfigSource,
    WebhookLogStore,
)
from fastapi_logistics.registry import AdapterRegistry, SettingsConfigSource
from fastapi_logistics.routes.sync import router as sync_router
from fastapi_logistics.routes.webhooks import router as webhooks_router
from fastapi_logistics.webhooks import WebhookIntake


def create_logistics_router(
    *,
    config: LogisticsConfig,
    order_store: OrderStore,
    registry: AdapterRegistry | None = None,
    config_source: ProviderConfigSource | None = None,
    webhook_log_store: WebhookLogStore | None = None,
    notifier: Notifier | None = None,
) -> APIRouter:
    """Create a configured API router.

    Without an explicit ``registry`` one is built from ``config_source``,
    falling back to the provider settings in ``config``.
    """
    actual_registry = registry or AdapterRegistry(
        config_source or SettingsConfigSource(config),
        order_store=order_store,
        request_timeout=config.request_timeout_seconds,
    )
    orchestrator = SyncOrchestrator(order_store, actual_registry, config)
    intake = WebhookIntake(
        order_store,
        actual_registry,
        log_store=webhook_log_store,
        notifier=notifier,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.logistics_config = config
        app.state.logistics_order_store = order_store
        app.state.logistics_registry = actual_registry
        app.state.logistics_orchestrator = orchestrator
        app.state.logistics_webhook_intake = intake
        register_exception_handlers(app)
        actual_registry.discover()
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(sync_router)
    router.include_router(webhooks_router)
    return router
