"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from fastapi_logistics.config import LogisticsConfig
from fastapi_logistics.orchestrator import SyncOrchestrator
from fastapi_logistics.registry import AdapterRegistry
from fastapi_logistics.webhooks import WebhookIntake


def get_config(request: Request) -> LogisticsConfig:
    """Read config from FastAPI app state."""
    return request.app.state.logistics_config


def get_registry(request: Request) -> AdapterRegistry:
    """Read adapter registry from FastAPI app state."""
    return request.app.state.logistics_registry


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Read the sync orchestrator from FastAPI app state."""
    return request.app.state.logistics_orchestrator


def get_webhook_intake(request: Request) -> WebhookIntake:
    """Read the webhook intake from FastAPI app state."""
    return request.app.state.logistics_webhook_intake
