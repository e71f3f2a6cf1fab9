"""Courier sync and webhook intake for FastAPI order backends."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "AdapterRegistry",
    "LogisticsConfig",
    "LogisticsError",
    "OrderStore",
    "SyncOrchestrator",
    "WebhookIntake",
    "__version__",
    "create_logistics_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from fastapi_logistics.config import LogisticsConfig
    from fastapi_logistics.exceptions import (
        LogisticsError,
        register_exception_handlers,
    )
    from fastapi_logistics.orchestrator import SyncOrchestrator
    from fastapi_logistics.protocols import OrderStore
    from fastapi_logistics.registry import AdapterRegistry
    from fastapi_logistics.router import create_logistics_router
    from fastapi_logistics.webhooks import WebhookIntake


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "LogisticsConfig":
        from fastapi_logistics.config import LogisticsConfig

        return LogisticsConfig
    if name == "create_logistics_router":
        from fastapi_logistics.router import create_logistics_router

        return create_logistics_router
    if name == "AdapterRegistry":
        from fastapi_logistics.registry import AdapterRegistry

        return AdapterRegistry
    if name == "SyncOrchestrator":
        from fastapi_logistics.orchestrator import SyncOrchestrator

        return SyncOrchestrator
    if name == "WebhookIntake":
        from fastapi_logistics.webhooks import WebhookIntake

        return WebhookIntake
    if name in ("LogisticsError", "register_exception_handlers"):
        from fastapi_logistics import exceptions

        return getattr(exceptions, name)
    if name == "OrderStore":
        from fastapi_logistics import protocols

        return getattr(protocols, name)
    raise AttributeError(
        f"module 'fastapi_logistics' has no attribute {name!r}"
    )
