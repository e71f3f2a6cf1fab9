"""Collaborator protocols consumed by the logistics layer."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from fastapi_logistics.types import ProviderConfig, WebhookLogEntry


@runtime_checkable
class OrderStore(Protocol):
    """Authoritative order record store.

    ``update`` applies a partial field update and returns the row as it
    reads after the write, so callers can verify it took effect.
    ``find_by_tracking_id`` receives an already sanitized id.
    """

    async def get(self, order_id: str) -> Any | None: ...

    async def update(self, order_id: str, fields: dict[str, Any]) -> Any: ...

    async def find_by_tracking_id(self, tracking_id: str) -> Any | None: ...

    async def has_comment(self, order_id: str, external_id: str) -> bool: ...

    async def add_comment(
        self,
        order_id: str,
        text: str,
        *,
        source: str,
        external_id: str | None = None,
        event_type: str | None = None,
    ) -> None: ...


@runtime_checkable
class ProviderConfigSource(Protocol):
    """Where provider credentials and branch codes come from."""

    async def fetch(self, code: str) -> ProviderConfig | None: ...


@runtime_checkable
class WebhookLogStore(Protocol):
    """Append-only sink for webhook audit entries."""

    async def append(self, entry: WebhookLogEntry) -> None: ...


@runtime_checkable
class Notifier(Protocol):
    """Fire-and-forget notification hook for status transitions."""

    async def notify(
        self, order: Any, status: str, event: Any
    ) -> None: ...
