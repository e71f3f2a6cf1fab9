"""Adapter registry with lazily fetched, cached provider configuration."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

from fastapi_logistics.config import LogisticsConfig
from fastapi_logistics.exceptions import UnknownProvider
from fastapi_logistics.protocols import OrderStore, ProviderConfigSource
from fastapi_logistics.providers.base import ProviderAdapter
from fastapi_logistics.sanitizers import sanitize_tracking_id
from fastapi_logistics.types import ProviderConfig

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., ProviderAdapter]

# Substrings of the free-text courier partner field, checked in order.
PROVIDER_ALIASES: tuple[tuple[str, str], ...] = (
    ("nepal can move", "ncm"),
    ("ncm", "ncm"),
    ("gaau besi", "gaaubesi"),
    ("gaaubesi", "gaaubesi"),
    ("gaau-besi", "gaaubesi"),
    ("gaau_besi", "gaaubesi"),
    ("gbl", "gaaubesi"),
    ("dummy", "dummy"),
)


def resolve_provider_code(partner_text: str | None) -> str | None:
    """Map a courier partner's display name to a provider code.

    Matching is a case-insensitive substring search, so
    ``"Nepal Can Move (NCM)"`` and ``"ncm express"`` both give ``"ncm"``.
    Returns ``None`` when nothing matches.
    """
    text = (partner_text or "").strip().lower()
    if not text:
        return None
    for alias, code in PROVIDER_ALIASES:
        if alias in text:
            return code
    return None


class SettingsConfigSource:
    """Serve provider configuration from :class:`LogisticsConfig`."""

    def __init__(self, config: LogisticsConfig) -> None:
        self.config = config

    async def fetch(self, code: str) -> ProviderConfig | None:
        settings = self.config.provider(code)
        if settings is None:
            return None
        return ProviderConfig(**settings.model_dump())


class AdapterRegistry:
    """Maps provider codes to adapter factories and cached configs.

    One instance is built at startup and handed to the orchestrator and
    webhook intake. Configs are fetched from ``config_source`` on first
    use and kept for the life of the registry; :meth:`clear_cache`
    drops them.
    """

    def __init__(
        self,
        config_source: ProviderConfigSource | None = None,
        *,
        order_store: OrderStore | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self.config_source = config_source
        self.order_store = order_store
        self.http_transport = http_transport
        self.request_timeout = request_timeout
        self._factories: dict[str, AdapterFactory] = {}
        self._configs: dict[str, ProviderConfig] = {}
        self._lock = asyncio.Lock()
        self._discovered = False

    @staticmethod
    def normalize_code(code: str) -> str:
        return (code or "").strip().lower()

    def register(self, code: str, factory: AdapterFactory) -> None:
        key = self.normalize_code(code)
        if self._factories.get(key) is factory:
            return
        self._factories[key] = factory
        logger.info("Registered logistics provider %r", key)

    def discover(self) -> None:
        """Register the built-in couriers once."""
        if self._discovered:
            return
        from fastapi_logistics.providers import (
            DummyAdapter,
            GaauBesiAdapter,
            NCMAdapter,
        )

        self.register(NCMAdapter.code, NCMAdapter)
        for code in ("gaaubesi", "gaau_besi", "gaau-besi"):
            self.register(code, GaauBesiAdapter)
        self.register(DummyAdapter.code, DummyAdapter)
        self._discovered = True

    def codes(self) -> list[str]:
        return sorted(self._factories)

    def is_registered(self, code: str) -> bool:
        return self.normalize_code(code) in self._factories

    async def _config_for(self, code: str) -> ProviderConfig:
        async with self._lock:
            cached = self._configs.get(code)
            if cached is not None:
                return cached
            config = None
            if self.config_source is not None:
                config = await self.config_source.fetch(code)
            if config is None:
                # Unconfigured providers still work on adapter defaults,
                # but are re-fetched next time in case config appears.
                return ProviderConfig()
            self._configs[code] = config
            return config

    async def get(self, code: str) -> ProviderAdapter:
        key = self.normalize_code(code)
        factory = self._factories.get(key)
        if factory is None:
            raise UnknownProvider(code)
        # Aliases share the canonical code's configuration.
        config = await self._config_for(getattr(factory, "code", key))
        return factory(
            config,
            transport=self.http_transport,
            request_timeout=self.request_timeout,
        )

    async def get_by_tracking_id(
        self, tracking_id: str
    ) -> ProviderAdapter | None:
        """Best-effort reverse lookup used for webhook routing."""
        if self.order_store is None:
            return None
        clean = sanitize_tracking_id(tracking_id)
        if not clean:
            return None
        order = await self.order_store.find_by_tracking_id(clean)
        if order is None:
            return None
        code = getattr(order, "logistics_provider", None) or (
            resolve_provider_code(getattr(order, "courier_partner", None))
        )
        if not code:
            return None
        try:
            return await self.get(code)
        except UnknownProvider:
            logger.warning(
                "Order %s references unregistered provider %r",
                getattr(order, "id", None),
                code,
            )
            return None

    def clear_cache(self) -> None:
        self._configs.clear()

    def cached_codes(self) -> list[str]:
        return sorted(self._configs)

    def __repr__(self) -> str:
        return f"AdapterRegistry(providers={self.codes()!r})"


def build_registry(config: LogisticsConfig, **kwargs: Any) -> AdapterRegistry:
    """Registry backed by env settings with the built-in couriers loaded."""
    registry = AdapterRegistry(
        SettingsConfigSource(config),
        request_timeout=config.request_timeout_seconds,
        **kwargs,
    )
    registry.discover()
    return registry
