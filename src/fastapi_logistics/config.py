"""Logistics layer configuration."""

from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ORDER_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$"


class ProviderSettings(BaseModel):
    """Per-courier settings; unset values fall back to adapter defaults."""

    name: str | None = None
    api_url: str | None = None
    api_token: str | None = None
    source_branch: str | None = None
    webhook_secret: str | None = None
    contact_phone: str | None = None
    timeout_seconds: float | None = None
    status_map: dict[str, str] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)


class LogisticsConfig(BaseSettings):
    """Runtime config, read from ``LOGISTICS_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LOGISTICS_",
        env_nested_delimiter="__",
    )

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    request_timeout_seconds: float = 30.0
    bulk_delay_seconds: float = 0.3
    external_fulfillment_type: str = "outside_valley"
    order_id_pattern: str = DEFAULT_ORDER_ID_PATTERN

    def provider(self, code: str) -> ProviderSettings | None:
        """Return settings for a provider code, matched case-insensitively."""
        wanted = code.strip().lower()
        for key, settings in self.providers.items():
            if key.lower() == wanted:
                return settings
        return None
