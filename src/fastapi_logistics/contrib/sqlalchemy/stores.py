"""SQLAlchemy webhook log store and provider config source."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fastapi_logistics.contrib.sqlalchemy.models import (
    CourierPartnerModel,
    WebhookLogModel,
)
from fastapi_logistics.types import ProviderConfig, WebhookLogEntry


class SQLAlchemyWebhookLogStore:
    """Persist webhook audit entries in a SQLAlchemy table."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def append(self, entry: WebhookLogEntry) -> None:
        row = WebhookLogModel(
            provider=entry.provider,
            status=str(entry.status),
            tracking_id=entry.tracking_id,
            order_id=entry.order_id,
            error=entry.error,
            headers=dict(entry.headers),
            payload=dict(entry.payload),
        )
        if entry.created_at is not None:
            row.created_at = entry.created_at
        async with self.session_factory() as session:
            session.add(row)
            await session.commit()

    async def list_entries(
        self, provider: str | None = None, limit: int = 50
    ) -> list[WebhookLogModel]:
        """Most recent entries first."""
        stmt = select(WebhookLogModel).order_by(WebhookLogModel.id.desc())
        if provider is not None:
            stmt = stmt.where(WebhookLogModel.provider == provider)
        async with self.session_factory() as session:
            result = await session.execute(stmt.limit(limit))
            return list(result.scalars().all())


class SQLAlchemyProviderConfigSource:
    """Read provider configuration from the ``courier_partners`` table."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def fetch(self, code: str) -> ProviderConfig | None:
        async with self.session_factory() as session:
            row = await session.get(CourierPartnerModel, code.lower())
            if row is None or not row.is_active:
                return None
            return ProviderConfig(
                name=row.name,
                api_url=row.api_url,
                api_token=row.api_token,
                source_branch=row.source_branch,
                webhook_secret=row.webhook_secret,
                contact_phone=row.contact_phone,
                timeout_seconds=row.timeout_seconds,
                status_map=dict(row.status_map or {}),
                options=dict(row.options or {}),
            )
