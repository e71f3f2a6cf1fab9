"""SQLAlchemy order store implementation."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from fastapi_logistics.contrib.sqlalchemy.models import (
    OrderCommentModel,
    OrderItemModel,
    OrderModel,
)
from fastapi_logistics.exceptions import OrderNotFound


def _order_query(*criteria: Any) -> Select[tuple[OrderModel]]:
    return (
        select(OrderModel)
        .where(*criteria)
        .options(selectinload(OrderModel.items))
        .execution_options(populate_existing=True)
    )


class SQLAlchemyOrderStore:
    """Order store backed by SQLAlchemy async sessions."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def get(self, order_id: str) -> OrderModel | None:
        async with self.session_factory() as session:
            result = await session.execute(
                _order_query(OrderModel.id == order_id)
            )
            return result.scalar_one_or_none()

    async def create(self, **kwargs) -> OrderModel:
        items = kwargs.pop("items", None) or []
        order = OrderModel(id=kwargs.pop("id", None) or str(uuid.uuid4()))
        for key, value in kwargs.items():
            if hasattr(order, key):
                setattr(order, key, value)
        order.items = [
            item if isinstance(item, OrderItemModel) else OrderItemModel(**item)
            for item in items
        ]
        async with self.session_factory() as session:
            session.add(order)
            await session.commit()
        return await self.get(order.id)

    async def update(
        self, order_id: str, fields: dict[str, Any]
    ) -> OrderModel:
        async with self.session_factory() as session:
            order = await session.get(OrderModel, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            for key, value in fields.items():
                if hasattr(order, key):
                    setattr(order, key, value)
            await session.commit()
            result = await session.execute(
                _order_query(OrderModel.id == order_id)
            )
            return result.scalar_one()

    async def find_by_tracking_id(
        self, tracking_id: str
    ) -> OrderModel | None:
        """Case-insensitive match on the external order id or waybill."""
        wanted = tracking_id.upper()
        async with self.session_factory() as session:
            result = await session.execute(
                _order_query(
                    or_(
                        func.upper(OrderModel.external_order_id) == wanted,
                        func.upper(OrderModel.waybill) == wanted,
                    )
                ).limit(1)
            )
            return result.scalar_one_or_none()

    async def has_comment(self, order_id: str, external_id: str) -> bool:
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(OrderCommentModel)
                .where(
                    OrderCommentModel.order_id == order_id,
                    OrderCommentModel.external_comment_id == external_id,
                )
            )
            return bool(count)

    async def add_comment(
        self,
        order_id: str,
        text: str,
        *,
        source: str,
        external_id: str | None = None,
        event_type: str | None = None,
    ) -> None:
        async with self.session_factory() as session:
            session.add(
                OrderCommentModel(
                    order_id=order_id,
                    text=text,
                    source=source,
                    external_comment_id=external_id,
                    event_type=event_type,
                )
            )
            await session.commit()

    async def list_comments(self, order_id: str) -> list[OrderCommentModel]:
        """List an order's comments, oldest first."""
        async with self.session_factory() as session:
            stmt = (
                select(OrderCommentModel)
                .where(OrderCommentModel.order_id == order_id)
                .order_by(OrderCommentModel.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())
