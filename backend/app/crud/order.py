# app/crud/order.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.pagination import Page
from app.models.order import Order, OrderItem


def _has_seller_items(seller_id: uuid.UUID):
    return exists().where(OrderItem.order_id == Order.id, OrderItem.seller_id == seller_id)


@dataclass(frozen=True)
class SellerOrdersQuery:
    seller_id: uuid.UUID
    status: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    def conditions(self) -> list[Any]:
        conds: list[Any] = [_has_seller_items(self.seller_id)]
        if self.status:
            conds.append(Order.tracking_status == self.status)
        if self.start_date is not None:
            conds.append(Order.created_at >= self.start_date)
        if self.end_date is not None:
            conds.append(Order.created_at <= self.end_date)
        return conds


async def count_seller_orders(db: AsyncSession, query: SellerOrdersQuery) -> int:
    stmt = select(func.count(Order.id)).where(*query.conditions())
    return int((await db.execute(stmt)).scalar() or 0)


async def list_seller_orders(db: AsyncSession, query: SellerOrdersQuery, page: Page) -> Sequence[Order]:
    stmt = (
        select(Order)
        .where(*query.conditions())
        .order_by(Order.created_at.desc())
        .limit(page.limit)
        .offset(page.offset)
    )
    return (await db.execute(stmt)).scalars().all()


async def get_order_for_seller(db: AsyncSession, order_id: uuid.UUID, seller_id: uuid.UUID) -> Order | None:
    """An order is visible to a seller only if it contains at least one of their items."""
    stmt = select(Order).where(Order.id == order_id, _has_seller_items(seller_id))
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_order_for_buyer(db: AsyncSession, order_id: uuid.UUID, buyer_id: uuid.UUID) -> Order | None:
    stmt = select(Order).where(Order.id == order_id, Order.buyer_id == buyer_id)
    return (await db.execute(stmt)).scalar_one_or_none()


async def order_number_exists(db: AsyncSession, order_number: str) -> bool:
    stmt = select(Order.id).where(Order.order_number == order_number)
    return (await db.execute(stmt)).first() is not None
