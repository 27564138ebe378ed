# app/services/fulfillment.py
"""
Order tracking transitions.

Each transition appends one history row, moves tracking_status and stages
one buyer notification, all committed together. The order row is written
with a version check, so two concurrent transitions of the same order cannot
both land.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from app.core.fulfillment import TrackingStatus, validate_transition
from app.crud.order import (
    SellerOrdersQuery,
    count_seller_orders,
    get_order_for_seller,
    list_seller_orders,
)
from app.crud.pagination import Page
from app.db.types import utcnow
from app.models.order import Order, OrderStatusHistory
from app.models.seller import Seller
from app.services.notifications import notify_order_status

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


async def transition(
    db: AsyncSession,
    order: Order,
    new_status: str | TrackingStatus,
    *,
    actor_user_id: Optional[uuid.UUID] = None,
    note: Optional[str] = None,
    location: Optional[str] = None,
    tracking_number: Optional[str] = None,
    carrier: Optional[str] = None,
    estimated_delivery: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Order:
    try:
        target = validate_transition(order.tracking_status, new_status)
    except InvalidTransitionError:
        logger.info("Rejected transition of order %s: %s -> %s", order.order_number, order.tracking_status, new_status)
        raise

    tracking_number = _clean(tracking_number)
    carrier = _clean(carrier)
    if target is TrackingStatus.SHIPPED and not (tracking_number and carrier):
        raise ValidationError("trackingNumber and carrier are required to ship an order")

    now = now or utcnow()
    # Rollback expires the instance; keep what the logs need
    order_id = order.id
    order_number = order.order_number
    previous = order.tracking_status
    location = _clean(location)
    note = _clean(note)

    order.status_history.append(
        OrderStatusHistory(
            sequence=len(order.status_history) + 1,
            status=target.value,
            timestamp=now,
            location=location,
            note=note,
            actor_user_id=actor_user_id,
        )
    )
    order.tracking_status = target.value
    if tracking_number:
        order.tracking_number = tracking_number
    if carrier:
        order.carrier = carrier
    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery
    if location:
        order.current_location = location
    order.updated_at = now

    extra: dict[str, Any] = {"status": target.value}
    detail = None
    if target is TrackingStatus.SHIPPED:
        extra.update(trackingNumber=tracking_number, carrier=carrier)
        detail = f"Tracking number: {tracking_number}"

    try:
        await notify_order_status(db, order, target.value, extra_data=extra, detail=detail)
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.warning(
            "Order %s (%s) was updated concurrently; transition to %s dropped",
            order_number,
            order_id,
            target.value,
        )
        raise ConflictError("Order was modified concurrently; reload and retry") from exc

    logger.info("Order %s: %s -> %s", order_number, previous, target.value)
    return order


async def get_seller_order(db: AsyncSession, seller_id: uuid.UUID, order_id: uuid.UUID) -> Order:
    order = await get_order_for_seller(db, order_id, seller_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_orders_for_seller(
    db: AsyncSession,
    query: SellerOrdersQuery,
    page: Page,
) -> tuple[Sequence[Order], int]:
    total = await count_seller_orders(db, query)
    rows = await list_seller_orders(db, query, page)
    return rows, total


async def update_seller_order_status(
    db: AsyncSession,
    seller: Seller,
    order_id: uuid.UUID,
    new_status: str,
    *,
    actor_user_id: uuid.UUID,
    note: Optional[str] = None,
    tracking_number: Optional[str] = None,
    carrier: Optional[str] = None,
) -> Order:
    order = await get_seller_order(db, seller.id, order_id)
    return await transition(
        db,
        order,
        new_status,
        actor_user_id=actor_user_id,
        note=note,
        location=seller.city,
        tracking_number=tracking_number,
        carrier=carrier,
    )


async def ship_seller_order(
    db: AsyncSession,
    seller: Seller,
    order_id: uuid.UUID,
    *,
    actor_user_id: uuid.UUID,
    tracking_number: str,
    carrier: str,
    estimated_delivery: Optional[datetime] = None,
) -> Order:
    order = await get_seller_order(db, seller.id, order_id)
    return await transition(
        db,
        order,
        TrackingStatus.SHIPPED,
        actor_user_id=actor_user_id,
        note=f"Shipped via {_clean(carrier)} - Tracking: {_clean(tracking_number)}",
        location=seller.city,
        tracking_number=tracking_number,
        carrier=carrier,
        estimated_delivery=estimated_delivery,
    )


async def deliver_seller_order(
    db: AsyncSession,
    seller: Seller,
    order_id: uuid.UUID,
    *,
    actor_user_id: uuid.UUID,
) -> Order:
    order = await get_seller_order(db, seller.id, order_id)
    city = (order.shipping_address or {}).get("city")
    return await transition(
        db,
        order,
        TrackingStatus.DELIVERED,
        actor_user_id=actor_user_id,
        note="Order delivered successfully",
        location=city,
    )
