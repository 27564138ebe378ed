# app/api/v1/seller_orders.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.seller import require_seller
from app.core.fulfillment import parse_status
from app.crud.order import SellerOrdersQuery
from app.crud.pagination import Page
from app.db.session import get_db
from app.models.seller import Seller
from app.schemas.common import Envelope, PageEnvelope, PaginationOut
from app.schemas.orders import OrderOut, OrderStatusUpdateIn, ShipOrderIn
from app.services import fulfillment

router = APIRouter(prefix="/sellers/me/orders", tags=["seller-orders"])


@router.get("", response_model=PageEnvelope[OrderOut])
async def list_my_orders(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    tracking_status: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
):
    """Orders containing at least one of the seller's items, newest first."""
    if tracking_status:
        tracking_status = parse_status(tracking_status).value
    p = Page(page=page, limit=limit)
    query = SellerOrdersQuery(
        seller_id=seller.id,
        status=tracking_status,
        start_date=start_date,
        end_date=end_date,
    )
    rows, total = await fulfillment.list_orders_for_seller(db, query, p)
    return PageEnvelope(
        data=[OrderOut.from_order(o) for o in rows],
        pagination=PaginationOut.build(p, total),
    )


@router.get("/{order_id}", response_model=Envelope[OrderOut])
async def get_my_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    order = await fulfillment.get_seller_order(db, seller.id, order_id)
    return Envelope(data=OrderOut.from_order(order))


@router.put("/{order_id}/status", response_model=Envelope[OrderOut])
async def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdateIn,
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    order = await fulfillment.update_seller_order_status(
        db,
        seller,
        order_id,
        payload.status,
        actor_user_id=seller.user_id,
        note=payload.note,
        tracking_number=payload.tracking_number,
        carrier=payload.carrier,
    )
    return Envelope(message="Order status updated successfully", data=OrderOut.from_order(order))


@router.put("/{order_id}/ship", response_model=Envelope[OrderOut])
async def ship_order(
    order_id: uuid.UUID,
    payload: ShipOrderIn,
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    order = await fulfillment.ship_seller_order(
        db,
        seller,
        order_id,
        actor_user_id=seller.user_id,
        tracking_number=payload.tracking_number,
        carrier=payload.carrier,
        estimated_delivery=payload.estimated_delivery,
    )
    return Envelope(message="Order marked as shipped", data=OrderOut.from_order(order))


@router.put("/{order_id}/deliver", response_model=Envelope[OrderOut])
async def deliver_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    order = await fulfillment.deliver_seller_order(db, seller, order_id, actor_user_id=seller.user_id)
    return Envelope(message="Order marked as delivered", data=OrderOut.from_order(order))
