# app/api/v1/orders.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import Envelope
from app.schemas.orders import OrderOut, PlaceOrderIn
from app.services import orders as order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=Envelope[OrderOut], status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderIn,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Place an order as the current user.
    Seller earnings are recorded with the order; payment capture happens elsewhere.
    """
    order = await order_service.place_order(
        db,
        buyer_id=user.id,
        lines=[
            order_service.OrderLine(
                seller_id=i.seller_id,
                title=i.title,
                price=i.price,
                quantity=i.quantity,
                product_id=i.product_id,
            )
            for i in payload.items
        ],
        shipping_address=payload.shipping_address.model_dump(by_alias=True),
        shipping_fee=payload.shipping_fee,
        total_price=payload.total_price,
        payment_method=payload.payment_method,
    )
    return Envelope(message="Order placed successfully", data=OrderOut.from_order(order))


@router.get("/{order_id}", response_model=Envelope[OrderOut])
async def get_my_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = await order_service.get_buyer_order(db, order_id, user.id)
    return Envelope(data=OrderOut.from_order(order))
