# app/api/v1/admin_orders.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import Envelope
from app.schemas.orders import OrderOut, RefundOrderIn
from app.services import orders as order_service

router = APIRouter(prefix="/admin", tags=["admin-orders"])


@router.post("/orders/{order_id}/refund", response_model=Envelope[OrderOut])
async def refund_order(
    order_id: uuid.UUID,
    payload: RefundOrderIn,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    order = await order_service.refund_order(db, order_id, amount=payload.amount, reason=payload.reason)
    return Envelope(message="Refund processed successfully", data=OrderOut.from_order(order))
