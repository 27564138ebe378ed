# app/services/orders.py
from __future__ import annotations

import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from app.core.fulfillment import INITIAL_STATUS
from app.core.ledger import line_subtotal, to_money
from app.crud.order import get_order_for_buyer, order_number_exists
from app.db.types import utcnow
from app.models.order import Order, OrderItem, OrderStatusHistory, PaymentMethod, PaymentStatus
from app.models.seller import Seller
from app.services.ledger import record_order_earnings
from app.services.notifications import notify_order_status, notify_refund

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
MAX_ORDER_NUMBER_RETRIES = 10


@dataclass(frozen=True)
class OrderLine:
    seller_id: uuid.UUID
    title: str
    price: Decimal
    quantity: int
    product_id: Optional[uuid.UUID] = None


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-XXXXXX"""
    day = (now or utcnow()).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"ORD-{day}-{suffix}"


async def _allocate_order_number(db: AsyncSession, now: datetime) -> str:
    """
    Pre-check for collisions; the unique constraint still guards the commit.
    """
    for _ in range(MAX_ORDER_NUMBER_RETRIES):
        number = generate_order_number(now)
        if not await order_number_exists(db, number):
            return number
    raise PersistenceError("Could not allocate a unique order number")


def check_order_total(
    items_total: Decimal,
    shipping_fee: Decimal,
    total_price: Optional[Decimal],
) -> Decimal:
    """
    Return the order total to store.

    Without an explicit total the computed one is used. A mismatching total
    is rejected when ENFORCE_ORDER_TOTALS is on and only logged otherwise.
    """
    expected = to_money(items_total + shipping_fee)
    if total_price is None:
        return expected

    given = to_money(total_price)
    if given != expected:
        if settings.ENFORCE_ORDER_TOTALS:
            raise ValidationError(
                f"totalPrice {given} does not match items + shipping ({expected})",
                data={"expected": expected, "given": given},
            )
        logger.warning("Order total %s does not match items + shipping %s; keeping given total", given, expected)
    return given


async def place_order(
    db: AsyncSession,
    *,
    buyer_id: uuid.UUID,
    lines: Sequence[OrderLine],
    shipping_address: dict[str, Any],
    shipping_fee: Decimal = Decimal("0.00"),
    total_price: Optional[Decimal] = None,
    payment_method: str = PaymentMethod.PAYPAL.value,
    fee_percentage: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    Create an order, its per-seller earnings and the buyer's order_created
    notification in one transaction.
    """
    if not lines:
        raise ValidationError("Order must contain at least one item")
    try:
        method = PaymentMethod(payment_method).value
    except ValueError:
        raise ValidationError(f"paymentMethod must be one of: {', '.join(m.value for m in PaymentMethod)}")

    shipping_fee = to_money(shipping_fee)
    if shipping_fee < 0:
        raise ValidationError("shippingFee cannot be negative")

    now = now or utcnow()
    items: list[OrderItem] = []
    for position, line in enumerate(lines):
        if line.quantity < 1:
            raise ValidationError(f"items[{position}].quantity must be at least 1")
        if to_money(line.price) < 0:
            raise ValidationError(f"items[{position}].price cannot be negative")
        items.append(
            OrderItem(
                position=position,
                product_id=line.product_id,
                seller_id=line.seller_id,
                title=line.title,
                price=to_money(line.price),
                quantity=line.quantity,
                subtotal=line_subtotal(line.price, line.quantity),
            )
        )

    seller_ids = {line.seller_id for line in lines}
    found = set((await db.execute(select(Seller.id).where(Seller.id.in_(seller_ids)))).scalars().all())
    missing = seller_ids - found
    if missing:
        raise NotFoundError(f"Seller {sorted(str(s) for s in missing)[0]} not found")

    items_total = sum((i.subtotal for i in items), Decimal("0.00"))
    total = check_order_total(items_total, shipping_fee, total_price)

    try:
        order = Order(
            order_number=await _allocate_order_number(db, now),
            buyer_id=buyer_id,
            currency=settings.PAYOUT_CURRENCY,
            total_price=total,
            shipping_fee=shipping_fee,
            shipping_address=dict(shipping_address),
            payment_status=PaymentStatus.PENDING.value,
            payment_method=method,
            tracking_status=INITIAL_STATUS.value,
            created_at=now,
            updated_at=now,
        )
        order.items = items
        order.status_history = [
            OrderStatusHistory(
                sequence=1,
                status=INITIAL_STATUS.value,
                timestamp=now,
                note="Order placed",
                actor_user_id=buyer_id,
            )
        ]
        db.add(order)
        await db.flush()

        earnings = await record_order_earnings(db, order, fee_percentage=fee_percentage, now=now)
        order.platform_fee = sum((e.platform_fee for e in earnings), Decimal("0.00"))
        order.seller_earnings = sum((e.seller_amount for e in earnings), Decimal("0.00"))

        await notify_order_status(db, order, "created")
        await db.commit()
    except (ValidationError, NotFoundError):
        await db.rollback()
        raise
    except IntegrityError as exc:
        await db.rollback()
        logger.exception("Order insert failed for buyer %s", buyer_id)
        raise PersistenceError("Order could not be saved") from exc

    logger.info(
        "Order %s placed by %s: %s item(s), total %s, %s seller(s)",
        order.order_number,
        buyer_id,
        len(items),
        total,
        len(earnings),
    )
    return order


async def get_buyer_order(db: AsyncSession, order_id: uuid.UUID, buyer_id: uuid.UUID) -> Order:
    order = await get_order_for_buyer(db, order_id, buyer_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def refund_order(
    db: AsyncSession,
    order_id: uuid.UUID,
    *,
    amount: Decimal,
    reason: str,
    now: Optional[datetime] = None,
) -> Order:
    """
    Record a processed refund and tell the buyer.

    The refund is settled outside this service, so it is stored as completed.
    Tracking status is left as it is. A second refund of the same order is a
    conflict.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Refund amount must be greater than zero")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A refund reason is required")

    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if order.payment_status == PaymentStatus.REFUNDED.value:
        raise ConflictError("Order has already been refunded")
    total = to_money(order.total_price)
    if amount > total:
        raise ValidationError(f"Refund amount cannot exceed the order total ({total})")

    now = now or utcnow()
    order_number = order.order_number
    order.refund = {
        "status": "completed",
        "amount": f"{amount:.2f}",
        "reason": reason,
        "requestedAt": now.isoformat(),
        "processedAt": now.isoformat(),
    }
    order.payment_status = PaymentStatus.REFUNDED.value
    order.updated_at = now

    try:
        await notify_refund(db, order, amount)
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.warning("Order %s (%s) was updated concurrently; refund dropped", order_number, order_id)
        raise ConflictError("Order was modified concurrently; reload and retry") from exc

    logger.info("Order %s refunded %s: %s", order_number, amount, reason)
    return order
