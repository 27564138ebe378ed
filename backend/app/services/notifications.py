# app/services/notifications.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.core.fulfillment import notification_priority, notification_type
from app.crud.pagination import Page
from app.db.types import utcnow
from app.models.notification import Notification, NotificationPriority, NotificationType
from app.models.order import Order

logger = logging.getLogger(__name__)

_VALID_TYPES = {t.value for t in NotificationType}
_VALID_PRIORITIES = {p.value for p in NotificationPriority}

# Order and payment notifications never expire on their own
_TRANSACTIONAL_PREFIXES = ("order_", "payment_")

ORDER_STATUS_MESSAGES: dict[str, tuple[str, str]] = {
    "created": ("Order Placed", "Your order #{order_number} has been placed"),
    "confirmed": ("Order Confirmed", "Your order #{order_number} has been confirmed and is being prepared"),
    "processing": ("Order Processing", "Your order #{order_number} is being processed"),
    "shipped": ("Order Shipped", "Your order #{order_number} has been shipped"),
    "out_for_delivery": ("Out for Delivery", "Your order #{order_number} is out for delivery"),
    "delivered": ("Order Delivered", "Your order #{order_number} has been delivered"),
    "canceled": ("Order Canceled", "Your order #{order_number} has been canceled"),
}


def _alive(now: datetime):
    return or_(Notification.expires_at.is_(None), Notification.expires_at > now)


async def create_notification(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
    priority: str = NotificationPriority.MEDIUM.value,
    action_url: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> Notification:
    """
    Stage a notification in the caller's transaction (flush, no commit).
    Delivery is fire-and-forget: there is no acknowledgement or retry.
    """
    if type not in _VALID_TYPES:
        raise ValidationError(f"Unknown notification type: {type!r}")
    if priority not in _VALID_PRIORITIES:
        raise ValidationError(f"Unknown notification priority: {priority!r}")

    if expires_at is None and settings.NOTIFICATION_TTL_DAYS and not type.startswith(_TRANSACTIONAL_PREFIXES):
        expires_at = utcnow() + timedelta(days=settings.NOTIFICATION_TTL_DAYS)

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data,
        priority=priority,
        action_url=action_url,
        expires_at=expires_at,
    )
    db.add(notification)
    await db.flush()
    return notification


async def notify_order_status(
    db: AsyncSession,
    order: Order,
    status: str,
    *,
    extra_data: Optional[dict[str, Any]] = None,
    detail: Optional[str] = None,
) -> Notification:
    """One buyer notification per order event (`created` or a tracking status)."""
    title, template = ORDER_STATUS_MESSAGES[status]
    message = template.format(order_number=order.order_number)
    if detail:
        message = f"{message}. {detail}"

    data: dict[str, Any] = {"orderId": str(order.id), "orderNumber": order.order_number}
    if extra_data:
        data.update(extra_data)

    if status == "created":
        type_, priority = NotificationType.ORDER_CREATED.value, NotificationPriority.MEDIUM.value
    else:
        type_, priority = notification_type(status), notification_priority(status)
    return await create_notification(
        db,
        user_id=order.buyer_id,
        type=type_,
        title=title,
        message=message,
        data=data,
        priority=priority,
        action_url=f"/orders/{order.id}",
    )


async def notify_refund(db: AsyncSession, order: Order, amount: Any) -> Notification:
    return await create_notification(
        db,
        user_id=order.buyer_id,
        type=NotificationType.PAYMENT_SUCCESS.value,
        title="Refund Processed",
        message=f"Your refund of ${amount:.2f} for order {order.order_number} has been processed",
        data={"orderId": str(order.id), "orderNumber": order.order_number, "amount": f"{amount:.2f}"},
        priority=NotificationPriority.HIGH.value,
        action_url=f"/orders/{order.id}",
    )


async def notify_payout_result(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    payout_request_id: uuid.UUID,
    amount: Any,
    succeeded: bool,
    reason: Optional[str] = None,
) -> Notification:
    if succeeded:
        title = "Payout Completed"
        message = f"Your payout of ${amount:.2f} has been sent"
    else:
        title = "Payout Failed"
        message = f"Your payout of ${amount:.2f} failed"
        if reason:
            message = f"{message}: {reason}"
    return await create_notification(
        db,
        user_id=user_id,
        type=NotificationType.PAYMENT_SUCCESS.value if succeeded else NotificationType.PAYMENT_FAILED.value,
        title=title,
        message=message,
        data={"payoutRequestId": str(payout_request_id), "amount": str(amount)},
        priority=NotificationPriority.HIGH.value,
    )


async def purge_expired_notifications(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """TTL sweep: delete every notification whose expires_at has passed."""
    stmt = delete(Notification).where(
        Notification.expires_at.is_not(None),
        Notification.expires_at <= (now or utcnow()),
    )
    result = await db.execute(stmt)
    if result.rowcount:
        logger.info("Purged %s expired notifications", result.rowcount)
    return int(result.rowcount or 0)


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: Page,
    *,
    unread_only: bool = False,
) -> tuple[Sequence[Notification], int]:
    await purge_expired_notifications(db)
    await db.commit()

    now = utcnow()
    conds = [Notification.user_id == user_id, _alive(now)]
    if unread_only:
        conds.append(Notification.is_read.is_(False))

    total = (await db.execute(select(func.count(Notification.id)).where(*conds))).scalar() or 0
    rows = (
        await db.execute(
            select(Notification)
            .where(*conds)
            .order_by(Notification.created_at.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
    ).scalars().all()
    return rows, int(total)


async def unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    stmt = select(func.count(Notification.id)).where(
        Notification.user_id == user_id,
        Notification.is_read.is_(False),
        _alive(utcnow()),
    )
    return int((await db.execute(stmt)).scalar() or 0)


async def mark_read(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    return int(result.rowcount or 0)


async def delete_notification(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
    notification = await db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found")
    await db.delete(notification)
    await db.commit()
