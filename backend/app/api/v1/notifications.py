# app/api/v1/notifications.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_user
from app.crud.pagination import Page
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import Envelope, PageEnvelope, PaginationOut
from app.schemas.notifications import MarkedReadOut, NotificationOut, UnreadCountOut
from app.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=PageEnvelope[NotificationOut])
async def list_my_notifications(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
):
    p = Page(page=page, limit=limit)
    rows, total = await notification_service.list_notifications(db, user.id, p, unread_only=unread_only)
    return PageEnvelope(
        data=[NotificationOut.model_validate(n) for n in rows],
        pagination=PaginationOut.build(p, total),
    )


@router.get("/unread-count", response_model=Envelope[UnreadCountOut])
async def get_unread_count(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    count = await notification_service.unread_count(db, user.id)
    return Envelope(data=UnreadCountOut(count=count))


@router.put("/read-all", response_model=Envelope[MarkedReadOut])
async def mark_all_notifications_read(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = await notification_service.mark_all_read(db, user.id)
    return Envelope(message="All notifications marked as read", data=MarkedReadOut(updated=updated))


@router.put("/{notification_id}/read", response_model=Envelope[NotificationOut])
async def mark_notification_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    notification = await notification_service.mark_read(db, user.id, notification_id)
    return Envelope(data=NotificationOut.model_validate(notification))


@router.delete("/{notification_id}", response_model=Envelope[None])
async def delete_notification(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await notification_service.delete_notification(db, user.id, notification_id)
    return Envelope(message="Notification deleted successfully")
