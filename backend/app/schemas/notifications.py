# app/schemas/notifications.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from app.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: uuid.UUID
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    priority: str
    action_url: Optional[str] = None

    is_read: bool
    read_at: Optional[datetime] = None

    created_at: datetime
    expires_at: Optional[datetime] = None


class UnreadCountOut(CamelModel):
    count: int


class MarkedReadOut(CamelModel):
    updated: int
