from __future__ import annotations

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import get_current_user
from app.core.errors import ForbiddenError, NotFoundError
from app.db.session import get_db
from app.models.seller import Seller
from app.models.user import User


async def require_seller(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
) -> Seller:
    """The caller's seller profile; every /sellers/me route is scoped to it."""
    seller = (await db.execute(select(Seller).where(Seller.user_id == user.id))).scalar_one_or_none()
    if seller is None:
        raise NotFoundError("Seller profile not found")
    if seller.is_active is not True:
        raise ForbiddenError("Seller account is inactive")
    return seller
