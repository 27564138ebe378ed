# app/crud/seller_earning.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.crud.pagination import Page
from app.models.seller_earning import PayoutStatus, SellerEarning


@dataclass(frozen=True)
class EarningsQuery:
    """Filters for a seller's earning records. Dates bound created_at (inclusive)."""

    seller_id: uuid.UUID
    statuses: tuple[str, ...] = ()
    start_date: datetime | None = None
    end_date: datetime | None = None

    def conditions(self) -> list[Any]:
        conds: list[Any] = [SellerEarning.seller_id == self.seller_id]
        if self.statuses:
            conds.append(SellerEarning.payout_status.in_(self.statuses))
        if self.start_date is not None:
            conds.append(SellerEarning.created_at >= self.start_date)
        if self.end_date is not None:
            conds.append(SellerEarning.created_at <= self.end_date)
        return conds


async def count_earnings(db: AsyncSession, query: EarningsQuery) -> int:
    stmt = select(func.count(SellerEarning.id)).where(*query.conditions())
    return int((await db.execute(stmt)).scalar() or 0)


async def list_earnings(db: AsyncSession, query: EarningsQuery, page: Page) -> Sequence[SellerEarning]:
    stmt = (
        select(SellerEarning)
        .where(*query.conditions())
        .order_by(SellerEarning.created_at.desc(), SellerEarning.id.desc())
        .limit(page.limit)
        .offset(page.offset)
    )
    return (await db.execute(stmt)).scalars().all()


async def list_available_earnings(
    db: AsyncSession,
    seller_id: uuid.UUID,
    now: datetime,
    *,
    lock: bool = False,
) -> Sequence[SellerEarning]:
    """
    Pending earnings past their hold period, oldest first (FIFO).
    lock=True adds FOR UPDATE where the dialect supports it.
    """
    stmt = (
        select(SellerEarning)
        .where(
            SellerEarning.seller_id == seller_id,
            SellerEarning.payout_status == PayoutStatus.PENDING.value,
            SellerEarning.eligible_for_payout_at <= now,
        )
        .order_by(SellerEarning.created_at.asc(), SellerEarning.id.asc())
    )
    if lock:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalars().all()


async def compare_and_set_status(
    db: AsyncSession,
    earning: SellerEarning,
    *,
    expected_status: str,
    values: dict[str, Any],
) -> bool:
    """
    Move one earning out of `expected_status` only if nobody else changed it
    since it was read (status and version both still match).

    Returns False when the row was claimed or modified concurrently.
    """
    stmt = (
        update(SellerEarning)
        .where(
            SellerEarning.id == earning.id,
            SellerEarning.payout_status == expected_status,
            SellerEarning.version == earning.version,
        )
        .values(version=SellerEarning.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def get_earning(db: AsyncSession, earning_id: uuid.UUID) -> SellerEarning | None:
    return await db.get(SellerEarning, earning_id)


async def reload_earnings(db: AsyncSession, earning_ids: Sequence[uuid.UUID]) -> Sequence[SellerEarning]:
    """Re-read rows changed by Core UPDATEs so the identity map is current."""
    if not earning_ids:
        return []
    stmt = (
        select(SellerEarning)
        .where(SellerEarning.id.in_(list(earning_ids)))
        .order_by(SellerEarning.created_at.asc(), SellerEarning.id.asc())
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalars().all()
