# app/services/ledger.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.core.ledger import derive_eligibility, seller_totals, split_platform_fee, to_money
from app.crud.pagination import Page
from app.crud.seller_earning import EarningsQuery, count_earnings, list_earnings
from app.db.types import utcnow
from app.models.order import Order
from app.models.seller import Seller
from app.models.seller_earning import PayoutStatus, SellerEarning

logger = logging.getLogger(__name__)

# "earning" = money still owed, "payout" = money claimed by or sent in a payout
TRANSACTION_TYPES: dict[str, tuple[str, ...]] = {
    "earning": (PayoutStatus.PENDING.value,),
    "payout": (PayoutStatus.PAID.value, PayoutStatus.PROCESSING.value),
}

PAYOUT_HISTORY_STATUSES = (PayoutStatus.PAID.value, PayoutStatus.PROCESSING.value)


@dataclass(frozen=True)
class EarningsSummary:
    total_earnings: Decimal
    total_platform_fees: Decimal
    total_orders: int
    available_for_payout: Decimal
    pending_clearing: Decimal
    paid_out: Decimal


@dataclass(frozen=True)
class PayoutGroup:
    payout_date: Optional[datetime]
    payout_id: Optional[str]
    total_amount: Decimal
    orders_count: int
    payout_method: Optional[str]
    status: Optional[str]


async def record_order_earnings(
    db: AsyncSession,
    order: Order,
    fee_percentage: Optional[Decimal] = None,
    now: Optional[datetime] = None,
) -> list[SellerEarning]:
    """
    One earning per distinct seller in the order (flush, no commit).

    Each seller's hold period comes from their payout settings, falling back
    to PAYOUT_HOLD_PERIOD_DAYS.
    """
    pct = settings.PLATFORM_FEE_PERCENTAGE if fee_percentage is None else Decimal(str(fee_percentage))
    if pct < 0 or pct > 100:
        raise ValidationError(f"Platform fee percentage must be between 0 and 100, got {pct}")

    totals = seller_totals(order.items)
    if not totals:
        raise ValidationError("Order has no items to record earnings for")

    sellers = {
        s.id: s
        for s in (await db.execute(select(Seller).where(Seller.id.in_(list(totals))))).scalars().all()
    }

    created_at = now or utcnow()
    earnings: list[SellerEarning] = []
    for seller_id, total in totals.items():
        seller = sellers.get(seller_id)
        if seller is None:
            raise NotFoundError(f"Seller {seller_id} not found")

        split = split_platform_fee(total, pct)
        hold_days = seller.hold_period_days if seller.hold_period_days is not None else settings.PAYOUT_HOLD_PERIOD_DAYS

        earnings.append(
            SellerEarning(
                seller_id=seller_id,
                order_id=order.id,
                order_number=order.order_number,
                total_amount=split.total_amount,
                platform_fee_percentage=split.platform_fee_percentage,
                platform_fee=split.platform_fee,
                seller_amount=split.seller_amount,
                payout_status=PayoutStatus.PENDING.value,
                created_at=created_at,
                updated_at=created_at,
                eligible_for_payout_at=derive_eligibility(created_at, hold_days),
                earning_metadata={"holdPeriodDays": hold_days},
            )
        )

    db.add_all(earnings)
    await db.flush()

    logger.info(
        "Recorded %s earning(s) for order %s at %s%% platform fee",
        len(earnings),
        order.order_number,
        pct,
    )
    return earnings


async def get_summary(db: AsyncSession, seller_id: uuid.UUID, now: Optional[datetime] = None) -> EarningsSummary:
    """Read-only aggregate over all of a seller's earnings."""
    now = now or utcnow()
    is_pending = SellerEarning.payout_status == PayoutStatus.PENDING.value
    amount = SellerEarning.seller_amount

    stmt = select(
        func.count(SellerEarning.id),
        func.coalesce(func.sum(amount), 0),
        func.coalesce(func.sum(SellerEarning.platform_fee), 0),
        func.coalesce(
            func.sum(case((and_(is_pending, SellerEarning.eligible_for_payout_at <= now), amount), else_=0)), 0
        ),
        func.coalesce(
            func.sum(case((and_(is_pending, SellerEarning.eligible_for_payout_at > now), amount), else_=0)), 0
        ),
        func.coalesce(
            func.sum(case((SellerEarning.payout_status == PayoutStatus.PAID.value, amount), else_=0)), 0
        ),
    ).where(SellerEarning.seller_id == seller_id)

    total_orders, total_earnings, total_fees, available, clearing, paid = (await db.execute(stmt)).one()

    return EarningsSummary(
        total_earnings=to_money(total_earnings),
        total_platform_fees=to_money(total_fees),
        total_orders=int(total_orders or 0),
        available_for_payout=to_money(available),
        pending_clearing=to_money(clearing),
        paid_out=to_money(paid),
    )


async def list_earning_details(
    db: AsyncSession,
    query: EarningsQuery,
    page: Page,
) -> tuple[Sequence[SellerEarning], int]:
    total = await count_earnings(db, query)
    rows = await list_earnings(db, query, page)
    return rows, total


def transactions_query(
    seller_id: uuid.UUID,
    transaction_type: Optional[str] = None,
) -> EarningsQuery:
    if transaction_type is None:
        return EarningsQuery(seller_id=seller_id)
    if transaction_type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(sorted(TRANSACTION_TYPES))}")
    return EarningsQuery(seller_id=seller_id, statuses=TRANSACTION_TYPES[transaction_type])


async def get_payout_history(
    db: AsyncSession,
    seller_id: uuid.UUID,
    page: Page,
) -> tuple[list[PayoutGroup], int]:
    """
    Paid/processing earnings grouped by payout_date, newest first.
    Every earning claimed by one payout request carries the same payout_date.
    """
    conds = [
        SellerEarning.seller_id == seller_id,
        SellerEarning.payout_status.in_(PAYOUT_HISTORY_STATUSES),
    ]

    groups_stmt = (
        select(
            SellerEarning.payout_date,
            func.max(SellerEarning.payout_id),
            func.sum(SellerEarning.seller_amount),
            func.count(SellerEarning.id),
            func.max(SellerEarning.payout_method),
            func.max(SellerEarning.payout_status),
        )
        .where(*conds)
        .group_by(SellerEarning.payout_date)
        .order_by(SellerEarning.payout_date.desc())
        .limit(page.limit)
        .offset(page.offset)
    )
    rows = (await db.execute(groups_stmt)).all()

    distinct_dates = select(SellerEarning.payout_date).where(*conds).group_by(SellerEarning.payout_date).subquery()
    total = (await db.execute(select(func.count()).select_from(distinct_dates))).scalar() or 0

    groups = [
        PayoutGroup(
            payout_date=payout_date,
            payout_id=payout_id,
            total_amount=to_money(total_amount),
            orders_count=int(orders_count),
            payout_method=payout_method,
            status=status,
        )
        for payout_date, payout_id, total_amount, orders_count, payout_method, status in rows
    ]
    return groups, int(total)
