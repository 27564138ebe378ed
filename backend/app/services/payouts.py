# app/services/payouts.py
"""
Payout allocation and settlement.

A payout request claims whole earning records, oldest first, until the
requested amount is covered. Each record is claimed with a conditional
UPDATE (status + version must still match what was read), all inside one
transaction: if any claim loses a race the whole attempt is rolled back and
retried against fresh balances, so no earning ever backs two payouts.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AppError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    PayoutIneligibleError,
    PersistenceError,
    ValidationError,
)
from app.core.ledger import to_money
from app.crud.pagination import Page
from app.crud.seller_earning import (
    compare_and_set_status,
    get_earning,
    list_available_earnings,
    reload_earnings,
)
from app.db.types import utcnow
from app.models.payout_request import PayoutMethod, PayoutRequest, PayoutRequestStatus
from app.models.seller import Seller
from app.models.seller_earning import PayoutStatus, SellerEarning
from app.services import ledger
from app.services.notifications import notify_payout_result

logger = logging.getLogger(__name__)


class _LostClaim(Exception):
    """A candidate earning changed between read and conditional update."""


@dataclass
class PayoutAllocation:
    payout_request: PayoutRequest
    payout_request_id: uuid.UUID
    requested_amount: Decimal
    allocated_amount: Decimal
    payout_method: str
    earnings: Sequence[SellerEarning] = field(default_factory=list)

    @property
    def status(self) -> str:
        return PayoutStatus.PROCESSING.value


@dataclass(frozen=True)
class _SellerSnapshot:
    id: uuid.UUID
    user_id: uuid.UUID
    holder_name: Optional[str]
    last4: Optional[str]
    bank_name: Optional[str]
    account_type: Optional[str]


def plan_allocation(candidates: Sequence[SellerEarning], amount: Decimal) -> list[SellerEarning]:
    """
    Shortest FIFO prefix of `candidates` whose seller_amount covers `amount`.
    Records are never split, so the prefix may overshoot the amount.
    """
    chosen: list[SellerEarning] = []
    covered = Decimal("0.00")
    for earning in candidates:
        if covered >= amount:
            break
        chosen.append(earning)
        covered += to_money(earning.seller_amount)
    return chosen


def parse_payout_method(value: str | PayoutMethod) -> str:
    try:
        return PayoutMethod(value).value
    except ValueError:
        allowed = ", ".join(m.value for m in PayoutMethod)
        raise ValidationError(f"payoutMethod must be one of: {allowed}")


async def _load_seller(db: AsyncSession, seller_id: uuid.UUID) -> Seller:
    seller = await db.get(Seller, seller_id)
    if seller is None:
        raise NotFoundError("Seller profile not found")
    return seller


async def _allocate_once(
    db: AsyncSession,
    seller: _SellerSnapshot,
    amount: Decimal,
    payout_method: str,
    now: datetime,
) -> PayoutAllocation:
    candidates = await list_available_earnings(db, seller.id, now, lock=True)
    available = sum((to_money(e.seller_amount) for e in candidates), Decimal("0.00"))
    if available < amount:
        raise InsufficientBalanceError(available=available, requested=amount)

    chosen = plan_allocation(candidates, amount)
    allocated = sum((to_money(e.seller_amount) for e in chosen), Decimal("0.00"))

    payout = PayoutRequest(
        seller_id=seller.id,
        amount=amount,
        allocated_amount=allocated,
        currency=settings.PAYOUT_CURRENCY,
        payout_method=payout_method,
        status=PayoutRequestStatus.PROCESSING.value,
        bank_account_holder_name=seller.holder_name,
        bank_account_last4=seller.last4,
        bank_name=seller.bank_name,
        bank_account_type=seller.account_type,
        requested_at=now,
    )
    db.add(payout)
    await db.flush()

    for earning in chosen:
        claimed = await compare_and_set_status(
            db,
            earning,
            expected_status=PayoutStatus.PENDING.value,
            values={
                "payout_status": PayoutStatus.PROCESSING.value,
                "payout_method": payout_method,
                "payout_request_id": payout.id,
                "payout_date": now,
            },
        )
        if not claimed:
            raise _LostClaim(earning.id)

    return PayoutAllocation(
        payout_request=payout,
        payout_request_id=payout.id,
        requested_amount=amount,
        allocated_amount=allocated,
        payout_method=payout_method,
        earnings=chosen,
    )


async def request_payout(
    db: AsyncSession,
    seller_id: uuid.UUID,
    amount: Decimal,
    payout_method: str = PayoutMethod.BANK_TRANSFER.value,
    now: Optional[datetime] = None,
) -> PayoutAllocation:
    """
    Claim eligible earnings for a payout and commit.

    Raises:
      PayoutIneligibleError: no bank account on file
      ValidationError: bad amount/method, or below the seller's minimum
      InsufficientBalanceError: amount exceeds the available balance (nothing is changed)
      ConflictError: lost the race for the same earnings on every attempt
      PersistenceError: storage failure (transaction rolled back)
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Payout amount must be greater than zero")
    method = parse_payout_method(payout_method)

    seller_row = await _load_seller(db, seller_id)
    if not seller_row.has_bank_account:
        raise PayoutIneligibleError("Please set up your bank account details before requesting payout")
    minimum = seller_row.minimum_payout_amount
    if minimum is not None and amount < to_money(minimum):
        raise ValidationError(f"Minimum payout amount is {to_money(minimum)}")

    # Rollback expires ORM state; keep plain values across retries
    seller = _SellerSnapshot(
        id=seller_row.id,
        user_id=seller_row.user_id,
        holder_name=seller_row.bank_account_holder_name,
        last4=seller_row.bank_account_last4,
        bank_name=seller_row.bank_name,
        account_type=seller_row.bank_account_type,
    )

    attempts = settings.PAYOUT_ALLOCATION_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        stamp = now or utcnow()
        try:
            allocation = await _allocate_once(db, seller, amount, method, stamp)
            await db.commit()
        except _LostClaim as lost:
            await db.rollback()
            logger.warning(
                "Payout allocation for seller %s lost earning %s (attempt %s/%s)",
                seller.id,
                lost.args[0],
                attempt,
                attempts,
            )
            continue
        except AppError:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Payout allocation for seller %s failed", seller.id)
            raise PersistenceError("Payout request could not be saved") from exc

        allocation.earnings = await reload_earnings(db, [e.id for e in allocation.earnings])
        logger.info(
            "Payout %s for seller %s: requested %s, allocated %s over %s earning(s) via %s",
            allocation.payout_request_id,
            seller.id,
            amount,
            allocation.allocated_amount,
            len(allocation.earnings),
            method,
        )
        return allocation

    raise ConflictError("Earnings were claimed by another payout request; please retry")


async def _get_processing_payout(db: AsyncSession, payout_request_id: uuid.UUID, action: str) -> PayoutRequest:
    payout = await db.get(PayoutRequest, payout_request_id)
    if payout is None:
        raise NotFoundError("Payout request not found")
    if payout.status != PayoutRequestStatus.PROCESSING.value:
        raise ConflictError(f"Cannot {action} payout with status: {payout.status}")
    return payout


async def _settle(
    db: AsyncSession,
    payout: PayoutRequest,
    *,
    payout_values: dict,
    earning_values: dict,
) -> int:
    claimed = await db.execute(
        update(PayoutRequest)
        .where(
            PayoutRequest.id == payout.id,
            PayoutRequest.status == PayoutRequestStatus.PROCESSING.value,
        )
        .values(**payout_values)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise ConflictError("Payout request was settled concurrently")

    moved = await db.execute(
        update(SellerEarning)
        .where(
            SellerEarning.payout_request_id == payout.id,
            SellerEarning.payout_status == PayoutStatus.PROCESSING.value,
        )
        .values(version=SellerEarning.version + 1, **earning_values)
        .execution_options(synchronize_session=False)
    )
    return int(moved.rowcount or 0)


async def _reload_payout(db: AsyncSession, payout_request_id: uuid.UUID) -> PayoutRequest:
    stmt = (
        select(PayoutRequest)
        .where(PayoutRequest.id == payout_request_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()


async def complete_payout(
    db: AsyncSession,
    payout_request_id: uuid.UUID,
    transaction_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PayoutRequest:
    """processing -> completed; its earnings processing -> paid."""
    now = now or utcnow()
    payout = await _get_processing_payout(db, payout_request_id, "complete")
    seller = await _load_seller(db, payout.seller_id)
    txn = transaction_id or f"TXN-{uuid.uuid4().hex[:12].upper()}"

    count = await _settle(
        db,
        payout,
        payout_values={
            "status": PayoutRequestStatus.COMPLETED.value,
            "transaction_id": txn,
            "completed_at": now,
        },
        earning_values={
            "payout_status": PayoutStatus.PAID.value,
            "payout_id": txn,
            "payout_date": now,
        },
    )
    await notify_payout_result(
        db,
        user_id=seller.user_id,
        payout_request_id=payout.id,
        amount=to_money(payout.allocated_amount),
        succeeded=True,
    )
    await db.commit()

    logger.info("Payout %s completed (%s earning(s) paid, txn %s)", payout_request_id, count, txn)
    return await _reload_payout(db, payout_request_id)


async def fail_payout(
    db: AsyncSession,
    payout_request_id: uuid.UUID,
    reason: str,
    now: Optional[datetime] = None,
) -> PayoutRequest:
    """processing -> failed; its earnings processing -> failed with the reason."""
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A failure reason is required")
    now = now or utcnow()
    payout = await _get_processing_payout(db, payout_request_id, "fail")
    seller = await _load_seller(db, payout.seller_id)

    count = await _settle(
        db,
        payout,
        payout_values={
            "status": PayoutRequestStatus.FAILED.value,
            "failure_reason": reason,
            "failed_at": now,
        },
        earning_values={
            "payout_status": PayoutStatus.FAILED.value,
            "payout_failure_reason": reason,
        },
    )
    await notify_payout_result(
        db,
        user_id=seller.user_id,
        payout_request_id=payout.id,
        amount=to_money(payout.allocated_amount),
        succeeded=False,
        reason=reason,
    )
    await db.commit()

    logger.warning("Payout %s failed (%s earning(s)): %s", payout_request_id, count, reason)
    return await _reload_payout(db, payout_request_id)


async def hold_earning(db: AsyncSession, earning_id: uuid.UUID, reason: str) -> SellerEarning:
    """pending -> on_hold, only if the record is still pending when written."""
    earning = await get_earning(db, earning_id)
    if earning is None:
        raise NotFoundError("Earning record not found")
    if earning.payout_status != PayoutStatus.PENDING.value:
        raise ConflictError(f"Cannot hold earning with status: {earning.payout_status}")

    metadata = dict(earning.earning_metadata or {})
    metadata["holdReason"] = reason
    held = await compare_and_set_status(
        db,
        earning,
        expected_status=PayoutStatus.PENDING.value,
        values={"payout_status": PayoutStatus.ON_HOLD.value, "earning_metadata": metadata},
    )
    if not held:
        await db.rollback()
        raise ConflictError("Earning was modified concurrently; reload and retry")
    await db.commit()

    logger.info("Earning %s put on hold: %s", earning_id, reason)
    (reloaded,) = await reload_earnings(db, [earning_id])
    return reloaded


async def run_auto_payouts(db: AsyncSession, now: Optional[datetime] = None) -> list[PayoutAllocation]:
    """Withdraw the full available balance for every seller with auto payout on."""
    stmt = select(Seller.id).where(
        Seller.auto_payout_enabled.is_(True),
        Seller.is_active.is_(True),
        Seller.bank_account_number.is_not(None),
    )
    seller_ids = list((await db.execute(stmt)).scalars().all())

    created: list[PayoutAllocation] = []
    for seller_id in seller_ids:
        seller = await _load_seller(db, seller_id)
        minimum = to_money(seller.minimum_payout_amount) if seller.minimum_payout_amount is not None else Decimal("0.00")
        summary = await ledger.get_summary(db, seller_id, now=now)
        available = summary.available_for_payout
        if available <= 0 or available < minimum:
            continue
        try:
            created.append(
                await request_payout(db, seller_id, available, PayoutMethod.BANK_TRANSFER.value, now=now)
            )
        except (InsufficientBalanceError, ConflictError, PayoutIneligibleError) as exc:
            logger.warning("Auto payout skipped for seller %s: %s", seller_id, exc)

    logger.info("Auto payout run created %s payout request(s)", len(created))
    return created


async def list_payout_requests(
    db: AsyncSession,
    page: Page,
    *,
    seller_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
) -> tuple[Sequence[PayoutRequest], int]:
    conds = []
    if seller_id is not None:
        conds.append(PayoutRequest.seller_id == seller_id)
    if status:
        conds.append(PayoutRequest.status == status)

    total = (await db.execute(select(func.count(PayoutRequest.id)).where(*conds))).scalar() or 0
    rows = (
        await db.execute(
            select(PayoutRequest)
            .where(*conds)
            .order_by(PayoutRequest.requested_at.desc())
            .limit(page.limit)
            .offset(page.offset)
        )
    ).scalars().all()
    return rows, int(total)
