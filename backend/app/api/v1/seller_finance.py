# app/api/v1/seller_finance.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.seller import require_seller
from app.core.errors import ValidationError
from app.crud.pagination import Page
from app.crud.seller_earning import EarningsQuery
from app.db.session import get_db
from app.models.seller import Seller
from app.models.seller_earning import PayoutStatus
from app.schemas.common import Envelope, PageEnvelope, PaginationOut
from app.schemas.earnings import EarningOut, EarningsSummaryOut, PayoutGroupOut, TransactionOut
from app.schemas.payouts import PayoutRequestIn, PayoutRequestOut, PayoutRequestResult
from app.services import ledger, payouts

router = APIRouter(prefix="/sellers/me", tags=["seller-finance"])


def _page(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100)) -> Page:
    return Page(page=page, limit=limit)


@router.get("/earnings", response_model=Envelope[EarningsSummaryOut])
async def get_earnings_summary(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    summary = await ledger.get_summary(db, seller.id)
    return Envelope(data=EarningsSummaryOut.model_validate(summary))


@router.get("/earnings/details", response_model=PageEnvelope[EarningOut])
async def list_earning_details(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
    page: Page = Depends(_page),
    payout_status: Optional[str] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
):
    """
    Earning records, newest first.
    Filters: status (payout status), startDate / endDate (created, inclusive).
    """
    statuses: tuple[str, ...] = ()
    if payout_status:
        if payout_status not in {s.value for s in PayoutStatus}:
            raise ValidationError(f"status must be one of: {', '.join(s.value for s in PayoutStatus)}")
        statuses = (payout_status,)

    query = EarningsQuery(seller_id=seller.id, statuses=statuses, start_date=start_date, end_date=end_date)
    rows, total = await ledger.list_earning_details(db, query, page)
    return PageEnvelope(
        data=[EarningOut.model_validate(e) for e in rows],
        pagination=PaginationOut.build(page, total),
    )


@router.get("/transactions", response_model=PageEnvelope[TransactionOut])
async def list_transactions(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
    page: Page = Depends(_page),
    transaction_type: Optional[str] = Query(None, alias="type"),
):
    query = ledger.transactions_query(seller.id, transaction_type)
    rows, total = await ledger.list_earning_details(db, query, page)
    return PageEnvelope(
        data=[TransactionOut.from_earning(e) for e in rows],
        pagination=PaginationOut.build(page, total),
    )


@router.get("/payouts", response_model=PageEnvelope[PayoutGroupOut])
async def get_payout_history(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
    page: Page = Depends(_page),
):
    """Claimed and paid earnings grouped into payouts by payout date."""
    groups, total = await ledger.get_payout_history(db, seller.id, page)
    return PageEnvelope(
        data=[PayoutGroupOut.model_validate(g) for g in groups],
        pagination=PaginationOut.build(page, total),
    )


@router.post(
    "/payouts/request",
    response_model=Envelope[PayoutRequestResult],
    status_code=status.HTTP_201_CREATED,
)
async def request_payout(
    payload: PayoutRequestIn,
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
):
    allocation = await payouts.request_payout(db, seller.id, payload.amount, payload.payout_method)
    return Envelope(
        message="Payout request submitted successfully",
        data=PayoutRequestResult.from_allocation(allocation),
    )


@router.get("/payouts/requests", response_model=PageEnvelope[PayoutRequestOut])
async def list_my_payout_requests(
    db: AsyncSession = Depends(get_db),
    seller: Seller = Depends(require_seller),
    page: Page = Depends(_page),
):
    rows, total = await payouts.list_payout_requests(db, page, seller_id=seller.id)
    return PageEnvelope(
        data=[PayoutRequestOut.model_validate(r) for r in rows],
        pagination=PaginationOut.build(page, total),
    )
