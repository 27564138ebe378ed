# app/api/v1/admin_payouts.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.auth import require_admin
from app.core.errors import ValidationError
from app.crud.pagination import Page
from app.db.session import get_db
from app.models.payout_request import PayoutRequestStatus
from app.models.user import User
from app.schemas.common import Envelope, PageEnvelope, PaginationOut
from app.schemas.earnings import EarningOut
from app.schemas.payouts import (
    AutoPayoutRunOut,
    CompletePayoutIn,
    FailPayoutIn,
    HoldEarningIn,
    PayoutRequestOut,
    PayoutRequestResult,
)
from app.services import payouts

router = APIRouter(prefix="/admin", tags=["admin-payouts"])


@router.get("/payouts", response_model=PageEnvelope[PayoutRequestOut])
async def list_payout_requests(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    seller_id: Optional[uuid.UUID] = Query(None, alias="sellerId"),
    payout_status: Optional[str] = Query(None, alias="status"),
):
    if payout_status and payout_status not in {s.value for s in PayoutRequestStatus}:
        raise ValidationError(f"status must be one of: {', '.join(s.value for s in PayoutRequestStatus)}")
    p = Page(page=page, limit=limit)
    rows, total = await payouts.list_payout_requests(db, p, seller_id=seller_id, status=payout_status)
    return PageEnvelope(
        data=[PayoutRequestOut.model_validate(r) for r in rows],
        pagination=PaginationOut.build(p, total),
    )


@router.post("/payouts/{payout_request_id}/complete", response_model=Envelope[PayoutRequestOut])
async def complete_payout(
    payout_request_id: uuid.UUID,
    payload: Optional[CompletePayoutIn] = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    transaction_id = payload.transaction_id if payload else None
    payout = await payouts.complete_payout(db, payout_request_id, transaction_id)
    return Envelope(message="Payout completed", data=PayoutRequestOut.model_validate(payout))


@router.post("/payouts/{payout_request_id}/fail", response_model=Envelope[PayoutRequestOut])
async def fail_payout(
    payout_request_id: uuid.UUID,
    payload: FailPayoutIn,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    payout = await payouts.fail_payout(db, payout_request_id, payload.reason)
    return Envelope(message="Payout marked as failed", data=PayoutRequestOut.model_validate(payout))


@router.post("/payouts/auto-run", response_model=Envelope[AutoPayoutRunOut])
async def run_auto_payouts(
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    created = await payouts.run_auto_payouts(db)
    return Envelope(
        data=AutoPayoutRunOut(
            created=len(created),
            payouts=[PayoutRequestResult.from_allocation(a) for a in created],
        )
    )


@router.post("/earnings/{earning_id}/hold", response_model=Envelope[EarningOut])
async def hold_earning(
    earning_id: uuid.UUID,
    payload: HoldEarningIn,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
):
    earning = await payouts.hold_earning(db, earning_id, payload.reason)
    return Envelope(message="Earning placed on hold", data=EarningOut.model_validate(earning))
