# app/schemas/earnings.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from app.models.seller_earning import SellerEarning
from app.schemas.common import CamelModel
from app.services.ledger import TRANSACTION_TYPES


class EarningsSummaryOut(CamelModel):
    total_earnings: Decimal
    total_platform_fees: Decimal
    total_orders: int
    available_for_payout: Decimal
    pending_clearing: Decimal
    paid_out: Decimal


class EarningOut(CamelModel):
    id: uuid.UUID
    seller_id: uuid.UUID
    order_id: uuid.UUID
    order_number: Optional[str] = None

    total_amount: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    seller_amount: Decimal

    payout_status: str
    payout_request_id: Optional[uuid.UUID] = None
    payout_id: Optional[str] = None
    payout_method: Optional[str] = None
    payout_date: Optional[datetime] = None
    payout_failure_reason: Optional[str] = None

    eligible_for_payout_at: datetime
    created_at: datetime
    updated_at: datetime


class TransactionOut(EarningOut):
    # "earning" while owed, "payout" once claimed or paid
    type: Optional[str] = None

    @classmethod
    def from_earning(cls, earning: SellerEarning) -> "TransactionOut":
        out = cls.model_validate(earning)
        out.type = next(
            (name for name, statuses in TRANSACTION_TYPES.items() if earning.payout_status in statuses),
            None,
        )
        return out


class PayoutGroupOut(CamelModel):
    payout_date: Optional[datetime] = None
    payout_id: Optional[str] = None
    total_amount: Decimal
    orders_count: int
    payout_method: Optional[str] = None
    status: Optional[str] = None
