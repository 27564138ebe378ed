# app/schemas/payouts.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator

from app.models.payout_request import PayoutMethod
from app.schemas.common import CamelModel
from app.services.payouts import PayoutAllocation


class PayoutRequestIn(CamelModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    payout_method: str = PayoutMethod.BANK_TRANSFER.value

    @field_validator("payout_method")
    @classmethod
    def validate_payout_method(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {m.value for m in PayoutMethod}:
            raise ValueError(f"must be one of: {', '.join(m.value for m in PayoutMethod)}")
        return v


class PayoutRequestResult(CamelModel):
    requested_amount: Decimal
    payout_method: str
    status: str
    payout_request_id: uuid.UUID
    allocated_amount: Decimal
    earnings_count: int

    @classmethod
    def from_allocation(cls, allocation: PayoutAllocation) -> "PayoutRequestResult":
        return cls(
            requested_amount=allocation.requested_amount,
            payout_method=allocation.payout_method,
            status=allocation.status,
            payout_request_id=allocation.payout_request_id,
            allocated_amount=allocation.allocated_amount,
            earnings_count=len(allocation.earnings),
        )


class PayoutRequestOut(CamelModel):
    id: uuid.UUID
    seller_id: uuid.UUID
    amount: Decimal
    allocated_amount: Decimal
    currency: str
    payout_method: str
    status: str

    bank_account_holder_name: Optional[str] = None
    bank_account_last4: Optional[str] = None
    bank_name: Optional[str] = None

    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None

    requested_at: datetime
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None


class CompletePayoutIn(CamelModel):
    transaction_id: Optional[str] = Field(default=None, max_length=100)


class FailPayoutIn(CamelModel):
    reason: str = Field(min_length=1, max_length=1000)


class HoldEarningIn(CamelModel):
    reason: str = Field(min_length=1, max_length=1000)


class AutoPayoutRunOut(CamelModel):
    created: int
    payouts: List[PayoutRequestResult]
