# app/models/payout_request.py
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import UTCDateTime, UUIDType, utcnow


class PayoutRequestStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    PAYPAL = "paypal"
    STRIPE = "stripe"


class PayoutRequest(Base):
    """
    One seller withdrawal. The earnings it claimed point back at it through
    SellerEarning.payout_request_id.
    """

    __tablename__ = "payout_requests"
    __table_args__ = (
        Index("ix_payout_requests_seller_requested", "seller_id", "requested_at"),
        Index("ix_payout_requests_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # amount: what the seller asked for
    # allocated_amount: sum of the whole earnings claimed (>= amount)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")

    payout_method: Mapped[str] = mapped_column(String(30), nullable=False, default=PayoutMethod.BANK_TRANSFER.value)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PayoutRequestStatus.PROCESSING.value)

    # Bank details at time of request (last 4 digits only)
    bank_account_holder_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_last4: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
