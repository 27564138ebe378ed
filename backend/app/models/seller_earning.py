# app/models/seller_earning.py
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.db.base import Base
from app.db.types import JSONType, UTCDateTime, UUIDType, utcnow


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    ON_HOLD = "on_hold"


class SellerEarning(Base):
    """
    What one seller is owed for one order.

    Stores:
      - total_amount: gross of the seller's line items in the order
      - platform_fee / platform_fee_percentage: commission at time of order
      - seller_amount: total_amount - platform_fee
      - payout lifecycle (pending -> processing -> paid | failed, or pending -> on_hold)

    NOTE:
      - eligible_for_payout_at is computed once at creation and never changes.
      - payout_status is only ever moved by conditional UPDATEs that bump `version`,
        so a record can be claimed by at most one payout request.
    """

    __tablename__ = "seller_earnings"
    __table_args__ = (
        UniqueConstraint("seller_id", "order_id", name="uq_seller_earnings_seller_order"),
        Index("ix_seller_earnings_seller_created", "seller_id", "created_at"),
        Index("ix_seller_earnings_status_eligible", "payout_status", "eligible_for_payout_at"),
        Index("ix_seller_earnings_order", "order_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    seller_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Lookup only; deleting an order never removes what the seller is owed
    order_id: Mapped[uuid.UUID] = mapped_column(UUIDType, ForeignKey("orders.id"), nullable=False)
    order_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("10"))
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    seller_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payout_status: Mapped[str] = mapped_column(String(20), nullable=False, default=PayoutStatus.PENDING.value, index=True)
    payout_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("payout_requests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    payout_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # processor transaction id
    payout_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    payout_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    payout_failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    eligible_for_payout_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # NOTE: attribute name cannot be "metadata" in SQLAlchemy Declarative
    earning_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @validates("eligible_for_payout_at")
    def _eligibility_is_write_once(self, _key, value):
        current = self.__dict__.get("eligible_for_payout_at")
        if current is not None and value != current:
            raise ValueError("eligible_for_payout_at cannot change once set")
        return value
