# backend/app/models/seller.py
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import UTCDateTime, UUIDType, utcnow


class Seller(Base):
    __tablename__ = "sellers"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    # Owning account; the auth boundary resolves sellers through this
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Used as the status-history location for seller fulfillment actions
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # Bank account (payout destination)
    bank_account_holder_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_account_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # checking | savings

    # Payout settings; NULL falls back to platform configuration
    minimum_payout_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    hold_period_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    auto_payout_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def has_bank_account(self) -> bool:
        return bool((self.bank_account_number or "").strip())

    @property
    def bank_account_last4(self) -> Optional[str]:
        number = (self.bank_account_number or "").strip()
        return number[-4:] if number else None
