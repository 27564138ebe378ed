# app/core/ledger.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from app.core.errors import ValidationError

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FeeSplit:
    total_amount: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    seller_amount: Decimal


def split_platform_fee(total_amount: Decimal, fee_percentage: Decimal) -> FeeSplit:
    """
    Central commission policy.

    platform_fee = total * pct / 100 (rounded to cents)
    seller_amount = total - platform_fee, so the two always add back up exactly.
    """
    pct = Decimal(str(fee_percentage))
    if pct < 0 or pct > HUNDRED:
        raise ValidationError(f"Platform fee percentage must be between 0 and 100, got {pct}")

    total = to_money(total_amount)
    if total <= 0:
        raise ValidationError("Earning total amount must be greater than zero")

    fee = to_money(total * pct / HUNDRED)
    return FeeSplit(
        total_amount=total,
        platform_fee_percentage=pct,
        platform_fee=fee,
        seller_amount=total - fee,
    )


def derive_eligibility(created_at: datetime, hold_period_days: int) -> datetime:
    """When an earning created at `created_at` may be paid out."""
    if hold_period_days < 0:
        raise ValidationError("Hold period cannot be negative")
    return created_at + timedelta(days=hold_period_days)


def line_subtotal(price: Decimal, quantity: int) -> Decimal:
    return to_money(to_money(price) * quantity)


class _SellerLine(Protocol):
    seller_id: uuid.UUID
    subtotal: Decimal


def seller_totals(items: Iterable[_SellerLine]) -> dict[uuid.UUID, Decimal]:
    """
    Gross amount owed per seller for one order.
    Keys keep the order in which sellers first appear in the items.
    """
    totals: dict[uuid.UUID, Decimal] = {}
    for item in items:
        totals[item.seller_id] = totals.get(item.seller_id, Decimal("0.00")) + to_money(item.subtotal)
    return totals
