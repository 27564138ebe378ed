# tests/test_ledger_service.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.errors import ValidationError
from app.crud.pagination import Page
from app.crud.seller_earning import EarningsQuery
from app.models.seller_earning import SellerEarning
from app.services import ledger
from app.services.orders import OrderLine, place_order


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


ADDRESS = {"addressLine1": "1 Test Road", "city": "Mombasa", "country": "KE"}


@pytest.mark.asyncio
async def test_one_earning_per_seller_per_order(db, make):
    buyer = await make.user()
    s1 = await make.seller()
    s2 = await make.seller(hold_period_days=3)
    await db.commit()

    now = utcnow()
    order = await place_order(
        db,
        buyer_id=buyer.id,
        lines=[
            OrderLine(seller_id=s1.id, title="Mug", price=Decimal("10.00"), quantity=2),
            OrderLine(seller_id=s2.id, title="Lamp", price=Decimal("45.50"), quantity=1),
            OrderLine(seller_id=s1.id, title="Plate", price=Decimal("5.00"), quantity=1),
        ],
        shipping_address=ADDRESS,
        fee_percentage=Decimal("10"),
        now=now,
    )

    rows = (
        await db.execute(select(SellerEarning).where(SellerEarning.order_id == order.id))
    ).scalars().all()
    by_seller = {e.seller_id: e for e in rows}
    assert len(rows) == 2

    e1 = by_seller[s1.id]
    assert e1.total_amount == Decimal("25.00")
    assert e1.platform_fee == Decimal("2.50")
    assert e1.seller_amount == Decimal("22.50")
    assert e1.payout_status == "pending"
    assert e1.order_number == order.order_number
    assert e1.eligible_for_payout_at == e1.created_at + timedelta(days=7)

    e2 = by_seller[s2.id]
    assert e2.total_amount == Decimal("45.50")
    assert e2.seller_amount + e2.platform_fee == e2.total_amount
    # seller's own hold period wins over the platform default
    assert e2.eligible_for_payout_at == e2.created_at + timedelta(days=3)

    assert order.platform_fee == e1.platform_fee + e2.platform_fee
    assert order.seller_earnings == e1.seller_amount + e2.seller_amount


@pytest.mark.asyncio
async def test_eligibility_date_cannot_be_moved(db, make):
    seller = await make.seller()
    earning = await make.earning(seller, "10.00")

    with pytest.raises(ValueError):
        earning.eligible_for_payout_at = earning.eligible_for_payout_at + timedelta(days=1)


@pytest.mark.asyncio
async def test_invalid_fee_percentage_records_nothing(db, make):
    buyer = await make.user()
    seller = await make.seller()
    await db.commit()

    with pytest.raises(ValidationError):
        await place_order(
            db,
            buyer_id=buyer.id,
            lines=[OrderLine(seller_id=seller.id, title="Mug", price=Decimal("10.00"), quantity=1)],
            shipping_address=ADDRESS,
            fee_percentage=Decimal("150"),
        )

    assert (await db.execute(select(SellerEarning))).scalars().all() == []


@pytest.mark.asyncio
async def test_summary_buckets(db, make):
    seller = await make.seller()
    now = utcnow()

    await make.earning(seller, "50.00", created_at=now - timedelta(days=20))  # available
    await make.earning(seller, "30.00", created_at=now - timedelta(days=10))  # available
    await make.earning(seller, "20.00", created_at=now - timedelta(days=2))  # still clearing
    await make.earning(seller, "15.00", created_at=now - timedelta(days=40), payout_status="paid")
    await make.earning(seller, "5.00", created_at=now - timedelta(days=40), payout_status="processing")

    other = await make.seller()
    await make.earning(other, "999.00", created_at=now - timedelta(days=30))
    await db.commit()

    summary = await ledger.get_summary(db, seller.id, now=now)

    assert summary.total_orders == 5
    assert summary.total_earnings == Decimal("120.00")
    assert summary.total_platform_fees == Decimal("0.00")
    assert summary.available_for_payout == Decimal("80.00")
    assert summary.pending_clearing == Decimal("20.00")
    assert summary.paid_out == Decimal("15.00")


@pytest.mark.asyncio
async def test_summary_available_plus_clearing_equals_pending(db, make):
    seller = await make.seller()
    now = utcnow()
    for days, amount in [(1, "3.10"), (6, "7.25"), (8, "11.00"), (30, "0.65")]:
        await make.earning(seller, amount, created_at=now - timedelta(days=days))
    await make.earning(seller, "40.00", created_at=now - timedelta(days=30), payout_status="on_hold")
    await db.commit()

    summary = await ledger.get_summary(db, seller.id, now=now)
    assert summary.available_for_payout + summary.pending_clearing == Decimal("22.00")


@pytest.mark.asyncio
async def test_summary_for_seller_without_earnings(db, make):
    seller = await make.seller()
    await db.commit()

    summary = await ledger.get_summary(db, seller.id)
    assert summary.total_orders == 0
    assert summary.total_earnings == Decimal("0.00")
    assert summary.available_for_payout == Decimal("0.00")


@pytest.mark.asyncio
async def test_earning_details_filters_and_paginates(db, make):
    seller = await make.seller()
    now = utcnow()
    for i in range(5):
        await make.earning(seller, "10.00", created_at=now - timedelta(days=30 - i))
    await make.earning(seller, "10.00", created_at=now - timedelta(days=1), payout_status="paid")
    await db.commit()

    rows, total = await ledger.list_earning_details(
        db, EarningsQuery(seller_id=seller.id, statuses=("pending",)), Page(page=2, limit=2)
    )
    assert total == 5
    assert len(rows) == 2
    assert rows[0].created_at > rows[1].created_at

    rows, total = await ledger.list_earning_details(
        db,
        EarningsQuery(seller_id=seller.id, start_date=now - timedelta(days=27)),
        Page(),
    )
    # days 27, 26 and the paid one
    assert total == 3


@pytest.mark.asyncio
async def test_transactions_query_types(db, make):
    seller = await make.seller()
    await make.earning(seller, "10.00")
    await make.earning(seller, "20.00", payout_status="processing")
    await make.earning(seller, "30.00", payout_status="paid")
    await make.earning(seller, "40.00", payout_status="failed")
    await db.commit()

    _, earning_total = await ledger.list_earning_details(db, ledger.transactions_query(seller.id, "earning"), Page())
    _, payout_total = await ledger.list_earning_details(db, ledger.transactions_query(seller.id, "payout"), Page())
    _, all_total = await ledger.list_earning_details(db, ledger.transactions_query(seller.id), Page())

    assert earning_total == 1
    assert payout_total == 2
    assert all_total == 4

    with pytest.raises(ValidationError):
        ledger.transactions_query(seller.id, "refund")
