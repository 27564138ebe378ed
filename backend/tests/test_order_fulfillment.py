# tests/test_order_fulfillment.py
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.config import settings
from app.core.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from app.models.notification import Notification
from app.models.order import Order
from app.services import fulfillment
from app.services.orders import OrderLine, check_order_total, generate_order_number, place_order, refund_order

ADDRESS = {"addressLine1": "1 Test Road", "city": "Mombasa", "country": "KE"}


async def buyer_notifications(db, order) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == order.buyer_id).order_by(Notification.created_at)
    return list((await db.execute(stmt)).scalars().all())


@pytest.mark.asyncio
async def test_place_order_records_history_and_notifies_buyer(db, make):
    buyer = await make.user()
    seller = await make.seller()
    await db.commit()

    order = await place_order(
        db,
        buyer_id=buyer.id,
        lines=[OrderLine(seller_id=seller.id, title="Mug", price=Decimal("12.50"), quantity=2)],
        shipping_address=ADDRESS,
        shipping_fee=Decimal("5.00"),
    )

    assert order.order_number.startswith("ORD-")
    assert order.total_price == Decimal("30.00")
    assert order.items[0].subtotal == Decimal("25.00")
    assert order.tracking_status == "pending"
    assert [h.status for h in order.status_history] == ["pending"]

    (note,) = await buyer_notifications(db, order)
    assert note.type == "order_created"
    assert note.data["orderNumber"] == order.order_number
    assert note.action_url == f"/orders/{order.id}"


def test_order_number_format():
    number = generate_order_number()
    prefix, day, suffix = number.split("-")
    assert prefix == "ORD"
    assert len(day) == 8 and day.isdigit()
    assert len(suffix) == 6 and suffix.isalnum() and suffix.upper() == suffix


def test_order_total_check(monkeypatch):
    assert check_order_total(Decimal("20.00"), Decimal("5.00"), None) == Decimal("25.00")

    monkeypatch.setattr(settings, "ENFORCE_ORDER_TOTALS", False)
    assert check_order_total(Decimal("20.00"), Decimal("5.00"), Decimal("22.00")) == Decimal("22.00")

    monkeypatch.setattr(settings, "ENFORCE_ORDER_TOTALS", True)
    with pytest.raises(ValidationError):
        check_order_total(Decimal("20.00"), Decimal("5.00"), Decimal("22.00"))
    assert check_order_total(Decimal("20.00"), Decimal("5.00"), Decimal("25.00")) == Decimal("25.00")


@pytest.mark.asyncio
async def test_ship_appends_history_and_sends_one_high_priority_notification(db, make):
    seller = await make.seller(city="Nairobi")
    order = await make.order(seller)
    await db.commit()

    updated = await fulfillment.ship_seller_order(
        db,
        seller,
        order.id,
        actor_user_id=seller.user_id,
        tracking_number="1Z999",
        carrier="DHL",
    )

    assert updated.tracking_status == "shipped"
    assert updated.tracking_number == "1Z999"
    assert updated.carrier == "DHL"
    assert updated.current_location == "Nairobi"

    history = updated.status_history
    assert [h.status for h in history] == ["pending", "shipped"]
    assert history[-1].note == "Shipped via DHL - Tracking: 1Z999"
    assert history[-1].location == "Nairobi"
    assert history[-1].actor_user_id == seller.user_id

    notes = await buyer_notifications(db, order)
    assert [n.type for n in notes] == ["order_shipped"]
    assert notes[0].priority == "high"
    assert notes[0].data["trackingNumber"] == "1Z999"
    assert notes[0].message.endswith("has been shipped. Tracking number: 1Z999")


@pytest.mark.asyncio
async def test_repeated_transition_appends_twice(db, make):
    seller = await make.seller()
    order = await make.order(seller)
    await db.commit()

    for _ in range(2):
        await fulfillment.update_seller_order_status(
            db, seller, order.id, "shipped", actor_user_id=seller.user_id, tracking_number="T1", carrier="UPS"
        )

    reloaded = await fulfillment.get_seller_order(db, seller.id, order.id)
    assert [h.status for h in reloaded.status_history] == ["pending", "shipped", "shipped"]
    assert [h.sequence for h in reloaded.status_history] == [1, 2, 3]
    notes = await buyer_notifications(db, order)
    assert [n.type for n in notes] == ["order_shipped", "order_shipped"]


@pytest.mark.asyncio
async def test_shipping_requires_tracking_number_and_carrier(db, make):
    seller = await make.seller()
    order = await make.order(seller)
    await db.commit()

    with pytest.raises(ValidationError):
        await fulfillment.update_seller_order_status(
            db, seller, order.id, "shipped", actor_user_id=seller.user_id, tracking_number="T1"
        )

    assert order.tracking_status == "pending"
    assert len(order.status_history) == 1
    assert await buyer_notifications(db, order) == []


@pytest.mark.asyncio
async def test_deliver_uses_shipping_city(db, make):
    seller = await make.seller(city="Nairobi")
    order = await make.order(seller, tracking_status="shipped", city="Kisumu")
    await db.commit()

    updated = await fulfillment.deliver_seller_order(db, seller, order.id, actor_user_id=seller.user_id)

    assert updated.tracking_status == "delivered"
    assert updated.status_history[-1].location == "Kisumu"
    assert updated.status_history[-1].note == "Order delivered successfully"
    notes = await buyer_notifications(db, order)
    assert notes[-1].type == "order_delivered"
    assert notes[-1].priority == "high"


@pytest.mark.asyncio
async def test_deliver_before_shipping_is_rejected(db, make):
    seller = await make.seller()
    order = await make.order(seller, tracking_status="confirmed")
    await db.commit()

    with pytest.raises(InvalidTransitionError):
        await fulfillment.deliver_seller_order(db, seller, order.id, actor_user_id=seller.user_id)


@pytest.mark.asyncio
async def test_terminal_orders_are_frozen(db, make):
    seller = await make.seller()
    order = await make.order(seller, tracking_status="canceled")
    await db.commit()

    with pytest.raises(InvalidTransitionError):
        await fulfillment.update_seller_order_status(
            db, seller, order.id, "processing", actor_user_id=seller.user_id
        )


@pytest.mark.asyncio
async def test_other_sellers_cannot_see_the_order(db, make):
    owner = await make.seller()
    stranger = await make.seller()
    order = await make.order(owner)
    await db.commit()

    with pytest.raises(NotFoundError):
        await fulfillment.update_seller_order_status(
            db, stranger, order.id, "confirmed", actor_user_id=stranger.user_id
        )


@pytest.mark.asyncio
async def test_concurrent_write_to_same_order_conflicts(db, make, sessionmaker):
    seller = await make.seller()
    order = await make.order(seller)
    seller_id, actor_id, order_id, buyer_id = seller.id, seller.user_id, order.id, order.buyer_id
    await db.commit()

    stale = await fulfillment.get_seller_order(db, seller_id, order_id)

    async with sessionmaker() as other:
        fresh = await fulfillment.get_seller_order(other, seller_id, order_id)
        await fulfillment.transition(other, fresh, "confirmed", actor_user_id=actor_id)

    with pytest.raises(ConflictError):
        await fulfillment.transition(db, stale, "canceled", actor_user_id=actor_id)

    current = (
        await db.execute(select(Order).where(Order.id == order_id).execution_options(populate_existing=True))
    ).scalar_one()
    assert current.tracking_status == "confirmed"
    assert [h.status for h in current.status_history] == ["pending", "confirmed"]
    # the losing write staged no notification
    notes = (await db.execute(select(Notification.type).where(Notification.user_id == buyer_id))).scalars().all()
    assert notes == ["order_confirmed"]


@pytest.mark.asyncio
async def test_refund_records_refund_and_notifies_buyer(db, make):
    seller = await make.seller()
    order = await make.order(seller, tracking_status="delivered", amount=Decimal("80.00"))
    order_id = order.id
    await db.commit()

    refunded = await refund_order(db, order_id, amount=Decimal("30"), reason="Damaged in transit")

    assert refunded.payment_status == "refunded"
    assert refunded.tracking_status == "delivered"
    assert refunded.refund["status"] == "completed"
    assert refunded.refund["amount"] == "30.00"
    assert refunded.refund["reason"] == "Damaged in transit"
    assert refunded.refund["processedAt"]

    (note,) = await buyer_notifications(db, refunded)
    assert note.type == "payment_success"
    assert note.title == "Refund Processed"
    assert note.priority == "high"
    assert "$30.00" in note.message
    assert note.data["orderNumber"] == refunded.order_number


@pytest.mark.asyncio
async def test_refund_is_validated_and_happens_once(db, make):
    seller = await make.seller()
    order = await make.order(seller, amount=Decimal("50.00"))
    order_id, seller_id = order.id, seller.id
    await db.commit()

    with pytest.raises(ValidationError):
        await refund_order(db, order_id, amount=Decimal("50.01"), reason="Too much")
    with pytest.raises(ValidationError):
        await refund_order(db, order_id, amount=Decimal("10"), reason="  ")
    with pytest.raises(NotFoundError):
        await refund_order(db, seller_id, amount=Decimal("10"), reason="Wrong id")

    await refund_order(db, order_id, amount=Decimal("50.00"), reason="Never arrived")
    with pytest.raises(ConflictError):
        await refund_order(db, order_id, amount=Decimal("1.00"), reason="Again")


@pytest.mark.asyncio
async def test_refund_racing_a_transition_conflicts(db, make, sessionmaker):
    seller = await make.seller()
    order = await make.order(seller)
    seller_id, actor_id, order_id = seller.id, seller.user_id, order.id
    await db.commit()

    stale = await db.get(Order, order_id)

    async with sessionmaker() as other:
        fresh = await fulfillment.get_seller_order(other, seller_id, order_id)
        await fulfillment.transition(other, fresh, "confirmed", actor_user_id=actor_id)

    assert stale.payment_status == "pending"
    with pytest.raises(ConflictError):
        await refund_order(db, order_id, amount=Decimal("10"), reason="Buyer changed mind")

    current = (
        await db.execute(select(Order).where(Order.id == order_id).execution_options(populate_existing=True))
    ).scalar_one()
    assert current.payment_status == "pending"
    assert current.refund is None
