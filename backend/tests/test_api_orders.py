# tests/test_api_orders.py
from __future__ import annotations

from decimal import Decimal

import pytest

from app.models.user import User

ADDRESS = {"addressLine1": "1 Test Road", "city": "Kisumu", "postalCode": "40100", "country": "ke"}


async def seller_user(db, seller) -> User:
    return await db.get(User, seller.user_id)


async def place(client, headers, seller, **overrides):
    payload = {
        "items": [{"sellerId": str(seller.id), "title": "Basket", "price": "40.00", "quantity": 1}],
        "shippingAddress": ADDRESS,
        "shippingFee": "4.00",
    }
    payload.update(overrides)
    return await client.post("/api/v1/orders", json=payload, headers=headers)


@pytest.mark.asyncio
async def test_place_and_fetch_order(client, db, make, headers_for):
    buyer = await make.user()
    seller = await make.seller()
    await db.commit()

    r = await place(client, headers_for(buyer), seller)

    assert r.status_code == 201
    order = r.json()["data"]
    assert order["orderNumber"].startswith("ORD-")
    assert Decimal(order["totalPrice"]) == Decimal("44.00")
    assert Decimal(order["platformFee"]) == Decimal("4.00")
    assert Decimal(order["sellerEarnings"]) == Decimal("36.00")
    assert order["shippingAddress"]["city"] == "Kisumu"
    assert order["shippingAddress"]["country"] == "KE"
    assert order["tracking"]["status"] == "pending"
    assert len(order["tracking"]["statusHistory"]) == 1

    r = await client.get(f"/api/v1/orders/{order['id']}", headers=headers_for(buyer))
    assert r.status_code == 200
    assert r.json()["data"]["orderNumber"] == order["orderNumber"]

    stranger = await make.user()
    await db.commit()
    r = await client.get(f"/api/v1/orders/{order['id']}", headers=headers_for(stranger))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_place_order_validation(client, db, make, headers_for):
    buyer = await make.user()
    seller = await make.seller()
    await db.commit()

    r = await place(client, headers_for(buyer), seller, items=[])
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"

    r = await place(client, headers_for(buyer), seller, paymentMethod="cash")
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_seller_fulfillment_flow(client, db, make, headers_for):
    buyer = await make.user()
    seller = await make.seller(city="Nairobi")
    user = await seller_user(db, seller)
    await db.commit()

    order = (await place(client, headers_for(buyer), seller)).json()["data"]
    base = f"/api/v1/sellers/me/orders/{order['id']}"

    r = await client.put(f"{base}/status", json={"status": "confirmed", "note": "Packed"}, headers=headers_for(user))
    assert r.status_code == 200
    assert r.json()["data"]["tracking"]["status"] == "confirmed"

    r = await client.put(
        f"{base}/ship",
        json={"trackingNumber": "TRK-1", "carrier": "G4S", "estimatedDelivery": "2030-01-05T10:00:00Z"},
        headers=headers_for(user),
    )
    assert r.status_code == 200
    tracking = r.json()["data"]["tracking"]
    assert tracking["status"] == "shipped"
    assert tracking["trackingNumber"] == "TRK-1"
    assert tracking["carrier"] == "G4S"
    assert tracking["estimatedDelivery"].startswith("2030-01-05T10:00:00")

    r = await client.put(f"{base}/deliver", headers=headers_for(user))
    assert r.status_code == 200
    tracking = r.json()["data"]["tracking"]
    assert tracking["status"] == "delivered"
    assert [h["status"] for h in tracking["statusHistory"]] == ["pending", "confirmed", "shipped", "delivered"]
    assert tracking["statusHistory"][-1]["location"] == "Kisumu"

    r = await client.get("/api/v1/notifications", headers=headers_for(buyer))
    types = [n["type"] for n in r.json()["data"]]
    assert sorted(types) == sorted(["order_created", "order_confirmed", "order_shipped", "order_delivered"])

    r = await client.put(f"{base}/status", json={"status": "canceled"}, headers=headers_for(user))
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_transition"


@pytest.mark.asyncio
async def test_invalid_transition_lists_allowed_statuses(client, db, make, headers_for):
    seller = await make.seller()
    order = await make.order(seller)
    user = await seller_user(db, seller)
    await db.commit()

    r = await client.put(f"/api/v1/sellers/me/orders/{order.id}/deliver", headers=headers_for(user))

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "invalid_transition"
    assert body["data"] == {"current": "pending", "allowed": ["confirmed", "processing", "shipped", "canceled"]}


@pytest.mark.asyncio
async def test_ship_requires_tracking_fields(client, db, make, headers_for):
    seller = await make.seller()
    order = await make.order(seller)
    user = await seller_user(db, seller)
    await db.commit()

    r = await client.put(
        f"/api/v1/sellers/me/orders/{order.id}/ship",
        json={"trackingNumber": "  ", "carrier": "DHL"},
        headers=headers_for(user),
    )
    assert r.status_code == 400

    r = await client.put(
        f"/api/v1/sellers/me/orders/{order.id}/status",
        json={"status": "shipped"},
        headers=headers_for(user),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"

    r = await client.put(
        f"/api/v1/sellers/me/orders/{order.id}/status",
        json={"status": "teleported"},
        headers=headers_for(user),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_seller_sees_only_own_orders(client, db, make, headers_for):
    mine = await make.seller()
    theirs = await make.seller()
    own_order = await make.order(mine)
    await make.order(mine, tracking_status="shipped")
    foreign_order = await make.order(theirs)
    user = await seller_user(db, mine)
    await db.commit()

    r = await client.get("/api/v1/sellers/me/orders", headers=headers_for(user))
    body = r.json()
    assert body["pagination"]["total"] == 2

    r = await client.get("/api/v1/sellers/me/orders", params={"status": "shipped"}, headers=headers_for(user))
    assert r.json()["pagination"]["total"] == 1

    r = await client.get(f"/api/v1/sellers/me/orders/{own_order.id}", headers=headers_for(user))
    assert r.status_code == 200

    r = await client.get(f"/api/v1/sellers/me/orders/{foreign_order.id}", headers=headers_for(user))
    assert r.status_code == 404

    r = await client.put(
        f"/api/v1/sellers/me/orders/{foreign_order.id}/status",
        json={"status": "confirmed"},
        headers=headers_for(user),
    )
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"
