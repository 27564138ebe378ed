# app/schemas/orders.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from app.core.fulfillment import TrackingStatus
from app.models.order import Order, PaymentMethod
from app.schemas.common import CamelModel


def _strip_required(value: str) -> str:
    v = " ".join((value or "").split())
    if not v:
        raise ValueError("must not be blank")
    return v


class ShippingAddress(CamelModel):
    address_line1: str = Field(min_length=1, max_length=200)
    address_line2: Optional[str] = Field(default=None, max_length=200)
    city: str = Field(min_length=1, max_length=120)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    country: str = Field(min_length=2, max_length=2)

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: str) -> str:
        return v.strip().upper()


class OrderItemIn(CamelModel):
    product_id: Optional[uuid.UUID] = None
    seller_id: uuid.UUID
    title: str = Field(min_length=1, max_length=255)
    price: Decimal = Field(ge=0, decimal_places=2)
    quantity: int = Field(ge=1)


class PlaceOrderIn(CamelModel):
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_address: ShippingAddress
    shipping_fee: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    # Omit to store items + shipping
    total_price: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    payment_method: str = PaymentMethod.PAYPAL.value


class OrderStatusUpdateIn(CamelModel):
    status: str
    note: Optional[str] = Field(default=None, max_length=1000)
    tracking_number: Optional[str] = Field(default=None, max_length=100)
    carrier: Optional[str] = Field(default=None, max_length=100)

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in {s.value for s in TrackingStatus}:
            raise ValueError(f"must be one of: {', '.join(s.value for s in TrackingStatus)}")
        return v


class ShipOrderIn(CamelModel):
    tracking_number: str = Field(max_length=100)
    carrier: str = Field(max_length=100)
    estimated_delivery: Optional[datetime] = None

    @field_validator("tracking_number", "carrier")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class OrderItemOut(CamelModel):
    product_id: Optional[uuid.UUID] = None
    seller_id: uuid.UUID
    title: str
    price: Decimal
    quantity: int
    subtotal: Decimal


class StatusHistoryOut(CamelModel):
    status: str
    timestamp: datetime
    location: Optional[str] = None
    note: Optional[str] = None


class TrackingOut(CamelModel):
    status: str
    status_history: List[StatusHistoryOut]
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    current_location: Optional[str] = None


class OrderOut(CamelModel):
    id: uuid.UUID
    order_number: str
    buyer_id: uuid.UUID
    items: List[OrderItemOut]

    currency: str
    total_price: Decimal
    shipping_fee: Decimal
    platform_fee: Decimal
    seller_earnings: Decimal

    shipping_address: Dict[str, Any]
    payment_status: str
    payment_method: str
    refund: Optional[Dict[str, Any]] = None

    tracking: TrackingOut

    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            items=[OrderItemOut.model_validate(i) for i in order.items],
            currency=order.currency,
            total_price=order.total_price,
            shipping_fee=order.shipping_fee,
            platform_fee=order.platform_fee,
            seller_earnings=order.seller_earnings,
            shipping_address=order.shipping_address or {},
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            refund=order.refund,
            tracking=TrackingOut(
                status=order.tracking_status,
                status_history=[StatusHistoryOut.model_validate(h) for h in order.status_history],
                tracking_number=order.tracking_number,
                carrier=order.carrier,
                estimated_delivery=order.estimated_delivery,
                current_location=order.current_location,
            ),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class RefundOrderIn(CamelModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    reason: str = Field(max_length=500)

    @field_validator("reason")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)
