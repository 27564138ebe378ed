from __future__ import annotations

import os
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

# app.core.config reads this at import time; tests never touch the default engine
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.security import create_access_token
from app.db.session import get_db

# Ensure Base + models are registered before create_all
from app.db.base import Base  # noqa: F401
import app.models  # noqa: F401
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.seller import Seller
from app.models.seller_earning import PayoutStatus, SellerEarning
from app.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------
# Database: temporary SQLite file per test unless
# TEST_DATABASE_URL_ASYNC points somewhere else
# ---------------------------------------------------------
@pytest.fixture()
def database_url_async(tmp_path) -> str:
    return os.getenv("TEST_DATABASE_URL_ASYNC") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture()
async def engine(database_url_async: str):
    engine = create_async_engine(database_url_async, future=True, echo=False, poolclass=NullPool)

    # Every test starts from empty tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup, service calls and assertions.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from app.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def headers_for():
    return auth_headers


# ---------------------------------------------------------
# Factories (flush only; tests commit when the API must see the rows)
# ---------------------------------------------------------
class Factory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(self, email: Optional[str] = None, *, is_admin: bool = False, is_active: bool = True) -> User:
        user = User(
            email=User.normalize_email(email or f"user-{uuid.uuid4().hex[:8]}@example.com"),
            full_name="Test User",
            is_admin=is_admin,
            is_active=is_active,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def seller(
        self,
        *,
        user: Optional[User] = None,
        bank_account: Optional[str] = "000123456789",
        city: Optional[str] = "Nairobi",
        minimum_payout_amount: Optional[Decimal] = None,
        hold_period_days: Optional[int] = None,
        auto_payout_enabled: bool = False,
        is_active: bool = True,
    ) -> Seller:
        user = user or await self.user()
        seller = Seller(
            user_id=user.id,
            business_name=f"Shop {uuid.uuid4().hex[:6]}",
            city=city,
            bank_account_holder_name="Jane Seller" if bank_account else None,
            bank_account_number=bank_account,
            bank_name="Test Bank" if bank_account else None,
            bank_account_type="checking" if bank_account else None,
            minimum_payout_amount=minimum_payout_amount,
            hold_period_days=hold_period_days,
            auto_payout_enabled=auto_payout_enabled,
            is_active=is_active,
        )
        self.db.add(seller)
        await self.db.flush()
        return seller

    async def order(
        self,
        seller: Seller,
        *,
        buyer: Optional[User] = None,
        amount: Decimal = Decimal("100.00"),
        tracking_status: str = "pending",
        created_at: Optional[datetime] = None,
        city: str = "Mombasa",
    ) -> Order:
        """Bare order with one line for `seller`; no earnings, no notifications."""
        buyer = buyer or await self.user()
        created_at = created_at or utcnow()
        order = Order(
            order_number=f"ORD-TEST-{uuid.uuid4().hex[:10].upper()}",
            buyer_id=buyer.id,
            total_price=amount,
            shipping_fee=Decimal("0.00"),
            shipping_address={"addressLine1": "1 Test Road", "city": city, "country": "KE"},
            tracking_status=tracking_status,
            created_at=created_at,
            updated_at=created_at,
        )
        order.items = [
            OrderItem(
                position=0,
                seller_id=seller.id,
                title="Widget",
                price=amount,
                quantity=1,
                subtotal=amount,
            )
        ]
        order.status_history = [
            OrderStatusHistory(sequence=1, status=tracking_status, timestamp=created_at, note="Order placed")
        ]
        self.db.add(order)
        await self.db.flush()
        return order

    async def earning(
        self,
        seller: Seller,
        seller_amount: Decimal | str,
        *,
        created_at: Optional[datetime] = None,
        hold_period_days: int = 7,
        payout_status: str = PayoutStatus.PENDING.value,
    ) -> SellerEarning:
        """Earning with no platform fee so seller_amount is exactly what the test sets."""
        amount = Decimal(str(seller_amount))
        created_at = created_at or (utcnow() - timedelta(days=30))
        order = await self.order(seller, amount=amount, created_at=created_at)
        earning = SellerEarning(
            seller_id=seller.id,
            order_id=order.id,
            order_number=order.order_number,
            total_amount=amount,
            platform_fee_percentage=Decimal("0"),
            platform_fee=Decimal("0.00"),
            seller_amount=amount,
            payout_status=payout_status,
            created_at=created_at,
            updated_at=created_at,
            eligible_for_payout_at=created_at + timedelta(days=hold_period_days),
            earning_metadata={},
        )
        self.db.add(earning)
        await self.db.flush()
        return earning


@pytest.fixture()
def make(db) -> Factory:
    return Factory(db)
