# backend/app/core/config.py

from __future__ import annotations

from decimal import Decimal
from typing import Optional
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    If these appear in the URL query, SQLAlchemy can end up passing them to
    asyncpg.connect(), causing:
      TypeError: connect() got an unexpected keyword argument 'sslmode'
    """
    parts = urlsplit(url)
    if not parts.query or not parts.scheme.startswith("postgresql"):
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # -----------------------------
    # DB
    # -----------------------------
    # postgresql+asyncpg://... in production, sqlite+aiosqlite:///... locally
    DATABASE_URL_ASYNC: str
    DATABASE_URL_SYNC: Optional[str] = None

    # -----------------------------
    # JWT
    # -----------------------------
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # -----------------------------
    # Marketplace finance
    # -----------------------------
    PLATFORM_FEE_PERCENTAGE: Decimal = Decimal("10")
    PAYOUT_HOLD_PERIOD_DAYS: int = 7
    PAYOUT_ALLOCATION_MAX_ATTEMPTS: int = 3
    PAYOUT_CURRENCY: str = "USD"

    # Reject orders whose total does not match the item subtotals + shipping.
    # Off by default: legacy clients compute fees elsewhere.
    ENFORCE_ORDER_TOTALS: bool = False

    # Default lifetime for notifications created without expires_at (None = keep)
    NOTIFICATION_TTL_DAYS: Optional[int] = None

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == "dev-secret-change-me":
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if not (Decimal("0") <= self.PLATFORM_FEE_PERCENTAGE <= Decimal("100")):
            raise ValueError("PLATFORM_FEE_PERCENTAGE must be between 0 and 100.")
        if self.PAYOUT_HOLD_PERIOD_DAYS < 0:
            raise ValueError("PAYOUT_HOLD_PERIOD_DAYS cannot be negative.")
        if self.PAYOUT_ALLOCATION_MAX_ATTEMPTS < 1:
            raise ValueError("PAYOUT_ALLOCATION_MAX_ATTEMPTS must be at least 1.")


settings = Settings()
