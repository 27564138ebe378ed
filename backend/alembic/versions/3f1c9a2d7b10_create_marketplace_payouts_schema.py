"""create marketplace payouts schema

Revision ID: 3f1c9a2d7b10
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f1c9a2d7b10"
down_revision = None
branch_labels = None
depends_on = None


def _uuid(name: str, *args, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), *args, **kwargs)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # -----------------------------------------------------
    # 1) Accounts
    # -----------------------------------------------------
    op.create_table(
        "users",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("is_admin", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "sellers",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("business_name", sa.String(length=200), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("bank_account_holder_name", sa.String(length=200), nullable=True),
        sa.Column("bank_account_number", sa.String(length=64), nullable=True),
        sa.Column("bank_name", sa.String(length=200), nullable=True),
        sa.Column("bank_account_type", sa.String(length=20), nullable=True),
        sa.Column("minimum_payout_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("hold_period_days", sa.Integer(), nullable=True),
        sa.Column("auto_payout_enabled", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_sellers_user_id", "sellers", ["user_id"], unique=True)

    # -----------------------------------------------------
    # 2) Orders + tracking history
    # -----------------------------------------------------
    op.create_table(
        "orders",
        _uuid("id", primary_key=True, nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=False),
        _uuid("buyer_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("currency", sa.String(length=10), server_default="USD", nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("shipping_fee", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("seller_earnings", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("shipping_address", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("payment_status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.String(length=20), server_default="paypal", nullable=False),
        sa.Column("refund", postgresql.JSONB(), nullable=True),
        sa.Column("tracking_status", sa.String(length=30), server_default="pending", nullable=False),
        sa.Column("tracking_number", sa.String(length=100), nullable=True),
        sa.Column("carrier", sa.String(length=100), nullable=True),
        sa.Column("estimated_delivery", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_location", sa.String(length=200), nullable=True),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_buyer_created", "orders", ["buyer_id", "created_at"])
    op.create_index("ix_orders_tracking_status", "orders", ["tracking_status"])

    op.create_table(
        "order_items",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("order_id", sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        _uuid("product_id", nullable=True),
        _uuid("seller_id", sa.ForeignKey("sellers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_seller_id", "order_items", ["seller_id"])

    op.create_table(
        "order_status_history",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("order_id", sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        _uuid("actor_user_id", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_order_status_history_order_id", "order_status_history", ["order_id"])

    # -----------------------------------------------------
    # 3) Seller finance
    # -----------------------------------------------------
    op.create_table(
        "payout_requests",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("seller_id", sa.ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), server_default="USD", nullable=False),
        sa.Column("payout_method", sa.String(length=30), server_default="bank_transfer", nullable=False),
        sa.Column("status", sa.String(length=20), server_default="processing", nullable=False),
        sa.Column("bank_account_holder_name", sa.String(length=200), nullable=True),
        sa.Column("bank_account_last4", sa.String(length=4), nullable=True),
        sa.Column("bank_name", sa.String(length=200), nullable=True),
        sa.Column("bank_account_type", sa.String(length=20), nullable=True),
        sa.Column("transaction_id", sa.String(length=100), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payout_requests_seller_id", "payout_requests", ["seller_id"])
    op.create_index("ix_payout_requests_seller_requested", "payout_requests", ["seller_id", "requested_at"])
    op.create_index("ix_payout_requests_status", "payout_requests", ["status"])

    op.create_table(
        "seller_earnings",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("seller_id", sa.ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False),
        # No cascade: earnings outlive their order
        _uuid("order_id", sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_fee_percentage", sa.Numeric(5, 2), server_default="10", nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("seller_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payout_status", sa.String(length=20), server_default="pending", nullable=False),
        _uuid("payout_request_id", sa.ForeignKey("payout_requests.id", ondelete="SET NULL"), nullable=True),
        sa.Column("payout_id", sa.String(length=100), nullable=True),
        sa.Column("payout_method", sa.String(length=30), nullable=True),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payout_failure_reason", sa.Text(), nullable=True),
        sa.Column("eligible_for_payout_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("seller_id", "order_id", name="uq_seller_earnings_seller_order"),
    )
    op.create_index("ix_seller_earnings_seller_id", "seller_earnings", ["seller_id"])
    op.create_index("ix_seller_earnings_seller_created", "seller_earnings", ["seller_id", "created_at"])
    op.create_index(
        "ix_seller_earnings_status_eligible",
        "seller_earnings",
        ["payout_status", "eligible_for_payout_at"],
    )
    op.create_index("ix_seller_earnings_payout_status", "seller_earnings", ["payout_status"])
    op.create_index("ix_seller_earnings_payout_request_id", "seller_earnings", ["payout_request_id"])
    op.create_index("ix_seller_earnings_order", "seller_earnings", ["order_id"])

    # -----------------------------------------------------
    # 4) Notifications
    # -----------------------------------------------------
    op.create_table(
        "notifications",
        _uuid("id", primary_key=True, nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=True),
        sa.Column("action_url", sa.String(length=500), nullable=True),
        sa.Column("priority", sa.String(length=10), server_default="medium", nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_expires_at", "notifications", ["expires_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("seller_earnings")
    op.drop_table("payout_requests")
    op.drop_table("order_status_history")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("sellers")
    op.drop_table("users")
