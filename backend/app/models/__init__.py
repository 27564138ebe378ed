# Import models here so Alembic can discover metadata.
from app.models.user import User  # noqa: F401
from app.models.seller import Seller  # noqa: F401

# Orders + fulfillment tracking
from app.models.order import Order, OrderItem, OrderStatusHistory  # noqa: F401

# Seller finance
from app.models.payout_request import PayoutRequest  # noqa: F401
from app.models.seller_earning import SellerEarning  # noqa: F401

from app.models.notification import Notification  # noqa: F401
