from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import register_error_handlers
from app.core.log_config import configure_logging
import app.models  # noqa: F401  # force model registration

from app.api.v1.admin_orders import router as admin_orders_router
from app.api.v1.admin_payouts import router as admin_payouts_router
from app.api.v1.notifications import router as notifications_router
from app.api.v1.orders import router as orders_router
from app.api.v1.seller_finance import router as seller_finance_router
from app.api.v1.seller_orders import router as seller_orders_router


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Marketplace Payouts API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    @app.get("/")
    def root():
        return {"success": True, "data": {"status": "ok", "environment": settings.ENVIRONMENT}}

    # Routers
    app.include_router(orders_router, prefix="/api/v1")
    app.include_router(seller_finance_router, prefix="/api/v1")
    app.include_router(seller_orders_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")
    app.include_router(admin_payouts_router, prefix="/api/v1")
    app.include_router(admin_orders_router, prefix="/api/v1")

    return app


app = create_application()
