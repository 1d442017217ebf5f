"""FastAPI application for the Orders Service."""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.orders_service.routers import (
    admin_orders_router,
    checkout_router,
    orders_router,
)
from services.payments_service.razorpay_client import check_razorpay_configuration


def create_app() -> FastAPI:
    """Create and configure the Orders Service FastAPI app."""
    check_razorpay_configuration()

    app = FastAPI(
        title="Storefront Orders Service",
        version="0.1.0",
        description="Checkout, vendor order split and order lifecycle.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "orders"}

    app.include_router(checkout_router)
    app.include_router(orders_router)
    app.include_router(admin_orders_router)

    return app


app = create_app()
