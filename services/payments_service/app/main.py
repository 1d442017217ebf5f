"""FastAPI application for the Payments Service."""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.payments_service.razorpay_client import check_razorpay_configuration
from services.payments_service.routers import (
    admin_router,
    razorpay_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Payments Service FastAPI app."""
    check_razorpay_configuration()

    app = FastAPI(
        title="Storefront Payments Service",
        version="0.1.0",
        description="Razorpay orders, verification, webhooks and refunds.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(razorpay_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)

    return app


app = create_app()
