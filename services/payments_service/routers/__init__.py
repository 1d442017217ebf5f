"""Routers package."""

from services.payments_service.routers.admin import router as admin_router
from services.payments_service.routers.razorpay import router as razorpay_router
from services.payments_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "razorpay_router",
    "webhooks_router",
]
