"""Routers package."""

from services.orders_service.routers.admin_orders import router as admin_orders_router
from services.orders_service.routers.checkout import router as checkout_router
from services.orders_service.routers.orders import router as orders_router

__all__ = [
    "admin_orders_router",
    "checkout_router",
    "orders_router",
]
