"""Orders Service models package."""

from services.orders_service.models.catalog import (
    Address,
    CartItem,
    CourierPincodeZone,
    Customer,
    Product,
    Voucher,
    VendorToProduct,
)
from services.orders_service.models.enums import (
    TERMINAL_STATUSES,
    CourierZone,
    OrderStatus,
    PaymentMethodCode,
    TotalCode,
)
from services.orders_service.models.orders import (
    Order,
    OrderHistory,
    OrderProduct,
    OrderTotal,
    OrderVendorHistory,
    ParentOrder,
    VendorOrderProduct,
)

__all__ = [
    "Address",
    "CartItem",
    "CourierPincodeZone",
    "CourierZone",
    "Customer",
    "Order",
    "OrderHistory",
    "OrderProduct",
    "OrderStatus",
    "OrderTotal",
    "OrderVendorHistory",
    "ParentOrder",
    "PaymentMethodCode",
    "Product",
    "TERMINAL_STATUSES",
    "TotalCode",
    "Voucher",
    "VendorOrderProduct",
    "VendorToProduct",
]
