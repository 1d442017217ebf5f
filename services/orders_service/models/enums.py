"""Enum definitions for orders service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class OrderStatus(enum.IntEnum):
    """Storefront ``order_status_id`` codes.

    These integers are shared with the legacy storefront schema; adding a
    status means updating every reader of ``order_status_id`` as well.
    """

    PENDING = 0
    PROCESSING = 2
    SHIPPED = 3
    DELIVERED = 4
    CANCELLED = 7
    REFUNDED = 11

    @property
    def label(self) -> str:
        return self.name.capitalize()


TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


class PaymentMethodCode(str, enum.Enum):
    COD = "cod"
    RAZORPAY = "razorpay"

    @property
    def title(self) -> str:
        if self is PaymentMethodCode.COD:
            return "Cash On Delivery"
        return "Razorpay (Cards, UPI, NetBanking, Wallets)"


class TotalCode(str, enum.Enum):
    SUB_TOTAL = "sub_total"
    COURIER_CHARGES = "courier_charges"
    VOUCHER = "voucher"
    DISCOUNT = "discount"
    TAX = "tax"
    TOTAL = "total"


class CourierZone(str, enum.Enum):
    LOCAL = "local"
    ZONAL = "zonal"
    NATIONAL = "national"
