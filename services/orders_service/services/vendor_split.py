"""Split a validated cart into one line group per owning vendor."""

from decimal import Decimal
from typing import Sequence

from libs.common.currency import quantize_money
from services.orders_service.services.cart import CartLine


class VendorResolutionError(Exception):
    """A cart line has no owning vendor."""

    def __init__(self, product_ids: Sequence[int]):
        self.product_ids = list(product_ids)
        super().__init__(
            "No vendor found for product(s): "
            + ", ".join(str(pid) for pid in self.product_ids)
        )


def split_by_vendor(lines: Sequence[CartLine]) -> dict[int, list[CartLine]]:
    """Group lines by vendor, keeping first-seen vendor order.

    Any line without a vendor fails the whole split; nothing is dropped.
    """
    unresolved = [line.product_id for line in lines if line.vendor_id is None]
    if unresolved:
        raise VendorResolutionError(unresolved)

    groups: dict[int, list[CartLine]] = {}
    for line in lines:
        groups.setdefault(line.vendor_id, []).append(line)
    return groups


def allocate_proportionally(
    amount: Decimal, weights: Sequence[Decimal]
) -> list[Decimal]:
    """Split ``amount`` across ``weights``; the last share absorbs rounding.

    Used to spread a checkout-level voucher over the vendor orders.
    """
    if not weights:
        return []
    amount = quantize_money(amount)
    total_weight = sum(weights, Decimal("0"))
    if total_weight <= 0:
        shares = [Decimal("0.00")] * len(weights)
        shares[-1] = amount
        return shares

    shares = [
        quantize_money(amount * weight / total_weight) for weight in weights[:-1]
    ]
    shares.append(amount - sum(shares, Decimal("0")))
    return shares
