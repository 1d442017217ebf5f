"""Order totals calculation.

Pure functions only: no database, no settings lookups. Callers pass the tax
rate and shipping method in, and get back the ``order_total`` rows in display
order::

    sub_total, courier_charges?, voucher/discount*, tax?, total

Every row value is rounded to paise before summing, so the ``total`` row is
always exactly the sum of the rows above it.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from libs.common.currency import quantize_money, to_decimal
from services.orders_service.models.enums import TotalCode

SORT_ORDER = {
    TotalCode.SUB_TOTAL: 1,
    TotalCode.COURIER_CHARGES: 3,
    TotalCode.VOUCHER: 4,
    TotalCode.DISCOUNT: 4,
    TotalCode.TAX: 5,
    TotalCode.TOTAL: 9,
}

ZERO = Decimal("0")


@dataclass(frozen=True)
class OptionDelta:
    price: Decimal
    price_prefix: str = "+"

    @property
    def signed(self) -> Decimal:
        if self.price_prefix == "+":
            return to_decimal(self.price)
        if self.price_prefix == "-":
            return -to_decimal(self.price)
        raise ValueError(f"Unsupported option price prefix: {self.price_prefix!r}")


@dataclass(frozen=True)
class LineInput:
    unit_price: Decimal
    quantity: int
    option_deltas: Sequence[OptionDelta] = field(default_factory=tuple)

    @property
    def effective_unit_price(self) -> Decimal:
        return to_decimal(self.unit_price) + sum(
            (delta.signed for delta in self.option_deltas), ZERO
        )

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.effective_unit_price * self.quantity)


@dataclass(frozen=True)
class ShippingMethod:
    title: str
    cost: Decimal
    code: str = TotalCode.COURIER_CHARGES.value


@dataclass(frozen=True)
class Discount:
    """A reduction expressed as a positive amount; stored as a negative row."""

    title: str
    amount: Decimal
    code: TotalCode = TotalCode.DISCOUNT


@dataclass(frozen=True)
class TotalRow:
    code: str
    title: str
    value: Decimal
    sort_order: int


def subtotal(lines: Iterable[LineInput]) -> Decimal:
    return quantize_money(sum((line.line_total for line in lines), ZERO))


def calculate_totals(
    lines: Sequence[LineInput],
    shipping: Optional[ShippingMethod] = None,
    discounts: Sequence[Discount] = (),
    tax_rate: Decimal = ZERO,
    tax_title: str = "Tax",
) -> list[TotalRow]:
    """Build the ordered total rows for one order.

    Zero-cost shipping and a zero tax rate produce no row at all.
    """
    for line in lines:
        if line.quantity <= 0:
            raise ValueError("Line quantity must be positive")
        if line.effective_unit_price < ZERO:
            raise ValueError("Option deltas produce a negative unit price")

    sub_total = subtotal(lines)
    rows = [
        TotalRow(
            code=TotalCode.SUB_TOTAL.value,
            title="Sub-Total",
            value=sub_total,
            sort_order=SORT_ORDER[TotalCode.SUB_TOTAL],
        )
    ]

    if shipping is not None:
        cost = quantize_money(shipping.cost)
        if cost < ZERO:
            raise ValueError("Shipping cost cannot be negative")
        if cost > ZERO:
            rows.append(
                TotalRow(
                    code=shipping.code,
                    title=shipping.title,
                    value=cost,
                    sort_order=SORT_ORDER[TotalCode.COURIER_CHARGES],
                )
            )

    for discount in discounts:
        amount = quantize_money(discount.amount)
        if amount < ZERO:
            raise ValueError("Discount amount must be positive")
        if amount == ZERO:
            continue
        rows.append(
            TotalRow(
                code=TotalCode(discount.code).value,
                title=discount.title,
                value=-amount,
                sort_order=SORT_ORDER[TotalCode(discount.code)],
            )
        )

    rate = to_decimal(tax_rate)
    if rate > ZERO:
        rows.append(
            TotalRow(
                code=TotalCode.TAX.value,
                title=f"{tax_title} ({rate.normalize():f}%)",
                value=quantize_money(sub_total * rate / Decimal("100")),
                sort_order=SORT_ORDER[TotalCode.TAX],
            )
        )

    total_value = sum((row.value for row in rows), ZERO)
    if total_value < ZERO:
        raise ValueError("Discounts exceed the order value")
    rows.append(
        TotalRow(
            code=TotalCode.TOTAL.value,
            title="Total",
            value=total_value,
            sort_order=SORT_ORDER[TotalCode.TOTAL],
        )
    )
    return rows


def grand_total(rows: Sequence[TotalRow]) -> Decimal:
    for row in rows:
        if row.code == TotalCode.TOTAL.value:
            return row.value
    raise ValueError("Totals have no total row")


def row_value(rows: Sequence[TotalRow], code: TotalCode) -> Decimal:
    """Sum of rows with ``code`` (zero when absent)."""
    return sum((row.value for row in rows if row.code == code.value), ZERO)
