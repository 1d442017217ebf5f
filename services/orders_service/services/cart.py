"""Resolved cart snapshot handed from the catalog lookup to checkout."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from services.orders_service.services.totals import LineInput, OptionDelta


@dataclass(frozen=True)
class CartLine:
    cart_id: int
    product_id: int
    name: str
    model: str
    quantity: int
    unit_price: Decimal
    options: list = field(default_factory=list)
    vendor_id: Optional[int] = None
    vendor_pincode: str = ""
    stock: int = 0
    minimum: int = 1
    enabled: bool = True
    requires_shipping: bool = True
    no_shipping: bool = False

    @property
    def option_deltas(self) -> tuple[OptionDelta, ...]:
        return tuple(
            OptionDelta(
                price=Decimal(str(option.get("price") or "0")),
                price_prefix=option.get("price_prefix") or "+",
            )
            for option in self.options
        )

    def to_line_input(self) -> LineInput:
        return LineInput(
            unit_price=self.unit_price,
            quantity=self.quantity,
            option_deltas=self.option_deltas,
        )

    @property
    def effective_unit_price(self) -> Decimal:
        return self.to_line_input().effective_unit_price

    @property
    def line_total(self) -> Decimal:
        return self.to_line_input().line_total
