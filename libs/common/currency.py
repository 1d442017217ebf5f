"""Money helpers for the storefront.

Storage unit: rupees as ``Decimal`` (order tables use NUMERIC(15, 4)).
Gateway unit: paise, the minor unit Razorpay expects (100 paise = ₹1).

All arithmetic stays in ``Decimal``; conversion to paise rounds half-up.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

MINOR_UNITS_PER_MAJOR: int = 100
CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Coerce a number to ``Decimal`` without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Number) -> Decimal:
    """Round to two decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert rupees to paise. ₹1 = 100 paise."""
    return int(quantize_money(amount) * MINOR_UNITS_PER_MAJOR)


def from_minor_units(minor: int) -> Decimal:
    """Convert paise to rupees. 100 paise = ₹1."""
    return quantize_money(Decimal(minor) / MINOR_UNITS_PER_MAJOR)
