"""Unit tests for the order totals calculation.

Pure functions, no database. Every case also checks that the total row is
the sum of the rows above it.
"""

from decimal import Decimal

import pytest
from services.orders_service.models import TotalCode
from services.orders_service.services.totals import (
    Discount,
    LineInput,
    OptionDelta,
    ShippingMethod,
    calculate_totals,
    grand_total,
    row_value,
)

D = Decimal


def _codes(rows):
    return [row.code for row in rows]


def _assert_total_is_sum(rows):
    *components, total = rows
    assert total.code == "total"
    assert total.value == sum((row.value for row in components), D("0"))


# ---------------------------------------------------------------------------
# Table-driven cases
# ---------------------------------------------------------------------------

CASES = [
    pytest.param(
        [LineInput(D("100.00"), 2)],
        None,
        [],
        D("0"),
        ["sub_total", "total"],
        D("200.00"),
        id="single-line-no-extras",
    ),
    pytest.param(
        [
            LineInput(D("100.00"), 3, (OptionDelta(D("10.00"), "+"),)),
            LineInput(D("80.00"), 2, (OptionDelta(D("15.00"), "-"),)),
        ],
        None,
        [],
        D("0"),
        ["sub_total", "total"],
        D("460.00"),
        id="option-deltas-keep-their-sign",
    ),
    pytest.param(
        [LineInput(D("100.00"), 1)],
        ShippingMethod("Courier Charges", D("0")),
        [],
        D("0"),
        ["sub_total", "total"],
        D("100.00"),
        id="zero-cost-shipping-omitted",
    ),
    pytest.param(
        [LineInput(D("100.00"), 1)],
        ShippingMethod("Courier Charges", D("50")),
        [],
        D("0"),
        ["sub_total", "courier_charges", "total"],
        D("150.00"),
        id="shipping-row",
    ),
    pytest.param(
        [LineInput(D("250.00"), 2)],
        ShippingMethod("Courier Charges", D("80")),
        [Discount("Voucher (SAVE30)", D("30"), TotalCode.VOUCHER)],
        D("0"),
        ["sub_total", "courier_charges", "voucher", "total"],
        D("550.00"),
        id="shipping-and-voucher",
    ),
    pytest.param(
        [LineInput(D("200.00"), 1)],
        None,
        [],
        D("18"),
        ["sub_total", "tax", "total"],
        D("236.00"),
        id="flat-tax-rate",
    ),
    pytest.param(
        [LineInput(D("33.333"), 3)],
        None,
        [],
        D("0"),
        ["sub_total", "total"],
        D("100.00"),
        id="line-total-rounds-half-up",
    ),
]


@pytest.mark.unit
@pytest.mark.parametrize(
    "lines, shipping, discounts, tax_rate, codes, expected_total", CASES
)
def test_calculate_totals(lines, shipping, discounts, tax_rate, codes, expected_total):
    rows = calculate_totals(
        lines, shipping=shipping, discounts=discounts, tax_rate=tax_rate
    )

    assert _codes(rows) == codes
    assert grand_total(rows) == expected_total
    _assert_total_is_sum(rows)


@pytest.mark.unit
def test_rows_are_in_display_order():
    rows = calculate_totals(
        [LineInput(D("100"), 1)],
        shipping=ShippingMethod("Courier Charges", D("50")),
        discounts=[Discount("Promo", D("10"))],
        tax_rate=D("5"),
    )

    assert [row.sort_order for row in rows] == sorted(row.sort_order for row in rows)


@pytest.mark.unit
def test_discount_rows_are_negative():
    rows = calculate_totals(
        [LineInput(D("100"), 1)], discounts=[Discount("Promo", D("25.50"))]
    )

    assert row_value(rows, TotalCode.DISCOUNT) == D("-25.50")
    assert grand_total(rows) == D("74.50")


@pytest.mark.unit
def test_tax_title_shows_rate_without_exponent():
    rows = calculate_totals([LineInput(D("100"), 1)], tax_rate=D("18.00"), tax_title="GST")

    tax = next(row for row in rows if row.code == "tax")
    assert tax.title == "GST (18%)"
    assert tax.value == D("18.00")


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "lines, discounts",
    [
        pytest.param([LineInput(D("10"), 0)], [], id="zero-quantity"),
        pytest.param(
            [LineInput(D("10"), 1, (OptionDelta(D("20"), "-"),))],
            [],
            id="negative-unit-price",
        ),
        pytest.param(
            [LineInput(D("10"), 1)], [Discount("Too much", D("11"))], id="over-discount"
        ),
    ],
)
def test_invalid_inputs_are_rejected(lines, discounts):
    with pytest.raises(ValueError):
        calculate_totals(lines, discounts=discounts)


@pytest.mark.unit
def test_unknown_option_prefix_is_rejected():
    with pytest.raises(ValueError):
        OptionDelta(D("5"), "*").signed
