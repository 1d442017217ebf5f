"""Unit tests for grouping cart lines by vendor."""

from decimal import Decimal

import pytest
from services.orders_service.services.cart import CartLine
from services.orders_service.services.vendor_split import (
    VendorResolutionError,
    allocate_proportionally,
    split_by_vendor,
)


def _line(product_id, vendor_id, price="100.00", quantity=1, options=None):
    return CartLine(
        cart_id=product_id,
        product_id=product_id,
        name=f"Product {product_id}",
        model=f"SKU-{product_id}",
        quantity=quantity,
        unit_price=Decimal(price),
        options=options or [],
        vendor_id=vendor_id,
    )


@pytest.mark.unit
def test_lines_grouped_in_first_seen_vendor_order():
    lines = [_line(1, 7), _line(2, 3), _line(3, 7)]

    groups = split_by_vendor(lines)

    assert list(groups) == [7, 3]
    assert [line.product_id for line in groups[7]] == [1, 3]
    assert [line.product_id for line in groups[3]] == [2]


@pytest.mark.unit
def test_every_line_lands_in_exactly_one_group():
    lines = [_line(i, i % 3) for i in range(1, 10)]

    groups = split_by_vendor(lines)

    assert sorted(line.product_id for g in groups.values() for line in g) == list(
        range(1, 10)
    )


@pytest.mark.unit
def test_unresolved_vendor_fails_whole_split():
    lines = [_line(1, 7), _line(2, None), _line(3, None)]

    with pytest.raises(VendorResolutionError) as exc_info:
        split_by_vendor(lines)

    assert exc_info.value.product_ids == [2, 3]
    assert "2, 3" in str(exc_info.value)


@pytest.mark.unit
def test_cart_line_applies_option_deltas():
    line = _line(
        1,
        7,
        price="250.00",
        quantity=2,
        options=[
            {"name": "Size", "value": "XL", "price": "20.00", "price_prefix": "+"},
            {"name": "Colour", "value": "Plain", "price": "5", "price_prefix": "-"},
        ],
    )

    assert line.effective_unit_price == Decimal("265.00")
    assert line.line_total == Decimal("530.00")


@pytest.mark.unit
@pytest.mark.parametrize(
    "amount, weights, expected",
    [
        pytest.param("100", ["300", "100"], ["75.00", "25.00"], id="even-split"),
        pytest.param(
            "100", ["1", "1", "1"], ["33.33", "33.33", "33.34"], id="last-absorbs"
        ),
        pytest.param("50", ["0", "0"], ["0.00", "50.00"], id="zero-weights"),
    ],
)
def test_allocate_proportionally(amount, weights, expected):
    shares = allocate_proportionally(
        Decimal(amount), [Decimal(w) for w in weights]
    )

    assert shares == [Decimal(e) for e in expected]
    assert sum(shares) == Decimal(amount)


@pytest.mark.unit
def test_allocate_with_no_weights():
    assert allocate_proportionally(Decimal("10"), []) == []
