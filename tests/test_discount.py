"""
Tests for `domain/discount.py`.

Covers rules:
- Quantities below 4 get no discount.
- Quantities 4-9 get 10%, with 4 belonging to the 10% tier.
- Quantities 10-20 get 20%, with 10 belonging to the 20% tier.
- Quantities above 20 are rejected.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.discount import discount_for_quantity
from domain.errors import DomainRuleViolation


@pytest.mark.parametrize("quantity", [1, 2, 3])
def test_no_discount_below_four_items(quantity: int) -> None:
    assert discount_for_quantity(quantity) == Decimal("0")


@pytest.mark.parametrize("quantity", [4, 5, 9])
def test_ten_percent_for_four_to_nine_items(quantity: int) -> None:
    assert discount_for_quantity(quantity) == Decimal("10")


@pytest.mark.parametrize("quantity", [10, 15, 20])
def test_twenty_percent_for_ten_to_twenty_items(quantity: int) -> None:
    assert discount_for_quantity(quantity) == Decimal("20")


def test_every_sellable_quantity_maps_to_its_tier() -> None:
    """Verify the full 1..20 range against the tier table."""

    for quantity in range(1, 21):
        if quantity < 4:
            expected = Decimal("0")
        elif quantity <= 9:
            expected = Decimal("10")
        else:
            expected = Decimal("20")
        assert discount_for_quantity(quantity) == expected, quantity


def test_more_than_twenty_items_is_rejected() -> None:
    with pytest.raises(DomainRuleViolation, match="more than 20"):
        discount_for_quantity(21)
