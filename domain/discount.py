"""
Domain: quantity-based discount tiers.

Tiers are defined strictly as:
- quantity < 4:          0%
- quantity in [4, 9]:   10%
- quantity in [10, 20]: 20%
- quantity > 20:        not sellable (rejected before a discount is computed)

The boundary at exactly 4 belongs to the 10% tier and the boundary at
exactly 10 belongs to the 20% tier.
"""

from __future__ import annotations

from decimal import Decimal

from .errors import DomainRuleViolation

MAX_IDENTICAL_ITEMS: int = 20
MIN_DISCOUNTED_QUANTITY: int = 4
TOP_TIER_QUANTITY: int = 10

NO_DISCOUNT = Decimal("0")
STANDARD_DISCOUNT = Decimal("10")
TOP_TIER_DISCOUNT = Decimal("20")

TOO_MANY_ITEMS_MESSAGE = f"Cannot sell more than {MAX_IDENTICAL_ITEMS} identical items"


def discount_for_quantity(quantity: int) -> Decimal:
    """
    Resolve the discount percentage (0-100) for a line quantity.

    Raises DomainRuleViolation for quantities above the per-product limit.
    """

    if quantity > MAX_IDENTICAL_ITEMS:
        raise DomainRuleViolation(TOO_MANY_ITEMS_MESSAGE)
    if quantity < MIN_DISCOUNTED_QUANTITY:
        return NO_DISCOUNT
    if quantity < TOP_TIER_QUANTITY:
        return STANDARD_DISCOUNT
    return TOP_TIER_DISCOUNT


__all__ = [
    "MAX_IDENTICAL_ITEMS",
    "TOO_MANY_ITEMS_MESSAGE",
    "discount_for_quantity",
]
