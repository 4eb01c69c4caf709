"""
Domain: SaleItem entity.

A line of a Sale for one product (external identity: product_id plus a
denormalized product_name). Items are owned by their Sale and are only
changed through the Sale aggregate's operations.

Rules implemented here:
- An active item's quantity is in [1, 20].
- Unit price must be strictly positive.
- Items with quantity below 4 never carry a discount.
- Cancellation is permanent; quantity and discount are kept as history.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple
from uuid import UUID

from .discount import (
    MAX_IDENTICAL_ITEMS,
    MIN_DISCOUNTED_QUANTITY,
    NO_DISCOUNT,
    TOO_MANY_ITEMS_MESSAGE,
    discount_for_quantity,
)

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")


@dataclass(slots=True)
class SaleItem:
    """
    Line item within a sale.

    discount_percentage is stored explicitly (0-100) so it is persisted with
    the item; apply_discount() keeps it consistent with the quantity tier.
    """

    sale_item_id: UUID
    sale_id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    discount_percentage: Decimal = NO_DISCOUNT
    is_cancelled: bool = False

    @property
    def total_amount(self) -> Decimal:
        """quantity * unit_price * (1 - discount/100), rounded to cents."""

        gross = self.quantity * self.unit_price
        net = gross * (1 - self.discount_percentage / _HUNDRED)
        return net.quantize(_CENTS, rounding=ROUND_HALF_UP)

    def validation_error(self) -> Optional[str]:
        """Return the first rule this item breaks, or None."""

        if self.quantity <= 0:
            return "Quantity must be greater than 0"
        if self.quantity > MAX_IDENTICAL_ITEMS:
            return TOO_MANY_ITEMS_MESSAGE
        if self.unit_price <= 0:
            return "Unit price must be greater than 0"
        if self.quantity < MIN_DISCOUNTED_QUANTITY and self.discount_percentage > 0:
            return "Purchases below 4 items cannot have a discount"
        return None

    def is_valid(self) -> Tuple[bool, str]:
        error = self.validation_error()
        return error is None, error or ""

    def calculate_discount(self) -> Decimal:
        return discount_for_quantity(self.quantity)

    def apply_discount(self) -> None:
        self.discount_percentage = self.calculate_discount()

    def cancel(self) -> None:
        self.is_cancelled = True


__all__ = ["SaleItem"]
