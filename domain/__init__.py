"""
Sale domain model: the Sale aggregate, its line items, discount tiers and
the notifications a sale emits. Pure Python, no I/O.
"""

from .discount import MAX_IDENTICAL_ITEMS, discount_for_quantity
from .errors import DomainRuleViolation, ItemNotFoundError, SaleValidationError
from .events import DomainEvent, ItemCancelled, SaleCancelled, SaleCreated, SaleModified
from .sale import Sale, SaleStatus
from .sale_item import SaleItem

__all__ = [
    "DomainEvent",
    "DomainRuleViolation",
    "ItemCancelled",
    "ItemNotFoundError",
    "MAX_IDENTICAL_ITEMS",
    "Sale",
    "SaleCancelled",
    "SaleCreated",
    "SaleItem",
    "SaleModified",
    "SaleStatus",
    "SaleValidationError",
    "discount_for_quantity",
]
