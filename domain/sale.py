"""
Domain: Sale aggregate.

The Sale is the single consistency boundary for a sale transaction. Items
are added, changed and cancelled only through the operations below.

Invariants:
- A cancelled sale accepts no further item changes and cannot be cancelled again.
- At most one active item per product_id; adding the same product merges quantities.
- An active item's quantity stays in [1, 20]; setting it to 0 cancels the item.
- discount_percentage follows the quantity tier after every quantity change.
- total_amount is the sum of active item totals; cancelled items never count.
- A sale is valid for persistence only with sale_number, customer and branch
  present, at least one active item, and every active item valid.

Rejected operations leave no partial state behind and record no event.
This module performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple
from uuid import UUID, uuid4

from .discount import MAX_IDENTICAL_ITEMS, TOO_MANY_ITEMS_MESSAGE
from .errors import DomainRuleViolation, ItemNotFoundError, SaleValidationError
from .events import DomainEvent, ItemCancelled, SaleCancelled, SaleCreated, SaleModified
from .sale_item import SaleItem
from .time import require_utc_timestamp, utc_now


class SaleStatus(str, Enum):
    ACTIVE = "Active"
    CANCELLED = "Cancelled"


@dataclass(slots=True)
class Sale:
    """
    Sale header plus its owned, ordered line items.

    Build new sales with Sale.create() and persisted ones with Sale.restore().
    version belongs to the persistence layer (0 means never saved).
    """

    sale_id: UUID
    sale_number: str
    customer: str
    branch: str
    sale_date: datetime
    created_at: datetime
    status: SaleStatus = SaleStatus.ACTIVE
    updated_at: Optional[datetime] = None
    version: int = 0
    _items: List[SaleItem] = field(init=False, default_factory=list, repr=False)
    _domain_events: List[DomainEvent] = field(init=False, default_factory=list, repr=False)

    def __post_init__(self) -> None:
        require_utc_timestamp("sale_date", self.sale_date)
        require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, sale_number: str, customer: str, branch: str) -> "Sale":
        """
        Start a new active sale and record SaleCreated.

        Field content is not validated here; callers run is_valid() before
        persisting.
        """

        now = utc_now()
        sale = cls(
            sale_id=uuid4(),
            sale_number=sale_number,
            customer=customer,
            branch=branch,
            sale_date=now,
            created_at=now,
        )
        sale._record(
            SaleCreated(
                sale_id=sale.sale_id,
                sale_number=sale_number,
                customer=customer,
                branch=branch,
                total_amount=Decimal("0.00"),
            )
        )
        return sale

    @classmethod
    def restore(
        cls,
        *,
        sale_id: UUID,
        sale_number: str,
        customer: str,
        branch: str,
        sale_date: datetime,
        created_at: datetime,
        status: SaleStatus,
        updated_at: Optional[datetime],
        version: int,
        items: Iterable[SaleItem],
    ) -> "Sale":
        """Rehydrate a persisted sale. Records no events."""

        sale = cls(
            sale_id=sale_id,
            sale_number=sale_number,
            customer=customer,
            branch=branch,
            sale_date=sale_date,
            created_at=created_at,
            status=status,
            updated_at=updated_at,
            version=version,
        )
        sale._items.extend(items)
        return sale

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def items(self) -> Tuple[SaleItem, ...]:
        return tuple(self._items)

    @property
    def active_items(self) -> Tuple[SaleItem, ...]:
        return tuple(item for item in self._items if not item.is_cancelled)

    @property
    def total_amount(self) -> Decimal:
        """Sum of active item totals, recomputed on every read."""

        return sum((item.total_amount for item in self.active_items), Decimal("0.00"))

    @property
    def domain_events(self) -> Tuple[DomainEvent, ...]:
        return tuple(self._domain_events)

    @property
    def is_cancelled(self) -> bool:
        return self.status is SaleStatus.CANCELLED

    def get_item(self, item_id: UUID) -> Optional[SaleItem]:
        return next((item for item in self._items if item.sale_item_id == item_id), None)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def add_item(self, product_id: UUID, product_name: str, quantity: int, unit_price: Decimal) -> None:
        """
        Add a product line, merging into the active line for the same product.

        The merged quantity is checked before anything changes, so a rejected
        merge leaves the existing line untouched.
        """

        self._require_active("Cannot add items to a cancelled sale")
        if quantity <= 0:
            raise DomainRuleViolation("Quantity must be greater than 0")

        existing = next(
            (item for item in self._items if item.product_id == product_id and not item.is_cancelled),
            None,
        )

        if existing is not None:
            merged_quantity = existing.quantity + quantity
            if merged_quantity > MAX_IDENTICAL_ITEMS:
                raise DomainRuleViolation(TOO_MANY_ITEMS_MESSAGE)
            existing.quantity = merged_quantity
            existing.apply_discount()
        else:
            item = SaleItem(
                sale_item_id=uuid4(),
                sale_id=self.sale_id,
                product_id=product_id,
                product_name=product_name,
                quantity=quantity,
                unit_price=unit_price,
            )
            error = item.validation_error()
            if error is not None:
                raise DomainRuleViolation(error)
            item.apply_discount()
            self._items.append(item)

        self._touch_and_record_modified()

    def remove_item(self, item_id: UUID) -> None:
        """Physically drop an item; unlike cancel_item, no trace remains."""

        self._require_active("Cannot remove items from a cancelled sale")

        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError("Item not found")

        self._items.remove(item)
        self._touch_and_record_modified()

    def update_item_quantity(self, item_id: UUID, new_quantity: int) -> None:
        """Set an active item's quantity; zero or less cancels the item instead."""

        self._require_active("Cannot update items in a cancelled sale")

        item = self.get_item(item_id)
        if item is None or item.is_cancelled:
            raise ItemNotFoundError("Item not found or already cancelled")

        if new_quantity <= 0:
            self.cancel_item(item_id)
            return

        if new_quantity > MAX_IDENTICAL_ITEMS:
            raise DomainRuleViolation(TOO_MANY_ITEMS_MESSAGE)

        item.quantity = new_quantity
        item.apply_discount()
        self._touch_and_record_modified()

    def cancel_item(self, item_id: UUID) -> None:
        """Flag an item as cancelled, keeping its quantity and discount."""

        self._require_active("Cannot cancel items from a cancelled sale")

        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError("Item not found")
        if item.is_cancelled:
            raise DomainRuleViolation("Item is already cancelled")

        item.cancel()
        self.updated_at = utc_now()
        self._record(
            ItemCancelled(
                sale_id=self.sale_id,
                sale_item_id=item.sale_item_id,
                product_name=item.product_name,
                quantity=item.quantity,
            )
        )
        self._record(SaleModified(self.sale_id, self.sale_number, self.total_amount))

    def cancel(self) -> None:
        """Cancel the whole sale. Items are left as they are."""

        self._require_active("Sale is already cancelled")

        self.status = SaleStatus.CANCELLED
        self.updated_at = utc_now()
        self._record(SaleCancelled(self.sale_id, self.sale_number))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_valid(self) -> Tuple[bool, List[str]]:
        """Check persistence readiness, collecting every violation."""

        errors: List[str] = []

        if not self.sale_number or not self.sale_number.strip():
            errors.append("Sale number is required")
        if not self.customer or not self.customer.strip():
            errors.append("Customer is required")
        if not self.branch or not self.branch.strip():
            errors.append("Branch is required")

        active = self.active_items
        if not active:
            errors.append("Sale must have at least one active item")

        for item in active:
            error = item.validation_error()
            if error is not None:
                errors.append(f"Item {item.product_name}: {error}")

        return not errors, errors

    def ensure_valid(self) -> None:
        """Raise SaleValidationError with all violations if is_valid() fails."""

        valid, errors = self.is_valid()
        if not valid:
            raise SaleValidationError(errors)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def clear_domain_events(self) -> None:
        self._domain_events.clear()

    def _record(self, event: DomainEvent) -> None:
        self._domain_events.append(event)

    def _require_active(self, message: str) -> None:
        if self.is_cancelled:
            raise DomainRuleViolation(message)

    def _touch_and_record_modified(self) -> None:
        self.updated_at = utc_now()
        self._record(SaleModified(self.sale_id, self.sale_number, self.total_amount))


__all__ = ["Sale", "SaleStatus"]
