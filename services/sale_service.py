"""
Sale service: use cases on top of the Sale aggregate.

Handles:
- Create (rejects duplicate sale numbers before building the aggregate)
- Fetch by id and filtered, paginated listing
- Update (diff requested items against the stored ones)
- Cancel (reports failure in its result instead of raising)
- Physical delete

Every mutating use case follows the same cycle: load (or create) the
aggregate, run its operations, validate, save through the repository, then
publish and clear the sale's domain events.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from domain.errors import DomainRuleViolation, ItemNotFoundError
from domain.sale import Sale
from repositories.sale_repository import SaleQueryFilters, SaleRepository
from services.event_publisher import publish_domain_events

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE: int = 100


class SaleNotFoundError(LookupError):
    """Raised when a use case targets a sale that does not exist."""


class DuplicateSaleNumberError(Exception):
    """Raised when creating a sale whose business number is already taken."""


@dataclass(frozen=True, slots=True)
class SaleItemRequest:
    """A product line requested for a new sale."""
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal


@dataclass(frozen=True, slots=True)
class CreateSaleRequest:
    sale_number: str
    customer: str
    branch: str
    items: List[SaleItemRequest]


@dataclass(frozen=True, slots=True)
class UpdateSaleItemRequest:
    """
    A product line in an update.

    sale_item_id is None for lines that should be added as new items.
    """
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    sale_item_id: Optional[UUID] = None


@dataclass(frozen=True, slots=True)
class UpdateSaleCommand:
    sale_id: UUID
    customer: str
    branch: str
    items: List[UpdateSaleItemRequest]


@dataclass(frozen=True, slots=True)
class SaleListQuery:
    """Listing parameters. page is 1-based; size is capped at MAX_PAGE_SIZE."""
    page: int = 1
    size: int = 10
    customer: Optional[str] = None
    branch: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class SaleListResult:
    sales: List[Sale]
    current_page: int
    page_size: int
    total_count: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class CancelSaleResult:
    """
    Result of a cancellation attempt.

    success: True if the sale was cancelled by this call
    message: Outcome description ("Sale not found", violation message, ...)
    """
    sale_id: UUID
    success: bool
    message: str
    sale_number: Optional[str] = None


def _add_item_or_raise(sale: Sale, product_id: UUID, product_name: str, quantity: int, unit_price: Decimal) -> None:
    try:
        sale.add_item(product_id, product_name, quantity, unit_price)
    except DomainRuleViolation as exc:
        raise DomainRuleViolation(f"Item {product_name}: {exc}") from exc


def create_sale(request: CreateSaleRequest, repository: SaleRepository) -> Sale:
    """
    Create and persist a new sale.

    Process:
    1. Reject the request if the sale number already exists
    2. Build the aggregate and add every requested item
    3. Validate the complete sale
    4. Save, then publish the SaleCreated / SaleModified events

    Args:
        request: Sale header and requested items
        repository: Sale persistence

    Returns:
        The persisted Sale

    Raises:
        DuplicateSaleNumberError: sale_number is already in use
        DomainRuleViolation: an item breaks a rule ("Item <name>: <reason>")
        SaleValidationError: the assembled sale is not valid
    """
    if repository.get_by_sale_number(request.sale_number) is not None:
        raise DuplicateSaleNumberError(f"Sale with number {request.sale_number} already exists")

    sale = Sale.create(request.sale_number, request.customer, request.branch)

    for item in request.items:
        _add_item_or_raise(sale, item.product_id, item.product_name, item.quantity, item.unit_price)

    sale.ensure_valid()

    created = repository.save(sale)
    publish_domain_events(created)

    logger.info(
        "Sale created",
        extra={
            "sale_id": str(created.sale_id),
            "sale_number": created.sale_number,
            "total_amount": str(created.total_amount),
        },
    )
    return created


def get_sale(sale_id: UUID, repository: SaleRepository) -> Optional[Sale]:
    """
    Retrieve a sale by ID.

    Returns:
        Sale or None if not found
    """
    return repository.get_by_id(sale_id)


def list_sales(query: SaleListQuery, repository: SaleRepository) -> SaleListResult:
    """
    List sales matching optional customer / branch / date filters.

    Args:
        query: Page (1-based), page size and filters

    Returns:
        SaleListResult with the page of sales and pagination totals

    Example:
        result = list_sales(SaleListQuery(page=2, size=20, branch="Downtown"), repository)
        print(f"Page {result.current_page}/{result.total_pages}: {len(result.sales)} sales")
    """
    if query.page < 1:
        raise ValueError("page must be >= 1")
    if query.size < 1:
        raise ValueError("size must be >= 1")

    size = min(query.size, MAX_PAGE_SIZE)
    offset = (query.page - 1) * size

    filters = SaleQueryFilters(
        customer=query.customer,
        branch=query.branch,
        start_date=query.start_date,
        end_date=query.end_date,
    )
    page = repository.list_sales(filters, limit=size, offset=offset)

    return SaleListResult(
        sales=page.sales,
        current_page=query.page,
        page_size=size,
        total_count=page.total_count,
        total_pages=math.ceil(page.total_count / size),
    )


def update_sale(command: UpdateSaleCommand, repository: SaleRepository) -> Sale:
    """
    Update a sale's header and reconcile its items with the request.

    Process:
    1. Load the sale; reject if missing or cancelled
    2. Replace customer and branch
    3. Remove every stored item whose id is not in the request
       (hard delete via remove_item, not cancellation)
    4. For each requested item with an id, update its quantity; if that item
       no longer exists or is cancelled, add it as a new line instead
    5. Add requested items without an id as new lines
    6. Validate, save, publish events

    Any item that breaks a rule aborts the whole update; nothing is saved.

    Raises:
        SaleNotFoundError: no sale with command.sale_id
        DomainRuleViolation: the sale is cancelled or an item breaks a rule
        SaleValidationError: the resulting sale is not valid
    """
    sale = repository.get_by_id(command.sale_id)
    if sale is None:
        raise SaleNotFoundError(f"Sale with ID {command.sale_id} not found")

    if sale.is_cancelled:
        raise DomainRuleViolation("Cannot update a cancelled sale")

    sale.customer = command.customer
    sale.branch = command.branch

    requested_ids = {item.sale_item_id for item in command.items if item.sale_item_id is not None}
    for item in sale.items:
        if item.sale_item_id not in requested_ids:
            sale.remove_item(item.sale_item_id)

    for item in command.items:
        if item.sale_item_id is None:
            _add_item_or_raise(sale, item.product_id, item.product_name, item.quantity, item.unit_price)
            continue

        try:
            sale.update_item_quantity(item.sale_item_id, item.quantity)
        except ItemNotFoundError:
            _add_item_or_raise(sale, item.product_id, item.product_name, item.quantity, item.unit_price)
        except DomainRuleViolation as exc:
            raise DomainRuleViolation(f"Item {item.product_name}: {exc}") from exc

    sale.ensure_valid()

    updated = repository.save(sale)
    publish_domain_events(updated)

    logger.info(
        "Sale updated",
        extra={
            "sale_id": str(updated.sale_id),
            "item_count": len(updated.active_items),
            "total_amount": str(updated.total_amount),
        },
    )
    return updated


def cancel_sale(sale_id: UUID, repository: SaleRepository) -> CancelSaleResult:
    """
    Cancel a sale.

    Domain failures are reported in the result, never raised, so cancelling
    an already cancelled sale yields success=False with the reason.

    Returns:
        CancelSaleResult describing the outcome
    """
    sale = repository.get_by_id(sale_id)
    if sale is None:
        return CancelSaleResult(sale_id=sale_id, success=False, message="Sale not found")

    try:
        sale.cancel()
    except DomainRuleViolation as exc:
        return CancelSaleResult(
            sale_id=sale_id,
            success=False,
            message=str(exc),
            sale_number=sale.sale_number,
        )

    repository.save(sale)
    publish_domain_events(sale)

    logger.info("Sale cancelled", extra={"sale_id": str(sale.sale_id), "sale_number": sale.sale_number})
    return CancelSaleResult(
        sale_id=sale.sale_id,
        success=True,
        message="Sale cancelled successfully",
        sale_number=sale.sale_number,
    )


def delete_sale(sale_id: UUID, repository: SaleRepository) -> bool:
    """
    Physically delete a sale and its items.

    Returns:
        True if deleted, False if the sale did not exist
    """
    deleted = repository.delete(sale_id)
    if deleted:
        logger.info("Sale deleted", extra={"sale_id": str(sale_id)})
    return deleted


__all__ = [
    "CancelSaleResult",
    "CreateSaleRequest",
    "DuplicateSaleNumberError",
    "MAX_PAGE_SIZE",
    "SaleItemRequest",
    "SaleListQuery",
    "SaleListResult",
    "SaleNotFoundError",
    "UpdateSaleCommand",
    "UpdateSaleItemRequest",
    "cancel_sale",
    "create_sale",
    "delete_sale",
    "get_sale",
    "list_sales",
    "update_sale",
]
