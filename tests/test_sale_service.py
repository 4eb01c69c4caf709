"""
Tests for `services/sale_service.py`.

Covers use case rules:
- Sale numbers are unique; duplicates are rejected before anything is built.
- Invalid items abort creation and nothing is saved.
- Updates remove omitted items, update listed ones and add new ones.
- Cancelling reports failures in its result instead of raising.
- Listing validates paging, caps the page size and computes total pages.
- Events are drained after every successful save.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from domain.errors import DomainRuleViolation, SaleValidationError
from domain.sale import SaleStatus
from repositories.sale_repository import ConcurrencyConflictError
from services.sale_service import (
    MAX_PAGE_SIZE,
    CreateSaleRequest,
    DuplicateSaleNumberError,
    SaleItemRequest,
    SaleListQuery,
    SaleNotFoundError,
    UpdateSaleCommand,
    UpdateSaleItemRequest,
    cancel_sale,
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    update_sale,
)

WIDGET = UUID("00000000-0000-0000-0000-000000000001")
GADGET = UUID("00000000-0000-0000-0000-000000000002")
GIZMO = UUID("00000000-0000-0000-0000-000000000003")


def _create(repository, sale_number: str = "S-1", customer: str = "Acme Corp", branch: str = "Downtown", items=None):
    request = CreateSaleRequest(
        sale_number=sale_number,
        customer=customer,
        branch=branch,
        items=items
        if items is not None
        else [SaleItemRequest(WIDGET, "Widget", 5, Decimal("100.00"))],
    )
    return create_sale(request, repository)


def test_create_sale_persists_and_drains_events(repository) -> None:
    sale = _create(repository)

    assert sale.total_amount == Decimal("450.00")
    assert sale.version == 1
    assert sale.domain_events == ()

    stored = repository.get_by_id(sale.sale_id)
    assert stored is not None
    assert stored.sale_number == "S-1"
    assert stored.items[0].discount_percentage == Decimal("10")


def test_create_sale_merges_repeated_products(repository) -> None:
    sale = _create(
        repository,
        items=[
            SaleItemRequest(WIDGET, "Widget", 3, Decimal("10.00")),
            SaleItemRequest(WIDGET, "Widget", 2, Decimal("10.00")),
        ],
    )

    assert len(sale.items) == 1
    assert sale.items[0].quantity == 5
    assert sale.total_amount == Decimal("45.00")


def test_create_sale_rejects_duplicate_sale_number(repository) -> None:
    _create(repository)

    with pytest.raises(DuplicateSaleNumberError, match="S-1"):
        _create(repository)

    assert repository.save_calls == 1


def test_create_sale_rejects_invalid_item_without_saving(repository) -> None:
    with pytest.raises(DomainRuleViolation, match="^Item Widget: Cannot sell more than 20 identical items$"):
        _create(repository, items=[SaleItemRequest(WIDGET, "Widget", 21, Decimal("10.00"))])

    assert repository.save_calls == 0


def test_create_sale_rejects_blank_header(repository) -> None:
    with pytest.raises(SaleValidationError) as exc_info:
        _create(repository, customer=" ")

    assert exc_info.value.errors == ["Customer is required"]
    assert repository.save_calls == 0


def test_get_sale_returns_none_for_unknown_id(repository) -> None:
    assert get_sale(uuid4(), repository) is None


def test_update_sale_reconciles_items(repository) -> None:
    """Omitted items are removed, listed ones updated, id-less ones added."""

    sale = _create(
        repository,
        items=[
            SaleItemRequest(WIDGET, "Widget", 5, Decimal("100.00")),
            SaleItemRequest(GADGET, "Gadget", 2, Decimal("25.00")),
        ],
    )
    widget_id = sale.items[0].sale_item_id

    command = UpdateSaleCommand(
        sale_id=sale.sale_id,
        customer="Globex",
        branch="Uptown",
        items=[
            UpdateSaleItemRequest(WIDGET, "Widget", 12, Decimal("100.00"), sale_item_id=widget_id),
            UpdateSaleItemRequest(GIZMO, "Gizmo", 1, Decimal("7.50")),
        ],
    )
    updated = update_sale(command, repository)

    assert updated.customer == "Globex"
    assert updated.branch == "Uptown"
    assert [item.product_name for item in updated.items] == ["Widget", "Gizmo"]
    assert updated.items[0].sale_item_id == widget_id
    assert updated.items[0].discount_percentage == Decimal("20")
    assert updated.total_amount == Decimal("967.50")
    assert updated.version == 2
    assert updated.domain_events == ()


def test_update_sale_adds_item_whose_id_is_unknown(repository) -> None:
    sale = _create(repository)
    widget_id = sale.items[0].sale_item_id

    command = UpdateSaleCommand(
        sale_id=sale.sale_id,
        customer="Acme Corp",
        branch="Downtown",
        items=[
            UpdateSaleItemRequest(WIDGET, "Widget", 5, Decimal("100.00"), sale_item_id=widget_id),
            UpdateSaleItemRequest(GADGET, "Gadget", 4, Decimal("10.00"), sale_item_id=uuid4()),
        ],
    )
    updated = update_sale(command, repository)

    assert [item.product_name for item in updated.items] == ["Widget", "Gadget"]
    assert updated.items[1].discount_percentage == Decimal("10")


def test_update_sale_with_zero_quantity_cancels_item(repository) -> None:
    sale = _create(
        repository,
        items=[
            SaleItemRequest(WIDGET, "Widget", 5, Decimal("100.00")),
            SaleItemRequest(GADGET, "Gadget", 2, Decimal("25.00")),
        ],
    )
    widget_id, gadget_id = (item.sale_item_id for item in sale.items)

    command = UpdateSaleCommand(
        sale_id=sale.sale_id,
        customer="Acme Corp",
        branch="Downtown",
        items=[
            UpdateSaleItemRequest(WIDGET, "Widget", 0, Decimal("100.00"), sale_item_id=widget_id),
            UpdateSaleItemRequest(GADGET, "Gadget", 2, Decimal("25.00"), sale_item_id=gadget_id),
        ],
    )
    updated = update_sale(command, repository)

    assert updated.items[0].is_cancelled is True
    assert updated.total_amount == Decimal("50.00")


def test_update_sale_rejects_invalid_quantity_and_saves_nothing(repository) -> None:
    sale = _create(repository)
    widget_id = sale.items[0].sale_item_id

    command = UpdateSaleCommand(
        sale_id=sale.sale_id,
        customer="Globex",
        branch="Downtown",
        items=[UpdateSaleItemRequest(WIDGET, "Widget", 25, Decimal("100.00"), sale_item_id=widget_id)],
    )
    with pytest.raises(DomainRuleViolation, match="^Item Widget: "):
        update_sale(command, repository)

    stored = repository.get_by_id(sale.sale_id)
    assert stored.customer == "Acme Corp"
    assert stored.items[0].quantity == 5
    assert repository.save_calls == 1


def test_update_sale_missing_sale(repository) -> None:
    command = UpdateSaleCommand(sale_id=uuid4(), customer="C", branch="B", items=[])

    with pytest.raises(SaleNotFoundError):
        update_sale(command, repository)


def test_update_cancelled_sale_is_rejected(repository) -> None:
    sale = _create(repository)
    cancel_sale(sale.sale_id, repository)

    command = UpdateSaleCommand(
        sale_id=sale.sale_id,
        customer="Acme Corp",
        branch="Downtown",
        items=[UpdateSaleItemRequest(WIDGET, "Widget", 1, Decimal("1.00"))],
    )
    with pytest.raises(DomainRuleViolation, match="Cannot update a cancelled sale"):
        update_sale(command, repository)


def test_stale_copy_cannot_be_saved(repository) -> None:
    sale = _create(repository)
    first = repository.get_by_id(sale.sale_id)
    second = repository.get_by_id(sale.sale_id)

    first.cancel()
    repository.save(first)

    second.customer = "Globex"
    with pytest.raises(ConcurrencyConflictError):
        repository.save(second)


def test_cancel_sale_success(repository) -> None:
    sale = _create(repository)

    result = cancel_sale(sale.sale_id, repository)

    assert result.success is True
    assert result.message == "Sale cancelled successfully"
    assert result.sale_number == "S-1"
    assert repository.get_by_id(sale.sale_id).status is SaleStatus.CANCELLED


def test_cancel_sale_twice_reports_failure(repository) -> None:
    sale = _create(repository)
    cancel_sale(sale.sale_id, repository)

    result = cancel_sale(sale.sale_id, repository)

    assert result.success is False
    assert result.message == "Sale is already cancelled"
    assert repository.save_calls == 2


def test_cancel_missing_sale_reports_not_found(repository) -> None:
    result = cancel_sale(uuid4(), repository)

    assert result.success is False
    assert result.message == "Sale not found"
    assert result.sale_number is None


def test_delete_sale(repository) -> None:
    sale = _create(repository)

    assert delete_sale(sale.sale_id, repository) is True
    assert repository.get_by_id(sale.sale_id) is None
    assert delete_sale(sale.sale_id, repository) is False


def test_list_sales_paginates(repository) -> None:
    for number in range(1, 6):
        _create(repository, sale_number=f"S-{number}")

    result = list_sales(SaleListQuery(page=2, size=2), repository)

    assert result.current_page == 2
    assert result.page_size == 2
    assert result.total_count == 5
    assert result.total_pages == 3
    assert len(result.sales) == 2


def test_list_sales_filters_by_customer_and_branch(repository) -> None:
    _create(repository, sale_number="S-1", customer="Acme Corp", branch="Downtown")
    _create(repository, sale_number="S-2", customer="Acme Corp", branch="Uptown")
    _create(repository, sale_number="S-3", customer="Globex", branch="Downtown")

    result = list_sales(SaleListQuery(customer="acme", branch="down"), repository)

    assert [sale.sale_number for sale in result.sales] == ["S-1"]
    assert result.total_count == 1


def test_list_sales_caps_page_size(repository) -> None:
    result = list_sales(SaleListQuery(size=500), repository)

    assert result.page_size == MAX_PAGE_SIZE
    assert result.total_count == 0
    assert result.total_pages == 0


@pytest.mark.parametrize("page,size", [(0, 10), (1, 0)])
def test_list_sales_rejects_bad_paging(repository, page: int, size: int) -> None:
    with pytest.raises(ValueError):
        list_sales(SaleListQuery(page=page, size=size), repository)
