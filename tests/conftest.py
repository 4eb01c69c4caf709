"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides an in-memory SaleRepository
so service and API tests run without a Supabase project.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional
from uuid import UUID

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.sale import Sale  # noqa: E402
from repositories.sale_repository import (  # noqa: E402
    ConcurrencyConflictError,
    SalePage,
    SaleQueryFilters,
)


def _snapshot(sale: Sale) -> Sale:
    return Sale.restore(
        sale_id=sale.sale_id,
        sale_number=sale.sale_number,
        customer=sale.customer,
        branch=sale.branch,
        sale_date=sale.sale_date,
        created_at=sale.created_at,
        status=sale.status,
        updated_at=sale.updated_at,
        version=sale.version,
        items=[replace(item) for item in sale.items],
    )


class InMemorySaleRepository:
    """
    Dict-backed SaleRepository.

    Stores snapshots without pending events, so a loaded sale that is
    mutated but never saved leaves the stored state unchanged, like a real database would.
    """

    def __init__(self) -> None:
        self._sales: Dict[UUID, Sale] = {}
        self.save_calls = 0

    def get_by_id(self, sale_id: UUID) -> Optional[Sale]:
        stored = self._sales.get(sale_id)
        return _snapshot(stored) if stored is not None else None

    def get_by_sale_number(self, sale_number: str) -> Optional[Sale]:
        for stored in self._sales.values():
            if stored.sale_number == sale_number:
                return _snapshot(stored)
        return None

    def save(self, sale: Sale) -> Sale:
        stored = self._sales.get(sale.sale_id)
        stored_version = stored.version if stored is not None else 0
        if stored_version != sale.version:
            raise ConcurrencyConflictError(f"Sale {sale.sale_id} was modified concurrently or no longer exists")

        self.save_calls += 1
        sale.version += 1
        self._sales[sale.sale_id] = _snapshot(sale)
        return sale

    def delete(self, sale_id: UUID) -> bool:
        return self._sales.pop(sale_id, None) is not None

    def list_sales(self, filters: SaleQueryFilters, limit: int = 10, offset: int = 0) -> SalePage:
        matches: List[Sale] = []
        for stored in self._sales.values():
            if filters.customer and filters.customer.lower() not in stored.customer.lower():
                continue
            if filters.branch and filters.branch.lower() not in stored.branch.lower():
                continue
            if filters.start_date is not None and stored.sale_date < filters.start_date:
                continue
            if filters.end_date is not None and stored.sale_date > filters.end_date:
                continue
            matches.append(stored)

        matches.sort(key=lambda s: s.created_at, reverse=True)
        window = matches[offset:offset + limit]
        return SalePage(sales=[_snapshot(s) for s in window], total_count=len(matches))


@pytest.fixture
def repository() -> InMemorySaleRepository:
    return InMemorySaleRepository()
