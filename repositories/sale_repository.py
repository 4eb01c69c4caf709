"""
Sale repository (persistence).

Load/save contract for the Sale aggregate plus its Supabase implementation.
The repository does not enforce business rules; it only stores and fetches
whole aggregates (header row + every item row). Partial loads are never
returned because the sale's invariants span the full item collection.

Tables (keep aligned with your database schema):
- sales: sale_id (uuid pk), sale_number (unique, <= 50), sale_date_utc,
  customer (<= 200), branch (<= 200), status, created_at_utc,
  updated_at_utc, version
- sale_items: sale_item_id (uuid pk), sale_id (fk -> sales, on delete
  cascade), line_number, product_id, product_name, quantity, unit_price,
  discount_percentage, is_cancelled

Function (see db/save_sale.sql):
- save_sale(p_sale json, p_items json, p_expected_version int) returns json
  Writes the header and every item row in one transaction and returns
  {"success": true, "version": n} or
  {"success": false, "error": "VERSION_CONFLICT", "message": ...}

Concurrency: every save of an existing sale is guarded by its version
column (optimistic concurrency), checked inside save_sale(). A save against
a stale copy raises ConcurrencyConflictError instead of overwriting another
writer's changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Protocol
from uuid import UUID

from postgrest.exceptions import APIError

from domain.sale import Sale, SaleStatus
from domain.sale_item import SaleItem
from domain.time import require_utc_timestamp

logger = logging.getLogger(__name__)

_SALES_TABLE: str = "sales"
_SAVE_SALE_FUNCTION: str = "save_sale"
_VERSION_CONFLICT: str = "VERSION_CONFLICT"

# Header columns plus every nested item row, so a sale is always loaded whole.
_FULL_SALE_SELECT: str = "*, sale_items(*)"


class ConcurrencyConflictError(RuntimeError):
    """Raised when a sale was changed by another writer since it was loaded."""


@dataclass(frozen=True, slots=True)
class SaleQueryFilters:
    """
    Filter criteria for sale listings. All given filters must match.

    customer / branch: case-insensitive substring match
    start_date / end_date: inclusive bounds on sale_date (UTC)
    """
    customer: Optional[str] = None
    branch: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class SalePage:
    """One page of sales and the total number of matching sales."""
    sales: List[Sale]
    total_count: int


class SaleRepository(Protocol):
    """Load/save contract the service layer depends on."""

    def get_by_id(self, sale_id: UUID) -> Optional[Sale]: ...

    def get_by_sale_number(self, sale_number: str) -> Optional[Sale]: ...

    def save(self, sale: Sale) -> Sale: ...

    def delete(self, sale_id: UUID) -> bool: ...

    def list_sales(self, filters: SaleQueryFilters, limit: int = 10, offset: int = 0) -> SalePage: ...


def _to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def _parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _raise_on_error(response: Any, action: str) -> None:
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")


def _row_to_item(row: Mapping[str, Any]) -> SaleItem:
    """Convert a sale_items row into a SaleItem."""

    return SaleItem(
        sale_item_id=UUID(str(row["sale_item_id"])),
        sale_id=UUID(str(row["sale_id"])),
        product_id=UUID(str(row["product_id"])),
        product_name=str(row["product_name"]),
        quantity=int(row["quantity"]),
        unit_price=Decimal(str(row["unit_price"])),
        discount_percentage=Decimal(str(row.get("discount_percentage", "0"))),
        is_cancelled=bool(row.get("is_cancelled", False)),
    )


def _row_to_sale(row: Mapping[str, Any]) -> Sale:
    """Convert a sales row (with nested sale_items) into a Sale aggregate."""

    item_rows = sorted(row.get("sale_items") or [], key=lambda r: int(r.get("line_number", 0)))

    return Sale.restore(
        sale_id=UUID(str(row["sale_id"])),
        sale_number=str(row["sale_number"]),
        customer=str(row["customer"]),
        branch=str(row["branch"]),
        sale_date=_parse_utc_datetime(row["sale_date_utc"]),
        created_at=_parse_utc_datetime(row["created_at_utc"]),
        status=SaleStatus(str(row["status"])),
        updated_at=_parse_utc_datetime(row["updated_at_utc"]) if row.get("updated_at_utc") else None,
        version=int(row.get("version", 1)),
        items=[_row_to_item(item_row) for item_row in item_rows],
    )


def _sale_to_row(sale: Sale, *, version: int) -> dict[str, Any]:
    """Header columns for a sale. Derived values (total_amount) are not stored."""

    return {
        "sale_id": str(sale.sale_id),
        "sale_number": sale.sale_number,
        "sale_date_utc": _to_iso_utc(sale.sale_date, name="sale_date"),
        "customer": sale.customer,
        "branch": sale.branch,
        "status": sale.status.value,
        "created_at_utc": _to_iso_utc(sale.created_at, name="created_at"),
        "updated_at_utc": _to_iso_utc(sale.updated_at, name="updated_at") if sale.updated_at else None,
        "version": version,
    }


def _item_to_row(item: SaleItem, *, line_number: int) -> dict[str, Any]:
    return {
        "sale_item_id": str(item.sale_item_id),
        "sale_id": str(item.sale_id),
        "line_number": line_number,
        "product_id": str(item.product_id),
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": str(item.unit_price),
        "discount_percentage": str(item.discount_percentage),
        "is_cancelled": item.is_cancelled,
    }


class SupabaseSaleRepository:
    """
    SaleRepository backed by the Supabase `sales` / `sale_items` tables.

    Args:
        client: supabase.Client (or anything exposing the same query builder)
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    def get_by_id(self, sale_id: UUID) -> Optional[Sale]:
        """
        Retrieve a single sale (with all items) by its ID.

        Returns:
            Sale or None if not found
        """

        response = (
            self._client.table(_SALES_TABLE)
            .select(_FULL_SALE_SELECT)
            .eq("sale_id", str(sale_id))
            .limit(1)
            .execute()
        )
        _raise_on_error(response, "get sale")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_sale(rows[0])

    def get_by_sale_number(self, sale_number: str) -> Optional[Sale]:
        """Retrieve a single sale (with all items) by its business number."""

        response = (
            self._client.table(_SALES_TABLE)
            .select(_FULL_SALE_SELECT)
            .eq("sale_number", sale_number)
            .limit(1)
            .execute()
        )
        _raise_on_error(response, "get sale by number")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_sale(rows[0])

    def list_sales(self, filters: SaleQueryFilters, limit: int = 10, offset: int = 0) -> SalePage:
        """
        List sales matching the filters, newest first.

        Args:
            filters: Query filters (combined with AND)
            limit: Maximum number of sales to return
            offset: Number of matching sales to skip

        Returns:
            SalePage with the requested slice and the exact total match count
        """

        query = self._client.table(_SALES_TABLE).select(_FULL_SALE_SELECT, count="exact")

        if filters.customer:
            query = query.ilike("customer", f"%{filters.customer}%")
        if filters.branch:
            query = query.ilike("branch", f"%{filters.branch}%")
        if filters.start_date is not None:
            query = query.gte("sale_date_utc", _to_iso_utc(filters.start_date, name="start_date"))
        if filters.end_date is not None:
            query = query.lte("sale_date_utc", _to_iso_utc(filters.end_date, name="end_date"))

        response = (
            query.order("created_at_utc", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        _raise_on_error(response, "list sales")

        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return SalePage(
            sales=[_row_to_sale(row) for row in rows],
            total_count=int(total) if total is not None else len(rows),
        )

    def save(self, sale: Sale) -> Sale:
        """
        Persist the whole aggregate in one transaction.

        Calls the save_sale() PostgreSQL function, which:
        - Inserts the header when p_expected_version is 0, otherwise updates
          it only if the stored version still equals p_expected_version
        - Deletes stored items missing from p_items
        - Upserts every row in p_items
        All in a single atomic transaction, so a failed save stores nothing.

        Returns:
            The same Sale with its version advanced

        Raises:
            ConcurrencyConflictError: the stored sale changed (or vanished)
                since this copy was loaded
            RuntimeError: Supabase or the function reported an error
        """

        new_version = sale.version + 1
        params = {
            "p_sale": _sale_to_row(sale, version=new_version),
            "p_items": [_item_to_row(item, line_number=i) for i, item in enumerate(sale.items)],
            "p_expected_version": sale.version,
        }

        result = self._execute_save_function(params)

        if not result.get("success"):
            error_code = result.get("error")
            if error_code == _VERSION_CONFLICT:
                logger.warning(
                    "Optimistic concurrency check failed",
                    extra={"sale_id": str(sale.sale_id), "expected_version": sale.version},
                )
                raise ConcurrencyConflictError(
                    f"Sale {sale.sale_id} was modified concurrently or no longer exists"
                )
            raise RuntimeError(f"Failed to save sale: {result.get('message') or error_code}")

        sale.version = new_version
        return sale

    def delete(self, sale_id: UUID) -> bool:
        """
        Physically delete a sale and its items.

        Item rows go with the header through the on-delete-cascade foreign key.

        Returns:
            True if the sale existed and was deleted, False if not found
        """

        response = self._client.table(_SALES_TABLE).delete().eq("sale_id", str(sale_id)).execute()
        _raise_on_error(response, "delete sale")

        rows = getattr(response, "data", None) or []
        return bool(rows)

    def _execute_save_function(self, params: Mapping[str, Any]) -> Mapping[str, Any]:
        """Call save_sale() and return its JSON result ({success, version, error, message})."""

        try:
            response = self._client.rpc(_SAVE_SALE_FUNCTION, params).execute()
        except APIError as e:
            # supabase-py raises APIError for JSON returned by a PostgreSQL
            # function, successful results included
            error_data = e.json() if callable(getattr(e, "json", None)) else {}
            if isinstance(error_data, dict) and "success" in error_data:
                return error_data
            raise RuntimeError(f"Failed to save sale: {e}") from e

        _raise_on_error(response, "save sale")

        result = getattr(response, "data", None)
        if isinstance(result, list):
            result = result[0] if result else None
        if not isinstance(result, dict):
            raise RuntimeError(f"Failed to save sale: unexpected result {result!r}")
        return result


__all__ = [
    "ConcurrencyConflictError",
    "SalePage",
    "SaleQueryFilters",
    "SaleRepository",
    "SupabaseSaleRepository",
]
