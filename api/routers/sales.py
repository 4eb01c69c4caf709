"""
Sales API Endpoints.

Endpoints for recording, browsing, updating, cancelling and deleting sales.

Error mapping:
- 404: sale not found
- 409: duplicate sale number, or the sale changed concurrently
- 400: business rule violation (quantity limits, cancelled sale, ...)
- 422: request body / query failed schema validation
- 500: unexpected failure (storage unavailable, ...), detail "Failed to <action>: <error>"
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_sale_repository
from api.models import (
    ApiMessageResponse,
    CreateSaleRequest as APICreateSaleRequest,
    SaleEnvelope,
    SaleListItem,
    SaleListResponse,
    SaleResponse,
    UpdateSaleRequest as APIUpdateSaleRequest,
)
from domain.errors import DomainRuleViolation
from repositories.sale_repository import ConcurrencyConflictError, SaleRepository
from services.sale_service import (
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

logger = logging.getLogger(__name__)

router = APIRouter()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive query timestamps as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.post(
    "/sales",
    response_model=SaleEnvelope,
    status_code=201,
    summary="Create Sale",
    description="Record a new sale. Quantity discounts are applied automatically."
)
def create_new_sale(
    request: APICreateSaleRequest,
    repository: SaleRepository = Depends(get_sale_repository),
):
    """
    Create a sale with its items.

    **Discount tiers (per product line):**
    - 1-3 identical items: no discount
    - 4-9 identical items: 10%
    - 10-20 identical items: 20%
    - More than 20 identical items: rejected

    Repeated lines for the same product are merged into one line.

    **Example request:**
    ```json
    {
      "sale_number": "S-2025-0001",
      "customer": "ACME Retail",
      "branch": "Downtown",
      "items": [
        {"product_id": "123e4567-e89b-12d3-a456-426614174000",
         "product_name": "Widget", "quantity": 5, "unit_price": "100.00"}
      ]
    }
    ```
    """
    try:
        service_request = CreateSaleRequest(
            sale_number=request.sale_number,
            customer=request.customer,
            branch=request.branch,
            items=[
                SaleItemRequest(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in request.items
            ],
        )

        sale = create_sale(service_request, repository)

        return SaleEnvelope(
            success=True,
            message="Sale created successfully",
            data=SaleResponse.from_domain(sale),
        )

    except DuplicateSaleNumberError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DomainRuleViolation as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error creating sale", extra={"sale_number": request.sale_number})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create sale: {str(e)}"
        )


@router.get(
    "/sales/{sale_id}",
    response_model=SaleEnvelope,
    summary="Get Sale",
    description="Retrieve a sale with all of its items."
)
def get_sale_by_id(
    sale_id: UUID,
    repository: SaleRepository = Depends(get_sale_repository),
):
    try:
        sale = get_sale(sale_id, repository)
        if sale is None:
            raise HTTPException(
                status_code=404,
                detail=f"Sale with ID {sale_id} not found"
            )

        return SaleEnvelope(
            success=True,
            message="Sale retrieved successfully",
            data=SaleResponse.from_domain(sale),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Unexpected error fetching sale", extra={"sale_id": str(sale_id)})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to get sale: {str(e)}"
        )


@router.get(
    "/sales",
    response_model=SaleListResponse,
    summary="List Sales",
    description="Browse sales, newest first, with optional filters and pagination."
)
def get_sales(
    page: int = Query(1, ge=1, description="Page number (starts from 1)"),
    size: int = Query(10, ge=1, le=100, description="Page size (max 100)"),
    customer: Optional[str] = Query(None, description="Customer contains (case-insensitive)"),
    branch: Optional[str] = Query(None, description="Branch contains (case-insensitive)"),
    start_date: Optional[datetime] = Query(None, description="Earliest sale date (inclusive)"),
    end_date: Optional[datetime] = Query(None, description="Latest sale date (inclusive)"),
    repository: SaleRepository = Depends(get_sale_repository),
):
    """
    List sales with optional filters. Filters are combined.

    **Example usage:**
    - All sales: `GET /api/v1/sales`
    - Second page of 20: `GET /api/v1/sales?page=2&size=20`
    - By branch and period: `GET /api/v1/sales?branch=Downtown&start_date=2025-01-01&end_date=2025-01-31`
    """
    start = _as_utc(start_date)
    end = _as_utc(end_date)
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=400,
            detail="start_date must be on or before end_date"
        )

    query = SaleListQuery(
        page=page,
        size=size,
        customer=customer,
        branch=branch,
        start_date=start,
        end_date=end,
    )
    try:
        result = list_sales(query, repository)
    except Exception as e:
        logger.exception("Unexpected error listing sales", extra={"page": page, "size": size})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to list sales: {str(e)}"
        )

    filters_applied = {}
    if customer:
        filters_applied["customer"] = customer
    if branch:
        filters_applied["branch"] = branch
    if start is not None:
        filters_applied["start_date"] = start.isoformat()
    if end is not None:
        filters_applied["end_date"] = end.isoformat()

    return SaleListResponse(
        success=True,
        sales=[SaleListItem.from_domain(sale) for sale in result.sales],
        current_page=result.current_page,
        page_size=result.page_size,
        total_count=result.total_count,
        total_pages=result.total_pages,
        filters_applied=filters_applied,
    )


@router.put(
    "/sales/{sale_id}",
    response_model=SaleEnvelope,
    summary="Update Sale",
    description="Replace a sale's customer, branch and item lines."
)
def update_existing_sale(
    sale_id: UUID,
    request: APIUpdateSaleRequest,
    repository: SaleRepository = Depends(get_sale_repository),
):
    """
    Update a sale.

    Stored items missing from the request are removed. Items sent with a
    `sale_item_id` have their quantity updated; items without one are added
    (merging into an existing line for the same product). If any line breaks
    a rule the whole update is rejected.
    """
    try:
        command = UpdateSaleCommand(
            sale_id=sale_id,
            customer=request.customer,
            branch=request.branch,
            items=[
                UpdateSaleItemRequest(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    sale_item_id=item.sale_item_id,
                )
                for item in request.items
            ],
        )

        sale = update_sale(command, repository)

        return SaleEnvelope(
            success=True,
            message="Sale updated successfully",
            data=SaleResponse.from_domain(sale),
        )

    except SaleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DomainRuleViolation as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error updating sale", extra={"sale_id": str(sale_id)})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update sale: {str(e)}"
        )


@router.post(
    "/sales/{sale_id}/cancel",
    response_model=ApiMessageResponse,
    summary="Cancel Sale",
    description="Cancel a sale. Cancelling an already cancelled sale is reported as a 400."
)
def cancel_existing_sale(
    sale_id: UUID,
    repository: SaleRepository = Depends(get_sale_repository),
):
    try:
        result = cancel_sale(sale_id, repository)
    except ConcurrencyConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error cancelling sale", extra={"sale_id": str(sale_id)})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to cancel sale: {str(e)}"
        )

    if not result.success:
        if "not found" in result.message.lower():
            raise HTTPException(status_code=404, detail=result.message)
        raise HTTPException(status_code=400, detail=result.message)

    return ApiMessageResponse(success=True, message=result.message)


@router.delete(
    "/sales/{sale_id}",
    response_model=ApiMessageResponse,
    summary="Delete Sale",
    description="Permanently delete a sale and its items."
)
def delete_existing_sale(
    sale_id: UUID,
    repository: SaleRepository = Depends(get_sale_repository),
):
    try:
        deleted = delete_sale(sale_id, repository)
    except Exception as e:
        logger.exception("Unexpected error deleting sale", extra={"sale_id": str(sale_id)})
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete sale: {str(e)}"
        )

    if not deleted:
        raise HTTPException(
            status_code=404,
            detail=f"Sale with ID {sale_id} not found"
        )

    return ApiMessageResponse(success=True, message="Sale deleted successfully")
