"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.sale import Sale
from domain.sale_item import SaleItem


# ============================================================================
# Sale Request Models
# ============================================================================

class SaleItemRequest(BaseModel):
    """Product line in a create request."""
    product_id: UUID = Field(..., description="Product identifier (external identity)")
    product_name: str = Field(..., min_length=1, max_length=200)
    quantity: int = Field(..., ge=1, le=20, description="Identical items sold (1-20)")
    unit_price: Decimal = Field(..., gt=0)


class CreateSaleRequest(BaseModel):
    """Request to record a new sale."""
    sale_number: str = Field(..., min_length=1, max_length=50)
    customer: str = Field(..., min_length=1, max_length=200)
    branch: str = Field(..., min_length=1, max_length=200)
    items: List[SaleItemRequest] = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sale_number": "S-2025-0001",
                "customer": "ACME Retail",
                "branch": "Downtown",
                "items": [
                    {
                        "product_id": "123e4567-e89b-12d3-a456-426614174000",
                        "product_name": "Widget",
                        "quantity": 5,
                        "unit_price": "100.00"
                    }
                ]
            }
        }
    )


class UpdateSaleItemRequest(SaleItemRequest):
    """Product line in an update request. Omit sale_item_id for new lines."""
    sale_item_id: Optional[UUID] = None


class UpdateSaleRequest(BaseModel):
    """Request to replace a sale's customer, branch and item lines."""
    customer: str = Field(..., min_length=1, max_length=200)
    branch: str = Field(..., min_length=1, max_length=200)
    items: List[UpdateSaleItemRequest] = Field(..., min_length=1)


# ============================================================================
# Sale Response Models
# ============================================================================

class SaleItemResponse(BaseModel):
    """Single sale item in API response."""
    sale_item_id: UUID
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    discount_percentage: Decimal
    total_amount: Decimal
    is_cancelled: bool

    @classmethod
    def from_domain(cls, item: SaleItem) -> "SaleItemResponse":
        return cls(
            sale_item_id=item.sale_item_id,
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount_percentage=item.discount_percentage,
            total_amount=item.total_amount,
            is_cancelled=item.is_cancelled,
        )


class SaleResponse(BaseModel):
    """Full sale with items."""
    sale_id: UUID
    sale_number: str
    sale_date: datetime
    customer: str
    branch: str
    status: str  # "Active" or "Cancelled"
    total_amount: Decimal
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: List[SaleItemResponse]

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleResponse":
        return cls(
            sale_id=sale.sale_id,
            sale_number=sale.sale_number,
            sale_date=sale.sale_date,
            customer=sale.customer,
            branch=sale.branch,
            status=sale.status.value,
            total_amount=sale.total_amount,
            created_at=sale.created_at,
            updated_at=sale.updated_at,
            items=[SaleItemResponse.from_domain(item) for item in sale.items],
        )


class SaleEnvelope(BaseModel):
    """Response wrapping a single sale."""
    success: bool
    message: str
    data: SaleResponse


class SaleListItem(BaseModel):
    """Sale summary in a listing."""
    sale_id: UUID
    sale_number: str
    sale_date: datetime
    customer: str
    branch: str
    status: str
    total_amount: Decimal
    item_count: int  # active items only
    created_at: datetime

    @classmethod
    def from_domain(cls, sale: Sale) -> "SaleListItem":
        return cls(
            sale_id=sale.sale_id,
            sale_number=sale.sale_number,
            sale_date=sale.sale_date,
            customer=sale.customer,
            branch=sale.branch,
            status=sale.status.value,
            total_amount=sale.total_amount,
            item_count=len(sale.active_items),
            created_at=sale.created_at,
        )


class SaleListResponse(BaseModel):
    """Response for sale listing."""
    success: bool
    sales: List[SaleListItem]
    current_page: int
    page_size: int
    total_count: int
    total_pages: int
    filters_applied: dict

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "sales": [],
                "current_page": 1,
                "page_size": 10,
                "total_count": 42,
                "total_pages": 5,
                "filters_applied": {
                    "branch": "Downtown"
                }
            }
        }
    )


# ============================================================================
# Message Models
# ============================================================================

class ApiMessageResponse(BaseModel):
    """Outcome of an operation that returns no sale payload."""
    success: bool
    message: str
