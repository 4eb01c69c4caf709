"""
FastAPI dependencies.

Routers receive their repository through Depends(get_sale_repository), so
tests (or other deployments) can swap it with app.dependency_overrides.
"""

from repositories.client import get_supabase
from repositories.sale_repository import SaleRepository, SupabaseSaleRepository


def get_sale_repository() -> SaleRepository:
    """Sale repository backed by the shared Supabase client."""
    return SupabaseSaleRepository(get_supabase())
