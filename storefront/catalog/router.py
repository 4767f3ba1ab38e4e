"""
Route definitions for the catalogue API.

Endpoints under /api/catalog:
- GET  /products               : list products with filters, sort and pagination
- GET  /products/{product_id}  : get one product
- GET  /categories             : distinct categories, in first-seen order
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from ..errors import NotFoundError
from ..models import Product
from .pipeline import apply_query
from .schemas import CatalogPage, QueryParameters, SortKey


router = APIRouter(prefix="/api/catalog", tags=["catalog"])


def _products(request: Request):
    return request.app.state.products


@router.get("/products", response_model=CatalogPage)
def list_products(
    request: Request,
    q: Optional[str] = Query(default=None, description="Search in product titles"),
    category: Optional[str] = Query(default=None, description="Filter by category"),
    in_stock: bool = Query(default=False, description="Only products in stock"),
    sort: SortKey = Query(default="", description="Sort order"),
    page: int = Query(default=1, description="Current page (1-indexed)"),
    page_size: Optional[int] = Query(default=None, ge=1, le=200, description="Page size"),
) -> CatalogPage:
    """
    Returns one page of the filtered and sorted catalogue.

    Page numbers below 1 are clamped to 1. A page past the end returns
    an empty ``items`` list with the real totals.
    """
    params = QueryParameters(
        search=q or "",
        category=category or "",
        in_stock=in_stock,
        sort=sort,
        page=max(1, page),
        page_size=page_size or request.app.state.settings.page_size,
    )
    return apply_query(_products(request).list(), params)


@router.get("/products/{product_id}", response_model=Product)
def get_product(request: Request, product_id: str) -> Product:
    try:
        return _products(request).get(product_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/categories", response_model=List[str])
def list_categories(request: Request) -> List[str]:
    seen: List[str] = []
    for product in _products(request).list():
        if product.category not in seen:
            seen.append(product.category)
    return seen
