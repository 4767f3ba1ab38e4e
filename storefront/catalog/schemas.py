"""
Pydantic schema definitions for the catalog module.

``QueryParameters`` describes one storefront listing request: free
text search, category, the in-stock toggle, a sort key and the page to
show. It is rebuilt for every request and never persisted. The
``CatalogPage`` model bundles the products of one page with the
pagination metadata and the "showing X–Y of N" summary the front-end
renders above the grid.
"""

from typing import List

from pydantic import BaseModel, Field
from typing_extensions import Literal

from ..config import DEFAULT_PAGE_SIZE
from ..models import Product


SortKey = Literal["", "price-asc", "price-desc", "title"]


class QueryParameters(BaseModel):
    """Inputs of the catalogue query pipeline.

    Empty ``search`` and ``category`` strings mean "no filter". An
    empty ``sort`` keeps the filtered order as it is.
    """

    search: str = ""
    category: str = ""
    in_stock: bool = False
    sort: SortKey = ""
    page: int = 1
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)


class CatalogPage(BaseModel):
    """A wrapper for paginated results returned from ``/products``."""

    page: int
    page_size: int
    total: int
    total_pages: int
    # 1-based positions of the first and last item shown; both 0 when
    # the page is empty.
    showing_from: int = 0
    showing_to: int = 0
    items: List[Product] = Field(default_factory=list)
