"""
Catalog package for the storefront API.

This package contains the query pipeline that powers the product
listing page (search, category and stock filters, sorting and
pagination) along with its schemas. The HTTP routes live in
``storefront.catalog.router`` and read products from the
``ProductRepository`` owned by the application.
"""

from .pipeline import apply_query, paginate  # noqa: F401
from .schemas import CatalogPage, QueryParameters, SortKey  # noqa: F401
