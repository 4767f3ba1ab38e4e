"""
Catalogue query pipeline.

``apply_query`` turns an unordered collection of products and a set of
``QueryParameters`` into one page of results. The stages always run in
the same order: search, category, stock, sort, paginate. Each stage
builds a new list from the previous one; the input collection is never
modified.
"""

from __future__ import annotations

import locale
import math
from typing import List, Optional, Sequence, Tuple, TypeVar

from ..models import Product
from .schemas import CatalogPage, QueryParameters


T = TypeVar("T")


def _norm(s: Optional[str]) -> str:
    """Normalize a string for case-insensitive comparison.

    Parameters
    ----------
    s : Optional[str]
        The string to normalize.

    Returns
    -------
    str
        The case-folded string. An empty string is returned when the
        input is ``None`` or empty.
    """
    return (s or "").casefold()


def _title_key(product: Product) -> str:
    """Collation key for the case-folded title.

    ``locale.strxfrm`` follows the process LC_COLLATE. ``storefront.main.run``
    adopts the environment locale at startup; a process left on the C
    locale orders titles by code point of the case-folded text.
    """
    return locale.strxfrm(_norm(product.title))


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[List[T], int, int]:
    """Slice one 1-based page out of ``items``.

    Parameters
    ----------
    items : Sequence[T]
        The full, already ordered sequence.
    page : int
        1-indexed page number. Values below 1 are treated as 1; values
        past the last page yield an empty slice.
    page_size : int
        Number of items per page, must be positive.

    Returns
    -------
    Tuple[List[T], int, int]
        The items of the page, the total number of items and the total
        number of pages (``ceil(total / page_size)``, so 0 only when
        there are no items).
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    p = max(1, page)
    total = len(items)
    total_pages = math.ceil(total / page_size)
    start = (p - 1) * page_size
    end = start + page_size
    return list(items[start:end]), total, total_pages


def filter_products(products: Sequence[Product], params: QueryParameters) -> List[Product]:
    """Apply the search, category and stock filters.

    The three filters are independent predicates, so the surviving set
    does not depend on the order they are applied in.
    """
    items = list(products)

    nq = _norm(params.search)
    if nq:
        items = [p for p in items if nq in _norm(p.title)]

    if params.category:
        items = [p for p in items if p.category == params.category]

    if params.in_stock:
        items = [p for p in items if p.available]

    return items


def sort_products(products: Sequence[Product], sort: str) -> List[Product]:
    """Return ``products`` ordered by ``sort``.

    ``sorted`` is stable for ``reverse=True`` too, so products sharing a
    price keep their relative input order in both price directions.
    """
    if sort == "price-asc":
        return sorted(products, key=lambda p: p.price)
    if sort == "price-desc":
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort == "title":
        return sorted(products, key=_title_key)
    return list(products)


def apply_query(products: Sequence[Product], params: QueryParameters) -> CatalogPage:
    """Run the full pipeline and build the page returned to clients."""
    items = sort_products(filter_products(products, params), params.sort)

    page = max(1, params.page)
    page_items, total, total_pages = paginate(items, page, params.page_size)

    showing_from = showing_to = 0
    if page_items:
        showing_from = (page - 1) * params.page_size + 1
        showing_to = showing_from + len(page_items) - 1

    return CatalogPage(
        page=page,
        page_size=params.page_size,
        total=total,
        total_pages=total_pages,
        showing_from=showing_from,
        showing_to=showing_to,
        items=page_items,
    )
