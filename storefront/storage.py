# storefront/storage.py
"""
In-memory repositories for products, orders and users.

Each repository owns its own collection and is created by the
composition root (``storefront.main.create_app``), then handed to the
routes through ``app.state``. Nothing here is module-level state, so
tests can build as many isolated repositories as they like.

Sync FastAPI routes run in a thread pool, so every repository guards
its collection with a lock. There are no transactions spanning several
calls: a create racing a delete on the same collection is simply
last-write-wins.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .catalog.pipeline import paginate
from .errors import NotFoundError
from .models import (
    Order,
    OrderPage,
    OrderStatus,
    Pagination,
    Product,
    ProductCreate,
    ProductUpdate,
    Role,
    UserRow,
)


logger = logging.getLogger(__name__)

SEED_FILE = Path(__file__).resolve().parent / "data" / "seed.json"


def _new_id() -> str:
    return uuid.uuid4().hex[:8]


class ProductRepository:
    def __init__(self, products: Optional[Iterable[Product]] = None):
        self._lock = threading.Lock()
        self._items: List[Product] = list(products or [])

    def list(self) -> List[Product]:
        with self._lock:
            return list(self._items)

    def get(self, product_id: str) -> Product:
        with self._lock:
            return self._items[self._index(product_id)]

    def create(self, fields: ProductCreate) -> Product:
        product = Product(id=_new_id(), **fields.model_dump())
        with self._lock:
            # newest first, matching the admin table
            self._items.insert(0, product)
        logger.info("Created product %s (%s)", product.id, product.title)
        return product

    def update(self, product_id: str, patch: ProductUpdate) -> Product:
        changes = patch.model_dump(exclude_unset=True)
        with self._lock:
            idx = self._index(product_id)
            updated = self._items[idx].model_copy(update=changes)
            self._items[idx] = updated
        return updated

    def remove(self, product_id: str) -> None:
        with self._lock:
            del self._items[self._index(product_id)]
        logger.info("Removed product %s", product_id)

    def _index(self, product_id: str) -> int:
        for idx, product in enumerate(self._items):
            if product.id == product_id:
                return idx
        raise NotFoundError(f"Product {product_id} not found")


class OrderRepository:
    def __init__(self, orders: Optional[Iterable[Order]] = None):
        self._lock = threading.Lock()
        self._items: List[Order] = list(orders or [])

    def list(self) -> List[Order]:
        with self._lock:
            return list(self._items)

    def get(self, order_id: str) -> Order:
        with self._lock:
            for order in self._items:
                if order.id == order_id:
                    return order
        raise NotFoundError(f"Order {order_id} not found")

    def set_status(self, order_id: str, status: OrderStatus) -> Order:
        """Move an order to ``status``. Any status may follow any other."""
        with self._lock:
            for idx, order in enumerate(self._items):
                if order.id == order_id:
                    updated = order.model_copy(update={"status": status})
                    self._items[idx] = updated
                    return updated
        raise NotFoundError(f"Order {order_id} not found")

    def query(
        self,
        status: Optional[OrderStatus] = None,
        sort: str = "date",
        order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> OrderPage:
        """Filter by status, sort by ``date`` or ``total`` and paginate.

        Dates are ISO ``YYYY-MM-DD`` strings, so they sort correctly as
        text.
        """
        items = self.list()
        if status:
            items = [o for o in items if o.status == status]

        if sort == "total":
            items.sort(key=lambda o: o.total, reverse=(order != "asc"))
        else:
            items.sort(key=lambda o: o.date, reverse=(order != "asc"))

        page_items, total, total_pages = paginate(items, page, limit)
        return OrderPage(
            orders=page_items,
            pagination=Pagination(
                total=total,
                total_pages=total_pages,
                current_page=max(1, page),
                limit=limit,
            ),
        )


class UserRepository:
    def __init__(self, users: Optional[Iterable[UserRow]] = None):
        self._lock = threading.Lock()
        self._items: List[UserRow] = list(users or [])

    def list(self) -> List[UserRow]:
        with self._lock:
            return list(self._items)

    def get(self, user_id: str) -> UserRow:
        with self._lock:
            return self._items[self._index(user_id)]

    def set_role(self, user_id: str, role: Role) -> UserRow:
        return self._replace(user_id, role=role)

    def toggle_active(self, user_id: str) -> UserRow:
        with self._lock:
            idx = self._index(user_id)
            current = self._items[idx]
            updated = current.model_copy(update={"active": not current.active})
            self._items[idx] = updated
        return updated

    def _replace(self, user_id: str, **changes: Any) -> UserRow:
        with self._lock:
            idx = self._index(user_id)
            updated = self._items[idx].model_copy(update=changes)
            self._items[idx] = updated
        return updated

    def _index(self, user_id: str) -> int:
        for idx, user in enumerate(self._items):
            if user.id == user_id:
                return idx
        raise NotFoundError(f"User {user_id} not found")


def load_seed(path: Path = SEED_FILE) -> Dict[str, List[Any]]:
    """Load seed records for the three repositories.

    Returns a mapping with ``products``, ``orders`` and ``users`` keys.
    A missing seed file yields empty collections; a malformed one is an
    error, since it ships with the package.
    """
    if not path.exists():
        logger.warning("Seed file %s not found, starting with empty repositories", path)
        return {"products": [], "orders": [], "users": []}
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    return {
        "products": [Product.model_validate(p) for p in raw.get("products", [])],
        "orders": [Order.model_validate(o) for o in raw.get("orders", [])],
        "users": [UserRow.model_validate(u) for u in raw.get("users", [])],
    }
