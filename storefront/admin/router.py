"""
Route definitions for the admin console.

Every endpoint under /api/admin requires the current session to be an
admin; anyone else gets a 403.

Products:
- GET    /products                 : list all products
- POST   /products                 : create a product
- PATCH  /products/{product_id}    : edit a product
- DELETE /products/{product_id}    : delete a product
Orders:
- GET    /orders                   : filter/sort/paginate orders
- GET    /orders/{order_id}        : get one order
- PATCH  /orders/{order_id}/status : move an order to another status
Users:
- GET    /users                    : list users
- PATCH  /users/{user_id}/role     : change a user's role
- POST   /users/{user_id}/toggle-active : activate or deactivate a user
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from typing_extensions import Literal

from ..auth.router import get_session_store
from ..auth.store import SessionStore
from ..errors import NotFoundError
from ..models import (
    Order,
    OrderPage,
    OrderStatus,
    OrderStatusUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    RoleUpdate,
    UserRow,
)


def require_admin(store: SessionStore = Depends(get_session_store)) -> SessionStore:
    if not store.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return store


router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ---------------------------------------------------------------------------
# Products

@router.get("/products", response_model=List[Product])
def list_products(request: Request) -> List[Product]:
    return request.app.state.products.list()


@router.post("/products", response_model=Product, status_code=201)
def create_product(request: Request, fields: ProductCreate) -> Product:
    return request.app.state.products.create(fields)


@router.patch("/products/{product_id}", response_model=Product)
def update_product(request: Request, product_id: str, patch: ProductUpdate) -> Product:
    try:
        return request.app.state.products.update(product_id, patch)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(request: Request, product_id: str) -> None:
    try:
        request.app.state.products.remove(product_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


# ---------------------------------------------------------------------------
# Orders

@router.get("/orders", response_model=OrderPage)
def list_orders(
    request: Request,
    status: Optional[OrderStatus] = Query(default=None, description="Only orders in this status"),
    sort: Literal["date", "total"] = Query(default="date"),
    order: Literal["asc", "desc"] = Query(default="desc"),
    page: int = Query(default=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> OrderPage:
    return request.app.state.orders.query(
        status=status, sort=sort, order=order, page=max(1, page), limit=limit
    )


@router.get("/orders/{order_id}", response_model=Order)
def get_order(request: Request, order_id: str) -> Order:
    try:
        return request.app.state.orders.get(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.patch("/orders/{order_id}/status", response_model=Order)
def set_order_status(request: Request, order_id: str, body: OrderStatusUpdate) -> Order:
    try:
        return request.app.state.orders.set_status(order_id, body.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


# ---------------------------------------------------------------------------
# Users

@router.get("/users", response_model=List[UserRow])
def list_users(request: Request) -> List[UserRow]:
    return request.app.state.users.list()


@router.patch("/users/{user_id}/role", response_model=UserRow)
def set_user_role(request: Request, user_id: str, body: RoleUpdate) -> UserRow:
    try:
        return request.app.state.users.set_role(user_id, body.role)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/users/{user_id}/toggle-active", response_model=UserRow)
def toggle_user_active(request: Request, user_id: str) -> UserRow:
    try:
        return request.app.state.users.toggle_active(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
