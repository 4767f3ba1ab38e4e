# storefront/models.py
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


Role = Literal["user", "admin"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]


class Product(BaseModel):
    id: str
    title: str
    category: str
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    # Stored flag wins over the stock count when present.
    in_stock: Optional[bool] = None

    @property
    def available(self) -> bool:
        if self.in_stock is not None:
            return self.in_stock
        return self.stock > 0


class ProductCreate(BaseModel):
    title: str = Field(min_length=2, description="Title is too short")
    category: str = Field(min_length=2, description="Category is required")
    price: float = Field(gt=0, description="Price must be > 0")
    stock: int = Field(ge=0, description="Stock cannot be negative")
    in_stock: Optional[bool] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2)
    category: Optional[str] = Field(default=None, min_length=2)
    price: Optional[float] = Field(default=None, gt=0)
    stock: Optional[int] = Field(default=None, ge=0)
    in_stock: Optional[bool] = None


class Order(BaseModel):
    id: str
    customer: str
    total: float = Field(ge=0)
    status: OrderStatus
    date: str


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class Pagination(BaseModel):
    total: int
    total_pages: int
    current_page: int
    limit: int


class OrderPage(BaseModel):
    orders: List[Order]
    pagination: Pagination


class UserRow(BaseModel):
    id: str
    name: str
    email: str
    role: Role = "user"
    active: bool = True


class RoleUpdate(BaseModel):
    role: Role
