"""Shared pytest fixtures for the storefront tests."""

import pytest
from fastapi.testclient import TestClient

from storefront.auth.backends import MockAuthBackend
from storefront.auth.persistence import MemoryStorage
from storefront.auth.store import SessionStore
from storefront.config import Settings
from storefront.main import create_app
from storefront.models import Order, Product, UserRow


def make_product(id, title, price, category="shoes", stock=5, in_stock=None):
    return Product(
        id=str(id),
        title=title,
        category=category,
        price=price,
        stock=stock,
        in_stock=in_stock,
    )


@pytest.fixture
def products():
    """A small mixed catalogue."""
    return [
        make_product(1, "Red Shoe", 50, in_stock=True),
        make_product(2, "Blue Shoe", 30, in_stock=False),
        make_product(3, "Green Hat", 30, category="hats", stock=0),
        make_product(4, "apple Watch", 250, category="electronics", stock=3),
        make_product(5, "Running Shoe", 75, stock=12),
        make_product(6, "Wool Hat", 30, category="hats", stock=7),
        make_product(7, "Phone Case", 15, category="electronics", stock=100),
    ]


@pytest.fixture
def seed(products):
    return {
        "products": products,
        "orders": [
            Order(id="ORD-1", customer="Jane Doe", total=199, status="processing", date="2025-08-06"),
            Order(id="ORD-2", customer="John Smith", total=79, status="shipped", date="2025-08-07"),
            Order(id="ORD-3", customer="Ana Lopez", total=349, status="pending", date="2025-08-01"),
        ],
        "users": [
            UserRow(id="1", name="Admin", email="admin@example.com", role="admin"),
            UserRow(id="2", name="Demo User", email="user@example.com"),
        ],
    }


@pytest.fixture
def settings(tmp_path):
    return Settings(
        environment="development",
        session_file=tmp_path / "auth-store.json",
        mock_latency=0,
        page_size=3,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    """A session store on the mock backend with dev login enabled."""
    return SessionStore(MockAuthBackend(latency=0), storage=storage, allow_dev_login=True)


@pytest.fixture
def app(settings, storage, seed):
    return create_app(settings, storage=storage, seed=seed)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def admin_client(client):
    """A client whose session is logged in as the seeded admin."""
    response = client.post(
        "/api/auth/login", json={"email": "admin@example.com", "password": "admin123"}
    )
    assert response.status_code == 200
    return client
