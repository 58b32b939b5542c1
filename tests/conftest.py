"""Pytest fixtures for the inventory service tests."""

import pytest
from fastapi.testclient import TestClient

from database import MemoryStore, get_store
from schemas import CustomerIn, Product


@pytest.fixture
def store():
    """A fresh, empty in-memory document store."""
    return MemoryStore()


@pytest.fixture
def api_client(store):
    """Test client whose requests all go to the `store` fixture."""
    from main import app

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def tee(store):
    """Single-size tee with 10 units at 8.50 / 19.99."""
    import inventory

    return inventory.create_product(store, Product(
        name="Classic Cotton Tee",
        design="Vintage Logo",
        size="M",
        color="Black",
        category="Casual",
        cost_price=8.5,
        selling_price=19.99,
        stock_level=10,
        min_stock_level=5,
    ))


@pytest.fixture
def sized_tee(store):
    """Tee stocked per size: S=5, M=30, L=2."""
    import inventory

    return inventory.create_product(store, Product(
        name="Band Tee",
        design="Tour 2024",
        color="White",
        category="Music",
        cost_price=6.0,
        selling_price=15.0,
        sizes=[
            {"size": "S", "stock_level": 5},
            {"size": "M", "stock_level": 30},
            {"size": "L", "stock_level": 2},
        ],
    ))


@pytest.fixture
def customer(store):
    import customers

    return customers.create_customer(store, CustomerIn(
        name="John Smith",
        email="john@example.com",
        phone="+1-555-0123",
        address={"street": "123 Main St", "city": "New York", "state": "NY", "zip_code": "10001", "country": "USA"},
    ))
