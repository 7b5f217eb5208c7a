"""Pytest fixtures for orderdesk tests."""

import logging
import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
import structlog

from orderdesk.models import Customer, Product
from orderdesk.services import open_services


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging configuration made by a CLI run so it cannot leak into later tests."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def data_dir(temp_dir):
    """Empty data directory for one test."""
    path = temp_dir / "data"
    path.mkdir()
    return path


@pytest.fixture
def services(data_dir):
    """Services wired to an empty data directory."""
    return open_services(data_dir)


def seed(services):
    """Add two customers and three products; returns (customers, products)."""
    customers = [
        services.directory.add_customer(Customer(
            name="John Doe",
            email="john@example.com",
            phone="555-123-4567",
            address="123 Main St",
            city="Springfield",
            country="USA",
        )),
        services.directory.add_customer(Customer(
            name="Jane Smith",
            email="jane@example.com",
            phone="555-987-6543",
            address="456 Oak Ave",
            city="Portland",
            country="USA",
        )),
    ]
    products = [
        services.catalog.add_product(Product(
            name="Laptop",
            description="15 inch laptop",
            category="Electronics",
            price=Decimal("999.99"),
            stock_quantity=50,
            min_stock_level=10,
        )),
        services.catalog.add_product(Product(
            name="Mouse",
            description="Wireless mouse",
            category="Accessories",
            price=Decimal("29.99"),
            stock_quantity=100,
            min_stock_level=5,
        )),
        services.catalog.add_product(Product(
            name="Keyboard",
            description="Mechanical keyboard",
            category="Accessories",
            price=Decimal("79.99"),
            stock_quantity=75,
            min_stock_level=8,
        )),
    ]
    return customers, products


@pytest.fixture
def seeded(services):
    """Services with John Doe (1), Jane Smith (2), Laptop (1), Mouse (2), Keyboard (3)."""
    seed(services)
    return services


def stock_of(services, product_id: int) -> int:
    return services.catalog.find_by_id(product_id).stock_quantity
