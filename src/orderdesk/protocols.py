"""Collaborator interfaces consumed by the order engine."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .models import Customer, Product


class ProductLookup(Protocol):
    """Catalog capabilities the order engine depends on.

    ``ProductCatalog`` satisfies this; tests may substitute a fake.
    """

    def find_by_id(self, product_id: int) -> Product | None:
        """Return the live product record, or None if unknown."""
        ...

    def is_available(self, product_id: int, quantity: int) -> bool:
        """True iff the product exists and has at least ``quantity`` in stock."""
        ...

    def reduce_stock(self, product_id: int, quantity: int) -> bool:
        """Deduct stock; False (no change) if unknown or insufficient."""
        ...

    def add_stock(self, product_id: int, quantity: int) -> bool:
        """Return stock to the shelf; False if the product is unknown."""
        ...

    def current_price_and_name(self, product_id: int) -> tuple[str, Decimal] | None:
        """Snapshot of (name, price) for building an order item."""
        ...


class CustomerLookup(Protocol):
    """Directory capabilities the order engine depends on."""

    def find_by_id(self, customer_id: int) -> Customer | None:
        ...


class OrderStorage(Protocol):
    """Persistence for serialized order lines."""

    def load_orders(self) -> list[str]:
        ...

    def save_orders(self, lines: list[str]) -> None:
        """Replace the stored collection.

        Raises:
            StorageError: If the write fails.
        """
        ...
