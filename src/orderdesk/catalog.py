"""Product catalog: product records and stock levels."""

import copy
from decimal import Decimal

import structlog

from .database import Database
from .errors import RecordParseError, StorageError
from .models import Product
from .utils import to_money

logger = structlog.get_logger(__name__)


class ProductCatalog:
    """Owns the product collection and every stock mutation on it."""

    def __init__(self, database: Database):
        self.database = database
        self._products: list[Product] = []
        self._next_id = 1
        self._load()

    # --- Persistence ---

    def _load(self) -> None:
        self._products = []
        for line in self.database.load_products():
            try:
                product = Product.deserialize(line)
            except RecordParseError as e:
                logger.warning("product_record_skipped", error=str(e))
                continue
            if product.product_id <= 0:
                logger.warning("product_record_skipped", line=line, error="missing fields")
                continue
            self._products.append(product)
            self._next_id = max(self._next_id, product.product_id + 1)
        logger.info("products_loaded", count=len(self._products))

    def _save(self) -> bool:
        try:
            self.database.save_products([p.serialize() for p in self._products])
        except StorageError as e:
            logger.error("products_save_failed", error=str(e))
            return False
        logger.debug("products_saved", count=len(self._products))
        return True

    def _find(self, product_id: int) -> Product | None:
        for product in self._products:
            if product.product_id == product_id:
                return product
        return None

    # --- Contract used by the order engine ---

    def find_by_id(self, product_id: int) -> Product | None:
        """Return a copy of the product, or None."""
        product = self._find(product_id)
        return copy.copy(product) if product is not None else None

    def is_available(self, product_id: int, quantity: int = 1) -> bool:
        product = self._find(product_id)
        return product is not None and product.is_in_stock(quantity)

    def reduce_stock(self, product_id: int, quantity: int) -> bool:
        product = self._find(product_id)
        if product is None or not product.reduce_stock(quantity):
            return False
        self._save()
        logger.info("stock_reduced", product_id=product_id, quantity=quantity,
                    stock=product.stock_quantity)
        return True

    def add_stock(self, product_id: int, quantity: int) -> bool:
        product = self._find(product_id)
        if product is None or quantity <= 0:
            return False
        product.add_stock(quantity)
        self._save()
        logger.info("stock_added", product_id=product_id, quantity=quantity,
                    stock=product.stock_quantity)
        return True

    def current_price_and_name(self, product_id: int) -> tuple[str, Decimal] | None:
        product = self._find(product_id)
        if product is None:
            return None
        return product.name, product.price

    # --- CRUD ---

    def add_product(self, product: Product) -> Product | None:
        """
        Validate and store a new product under the next free ID.

        Returns:
            A copy of the stored product, or None if validation failed.
        """
        candidate = copy.copy(product)
        candidate.product_id = 0
        if not self.validate_product(candidate):
            return None

        candidate.product_id = self._next_id
        self._next_id += 1
        self._products.append(candidate)
        self._save()
        logger.info("product_added", product_id=candidate.product_id, name=candidate.name)
        return copy.copy(candidate)

    def get_product(self, product_id: int) -> Product | None:
        return self.find_by_id(product_id)

    def get_all_products(self) -> list[Product]:
        return [copy.copy(p) for p in self._products]

    def get_active_products(self) -> list[Product]:
        return [copy.copy(p) for p in self._products if p.is_active]

    def update_product(self, product: Product) -> bool:
        for i, existing in enumerate(self._products):
            if existing.product_id == product.product_id:
                if not self.validate_product(product):
                    return False
                self._products[i] = copy.copy(product)
                self._save()
                logger.info("product_updated", product_id=product.product_id)
                return True
        return False

    def delete_product(self, product_id: int) -> bool:
        """Remove a product; orders keep their snapshot of it."""
        product = self._find(product_id)
        if product is None:
            return False
        self._products.remove(product)
        self._save()
        logger.info("product_deleted", product_id=product_id, name=product.name)
        return True

    def _set_active(self, product_id: int, active: bool) -> bool:
        product = self._find(product_id)
        if product is None:
            return False
        product.is_active = active
        self._save()
        return True

    def deactivate_product(self, product_id: int) -> bool:
        return self._set_active(product_id, False)

    def activate_product(self, product_id: int) -> bool:
        return self._set_active(product_id, True)

    # --- Stock management ---

    def update_stock(self, product_id: int, new_quantity: int) -> bool:
        product = self._find(product_id)
        if product is None or new_quantity < 0:
            return False
        old = product.stock_quantity
        product.stock_quantity = new_quantity
        self._save()
        logger.info("stock_updated", product_id=product_id, old=old, new=new_quantity)
        return True

    def get_low_stock_products(self) -> list[Product]:
        return [copy.copy(p) for p in self._products if p.is_active and p.is_low_stock()]

    def get_out_of_stock_products(self) -> list[Product]:
        return [copy.copy(p) for p in self._products if p.is_active and p.stock_quantity == 0]

    def get_products_in_stock(self) -> list[Product]:
        return [copy.copy(p) for p in self._products if p.is_active and p.stock_quantity > 0]

    # --- Search ---

    def search_by_name(self, name: str) -> list[Product]:
        needle = name.lower()
        return [copy.copy(p) for p in self._products if needle in p.name.lower()]

    def get_products_by_category(self, category: str) -> list[Product]:
        wanted = category.lower()
        return [copy.copy(p) for p in self._products if p.category.lower() == wanted]

    def get_products_by_price_range(self, min_price, max_price) -> list[Product]:
        low, high = to_money(min_price), to_money(max_price)
        return [copy.copy(p) for p in self._products if low <= p.price <= high]

    # --- Pricing ---

    def update_price(self, product_id: int, new_price) -> bool:
        price = to_money(new_price)
        product = self._find(product_id)
        if product is None or price < 0:
            return False
        product.price = price
        self._save()
        logger.info("price_updated", product_id=product_id, price=str(price))
        return True

    def apply_discount(self, product_id: int, percent) -> bool:
        """Lower one product's list price by ``percent`` (0..100)."""
        percent = to_money(percent)
        product = self._find(product_id)
        if product is None or not 0 <= percent <= 100:
            return False
        product.price = product.price * (100 - percent) / 100
        self._save()
        return True

    def apply_bulk_discount(self, category: str, percent) -> int:
        """
        Lower the list price of every product in ``category``.

        Returns:
            Number of products repriced (0 when the percentage is out of range).
        """
        percent = to_money(percent)
        if not 0 <= percent <= 100:
            return 0
        wanted = category.lower()
        matched = [p for p in self._products if p.category.lower() == wanted]
        for product in matched:
            product.price = product.price * (100 - percent) / 100
        if matched:
            self._save()
            logger.info("bulk_discount_applied", category=category,
                        percent=str(percent), count=len(matched))
        return len(matched)

    # --- Categories ---

    def get_all_categories(self) -> list[str]:
        return sorted({p.category for p in self._products})

    def get_product_count_by_category(self, category: str) -> int:
        wanted = category.lower()
        return sum(1 for p in self._products if p.category.lower() == wanted)

    # --- Validation ---

    def is_product_name_unique(self, name: str, exclude_product_id: int = -1) -> bool:
        wanted = name.lower()
        return not any(
            p.product_id != exclude_product_id and p.name.lower() == wanted
            for p in self._products
        )

    def validate_product(self, product: Product) -> bool:
        if not product.is_valid():
            logger.warning("product_invalid", name=product.name)
            return False
        if not self.is_product_name_unique(product.name, product.product_id):
            logger.warning("product_name_taken", name=product.name)
            return False
        return True

    # --- Statistics ---

    def get_total_products(self) -> int:
        return len(self._products)

    def get_active_products_count(self) -> int:
        return sum(1 for p in self._products if p.is_active)

    def get_inactive_products_count(self) -> int:
        return self.get_total_products() - self.get_active_products_count()

    def get_total_inventory_value(self) -> Decimal:
        return sum((p.price * p.stock_quantity for p in self._products), Decimal("0"))

    def get_average_price(self) -> Decimal:
        if not self._products:
            return Decimal("0")
        return sum((p.price for p in self._products), Decimal("0")) / len(self._products)

    def get_total_stock_quantity(self) -> int:
        return sum(p.stock_quantity for p in self._products)
