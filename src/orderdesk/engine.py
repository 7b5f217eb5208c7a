"""Order engine: order lifecycle across the catalog and the customer directory.

The engine is the only component that creates orders or moves catalog stock
as a side effect of order activity. Expected business failures (unknown IDs,
insufficient stock, disallowed transitions, out-of-range discounts) are
reported through the return value and never raised.

Stock policy:
    Adding or growing a line checks live catalog stock against the resulting
    line quantity but reserves nothing. Confirming an order deducts every
    line from the catalog. Cancelling (or deleting) a CONFIRMED or
    PROCESSING order puts that stock back. Items and discounts can only be
    changed while the order is PENDING, so committed stock always matches
    the order's lines.
"""

import copy
from collections import Counter
from decimal import Decimal

import structlog

from .errors import RecordParseError, StorageError
from .models import User
from .order import Order, OrderItem, OrderStatus
from .protocols import CustomerLookup, OrderStorage, ProductLookup

logger = structlog.get_logger(__name__)

# Statuses whose lines have been deducted from catalog stock.
STOCK_COMMITTED_STATUSES = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING})

# Statuses counted as revenue: confirmed onward, never cancelled.
REVENUE_STATUSES = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})


class OrderEngine:
    """Owns the order collection and enforces its cross-entity rules."""

    def __init__(
        self,
        storage: OrderStorage,
        catalog: ProductLookup,
        directory: CustomerLookup,
    ):
        self.storage = storage
        self.catalog = catalog
        self.directory = directory
        self._orders: list[Order] = []
        self._next_id = 1
        self._load()

    # --- Persistence ---

    def _load(self) -> None:
        self._orders = []
        for line in self.storage.load_orders():
            try:
                order = Order.deserialize(line)
            except RecordParseError as e:
                logger.warning("order_record_skipped", error=str(e))
                continue
            if order.order_id <= 0:
                logger.warning("order_record_skipped", line=line, error="missing fields")
                continue
            self._orders.append(order)
            self._next_id = max(self._next_id, order.order_id + 1)
        logger.info("orders_loaded", count=len(self._orders))

    def _save(self) -> bool:
        """Flush every order; a failed write is logged and memory keeps the change."""
        try:
            self.storage.save_orders([o.serialize() for o in self._orders])
        except StorageError as e:
            logger.error("orders_save_failed", error=str(e))
            return False
        logger.debug("orders_saved", count=len(self._orders))
        return True

    def _find(self, order_id: int) -> Order | None:
        for order in self._orders:
            if order.order_id == order_id:
                return order
        return None

    def _find_editable(self, order_id: int) -> Order | None:
        order = self._find(order_id)
        if order is None:
            return None
        if order.status != OrderStatus.PENDING:
            logger.warning("order_not_editable", order_id=order_id, status=order.status_label)
            return None
        return order

    # --- CRUD ---

    def create_order(self, customer_id: int, notes: str = "") -> Order | None:
        """
        Open a PENDING order for an existing customer.

        The customer's name and ``address, city, country`` are copied onto
        the order and not updated afterwards.

        Returns:
            A copy of the new order, or None if the customer is unknown.
        """
        customer = self.directory.find_by_id(customer_id)
        if customer is None:
            logger.warning("customer_not_found", customer_id=customer_id)
            return None

        order = Order(
            order_id=self._next_id,
            customer_id=customer_id,
            customer_name=customer.name,
            shipping_address=customer.shipping_address,
            notes=notes,
        )
        self._next_id += 1
        self._orders.append(order)
        self._save()
        logger.info("order_created", order_id=order.order_id, customer_id=customer_id)
        return copy.deepcopy(order)

    def get_order(self, order_id: int) -> Order | None:
        order = self._find(order_id)
        return copy.deepcopy(order) if order is not None else None

    def get_all_orders(self) -> list[Order]:
        return copy.deepcopy(self._orders)

    def update_order(self, order: Order) -> bool:
        """
        Replace a stored order with an edited copy.

        The status, customer and order date cannot change here; use the
        lifecycle operations. Items and discount may only change while the
        order is PENDING, and the edited lines must name distinct products
        with positive quantities that live stock can cover. Totals are
        re-derived from the copy's items.
        """
        for i, existing in enumerate(self._orders):
            if existing.order_id != order.order_id:
                continue
            reason = self._update_problem(existing, order)
            if reason is not None:
                logger.warning("order_update_rejected", order_id=order.order_id, reason=reason)
                return False
            replacement = copy.deepcopy(order)
            for item in replacement.items:
                item.recalculate()
            replacement.calculate_total_amount()
            replacement.calculate_final_amount()
            self._orders[i] = replacement
            self._save()
            logger.info("order_updated", order_id=order.order_id)
            return True
        return False

    def _update_problem(self, existing: Order, order: Order) -> str | None:
        if order.status != existing.status:
            return "status changes go through the lifecycle"
        if order.customer_id != existing.customer_id or order.order_date != existing.order_date:
            return "customer and order date are fixed"
        if order.items == existing.items and order.discount_amount == existing.discount_amount:
            return None
        if existing.status != OrderStatus.PENDING:
            return "items and discount are locked once confirmed"
        if order.discount_amount < 0:
            return "discount must not be negative"
        product_ids = [item.product_id for item in order.items]
        if len(set(product_ids)) != len(product_ids):
            return "each product may appear on one line only"
        for item in order.items:
            if item.quantity <= 0:
                return f"quantity for product {item.product_id} must be positive"
            if not self.catalog.is_available(item.product_id, item.quantity):
                return f"insufficient stock for product {item.product_id}"
        return None

    def delete_order(self, order_id: int, actor: User) -> bool:
        """
        Remove an order regardless of status (administrative override).

        Requires ``actor.can_delete_orders()``. Stock committed by a
        CONFIRMED or PROCESSING order is returned to the catalog.
        """
        if not actor.can_delete_orders():
            logger.warning("order_delete_denied", order_id=order_id,
                           username=actor.username, role=actor.role.value)
            return False

        order = self._find(order_id)
        if order is None:
            return False

        if order.status in STOCK_COMMITTED_STATUSES:
            self._release_stock(order)
        self._orders.remove(order)
        self._save()
        logger.info("order_deleted", order_id=order_id, status=order.status_label,
                    username=actor.username)
        return True

    # --- Item management ---

    def add_item_to_order(self, order_id: int, product_id: int, quantity: int) -> bool:
        """
        Add ``quantity`` units of a product to a PENDING order.

        Fails if the order or product is unknown, the product is inactive,
        or live stock is below the resulting line quantity. The item
        carries a snapshot of the product's current name and price.
        """
        if quantity <= 0:
            return False

        order = self._find_editable(order_id)
        product = self.catalog.find_by_id(product_id)
        if order is None or product is None:
            return False
        if not product.is_active:
            logger.warning("product_inactive", product_id=product_id)
            return False

        existing = order.find_item(product_id)
        needed = quantity + (existing.quantity if existing is not None else 0)
        if not self.catalog.is_available(product_id, needed):
            logger.warning("insufficient_stock", product_id=product_id,
                           requested=needed, order_id=order_id)
            return False

        snapshot = self.catalog.current_price_and_name(product_id)
        if snapshot is None:
            return False
        name, price = snapshot

        order.add_item(OrderItem(product_id=product_id, product_name=name,
                                 quantity=quantity, unit_price=price))
        self._save()
        logger.info("order_item_added", order_id=order_id, product_id=product_id,
                    product_name=name, quantity=quantity)
        return True

    def remove_item_from_order(self, order_id: int, product_id: int) -> bool:
        order = self._find_editable(order_id)
        if order is None or not order.remove_item(product_id):
            return False
        self._save()
        logger.info("order_item_removed", order_id=order_id, product_id=product_id)
        return True

    def update_order_item_quantity(self, order_id: int, product_id: int, new_quantity: int) -> bool:
        """Set a line's quantity; increases are re-checked against live stock."""
        order = self._find_editable(order_id)
        if order is None:
            return False
        item = order.find_item(product_id)
        if item is None:
            return False

        if new_quantity > item.quantity and not self.catalog.is_available(product_id, new_quantity):
            logger.warning("insufficient_stock", product_id=product_id,
                           requested=new_quantity, order_id=order_id)
            return False

        if not order.update_item_quantity(product_id, new_quantity):
            return False
        self._save()
        logger.info("order_item_quantity_updated", order_id=order_id,
                    product_id=product_id, quantity=new_quantity)
        return True

    def set_order_notes(self, order_id: int, notes: str) -> bool:
        order = self._find(order_id)
        if order is None:
            return False
        order.notes = notes
        self._save()
        return True

    # --- Status management ---

    def update_order_status(self, order_id: int, new_status: OrderStatus) -> bool:
        """
        Move an order along the lifecycle.

        Confirmation additionally requires a valid order (non-empty) whose
        lines are all in stock, and deducts that stock. Cancelling after
        confirmation restores it.
        """
        order = self._find(order_id)
        if order is None:
            return False
        if not order.can_change_status_to(new_status):
            logger.warning("status_change_rejected", order_id=order_id,
                           current=order.status_label, requested=new_status.value)
            return False

        if new_status == OrderStatus.CONFIRMED:
            if not order.is_valid():
                logger.warning("order_invalid", order_id=order_id)
                return False
            if not self._commit_stock(order):
                return False
        elif new_status == OrderStatus.CANCELLED and order.status in STOCK_COMMITTED_STATUSES:
            self._release_stock(order)

        old_label = order.status_label
        order.update_status(new_status)
        self._save()
        logger.info("order_status_changed", order_id=order_id,
                    old=old_label, new=order.status_label)
        return True

    def confirm_order(self, order_id: int) -> bool:
        return self.update_order_status(order_id, OrderStatus.CONFIRMED)

    def process_order(self, order_id: int) -> bool:
        return self.update_order_status(order_id, OrderStatus.PROCESSING)

    def ship_order(self, order_id: int) -> bool:
        return self.update_order_status(order_id, OrderStatus.SHIPPED)

    def deliver_order(self, order_id: int) -> bool:
        return self.update_order_status(order_id, OrderStatus.DELIVERED)

    def cancel_order(self, order_id: int) -> bool:
        return self.update_order_status(order_id, OrderStatus.CANCELLED)

    def _commit_stock(self, order: Order) -> bool:
        """Deduct every line from the catalog, all or nothing."""
        if not self._lines_available(order):
            logger.warning("order_unfulfillable", order_id=order.order_id)
            return False

        committed: list[OrderItem] = []
        for item in order.items:
            if not self.catalog.reduce_stock(item.product_id, item.quantity):
                for done in committed:
                    self.catalog.add_stock(done.product_id, done.quantity)
                logger.warning("order_unfulfillable", order_id=order.order_id,
                               product_id=item.product_id)
                return False
            committed.append(item)
        return True

    def _release_stock(self, order: Order) -> None:
        for item in order.items:
            if not self.catalog.add_stock(item.product_id, item.quantity):
                logger.warning("stock_not_restored", order_id=order.order_id,
                               product_id=item.product_id, quantity=item.quantity)

    # --- Financial operations ---

    def apply_discount(self, order_id: int, discount_percent) -> bool:
        order = self._find_editable(order_id)
        if order is None or not order.apply_discount(discount_percent):
            return False
        self._save()
        logger.info("discount_applied", order_id=order_id, percent=str(discount_percent),
                    discount=str(order.discount_amount))
        return True

    def apply_fixed_discount(self, order_id: int, discount_amount) -> bool:
        order = self._find_editable(order_id)
        if order is None or not order.set_discount_amount(discount_amount):
            return False
        self._save()
        logger.info("discount_applied", order_id=order_id, discount=str(order.discount_amount))
        return True

    def calculate_order_total(self, order_id: int) -> Decimal | None:
        order = self._find(order_id)
        if order is None:
            return None
        order.calculate_total_amount()
        order.calculate_final_amount()
        return order.total_amount

    def get_total_revenue(self) -> Decimal:
        return sum(
            (o.final_amount for o in self._orders if o.status in REVENUE_STATUSES),
            Decimal("0"),
        )

    def get_total_revenue_by_period(self, start_date: str, end_date: str) -> Decimal:
        return sum(
            (o.final_amount for o in self._in_period(start_date, end_date)
             if o.status in REVENUE_STATUSES),
            Decimal("0"),
        )

    def get_average_order_value(self) -> Decimal:
        revenue_orders = [o for o in self._orders if o.status in REVENUE_STATUSES]
        if not revenue_orders:
            return Decimal("0")
        return self.get_total_revenue() / len(revenue_orders)

    # --- Validation ---

    def validate_order(self, order: Order) -> bool:
        return order.is_valid()

    def _lines_available(self, order: Order) -> bool:
        return all(
            self.catalog.is_available(item.product_id, item.quantity)
            for item in order.items
        )

    def can_fulfill_order(self, order_id: int) -> bool:
        """Point-in-time check that every line is in stock right now."""
        order = self._find(order_id)
        return order is not None and self._lines_available(order)

    def check_product_availability(self, product_id: int, quantity: int) -> bool:
        return self.catalog.is_available(product_id, quantity)

    # --- Search and filter ---

    def get_orders_by_customer(self, customer_id: int) -> list[Order]:
        return [copy.deepcopy(o) for o in self._orders if o.customer_id == customer_id]

    def get_orders_by_status(self, status: OrderStatus) -> list[Order]:
        return [copy.deepcopy(o) for o in self._orders if o.status == status]

    def _in_period(self, start_date: str, end_date: str) -> list[Order]:
        # order_date starts with YYYY-MM-DD, so string comparison orders by date
        return [o for o in self._orders if start_date <= o.order_date[:10] <= end_date]

    def get_orders_by_date_range(self, start_date: str, end_date: str) -> list[Order]:
        """Orders whose date part falls within [start_date, end_date] (YYYY-MM-DD)."""
        return [copy.deepcopy(o) for o in self._in_period(start_date, end_date)]

    def search_orders(self, term: str) -> list[Order]:
        needle = term.strip().lower()
        if not needle:
            return []

        def matches(order: Order) -> bool:
            if needle == str(order.order_id):
                return True
            haystacks = [order.customer_name, order.notes, order.shipping_address]
            haystacks.extend(item.product_name for item in order.items)
            return any(needle in text.lower() for text in haystacks)

        return [copy.deepcopy(o) for o in self._orders if matches(o)]

    # --- Statistics ---

    def get_total_orders(self) -> int:
        return len(self._orders)

    def get_orders_by_status_count(self, status: OrderStatus) -> int:
        return sum(1 for o in self._orders if o.status == status)

    def get_order_status_distribution(self) -> dict[OrderStatus, int]:
        distribution = {status: 0 for status in OrderStatus}
        for order in self._orders:
            distribution[order.status] += 1
        return distribution

    def get_top_customers(self, limit: int = 10) -> list[tuple[int, int]]:
        """(customer_id, order count), most orders first."""
        counts = Counter(o.customer_id for o in self._orders)
        return counts.most_common(limit)

    def get_top_products(self, limit: int = 10) -> list[tuple[int, int]]:
        """(product_id, units sold) over revenue orders, most units first."""
        sold: Counter[int] = Counter()
        for order in self._orders:
            if order.status in REVENUE_STATUSES:
                for item in order.items:
                    sold[item.product_id] += item.quantity
        return sold.most_common(limit)
