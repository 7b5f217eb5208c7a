"""Order entity: line-item math, status state machine and line codec.

An order owns its line items and keeps its monetary fields consistent:
``total_amount`` is always the full sum of the items' ``total_price`` and
``final_amount`` is always ``max(0, total_amount - discount_amount)``. Both
are recomputed after every item or discount mutation and are never set
directly.

``customer_name``, ``shipping_address`` and each item's ``product_name`` and
``unit_price`` are snapshot fields. They are copied when the order is
created or the item is added and are never re-synchronised with the source
customer or product.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from .models import parse_decimal, parse_int
from .utils import (
    FIELD_SEPARATOR,
    ITEM_FIELD_SEPARATOR,
    ITEM_SEPARATOR,
    current_datetime,
    format_currency,
    sanitize_field,
    to_money,
)

ORDER_FIELD_COUNT = 11
ZERO = Decimal("0")


class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, label: str) -> "OrderStatus":
        """
        Map a label ("Shipped") or member name ("SHIPPED") to a status.

        Raises:
            ValueError: If the label names no status.
        """
        for status in cls:
            if label == status.value or label.upper() == status.name:
                return status
        raise ValueError(f"Unknown order status: {label}")

    @classmethod
    def from_label(cls, label: str) -> "OrderStatus":
        """Lenient form of parse for stored records; unknown means PENDING."""
        try:
            return cls.parse(label)
        except ValueError:
            return cls.PENDING


# Cancellation is possible up to PROCESSING; a shipped order can only be delivered.
TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


@dataclass
class OrderItem:
    """One product/quantity/price line inside an order."""

    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal = field(init=False)

    def __post_init__(self) -> None:
        self.unit_price = to_money(self.unit_price)
        self.recalculate()

    def recalculate(self) -> None:
        self.total_price = self.unit_price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
        }

    def serialize(self) -> str:
        return ITEM_FIELD_SEPARATOR.join([
            str(self.product_id),
            sanitize_field(self.product_name, FIELD_SEPARATOR + ITEM_SEPARATOR + ITEM_FIELD_SEPARATOR),
            str(self.quantity),
            str(self.unit_price),
        ])


@dataclass
class Order:
    """A customer order and its line items."""

    order_id: int = 0
    customer_id: int = 0
    customer_name: str = ""
    items: list[OrderItem] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    order_date: str = field(default_factory=current_datetime)
    shipping_address: str = ""
    total_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    final_amount: Decimal = ZERO
    notes: str = ""

    # --- Item management ---

    def find_item(self, product_id: int) -> OrderItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add_item(self, item: OrderItem) -> None:
        """
        Add a line, merging into an existing line for the same product.

        Merging sums the quantities and keeps the existing line's snapshot
        price. Stock is not checked here.
        """
        existing = self.find_item(item.product_id)
        if existing is not None:
            existing.quantity += item.quantity
            existing.recalculate()
        else:
            self.items.append(item)
        self._recalculate()

    def remove_item(self, product_id: int) -> bool:
        item = self.find_item(product_id)
        if item is None:
            return False
        self.items.remove(item)
        self._recalculate()
        return True

    def update_item_quantity(self, product_id: int, new_quantity: int) -> bool:
        """Set a line's quantity; a quantity of zero or less removes the line."""
        if new_quantity <= 0:
            return self.remove_item(product_id)

        item = self.find_item(product_id)
        if item is None:
            return False
        item.quantity = new_quantity
        item.recalculate()
        self._recalculate()
        return True

    def clear_items(self) -> None:
        self.items.clear()
        self._recalculate()

    # --- Calculations ---

    def calculate_total_amount(self) -> None:
        self.total_amount = sum((item.total_price for item in self.items), ZERO)

    def calculate_final_amount(self) -> None:
        self.final_amount = max(ZERO, self.total_amount - self.discount_amount)

    def _recalculate(self) -> None:
        self.calculate_total_amount()
        self.calculate_final_amount()

    def apply_discount(self, percent: Decimal | int | float | str) -> bool:
        """
        Set the discount to ``percent`` of the current total.

        Out-of-range percentages (outside 0..100) leave the order unchanged
        and return False. The discount is stored as an amount, so later item
        changes do not rescale it.
        """
        percent = to_money(percent)
        if percent < 0 or percent > 100:
            return False
        self.discount_amount = self.total_amount * percent / 100
        self.calculate_final_amount()
        return True

    def set_discount_amount(self, amount: Decimal | int | float | str) -> bool:
        """Set a fixed discount; negative amounts are ignored."""
        amount = to_money(amount)
        if amount < 0:
            return False
        self.discount_amount = amount
        self.calculate_final_amount()
        return True

    # --- Status management ---

    def can_change_status_to(self, new_status: OrderStatus) -> bool:
        return new_status in TRANSITIONS[self.status]

    def update_status(self, new_status: OrderStatus) -> bool:
        if not self.can_change_status_to(new_status):
            return False
        self.status = new_status
        return True

    @property
    def status_label(self) -> str:
        return self.status.value

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    # --- Queries ---

    def get_item_count(self) -> int:
        """Total units across all lines."""
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items

    def is_valid(self) -> bool:
        return (
            self.order_id > 0
            and self.customer_id > 0
            and bool(self.customer_name)
            and bool(self.items)
            and self.final_amount >= 0
        )

    def to_text(self) -> str:
        lines = [
            f"Order ID: {self.order_id}",
            f"Customer ID: {self.customer_id}",
            f"Customer Name: {self.customer_name}",
            f"Order Date: {self.order_date}",
            f"Status: {self.status_label}",
            f"Shipping Address: {self.shipping_address}",
            f"Items ({len(self.items)}):",
        ]
        for item in self.items:
            lines.append(
                f"  - {item.product_name} (ID: {item.product_id}) x{item.quantity}"
                f" @ {format_currency(item.unit_price)} = {format_currency(item.total_price)}"
            )
        lines.append(f"Total Amount: {format_currency(self.total_amount)}")
        if self.discount_amount > 0:
            lines.append(f"Discount: {format_currency(self.discount_amount)}")
        lines.append(f"Final Amount: {format_currency(self.final_amount)}")
        if self.notes:
            lines.append(f"Notes: {self.notes}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "status": self.status_label,
            "order_date": self.order_date,
            "shipping_address": self.shipping_address,
            "items": [item.to_dict() for item in self.items],
            "item_count": self.get_item_count(),
            "total_amount": self.total_amount,
            "discount_amount": self.discount_amount,
            "final_amount": self.final_amount,
            "notes": self.notes,
        }

    # --- Serialization ---

    def serialize(self) -> str:
        """
        Render the order as one pipe-delimited line.

        Field order: orderId|customerId|customerName|status|orderDate|
        shippingAddress|totalAmount|discountAmount|finalAmount|notes|items
        """
        return FIELD_SEPARATOR.join([
            str(self.order_id),
            str(self.customer_id),
            sanitize_field(self.customer_name),
            self.status_label,
            sanitize_field(self.order_date),
            sanitize_field(self.shipping_address),
            str(self.total_amount),
            str(self.discount_amount),
            str(self.final_amount),
            sanitize_field(self.notes),
            ITEM_SEPARATOR.join(item.serialize() for item in self.items),
        ])

    @classmethod
    def deserialize(cls, line: str) -> "Order":
        """
        Parse an order line.

        Fewer than 11 fields yields a default, empty order. Totals are
        re-derived from the parsed items and stored discount.

        Raises:
            RecordParseError: If a numeric field is malformed.
        """
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) < ORDER_FIELD_COUNT:
            return cls()

        order = cls(
            order_id=parse_int("order", line, parts[0]),
            customer_id=parse_int("order", line, parts[1]),
            customer_name=parts[2],
            status=OrderStatus.from_label(parts[3]),
            order_date=parts[4],
            shipping_address=parts[5],
            discount_amount=parse_decimal("order", line, parts[7]),
            notes=parts[9],
        )
        # Stored totals are validated as numbers but recomputed from the items.
        parse_decimal("order", line, parts[6])
        parse_decimal("order", line, parts[8])

        if parts[10]:
            for chunk in parts[10].split(ITEM_SEPARATOR):
                fields = chunk.split(ITEM_FIELD_SEPARATOR)
                if len(fields) < 4:
                    continue
                order.items.append(OrderItem(
                    product_id=parse_int("order", line, fields[0]),
                    product_name=fields[1],
                    quantity=parse_int("order", line, fields[2]),
                    unit_price=parse_decimal("order", line, fields[3]),
                ))
        order._recalculate()
        return order
