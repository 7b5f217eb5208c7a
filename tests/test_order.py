"""Tests for the Order entity: line math, discounts, status machine and codec."""

from decimal import Decimal

import pytest

from orderdesk.errors import RecordParseError
from orderdesk.order import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    Order,
    OrderItem,
    OrderStatus,
)


def make_order(**kwargs) -> Order:
    defaults = dict(
        order_id=1,
        customer_id=1,
        customer_name="John Doe",
        shipping_address="123 Main St, Springfield, USA",
        order_date="2024-03-15 10:30:00",
    )
    defaults.update(kwargs)
    return Order(**defaults)


def laptop(quantity: int = 1) -> OrderItem:
    return OrderItem(product_id=1, product_name="Laptop", quantity=quantity, unit_price=Decimal("999.99"))


def mouse(quantity: int = 1) -> OrderItem:
    return OrderItem(product_id=2, product_name="Mouse", quantity=quantity, unit_price=Decimal("29.99"))


def assert_totals_consistent(order: Order) -> None:
    assert order.total_amount == sum((i.total_price for i in order.items), Decimal("0"))
    assert order.final_amount == max(Decimal("0"), order.total_amount - order.discount_amount)


class TestOrderItem:
    def test_total_price(self):
        item = laptop(2)
        assert item.total_price == Decimal("1999.98")

    def test_float_price_is_exact(self):
        item = OrderItem(product_id=1, product_name="Laptop", quantity=3, unit_price=999.99)
        assert item.unit_price == Decimal("999.99")
        assert item.total_price == Decimal("2999.97")


class TestItemManagement:
    def test_totals_after_every_mutation(self):
        order = make_order()
        order.add_item(laptop(2))
        assert_totals_consistent(order)
        order.add_item(mouse(1))
        assert_totals_consistent(order)
        assert order.total_amount == Decimal("2029.97")
        order.update_item_quantity(2, 4)
        assert_totals_consistent(order)
        order.remove_item(1)
        assert_totals_consistent(order)
        assert order.total_amount == Decimal("119.96")
        order.clear_items()
        assert_totals_consistent(order)
        assert order.total_amount == Decimal("0")

    def test_duplicate_product_merges(self):
        order = make_order()
        order.add_item(laptop(2))
        order.add_item(laptop(3))

        assert len(order.items) == 1
        assert order.items[0].quantity == 5
        assert order.total_amount == Decimal("4999.95")

    def test_merge_keeps_existing_price(self):
        order = make_order()
        order.add_item(laptop(1))
        order.add_item(OrderItem(product_id=1, product_name="Laptop", quantity=1, unit_price=Decimal("1.00")))

        assert order.items[0].unit_price == Decimal("999.99")
        assert order.total_amount == Decimal("1999.98")

    def test_insertion_order_preserved(self):
        order = make_order()
        order.add_item(mouse())
        order.add_item(laptop())
        assert [i.product_id for i in order.items] == [2, 1]

    def test_remove_missing_item(self):
        order = make_order()
        order.add_item(laptop())
        assert order.remove_item(99) is False
        assert len(order.items) == 1

    def test_update_quantity_zero_removes_line(self):
        order = make_order()
        order.add_item(laptop(2))
        assert order.update_item_quantity(1, 0) is True
        assert order.is_empty()

    def test_update_quantity_missing_item(self):
        order = make_order()
        assert order.update_item_quantity(1, 3) is False

    def test_item_count_sums_quantities(self):
        order = make_order()
        order.add_item(laptop(2))
        order.add_item(mouse(3))
        assert order.get_item_count() == 5


class TestDiscounts:
    def test_percentage_discount(self):
        order = make_order()
        order.add_item(laptop(2))

        assert order.apply_discount(10) is True
        assert order.discount_amount == Decimal("199.998")
        assert order.final_amount == Decimal("1799.982")

    @pytest.mark.parametrize("percent", [-5, 101])
    def test_out_of_range_percentage_is_noop(self, percent):
        order = make_order()
        order.add_item(laptop(2))

        assert order.apply_discount(percent) is False
        assert order.discount_amount == Decimal("0")
        assert order.final_amount == Decimal("1999.98")

    def test_boundary_percentages(self):
        order = make_order()
        order.add_item(mouse())
        assert order.apply_discount(0) is True
        assert order.final_amount == Decimal("29.99")
        assert order.apply_discount(100) is True
        assert order.final_amount == Decimal("0")

    def test_fixed_discount(self):
        order = make_order()
        order.add_item(mouse(2))
        assert order.set_discount_amount("10.00") is True
        assert order.final_amount == Decimal("49.98")

    def test_negative_fixed_discount_ignored(self):
        order = make_order()
        order.add_item(mouse(2))
        assert order.set_discount_amount(-1) is False
        assert order.discount_amount == Decimal("0")

    def test_final_amount_never_negative(self):
        order = make_order()
        order.add_item(mouse())
        order.set_discount_amount(Decimal("500"))
        assert order.final_amount == Decimal("0")

    def test_discount_amount_not_rescaled_by_item_changes(self):
        order = make_order()
        order.add_item(laptop(1))
        order.apply_discount(10)
        order.add_item(mouse(1))

        assert order.discount_amount == Decimal("99.999")
        assert_totals_consistent(order)


class TestStatusMachine:
    @pytest.mark.parametrize("start", list(OrderStatus))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_transition_table_is_closed(self, start, target):
        order = make_order(status=start)
        allowed = target in TRANSITIONS[start]

        assert order.update_status(target) is allowed
        assert order.status == (target if allowed else start)

    def test_shipped_cannot_be_cancelled(self):
        order = make_order(status=OrderStatus.SHIPPED)
        assert order.update_status(OrderStatus.CANCELLED) is False
        assert order.status == OrderStatus.SHIPPED

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
        assert make_order(status=OrderStatus.DELIVERED).is_terminal()
        assert not make_order(status=OrderStatus.SHIPPED).is_terminal()

    def test_from_label(self):
        assert OrderStatus.from_label("Shipped") == OrderStatus.SHIPPED
        assert OrderStatus.from_label("cancelled") == OrderStatus.CANCELLED
        assert OrderStatus.from_label("Lost") == OrderStatus.PENDING

    def test_parse_is_strict(self):
        assert OrderStatus.parse("PROCESSING") == OrderStatus.PROCESSING
        with pytest.raises(ValueError, match="Unknown order status: Lost"):
            OrderStatus.parse("Lost")


class TestValidity:
    def test_empty_order_is_invalid(self):
        assert make_order().is_valid() is False

    def test_order_with_item_is_valid(self):
        order = make_order()
        order.add_item(mouse())
        assert order.is_valid() is True

    def test_non_positive_ids_invalid(self):
        order = make_order(customer_id=0)
        order.add_item(mouse())
        assert order.is_valid() is False


class TestSerialization:
    def test_round_trip(self):
        order = make_order(status=OrderStatus.CONFIRMED, notes="Gift wrap")
        order.add_item(laptop(2))
        order.add_item(mouse(1))
        order.apply_discount(10)

        restored = Order.deserialize(order.serialize())

        assert restored == order

    def test_field_layout(self):
        order = make_order()
        order.add_item(mouse(2))
        parts = order.serialize().split("|")

        assert len(parts) == 11
        assert parts[0] == "1"
        assert parts[3] == "Pending"
        assert parts[4] == "2024-03-15 10:30:00"
        assert parts[10] == "2,Mouse,2,29.99"

    def test_reserved_characters_in_text_are_replaced(self):
        order = make_order(notes="fragile | handle\nwith care")
        restored = Order.deserialize(order.serialize())
        assert restored.notes == "fragile   handle with care"
        assert restored.order_id == 1

    def test_short_line_gives_default_order(self):
        restored = Order.deserialize("5|1|John Doe|Pending")
        assert restored.order_id == 0
        assert restored.items == []

    def test_bad_number_raises(self):
        line = make_order().serialize().replace("1|1|", "x|1|", 1)
        with pytest.raises(RecordParseError):
            Order.deserialize(line)

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_number_raises(self, value):
        line = f"7|1|John Doe|Pending|2024-01-01 00:00:00|addr|0|{value}|0||2,Mouse,1,29.99"
        with pytest.raises(RecordParseError, match="finite"):
            Order.deserialize(line)

    def test_non_finite_item_price_raises(self):
        line = "7|1|John Doe|Pending|2024-01-01 00:00:00|addr|0|0|0||2,Mouse,1,Infinity"
        with pytest.raises(RecordParseError):
            Order.deserialize(line)

    def test_totals_recomputed_from_items(self):
        line = "7|1|John Doe|Pending|2024-01-01 00:00:00|addr|1.00|5.00|0.00||2,Mouse,2,29.99"
        restored = Order.deserialize(line)

        assert restored.total_amount == Decimal("59.98")
        assert restored.discount_amount == Decimal("5.00")
        assert restored.final_amount == Decimal("54.98")

    def test_to_dict(self):
        order = make_order()
        order.add_item(mouse(2))
        data = order.to_dict()

        assert data["status"] == "Pending"
        assert data["item_count"] == 2
        assert data["items"][0]["total_price"] == Decimal("59.98")
