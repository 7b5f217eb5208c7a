"""Tests for ProductCatalog and the Product model."""

from decimal import Decimal

import pytest

from orderdesk.catalog import ProductCatalog
from orderdesk.database import Database
from orderdesk.errors import RecordParseError
from orderdesk.models import Product


def product(**kwargs) -> Product:
    defaults = dict(name="Monitor", category="Electronics", price=Decimal("199.00"),
                    stock_quantity=10, min_stock_level=2)
    defaults.update(kwargs)
    return Product(**defaults)


class TestProductModel:
    def test_reduce_stock_rejects_overdraw(self):
        p = product(stock_quantity=3)
        assert p.reduce_stock(4) is False
        assert p.stock_quantity == 3
        assert p.reduce_stock(3) is True
        assert p.stock_quantity == 0

    def test_low_stock_at_threshold(self):
        assert product(stock_quantity=2, min_stock_level=2).is_low_stock()
        assert not product(stock_quantity=3, min_stock_level=2).is_low_stock()

    @pytest.mark.parametrize("name", ["", "Cable|HDMI", "Cable;HDMI", "Cable, HDMI"])
    def test_invalid_names(self, name):
        assert product(name=name).is_valid() is False

    def test_negative_price_invalid(self):
        assert product(price=Decimal("-1")).is_valid() is False

    def test_serialize_round_trip(self):
        p = product(product_id=4, description="27 inch | IPS", is_active=False)
        restored = Product.deserialize(p.serialize())

        assert restored.product_id == 4
        assert restored.description == "27 inch   IPS"
        assert restored.price == Decimal("199.00")
        assert restored.is_active is False

    def test_short_line_gives_default(self):
        assert Product.deserialize("1|Monitor").product_id == 0

    def test_bad_price_raises(self):
        with pytest.raises(RecordParseError):
            Product.deserialize("1|Monitor||Electronics|cheap|1|0|1")


class TestCatalogCrud:
    def test_add_assigns_ids(self, seeded):
        added = seeded.catalog.add_product(product())
        assert added.product_id == 4
        assert seeded.catalog.get_total_products() == 4

    def test_duplicate_name_rejected(self, seeded):
        assert seeded.catalog.add_product(product(name="laptop")) is None

    def test_invalid_product_rejected(self, seeded):
        assert seeded.catalog.add_product(product(category="")) is None

    def test_find_returns_copy(self, seeded):
        found = seeded.catalog.find_by_id(1)
        found.stock_quantity = 0
        assert seeded.catalog.find_by_id(1).stock_quantity == 50

    def test_update_product(self, seeded):
        laptop = seeded.catalog.find_by_id(1)
        laptop.description = "Refurbished"
        assert seeded.catalog.update_product(laptop)
        assert seeded.catalog.get_product(1).description == "Refurbished"

    def test_update_unknown(self, seeded):
        assert seeded.catalog.update_product(product(product_id=99)) is False

    def test_delete(self, seeded):
        assert seeded.catalog.delete_product(3)
        assert seeded.catalog.find_by_id(3) is None
        assert seeded.catalog.delete_product(3) is False

    def test_activation(self, seeded):
        seeded.catalog.deactivate_product(2)
        assert [p.product_id for p in seeded.catalog.get_active_products()] == [1, 3]
        assert seeded.catalog.get_inactive_products_count() == 1
        seeded.catalog.activate_product(2)
        assert seeded.catalog.get_active_products_count() == 3

    def test_persisted(self, seeded, data_dir):
        reloaded = ProductCatalog(Database(data_dir))
        assert [p.name for p in reloaded.get_all_products()] == ["Laptop", "Mouse", "Keyboard"]
        assert reloaded.add_product(product()).product_id == 4


class TestStock:
    def test_reduce_and_add(self, seeded):
        assert seeded.catalog.reduce_stock(1, 5)
        assert seeded.catalog.add_stock(1, 2)
        assert seeded.catalog.find_by_id(1).stock_quantity == 47

    def test_reduce_rejected(self, seeded):
        assert seeded.catalog.reduce_stock(1, 51) is False
        assert seeded.catalog.reduce_stock(99, 1) is False
        assert seeded.catalog.find_by_id(1).stock_quantity == 50

    def test_add_non_positive(self, seeded):
        assert seeded.catalog.add_stock(1, 0) is False

    def test_update_stock(self, seeded):
        assert seeded.catalog.update_stock(2, 0)
        assert seeded.catalog.update_stock(2, -1) is False
        assert [p.name for p in seeded.catalog.get_out_of_stock_products()] == ["Mouse"]
        assert [p.name for p in seeded.catalog.get_products_in_stock()] == ["Laptop", "Keyboard"]

    def test_low_stock(self, seeded):
        seeded.catalog.update_stock(3, 8)
        assert [p.name for p in seeded.catalog.get_low_stock_products()] == ["Keyboard"]

    def test_availability(self, seeded):
        assert seeded.catalog.is_available(1, 50)
        assert not seeded.catalog.is_available(1, 51)
        assert not seeded.catalog.is_available(42, 1)

    def test_price_and_name(self, seeded):
        assert seeded.catalog.current_price_and_name(2) == ("Mouse", Decimal("29.99"))
        assert seeded.catalog.current_price_and_name(42) is None


class TestSearchAndPricing:
    def test_search_by_name(self, seeded):
        assert [p.name for p in seeded.catalog.search_by_name("OUS")] == ["Mouse"]

    def test_by_category(self, seeded):
        assert len(seeded.catalog.get_products_by_category("accessories")) == 2

    def test_by_price_range(self, seeded):
        names = [p.name for p in seeded.catalog.get_products_by_price_range("20", "100")]
        assert names == ["Mouse", "Keyboard"]

    def test_update_price(self, seeded):
        assert seeded.catalog.update_price(1, "899.99")
        assert seeded.catalog.find_by_id(1).price == Decimal("899.99")
        assert seeded.catalog.update_price(1, -5) is False

    def test_apply_discount(self, seeded):
        assert seeded.catalog.apply_discount(1, 10)
        assert seeded.catalog.find_by_id(1).price == Decimal("899.991")
        assert seeded.catalog.apply_discount(1, 120) is False

    def test_bulk_discount(self, seeded):
        assert seeded.catalog.apply_bulk_discount("Accessories", 50) == 2
        assert seeded.catalog.find_by_id(2).price == Decimal("14.995")
        assert seeded.catalog.apply_bulk_discount("Accessories", -1) == 0


class TestCategoriesAndStats:
    def test_categories(self, seeded):
        assert seeded.catalog.get_all_categories() == ["Accessories", "Electronics"]
        assert seeded.catalog.get_product_count_by_category("Accessories") == 2

    def test_inventory_value(self, seeded):
        # 999.99*50 + 29.99*100 + 79.99*75
        assert seeded.catalog.get_total_inventory_value() == Decimal("58997.75")

    def test_average_price(self, seeded):
        assert seeded.catalog.get_average_price() == Decimal("1109.97") / 3

    def test_total_stock(self, seeded):
        assert seeded.catalog.get_total_stock_quantity() == 225

    def test_empty_catalog(self, services):
        assert services.catalog.get_average_price() == Decimal("0")
        assert services.catalog.get_all_categories() == []
