"""Tests for the command-line interface."""

import json

import pytest

from orderdesk.cli import main


@pytest.fixture
def run(data_dir, capsys):
    """Run the CLI against the test data directory; returns (code, stdout, stderr)."""

    def _run(*args: str):
        code = main(["--data-dir", str(data_dir), *args])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return _run


@pytest.fixture
def stocked(run):
    run("customers", "add", "--name", "John Doe", "--email", "john@example.com",
        "--phone", "555-123-4567", "--address", "123 Main St",
        "--city", "Springfield", "--country", "USA")
    run("products", "add", "--name", "Laptop", "--category", "Electronics",
        "--price", "999.99", "--stock", "50", "--min-stock", "10")
    run("products", "add", "--name", "Mouse", "--category", "Accessories",
        "--price", "29.99", "--stock", "100", "--min-stock", "5")
    return run


class TestCustomers:
    def test_add_and_list(self, stocked):
        code, out, _ = stocked("customers", "list")
        assert code == 0
        assert "John Doe" in out
        assert "123 Main St, Springfield, USA" in out

    def test_add_duplicate_email(self, stocked):
        code, _, err = stocked("customers", "add", "--name", "Other", "--email", "john@example.com",
                               "--phone", "555-999-0000", "--address", "x", "--city", "y",
                               "--country", "z")
        assert code == 1
        assert "Error: Invalid customer" in err

    def test_deactivate_unknown(self, run):
        code, _, err = run("customers", "deactivate", "7")
        assert code == 1
        assert "Customer not found: 7" in err


class TestProducts:
    def test_list_json(self, stocked):
        code, out, _ = stocked("products", "list", "--json")
        data = json.loads(out)
        assert code == 0
        assert [p["name"] for p in data] == ["Laptop", "Mouse"]
        assert data[0]["price"] == "999.99"

    def test_stock(self, stocked):
        code, out, _ = stocked("products", "stock", "1", "5", "--add")
        assert code == 0
        assert "Stock for product 1: 55" in out

    def test_invalid_price(self, stocked):
        with pytest.raises(SystemExit):
            stocked("products", "price", "1", "abc")


class TestOrders:
    def test_lifecycle(self, stocked):
        assert stocked("orders", "create", "1")[0] == 0
        assert stocked("orders", "add-item", "1", "1", "2")[0] == 0
        assert stocked("orders", "add-item", "1", "2", "1")[0] == 0

        code, out, _ = stocked("orders", "discount", "1", "--percent", "10")
        assert code == 0
        assert "Final amount: $1826.97" in out

        for action in ("confirm", "process", "ship"):
            assert stocked("orders", action, "1")[0] == 0

        code, _, err = stocked("orders", "cancel", "1")
        assert code == 1
        assert "not allowed from Shipped" in err

        code, out, _ = stocked("orders", "deliver", "1")
        assert code == 0
        assert "Shipped -> Delivered" in out

        code, out, _ = stocked("orders", "show", "1", "--json")
        data = json.loads(out)
        assert data["status"] == "Delivered"
        assert data["final_amount"] == "1826.973"

    def test_create_for_unknown_customer(self, stocked):
        code, _, err = stocked("orders", "create", "42")
        assert code == 1
        assert "Customer not found: 42" in err

    def test_confirm_empty_order(self, stocked):
        stocked("orders", "create", "1")
        code, _, err = stocked("orders", "confirm", "1")
        assert code == 1
        assert "no items" in err

    def test_add_unknown_product(self, stocked):
        stocked("orders", "create", "1")
        code, _, err = stocked("orders", "add-item", "1", "9", "1")
        assert code == 1
        assert "Product not found: 9" in err

    def test_list_by_status(self, stocked):
        stocked("orders", "create", "1")
        code, out, _ = stocked("orders", "list", "--status", "pending")
        assert code == 0
        assert "Order #1 - Customer: John Doe - Status: Pending" in out

    def test_list_unknown_status(self, stocked, capsys):
        with pytest.raises(SystemExit):
            stocked("orders", "list", "--status", "Lost")
        assert "Unknown order status: Lost" in capsys.readouterr().err

    def test_delete_requires_admin(self, stocked):
        stocked("orders", "create", "1")
        code, _, err = stocked("orders", "delete", "1", "--role", "Employee")
        assert code == 1
        assert "not allowed to delete orders" in err

        code, out, _ = stocked("orders", "delete", "1", "--role", "Administrator")
        assert code == 0
        assert "Deleted order: 1" in out


class TestReportsAndBackup:
    def test_report(self, stocked):
        code, out, _ = stocked("report", "inventory")
        assert code == 0
        assert "Inventory Report" in out

    def test_daily_report_defaults_to_today(self, stocked):
        code, out, _ = stocked("report", "daily")
        assert code == 0
        assert "Daily Sales Report" in out

    def test_daily_report_invalid_date(self, stocked):
        code, _, err = stocked("report", "daily", "--date", "2024-13-01")
        assert code == 1
        assert "expected YYYY-MM-DD" in err

    @pytest.mark.parametrize("month", ["0", "13"])
    def test_monthly_report_month_out_of_range(self, stocked, month):
        with pytest.raises(SystemExit):
            stocked("report", "monthly", "--month", month, "--year", "2024")

    def test_monthly_report(self, stocked):
        code, out, _ = stocked("report", "monthly", "--month", "12", "--year", "2024")
        assert code == 0
        assert "Monthly Sales Report: 2024-12" in out

    def test_backup_and_restore(self, stocked, temp_dir):
        backup = temp_dir / "backup"
        code, out, _ = stocked("backup", str(backup))
        assert code == 0
        assert "Backed up 2 file(s)" in out

        code, out, _ = stocked("restore", str(backup))
        assert code == 0

    def test_restore_missing(self, run, temp_dir):
        code, _, err = run("restore", str(temp_dir / "missing"))
        assert code == 1
        assert "backup directory does not exist" in err


def test_no_command(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out
