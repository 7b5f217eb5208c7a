"""Command-line interface for orderdesk."""

import argparse
import json
import os
import sys
from decimal import Decimal
from typing import Any, Callable

from . import __version__
from . import reports
from .database import DATA_DIR_ENV
from .errors import (
    CustomerNotFoundError,
    InvalidRecordError,
    OrderdeskError,
    OrderNotFoundError,
    OrderRuleError,
    PermissionDeniedError,
    ProductNotFoundError,
)
from .logging_setup import configure_logging
from .models import Customer, Product, User, UserRole
from .order import OrderStatus
from .services import Services, open_services
from .utils import current_date, format_currency, is_valid_date, to_money


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=_json_default))


def _money_arg(value: str) -> Decimal:
    try:
        return to_money(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _status_arg(value: str) -> OrderStatus:
    try:
        return OrderStatus.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _require_order(services: Services, order_id: int):
    order = services.engine.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


# --- customers ---


def cmd_customers_add(args: argparse.Namespace, services: Services) -> int:
    """Register a new customer."""
    customer = services.directory.add_customer(Customer(
        name=args.name,
        email=args.email,
        phone=args.phone,
        address=args.address,
        city=args.city,
        country=args.country,
    ))
    if customer is None:
        raise InvalidRecordError(
            "customer", "check required fields, email format, and that email/phone are unused"
        )

    print(f"Added customer: {customer.customer_id}")
    print(f"  Name: {customer.name}")
    print(f"  Email: {customer.email}")
    return 0


def cmd_customers_list(args: argparse.Namespace, services: Services) -> int:
    """List customers."""
    if args.all:
        customers = services.directory.get_all_customers()
    else:
        customers = services.directory.get_active_customers()

    if args.json:
        _print_json([c.to_dict() for c in customers])
        return 0

    if not customers:
        print("No customers found.")
        return 0

    print(f"Customers ({len(customers)}):")
    print()
    for c in customers:
        status = "" if c.is_active else " [inactive]"
        print(f"  {c.customer_id:>4}  {c.name}{status}")
        print(f"        {c.email}, {c.phone}")
        print(f"        {c.shipping_address}")
    return 0


def cmd_customers_deactivate(args: argparse.Namespace, services: Services) -> int:
    if not services.directory.deactivate_customer(args.customer_id):
        raise CustomerNotFoundError(args.customer_id)
    print(f"Deactivated customer: {args.customer_id}")
    return 0


# --- products ---


def cmd_products_add(args: argparse.Namespace, services: Services) -> int:
    """Add a product to the catalog."""
    product = services.catalog.add_product(Product(
        name=args.name,
        description=args.description,
        category=args.category,
        price=args.price,
        stock_quantity=args.stock,
        min_stock_level=args.min_stock,
    ))
    if product is None:
        raise InvalidRecordError(
            "product", "check required fields, non-negative numbers, and that the name is unused"
        )

    print(f"Added product: {product.product_id}")
    print(f"  Name: {product.name}")
    print(f"  Price: {format_currency(product.price)}")
    print(f"  Stock: {product.stock_quantity}")
    return 0


def cmd_products_list(args: argparse.Namespace, services: Services) -> int:
    """List catalog products."""
    if args.low_stock:
        products = services.catalog.get_low_stock_products()
    elif args.category:
        products = services.catalog.get_products_by_category(args.category)
    else:
        products = services.catalog.get_all_products()

    if args.json:
        _print_json([p.to_dict() for p in products])
        return 0

    if not products:
        print("No products found.")
        return 0

    print(f"Products ({len(products)}):")
    print()
    for p in products:
        flags = []
        if not p.is_active:
            flags.append("inactive")
        if p.is_low_stock():
            flags.append("low stock")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(
            f"  {p.product_id:>4}  {p.name:<30} {format_currency(p.price):>12}"
            f"  stock {p.stock_quantity}{suffix}"
        )
    return 0


def cmd_products_stock(args: argparse.Namespace, services: Services) -> int:
    """Set or add to a product's stock."""
    if args.add:
        ok = services.catalog.add_stock(args.product_id, args.quantity)
    else:
        ok = services.catalog.update_stock(args.product_id, args.quantity)
    if not ok:
        if services.catalog.find_by_id(args.product_id) is None:
            raise ProductNotFoundError(args.product_id)
        raise InvalidRecordError("product", f"invalid stock quantity {args.quantity}")

    product = services.catalog.find_by_id(args.product_id)
    print(f"Stock for product {args.product_id}: {product.stock_quantity}")
    return 0


def cmd_products_price(args: argparse.Namespace, services: Services) -> int:
    if not services.catalog.update_price(args.product_id, args.price):
        if services.catalog.find_by_id(args.product_id) is None:
            raise ProductNotFoundError(args.product_id)
        raise InvalidRecordError("product", f"invalid price {args.price}")
    print(f"Price for product {args.product_id}: {format_currency(args.price)}")
    return 0


# --- orders ---


def cmd_orders_create(args: argparse.Namespace, services: Services) -> int:
    """Open a new order for a customer."""
    order = services.engine.create_order(args.customer_id, notes=args.notes or "")
    if order is None:
        raise CustomerNotFoundError(args.customer_id)

    print(f"Created order: {order.order_id}")
    print(f"  Customer: {order.customer_name}")
    print(f"  Ship to: {order.shipping_address}")
    return 0


def cmd_orders_list(args: argparse.Namespace, services: Services) -> int:
    """List orders, optionally filtered."""
    engine = services.engine
    if args.status is not None:
        orders = engine.get_orders_by_status(args.status)
    elif args.customer is not None:
        orders = engine.get_orders_by_customer(args.customer)
    elif args.search:
        orders = engine.search_orders(args.search)
    else:
        orders = engine.get_all_orders()

    if args.json:
        _print_json([o.to_dict() for o in orders])
        return 0

    if not orders:
        print("No orders found.")
        return 0

    print(f"Orders ({len(orders)}):")
    print()
    for order in orders:
        print(f"  {reports.order_summary_line(order)}")
    return 0


def cmd_orders_show(args: argparse.Namespace, services: Services) -> int:
    order = _require_order(services, args.order_id)
    if args.json:
        _print_json(order.to_dict())
    else:
        print(order.to_text())
        fulfillable = services.engine.can_fulfill_order(order.order_id)
        print(f"Can fulfill now: {'yes' if fulfillable else 'no'}")
    return 0


def cmd_orders_add_item(args: argparse.Namespace, services: Services) -> int:
    """Add a product line to an order."""
    _require_order(services, args.order_id)
    if services.catalog.find_by_id(args.product_id) is None:
        raise ProductNotFoundError(args.product_id)
    if not services.engine.add_item_to_order(args.order_id, args.product_id, args.quantity):
        raise OrderRuleError(
            args.order_id, "add item to",
            "order is not pending, product is inactive, or stock is insufficient",
        )

    order = services.engine.get_order(args.order_id)
    print(f"Added product {args.product_id} x{args.quantity} to order {args.order_id}")
    print(f"  Total: {format_currency(order.total_amount)}")
    return 0


def cmd_orders_remove_item(args: argparse.Namespace, services: Services) -> int:
    _require_order(services, args.order_id)
    if not services.engine.remove_item_from_order(args.order_id, args.product_id):
        raise OrderRuleError(
            args.order_id, "remove item from",
            f"order is not pending or has no line for product {args.product_id}",
        )
    print(f"Removed product {args.product_id} from order {args.order_id}")
    return 0


def cmd_orders_set_quantity(args: argparse.Namespace, services: Services) -> int:
    _require_order(services, args.order_id)
    if not services.engine.update_order_item_quantity(args.order_id, args.product_id, args.quantity):
        raise OrderRuleError(
            args.order_id, "update quantity on",
            "order is not pending, line is missing, or stock is insufficient",
        )
    print(f"Set product {args.product_id} to {args.quantity} on order {args.order_id}")
    return 0


def cmd_orders_discount(args: argparse.Namespace, services: Services) -> int:
    """Apply a percentage or fixed discount."""
    _require_order(services, args.order_id)
    if args.percent is not None:
        ok = services.engine.apply_discount(args.order_id, args.percent)
    else:
        ok = services.engine.apply_fixed_discount(args.order_id, args.amount)
    if not ok:
        raise OrderRuleError(
            args.order_id, "discount",
            "order is not pending or the discount is out of range",
        )

    order = services.engine.get_order(args.order_id)
    print(f"Discount on order {args.order_id}: {format_currency(order.discount_amount)}")
    print(f"  Final amount: {format_currency(order.final_amount)}")
    return 0


def _status_command(action: str, target: OrderStatus) -> Callable[[argparse.Namespace, Services], int]:
    def run(args: argparse.Namespace, services: Services) -> int:
        order = _require_order(services, args.order_id)
        if not services.engine.update_order_status(args.order_id, target):
            reason = f"not allowed from {order.status_label}"
            if target == OrderStatus.CONFIRMED and order.status == OrderStatus.PENDING:
                reason = "order has no items or stock is insufficient"
            raise OrderRuleError(args.order_id, action, reason)
        print(f"Order {args.order_id}: {order.status_label} -> {target.value}")
        return 0

    run.__doc__ = f"{action.capitalize()} an order."
    return run


def cmd_orders_delete(args: argparse.Namespace, services: Services) -> int:
    """Delete an order (administrators only)."""
    actor = User(user_id=0, username=args.username, role=UserRole.from_label(args.role))
    if not actor.can_delete_orders():
        raise PermissionDeniedError(actor.role.value, "delete orders")
    if not services.engine.delete_order(args.order_id, actor):
        raise OrderNotFoundError(args.order_id)
    print(f"Deleted order: {args.order_id}")
    return 0


# --- reports ---


def cmd_report(args: argparse.Namespace, services: Services) -> int:
    """Print a report."""
    engine, catalog, directory = services.engine, services.catalog, services.directory
    kind = args.kind

    if kind == "sales":
        text = reports.sales_report(engine)
    elif kind == "status":
        text = reports.order_status_report(engine)
    elif kind == "customer":
        if args.customer is None:
            print("Error: --customer is required for the customer report", file=sys.stderr)
            return 1
        text = reports.customer_order_report(engine, directory, args.customer)
    elif kind == "products":
        text = reports.product_sales_report(engine, catalog)
    elif kind == "daily":
        date = args.date or current_date()
        if not is_valid_date(date):
            print(f"Error: invalid date {date!r}, expected YYYY-MM-DD", file=sys.stderr)
            return 1
        text = reports.daily_sales_report(engine, date)
    elif kind == "monthly":
        if args.month is None or args.year is None:
            print("Error: --month and --year are required for the monthly report", file=sys.stderr)
            return 1
        text = reports.monthly_sales_report(engine, args.month, args.year)
    elif kind == "inventory":
        text = reports.inventory_report(catalog)
    elif kind == "low-stock":
        text = reports.low_stock_report(catalog)
    else:
        text = reports.category_report(catalog)

    print(text, end="")
    return 0


# --- maintenance ---


def cmd_backup(args: argparse.Namespace, services: Services) -> int:
    copied = services.database.create_backup(args.backup_dir)
    print(f"Backed up {len(copied)} file(s) to {args.backup_dir}")
    return 0


def cmd_restore(args: argparse.Namespace, services: Services) -> int:
    restored = services.database.restore_from_backup(args.backup_dir)
    print(f"Restored {len(restored)} file(s) from {args.backup_dir}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    import uvicorn

    from .api import app

    print("Starting orderdesk API server...")
    print(f"Data directory: {args.data_dir or 'from ORDERDESK_DATA_DIR'}")
    print(f"API docs: http://{args.host}:{args.port}/docs")
    print()

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        workers=1,  # Single worker: the data files assume one writer
    )
    return 0


COMMANDS: dict[tuple[str, str | None], Callable[[argparse.Namespace, Services], int]] = {
    ("customers", "add"): cmd_customers_add,
    ("customers", "list"): cmd_customers_list,
    ("customers", "deactivate"): cmd_customers_deactivate,
    ("products", "add"): cmd_products_add,
    ("products", "list"): cmd_products_list,
    ("products", "stock"): cmd_products_stock,
    ("products", "price"): cmd_products_price,
    ("orders", "create"): cmd_orders_create,
    ("orders", "list"): cmd_orders_list,
    ("orders", "show"): cmd_orders_show,
    ("orders", "add-item"): cmd_orders_add_item,
    ("orders", "remove-item"): cmd_orders_remove_item,
    ("orders", "set-quantity"): cmd_orders_set_quantity,
    ("orders", "discount"): cmd_orders_discount,
    ("orders", "confirm"): _status_command("confirm", OrderStatus.CONFIRMED),
    ("orders", "process"): _status_command("process", OrderStatus.PROCESSING),
    ("orders", "ship"): _status_command("ship", OrderStatus.SHIPPED),
    ("orders", "deliver"): _status_command("deliver", OrderStatus.DELIVERED),
    ("orders", "cancel"): _status_command("cancel", OrderStatus.CANCELLED),
    ("orders", "delete"): cmd_orders_delete,
    ("report", None): cmd_report,
    ("backup", None): cmd_backup,
    ("restore", None): cmd_restore,
}


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="orderdesk",
        description="Manage customers, products and orders stored in flat data files.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir", "-D", help="Data directory (default: $ORDERDESK_DATA_DIR or ./data)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log engine activity to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # customers
    customers_parser = subparsers.add_parser("customers", help="Manage customers")
    customers_sub = customers_parser.add_subparsers(dest="subcommand")

    customers_add = customers_sub.add_parser("add", help="Add a customer")
    customers_add.add_argument("--name", required=True)
    customers_add.add_argument("--email", required=True)
    customers_add.add_argument("--phone", required=True)
    customers_add.add_argument("--address", required=True)
    customers_add.add_argument("--city", required=True)
    customers_add.add_argument("--country", required=True)

    customers_list = customers_sub.add_parser("list", help="List customers")
    customers_list.add_argument("--all", "-a", action="store_true", help="Include inactive customers")
    customers_list.add_argument("--json", action="store_true", help="Output as JSON")

    customers_deactivate = customers_sub.add_parser("deactivate", help="Deactivate a customer")
    customers_deactivate.add_argument("customer_id", type=int)

    # products
    products_parser = subparsers.add_parser("products", help="Manage the product catalog")
    products_sub = products_parser.add_subparsers(dest="subcommand")

    products_add = products_sub.add_parser("add", help="Add a product")
    products_add.add_argument("--name", required=True)
    products_add.add_argument("--category", required=True)
    products_add.add_argument("--price", required=True, type=_money_arg)
    products_add.add_argument("--stock", type=int, default=0, help="Initial stock (default: 0)")
    products_add.add_argument("--min-stock", type=int, default=0, help="Low-stock threshold (default: 0)")
    products_add.add_argument("--description", default="")

    products_list = products_sub.add_parser("list", help="List products")
    products_list.add_argument("--low-stock", action="store_true", help="Only products at or below minimum stock")
    products_list.add_argument("--category", help="Only products in this category")
    products_list.add_argument("--json", action="store_true", help="Output as JSON")

    products_stock = products_sub.add_parser("stock", help="Set a product's stock level")
    products_stock.add_argument("product_id", type=int)
    products_stock.add_argument("quantity", type=int)
    products_stock.add_argument("--add", action="store_true", help="Add to stock instead of setting it")

    products_price = products_sub.add_parser("price", help="Set a product's price")
    products_price.add_argument("product_id", type=int)
    products_price.add_argument("price", type=_money_arg)

    # orders
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_sub = orders_parser.add_subparsers(dest="subcommand")

    orders_create = orders_sub.add_parser("create", help="Create an order for a customer")
    orders_create.add_argument("customer_id", type=int)
    orders_create.add_argument("--notes", help="Free-text notes")

    orders_list = orders_sub.add_parser("list", help="List orders")
    orders_list.add_argument(
        "--status", type=_status_arg, help="Filter by status (e.g. Pending, SHIPPED)"
    )
    orders_list.add_argument("--customer", type=int, help="Filter by customer ID")
    orders_list.add_argument("--search", help="Search names, notes and products")
    orders_list.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show = orders_sub.add_parser("show", help="Show one order")
    orders_show.add_argument("order_id", type=int)
    orders_show.add_argument("--json", action="store_true", help="Output as JSON")

    orders_add_item = orders_sub.add_parser("add-item", help="Add a product line")
    orders_add_item.add_argument("order_id", type=int)
    orders_add_item.add_argument("product_id", type=int)
    orders_add_item.add_argument("quantity", type=int)

    orders_remove_item = orders_sub.add_parser("remove-item", help="Remove a product line")
    orders_remove_item.add_argument("order_id", type=int)
    orders_remove_item.add_argument("product_id", type=int)

    orders_set_qty = orders_sub.add_parser("set-quantity", help="Change a line's quantity (0 removes it)")
    orders_set_qty.add_argument("order_id", type=int)
    orders_set_qty.add_argument("product_id", type=int)
    orders_set_qty.add_argument("quantity", type=int)

    orders_discount = orders_sub.add_parser("discount", help="Apply a discount")
    orders_discount.add_argument("order_id", type=int)
    discount_kind = orders_discount.add_mutually_exclusive_group(required=True)
    discount_kind.add_argument("--percent", type=_money_arg, help="Percentage of the total (0-100)")
    discount_kind.add_argument("--amount", type=_money_arg, help="Fixed amount")

    for action in ("confirm", "process", "ship", "deliver", "cancel"):
        status_parser = orders_sub.add_parser(action, help=f"{action.capitalize()} an order")
        status_parser.add_argument("order_id", type=int)

    orders_delete = orders_sub.add_parser("delete", help="Delete an order (administrators only)")
    orders_delete.add_argument("order_id", type=int)
    orders_delete.add_argument("--role", default="Guest", help="Acting role (e.g. Administrator, ADMIN)")
    orders_delete.add_argument("--username", default="cli", help="Acting username for the log")

    # report
    report_parser = subparsers.add_parser("report", help="Print a report")
    report_parser.add_argument(
        "kind",
        choices=[
            "sales", "status", "customer", "products", "daily",
            "monthly", "inventory", "low-stock", "categories",
        ],
    )
    report_parser.add_argument("--customer", type=int, help="Customer ID (customer report)")
    report_parser.add_argument("--date", help="YYYY-MM-DD (daily report, default: today)")
    report_parser.add_argument(
        "--month", type=int, choices=range(1, 13), metavar="1-12", help="Month number (monthly report)"
    )
    report_parser.add_argument("--year", type=int, help="Year (monthly report)")

    # backup / restore
    backup_parser = subparsers.add_parser("backup", help="Copy data files to a directory")
    backup_parser.add_argument("backup_dir")
    restore_parser = subparsers.add_parser("restore", help="Restore data files from a directory")
    restore_parser.add_argument("backup_dir")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging("INFO" if args.verbose else None)

    if not args.command:
        parser.print_help()
        return 0

    if args.command == "serve":
        if args.data_dir:
            os.environ[DATA_DIR_ENV] = args.data_dir
        return cmd_serve(args)

    subcommand = getattr(args, "subcommand", None)
    cmd_func = COMMANDS.get((args.command, subcommand))
    if cmd_func is None:
        parser.parse_args([args.command, "--help"])
        return 0

    try:
        services = open_services(args.data_dir)
        return cmd_func(args, services)
    except OrderdeskError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
