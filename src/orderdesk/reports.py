"""Plain-text report rendering for orderdesk."""

from decimal import Decimal

from .catalog import ProductCatalog
from .directory import CustomerDirectory
from .engine import REVENUE_STATUSES, OrderEngine
from .order import Order, OrderStatus
from .utils import current_datetime, format_currency

SEPARATOR_WIDTH = 50


def _header(title: str) -> list[str]:
    return [
        "=" * SEPARATOR_WIDTH,
        title,
        "=" * SEPARATOR_WIDTH,
        f"Generated: {current_datetime()}",
        "",
    ]


def order_summary_line(order: Order) -> str:
    return (
        f"Order #{order.order_id} - Customer: {order.customer_name}"
        f" - Status: {order.status_label}"
        f" - Total: {format_currency(order.final_amount)}"
    )


def _revenue_of(orders: list[Order]) -> Decimal:
    return sum((o.final_amount for o in orders if o.status in REVENUE_STATUSES), Decimal("0"))


def sales_report(engine: OrderEngine) -> str:
    lines = _header("Sales Report")
    lines.extend([
        f"Total orders: {engine.get_total_orders()}",
        f"Total revenue: {format_currency(engine.get_total_revenue())}",
        f"Average order value: {format_currency(engine.get_average_order_value())}",
        "",
        "Top customers (by order count):",
    ])
    top_customers = engine.get_top_customers(5)
    if not top_customers:
        lines.append("  (none)")
    for customer_id, count in top_customers:
        lines.append(f"  Customer {customer_id}: {count} order(s)")
    return "\n".join(lines) + "\n"


def order_status_report(engine: OrderEngine) -> str:
    lines = _header("Order Status Report")
    for status, count in engine.get_order_status_distribution().items():
        lines.append(f"{status.value:<12} {count}")
    return "\n".join(lines) + "\n"


def customer_order_report(engine: OrderEngine, directory: CustomerDirectory, customer_id: int) -> str:
    customer = directory.find_by_id(customer_id)
    name = customer.name if customer is not None else "(unknown customer)"
    orders = engine.get_orders_by_customer(customer_id)

    lines = _header(f"Orders for customer {customer_id}: {name}")
    if not orders:
        lines.append("No orders found.")
    for order in orders:
        lines.append(order_summary_line(order))
    lines.extend(["", f"Revenue from customer: {format_currency(_revenue_of(orders))}"])
    return "\n".join(lines) + "\n"


def product_sales_report(engine: OrderEngine, catalog: ProductCatalog, limit: int = 10) -> str:
    lines = _header("Product Sales Report")
    top = engine.get_top_products(limit)
    if not top:
        lines.append("No sales recorded.")
    for product_id, units in top:
        product = catalog.find_by_id(product_id)
        name = product.name if product is not None else "(deleted product)"
        lines.append(f"{product_id:>5}  {name:<30} {units} unit(s)")
    return "\n".join(lines) + "\n"


def daily_sales_report(engine: OrderEngine, date: str) -> str:
    """Sales for one 'YYYY-MM-DD' day."""
    orders = engine.get_orders_by_date_range(date, date)
    lines = _header(f"Daily Sales Report: {date}")
    for order in orders:
        lines.append(order_summary_line(order))
    lines.extend([
        "",
        f"Orders: {len(orders)}",
        f"Revenue: {format_currency(_revenue_of(orders))}",
    ])
    return "\n".join(lines) + "\n"


def monthly_sales_report(engine: OrderEngine, month: int, year: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    start = f"{year:04d}-{month:02d}-01"
    end = f"{year:04d}-{month:02d}-31"
    orders = engine.get_orders_by_date_range(start, end)
    lines = _header(f"Monthly Sales Report: {year:04d}-{month:02d}")
    lines.extend([
        f"Orders: {len(orders)}",
        f"Delivered: {sum(1 for o in orders if o.status == OrderStatus.DELIVERED)}",
        f"Cancelled: {sum(1 for o in orders if o.status == OrderStatus.CANCELLED)}",
        f"Revenue: {format_currency(_revenue_of(orders))}",
    ])
    return "\n".join(lines) + "\n"


def inventory_report(catalog: ProductCatalog) -> str:
    lines = _header("Inventory Report")
    lines.extend([
        f"Products: {catalog.get_total_products()}"
        f" ({catalog.get_active_products_count()} active,"
        f" {catalog.get_inactive_products_count()} inactive)",
        f"Units in stock: {catalog.get_total_stock_quantity()}",
        f"Inventory value: {format_currency(catalog.get_total_inventory_value())}",
        f"Average price: {format_currency(catalog.get_average_price())}",
        "",
    ])
    for product in catalog.get_all_products():
        flag = " LOW" if product.is_low_stock() else ""
        lines.append(
            f"{product.product_id:>5}  {product.name:<30}"
            f" {format_currency(product.price):>12} {product.stock_quantity:>6}{flag}"
        )
    return "\n".join(lines) + "\n"


def low_stock_report(catalog: ProductCatalog) -> str:
    lines = _header("Low Stock Report")
    low = catalog.get_low_stock_products()
    if not low:
        lines.append("All active products are above their minimum stock level.")
    for product in low:
        lines.append(
            f"{product.product_id:>5}  {product.name:<30}"
            f" stock {product.stock_quantity} / min {product.min_stock_level}"
        )
    return "\n".join(lines) + "\n"


def category_report(catalog: ProductCatalog) -> str:
    lines = _header("Category Report")
    for category in catalog.get_all_categories():
        lines.append(f"{category:<30} {catalog.get_product_count_by_category(category)}")
    return "\n".join(lines) + "\n"
