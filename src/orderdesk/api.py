"""FastAPI REST API for orderdesk."""

from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from . import __version__
from . import reports
from .errors import (
    CustomerNotFoundError,
    InvalidRecordError,
    OrderdeskError,
    OrderNotFoundError,
    OrderRuleError,
    PermissionDeniedError,
    ProductNotFoundError,
    RecordParseError,
    StorageError,
)
from .models import Customer, Product, User, UserRole
from .order import Order, OrderStatus
from .services import Services, open_services
from .utils import current_date, is_valid_date


# --- Pydantic Schemas ---


class CustomerSchema(BaseModel):
    customer_id: int
    name: str
    email: str
    phone: str
    address: str
    city: str
    country: str
    is_active: bool = True


class CustomerCreateRequest(BaseModel):
    """Request body for registering a customer."""

    name: str
    email: str
    phone: str
    address: str
    city: str
    country: str


class CustomerListResponse(BaseModel):
    customers: list[CustomerSchema]
    count: int


class ProductSchema(BaseModel):
    product_id: int
    name: str
    description: str = ""
    category: str
    price: Decimal
    stock_quantity: int
    min_stock_level: int
    is_active: bool = True
    is_low_stock: bool = False


class ProductCreateRequest(BaseModel):
    """Request body for adding a product."""

    name: str
    category: str
    price: Decimal = Field(..., ge=0)
    description: str = ""
    stock_quantity: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=0, ge=0)


class ProductListResponse(BaseModel):
    products: list[ProductSchema]
    count: int


class StockUpdateRequest(BaseModel):
    quantity: int
    add: bool = Field(default=False, description="Add to stock instead of setting it")


class PriceUpdateRequest(BaseModel):
    price: Decimal = Field(..., ge=0)


class OrderItemSchema(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderSchema(BaseModel):
    order_id: int
    customer_id: int
    customer_name: str
    status: str
    order_date: str
    shipping_address: str
    items: list[OrderItemSchema]
    item_count: int
    total_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    notes: str = ""


class OrderCreateRequest(BaseModel):
    customer_id: int
    notes: str = ""


class OrderNotesRequest(BaseModel):
    notes: str


class OrderListResponse(BaseModel):
    orders: list[OrderSchema]
    count: int


class OrderItemRequest(BaseModel):
    """Request body for adding a product line to an order."""

    product_id: int
    quantity: int = Field(..., gt=0)


class ItemQuantityRequest(BaseModel):
    quantity: int = Field(..., description="New quantity; 0 or less removes the line")


class StatusChangeRequest(BaseModel):
    status: str = Field(..., description="Target status label or name, e.g. 'Confirmed' or 'SHIPPED'")


class DiscountRequest(BaseModel):
    """Exactly one of percent or amount."""

    percent: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class FulfillmentResponse(BaseModel):
    order_id: int
    can_fulfill: bool


class StatisticsResponse(BaseModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    status_distribution: dict[str, int]
    top_customers: list[tuple[int, int]]
    top_products: list[tuple[int, int]]


# --- Helpers ---


def get_services() -> Services:
    """Load the data files for one request (data dir from ORDERDESK_DATA_DIR)."""
    return open_services()


def customer_to_schema(customer: Customer) -> CustomerSchema:
    return CustomerSchema(**customer.to_dict())


def product_to_schema(product: Product) -> ProductSchema:
    return ProductSchema(**product.to_dict())


def order_to_schema(order: Order) -> OrderSchema:
    return OrderSchema(**order.to_dict())


def _require_order(services: Services, order_id: int) -> Order:
    order = services.engine.get_order(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _parse_status(label: str) -> OrderStatus:
    try:
        return OrderStatus.parse(label)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- App Setup ---

app = FastAPI(
    title="orderdesk API",
    description="Customers, product catalog and order lifecycle",
    version=__version__,
)


# --- Global Exception Handler ---


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    OrderNotFoundError: 404,
    ProductNotFoundError: 404,
    CustomerNotFoundError: 404,
    InvalidRecordError: 400,
    OrderRuleError: 409,
    PermissionDeniedError: 403,
    RecordParseError: 500,
    StorageError: 500,
}


@app.exception_handler(OrderdeskError)
async def orderdesk_error_handler(request: Request, exc: OrderdeskError) -> JSONResponse:
    """Map OrderdeskError subclasses to appropriate HTTP responses."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": type(exc).__name__},
    )


# --- Endpoints ---


@app.get("/api/health")
def health_check():
    """Health check endpoint with collection sizes."""
    services = get_services()
    return {
        "status": "ok",
        "version": __version__,
        "customer_count": services.directory.get_total_customers(),
        "product_count": services.catalog.get_total_products(),
        "order_count": services.engine.get_total_orders(),
    }


# --- Customer Endpoints ---


@app.get("/api/customers", response_model=CustomerListResponse)
def list_customers(
    include_inactive: bool = Query(default=False),
    search: Optional[str] = Query(default=None, description="Substring of the customer name"),
):
    directory = get_services().directory
    if search:
        customers = directory.search_by_name(search)
        if not include_inactive:
            customers = [c for c in customers if c.is_active]
    elif include_inactive:
        customers = directory.get_all_customers()
    else:
        customers = directory.get_active_customers()
    return CustomerListResponse(
        customers=[customer_to_schema(c) for c in customers],
        count=len(customers),
    )


@app.post("/api/customers", response_model=CustomerSchema, status_code=201)
def create_customer(request: CustomerCreateRequest):
    """Register a customer; the email and phone must be unused."""
    directory = get_services().directory
    customer = directory.add_customer(Customer(**request.model_dump()))
    if customer is None:
        raise InvalidRecordError(
            "customer", "check required fields, email format, and that email/phone are unused"
        )
    return customer_to_schema(customer)


@app.get("/api/customers/{customer_id}", response_model=CustomerSchema)
def get_customer(customer_id: int):
    customer = get_services().directory.find_by_id(customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer_to_schema(customer)


@app.post("/api/customers/{customer_id}/deactivate", response_model=CustomerSchema)
def deactivate_customer(customer_id: int):
    directory = get_services().directory
    if not directory.deactivate_customer(customer_id):
        raise CustomerNotFoundError(customer_id)
    return customer_to_schema(directory.find_by_id(customer_id))


@app.get("/api/customers/{customer_id}/orders", response_model=OrderListResponse)
def list_customer_orders(customer_id: int):
    services = get_services()
    if not services.directory.exists(customer_id):
        raise CustomerNotFoundError(customer_id)
    orders = services.engine.get_orders_by_customer(customer_id)
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


# --- Product Endpoints ---


@app.get("/api/products", response_model=ProductListResponse)
def list_products(
    category: Optional[str] = Query(default=None),
    low_stock: bool = Query(default=False),
    search: Optional[str] = Query(default=None, description="Substring of the product name"),
):
    catalog = get_services().catalog
    if low_stock:
        products = catalog.get_low_stock_products()
    elif category:
        products = catalog.get_products_by_category(category)
    elif search:
        products = catalog.search_by_name(search)
    else:
        products = catalog.get_all_products()
    return ProductListResponse(
        products=[product_to_schema(p) for p in products],
        count=len(products),
    )


@app.post("/api/products", response_model=ProductSchema, status_code=201)
def create_product(request: ProductCreateRequest):
    """Add a product; its name must be unique and free of '|', ';' and ','."""
    catalog = get_services().catalog
    product = catalog.add_product(Product(**request.model_dump()))
    if product is None:
        raise InvalidRecordError(
            "product", "check required fields, non-negative numbers, and that the name is unused"
        )
    return product_to_schema(product)


@app.get("/api/products/{product_id}", response_model=ProductSchema)
def get_product(product_id: int):
    product = get_services().catalog.find_by_id(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product_to_schema(product)


@app.put("/api/products/{product_id}/stock", response_model=ProductSchema)
def update_product_stock(product_id: int, request: StockUpdateRequest):
    catalog = get_services().catalog
    if catalog.find_by_id(product_id) is None:
        raise ProductNotFoundError(product_id)
    if request.add:
        ok = catalog.add_stock(product_id, request.quantity)
    else:
        ok = catalog.update_stock(product_id, request.quantity)
    if not ok:
        raise InvalidRecordError("product", f"invalid stock quantity {request.quantity}")
    return product_to_schema(catalog.find_by_id(product_id))


@app.put("/api/products/{product_id}/price", response_model=ProductSchema)
def update_product_price(product_id: int, request: PriceUpdateRequest):
    catalog = get_services().catalog
    if not catalog.update_price(product_id, request.price):
        raise ProductNotFoundError(product_id)
    return product_to_schema(catalog.find_by_id(product_id))


# --- Order Endpoints ---


@app.get("/api/orders", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
    end_date: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive"),
):
    engine = get_services().engine
    if status:
        orders = engine.get_orders_by_status(_parse_status(status))
    elif search:
        orders = engine.search_orders(search)
    elif start_date or end_date:
        orders = engine.get_orders_by_date_range(start_date or "0000-00-00", end_date or "9999-99-99")
    else:
        orders = engine.get_all_orders()
    return OrderListResponse(orders=[order_to_schema(o) for o in orders], count=len(orders))


@app.post("/api/orders", response_model=OrderSchema, status_code=201)
def create_order(request: OrderCreateRequest):
    """Open a PENDING order for an existing customer."""
    order = get_services().engine.create_order(request.customer_id, notes=request.notes)
    if order is None:
        raise CustomerNotFoundError(request.customer_id)
    return order_to_schema(order)


@app.get("/api/orders/{order_id}", response_model=OrderSchema)
def get_order(order_id: int):
    return order_to_schema(_require_order(get_services(), order_id))


@app.patch("/api/orders/{order_id}", response_model=OrderSchema)
def update_order_notes(order_id: int, request: OrderNotesRequest):
    engine = get_services().engine
    if not engine.set_order_notes(order_id, request.notes):
        raise OrderNotFoundError(order_id)
    return order_to_schema(engine.get_order(order_id))


@app.delete("/api/orders/{order_id}", response_model=OrderSchema)
def delete_order(
    order_id: int,
    role: str = Query(default="Guest", description="Acting user's role"),
    username: str = Query(default="api"),
):
    """
    Delete an order regardless of status (administrators only).

    Stock committed by a confirmed or processing order is restored.
    """
    services = get_services()
    order = _require_order(services, order_id)
    actor = User(user_id=0, username=username, role=UserRole.from_label(role))
    if not actor.can_delete_orders():
        raise PermissionDeniedError(actor.role.value, "delete orders")
    services.engine.delete_order(order_id, actor)
    return order_to_schema(order)


@app.post("/api/orders/{order_id}/items", response_model=OrderSchema, status_code=201)
def add_order_item(order_id: int, request: OrderItemRequest):
    """Add a product line; merges with an existing line for the same product."""
    services = get_services()
    _require_order(services, order_id)
    if services.catalog.find_by_id(request.product_id) is None:
        raise ProductNotFoundError(request.product_id)
    if not services.engine.add_item_to_order(order_id, request.product_id, request.quantity):
        raise OrderRuleError(
            order_id, "add item to",
            "order is not pending, product is inactive, or stock is insufficient",
        )
    return order_to_schema(services.engine.get_order(order_id))


@app.put("/api/orders/{order_id}/items/{product_id}", response_model=OrderSchema)
def update_order_item(order_id: int, product_id: int, request: ItemQuantityRequest):
    services = get_services()
    _require_order(services, order_id)
    if not services.engine.update_order_item_quantity(order_id, product_id, request.quantity):
        raise OrderRuleError(
            order_id, "update quantity on",
            "order is not pending, line is missing, or stock is insufficient",
        )
    return order_to_schema(services.engine.get_order(order_id))


@app.delete("/api/orders/{order_id}/items/{product_id}", response_model=OrderSchema)
def remove_order_item(order_id: int, product_id: int):
    services = get_services()
    _require_order(services, order_id)
    if not services.engine.remove_item_from_order(order_id, product_id):
        raise OrderRuleError(
            order_id, "remove item from",
            f"order is not pending or has no line for product {product_id}",
        )
    return order_to_schema(services.engine.get_order(order_id))


@app.post("/api/orders/{order_id}/status", response_model=OrderSchema)
def change_order_status(order_id: int, request: StatusChangeRequest):
    """
    Move an order along its lifecycle.

    Confirming deducts stock and requires a non-empty, fulfillable order.
    Cancelling a confirmed or processing order restores stock.
    """
    services = get_services()
    order = _require_order(services, order_id)
    target = _parse_status(request.status)
    if not services.engine.update_order_status(order_id, target):
        reason = f"not allowed from {order.status_label}"
        if target == OrderStatus.CONFIRMED and order.status == OrderStatus.PENDING:
            reason = "order has no items or stock is insufficient"
        raise OrderRuleError(order_id, f"move to {target.value}", reason)
    return order_to_schema(services.engine.get_order(order_id))


@app.post("/api/orders/{order_id}/discount", response_model=OrderSchema)
def apply_order_discount(order_id: int, request: DiscountRequest):
    if (request.percent is None) == (request.amount is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of 'percent' or 'amount'")

    services = get_services()
    _require_order(services, order_id)
    if request.percent is not None:
        ok = services.engine.apply_discount(order_id, request.percent)
    else:
        ok = services.engine.apply_fixed_discount(order_id, request.amount)
    if not ok:
        raise OrderRuleError(
            order_id, "discount", "order is not pending or the discount is out of range"
        )
    return order_to_schema(services.engine.get_order(order_id))


@app.get("/api/orders/{order_id}/fulfillment", response_model=FulfillmentResponse)
def check_fulfillment(order_id: int):
    """Point-in-time check that every line is in stock."""
    services = get_services()
    _require_order(services, order_id)
    return FulfillmentResponse(
        order_id=order_id,
        can_fulfill=services.engine.can_fulfill_order(order_id),
    )


# --- Statistics and Reports ---


@app.get("/api/statistics", response_model=StatisticsResponse)
def get_statistics(limit: int = Query(default=5, ge=1, le=100)):
    engine = get_services().engine
    return StatisticsResponse(
        total_orders=engine.get_total_orders(),
        total_revenue=engine.get_total_revenue(),
        average_order_value=engine.get_average_order_value(),
        status_distribution={
            status.value: count
            for status, count in engine.get_order_status_distribution().items()
        },
        top_customers=engine.get_top_customers(limit),
        top_products=engine.get_top_products(limit),
    )


REPORT_KINDS = ("sales", "status", "products", "daily", "inventory", "low-stock", "categories")


@app.get("/api/reports/{kind}", response_class=PlainTextResponse)
def get_report(
    kind: str,
    date: Optional[str] = Query(default=None, description="YYYY-MM-DD for the daily report (default: today)"),
):
    """Render one of the plain-text reports."""
    services = get_services()
    if kind == "daily":
        date = date or current_date()
        if not is_valid_date(date):
            raise HTTPException(status_code=400, detail=f"Invalid date: {date}")
        return reports.daily_sales_report(services.engine, date)
    if kind == "sales":
        return reports.sales_report(services.engine)
    if kind == "status":
        return reports.order_status_report(services.engine)
    if kind == "products":
        return reports.product_sales_report(services.engine, services.catalog)
    if kind == "inventory":
        return reports.inventory_report(services.catalog)
    if kind == "low-stock":
        return reports.low_stock_report(services.catalog)
    if kind == "categories":
        return reports.category_report(services.catalog)
    raise HTTPException(
        status_code=404,
        detail=f"Unknown report: {kind}. Available: {', '.join(REPORT_KINDS)}",
    )
