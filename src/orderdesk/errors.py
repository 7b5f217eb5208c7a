"""Custom exceptions for orderdesk."""


class OrderdeskError(Exception):
    """Base exception for all orderdesk errors."""

    pass


class StorageError(OrderdeskError):
    """Raised when a data file cannot be read or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Storage failure for {path}: {reason}")


class RecordParseError(OrderdeskError):
    """Raised when a stored record line has a malformed field."""

    def __init__(self, kind: str, line: str, reason: str | None = None):
        self.kind = kind
        self.line = line
        msg = f"Malformed {kind} record: {line!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidRecordError(OrderdeskError):
    """Raised when a customer or product fails validation."""

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid {kind}: {reason}")


class OrderNotFoundError(OrderdeskError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ProductNotFoundError(OrderdeskError):
    """Raised when a product ID doesn't exist."""

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class CustomerNotFoundError(OrderdeskError):
    """Raised when a customer ID doesn't exist."""

    def __init__(self, customer_id: int):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class OrderRuleError(OrderdeskError):
    """Raised by front ends when the engine rejects an order operation."""

    def __init__(self, order_id: int, action: str, reason: str | None = None):
        self.order_id = order_id
        self.action = action
        msg = f"Cannot {action} order {order_id}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class PermissionDeniedError(OrderdeskError):
    """Raised when the acting user's role does not allow an operation."""

    def __init__(self, role: str, action: str):
        self.role = role
        self.action = action
        super().__init__(f"Role '{role}' is not allowed to {action}")
