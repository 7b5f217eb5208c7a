"""Data models for orderdesk catalog, directory and operator records."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .errors import RecordParseError
from .utils import (
    FIELD_SEPARATOR,
    ITEM_FIELD_SEPARATOR,
    ITEM_SEPARATOR,
    contains_reserved,
    format_currency,
    is_valid_email,
    sanitize_field,
)

# Product names are embedded in serialized order items.
RESERVED_NAME_CHARS = FIELD_SEPARATOR + ITEM_SEPARATOR + ITEM_FIELD_SEPARATOR


def _flag(value: bool) -> str:
    return "1" if value else "0"


def parse_int(kind: str, line: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise RecordParseError(kind, line, f"expected integer, got {value!r}")


def parse_decimal(kind: str, line: str, value: str) -> Decimal:
    try:
        result = Decimal(value)
    except InvalidOperation:
        raise RecordParseError(kind, line, f"expected number, got {value!r}")
    if not result.is_finite():
        raise RecordParseError(kind, line, f"expected finite number, got {value!r}")
    return result


@dataclass
class Product:
    """A catalog product and its stock level."""

    product_id: int = 0
    name: str = ""
    description: str = ""
    category: str = ""
    price: Decimal = Decimal("0")
    stock_quantity: int = 0
    min_stock_level: int = 0
    is_active: bool = True

    def reduce_stock(self, quantity: int) -> bool:
        """Remove stock; rejected (not clamped) when it would go negative."""
        if quantity <= 0 or quantity > self.stock_quantity:
            return False
        self.stock_quantity -= quantity
        return True

    def add_stock(self, quantity: int) -> None:
        if quantity > 0:
            self.stock_quantity += quantity

    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level

    def is_in_stock(self, quantity: int = 1) -> bool:
        return self.stock_quantity >= quantity

    def is_valid(self) -> bool:
        return (
            bool(self.name.strip())
            and bool(self.category.strip())
            and not contains_reserved(self.name, RESERVED_NAME_CHARS)
            and self.price >= 0
            and self.stock_quantity >= 0
            and self.min_stock_level >= 0
        )

    def to_text(self) -> str:
        return "\n".join([
            f"Product ID: {self.product_id}",
            f"Name: {self.name}",
            f"Description: {self.description}",
            f"Category: {self.category}",
            f"Price: {format_currency(self.price)}",
            f"Stock Quantity: {self.stock_quantity}",
            f"Min Stock Level: {self.min_stock_level}",
            f"Status: {'Active' if self.is_active else 'Inactive'}",
            f"Stock Status: {'LOW STOCK' if self.is_low_stock() else 'In Stock'}",
        ])

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "stock_quantity": self.stock_quantity,
            "min_stock_level": self.min_stock_level,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock(),
        }

    def serialize(self) -> str:
        return FIELD_SEPARATOR.join([
            str(self.product_id),
            sanitize_field(self.name),
            sanitize_field(self.description),
            sanitize_field(self.category),
            str(self.price),
            str(self.stock_quantity),
            str(self.min_stock_level),
            _flag(self.is_active),
        ])

    @classmethod
    def deserialize(cls, line: str) -> "Product":
        """
        Parse a product line.

        A line with fewer than 8 fields yields a default product.

        Raises:
            RecordParseError: If a numeric field is malformed.
        """
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) < 8:
            return cls()
        return cls(
            product_id=parse_int("product", line, parts[0]),
            name=parts[1],
            description=parts[2],
            category=parts[3],
            price=parse_decimal("product", line, parts[4]),
            stock_quantity=parse_int("product", line, parts[5]),
            min_stock_level=parse_int("product", line, parts[6]),
            is_active=parts[7] == "1",
        )


@dataclass
class Customer:
    """A customer who can place orders."""

    customer_id: int = 0
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    country: str = ""
    is_active: bool = True

    @property
    def shipping_address(self) -> str:
        return f"{self.address}, {self.city}, {self.country}"

    def is_valid(self) -> bool:
        return (
            bool(self.name.strip())
            and is_valid_email(self.email)
            and bool(self.phone.strip())
            and bool(self.address.strip())
            and bool(self.city.strip())
            and bool(self.country.strip())
        )

    def to_text(self) -> str:
        return "\n".join([
            f"Customer ID: {self.customer_id}",
            f"Name: {self.name}",
            f"Email: {self.email}",
            f"Phone: {self.phone}",
            f"Address: {self.address}",
            f"City: {self.city}",
            f"Country: {self.country}",
            f"Status: {'Active' if self.is_active else 'Inactive'}",
        ])

    def to_dict(self) -> dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "is_active": self.is_active,
        }

    def serialize(self) -> str:
        return FIELD_SEPARATOR.join([
            str(self.customer_id),
            sanitize_field(self.name),
            sanitize_field(self.email),
            sanitize_field(self.phone),
            sanitize_field(self.address),
            sanitize_field(self.city),
            sanitize_field(self.country),
            _flag(self.is_active),
        ])

    @classmethod
    def deserialize(cls, line: str) -> "Customer":
        parts = line.split(FIELD_SEPARATOR)
        if len(parts) < 8:
            return cls()
        return cls(
            customer_id=parse_int("customer", line, parts[0]),
            name=parts[1],
            email=parts[2],
            phone=parts[3],
            address=parts[4],
            city=parts[5],
            country=parts[6],
            is_active=parts[7] == "1",
        )


class UserRole(Enum):
    ADMIN = "Administrator"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"
    GUEST = "Guest"

    @classmethod
    def from_label(cls, label: str) -> "UserRole":
        """Map a stored label or a member name to a role; unknown means GUEST."""
        for role in cls:
            if label == role.value or label.upper() == role.name:
                return role
        return cls.GUEST


@dataclass
class User:
    """The operator acting on the system; only its role is consulted."""

    user_id: int
    username: str
    role: UserRole = UserRole.GUEST
    full_name: str = ""
    is_active: bool = True

    def can_manage_users(self) -> bool:
        return self.is_active and self.role == UserRole.ADMIN

    def can_manage_products(self) -> bool:
        return self.is_active and self.role in (UserRole.ADMIN, UserRole.MANAGER)

    def can_manage_orders(self) -> bool:
        return self.is_active and self.role in (
            UserRole.ADMIN,
            UserRole.MANAGER,
            UserRole.EMPLOYEE,
        )

    def can_view_reports(self) -> bool:
        return self.is_active and self.role in (UserRole.ADMIN, UserRole.MANAGER)

    def can_delete_orders(self) -> bool:
        """Deleting bypasses the order lifecycle, so it is an admin override."""
        return self.is_active and self.role == UserRole.ADMIN
