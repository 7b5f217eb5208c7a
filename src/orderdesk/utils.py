"""Utility functions for orderdesk."""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

FIELD_SEPARATOR = "|"
ITEM_SEPARATOR = ";"
ITEM_FIELD_SEPARATOR = ","


def current_datetime() -> str:
    """Return the current local time as 'YYYY-MM-DD HH:MM:SS'."""
    return datetime.now().strftime(DATETIME_FORMAT)


def current_date() -> str:
    """Return the current local date as 'YYYY-MM-DD'."""
    return datetime.now().strftime(DATE_FORMAT)


def is_valid_date(value: str) -> bool:
    """Check a 'YYYY-MM-DD' date string."""
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.fullmatch(email) is not None


def to_money(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a user-supplied amount to Decimal.

    Floats go through str() so 999.99 stays 999.99 rather than its binary
    expansion.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"not a monetary amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a monetary amount: {value!r}")
    return result


def format_currency(amount: Decimal, symbol: str = "$") -> str:
    """Format an amount with two decimals, e.g. '$1826.97'."""
    return f"{symbol}{amount.quantize(Decimal('0.01')):.2f}"


def sanitize_field(text: str, reserved: str = FIELD_SEPARATOR) -> str:
    """Replace reserved delimiter characters and newlines with spaces."""
    for ch in reserved + "\r\n":
        text = text.replace(ch, " ")
    return text


def contains_reserved(text: str, reserved: str) -> bool:
    return any(ch in text for ch in reserved)
