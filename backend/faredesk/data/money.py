"""Money utilities — Decimal coercion, whole-unit rounding and display formatting."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")

CURRENCY_SYMBOLS: dict[str, str] = {
    "BDT": "৳", "USD": "$", "EUR": "€", "GBP": "£",
    "INR": "₹", "AED": "AED", "SAR": "SAR", "QAR": "QAR",
    "SGD": "S$", "MYR": "RM", "THB": "฿",
}


def to_money(value: Any) -> Decimal:
    """Coerce an API number (int, float, str, None) to Decimal. Garbage becomes 0."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


def to_int(value: Any, default: int | None = 0) -> int | None:
    """Coerce an API count or index to int. Garbage becomes ``default``."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def round_unit(amount: Decimal) -> Decimal:
    """Round to the whole currency unit, half away from zero."""
    return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def sign(value: Decimal) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def format_price(amount: Decimal | float, currency: str = "BDT") -> str:
    """Format a price with currency symbol for display."""
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{symbol}{round(amount):,}"
