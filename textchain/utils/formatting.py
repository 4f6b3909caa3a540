"""
Rendering helpers for SMS replies.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a loosely typed payload value to Decimal, or None if it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def format_amount(value: Any) -> str:
    """Render an amount without trailing zeros (``Decimal("10.50")`` -> ``"10.5"``)."""
    number = to_decimal(value)
    if number is None:
        return "0"
    # Fixed-point text is exact at any width; no context rounding applies
    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_usd(value: Any) -> str:
    """Two-decimal rendering used for deposit history."""
    number = to_decimal(value) or Decimal(0)
    return format(number, ".2f")


def short_address(address: str) -> str:
    """Abbreviate an address to ``0xabcd...1234``."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
