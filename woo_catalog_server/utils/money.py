"""Money formatting for price fields."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

PRICE_FORMATS = ("raw", "formatted")


def to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def format_money(value: Any, mode: str = "raw", symbol: str = "$", decimals: int = 2) -> str:
    """Format a store price.

    - raw: integer string in minor units ("19.99" -> "1999")
    - formatted: symbol + fixed decimals ("19.99" -> "$19.99")

    Empty or unparsable prices come back as "".
    """
    amount = to_decimal(value)
    if amount is None:
        return ""
    quantum = Decimal(1).scaleb(-decimals)
    amount = amount.quantize(quantum, rounding=ROUND_HALF_UP)
    if mode == "formatted":
        return f"{symbol}{amount:,.{decimals}f}"
    return str(int(amount.scaleb(decimals)))
