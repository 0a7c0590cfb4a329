"""Decimal helpers shared by the engine. Amounts are INR."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, str, Decimal, None]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
_RUPEE = Decimal("1")
_PAISA_PERCENT = Decimal("0.01")


def D(value: Number) -> Decimal:
    """Convert through str() so float noise (0.1 + 0.2) never reaches a Decimal. None → 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_rupees(value: Decimal) -> Decimal:
    """Nearest whole rupee, half away from zero."""
    return D(value).quantize(_RUPEE, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return D(value).quantize(_PAISA_PERCENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    """amount × rate / 100 at full precision."""
    return amount * rate / HUNDRED


def format_inr(value: Number) -> str:
    """Whole rupees with thousands separators, e.g. ₹150,000."""
    return f"₹{round_rupees(D(value)):,.0f}"
