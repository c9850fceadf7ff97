from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Quantize a numeric value to cents (half-up). ``None`` counts as zero."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # str() evita herdar o erro binário de floats vindos de agregações do SQLite
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Any) -> str:
    return str(to_money(value))
