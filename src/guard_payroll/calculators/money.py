"""Currency arithmetic helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

ZERO = Decimal("0")
ONE_UNIT = Decimal("1")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Coerce int/float/str/Decimal to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("Boolean is not an amount")
    return Decimal(str(value))


def round_half_up(value: Decimal) -> Decimal:
    """Round to the nearest whole currency unit, halves away from zero."""
    return value.quantize(ONE_UNIT, rounding=ROUND_HALF_UP)
