"""Utility helpers for ETL layer."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

_CENT = Decimal("0.01")
# Float sums/products of two-decimal terms carry noise far below this.
_SNAP = Decimal("1e-9")


def to_decimal(value: Union[float, int, Decimal]) -> Decimal:
    """Exact decimal for a score term written with a few decimals (``0.55``, ``1.2``)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(repr(value)).quantize(_SNAP, rounding=ROUND_HALF_UP)


def round2(value: Union[float, int, Decimal]) -> float:
    """Round *value* to 2 decimals, halves away from zero.

    Floats are first snapped to 9 decimals, so ``3.8249999999999997`` (the
    float product for 3.825) becomes ``3.83`` like the exact value would.
    """
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


__all__ = ["round2", "to_decimal"]
