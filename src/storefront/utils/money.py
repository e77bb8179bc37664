"""Monetary rounding shared by carts and orders."""

from decimal import ROUND_HALF_UP, Decimal

_CENT = Decimal("0.01")


def round_money(amount) -> float:
    """Round to two decimal places, half-up (2.675 -> 2.68)."""
    return float(Decimal(str(amount or 0)).quantize(_CENT, rounding=ROUND_HALF_UP))
