"""Decimal helpers for monetary amounts (2 dp, half-up)."""
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value: Decimal | int | str) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return to_money(Decimal(quantity) * Decimal(str(unit_price)))
