"""Money helpers; every amount is an integer count of minor units."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

_MINOR_PER_MAJOR = Decimal("100")
_TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class OrderAmounts:
    subtotal_cents: int
    tax_cents: int
    total_cents: int


def line_subtotal(lines: Iterable[tuple[int, int]]) -> int:
    """Sum of ``quantity * unit_price_cents`` over ``(quantity, unit_price_cents)`` pairs."""

    return sum(quantity * unit_price for quantity, unit_price in lines)


def order_amounts(subtotal_cents: int, tax_rate: Decimal) -> OrderAmounts:
    """Apply tax once and round the final total half-up to a whole minor unit."""

    total = (Decimal(subtotal_cents) * (Decimal("1") + tax_rate)).to_integral_value(rounding=ROUND_HALF_UP)
    total_cents = int(total)
    return OrderAmounts(
        subtotal_cents=subtotal_cents,
        tax_cents=total_cents - subtotal_cents,
        total_cents=total_cents,
    )


def estimated_tax(subtotal_cents: int, tax_rate: Decimal) -> Decimal:
    """Unrounded tax estimate in minor units, for display before checkout."""

    return Decimal(subtotal_cents) * tax_rate


def to_major(amount_cents: int | Decimal) -> Decimal:
    return (Decimal(amount_cents) / _MINOR_PER_MAJOR).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)
