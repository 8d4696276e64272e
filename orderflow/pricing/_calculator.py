"""
Price calculator — pure, no I/O.

Rounding: half-up to 2 places, once per derived field.
Per-line totals are never rounded on their own.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from orderflow._types import Money, ZERO, round2
from orderflow.pricing._types import LineItem, PriceBreakdown


def subtotal_of(lines: Iterable[LineItem]) -> Money:
    """Σ quantity × unit_price, rounded once."""
    return round2(sum((line.line_total for line in lines), ZERO))


def clamp_discount(amount: Money, subtotal: Money) -> Money:
    """Keep a discount within [0, subtotal]."""
    return min(max(amount, ZERO), subtotal)


def compute(
    lines: Iterable[LineItem],
    discount: Money,
    tax_percentage: Decimal,
    shipping: Money,
) -> PriceBreakdown:
    """
    Turn priced lines into a full breakdown.

    discount is re-clamped to [0, subtotal] even if the caller already did.

    Example:
        compute([LineItem("p1", "Mug", 2, Decimal("100"))], ZERO, Decimal("18"), ZERO)
        # subtotal=200.00 discount=0.00 tax=36.00 shipping=0.00 total=236.00
    """
    if tax_percentage < 0:
        raise ValueError("tax_percentage must be >= 0")
    if shipping < 0:
        raise ValueError("shipping must be >= 0")

    subtotal = subtotal_of(lines)
    applied = round2(clamp_discount(discount, subtotal))
    tax = round2((subtotal - applied) * tax_percentage / 100)
    shipping_fee = round2(shipping)
    total = round2(subtotal - applied + tax + shipping_fee)

    return PriceBreakdown(
        subtotal=subtotal,
        discount=applied,
        tax_percentage=tax_percentage,
        tax=tax,
        shipping=shipping_fee,
        total=total,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("compute", "subtotal_of", "clamp_discount")
