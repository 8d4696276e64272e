"""
Pricing — deterministic price breakdowns.

    from orderflow import pricing as P

    breakdown = P.compute(lines, discount, tax_percentage, shipping)
    assert breakdown.reconciles()
"""

from orderflow.pricing._types import LineItem, PriceBreakdown
from orderflow.pricing._calculator import compute, subtotal_of, clamp_discount

__all__ = (
    "LineItem",
    "PriceBreakdown",
    "compute",
    "subtotal_of",
    "clamp_discount",
)
