"""
Pricing types — line items and the price breakdown.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from orderflow._types import Money, round2


# ═══════════════════════════════════════════════════════════════════════════════
# Line Item — price captured at order time
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    """
    One priced cart line.

    unit_price is the catalog price at the moment the order is created.
    It is never refreshed from the catalog afterwards.
    """

    product_id: str
    name: str
    quantity: int
    unit_price: Money

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {self.quantity}")
        if self.unit_price < 0:
            raise ValueError(f"unit_price must be >= 0, got {self.unit_price}")

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity


# ═══════════════════════════════════════════════════════════════════════════════
# Price Breakdown — stored, never recomputed
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    """
    Money summary embedded in an order.

    All five inputs are stored so that total can be re-derived
    after tax rates or discount definitions change.
    """

    subtotal: Money
    discount: Money
    tax_percentage: Decimal
    tax: Money
    shipping: Money
    total: Money

    @property
    def taxable(self) -> Money:
        return self.subtotal - self.discount

    def reconciles(self) -> bool:
        """total == subtotal - discount + tax + shipping, from stored fields."""
        expected_tax = round2(self.taxable * self.tax_percentage / 100)
        expected_total = round2(self.subtotal - self.discount + self.tax + self.shipping)
        return (
            Decimal(0) <= self.discount <= self.subtotal
            and self.tax == expected_tax
            and self.total == expected_total
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("LineItem", "PriceBreakdown")
