"""
Discount amount — one exhaustive match over DiscountType.

Adding a DiscountType member without a branch here fails type checking
(assert_never) and raises at runtime.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import assert_never

from orderflow._types import Money, ZERO, round2
from orderflow.discount._types import BogoRule, BundleRule, Discount, DiscountType
from orderflow.pricing import LineItem, clamp_discount


def bogo_amount(rule: BogoRule, lines: Sequence[LineItem]) -> Money:
    """Free units per qualifying line: (qty // (buy + get)) * get."""
    group = rule.buy_quantity + rule.get_quantity
    return sum(
        (
            (line.quantity // group) * rule.get_quantity * line.unit_price
            for line in lines
            if rule.applies_to(line.product_id)
        ),
        ZERO,
    )


def bundle_amount(rule: BundleRule, lines: Sequence[LineItem]) -> Money:
    """Savings per complete set of bundle products present in the cart."""
    by_product: dict[str, LineItem] = {}
    for line in lines:
        by_product.setdefault(line.product_id, line)

    if any(pid not in by_product for pid in rule.products):
        return ZERO

    sets = min(by_product[pid].quantity for pid in rule.products)
    list_price = sum((by_product[pid].unit_price for pid in rule.products), ZERO)
    saving = max(list_price - rule.bundle_price, ZERO)
    return saving * sets


def amount_for(
    discount: Discount,
    subtotal: Money,
    lines: Sequence[LineItem] = (),
) -> Money:
    """
    Discount amount for a cart, clamped to [0, subtotal].

    percentage: subtotal * value / 100, capped by max_discount.
    fixed: value, never above subtotal.
    free_shipping: zero here; the shipping fee is waived instead.
    """
    match discount.type:
        case DiscountType.PERCENTAGE:
            raw = subtotal * discount.value / 100
            if discount.max_discount is not None:
                raw = min(raw, discount.max_discount)
        case DiscountType.FIXED:
            raw = discount.value
        case DiscountType.BOGO:
            raw = bogo_amount(discount.bogo or BogoRule(), lines)
        case DiscountType.BUNDLE:
            raw = bundle_amount(discount.bundle, lines) if discount.bundle is not None else ZERO
        case DiscountType.FREE_SHIPPING:
            raw = ZERO
        case _:
            assert_never(discount.type)

    return round2(clamp_discount(raw, subtotal))


__all__ = ("amount_for", "bogo_amount", "bundle_amount")
