"""
Discount types — closed set of discount kinds and their rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from orderflow._types import Money, ZERO


# ═══════════════════════════════════════════════════════════════════════════════
# Discount Type — closed variant
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    BOGO = "bogo"
    FREE_SHIPPING = "free_shipping"
    BUNDLE = "bundle"


@dataclass(frozen=True, slots=True)
class BogoRule:
    """Buy `buy_quantity`, get `get_quantity` free. Empty products = any product."""

    buy_quantity: int = 1
    get_quantity: int = 1
    products: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.buy_quantity < 1 or self.get_quantity < 1:
            raise ValueError("bogo quantities must be >= 1")

    def applies_to(self, product_id: str) -> bool:
        return not self.products or product_id in self.products


@dataclass(frozen=True, slots=True)
class BundleRule:
    """All `products` together cost `bundle_price`."""

    products: tuple[str, ...]
    bundle_price: Money

    def __post_init__(self) -> None:
        if not self.products:
            raise ValueError("bundle needs at least one product")
        if self.bundle_price < 0:
            raise ValueError("bundle_price must be >= 0")


# ═══════════════════════════════════════════════════════════════════════════════
# Usage
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CustomerUsage:
    customer_id: str
    used_count: int
    last_used_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Discount
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Discount:
    """
    A discount code and its usage counters.

    code is normalized to upper case on construction.
    usage_limit None means unlimited total uses.
    """

    id: str
    code: str
    type: DiscountType
    value: Decimal
    valid_from: datetime
    valid_until: datetime
    max_discount: Money | None = None
    minimum_cart_value: Money = ZERO
    usage_limit: int | None = None
    uses_per_customer: int = 1
    active: bool = True
    total_used: int = 0
    total_discount_given: Money = ZERO
    usage: tuple[CustomerUsage, ...] = ()
    bogo: BogoRule | None = None
    bundle: BundleRule | None = None
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", normalize_code(self.code))
        if not self.code:
            raise ValueError("discount code must not be empty")
        if self.value < 0:
            raise ValueError("discount value must be >= 0")
        if self.type is DiscountType.PERCENTAGE and self.value > 100:
            raise ValueError("percentage discount must be <= 100")
        if self.valid_from > self.valid_until:
            raise ValueError("valid_from must not be after valid_until")
        if self.uses_per_customer < 1:
            raise ValueError("uses_per_customer must be >= 1")
        if self.usage_limit is not None and self.usage_limit < 0:
            raise ValueError("usage_limit must be >= 0")
        if self.type is DiscountType.BUNDLE and self.bundle is None:
            raise ValueError("bundle discount needs a BundleRule")

    @property
    def exhausted(self) -> bool:
        return self.usage_limit is not None and self.total_used >= self.usage_limit

    def in_window(self, now: datetime) -> bool:
        return self.valid_from <= now <= self.valid_until

    def is_valid(self, now: datetime) -> bool:
        """active AND now in [valid_from, valid_until] AND under usage limit."""
        return self.active and self.in_window(now) and not self.exhausted

    def used_by(self, customer_id: str) -> int:
        for entry in self.usage:
            if entry.customer_id == customer_id:
                return entry.used_count
        return 0


def normalize_code(code: str) -> str:
    return code.strip().upper()


# ═══════════════════════════════════════════════════════════════════════════════
# Applied Discount — resolver output
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class AppliedDiscount:
    """
    What a resolved code contributes to a cart.

    waives_shipping is set for FREE_SHIPPING; amount is then zero.
    """

    discount_id: str
    code: str
    type: DiscountType
    amount: Money
    waives_shipping: bool = False


__all__ = (
    "DiscountType",
    "BogoRule",
    "BundleRule",
    "CustomerUsage",
    "Discount",
    "normalize_code",
    "AppliedDiscount",
)
