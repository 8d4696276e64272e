"""
Discount — code resolution and usage limits.

    from orderflow import discount as D

    resolver = D.DiscountResolver(D.MemoryDiscountStore())
    applied = await resolver.resolve("SAVE10", subtotal, customer_id)
"""

from orderflow.discount._types import (
    DiscountType,
    BogoRule,
    BundleRule,
    CustomerUsage,
    Discount,
    AppliedDiscount,
    normalize_code,
)
from orderflow.discount._amount import amount_for, bogo_amount, bundle_amount
from orderflow.discount._store import (
    DiscountStore,
    MemoryDiscountStore,
    check_limits,
    code_not_found,
    per_customer_limit_reached,
    usage_limit_reached,
    with_usage,
)
from orderflow.discount._resolver import DiscountResolver

__all__ = (
    "DiscountType",
    "BogoRule",
    "BundleRule",
    "CustomerUsage",
    "Discount",
    "AppliedDiscount",
    "normalize_code",
    "amount_for",
    "bogo_amount",
    "bundle_amount",
    "DiscountStore",
    "MemoryDiscountStore",
    "check_limits",
    "code_not_found",
    "per_customer_limit_reached",
    "usage_limit_reached",
    "with_usage",
    "DiscountResolver",
)
