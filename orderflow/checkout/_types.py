"""
Checkout types — requests in, quotes and placements out.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, invalid
from orderflow._types import Money
from orderflow.discount._types import AppliedDiscount
from orderflow.order._types import Address, Order
from orderflow.payment._types import Payment, PaymentMethod
from orderflow.pricing import LineItem, PriceBreakdown


@dataclass(frozen=True, slots=True)
class LineRequest:
    """
    Requested product and quantity.

    quoted_price is whatever the client displayed; it is never used for pricing.
    """

    product_id: str
    quantity: int
    quoted_price: Money | None = None


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    customer_id: str
    lines: tuple[LineRequest, ...]
    shipping_address: Address | None
    billing_address: Address | None = None
    discount_code: str | None = None
    payment_method: PaymentMethod | None = None


@dataclass(frozen=True, slots=True)
class Quote:
    """
    Priced cart, no side effects yet.

    discount_rejection records why a supplied code gave no discount.
    """

    lines: tuple[LineItem, ...]
    breakdown: PriceBreakdown
    discount: AppliedDiscount | None = None
    discount_rejection: Failure | None = None


@dataclass(frozen=True, slots=True)
class Placement:
    """
    A placed order and its first payment.

    payment is None when initiating it failed (the order stays pending and
    payment can be initiated again) or when nothing is owed.
    """

    order: Order
    payment: Payment | None
    payment_failure: Failure | None = None
    discount_rejection: Failure | None = None


def validate(request: CheckoutRequest) -> Result[CheckoutRequest, Failure]:
    """
    Cheap checks before any I/O. Duplicate product lines are merged.
    """
    if not request.customer_id:
        return Error(invalid("customer is required"))
    if not request.lines:
        return Error(invalid("Cart is empty"))
    if request.shipping_address is None:
        return Error(invalid("Shipping address is required"))
    if missing := request.shipping_address.missing_fields():
        return Error(invalid(f"shipping address is missing {', '.join(missing)}", missing=missing))
    if request.billing_address is not None and (missing := request.billing_address.missing_fields()):
        return Error(invalid(f"billing address is missing {', '.join(missing)}", missing=missing))

    for line in request.lines:
        if not line.product_id:
            return Error(invalid("line is missing a product"))
        if line.quantity < 1:
            return Error(invalid(
                f"quantity for {line.product_id} must be >= 1",
                product_id=line.product_id,
                quantity=line.quantity,
            ))

    return Ok(CheckoutRequest(
        customer_id=request.customer_id,
        lines=merge_lines(request.lines),
        shipping_address=request.shipping_address,
        billing_address=request.billing_address,
        discount_code=request.discount_code.strip() if request.discount_code else None,
        payment_method=request.payment_method,
    ))


def merge_lines(lines: Sequence[LineRequest]) -> tuple[LineRequest, ...]:
    """Sum quantities of repeated products, keeping first-seen order."""
    merged: dict[str, LineRequest] = {}
    for line in lines:
        if (seen := merged.get(line.product_id)) is not None:
            merged[line.product_id] = LineRequest(line.product_id, seen.quantity + line.quantity, seen.quoted_price)
        else:
            merged[line.product_id] = line
    return tuple(merged.values())


__all__ = (
    "LineRequest",
    "CheckoutRequest",
    "Quote",
    "Placement",
    "validate",
    "merge_lines",
)
