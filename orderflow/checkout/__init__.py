"""
Checkout — quote, place, cancel, return, refund.

    from orderflow import checkout as C

    request = C.CheckoutRequest(
        customer_id="cust_1",
        lines=(C.LineRequest("p1", 2),),
        shipping_address=address,
        discount_code="SAVE10",
    )
    match await checkout.place_order(request):
        case Ok(placement): ...
        case Error(failure): ...  # ProductNotFound, InsufficientStock, ...
"""

from orderflow.checkout._types import (
    LineRequest,
    CheckoutRequest,
    Quote,
    Placement,
    validate,
    merge_lines,
)
from orderflow.checkout._graph import QuoteSpec, price_line, run_quote
from orderflow.checkout._orchestrator import Checkout, stats_of

__all__ = (
    "LineRequest",
    "CheckoutRequest",
    "Quote",
    "Placement",
    "validate",
    "merge_lines",
    "QuoteSpec",
    "price_line",
    "run_quote",
    "Checkout",
    "stats_of",
)
