"""
Order state machine — pure transition functions.

Each function takes an order and returns Result[Order, Failure] with the
next state. Nothing here persists; the store applies the version check.

Three independent axes:
    status    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    payment   PENDING → COMPLETED | FAILED, COMPLETED → REFUNDED
    shipping  PENDING → PROCESSING → SHIPPED → IN_TRANSIT → DELIVERED | CANCELLED
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, invalid, rejected
from orderflow._types import Money, PaymentMethod, ZERO
from orderflow.discount._types import AppliedDiscount
from orderflow.order._types import (
    Address,
    Note,
    Order,
    OrderPayment,
    OrderStatus,
    PaymentStatus,
    ReturnItem,
    ReturnRecord,
    ReturnStatus,
    ShippingInfo,
    ShippingStatus,
)
from orderflow.pricing import LineItem, PriceBreakdown


# ═══════════════════════════════════════════════════════════════════════════════
# Transition Tables
# ═══════════════════════════════════════════════════════════════════════════════

ORDER_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    # DELIVERED → RETURNED only through approve_return
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

PAYMENT_TRANSITIONS: Mapping[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING, PaymentStatus.COMPLETED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}

SHIPPING_TRANSITIONS: Mapping[ShippingStatus, frozenset[ShippingStatus]] = {
    ShippingStatus.PENDING: frozenset({ShippingStatus.PROCESSING, ShippingStatus.SHIPPED, ShippingStatus.CANCELLED}),
    ShippingStatus.PROCESSING: frozenset({ShippingStatus.SHIPPED, ShippingStatus.CANCELLED}),
    ShippingStatus.SHIPPED: frozenset({ShippingStatus.IN_TRANSIT, ShippingStatus.DELIVERED, ShippingStatus.CANCELLED}),
    ShippingStatus.IN_TRANSIT: frozenset({ShippingStatus.DELIVERED}),
    ShippingStatus.DELIVERED: frozenset(),
    ShippingStatus.CANCELLED: frozenset(),
}

# Order status changes that drag the shipping axis along
_SHIPPING_FOR_STATUS: Mapping[OrderStatus, ShippingStatus] = {
    OrderStatus.PROCESSING: ShippingStatus.PROCESSING,
    OrderStatus.SHIPPED: ShippingStatus.SHIPPED,
    OrderStatus.DELIVERED: ShippingStatus.DELIVERED,
    OrderStatus.CANCELLED: ShippingStatus.CANCELLED,
}

ADDRESS_EDITABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def invalid_transition(order: Order, axis: str, source: object, target: object) -> Failure:
    return rejected(
        FailureCode.INVALID_TRANSITION,
        f"order {order.number}: {axis} cannot go from {_name(source)} to {_name(target)}",
        order_id=order.id,
        axis=axis,
        source=_name(source),
        target=_name(target),
    )


def _name(value: object) -> str:
    return getattr(value, "value", str(value))


# ═══════════════════════════════════════════════════════════════════════════════
# Creation
# ═══════════════════════════════════════════════════════════════════════════════


def create_order(
    *,
    order_id: str,
    number: str,
    customer_id: str,
    lines: Sequence[LineItem],
    breakdown: PriceBreakdown,
    shipping_address: Address,
    billing_address: Address | None,
    method: PaymentMethod,
    discount: AppliedDiscount | None,
    at: datetime,
) -> Order:
    """Fresh order in PENDING. Billing defaults to the shipping address."""
    return Order(
        id=order_id,
        number=number,
        customer_id=customer_id,
        lines=tuple(lines),
        breakdown=breakdown,
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
        payment=OrderPayment(method=method),
        created_at=at,
        updated_at=at,
        discount_id=discount.discount_id if discount else None,
        discount_code=discount.code if discount else None,
    )


def format_number(prefix: str, at: datetime, sequence: int) -> str:
    """`{prefix}-{epoch millis}-{sequence}`, e.g. ORD-1718000000000-42."""
    return f"{prefix}-{int(at.timestamp() * 1000)}-{sequence}"


# ═══════════════════════════════════════════════════════════════════════════════
# Status Axis
# ═══════════════════════════════════════════════════════════════════════════════


def can_transition(source: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[source]


def transition(order: Order, target: OrderStatus, at: datetime) -> Result[Order, Failure]:
    """
    Move the status axis, stamping timestamps and syncing shipping.

    Shipping follows only along SHIPPING_TRANSITIONS; when it is already
    ahead of the implied state it is left alone. Cancelling is refused
    once the shipment is in transit or delivered.

    CANCELLED should go through cancel() so the reason is recorded.
    """
    if not can_transition(order.status, target):
        return Error(invalid_transition(order, "status", order.status, target))

    shipping = order.shipping
    implied = _SHIPPING_FOR_STATUS.get(target)
    if implied is not None and implied is not shipping.status:
        if implied in SHIPPING_TRANSITIONS[shipping.status]:
            shipping = replace(
                shipping,
                status=implied,
                actual_delivery=at if implied is ShippingStatus.DELIVERED else shipping.actual_delivery,
            )
        elif target is OrderStatus.CANCELLED:
            # a parcel in transit or delivered cannot be called back
            return Error(invalid_transition(order, "shipping", shipping.status, implied))

    return Ok(replace(
        order,
        status=target,
        shipping=shipping,
        updated_at=at,
        confirmed_at=at if target is OrderStatus.CONFIRMED else order.confirmed_at,
        delivered_at=at if target is OrderStatus.DELIVERED else order.delivered_at,
        cancelled_at=at if target is OrderStatus.CANCELLED else order.cancelled_at,
    ))


def cancel(
    order: Order,
    reason: str,
    actor: str | None,
    at: datetime,
) -> Result[Order, Failure]:
    """Refused once delivered, returned, cancelled, or the parcel is in transit."""
    return transition(order, OrderStatus.CANCELLED, at).map(
        lambda cancelled: replace(cancelled, cancelled_reason=reason, cancelled_by=actor)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Returns
# ═══════════════════════════════════════════════════════════════════════════════


def request_return(
    order: Order,
    items: Sequence[ReturnItem],
    reason: str,
    at: datetime,
) -> Result[Order, Failure]:
    """Only delivered orders; one return record per order."""
    if order.status is not OrderStatus.DELIVERED:
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} is {order.status.value}; only delivered orders can be returned",
            order_id=order.id,
            status=order.status.value,
        ))
    if order.returns is not None:
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} already has a {order.returns.status.value} return",
            order_id=order.id,
        ))
    if not items:
        return Error(invalid("return needs at least one item", order_id=order.id))

    requested: dict[str, int] = {}
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
    for product_id, quantity in requested.items():
        ordered = order.quantity_of(product_id)
        if quantity < 1 or quantity > ordered:
            return Error(invalid(
                f"cannot return {quantity} of {product_id}; ordered {ordered}",
                product_id=product_id,
                requested=quantity,
                ordered=ordered,
            ))

    record = ReturnRecord(
        items=tuple(replace(item, status=ReturnStatus.PENDING) for item in items),
        reason=reason,
        status=ReturnStatus.PENDING,
        requested_at=at,
    )
    return Ok(replace(order, returns=record, updated_at=at))


def _decide_return(
    order: Order,
    decision: ReturnStatus,
    refund_amount: Money,
    at: datetime,
) -> Result[Order, Failure]:
    if order.returns is None or order.returns.status is not ReturnStatus.PENDING:
        current = order.returns.status.value if order.returns else "none"
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} has no pending return (return is {current})",
            order_id=order.id,
        ))

    record = replace(
        order.returns,
        items=tuple(replace(item, status=decision) for item in order.returns.items),
        status=decision,
        decided_at=at,
        refund_amount=refund_amount,
    )
    status = OrderStatus.RETURNED if decision is ReturnStatus.APPROVED else order.status
    return Ok(replace(order, returns=record, status=status, updated_at=at))


def approve_return(order: Order, refund_amount: Money | None, at: datetime) -> Result[Order, Failure]:
    """
    Approve the pending return; order becomes RETURNED.

    refund_amount defaults to the returned lines at their captured prices.
    """
    if refund_amount is None and order.returns is not None:
        refund_amount = returned_value(order)
    amount = refund_amount if refund_amount is not None else ZERO
    if amount < 0 or amount > order.breakdown.total:
        return Error(invalid(
            f"refund amount {amount} outside [0, {order.breakdown.total}]",
            order_id=order.id,
        ))
    return _decide_return(order, ReturnStatus.APPROVED, amount, at)


def reject_return(order: Order, at: datetime) -> Result[Order, Failure]:
    return _decide_return(order, ReturnStatus.REJECTED, ZERO, at)


def mark_return_processed(order: Order, at: datetime) -> Result[Order, Failure]:
    """Approved return whose refund has been issued."""
    if order.returns is None or order.returns.status is not ReturnStatus.APPROVED:
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} has no approved return",
            order_id=order.id,
        ))
    record = replace(
        order.returns,
        items=tuple(replace(item, status=ReturnStatus.PROCESSED) for item in order.returns.items),
        status=ReturnStatus.PROCESSED,
    )
    return Ok(replace(order, returns=record, updated_at=at))


def returned_value(order: Order) -> Money:
    """Value of the return items at the prices captured on the order."""
    if order.returns is None:
        return ZERO
    prices = {line.product_id: line.unit_price for line in order.lines}
    return sum((prices.get(i.product_id, ZERO) * i.quantity for i in order.returns.items), ZERO)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Axis
# ═══════════════════════════════════════════════════════════════════════════════


def set_payment_status(
    order: Order,
    target: PaymentStatus,
    at: datetime,
    transaction_id: str | None = None,
) -> Result[Order, Failure]:
    source = order.payment.status
    if target not in PAYMENT_TRANSITIONS[source]:
        return Error(invalid_transition(order, "payment", source, target))
    payment = replace(
        order.payment,
        status=target,
        transaction_id=transaction_id or order.payment.transaction_id,
        paid_at=at if target is PaymentStatus.COMPLETED else order.payment.paid_at,
    )
    return Ok(replace(order, payment=payment, updated_at=at))


# ═══════════════════════════════════════════════════════════════════════════════
# Shipping Axis
# ═══════════════════════════════════════════════════════════════════════════════


def set_shipping_status(order: Order, target: ShippingStatus, at: datetime) -> Result[Order, Failure]:
    source = order.shipping.status
    if target not in SHIPPING_TRANSITIONS[source]:
        return Error(invalid_transition(order, "shipping", source, target))
    if order.status is OrderStatus.CANCELLED:
        return Error(invalid_transition(order, "shipping", source, target))
    shipping = replace(
        order.shipping,
        status=target,
        actual_delivery=at if target is ShippingStatus.DELIVERED else order.shipping.actual_delivery,
    )
    return Ok(replace(order, shipping=shipping, updated_at=at))


def assign_shipment(
    order: Order,
    carrier: str,
    tracking_number: str,
    estimated_delivery: datetime | None,
    at: datetime,
) -> Result[Order, Failure]:
    if order.status in (OrderStatus.CANCELLED, OrderStatus.DELIVERED, OrderStatus.RETURNED):
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} is {order.status.value}; shipment cannot change",
            order_id=order.id,
        ))
    shipping = replace(
        order.shipping,
        carrier=carrier,
        tracking_number=tracking_number,
        estimated_delivery=estimated_delivery,
    )
    return Ok(replace(order, shipping=shipping, updated_at=at))


def update_shipping_address(order: Order, address: Address, at: datetime) -> Result[Order, Failure]:
    """Only before processing starts."""
    if order.status not in ADDRESS_EDITABLE:
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"order {order.number} is {order.status.value}; address can no longer change",
            order_id=order.id,
        ))
    if missing := address.missing_fields():
        return Error(invalid(f"address is missing {', '.join(missing)}", missing=missing))
    return Ok(replace(order, shipping_address=address, updated_at=at))


def add_note(order: Order, text: str, author: str | None, at: datetime) -> Result[Order, Failure]:
    if not text.strip():
        return Error(invalid("note must not be empty", order_id=order.id))
    return Ok(replace(order, notes=(*order.notes, Note(text, author, at)), updated_at=at))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "ORDER_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "SHIPPING_TRANSITIONS",
    "ADDRESS_EDITABLE",
    "invalid_transition",
    "create_order",
    "format_number",
    "can_transition",
    "transition",
    "cancel",
    "request_return",
    "approve_return",
    "reject_return",
    "mark_return_processed",
    "returned_value",
    "set_payment_status",
    "set_shipping_status",
    "assign_shipment",
    "update_shipping_address",
    "add_note",
)
