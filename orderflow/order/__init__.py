"""
Order — aggregate, state machine, persistence.

    from orderflow import order as O

    match O.cancel(order, "customer request", actor="cust_1", at=now):
        case Ok(cancelled): await store.save(cancelled)
        case Error(failure): ...  # InvalidTransition
"""

from orderflow.order._types import (
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    ReturnStatus,
    Address,
    OrderPayment,
    ShippingInfo,
    ReturnItem,
    ReturnRecord,
    Note,
    Order,
    OrderStats,
    TERMINAL_STATUSES,
)
from orderflow.order._machine import (
    ORDER_TRANSITIONS,
    PAYMENT_TRANSITIONS,
    SHIPPING_TRANSITIONS,
    ADDRESS_EDITABLE,
    add_note,
    approve_return,
    assign_shipment,
    can_transition,
    cancel,
    create_order,
    format_number,
    invalid_transition,
    mark_return_processed,
    reject_return,
    request_return,
    returned_value,
    set_payment_status,
    set_shipping_status,
    transition,
    update_shipping_address,
)
from orderflow.order._store import (
    OrderNumberSequence,
    OrderStore,
    MemoryOrderSequence,
    MemoryOrderStore,
    order_not_found,
    stale,
)

__all__ = (
    "OrderStatus",
    "PaymentStatus",
    "ShippingStatus",
    "ReturnStatus",
    "Address",
    "OrderPayment",
    "ShippingInfo",
    "ReturnItem",
    "ReturnRecord",
    "Note",
    "Order",
    "OrderStats",
    "TERMINAL_STATUSES",
    "ORDER_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "SHIPPING_TRANSITIONS",
    "ADDRESS_EDITABLE",
    "add_note",
    "approve_return",
    "assign_shipment",
    "can_transition",
    "cancel",
    "create_order",
    "format_number",
    "invalid_transition",
    "mark_return_processed",
    "reject_return",
    "request_return",
    "returned_value",
    "set_payment_status",
    "set_shipping_status",
    "transition",
    "update_shipping_address",
    "OrderNumberSequence",
    "OrderStore",
    "MemoryOrderSequence",
    "MemoryOrderStore",
    "order_not_found",
    "stale",
)
