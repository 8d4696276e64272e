"""
Order types — the order aggregate and its embedded sub-documents.

Everything a past order needs is copied in at creation (lines, prices,
addresses). Nothing here references live catalog or customer data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from orderflow._types import Money, PaymentMethod, ZERO
from orderflow.pricing import LineItem, PriceBreakdown


# ═══════════════════════════════════════════════════════════════════════════════
# Status Axes
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    """
    Lifecycle:
        PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED → RETURNED
        any of the first four → CANCELLED
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(Enum):
    """Payment axis of an order: PENDING → COMPLETED | FAILED, COMPLETED → REFUNDED."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShippingStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ReturnStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


# ═══════════════════════════════════════════════════════════════════════════════
# Sub-documents
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Address:
    """Address snapshot. Editing a customer's address never touches this copy."""

    line1: str
    city: str
    postal_code: str
    country: str
    state: str = ""
    line2: str = ""
    name: str = ""
    phone: str = ""

    def missing_fields(self) -> tuple[str, ...]:
        required = {
            "line1": self.line1,
            "city": self.city,
            "postal_code": self.postal_code,
            "country": self.country,
        }
        return tuple(name for name, value in required.items() if not value.strip())


@dataclass(frozen=True, slots=True)
class OrderPayment:
    method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ShippingInfo:
    status: ShippingStatus = ShippingStatus.PENDING
    carrier: str | None = None
    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None


@dataclass(frozen=True, slots=True)
class ReturnItem:
    product_id: str
    quantity: int
    reason: str = ""
    status: ReturnStatus = ReturnStatus.PENDING


@dataclass(frozen=True, slots=True)
class ReturnRecord:
    """
    Return request embedded in the order.

    Approval does not move stock or money; refunds go through payments.
    """

    items: tuple[ReturnItem, ...]
    reason: str
    status: ReturnStatus
    requested_at: datetime
    decided_at: datetime | None = None
    refund_amount: Money = ZERO


@dataclass(frozen=True, slots=True)
class Note:
    text: str
    author: str | None
    at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Order:
    """
    Order aggregate.

    lines and breakdown are fixed at creation. version increases by one
    on every persisted change and guards concurrent writers.
    """

    id: str
    number: str
    customer_id: str
    lines: tuple[LineItem, ...]
    breakdown: PriceBreakdown
    shipping_address: Address
    billing_address: Address
    payment: OrderPayment
    created_at: datetime
    updated_at: datetime
    status: OrderStatus = OrderStatus.PENDING
    shipping: ShippingInfo = ShippingInfo()
    discount_id: str | None = None
    discount_code: str | None = None
    returns: ReturnRecord | None = None
    notes: tuple[Note, ...] = ()
    confirmed_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_reason: str | None = None
    cancelled_by: str | None = None
    version: int = 0

    @property
    def total(self) -> Money:
        return self.breakdown.total

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def quantity_of(self, product_id: str) -> int:
        return sum(line.quantity for line in self.lines if line.product_id == product_id)


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED})


# ═══════════════════════════════════════════════════════════════════════════════
# Stats
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderStats:
    total_orders: int
    by_status: dict[OrderStatus, int]
    revenue: Money
    average_order_value: Money


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

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
    "TERMINAL_STATUSES",
    "OrderStats",
)
