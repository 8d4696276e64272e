"""
Wire models — pydantic in/out with domain converters.

Inbound models expose to_domain(); outbound ones from_domain().
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from orderflow._errors import Failure
from orderflow._types import PaymentMethod
from orderflow.checkout._types import CheckoutRequest, LineRequest, Placement, Quote
from orderflow.discount._types import AppliedDiscount
from orderflow.order._types import (
    Address,
    Order,
    OrderStats,
    OrderStatus,
    ReturnItem,
    ShippingStatus,
)
from orderflow.payment._coordinator import WebhookEvent
from orderflow.payment._gateway import GatewayProof
from orderflow.payment._types import Payment
from orderflow.pricing import LineItem, PriceBreakdown
from orderflow.stock._types import Movement, StockLevel


# ═══════════════════════════════════════════════════════════════════════════════
# Shared
# ═══════════════════════════════════════════════════════════════════════════════


class FailureOut(BaseModel):
    kind: str
    code: str
    message: str
    detail: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_domain(cls, failure: Failure) -> FailureOut:
        return cls(
            kind=failure.kind.name,
            code=failure.code.value,
            message=failure.message,
            detail={key: str(value) for key, value in failure.detail.items()},
        )


class AddressIn(BaseModel):
    line1: str
    city: str
    postal_code: str
    country: str
    state: str = ""
    line2: str = ""
    name: str = ""
    phone: str = ""

    def to_domain(self) -> Address:
        return Address(**self.model_dump())

    @classmethod
    def from_domain(cls, address: Address) -> AddressIn:
        return cls(
            line1=address.line1,
            city=address.city,
            postal_code=address.postal_code,
            country=address.country,
            state=address.state,
            line2=address.line2,
            name=address.name,
            phone=address.phone,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout
# ═══════════════════════════════════════════════════════════════════════════════


class LineIn(BaseModel):
    product_id: str
    quantity: int
    price: Decimal | None = None


class CheckoutIn(BaseModel):
    customer_id: str
    lines: list[LineIn]
    shipping_address: AddressIn | None = None
    billing_address: AddressIn | None = None
    discount_code: str | None = None
    payment_method: PaymentMethod | None = None

    def to_domain(self) -> CheckoutRequest:
        return CheckoutRequest(
            customer_id=self.customer_id,
            lines=tuple(LineRequest(line.product_id, line.quantity, line.price) for line in self.lines),
            shipping_address=self.shipping_address.to_domain() if self.shipping_address else None,
            billing_address=self.billing_address.to_domain() if self.billing_address else None,
            discount_code=self.discount_code,
            payment_method=self.payment_method,
        )


class LineOut(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    @classmethod
    def from_domain(cls, line: LineItem) -> LineOut:
        return cls(
            product_id=line.product_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )


class BreakdownOut(BaseModel):
    subtotal: Decimal
    discount: Decimal
    tax_percentage: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal

    @classmethod
    def from_domain(cls, breakdown: PriceBreakdown) -> BreakdownOut:
        return cls(
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            tax_percentage=breakdown.tax_percentage,
            tax=breakdown.tax,
            shipping=breakdown.shipping,
            total=breakdown.total,
        )


class QuoteOut(BaseModel):
    lines: list[LineOut]
    breakdown: BreakdownOut
    discount_code: str | None = None
    discount_rejection: FailureOut | None = None

    @classmethod
    def from_domain(cls, quote: Quote) -> QuoteOut:
        return cls(
            lines=[LineOut.from_domain(line) for line in quote.lines],
            breakdown=BreakdownOut.from_domain(quote.breakdown),
            discount_code=quote.discount.code if quote.discount else None,
            discount_rejection=(
                FailureOut.from_domain(quote.discount_rejection) if quote.discount_rejection else None
            ),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class ShippingOut(BaseModel):
    status: ShippingStatus
    carrier: str | None
    tracking_number: str | None
    estimated_delivery: datetime | None
    actual_delivery: datetime | None


class ReturnOut(BaseModel):
    status: str
    reason: str
    items: list[dict[str, str | int]]
    refund_amount: Decimal
    requested_at: datetime
    decided_at: datetime | None


class OrderOut(BaseModel):
    id: str
    number: str
    customer_id: str
    status: OrderStatus
    payment_status: str
    payment_method: PaymentMethod
    lines: list[LineOut]
    breakdown: BreakdownOut
    shipping_address: AddressIn
    billing_address: AddressIn
    shipping: ShippingOut
    discount_code: str | None
    returns: ReturnOut | None
    notes: list[str]
    created_at: datetime
    updated_at: datetime
    cancelled_reason: str | None
    version: int

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        returns = order.returns
        return cls(
            id=order.id,
            number=order.number,
            customer_id=order.customer_id,
            status=order.status,
            payment_status=order.payment.status.value,
            payment_method=order.payment.method,
            lines=[LineOut.from_domain(line) for line in order.lines],
            breakdown=BreakdownOut.from_domain(order.breakdown),
            shipping_address=AddressIn.from_domain(order.shipping_address),
            billing_address=AddressIn.from_domain(order.billing_address),
            shipping=ShippingOut(
                status=order.shipping.status,
                carrier=order.shipping.carrier,
                tracking_number=order.shipping.tracking_number,
                estimated_delivery=order.shipping.estimated_delivery,
                actual_delivery=order.shipping.actual_delivery,
            ),
            discount_code=order.discount_code,
            returns=ReturnOut(
                status=returns.status.value,
                reason=returns.reason,
                items=[
                    {"product_id": i.product_id, "quantity": i.quantity, "status": i.status.value}
                    for i in returns.items
                ],
                refund_amount=returns.refund_amount,
                requested_at=returns.requested_at,
                decided_at=returns.decided_at,
            ) if returns else None,
            notes=[note.text for note in order.notes],
            created_at=order.created_at,
            updated_at=order.updated_at,
            cancelled_reason=order.cancelled_reason,
            version=order.version,
        )


class StatsOut(BaseModel):
    total_orders: int
    by_status: dict[str, int]
    revenue: Decimal
    average_order_value: Decimal

    @classmethod
    def from_domain(cls, stats: OrderStats) -> StatsOut:
        return cls(
            total_orders=stats.total_orders,
            by_status={status.value: count for status, count in stats.by_status.items()},
            revenue=stats.revenue,
            average_order_value=stats.average_order_value,
        )


class CancelIn(BaseModel):
    reason: str
    actor: str | None = None


class StatusIn(BaseModel):
    status: OrderStatus
    actor: str | None = None


class ReturnItemIn(BaseModel):
    product_id: str
    quantity: int
    reason: str = ""


class ReturnIn(BaseModel):
    items: list[ReturnItemIn]
    reason: str

    def to_domain(self) -> tuple[ReturnItem, ...]:
        return tuple(ReturnItem(i.product_id, i.quantity, i.reason) for i in self.items)


class ApproveReturnIn(BaseModel):
    refund_amount: Decimal | None = None


class NoteIn(BaseModel):
    text: str
    author: str | None = None


class ShipmentIn(BaseModel):
    carrier: str
    tracking_number: str
    estimated_delivery: datetime | None = None


class ShippingStatusIn(BaseModel):
    status: ShippingStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentIn(BaseModel):
    order_id: str
    amount: Decimal
    method: PaymentMethod


class PaymentOut(BaseModel):
    id: str
    order_id: str
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: str
    transaction_id: str
    intent_id: str | None
    reference_id: str | None
    retries: int
    failure_reason: str | None
    refund_amount: Decimal | None
    refund_status: str | None

    @classmethod
    def from_domain(cls, payment: Payment) -> PaymentOut:
        gateway, refund = payment.gateway, payment.refund
        return cls(
            id=payment.id,
            order_id=payment.order_id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method,
            status=payment.status.value,
            transaction_id=payment.transaction_id,
            intent_id=gateway.intent_id if gateway else None,
            reference_id=gateway.reference_id if gateway else None,
            retries=payment.retries,
            failure_reason=payment.failure_reason,
            refund_amount=refund.amount if refund else None,
            refund_status=refund.status.value if refund else None,
        )


class PlacementOut(BaseModel):
    order: OrderOut
    payment: PaymentOut | None
    payment_failure: FailureOut | None = None
    discount_rejection: FailureOut | None = None

    @classmethod
    def from_domain(cls, placement: Placement) -> PlacementOut:
        return cls(
            order=OrderOut.from_domain(placement.order),
            payment=PaymentOut.from_domain(placement.payment) if placement.payment else None,
            payment_failure=(
                FailureOut.from_domain(placement.payment_failure) if placement.payment_failure else None
            ),
            discount_rejection=(
                FailureOut.from_domain(placement.discount_rejection) if placement.discount_rejection else None
            ),
        )


class ProofIn(BaseModel):
    intent_id: str
    reference_id: str
    signature: str

    def to_domain(self) -> GatewayProof:
        return GatewayProof(self.intent_id, self.reference_id, self.signature)


class RefundIn(BaseModel):
    reason: str
    amount: Decimal | None = None


class FailIn(BaseModel):
    reason: str


class WebhookIn(BaseModel):
    event: str
    intent_id: str
    reference_id: str | None = None
    reason: str | None = None

    def to_domain(self) -> WebhookEvent:
        return WebhookEvent(self.event, self.intent_id, self.reference_id, self.reason)


# ═══════════════════════════════════════════════════════════════════════════════
# Stock / Discounts
# ═══════════════════════════════════════════════════════════════════════════════


class StockChangeIn(BaseModel):
    quantity: int
    reason: str
    actor: str | None = None


class MovementOut(BaseModel):
    product_id: str
    type: str
    quantity: int
    signed_quantity: int
    reference: str
    reason: str
    at: datetime

    @classmethod
    def from_domain(cls, movement: Movement) -> MovementOut:
        return cls(
            product_id=movement.product_id,
            type=movement.type.value,
            quantity=movement.quantity,
            signed_quantity=movement.signed_quantity,
            reference=movement.reference,
            reason=movement.reason,
            at=movement.at,
        )


class StockLevelOut(BaseModel):
    product_id: str
    available: int
    reserved: int
    defective: int
    is_low_stock: bool
    needs_reorder: bool

    @classmethod
    def from_domain(cls, level: StockLevel) -> StockLevelOut:
        return cls(
            product_id=level.product_id,
            available=level.available,
            reserved=level.reserved,
            defective=level.defective,
            is_low_stock=level.is_low_stock,
            needs_reorder=level.needs_reorder,
        )


class DiscountValidateIn(BaseModel):
    code: str
    cart_total: Decimal


class DiscountPreviewOut(BaseModel):
    code: str
    type: str
    amount: Decimal
    waives_shipping: bool

    @classmethod
    def from_domain(cls, applied: AppliedDiscount) -> DiscountPreviewOut:
        return cls(
            code=applied.code,
            type=applied.type.value,
            amount=applied.amount,
            waives_shipping=applied.waives_shipping,
        )


__all__ = (
    "FailureOut",
    "AddressIn",
    "LineIn",
    "CheckoutIn",
    "LineOut",
    "BreakdownOut",
    "QuoteOut",
    "ShippingOut",
    "ReturnOut",
    "OrderOut",
    "StatsOut",
    "CancelIn",
    "StatusIn",
    "ReturnItemIn",
    "ReturnIn",
    "ApproveReturnIn",
    "NoteIn",
    "ShipmentIn",
    "ShippingStatusIn",
    "PaymentIn",
    "PaymentOut",
    "PlacementOut",
    "ProofIn",
    "RefundIn",
    "FailIn",
    "WebhookIn",
    "StockChangeIn",
    "MovementOut",
    "StockLevelOut",
    "DiscountValidateIn",
    "DiscountPreviewOut",
)
