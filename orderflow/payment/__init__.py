"""
Payment — attempts, gateway reconciliation, refunds.

    from orderflow import payment as Pay

    coordinator = Pay.PaymentCoordinator(payments, orders, Pay.HmacGateway("secret"))
    payment = (await coordinator.initiate(order.id, order.total, Pay.PaymentMethod.UPI)).unwrap()
    await coordinator.mark_completed(payment.id, gateway_ref="pay_ref_1")
"""

from orderflow.payment._types import (
    PaymentMethod,
    PaymentState,
    RefundStatus,
    GatewayInfo,
    RefundInfo,
    Payment,
)
from orderflow.payment._gateway import (
    GatewayIntent,
    GatewayProof,
    GatewayRefund,
    PaymentGateway,
    HmacGateway,
)
from orderflow.payment._store import PaymentStore, MemoryPaymentStore, payment_not_found
from orderflow.payment._coordinator import (
    PAYMENT_STATE_TRANSITIONS,
    WebhookEvent,
    PaymentCoordinator,
)

__all__ = (
    "PaymentMethod",
    "PaymentState",
    "RefundStatus",
    "GatewayInfo",
    "RefundInfo",
    "Payment",
    "GatewayIntent",
    "GatewayProof",
    "GatewayRefund",
    "PaymentGateway",
    "HmacGateway",
    "PaymentStore",
    "MemoryPaymentStore",
    "payment_not_found",
    "PAYMENT_STATE_TRANSITIONS",
    "WebhookEvent",
    "PaymentCoordinator",
)
