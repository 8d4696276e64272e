"""
Payment types — attempts against an order, gateway data, refunds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from orderflow._types import Money, PaymentMethod


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentState(Enum):
    """
    Lifecycle of one payment:
        PENDING → COMPLETED → REFUNDED
                → FAILED → PENDING (retry, capped)
        PENDING/FAILED → CANCELLED
    """

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class RefundStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ═══════════════════════════════════════════════════════════════════════════════
# Sub-documents
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class GatewayInfo:
    """
    intent_id: the gateway order/intent created at initiate time.
    reference_id: the gateway payment id reported on success.
    """

    name: str
    intent_id: str | None = None
    reference_id: str | None = None
    response_code: str | None = None
    response_message: str | None = None


@dataclass(frozen=True, slots=True)
class RefundInfo:
    amount: Money
    reason: str
    status: RefundStatus
    refunded_at: datetime
    transaction_id: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Payment
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Payment:
    """
    One payment attempt chain for an order.

    retries counts retry() calls, capped by Settings.max_payment_retries.
    gateway.reference_id is the correlation id used to detect replays.
    """

    id: str
    order_id: str
    customer_id: str
    amount: Money
    method: PaymentMethod
    transaction_id: str
    created_at: datetime
    updated_at: datetime
    currency: str = "INR"
    status: PaymentState = PaymentState.PENDING
    gateway: GatewayInfo | None = None
    retries: int = 0
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    last_retry_at: datetime | None = None
    refund: RefundInfo | None = None
    version: int = 0

    @property
    def gateway_ref(self) -> str | None:
        return self.gateway.reference_id if self.gateway else None

    @property
    def is_refundable(self) -> bool:
        """Completed, with no refund in flight or done. A failed refund may be retried."""
        return self.status is PaymentState.COMPLETED and (
            self.refund is None or self.refund.status is RefundStatus.FAILED
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "PaymentMethod",
    "PaymentState",
    "RefundStatus",
    "GatewayInfo",
    "RefundInfo",
    "Payment",
)
