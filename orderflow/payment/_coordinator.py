"""
Payment coordinator — attempts, gateway callbacks, refunds.

Every write that touches both a payment and its order runs as a
compensated pair: payment first, then order; if the order write fails
the payment is restored. Lost optimistic writes are retried from a
fresh read.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace

from combinators import lift as L
from kungfu import Result, Ok, Error, LazyCoroResult

from orderflow._errors import Failure, FailureCode, gateway_error, invalid, rejected
from orderflow._retry import on_conflict
from orderflow._saga import Saga, step
from orderflow._types import Clock, Money, new_id, utcnow
from orderflow.config import DEFAULT, Settings
from orderflow.order._machine import set_payment_status
from orderflow.order._store import OrderStore
from orderflow.order._types import Order, OrderStatus, PaymentStatus
from orderflow.payment._gateway import GatewayProof, PaymentGateway
from orderflow.payment._store import PaymentStore
from orderflow.payment._types import (
    GatewayInfo,
    Payment,
    PaymentMethod,
    PaymentState,
    RefundInfo,
    RefundStatus,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════════════════════

PAYMENT_STATE_TRANSITIONS: Mapping[PaymentState, frozenset[PaymentState]] = {
    PaymentState.PENDING: frozenset({PaymentState.COMPLETED, PaymentState.FAILED, PaymentState.CANCELLED}),
    PaymentState.FAILED: frozenset({PaymentState.PENDING, PaymentState.COMPLETED, PaymentState.CANCELLED}),
    PaymentState.COMPLETED: frozenset({PaymentState.REFUNDED}),
    PaymentState.REFUNDED: frozenset(),
    PaymentState.CANCELLED: frozenset(),
}


def _check(payment: Payment, target: PaymentState) -> Result[Payment, Failure]:
    if target not in PAYMENT_STATE_TRANSITIONS[payment.status]:
        return Error(rejected(
            FailureCode.INVALID_TRANSITION,
            f"payment {payment.id} cannot go from {payment.status.value} to {target.value}",
            payment_id=payment.id,
            source=payment.status.value,
            target=target.value,
        ))
    return Ok(payment)


# ═══════════════════════════════════════════════════════════════════════════════
# Webhook
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    """Gateway push notification, already authenticated by the transport."""

    event: str
    intent_id: str
    reference_id: str | None = None
    reason: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Coordinator
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentCoordinator:
    def __init__(
        self,
        payments: PaymentStore,
        orders: OrderStore,
        gateway: PaymentGateway,
        settings: Settings = DEFAULT,
        clock: Clock = utcnow,
    ) -> None:
        self._payments = payments
        self._orders = orders
        self._gateway = gateway
        self._settings = settings
        self._clock = clock

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    async def get(self, payment_id: str) -> Result[Payment, Failure]:
        return await self._payments.get(payment_id)

    async def for_order(self, order_id: str) -> Result[list[Payment], Failure]:
        return await self._payments.find_by_order(order_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Initiate
    # ───────────────────────────────────────────────────────────────────────────

    async def initiate(
        self,
        order_id: str,
        amount: Money,
        method: PaymentMethod,
    ) -> Result[Payment, Failure]:
        """
        New PENDING payment for an order.

        Card/UPI/wallet payments open a gateway intent; COD does not.
        """
        if amount <= 0:
            return Error(invalid("payment amount must be positive", amount=str(amount)))

        found = await self._orders.get(order_id)
        if isinstance(found, Error):
            return found
        order = found.unwrap()

        if order.status is OrderStatus.CANCELLED:
            return Error(rejected(
                FailureCode.INVALID_TRANSITION,
                f"order {order.number} is cancelled",
                order_id=order.id,
            ))
        if order.payment.status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
            return Error(rejected(
                FailureCode.INVALID_TRANSITION,
                f"order {order.number} is already paid",
                order_id=order.id,
            ))

        payment_id = new_id("pay")
        gateway: GatewayInfo | None = None
        if method is not PaymentMethod.COD:
            intent = await L.catching_async(
                lambda: self._gateway.create_intent(
                    payment_id, amount, self._settings.currency, method
                ),
                on_error=gateway_error,
            )
            match intent:
                case Ok(created):
                    gateway = GatewayInfo(name=created.gateway, intent_id=created.intent_id)
                case Error(e):
                    return Error(e)

        now = self._clock()
        payment = Payment(
            id=payment_id,
            order_id=order.id,
            customer_id=order.customer_id,
            amount=amount,
            method=method,
            transaction_id=new_id("txn"),
            created_at=now,
            updated_at=now,
            currency=self._settings.currency,
            gateway=gateway,
        )
        inserted = await self._payments.insert(payment)
        if isinstance(inserted, Ok):
            logger.info("payment %s initiated for %s (%s %s)", payment_id, order.number, amount, method.value)
        return inserted

    # ───────────────────────────────────────────────────────────────────────────
    # Complete / Fail / Retry
    # ───────────────────────────────────────────────────────────────────────────

    async def mark_completed(self, payment_id: str, gateway_ref: str) -> Result[Payment, Failure]:
        """
        Payment COMPLETED and order payment COMPLETED, together.

        Replaying with the same gateway_ref is a no-op returning the
        stored payment.
        """
        return await on_conflict(
            lambda: self._complete_once(payment_id, gateway_ref),
            times=self._settings.conflict_retries,
            label=f"complete {payment_id}",
        )

    async def mark_failed(self, payment_id: str, reason: str) -> Result[Payment, Failure]:
        return await on_conflict(
            lambda: self._fail_once(payment_id, reason),
            times=self._settings.conflict_retries,
            label=f"fail {payment_id}",
        )

    async def retry(self, payment_id: str) -> Result[Payment, Failure]:
        """FAILED → PENDING, at most max_payment_retries times."""
        return await on_conflict(
            lambda: self._retry_once(payment_id),
            times=self._settings.conflict_retries,
            label=f"retry {payment_id}",
        )

    async def verify(self, payment_id: str, proof: GatewayProof) -> Result[Payment, Failure]:
        """Check the gateway signature, then complete."""
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()

        if payment.gateway is None or payment.gateway.intent_id != proof.intent_id:
            return Error(_bad_signature(payment_id))

        verified = await L.catching_async(
            lambda: self._gateway.verify_signature(proof),
            on_error=gateway_error,
        )
        match verified:
            case Error(e):
                return Error(e)
            case Ok(False):
                logger.warning("payment %s: signature mismatch", payment_id)
                return Error(_bad_signature(payment_id))

        return await self.mark_completed(payment_id, proof.reference_id)

    async def handle_webhook(self, event: WebhookEvent) -> Result[Payment | None, Failure]:
        """
        payment.authorized / payment.captured complete; payment.failed fails.
        Anything else is acknowledged and ignored.
        """
        match event.event:
            case "payment.authorized" | "payment.captured":
                found = await self._payments.get_by_intent(event.intent_id)
                if isinstance(found, Error):
                    return found
                return await self.mark_completed(
                    found.unwrap().id, event.reference_id or event.intent_id
                )
            case "payment.failed":
                found = await self._payments.get_by_intent(event.intent_id)
                if isinstance(found, Error):
                    return found
                return await self.mark_failed(found.unwrap().id, event.reason or "gateway reported failure")
            case _:
                logger.debug("ignoring webhook event %s", event.event)
                return Ok(None)

    async def cancel_open(self, order_id: str) -> Result[list[Payment], Failure]:
        """Cancel PENDING/FAILED payments of an order. Completed ones are left for refund."""
        found = await self._payments.find_by_order(order_id)
        if isinstance(found, Error):
            return found

        cancelled: list[Payment] = []
        now = self._clock()
        for payment in found.unwrap():
            if payment.status not in (PaymentState.PENDING, PaymentState.FAILED):
                continue
            saved = await self._payments.save(
                replace(payment, status=PaymentState.CANCELLED, updated_at=now)
            )
            if isinstance(saved, Error):
                return saved
            cancelled.append(saved.unwrap())
        return Ok(cancelled)

    # ───────────────────────────────────────────────────────────────────────────
    # Refund
    # ───────────────────────────────────────────────────────────────────────────

    async def refund(
        self,
        payment_id: str,
        reason: str,
        amount: Money | None = None,
    ) -> Result[Payment, Failure]:
        """
        Refund a completed payment (fully by default).

        Does not touch stock; cancellation/return do that separately.
        The refund is claimed on the payment before the gateway call so
        two concurrent refunds cannot both reach the gateway.
        """
        claimed = await on_conflict(
            lambda: self._claim_refund(payment_id, reason, amount),
            times=self._settings.conflict_retries,
            label=f"refund {payment_id}",
        )
        if isinstance(claimed, Error):
            return claimed
        payment = claimed.unwrap()
        refund_amount = payment.refund.amount if payment.refund else payment.amount

        response = await L.catching_async(
            lambda: self._gateway.refund(payment.gateway_ref or payment.transaction_id, refund_amount, reason),
            on_error=gateway_error,
        )
        match response:
            case Ok(gateway_refund) if gateway_refund.status is not RefundStatus.FAILED:
                return await on_conflict(
                    lambda: self._record_refund(
                        payment_id, gateway_refund.transaction_id, gateway_refund.status
                    ),
                    times=self._settings.conflict_retries,
                    label=f"record refund {payment_id}",
                )
            case Ok(gateway_refund):
                failure = rejected(
                    FailureCode.NOT_REFUNDABLE,
                    f"gateway declined refund: {gateway_refund.message or 'no reason given'}",
                    payment_id=payment_id,
                )
            case Error(e):
                failure = e

        released = await self._release_refund(payment_id)
        if isinstance(released, Error):
            logger.error("payment %s: refund claim not released: %s", payment_id, released.error)
        return Error(failure)

    # ───────────────────────────────────────────────────────────────────────────
    # Single attempts
    # ───────────────────────────────────────────────────────────────────────────

    async def _complete_once(self, payment_id: str, gateway_ref: str) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()

        if payment.status is PaymentState.COMPLETED and payment.gateway_ref == gateway_ref:
            logger.info("payment %s already completed with %s", payment_id, gateway_ref)
            return Ok(payment)
        if isinstance(checked := _check(payment, PaymentState.COMPLETED), Error):
            return checked

        order_found = await self._orders.get(payment.order_id)
        if isinstance(order_found, Error):
            return order_found

        now = self._clock()
        gateway = payment.gateway or GatewayInfo(name=payment.method.value)
        completed = replace(
            payment,
            status=PaymentState.COMPLETED,
            gateway=replace(gateway, reference_id=gateway_ref, response_code="captured"),
            completed_at=now,
            failure_reason=None,
            updated_at=now,
        )
        order = set_payment_status(
            order_found.unwrap(), PaymentStatus.COMPLETED, now, payment.transaction_id
        )
        if isinstance(order, Error):
            return order

        result = await self._write_pair(payment, completed, order.unwrap(), "complete")
        if isinstance(result, Ok):
            logger.info("payment %s completed (%s)", payment_id, gateway_ref)
        return result

    async def _fail_once(self, payment_id: str, reason: str) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()
        if isinstance(checked := _check(payment, PaymentState.FAILED), Error):
            return checked

        now = self._clock()
        failed = replace(
            payment,
            status=PaymentState.FAILED,
            failed_at=now,
            failure_reason=reason,
            updated_at=now,
        )
        result = await self._write_with_order(
            payment, failed, PaymentStatus.PENDING, PaymentStatus.FAILED, "fail"
        )
        if isinstance(result, Ok):
            logger.warning("payment %s failed: %s", payment_id, reason)
        return result

    async def _retry_once(self, payment_id: str) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()
        if payment.status is not PaymentState.FAILED:
            return Error(rejected(
                FailureCode.INVALID_TRANSITION,
                f"only failed payments can be retried, {payment.id} is {payment.status.value}",
                payment_id=payment.id,
            ))
        if payment.retries >= self._settings.max_payment_retries:
            return Error(rejected(
                FailureCode.RETRY_LIMIT_EXCEEDED,
                f"payment {payment.id} reached {self._settings.max_payment_retries} retries",
                payment_id=payment.id,
                retries=payment.retries,
            ))

        now = self._clock()
        retried = replace(
            payment,
            status=PaymentState.PENDING,
            retries=payment.retries + 1,
            last_retry_at=now,
            failure_reason=None,
            updated_at=now,
        )
        return await self._write_with_order(
            payment, retried, PaymentStatus.FAILED, PaymentStatus.PENDING, "retry"
        )

    async def _claim_refund(
        self,
        payment_id: str,
        reason: str,
        amount: Money | None,
    ) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()

        if not payment.is_refundable:
            return Error(rejected(
                FailureCode.NOT_REFUNDABLE,
                f"payment {payment.id} is {payment.status.value}; only completed payments are refundable",
                payment_id=payment.id,
                status=payment.status.value,
            ))
        refund_amount = payment.amount if amount is None else amount
        if refund_amount <= 0 or refund_amount > payment.amount:
            return Error(invalid(
                f"refund amount must be in (0, {payment.amount}]",
                amount=str(refund_amount),
            ))

        now = self._clock()
        return await self._payments.save(replace(
            payment,
            refund=RefundInfo(refund_amount, reason, RefundStatus.PENDING, now),
            updated_at=now,
        ))

    async def _record_refund(
        self,
        payment_id: str,
        transaction_id: str,
        status: RefundStatus,
    ) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()
        if payment.refund is None:
            return Error(rejected(
                FailureCode.NOT_REFUNDABLE,
                f"payment {payment.id} has no refund in flight",
                payment_id=payment.id,
            ))

        now = self._clock()
        refunded = replace(
            payment,
            status=PaymentState.REFUNDED,
            refund=replace(payment.refund, status=status, transaction_id=transaction_id, refunded_at=now),
            updated_at=now,
        )
        result = await self._write_with_order(
            payment, refunded, PaymentStatus.COMPLETED, PaymentStatus.REFUNDED, "refund"
        )
        if isinstance(result, Ok):
            logger.info("payment %s refunded %s", payment_id, payment.refund.amount)
        return result

    async def _release_refund(self, payment_id: str) -> Result[Payment, Failure]:
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        payment = found.unwrap()
        if payment.refund is None:
            return Ok(payment)
        return await self._payments.save(replace(
            payment,
            refund=replace(payment.refund, status=RefundStatus.FAILED),
            updated_at=self._clock(),
        ))

    # ───────────────────────────────────────────────────────────────────────────
    # Paired writes
    # ───────────────────────────────────────────────────────────────────────────

    async def _write_with_order(
        self,
        previous: Payment,
        updated: Payment,
        order_from: PaymentStatus,
        order_to: PaymentStatus,
        label: str,
    ) -> Result[Payment, Failure]:
        """Write payment; move the order's payment axis only if it sits at order_from."""
        found = await self._orders.get(previous.order_id)
        if isinstance(found, Error):
            return found
        order = found.unwrap()

        if order.payment.status is not order_from:
            return await self._payments.save(updated)

        moved = set_payment_status(order, order_to, updated.updated_at)
        if isinstance(moved, Error):
            return moved
        return await self._write_pair(previous, updated, moved.unwrap(), label)

    async def _write_pair(
        self,
        previous: Payment,
        updated: Payment,
        order: Order,
        label: str,
    ) -> Result[Payment, Failure]:
        saga = Saga(f"{label} {previous.id}")

        async def restore(saved: Payment) -> Result[Payment, Failure]:
            return await self._payments.save(replace(previous, version=saved.version))

        written = await saga.run(step(
            LazyCoroResult(lambda: self._payments.save(updated)),
            compensate=restore,
            label="payment",
        ))
        if isinstance(written, Error):
            return written

        synced = await saga.run(step(
            LazyCoroResult(lambda: self._orders.save(order)),
            label="order",
        ))
        if isinstance(synced, Error):
            await saga.abort(synced.error)
            return synced

        return written


def _bad_signature(payment_id: str) -> Failure:
    return rejected(
        FailureCode.INVALID_SIGNATURE,
        f"payment {payment_id}: gateway signature did not verify",
        payment_id=payment_id,
    )


__all__ = ("PAYMENT_STATE_TRANSITIONS", "WebhookEvent", "PaymentCoordinator")
