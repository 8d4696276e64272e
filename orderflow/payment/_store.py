"""
Payment store — persistence protocol and in-memory backend.

Same compare-and-swap contract as the order store: save() succeeds only
against the stored version.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, conflict, not_found
from orderflow.payment._types import Payment


class PaymentStore(Protocol):
    async def insert(self, payment: Payment) -> Result[Payment, Failure]: ...

    async def get(self, payment_id: str) -> Result[Payment, Failure]: ...

    async def get_by_intent(self, intent_id: str) -> Result[Payment, Failure]: ...

    async def find_by_order(self, order_id: str) -> Result[list[Payment], Failure]: ...

    async def save(self, payment: Payment) -> Result[Payment, Failure]: ...


def payment_not_found(key: str) -> Failure:
    return not_found(FailureCode.PAYMENT_NOT_FOUND, f"payment {key} not found", payment=key)


class MemoryPaymentStore:
    """In-memory payment store."""

    def __init__(self) -> None:
        self._payments: dict[str, Payment] = {}
        self._lock = asyncio.Lock()

    async def insert(self, payment: Payment) -> Result[Payment, Failure]:
        async with self._lock:
            duplicate = payment.id in self._payments or any(
                p.transaction_id == payment.transaction_id for p in self._payments.values()
            )
            if duplicate:
                return Error(conflict(f"payment {payment.id} already exists", payment_id=payment.id))
            self._payments[payment.id] = payment
            return Ok(payment)

    async def get(self, payment_id: str) -> Result[Payment, Failure]:
        if (payment := self._payments.get(payment_id)) is None:
            return Error(payment_not_found(payment_id))
        return Ok(payment)

    async def get_by_intent(self, intent_id: str) -> Result[Payment, Failure]:
        for payment in self._payments.values():
            if payment.gateway is not None and payment.gateway.intent_id == intent_id:
                return Ok(payment)
        return Error(payment_not_found(intent_id))

    async def find_by_order(self, order_id: str) -> Result[list[Payment], Failure]:
        payments = [p for p in self._payments.values() if p.order_id == order_id]
        return Ok(sorted(payments, key=lambda p: p.created_at))

    async def save(self, payment: Payment) -> Result[Payment, Failure]:
        async with self._lock:
            if (current := self._payments.get(payment.id)) is None:
                return Error(payment_not_found(payment.id))
            if current.version != payment.version:
                return Error(conflict(
                    f"payment {payment.id} changed concurrently",
                    payment_id=payment.id,
                ))
            saved = replace(payment, version=payment.version + 1)
            self._payments[payment.id] = saved
            return Ok(saved)


__all__ = ("PaymentStore", "MemoryPaymentStore", "payment_not_found")
