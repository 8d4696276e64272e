"""
SQL order store, order number sequence and payment store.

save() is `UPDATE ... WHERE id = :id AND version = :seen`; zero rows
means another writer got there first.
"""

from __future__ import annotations

from dataclasses import replace

from kungfu import Result, Ok, Error
from sqlalchemy import delete, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from orderflow._errors import Failure, FailureCode, conflict
from orderflow.order._store import order_not_found, stale
from orderflow.order._types import Order, OrderStatus
from orderflow.payment._store import payment_not_found
from orderflow.payment._types import Payment
from orderflow.storage._codec import Codec
from orderflow.storage._schema import (
    OrderRow,
    OrderSequenceRow,
    PaymentRow,
    Sessions,
    guarded,
    rowcount,
)

ORDERS = Codec(Order)
PAYMENTS = Codec(Payment)


# ═══════════════════════════════════════════════════════════════════════════════
# Sequence
# ═══════════════════════════════════════════════════════════════════════════════


class SqlOrderSequence:
    """Counter row bumped with UPDATE ... RETURNING."""

    def __init__(self, sessions: Sessions, name: str = "orders") -> None:
        self._sessions = sessions
        self._name = name

    async def next_value(self) -> Result[int, Failure]:
        async def op() -> Result[int, Failure]:
            async with self._sessions() as session, session.begin():
                await session.execute(
                    sqlite_insert(OrderSequenceRow)
                    .values(name=self._name, value=0)
                    .on_conflict_do_nothing(index_elements=["name"])
                )
                value = (await session.execute(
                    update(OrderSequenceRow)
                    .where(OrderSequenceRow.name == self._name)
                    .values(value=OrderSequenceRow.value + 1)
                    .returning(OrderSequenceRow.value)
                )).scalar_one()
            return Ok(value)

        return await guarded(op, "order sequence")


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class SqlOrderStore:
    def __init__(self, sessions: Sessions) -> None:
        self._sessions = sessions

    async def insert(self, order: Order) -> Result[Order, Failure]:
        async def op() -> Result[Order, Failure]:
            try:
                async with self._sessions() as session, session.begin():
                    session.add(OrderRow(
                        id=order.id,
                        number=order.number,
                        customer_id=order.customer_id,
                        status=order.status.value,
                        created_at=order.created_at,
                        version=order.version,
                        document=ORDERS.dump(order),
                    ))
            except IntegrityError:
                return Error(conflict(
                    f"order {order.number} already exists",
                    code=FailureCode.DUPLICATE_NUMBER,
                    number=order.number,
                ))
            return Ok(order)

        return await guarded(op, f"insert order {order.number}")

    async def get(self, order_id: str) -> Result[Order, Failure]:
        async def op() -> Result[Order, Failure]:
            async with self._sessions() as session:
                if (row := await session.get(OrderRow, order_id)) is None:
                    return Error(order_not_found(order_id))
                return Ok(ORDERS.load(row.document))

        return await guarded(op, f"get order {order_id}")

    async def get_by_number(self, number: str) -> Result[Order, Failure]:
        async def op() -> Result[Order, Failure]:
            async with self._sessions() as session:
                row = await session.scalar(select(OrderRow).where(OrderRow.number == number))
                if row is None:
                    return Error(order_not_found(number))
                return Ok(ORDERS.load(row.document))

        return await guarded(op, f"get order {number}")

    async def find(
        self,
        customer_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], Failure]:
        stmt = select(OrderRow).order_by(OrderRow.created_at.desc())
        if customer_id is not None:
            stmt = stmt.where(OrderRow.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(OrderRow.status == status.value)

        async def op() -> Result[list[Order], Failure]:
            async with self._sessions() as session:
                rows = await session.scalars(stmt)
                return Ok([ORDERS.load(row.document) for row in rows])

        return await guarded(op, "find orders")

    async def save(self, order: Order) -> Result[Order, Failure]:
        saved = replace(order, version=order.version + 1)

        async def op() -> Result[Order, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(OrderRow)
                    .where(OrderRow.id == order.id, OrderRow.version == order.version)
                    .values(
                        status=saved.status.value,
                        version=saved.version,
                        document=ORDERS.dump(saved),
                    )
                )
                if await rowcount(session, stmt) == 0:
                    current = await session.scalar(
                        select(OrderRow.version).where(OrderRow.id == order.id)
                    )
                    if current is None:
                        return Error(order_not_found(order.id))
                    return Error(stale(order, current))
            return Ok(saved)

        return await guarded(op, f"save order {order.number}")

    async def discard(self, order_id: str) -> Result[None, Failure]:
        async def op() -> Result[None, Failure]:
            async with self._sessions() as session, session.begin():
                await session.execute(delete(OrderRow).where(OrderRow.id == order_id))
            return Ok(None)

        return await guarded(op, f"discard order {order_id}")


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


class SqlPaymentStore:
    def __init__(self, sessions: Sessions) -> None:
        self._sessions = sessions

    async def insert(self, payment: Payment) -> Result[Payment, Failure]:
        async def op() -> Result[Payment, Failure]:
            try:
                async with self._sessions() as session, session.begin():
                    session.add(PaymentRow(
                        id=payment.id,
                        order_id=payment.order_id,
                        intent_id=payment.gateway.intent_id if payment.gateway else None,
                        transaction_id=payment.transaction_id,
                        created_at=payment.created_at,
                        version=payment.version,
                        document=PAYMENTS.dump(payment),
                    ))
            except IntegrityError:
                return Error(conflict(f"payment {payment.id} already exists", payment_id=payment.id))
            return Ok(payment)

        return await guarded(op, f"insert payment {payment.id}")

    async def get(self, payment_id: str) -> Result[Payment, Failure]:
        async def op() -> Result[Payment, Failure]:
            async with self._sessions() as session:
                if (row := await session.get(PaymentRow, payment_id)) is None:
                    return Error(payment_not_found(payment_id))
                return Ok(PAYMENTS.load(row.document))

        return await guarded(op, f"get payment {payment_id}")

    async def get_by_intent(self, intent_id: str) -> Result[Payment, Failure]:
        async def op() -> Result[Payment, Failure]:
            async with self._sessions() as session:
                row = await session.scalar(select(PaymentRow).where(PaymentRow.intent_id == intent_id))
                if row is None:
                    return Error(payment_not_found(intent_id))
                return Ok(PAYMENTS.load(row.document))

        return await guarded(op, f"get payment for intent {intent_id}")

    async def find_by_order(self, order_id: str) -> Result[list[Payment], Failure]:
        async def op() -> Result[list[Payment], Failure]:
            async with self._sessions() as session:
                rows = await session.scalars(
                    select(PaymentRow)
                    .where(PaymentRow.order_id == order_id)
                    .order_by(PaymentRow.created_at)
                )
                return Ok([PAYMENTS.load(row.document) for row in rows])

        return await guarded(op, f"payments for {order_id}")

    async def save(self, payment: Payment) -> Result[Payment, Failure]:
        saved = replace(payment, version=payment.version + 1)

        async def op() -> Result[Payment, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(PaymentRow)
                    .where(PaymentRow.id == payment.id, PaymentRow.version == payment.version)
                    .values(version=saved.version, document=PAYMENTS.dump(saved))
                )
                if await rowcount(session, stmt) == 0:
                    exists = await session.scalar(
                        select(PaymentRow.id).where(PaymentRow.id == payment.id)
                    )
                    if exists is None:
                        return Error(payment_not_found(payment.id))
                    return Error(conflict(
                        f"payment {payment.id} changed concurrently",
                        payment_id=payment.id,
                    ))
            return Ok(saved)

        return await guarded(op, f"save payment {payment.id}")


__all__ = (
    "ORDERS",
    "PAYMENTS",
    "SqlOrderSequence",
    "SqlOrderStore",
    "SqlPaymentStore",
)
