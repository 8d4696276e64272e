"""
Order store — persistence protocol and in-memory backend.

save() is a compare-and-swap on Order.version: a writer holding a stale
copy gets a CONFLICT failure and must re-read.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, conflict, not_found
from orderflow.order._types import Order, OrderStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Protocols
# ═══════════════════════════════════════════════════════════════════════════════


class OrderNumberSequence(Protocol):
    """Atomic, durable counter. Two callers never get the same value."""

    async def next_value(self) -> Result[int, Failure]: ...


class OrderStore(Protocol):
    async def insert(self, order: Order) -> Result[Order, Failure]:
        """Insert a new order. CONFLICT on duplicate id or number."""
        ...

    async def get(self, order_id: str) -> Result[Order, Failure]: ...

    async def get_by_number(self, number: str) -> Result[Order, Failure]: ...

    async def find(
        self,
        customer_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], Failure]: ...

    async def save(self, order: Order) -> Result[Order, Failure]:
        """
        Persist a changed order.

        Succeeds only if the stored version equals order.version; the
        returned order carries version + 1.
        """
        ...

    async def discard(self, order_id: str) -> Result[None, Failure]:
        """Remove an order whose creation is being rolled back."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Shared
# ═══════════════════════════════════════════════════════════════════════════════


def order_not_found(key: str) -> Failure:
    return not_found(FailureCode.ORDER_NOT_FOUND, f"order {key} not found", order=key)


def stale(order: Order, stored_version: int) -> Failure:
    return conflict(
        f"order {order.number} changed concurrently (have v{order.version}, stored v{stored_version})",
        order_id=order.id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Backends
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryOrderSequence:
    """Counter under a lock."""

    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = asyncio.Lock()

    async def next_value(self) -> Result[int, Failure]:
        async with self._lock:
            self._value += 1
            return Ok(self._value)


class MemoryOrderStore:
    """In-memory order store."""

    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._by_number: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def insert(self, order: Order) -> Result[Order, Failure]:
        async with self._lock:
            if order.id in self._orders or order.number in self._by_number:
                return Error(conflict(
                    f"order {order.number} already exists",
                    code=FailureCode.DUPLICATE_NUMBER,
                    number=order.number,
                ))
            self._orders[order.id] = order
            self._by_number[order.number] = order.id
            return Ok(order)

    async def get(self, order_id: str) -> Result[Order, Failure]:
        if (order := self._orders.get(order_id)) is None:
            return Error(order_not_found(order_id))
        return Ok(order)

    async def get_by_number(self, number: str) -> Result[Order, Failure]:
        if (order_id := self._by_number.get(number)) is None:
            return Error(order_not_found(number))
        return Ok(self._orders[order_id])

    async def find(
        self,
        customer_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], Failure]:
        orders = [
            o for o in self._orders.values()
            if (customer_id is None or o.customer_id == customer_id)
            and (status is None or o.status is status)
        ]
        return Ok(sorted(orders, key=lambda o: o.created_at, reverse=True))

    async def save(self, order: Order) -> Result[Order, Failure]:
        async with self._lock:
            if (current := self._orders.get(order.id)) is None:
                return Error(order_not_found(order.id))
            if current.version != order.version:
                return Error(stale(order, current.version))
            saved = replace(order, version=order.version + 1)
            self._orders[order.id] = saved
            return Ok(saved)

    async def discard(self, order_id: str) -> Result[None, Failure]:
        async with self._lock:
            if (order := self._orders.pop(order_id, None)) is not None:
                self._by_number.pop(order.number, None)
            return Ok(None)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "OrderNumberSequence",
    "OrderStore",
    "MemoryOrderSequence",
    "MemoryOrderStore",
    "order_not_found",
    "stale",
)
