"""
Discount store — codes and usage counters.

record_usage is a conditional increment: it re-checks both limits
under the same lock (or row update) that bumps the counters.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, conflict, not_found, rejected
from orderflow._types import Money
from orderflow.discount._types import CustomerUsage, Discount, normalize_code


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class DiscountStore(Protocol):
    async def add(self, discount: Discount) -> Result[Discount, Failure]:
        """Insert. Conflict if the code already exists."""
        ...

    async def get(self, discount_id: str) -> Result[Discount, Failure]: ...

    async def get_by_code(self, code: str) -> Result[Discount, Failure]: ...

    async def record_usage(
        self,
        discount_id: str,
        customer_id: str,
        amount: Money,
        at: datetime,
    ) -> Result[Discount, Failure]:
        """
        Atomically bump total and per-customer counters.

        Fails with UsageLimitReached / PerCustomerLimitReached when a
        concurrent checkout consumed the last use first.
        """
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Shared
# ═══════════════════════════════════════════════════════════════════════════════


def code_not_found(code: str) -> Failure:
    return not_found(FailureCode.CODE_NOT_FOUND, f"discount code {code} not found", code=code)


def usage_limit_reached(discount: Discount) -> Failure:
    return rejected(
        FailureCode.USAGE_LIMIT_REACHED,
        f"discount {discount.code} has reached its usage limit",
        code=discount.code,
        usage_limit=discount.usage_limit,
    )


def per_customer_limit_reached(discount: Discount, customer_id: str) -> Failure:
    return rejected(
        FailureCode.PER_CUSTOMER_LIMIT_REACHED,
        f"customer already used {discount.code} {discount.used_by(customer_id)} time(s)",
        code=discount.code,
        customer_id=customer_id,
        uses_per_customer=discount.uses_per_customer,
    )


def with_usage(discount: Discount, customer_id: str, amount: Money, at: datetime) -> Discount:
    """Counters after one more use. Caller has checked the limits."""
    previous = discount.used_by(customer_id)
    usage = tuple(u for u in discount.usage if u.customer_id != customer_id)
    return Discount(
        id=discount.id,
        code=discount.code,
        type=discount.type,
        value=discount.value,
        valid_from=discount.valid_from,
        valid_until=discount.valid_until,
        max_discount=discount.max_discount,
        minimum_cart_value=discount.minimum_cart_value,
        usage_limit=discount.usage_limit,
        uses_per_customer=discount.uses_per_customer,
        active=discount.active,
        total_used=discount.total_used + 1,
        total_discount_given=discount.total_discount_given + amount,
        usage=(*usage, CustomerUsage(customer_id, previous + 1, at)),
        bogo=discount.bogo,
        bundle=discount.bundle,
        description=discount.description,
    )


def check_limits(discount: Discount, customer_id: str) -> Result[Discount, Failure]:
    if discount.used_by(customer_id) >= discount.uses_per_customer:
        return Error(per_customer_limit_reached(discount, customer_id))
    if discount.exhausted:
        return Error(usage_limit_reached(discount))
    return Ok(discount)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Store
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryDiscountStore:
    """In-memory discount store, one lock per discount."""

    def __init__(self) -> None:
        self._by_id: dict[str, Discount] = {}
        self._by_code: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._add_lock = asyncio.Lock()

    async def add(self, discount: Discount) -> Result[Discount, Failure]:
        async with self._add_lock:
            if discount.code in self._by_code:
                return Error(conflict(
                    f"discount code {discount.code} already exists",
                    discount_code=discount.code,
                ))
            self._by_id[discount.id] = discount
            self._by_code[discount.code] = discount.id
            return Ok(discount)

    async def get(self, discount_id: str) -> Result[Discount, Failure]:
        if (discount := self._by_id.get(discount_id)) is None:
            return Error(not_found(
                FailureCode.CODE_NOT_FOUND,
                f"discount {discount_id} not found",
                discount_id=discount_id,
            ))
        return Ok(discount)

    async def get_by_code(self, code: str) -> Result[Discount, Failure]:
        normalized = normalize_code(code)
        if (discount_id := self._by_code.get(normalized)) is None:
            return Error(code_not_found(normalized))
        return Ok(self._by_id[discount_id])

    async def record_usage(
        self,
        discount_id: str,
        customer_id: str,
        amount: Money,
        at: datetime,
    ) -> Result[Discount, Failure]:
        async with self._locks[discount_id]:
            match await self.get(discount_id):
                case Error(e):
                    return Error(e)
                case Ok(current):
                    match check_limits(current, customer_id):
                        case Error(e):
                            return Error(e)
                        case Ok(_):
                            updated = with_usage(current, customer_id, amount, at)
                            self._by_id[discount_id] = updated
                            return Ok(updated)


__all__ = (
    "DiscountStore",
    "MemoryDiscountStore",
    "code_not_found",
    "usage_limit_reached",
    "per_customer_limit_reached",
    "with_usage",
    "check_limits",
)
