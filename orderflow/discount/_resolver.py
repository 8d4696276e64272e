"""
Discount resolver — applicability, amount, usage recording.

Validation order, first failure wins:
    code exists → active → window → subtotal >= minimum_cart_value
    → per-customer usage < uses_per_customer → total usage < usage_limit
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, rejected
from orderflow._types import Clock, Money, utcnow
from orderflow.discount._amount import amount_for
from orderflow.discount._store import (
    DiscountStore,
    per_customer_limit_reached,
    usage_limit_reached,
)
from orderflow.discount._types import AppliedDiscount, Discount, DiscountType
from orderflow.pricing import LineItem

logger = logging.getLogger(__name__)


class DiscountResolver:
    """
    Resolves codes against a cart.

    Example:
        resolver = DiscountResolver(MemoryDiscountStore())
        match await resolver.resolve("save10", Decimal("200"), "cust_1"):
            case Ok(applied):
                applied.amount  # Decimal("20.00")
            case Error(failure):
                failure.code    # FailureCode.EXPIRED, ...
    """

    def __init__(self, store: DiscountStore, clock: Clock = utcnow) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> DiscountStore:
        return self._store

    async def resolve(
        self,
        code: str,
        subtotal: Money,
        customer_id: str,
        lines: Sequence[LineItem] = (),
    ) -> Result[AppliedDiscount, Failure]:
        """Full check including the customer's own usage."""
        return await self._resolve(code, subtotal, customer_id, lines)

    async def validate(
        self,
        code: str,
        cart_total: Money,
        lines: Sequence[LineItem] = (),
    ) -> Result[AppliedDiscount, Failure]:
        """Preview for a cart without a customer. Skips the per-customer check."""
        return await self._resolve(code, cart_total, None, lines)

    async def record_usage(
        self,
        discount_id: str,
        customer_id: str,
        amount: Money,
    ) -> Result[Discount, Failure]:
        """
        Count one use. Call only after the order exists.
        """
        result = await self._store.record_usage(discount_id, customer_id, amount, self._clock())
        match result:
            case Ok(discount):
                logger.info(
                    "discount %s used by %s (%d/%s)",
                    discount.code,
                    customer_id,
                    discount.total_used,
                    discount.usage_limit if discount.usage_limit is not None else "∞",
                )
        return result

    async def _resolve(
        self,
        code: str,
        subtotal: Money,
        customer_id: str | None,
        lines: Sequence[LineItem],
    ) -> Result[AppliedDiscount, Failure]:
        found = await self._store.get_by_code(code)
        if isinstance(found, Error):
            return found
        discount = found.unwrap()

        if isinstance(checked := self._check(discount, subtotal, customer_id), Error):
            return checked

        return Ok(AppliedDiscount(
            discount_id=discount.id,
            code=discount.code,
            type=discount.type,
            amount=amount_for(discount, subtotal, lines),
            waives_shipping=discount.type is DiscountType.FREE_SHIPPING,
        ))

    def _check(
        self,
        discount: Discount,
        subtotal: Money,
        customer_id: str | None,
    ) -> Result[Discount, Failure]:
        now = self._clock()

        if not discount.active:
            return Error(rejected(
                FailureCode.INACTIVE, f"discount {discount.code} is not active", code=discount.code
            ))
        if now < discount.valid_from:
            return Error(rejected(
                FailureCode.INACTIVE,
                f"discount {discount.code} is not valid before {discount.valid_from.isoformat()}",
                code=discount.code,
            ))
        if now > discount.valid_until:
            return Error(rejected(
                FailureCode.EXPIRED,
                f"discount {discount.code} expired at {discount.valid_until.isoformat()}",
                code=discount.code,
            ))
        if subtotal < discount.minimum_cart_value:
            return Error(rejected(
                FailureCode.BELOW_MINIMUM_CART,
                f"minimum cart value for {discount.code} is {discount.minimum_cart_value}",
                code=discount.code,
                minimum_cart_value=str(discount.minimum_cart_value),
                subtotal=str(subtotal),
            ))
        if customer_id is not None and discount.used_by(customer_id) >= discount.uses_per_customer:
            return Error(per_customer_limit_reached(discount, customer_id))
        if discount.exhausted:
            return Error(usage_limit_reached(discount))
        return Ok(discount)


__all__ = ("DiscountResolver",)
