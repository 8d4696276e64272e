"""
Checkout orchestrator — place, cancel, return, refund.

The only component that decides whether a failure aborts a unit or is
absorbed. Placing an order debits stock, creates the order and records
discount usage as one compensated unit; payment is initiated after the
unit commits.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok, Error, LazyCoroResult

from orderflow import order as O
from orderflow._errors import Failure, invalid
from orderflow._retry import on_conflict
from orderflow._saga import Saga, step
from orderflow._types import Clock, Money, ZERO, new_id, round2, utcnow
from orderflow.catalog._provider import CatalogProvider
from orderflow.checkout._graph import QuoteSpec, run_quote
from orderflow.checkout._types import CheckoutRequest, Placement, Quote, validate
from orderflow.config import DEFAULT, Settings
from orderflow.discount._resolver import DiscountResolver
from orderflow.order import (
    Address,
    Order,
    OrderStats,
    OrderStatus,
    ReturnItem,
    ReturnRecord,
    ReturnStatus,
    ShippingStatus,
)
from orderflow.payment._coordinator import PaymentCoordinator
from orderflow.payment._types import Payment
from orderflow.stock._ledger import StockLedger
from orderflow.stock._types import Movement

logger = logging.getLogger(__name__)

type Change = Callable[[Order, datetime], Result[Order, Failure]]


class Checkout:
    """
    Entry point for order flows.

    Example:
        checkout = Checkout(
            catalog=catalog,
            ledger=ledger,
            discounts=D.DiscountResolver(discount_store),
            orders=order_store,
            sequence=O.MemoryOrderSequence(),
            payments=coordinator,
        )
        match await checkout.place_order(request):
            case Ok(placement): placement.order.number
            case Error(failure): failure.code
    """

    def __init__(
        self,
        *,
        catalog: CatalogProvider,
        ledger: StockLedger,
        discounts: DiscountResolver,
        orders: O.OrderStore,
        sequence: O.OrderNumberSequence,
        payments: PaymentCoordinator,
        settings: Settings = DEFAULT,
        clock: Clock = utcnow,
    ) -> None:
        self._catalog = catalog
        self._ledger = ledger
        self._discounts = discounts
        self._orders = orders
        self._sequence = sequence
        self._payments = payments
        self._settings = settings
        self._clock = clock

    @property
    def payments(self) -> PaymentCoordinator:
        return self._payments

    @property
    def ledger(self) -> StockLedger:
        return self._ledger

    @property
    def discounts(self) -> DiscountResolver:
        return self._discounts

    # ───────────────────────────────────────────────────────────────────────────
    # Quote / Place
    # ───────────────────────────────────────────────────────────────────────────

    async def quote(self, request: CheckoutRequest) -> Result[Quote, Failure]:
        """Price a cart with no side effects."""
        checked = validate(request)
        if isinstance(checked, Error):
            return checked
        return await self._quote(checked.unwrap())

    async def place_order(self, request: CheckoutRequest) -> Result[Placement, Failure]:
        checked = validate(request)
        if isinstance(checked, Error):
            return checked
        request = checked.unwrap()

        quoted = await self._quote(request)
        if isinstance(quoted, Error):
            return quoted
        quote = quoted.unwrap()

        committed = await on_conflict(
            lambda: self._commit(request, quote),
            times=self._settings.conflict_retries,
            label=f"checkout for {request.customer_id}",
        )
        if isinstance(committed, Error):
            return committed
        order = committed.unwrap()
        logger.info(
            "order %s placed for %s: total %s (%d lines)",
            order.number, order.customer_id, order.total, len(order.lines),
        )

        if order.total <= ZERO:
            return Ok(Placement(order=order, payment=None, discount_rejection=quote.discount_rejection))

        initiated = await self._payments.initiate(order.id, order.total, order.payment.method)
        match initiated:
            case Ok(payment):
                return Ok(Placement(order=order, payment=payment, discount_rejection=quote.discount_rejection))
            case Error(e):
                logger.warning("order %s placed but payment not initiated: %s", order.number, e)
                return Ok(Placement(
                    order=order,
                    payment=None,
                    payment_failure=e,
                    discount_rejection=quote.discount_rejection,
                ))

    async def _quote(self, request: CheckoutRequest) -> Result[Quote, Failure]:
        return await run_quote(QuoteSpec(
            request=request,
            catalog=self._catalog,
            discounts=self._discounts,
            settings=self._settings,
        ))

    async def _commit(self, request: CheckoutRequest, quote: Quote) -> Result[Order, Failure]:
        if (shipping_address := request.shipping_address) is None:
            return Error(invalid("Shipping address is required"))
        sequence = await self._sequence.next_value()
        if isinstance(sequence, Error):
            return sequence
        now = self._clock()
        number = O.format_number(self._settings.order_prefix, now, sequence.unwrap())
        saga = Saga(f"checkout {number}")

        async def credit_back(movement: Movement) -> Result[Movement, Failure]:
            return await self._ledger.credit(
                movement.product_id, movement.quantity, number, "checkout rolled back",
            )

        for line in quote.lines:
            debited = await saga.run(step(
                LazyCoroResult(lambda line=line: self._ledger.debit(
                    line.product_id, line.quantity, number, "order placed", request.customer_id,
                )),
                compensate=credit_back,
                label=f"debit {line.product_id}",
            ))
            if isinstance(debited, Error):
                await saga.abort(debited.error)
                return debited

        async def discard(order: Order) -> Result[None, Failure]:
            return await self._orders.discard(order.id)

        created = await saga.run(step(
            LazyCoroResult(lambda: self._orders.insert(O.create_order(
                order_id=new_id("ord"),
                number=number,
                customer_id=request.customer_id,
                lines=quote.lines,
                breakdown=quote.breakdown,
                shipping_address=shipping_address,
                billing_address=request.billing_address,
                method=request.payment_method or self._settings.default_payment_method,
                discount=quote.discount,
                at=now,
            ))),
            compensate=discard,
            label="order",
        ))
        if isinstance(created, Error):
            await saga.abort(created.error)
            return created

        if (applied := quote.discount) is not None:
            used = await saga.run(step(
                LazyCoroResult(lambda: self._discounts.record_usage(
                    applied.discount_id, request.customer_id, applied.amount,
                )),
                label="discount usage",
            ))
            if isinstance(used, Error):
                await saga.abort(used.error)
                return used

        return created

    # ───────────────────────────────────────────────────────────────────────────
    # Cancel
    # ───────────────────────────────────────────────────────────────────────────

    async def cancel_order(
        self,
        order_id: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Order, Failure]:
        """
        Cancel and put every line back in stock.

        Open payments are cancelled afterwards; completed ones are left
        for process_refund.
        """
        cancelled = await on_conflict(
            lambda: self._cancel_once(order_id, reason, actor),
            times=self._settings.conflict_retries,
            label=f"cancel {order_id}",
        )
        if isinstance(cancelled, Error):
            return cancelled
        order = cancelled.unwrap()
        logger.info("order %s cancelled by %s: %s", order.number, actor or "system", reason)

        closed = await self._payments.cancel_open(order.id)
        if isinstance(closed, Error):
            logger.error("order %s cancelled but open payments remain: %s", order.number, closed.error)
        return cancelled

    async def _cancel_once(
        self,
        order_id: str,
        reason: str,
        actor: str | None,
    ) -> Result[Order, Failure]:
        found = await self._orders.get(order_id)
        if isinstance(found, Error):
            return found
        order = found.unwrap()

        changed = O.cancel(order, reason, actor, self._clock())
        if isinstance(changed, Error):
            return changed

        saga = Saga(f"cancel {order.number}")

        async def restore(saved: Order) -> Result[Order, Failure]:
            return await self._orders.save(replace(order, version=saved.version))

        async def debit_again(movement: Movement) -> Result[Movement, Failure]:
            return await self._ledger.debit(
                movement.product_id, movement.quantity, order.number, "cancel rolled back", actor,
            )

        saved = await saga.run(step(
            LazyCoroResult(lambda: self._orders.save(changed.unwrap())),
            compensate=restore,
            label="order status",
        ))
        if isinstance(saved, Error):
            return saved

        for line in order.lines:
            credited = await saga.run(step(
                LazyCoroResult(lambda line=line: self._ledger.credit(
                    line.product_id, line.quantity, order.number, f"order cancelled: {reason}", actor,
                )),
                compensate=debit_again,
                label=f"credit {line.product_id}",
            ))
            if isinstance(credited, Error):
                await saga.abort(credited.error)
                return credited

        return saved

    # ───────────────────────────────────────────────────────────────────────────
    # Status / Shipping / Notes
    # ───────────────────────────────────────────────────────────────────────────

    async def update_order_status(
        self,
        order_id: str,
        status: OrderStatus,
        actor: str | None = None,
    ) -> Result[Order, Failure]:
        """Cancellation is routed through cancel_order so stock comes back."""
        if status is OrderStatus.CANCELLED:
            return await self.cancel_order(order_id, "status update", actor)
        updated = await self._mutate(
            order_id, lambda order, at: O.transition(order, status, at), "status"
        )
        if isinstance(updated, Ok):
            logger.info("order %s is now %s", updated.unwrap().number, status.value)
        return updated

    async def update_shipping_status(self, order_id: str, status: ShippingStatus) -> Result[Order, Failure]:
        return await self._mutate(
            order_id, lambda order, at: O.set_shipping_status(order, status, at), "shipping"
        )

    async def assign_shipment(
        self,
        order_id: str,
        carrier: str,
        tracking_number: str,
        estimated_delivery: datetime | None = None,
    ) -> Result[Order, Failure]:
        return await self._mutate(
            order_id,
            lambda order, at: O.assign_shipment(order, carrier, tracking_number, estimated_delivery, at),
            "shipment",
        )

    async def update_shipping_address(self, order_id: str, address: Address) -> Result[Order, Failure]:
        return await self._mutate(
            order_id, lambda order, at: O.update_shipping_address(order, address, at), "address"
        )

    async def add_note(self, order_id: str, text: str, author: str | None = None) -> Result[Order, Failure]:
        return await self._mutate(
            order_id, lambda order, at: O.add_note(order, text, author, at), "note"
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Returns / Refunds
    # ───────────────────────────────────────────────────────────────────────────

    async def request_return(
        self,
        order_id: str,
        items: Sequence[ReturnItem],
        reason: str,
    ) -> Result[Order, Failure]:
        return await self._mutate(
            order_id, lambda order, at: O.request_return(order, items, reason, at), "return request"
        )

    async def approve_return(self, order_id: str, refund_amount: Money | None = None) -> Result[Order, Failure]:
        """Order becomes RETURNED. Stock and refund are separate steps."""
        approved = await self._mutate(
            order_id, lambda order, at: O.approve_return(order, refund_amount, at), "return approval"
        )
        match approved:
            case Ok(Order(returns=ReturnRecord() as record) as order):
                logger.info("return for %s approved, refund due %s", order.number, record.refund_amount)
        return approved

    async def reject_return(self, order_id: str) -> Result[Order, Failure]:
        return await self._mutate(
            order_id, lambda order, at: O.reject_return(order, at), "return rejection"
        )

    async def process_refund(
        self,
        payment_id: str,
        reason: str,
        amount: Money | None = None,
    ) -> Result[Payment, Failure]:
        """
        Refund a completed payment.

        For an order with an approved return the approved refund amount is
        the default, and the return is marked processed once refunded.
        """
        found = await self._payments.get(payment_id)
        if isinstance(found, Error):
            return found
        order_found = await self._orders.get(found.unwrap().order_id)
        if isinstance(order_found, Error):
            return order_found
        order = order_found.unwrap()

        pending_return = order.returns is not None and order.returns.status is ReturnStatus.APPROVED
        if amount is None and pending_return and order.returns is not None:
            amount = order.returns.refund_amount

        refunded = await self._payments.refund(payment_id, reason, amount)
        if isinstance(refunded, Error) or not pending_return:
            return refunded

        processed = await self._mutate(
            order.id, lambda current, at: O.mark_return_processed(current, at), "return processed"
        )
        if isinstance(processed, Error):
            logger.error("order %s refunded but return not marked processed: %s", order.number, processed.error)
        return refunded

    # ───────────────────────────────────────────────────────────────────────────
    # Queries
    # ───────────────────────────────────────────────────────────────────────────

    async def get_order(self, order_id: str) -> Result[Order, Failure]:
        return await self._orders.get(order_id)

    async def track(self, number: str) -> Result[Order, Failure]:
        return await self._orders.get_by_number(number)

    async def list_orders(
        self,
        customer_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> Result[list[Order], Failure]:
        return await self._orders.find(customer_id=customer_id, status=status)

    async def order_stats(self) -> Result[OrderStats, Failure]:
        """Counts per status; revenue and average over non-cancelled orders."""
        return (await self._orders.find()).map(stats_of)

    # ───────────────────────────────────────────────────────────────────────────
    # Single-order writes
    # ───────────────────────────────────────────────────────────────────────────

    async def _mutate(self, order_id: str, change: Change, label: str) -> Result[Order, Failure]:
        async def once() -> Result[Order, Failure]:
            found = await self._orders.get(order_id)
            if isinstance(found, Error):
                return found
            changed = change(found.unwrap(), self._clock())
            if isinstance(changed, Error):
                return changed
            return await self._orders.save(changed.unwrap())

        return await on_conflict(
            once, times=self._settings.conflict_retries, label=f"{label} {order_id}"
        )


def stats_of(orders: Sequence[Order]) -> OrderStats:
    by_status = Counter(order.status for order in orders)
    billable = [order for order in orders if order.status is not OrderStatus.CANCELLED]
    revenue = round2(sum((order.total for order in billable), ZERO))
    return OrderStats(
        total_orders=len(orders),
        by_status=dict(by_status),
        revenue=revenue,
        average_order_value=round2(revenue / len(billable)) if billable else round2(ZERO),
    )


__all__ = ("Checkout", "stats_of")
