from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from orderflow import order as O
from orderflow import pricing as P
from orderflow._errors import FailureCode, FailureKind
from orderflow._types import PaymentMethod

AT = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def order(address: O.Address) -> O.Order:
    lines = (P.LineItem("P", "Steel Bottle", 2, Decimal("100")), P.LineItem("Q", "Cap", 1, Decimal("40")))
    return O.create_order(
        order_id="ord_1",
        number=O.format_number("ORD", AT, 1),
        customer_id="cust_a",
        lines=lines,
        breakdown=P.compute(lines, Decimal("0"), Decimal("18"), Decimal("0")),
        shipping_address=address,
        billing_address=None,
        method=PaymentMethod.UPI,
        discount=None,
        at=AT,
    )


def advance(order: O.Order, *statuses: O.OrderStatus) -> O.Order:
    for status in statuses:
        order = O.transition(order, status, AT).unwrap()
    return order


def delivered(order: O.Order) -> O.Order:
    return advance(
        order,
        O.OrderStatus.CONFIRMED,
        O.OrderStatus.PROCESSING,
        O.OrderStatus.SHIPPED,
        O.OrderStatus.DELIVERED,
    )


def code_of(result) -> FailureCode:
    assert isinstance(result, Error), result
    return result.error.code


class TestCreate:
    def test_new_order_is_pending(self, order, address):
        assert order.status is O.OrderStatus.PENDING
        assert order.payment.status is O.PaymentStatus.PENDING
        assert order.shipping.status is O.ShippingStatus.PENDING
        assert order.billing_address == address
        assert order.total == Decimal("283.20")

    def test_number_format(self):
        assert O.format_number("ORD", AT, 42) == f"ORD-{int(AT.timestamp() * 1000)}-42"


class TestStatusAxis:
    def test_happy_path_syncs_shipping(self, order):
        shipped = advance(order, O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING, O.OrderStatus.SHIPPED)

        assert shipped.confirmed_at == AT
        assert shipped.shipping.status is O.ShippingStatus.SHIPPED

        done = advance(shipped, O.OrderStatus.DELIVERED)

        assert done.delivered_at == AT
        assert done.shipping.actual_delivery == AT
        assert done.is_terminal

    def test_cannot_skip_states(self, order):
        assert code_of(O.transition(order, O.OrderStatus.SHIPPED, AT)) is FailureCode.INVALID_TRANSITION

    @pytest.mark.parametrize(
        "status",
        [O.OrderStatus.PENDING, O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING, O.OrderStatus.SHIPPED],
    )
    def test_cancel_allowed_before_delivery(self, order, status):
        path = {
            O.OrderStatus.PENDING: (),
            O.OrderStatus.CONFIRMED: (O.OrderStatus.CONFIRMED,),
            O.OrderStatus.PROCESSING: (O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING),
            O.OrderStatus.SHIPPED: (O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING, O.OrderStatus.SHIPPED),
        }[status]
        current = advance(order, *path)

        cancelled = O.cancel(current, "changed my mind", "cust_a", AT).unwrap()

        assert cancelled.status is O.OrderStatus.CANCELLED
        assert cancelled.cancelled_at == AT
        assert cancelled.cancelled_reason == "changed my mind"
        assert cancelled.cancelled_by == "cust_a"
        assert cancelled.shipping.status is O.ShippingStatus.CANCELLED

    def test_cancelled_is_terminal(self, order):
        cancelled = O.cancel(order, "dup", None, AT).unwrap()

        assert code_of(O.cancel(cancelled, "again", None, AT)) is FailureCode.INVALID_TRANSITION
        assert code_of(O.transition(cancelled, O.OrderStatus.CONFIRMED, AT)) is FailureCode.INVALID_TRANSITION

    def test_delivered_cannot_be_cancelled(self, order):
        result = O.cancel(delivered(order), "too late", None, AT)

        assert code_of(result) is FailureCode.INVALID_TRANSITION
        assert result.error.kind is FailureKind.BUSINESS_RULE

    def test_returned_only_through_approval(self, order):
        assert code_of(O.transition(delivered(order), O.OrderStatus.RETURNED, AT)) is FailureCode.INVALID_TRANSITION


class TestPaymentAxis:
    def test_complete_then_refund(self, order):
        paid = O.set_payment_status(order, O.PaymentStatus.COMPLETED, AT, "txn_1").unwrap()
        refunded = O.set_payment_status(paid, O.PaymentStatus.REFUNDED, AT).unwrap()

        assert paid.payment.paid_at == AT
        assert refunded.payment.transaction_id == "txn_1"

    def test_pending_cannot_be_refunded(self, order):
        result = O.set_payment_status(order, O.PaymentStatus.REFUNDED, AT)

        assert code_of(result) is FailureCode.INVALID_TRANSITION


class TestShippingAxis:
    def test_in_transit_then_delivered(self, order):
        shipped = O.set_shipping_status(order, O.ShippingStatus.SHIPPED, AT).unwrap()
        moving = O.set_shipping_status(shipped, O.ShippingStatus.IN_TRANSIT, AT).unwrap()
        arrived = O.set_shipping_status(moving, O.ShippingStatus.DELIVERED, AT).unwrap()

        assert arrived.shipping.actual_delivery == AT

    def test_in_transit_cannot_be_cancelled(self, order):
        shipped = O.set_shipping_status(order, O.ShippingStatus.SHIPPED, AT).unwrap()
        moving = O.set_shipping_status(shipped, O.ShippingStatus.IN_TRANSIT, AT).unwrap()

        assert code_of(O.set_shipping_status(moving, O.ShippingStatus.CANCELLED, AT)) is FailureCode.INVALID_TRANSITION

    def test_status_change_never_moves_shipping_back(self, order):
        processing = advance(order, O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING)
        for status in (O.ShippingStatus.SHIPPED, O.ShippingStatus.IN_TRANSIT, O.ShippingStatus.DELIVERED):
            processing = O.set_shipping_status(processing, status, AT).unwrap()

        shipped = O.transition(processing, O.OrderStatus.SHIPPED, AT).unwrap()

        assert shipped.status is O.OrderStatus.SHIPPED
        assert shipped.shipping.status is O.ShippingStatus.DELIVERED

    def test_status_change_follows_reachable_shipping(self, order):
        confirmed = advance(order, O.OrderStatus.CONFIRMED)
        in_transit = O.set_shipping_status(
            O.set_shipping_status(confirmed, O.ShippingStatus.SHIPPED, AT).unwrap(),
            O.ShippingStatus.IN_TRANSIT,
            AT,
        ).unwrap()

        processing = O.transition(in_transit, O.OrderStatus.PROCESSING, AT).unwrap()

        assert processing.shipping.status is O.ShippingStatus.IN_TRANSIT

    def test_cannot_cancel_parcel_in_transit(self, order):
        shipped = advance(order, O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING, O.OrderStatus.SHIPPED)
        moving = O.set_shipping_status(shipped, O.ShippingStatus.IN_TRANSIT, AT).unwrap()

        result = O.cancel(moving, "too slow", "cust_a", AT)

        assert code_of(result) is FailureCode.INVALID_TRANSITION
        assert result.error.detail["axis"] == "shipping"

    def test_assign_shipment(self, order):
        assigned = O.assign_shipment(order, "BlueDart", "BD123", None, AT).unwrap()

        assert assigned.shipping.carrier == "BlueDart"
        assert assigned.shipping.tracking_number == "BD123"

    def test_address_locked_once_processing(self, order, address):
        moved = replace(address, line1="7 MG Road")

        assert O.update_shipping_address(order, moved, AT).unwrap().shipping_address.line1 == "7 MG Road"

        processing = advance(order, O.OrderStatus.CONFIRMED, O.OrderStatus.PROCESSING)
        assert code_of(O.update_shipping_address(processing, moved, AT)) is FailureCode.INVALID_TRANSITION

    def test_notes_append(self, order):
        noted = O.add_note(O.add_note(order, "gift wrap", "cust_a", AT).unwrap(), "fragile", None, AT).unwrap()

        assert [n.text for n in noted.notes] == ["gift wrap", "fragile"]
        assert isinstance(O.add_note(order, "  ", None, AT), Error)


class TestReturns:
    def test_only_delivered_orders(self, order):
        result = O.request_return(order, [O.ReturnItem("P", 1)], "broken", AT)

        assert code_of(result) is FailureCode.INVALID_TRANSITION

    def test_cannot_return_more_than_ordered(self, order):
        result = O.request_return(delivered(order), [O.ReturnItem("P", 3)], "broken", AT)

        assert isinstance(result, Error)
        assert result.error.kind is FailureKind.VALIDATION

    def test_approve_defaults_refund_to_captured_prices(self, order):
        requested = O.request_return(delivered(order), [O.ReturnItem("P", 1)], "broken", AT).unwrap()

        approved = O.approve_return(requested, None, AT).unwrap()

        assert approved.status is O.OrderStatus.RETURNED
        assert approved.returns.status is O.ReturnStatus.APPROVED
        assert approved.returns.refund_amount == Decimal("100")
        assert O.mark_return_processed(approved, AT).unwrap().returns.status is O.ReturnStatus.PROCESSED

    def test_reject_keeps_delivered(self, order):
        requested = O.request_return(delivered(order), [O.ReturnItem("Q", 1)], "meh", AT).unwrap()

        rejected = O.reject_return(requested, AT).unwrap()

        assert rejected.status is O.OrderStatus.DELIVERED
        assert rejected.returns.status is O.ReturnStatus.REJECTED
        assert isinstance(O.approve_return(rejected, None, AT), Error)

    def test_one_return_per_order(self, order):
        requested = O.request_return(delivered(order), [O.ReturnItem("Q", 1)], "meh", AT).unwrap()

        assert code_of(O.request_return(requested, [O.ReturnItem("P", 1)], "again", AT)) is FailureCode.INVALID_TRANSITION

    def test_refund_cannot_exceed_total(self, order):
        requested = O.request_return(delivered(order), [O.ReturnItem("Q", 1)], "meh", AT).unwrap()

        assert isinstance(O.approve_return(requested, Decimal("1000"), AT), Error)


class TestStore:
    async def test_save_is_compare_and_swap(self, order):
        store = O.MemoryOrderStore()
        await store.insert(order)

        first = (await store.save(O.add_note(order, "a", None, AT).unwrap())).unwrap()
        stale = await store.save(O.add_note(order, "b", None, AT).unwrap())

        assert first.version == 1
        assert isinstance(stale, Error)
        assert stale.error.kind is FailureKind.CONFLICT

    async def test_duplicate_number(self, order):
        store = O.MemoryOrderStore()
        await store.insert(order)

        result = await store.insert(replace(order, id="ord_2"))

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.DUPLICATE_NUMBER

    async def test_find_filters(self, order):
        store = O.MemoryOrderStore()
        await store.insert(order)
        await store.insert(replace(order, id="ord_2", number="ORD-2", customer_id="cust_b"))

        mine = (await store.find(customer_id="cust_a")).unwrap()
        pending = (await store.find(status=O.OrderStatus.PENDING)).unwrap()

        assert [o.id for o in mine] == ["ord_1"]
        assert len(pending) == 2
        assert isinstance(await store.get_by_number("ORD-2"), Ok)
