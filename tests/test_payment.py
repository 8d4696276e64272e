from decimal import Decimal

import pytest
from kungfu import Error, Ok

from orderflow import catalog as Cat
from orderflow import order as O
from orderflow import payment as Pay
from orderflow._errors import FailureCode, FailureKind, dependency
from orderflow.config import Settings

from support import FixedClock, System, build_system, cart


class FlakyRefundGateway(Pay.HmacGateway):
    def __init__(self, secret: str) -> None:
        super().__init__(secret)
        self.refund_down = True

    async def refund(self, reference_id, amount, reason):
        if self.refund_down:
            raise ConnectionError("refund endpoint unavailable")
        return await super().refund(reference_id, amount, reason)


@pytest.fixture
def settings() -> Settings:
    return Settings().with_payment_retries(2)


async def upi_order(system: System, address) -> tuple[O.Order, Pay.Payment]:
    placement = (await system.checkout.place_order(cart(address, ("P", 1), method=Pay.PaymentMethod.UPI))).unwrap()
    return placement.order, placement.payment


def proof_for(system: System, payment: Pay.Payment, reference: str = "ref_1") -> Pay.GatewayProof:
    intent = payment.gateway.intent_id
    return Pay.GatewayProof(intent, reference, system.gateway.sign(intent, reference))


def code_of(result) -> FailureCode:
    assert isinstance(result, Error), result
    return result.error.code


class TestInitiate:
    async def test_amount_must_be_positive(self, system: System, address):
        order, _ = await upi_order(system, address)

        result = await system.payments.initiate(order.id, Decimal("0"), Pay.PaymentMethod.UPI)

        assert isinstance(result, Error)
        assert result.error.kind is FailureKind.VALIDATION

    async def test_cancelled_order(self, system: System, address):
        order, _ = await upi_order(system, address)
        await system.checkout.cancel_order(order.id, "dup", None)

        result = await system.payments.initiate(order.id, order.total, Pay.PaymentMethod.UPI)

        assert code_of(result) is FailureCode.INVALID_TRANSITION

    async def test_unknown_order(self, system: System):
        result = await system.payments.initiate("ord_missing", Decimal("10"), Pay.PaymentMethod.COD)

        assert code_of(result) is FailureCode.ORDER_NOT_FOUND

    async def test_listed_per_order(self, system: System, address):
        order, payment = await upi_order(system, address)

        payments = (await system.payments.for_order(order.id)).unwrap()

        assert [p.id for p in payments] == [payment.id]
        assert payment.currency == "INR"


class TestVerify:
    async def test_valid_signature_completes_both(self, system: System, address):
        order, payment = await upi_order(system, address)

        completed = (await system.payments.verify(payment.id, proof_for(system, payment))).unwrap()
        stored_order = (await system.orders.get(order.id)).unwrap()

        assert completed.status is Pay.PaymentState.COMPLETED
        assert completed.gateway_ref == "ref_1"
        assert stored_order.payment.status is O.PaymentStatus.COMPLETED
        assert stored_order.payment.transaction_id == payment.transaction_id

    async def test_bad_signature(self, system: System, address):
        _, payment = await upi_order(system, address)
        forged = Pay.GatewayProof(payment.gateway.intent_id, "ref_1", "0" * 64)

        result = await system.payments.verify(payment.id, forged)

        assert code_of(result) is FailureCode.INVALID_SIGNATURE
        assert (await system.payments.get(payment.id)).unwrap().status is Pay.PaymentState.PENDING

    async def test_proof_for_another_intent(self, system: System, address):
        _, payment = await upi_order(system, address)
        other = Pay.GatewayProof("intent_other", "ref_1", system.gateway.sign("intent_other", "ref_1"))

        assert code_of(await system.payments.verify(payment.id, other)) is FailureCode.INVALID_SIGNATURE


class TestCompletion:
    async def test_replay_with_same_reference_is_noop(self, system: System, address):
        _, payment = await upi_order(system, address)

        first = (await system.payments.mark_completed(payment.id, "ref_1")).unwrap()
        replay = (await system.payments.mark_completed(payment.id, "ref_1")).unwrap()

        assert replay.version == first.version

    async def test_different_reference_rejected(self, system: System, address):
        _, payment = await upi_order(system, address)
        await system.payments.mark_completed(payment.id, "ref_1")

        result = await system.payments.mark_completed(payment.id, "ref_2")

        assert code_of(result) is FailureCode.INVALID_TRANSITION

    async def test_order_write_failure_restores_payment(self, system: System, address, monkeypatch):
        _, payment = await upi_order(system, address)

        async def broken(order):
            return Error(dependency("orders table unavailable"))

        monkeypatch.setattr(system.orders, "save", broken)

        result = await system.payments.mark_completed(payment.id, "ref_1")

        assert isinstance(result, Error)
        assert (await system.payments.get(payment.id)).unwrap().status is Pay.PaymentState.PENDING


class TestFailAndRetry:
    async def test_retry_cap(self, system: System, address):
        order, payment = await upi_order(system, address)

        for _ in range(2):
            (await system.payments.mark_failed(payment.id, "insufficient funds")).unwrap()
            assert (await system.orders.get(order.id)).unwrap().payment.status is O.PaymentStatus.FAILED
            retried = (await system.payments.retry(payment.id)).unwrap()
            assert retried.status is Pay.PaymentState.PENDING
            assert (await system.orders.get(order.id)).unwrap().payment.status is O.PaymentStatus.PENDING

        await system.payments.mark_failed(payment.id, "insufficient funds")
        result = await system.payments.retry(payment.id)

        assert code_of(result) is FailureCode.RETRY_LIMIT_EXCEEDED
        assert (await system.payments.get(payment.id)).unwrap().retries == 2

    async def test_only_failed_payments_retry(self, system: System, address):
        _, payment = await upi_order(system, address)

        assert code_of(await system.payments.retry(payment.id)) is FailureCode.INVALID_TRANSITION

    async def test_failed_payment_can_still_complete(self, system: System, address):
        _, payment = await upi_order(system, address)
        await system.payments.mark_failed(payment.id, "timeout")

        completed = (await system.payments.mark_completed(payment.id, "ref_late")).unwrap()

        assert completed.status is Pay.PaymentState.COMPLETED
        assert completed.failure_reason is None


class TestWebhook:
    @pytest.mark.parametrize("event", ["payment.authorized", "payment.captured"])
    async def test_completes(self, system: System, address, event):
        _, payment = await upi_order(system, address)

        result = await system.payments.handle_webhook(
            Pay.WebhookEvent(event, payment.gateway.intent_id, "ref_9")
        )

        assert result.unwrap().gateway_ref == "ref_9"

    async def test_failed(self, system: System, address):
        _, payment = await upi_order(system, address)

        result = await system.payments.handle_webhook(
            Pay.WebhookEvent("payment.failed", payment.gateway.intent_id, reason="card declined")
        )

        assert result.unwrap().failure_reason == "card declined"

    async def test_unknown_event_ignored(self, system: System, address):
        _, payment = await upi_order(system, address)

        result = await system.payments.handle_webhook(Pay.WebhookEvent("refund.created", payment.gateway.intent_id))

        assert isinstance(result, Ok)
        assert result.unwrap() is None

    async def test_unknown_intent(self, system: System):
        result = await system.payments.handle_webhook(Pay.WebhookEvent("payment.captured", "intent_nope"))

        assert code_of(result) is FailureCode.PAYMENT_NOT_FOUND


class TestRefund:
    async def test_pending_not_refundable(self, system: System, address):
        _, payment = await upi_order(system, address)

        assert code_of(await system.payments.refund(payment.id, "oops")) is FailureCode.NOT_REFUNDABLE

    async def test_partial_refund_bounds(self, system: System, address):
        _, payment = await upi_order(system, address)
        await system.payments.mark_completed(payment.id, "ref_1")

        too_much = await system.payments.refund(payment.id, "oops", payment.amount + 1)
        partial = (await system.payments.refund(payment.id, "scratch", Decimal("18.00"))).unwrap()

        assert too_much.error.kind is FailureKind.VALIDATION
        assert partial.refund.amount == Decimal("18.00")
        assert partial.refund.status is Pay.RefundStatus.COMPLETED

    async def test_gateway_failure_releases_claim(self, clock: FixedClock, settings: Settings, address):
        gateway = FlakyRefundGateway("secret")
        system = build_system(clock, settings, gateway)
        await system.catalog.add(Cat.Product("P", "Steel Bottle", Decimal("100")), stock=5)
        _, payment = await upi_order(system, address)
        await system.payments.mark_completed(payment.id, "ref_1")

        failed = await system.payments.refund(payment.id, "damaged")
        stored = (await system.payments.get(payment.id)).unwrap()

        assert code_of(failed) is FailureCode.GATEWAY_ERROR
        assert stored.status is Pay.PaymentState.COMPLETED
        assert stored.is_refundable

        gateway.refund_down = False
        refunded = (await system.payments.refund(payment.id, "damaged")).unwrap()

        assert refunded.status is Pay.PaymentState.REFUNDED
