"""
SQLAlchemy backends against a throwaway SQLite file.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest_asyncio
from kungfu import Error, Ok

from orderflow import catalog as Cat
from orderflow import checkout as C
from orderflow import discount as D
from orderflow import order as O
from orderflow import payment as Pay
from orderflow import storage as S
from orderflow import stock as St
from orderflow._errors import FailureCode, FailureKind
from orderflow.config import Settings

from support import FixedClock, cart, make_discount


@pytest_asyncio.fixture
async def sessions(tmp_path):
    sessions, engine = await S.create_database(f"sqlite+aiosqlite:///{tmp_path / 'orderflow.db'}")
    yield sessions
    await engine.dispose()


@pytest_asyncio.fixture
async def ledger(sessions, clock: FixedClock) -> S.SqlStockLedger:
    ledger = S.SqlStockLedger(sessions, clock)
    (await ledger.open("p1", available=5, reorder=St.ReorderSettings(minimum_level=2))).unwrap()
    return ledger


@pytest_asyncio.fixture
async def sql_checkout(sessions, ledger, clock: FixedClock) -> C.Checkout:
    catalog = S.SqlCatalog(sessions, ledger)
    await catalog.add(Cat.Product("P", "Steel Bottle", Decimal("100")), stock=5)
    discounts = S.SqlDiscountStore(sessions)
    await discounts.add(make_discount(clock))
    orders = S.SqlOrderStore(sessions)
    settings = Settings()
    return C.Checkout(
        catalog=catalog,
        ledger=ledger,
        discounts=D.DiscountResolver(discounts, clock),
        orders=orders,
        sequence=S.SqlOrderSequence(sessions),
        payments=Pay.PaymentCoordinator(
            S.SqlPaymentStore(sessions), orders, Pay.HmacGateway("secret"), settings, clock
        ),
        settings=settings,
        clock=clock,
    )


# ============================================================================
# STOCK
# ============================================================================


class TestSqlStockLedger:
    async def test_debit_and_credit(self, ledger):
        (await ledger.debit("p1", 2, "ORD-1", "checkout")).unwrap()
        (await ledger.credit("p1", 1, "ORD-1", "partial cancel")).unwrap()

        level = (await ledger.level("p1")).unwrap()
        moves = (await ledger.movements("p1")).unwrap()

        assert level.available == 4
        assert [m.signed_quantity for m in moves] == [-2, 1]

    async def test_insufficient(self, ledger):
        result = await ledger.debit("p1", 6, "ORD-1", "checkout")

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.INSUFFICIENT_STOCK
        assert result.error.detail["available"] == 5
        assert (await ledger.movements("p1")).unwrap() == ()

    async def test_unknown_product(self, ledger):
        assert (await ledger.credit("nope", 1, "x", "x")).error.code is FailureCode.PRODUCT_NOT_FOUND

    async def test_last_unit_goes_to_one_buyer(self, ledger):
        await ledger.adjust("p1", 1, "recount")

        results = await asyncio.gather(
            ledger.debit("p1", 1, "ORD-1", "checkout"),
            ledger.debit("p1", 1, "ORD-2", "checkout"),
        )

        assert sum(isinstance(r, Ok) for r in results) == 1
        assert (await ledger.level("p1")).unwrap().available == 0

    async def test_adjust_and_count(self, ledger):
        adjusted = (await ledger.adjust("p1", 8, "found a box")).unwrap()
        counted = (await ledger.physical_count("p1", 6, "cycle count")).unwrap()

        assert adjusted.signed_quantity == 3
        assert counted.type is St.MovementType.PHYSICAL_COUNT
        assert counted.signed_quantity == -2
        assert (await ledger.level("p1")).unwrap().available == 6

    async def test_reserve_release(self, ledger):
        (await ledger.reserve("p1", 3, "cart-1")).unwrap()
        released = (await ledger.release("p1", 1, "cart-1")).unwrap()

        assert (released.available, released.reserved) == (3, 2)
        assert isinstance(await ledger.release("p1", 5, "cart-1"), Error)

    async def test_write_off(self, ledger):
        (await ledger.write_off("p1", 2, "water damage")).unwrap()

        level = (await ledger.level("p1")).unwrap()

        assert (level.available, level.defective) == (3, 2)
        assert (await ledger.write_off("p1", 4, "water damage")).error.code is FailureCode.INSUFFICIENT_STOCK

    async def test_low_stock(self, ledger):
        await ledger.transfer("p1", 3, "store-2", "rebalance")

        low = (await ledger.low_stock()).unwrap()

        assert [level.product_id for level in low] == ["p1"]


# ============================================================================
# CATALOG / DISCOUNTS
# ============================================================================


class TestSqlCatalog:
    async def test_snapshot_reads_ledger(self, sessions, ledger):
        catalog = S.SqlCatalog(sessions, ledger)
        await catalog.add(Cat.Product("p1", "Mug", Decimal("249.50"), Decimal("120")))
        await ledger.debit("p1", 2, "ORD-1", "checkout")

        snapshot = (await catalog.get_snapshot("p1")).unwrap()

        assert snapshot.price == Decimal("249.50")
        assert snapshot.available == 3

    async def test_inactive_and_missing(self, sessions, ledger):
        catalog = S.SqlCatalog(sessions, ledger)
        product = (await catalog.add(Cat.Product("p1", "Mug", Decimal("10")))).unwrap()
        await catalog.update(replace(product, active=False))

        assert (await catalog.get_snapshot("p1")).error.code is FailureCode.PRODUCT_NOT_FOUND
        assert (await catalog.get_snapshot("zz")).error.code is FailureCode.PRODUCT_NOT_FOUND


class TestSqlDiscountStore:
    async def test_round_trip_and_lookup(self, sessions, clock):
        store = S.SqlDiscountStore(sessions)
        rule = D.BogoRule(2, 1, frozenset({"mug"}))
        original = make_discount(clock, "B2G1", type=D.DiscountType.BOGO, value=Decimal("0"), bogo=rule)
        await store.add(original)

        assert (await store.get_by_code("b2g1")).unwrap() == original
        assert (await store.add(original)).error.kind is FailureKind.CONFLICT

    async def test_usage_limit_under_contention(self, sessions, clock):
        store = S.SqlDiscountStore(sessions)
        await store.add(make_discount(clock, usage_limit=1))

        results = await asyncio.gather(
            store.record_usage("disc_save10", "cust_a", Decimal("10"), clock.now),
            store.record_usage("disc_save10", "cust_b", Decimal("10"), clock.now),
        )

        assert sum(isinstance(r, Ok) for r in results) == 1
        loser = next(r for r in results if isinstance(r, Error))
        assert loser.error.code is FailureCode.USAGE_LIMIT_REACHED
        assert (await store.get("disc_save10")).unwrap().total_used == 1


# ============================================================================
# ORDERS
# ============================================================================


class TestSqlOrders:
    async def test_sequence(self, sessions):
        sequence = S.SqlOrderSequence(sessions)

        values = [(await sequence.next_value()).unwrap() for _ in range(3)]

        assert values == [1, 2, 3]

    async def test_sequence_under_concurrency(self, sessions):
        first, second = S.SqlOrderSequence(sessions), S.SqlOrderSequence(sessions)

        results = await asyncio.gather(*(
            (first if i % 2 else second).next_value() for i in range(12)
        ))

        assert sorted(r.unwrap() for r in results) == list(range(1, 13))

    async def test_concurrent_checkouts_get_distinct_numbers(self, sql_checkout, address):
        results = await asyncio.gather(*(
            sql_checkout.place_order(cart(address, ("P", 1), customer_id=f"cust_{i}"))
            for i in range(4)
        ))

        numbers = [r.unwrap().order.number for r in results]
        assert len(set(numbers)) == 4
        assert (await sql_checkout.ledger.level("P")).unwrap().available == 1

    async def test_document_round_trip_and_versioning(self, sql_checkout, sessions, address):
        placement = (await sql_checkout.place_order(cart(address, ("P", 2), code="SAVE10"))).unwrap()
        store = S.SqlOrderStore(sessions)

        loaded = (await store.get(placement.order.id)).unwrap()

        assert loaded.lines == placement.order.lines
        assert loaded.shipping_address == placement.order.shipping_address
        assert loaded.breakdown.total == Decimal("212.40")
        assert (await store.get_by_number(loaded.number)).unwrap().id == loaded.id

        first = (await store.save(O.add_note(loaded, "a", None, loaded.created_at).unwrap())).unwrap()
        stale = await store.save(O.add_note(loaded, "b", None, loaded.created_at).unwrap())

        assert first.version == loaded.version + 1
        assert stale.error.kind is FailureKind.CONFLICT

    async def test_duplicate_number(self, sql_checkout, sessions, address):
        placement = (await sql_checkout.place_order(cart(address, ("P", 1)))).unwrap()
        store = S.SqlOrderStore(sessions)

        result = await store.insert(replace(placement.order, id="ord_other"))

        assert result.error.code is FailureCode.DUPLICATE_NUMBER


class TestSqlCheckout:
    async def test_place_and_cancel(self, sql_checkout, address):
        placement = (await sql_checkout.place_order(cart(address, ("P", 2)))).unwrap()

        assert placement.order.breakdown.total == Decimal("236.00")
        assert (await sql_checkout.ledger.level("P")).unwrap().available == 3

        (await sql_checkout.cancel_order(placement.order.id, "changed mind", "cust_a")).unwrap()
        again = await sql_checkout.cancel_order(placement.order.id, "changed mind", "cust_a")

        assert (await sql_checkout.ledger.level("P")).unwrap().available == 5
        assert again.error.code is FailureCode.INVALID_TRANSITION
        payment = (await sql_checkout.payments.get(placement.payment.id)).unwrap()
        assert payment.status is Pay.PaymentState.CANCELLED

    async def test_insufficient_stock_leaves_no_trace(self, sql_checkout, address):
        result = await sql_checkout.place_order(cart(address, ("P", 9)))

        assert result.error.code is FailureCode.INSUFFICIENT_STOCK
        assert (await sql_checkout.list_orders()).unwrap() == []
        assert (await sql_checkout.ledger.level("P")).unwrap().available == 5

    async def test_upi_payment_verified(self, sql_checkout, address):
        gateway = Pay.HmacGateway("secret")
        placement = (await sql_checkout.place_order(
            cart(address, ("P", 1), method=Pay.PaymentMethod.UPI)
        )).unwrap()
        intent = placement.payment.gateway.intent_id
        proof = Pay.GatewayProof(intent, "ref_1", gateway.sign(intent, "ref_1"))

        paid = (await sql_checkout.payments.verify(placement.payment.id, proof)).unwrap()
        order = (await sql_checkout.get_order(placement.order.id)).unwrap()

        assert paid.status is Pay.PaymentState.COMPLETED
        assert order.payment.status is O.PaymentStatus.COMPLETED
