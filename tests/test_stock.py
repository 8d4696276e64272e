import asyncio

import pytest_asyncio
from kungfu import Error, Ok

from orderflow import stock as St
from orderflow._errors import FailureCode, FailureKind

from support import FixedClock


@pytest_asyncio.fixture
async def ledger(clock: FixedClock) -> St.MemoryStockLedger:
    ledger = St.MemoryStockLedger(clock)
    await ledger.open("p1", available=5, reorder=St.ReorderSettings(minimum_level=2, reorder_point=4))
    return ledger


async def available(ledger: St.StockLedger, pid: str = "p1") -> int:
    return (await ledger.level(pid)).unwrap().available


class TestDebitCredit:
    async def test_debit_appends_outbound(self, ledger):
        movement = (await ledger.debit("p1", 2, "ORD-1", "checkout", "cust_a")).unwrap()

        assert movement.type is St.MovementType.OUTBOUND
        assert movement.signed_quantity == -2
        assert movement.reference == "ORD-1"
        assert await available(ledger) == 3

    async def test_debit_beyond_available_rejected(self, ledger):
        result = await ledger.debit("p1", 6, "ORD-1", "checkout")

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.INSUFFICIENT_STOCK
        assert result.error.detail == {"product_id": "p1", "requested": 6, "available": 5}
        assert await available(ledger) == 5

    async def test_zero_quantity_rejected(self, ledger):
        result = await ledger.debit("p1", 0, "ORD-1", "checkout")

        assert isinstance(result, Error)
        assert result.error.kind is FailureKind.VALIDATION

    async def test_unknown_product(self, ledger):
        result = await ledger.debit("nope", 1, "ORD-1", "checkout")

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.PRODUCT_NOT_FOUND

    async def test_credit_appends_return(self, ledger):
        await ledger.debit("p1", 2, "ORD-1", "checkout")

        movement = (await ledger.credit("p1", 2, "ORD-1", "cancelled")).unwrap()

        assert movement.type is St.MovementType.RETURN
        assert movement.signed_quantity == 2
        assert await available(ledger) == 5

    async def test_concurrent_debits_never_oversell(self, ledger):
        results = await asyncio.gather(*(
            ledger.debit("p1", 1, f"ORD-{i}", "checkout") for i in range(8)
        ))

        assert sum(isinstance(r, Ok) for r in results) == 5
        assert await available(ledger) == 0

    async def test_open_is_idempotent(self, ledger):
        again = (await ledger.open("p1", available=100)).unwrap()

        assert again.available == 5


class TestOperations:
    async def test_add_stock_is_inbound(self, ledger):
        movement = (await St.add_stock(ledger, "p1", 10, "restock", "warehouse")).unwrap()

        assert movement.type is St.MovementType.INBOUND
        assert movement.reference == St.MANUAL_REFERENCE
        assert await available(ledger) == 15

    async def test_remove_stock(self, ledger):
        (await St.remove_stock(ledger, "p1", 3, "damaged")).unwrap()

        assert await available(ledger) == 2

    async def test_remove_more_than_available(self, ledger):
        result = await St.remove_stock(ledger, "p1", 9, "damaged")

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.INSUFFICIENT_STOCK

    async def test_adjust_sets_absolute_value(self, ledger):
        movement = (await St.adjust_stock(ledger, "p1", 2, "recount")).unwrap()

        assert movement.type is St.MovementType.ADJUSTMENT
        assert movement.direction is St.Direction.DOWN
        assert movement.quantity == 3
        assert await available(ledger) == 2

    async def test_adjust_rejects_negative(self, ledger):
        result = await St.adjust_stock(ledger, "p1", -1, "recount")

        assert isinstance(result, Error)
        assert await available(ledger) == 5

    async def test_physical_count_records_variance(self, ledger):
        surplus = (await ledger.physical_count("p1", 7, "cycle count", "auditor")).unwrap()
        matched = (await ledger.physical_count("p1", 7, "cycle count", "auditor")).unwrap()

        assert surplus.type is St.MovementType.PHYSICAL_COUNT
        assert surplus.signed_quantity == 2
        assert matched.direction is St.Direction.NONE
        assert matched.quantity == 0

    async def test_transfer_moves_units_out(self, ledger):
        movement = (await ledger.transfer("p1", 2, "store-2", "rebalance")).unwrap()

        assert movement.type is St.MovementType.TRANSFER
        assert movement.location == "store-2"
        assert await available(ledger) == 3


    async def test_write_off_moves_units_to_defective(self, ledger):
        movement = (await ledger.write_off("p1", 2, "crushed in transit", "ops")).unwrap()
        level = (await ledger.level("p1")).unwrap()

        assert movement.type is St.MovementType.ADJUSTMENT
        assert movement.signed_quantity == -2
        assert movement.reference == St.WRITE_OFF_REFERENCE
        assert (level.available, level.defective, level.total) == (3, 2, 5)

    async def test_write_off_beyond_available(self, ledger):
        result = await ledger.write_off("p1", 9, "flood")

        assert result.error.code is FailureCode.INSUFFICIENT_STOCK
        assert (await ledger.level("p1")).unwrap().defective == 0


class TestReservations:
    async def test_reserve_and_release(self, ledger):
        reserved = (await ledger.reserve("p1", 3, "cart-1")).unwrap()

        assert reserved.available == 2
        assert reserved.reserved == 3
        assert reserved.total == 5

        released = (await ledger.release("p1", 2, "cart-1")).unwrap()

        assert released.available == 4
        assert released.reserved == 1

    async def test_cannot_release_more_than_reserved(self, ledger):
        await ledger.reserve("p1", 1, "cart-1")

        result = await ledger.release("p1", 2, "cart-1")

        assert isinstance(result, Error)
        assert (await ledger.level("p1")).unwrap().reserved == 1

    async def test_reserve_beyond_available(self, ledger):
        result = await ledger.reserve("p1", 6, "cart-1")

        assert isinstance(result, Error)
        assert result.error.code is FailureCode.INSUFFICIENT_STOCK


class TestReporting:
    async def test_movement_log_in_order(self, ledger):
        await ledger.debit("p1", 1, "ORD-1", "checkout")
        await ledger.credit("p1", 1, "ORD-1", "cancelled")

        movements = (await ledger.movements("p1")).unwrap()

        assert [m.type for m in movements] == [St.MovementType.OUTBOUND, St.MovementType.RETURN]
        assert sum(m.signed_quantity for m in movements) == 0

    async def test_low_stock(self, ledger):
        await ledger.open("p2", available=50)
        assert (await ledger.low_stock()).unwrap() == []

        await ledger.debit("p1", 3, "ORD-1", "checkout")
        low = (await ledger.low_stock()).unwrap()

        assert [level.product_id for level in low] == ["p1"]
        assert low[0].needs_reorder
