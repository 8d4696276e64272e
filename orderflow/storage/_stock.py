"""
SQL stock ledger.

Every decrement is one conditional UPDATE (`... WHERE available >= :q`);
zero affected rows means the stock was not there. The movement row is
written in the same transaction.
"""

from __future__ import annotations

import logging

from kungfu import Result, Ok, Error
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow._errors import Failure, conflict, invalid
from orderflow._types import Clock, utcnow
from orderflow.stock._ledger import WRITE_OFF_REFERENCE, check_quantity, insufficient, unknown_product
from orderflow.stock._types import (
    Direction,
    Movement,
    MovementType,
    ReorderSettings,
    StockLevel,
    variance_direction,
)
from orderflow.storage._schema import MovementRow, Sessions, StockLevelRow, guarded, rowcount

logger = logging.getLogger(__name__)


def to_level(row: StockLevelRow) -> StockLevel:
    return StockLevel(
        product_id=row.product_id,
        available=row.available,
        reserved=row.reserved,
        defective=row.defective,
        reorder=ReorderSettings(row.minimum_level, row.reorder_point, row.reorder_quantity),
    )


def to_movement(row: MovementRow) -> Movement:
    return Movement(
        product_id=row.product_id,
        type=MovementType(row.type),
        quantity=row.quantity,
        direction=Direction(row.direction),
        reference=row.reference,
        reason=row.reason,
        at=row.at,
        actor=row.actor,
        location=row.location,
    )


class SqlStockLedger:
    def __init__(self, sessions: Sessions, clock: Clock = utcnow) -> None:
        self._sessions = sessions
        self._clock = clock

    async def open(
        self,
        product_id: str,
        available: int = 0,
        reorder: ReorderSettings | None = None,
    ) -> Result[StockLevel, Failure]:
        if available < 0:
            return Error(invalid("available must be >= 0", available=available))
        settings = reorder or ReorderSettings()

        async def op() -> Result[StockLevel, Failure]:
            async with self._sessions() as session, session.begin():
                if (row := await session.get(StockLevelRow, product_id)) is None:
                    row = StockLevelRow(
                        product_id=product_id,
                        available=available,
                        reserved=0,
                        defective=0,
                        minimum_level=settings.minimum_level,
                        reorder_point=settings.reorder_point,
                        reorder_quantity=settings.reorder_quantity,
                    )
                    session.add(row)
                return Ok(to_level(row))

        return await guarded(op, f"open {product_id}")

    async def level(self, product_id: str) -> Result[StockLevel, Failure]:
        async def op() -> Result[StockLevel, Failure]:
            async with self._sessions() as session:
                if (row := await session.get(StockLevelRow, product_id)) is None:
                    return Error(unknown_product(product_id))
                return Ok(to_level(row))

        return await guarded(op, f"level {product_id}")

    async def debit(
        self,
        product_id: str,
        quantity: int,
        reference: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        return await self._take(
            product_id, quantity, MovementType.OUTBOUND, reference, reason, actor
        )

    async def credit(
        self,
        product_id: str,
        quantity: int,
        reference: str,
        reason: str,
        actor: str | None = None,
        movement_type: MovementType = MovementType.RETURN,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked

        async def op() -> Result[Movement, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id)
                    .values(available=StockLevelRow.available + quantity)
                )
                if await rowcount(session, stmt) == 0:
                    return Error(unknown_product(product_id))
                return Ok(self._append(
                    session, product_id, movement_type, quantity, Direction.UP,
                    reference, reason, actor,
                ))

        return await guarded(op, f"credit {product_id}")

    async def adjust(
        self,
        product_id: str,
        new_available: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        return await self._reconcile(
            product_id, new_available, MovementType.ADJUSTMENT, "adjustment", reason, actor
        )

    async def physical_count(
        self,
        product_id: str,
        counted: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        return await self._reconcile(
            product_id, counted, MovementType.PHYSICAL_COUNT, "physical-count", reason, actor
        )

    async def transfer(
        self,
        product_id: str,
        quantity: int,
        to_location: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        return await self._take(
            product_id, quantity, MovementType.TRANSFER, f"transfer:{to_location}",
            reason, actor, location=to_location,
        )

    async def write_off(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked

        async def op() -> Result[Movement, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id, StockLevelRow.available >= quantity)
                    .values(
                        available=StockLevelRow.available - quantity,
                        defective=StockLevelRow.defective + quantity,
                    )
                )
                if await rowcount(session, stmt) == 0:
                    if (row := await session.get(StockLevelRow, product_id)) is None:
                        return Error(unknown_product(product_id))
                    return Error(insufficient(product_id, quantity, row.available))
                return Ok(self._append(
                    session, product_id, MovementType.ADJUSTMENT, quantity, Direction.DOWN,
                    WRITE_OFF_REFERENCE, reason, actor,
                ))

        return await guarded(op, f"write off {product_id}")

    async def reserve(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked

        async def op() -> Result[StockLevel, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id, StockLevelRow.available >= quantity)
                    .values(
                        available=StockLevelRow.available - quantity,
                        reserved=StockLevelRow.reserved + quantity,
                    )
                )
                moved = await rowcount(session, stmt)
                row = await session.get(StockLevelRow, product_id, populate_existing=True)
                if row is None:
                    return Error(unknown_product(product_id))
                if moved == 0:
                    return Error(insufficient(product_id, quantity, row.available))
                logger.debug("reserve %s x%d (%s)", product_id, quantity, reference)
                return Ok(to_level(row))

        return await guarded(op, f"reserve {product_id}")

    async def release(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked

        async def op() -> Result[StockLevel, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id, StockLevelRow.reserved >= quantity)
                    .values(
                        available=StockLevelRow.available + quantity,
                        reserved=StockLevelRow.reserved - quantity,
                    )
                )
                moved = await rowcount(session, stmt)
                row = await session.get(StockLevelRow, product_id, populate_existing=True)
                if row is None:
                    return Error(unknown_product(product_id))
                if moved == 0:
                    return Error(invalid(
                        f"cannot release {quantity}, only {row.reserved} reserved",
                        product_id=product_id,
                    ))
                logger.debug("release %s x%d (%s)", product_id, quantity, reference)
                return Ok(to_level(row))

        return await guarded(op, f"release {product_id}")

    async def movements(self, product_id: str) -> Result[tuple[Movement, ...], Failure]:
        async def op() -> Result[tuple[Movement, ...], Failure]:
            async with self._sessions() as session:
                if await session.get(StockLevelRow, product_id) is None:
                    return Error(unknown_product(product_id))
                rows = await session.scalars(
                    select(MovementRow)
                    .where(MovementRow.product_id == product_id)
                    .order_by(MovementRow.id)
                )
                return Ok(tuple(to_movement(row) for row in rows))

        return await guarded(op, f"movements {product_id}")

    async def low_stock(self) -> Result[list[StockLevel], Failure]:
        async def op() -> Result[list[StockLevel], Failure]:
            async with self._sessions() as session:
                rows = await session.scalars(
                    select(StockLevelRow).where(StockLevelRow.available <= StockLevelRow.minimum_level)
                )
                return Ok([to_level(row) for row in rows])

        return await guarded(op, "low stock")

    # ───────────────────────────────────────────────────────────────────────────

    async def _take(
        self,
        product_id: str,
        quantity: int,
        movement_type: MovementType,
        reference: str,
        reason: str,
        actor: str | None,
        location: str | None = None,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked

        async def op() -> Result[Movement, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id, StockLevelRow.available >= quantity)
                    .values(available=StockLevelRow.available - quantity)
                )
                if await rowcount(session, stmt) == 0:
                    if (row := await session.get(StockLevelRow, product_id)) is None:
                        return Error(unknown_product(product_id))
                    return Error(insufficient(product_id, quantity, row.available))
                return Ok(self._append(
                    session, product_id, movement_type, quantity, Direction.DOWN,
                    reference, reason, actor, location,
                ))

        return await guarded(op, f"{movement_type.value} {product_id}")

    async def _reconcile(
        self,
        product_id: str,
        target: int,
        movement_type: MovementType,
        reference: str,
        reason: str,
        actor: str | None,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(target, allow_zero=True), Error):
            return checked

        async def op() -> Result[Movement, Failure]:
            async with self._sessions() as session, session.begin():
                if (row := await session.get(StockLevelRow, product_id)) is None:
                    return Error(unknown_product(product_id))
                seen = row.available
                stmt = (
                    update(StockLevelRow)
                    .where(StockLevelRow.product_id == product_id, StockLevelRow.available == seen)
                    .values(available=target)
                )
                if await rowcount(session, stmt) == 0:
                    return Error(conflict(
                        f"stock for {product_id} changed during {movement_type.value}",
                        product_id=product_id,
                    ))
                variance = target - seen
                return Ok(self._append(
                    session, product_id, movement_type, abs(variance), variance_direction(variance),
                    reference, reason, actor,
                ))

        return await guarded(op, f"{movement_type.value} {product_id}")

    def _append(
        self,
        session: AsyncSession,
        product_id: str,
        movement_type: MovementType,
        quantity: int,
        direction: Direction,
        reference: str,
        reason: str,
        actor: str | None,
        location: str | None = None,
    ) -> Movement:
        movement = Movement(
            product_id=product_id,
            type=movement_type,
            quantity=quantity,
            direction=direction,
            reference=reference,
            reason=reason,
            at=self._clock(),
            actor=actor,
            location=location,
        )
        session.add(MovementRow(
            product_id=product_id,
            type=movement_type.value,
            quantity=quantity,
            direction=direction.value,
            reference=reference,
            reason=reason,
            at=movement.at,
            actor=actor,
            location=location,
        ))
        logger.debug(
            "%s %s %+d (%s)", movement_type.value, product_id, movement.signed_quantity, reference
        )
        return movement


__all__ = ("SqlStockLedger", "to_level", "to_movement")
