"""
Stock ledger — sole mutator of stock counters.

StockLedger — protocol every backend implements.
MemoryStockLedger — in-process backend, one asyncio.Lock per product.

All operations return Result. A debit that would drive `available` below
zero is rejected with InsufficientStock, never clamped.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, invalid, not_found, rejected
from orderflow._types import Clock, utcnow
from orderflow.stock._types import (
    Direction,
    Movement,
    MovementType,
    ReorderSettings,
    StockLevel,
    variance_direction,
)

logger = logging.getLogger(__name__)

WRITE_OFF_REFERENCE = "write-off"


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class StockLedger(Protocol):
    """
    Stock ledger protocol.

    Backends must make debit/reserve a single atomic check-and-decrement
    per product. Operations on different products must not serialize.
    """

    async def open(
        self,
        product_id: str,
        available: int = 0,
        reorder: ReorderSettings | None = None,
    ) -> Result[StockLevel, Failure]:
        """Start tracking a product. Idempotent: returns the existing level."""
        ...

    async def level(self, product_id: str) -> Result[StockLevel, Failure]: ...

    async def debit(
        self,
        product_id: str,
        quantity: int,
        reference: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        """Atomically take `quantity` from available. Appends OUTBOUND."""
        ...

    async def credit(
        self,
        product_id: str,
        quantity: int,
        reference: str,
        reason: str,
        actor: str | None = None,
        movement_type: MovementType = MovementType.RETURN,
    ) -> Result[Movement, Failure]:
        """Put `quantity` back. Appends RETURN (or INBOUND for receipts)."""
        ...

    async def adjust(
        self,
        product_id: str,
        new_available: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        """Set available to `new_available`, logging the signed variance."""
        ...

    async def physical_count(
        self,
        product_id: str,
        counted: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        """Reconcile to a counted quantity. Appends PHYSICAL_COUNT."""
        ...

    async def transfer(
        self,
        product_id: str,
        quantity: int,
        to_location: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        """Move units out of this location. Appends TRANSFER."""
        ...

    async def write_off(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        """available -> defective. Appends ADJUSTMENT."""
        ...

    async def reserve(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        """available -> reserved, atomically."""
        ...

    async def release(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        """reserved -> available. Never releases more than reserved."""
        ...

    async def movements(
        self, product_id: str
    ) -> Result[tuple[Movement, ...], Failure]: ...

    async def low_stock(self) -> Result[list[StockLevel], Failure]:
        """Levels at or below their minimum level."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Shared checks
# ═══════════════════════════════════════════════════════════════════════════════


def check_quantity(quantity: int, *, allow_zero: bool = False) -> Result[int, Failure]:
    floor = 0 if allow_zero else 1
    if quantity < floor:
        return Error(invalid(f"quantity must be >= {floor}", quantity=quantity))
    return Ok(quantity)


def unknown_product(product_id: str) -> Failure:
    return not_found(
        FailureCode.PRODUCT_NOT_FOUND,
        f"no stock record for product {product_id}",
        product_id=product_id,
    )


def insufficient(product_id: str, requested: int, available: int) -> Failure:
    return rejected(
        FailureCode.INSUFFICIENT_STOCK,
        f"insufficient stock for {product_id}: requested {requested}, available {available}",
        product_id=product_id,
        requested=requested,
        available=available,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Ledger
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStockLedger:
    """
    In-memory ledger for tests and single-process deployments.

    Note: one lock per product, so checkouts on different products
    never wait on each other.
    """

    def __init__(self, clock: Clock = utcnow) -> None:
        self._levels: dict[str, StockLevel] = {}
        self._log: dict[str, list[Movement]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._clock = clock

    async def open(
        self,
        product_id: str,
        available: int = 0,
        reorder: ReorderSettings | None = None,
    ) -> Result[StockLevel, Failure]:
        if available < 0:
            return Error(invalid("available must be >= 0", available=available))
        async with self._locks[product_id]:
            if existing := self._levels.get(product_id):
                return Ok(existing)
            level = StockLevel(product_id, available, reorder=reorder or ReorderSettings())
            self._levels[product_id] = level
            return Ok(level)

    async def level(self, product_id: str) -> Result[StockLevel, Failure]:
        if (level := self._levels.get(product_id)) is None:
            return Error(unknown_product(product_id))
        return Ok(level)

    async def debit(
        self,
        product_id: str,
        quantity: int,
        reference: str,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    if level.available < quantity:
                        return Error(insufficient(product_id, quantity, level.available))
                    self._set(level, available=level.available - quantity)
                    return Ok(self._append(
                        product_id, MovementType.OUTBOUND, quantity, Direction.DOWN,
                        reference, reason, actor,
                    ))

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
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    self._set(level, available=level.available + quantity)
                    return Ok(self._append(
                        product_id, movement_type, quantity, Direction.UP,
                        reference, reason, actor,
                    ))

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
        if isinstance(checked := check_quantity(quantity), Error):
            return checked
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    if level.available < quantity:
                        return Error(insufficient(product_id, quantity, level.available))
                    self._set(level, available=level.available - quantity)
                    return Ok(self._append(
                        product_id, MovementType.TRANSFER, quantity, Direction.DOWN,
                        f"transfer:{to_location}", reason, actor, location=to_location,
                    ))

    async def write_off(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        actor: str | None = None,
    ) -> Result[Movement, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    if level.available < quantity:
                        return Error(insufficient(product_id, quantity, level.available))
                    self._set(
                        level,
                        available=level.available - quantity,
                        defective=level.defective + quantity,
                    )
                    return Ok(self._append(
                        product_id, MovementType.ADJUSTMENT, quantity, Direction.DOWN,
                        WRITE_OFF_REFERENCE, reason, actor,
                    ))

    async def reserve(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    if level.available < quantity:
                        return Error(insufficient(product_id, quantity, level.available))
                    logger.debug("reserve %s x%d (%s)", product_id, quantity, reference)
                    return Ok(self._set(
                        level,
                        available=level.available - quantity,
                        reserved=level.reserved + quantity,
                    ))

    async def release(
        self, product_id: str, quantity: int, reference: str
    ) -> Result[StockLevel, Failure]:
        if isinstance(checked := check_quantity(quantity), Error):
            return checked
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    if level.reserved < quantity:
                        return Error(invalid(
                            f"cannot release {quantity}, only {level.reserved} reserved",
                            product_id=product_id,
                        ))
                    logger.debug("release %s x%d (%s)", product_id, quantity, reference)
                    return Ok(self._set(
                        level,
                        available=level.available + quantity,
                        reserved=level.reserved - quantity,
                    ))

    async def movements(self, product_id: str) -> Result[tuple[Movement, ...], Failure]:
        if product_id not in self._levels:
            return Error(unknown_product(product_id))
        return Ok(tuple(self._log[product_id]))

    async def low_stock(self) -> Result[list[StockLevel], Failure]:
        return Ok([level for level in self._levels.values() if level.is_low_stock])

    # ───────────────────────────────────────────────────────────────────────────

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
        async with self._locks[product_id]:
            match await self.level(product_id):
                case Error(e):
                    return Error(e)
                case Ok(level):
                    variance = target - level.available
                    self._set(level, available=target)
                    return Ok(self._append(
                        product_id, movement_type, abs(variance), variance_direction(variance),
                        reference, reason, actor,
                    ))

    def _set(self, level: StockLevel, **counters: int) -> StockLevel:
        updated = StockLevel(
            product_id=level.product_id,
            available=counters.get("available", level.available),
            reserved=counters.get("reserved", level.reserved),
            defective=counters.get("defective", level.defective),
            reorder=level.reorder,
        )
        self._levels[level.product_id] = updated
        return updated

    def _append(
        self,
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
        self._log[product_id].append(movement)
        logger.debug(
            "%s %s %+d (%s)", movement_type.value, product_id, movement.signed_quantity, reference
        )
        return movement


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StockLedger",
    "MemoryStockLedger",
    "WRITE_OFF_REFERENCE",
    "check_quantity",
    "unknown_product",
    "insufficient",
)
