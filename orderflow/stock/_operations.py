"""
Manual stock operations — receipts, write-offs, corrections.
"""

from __future__ import annotations

from kungfu import Result

from orderflow._errors import Failure
from orderflow.stock._ledger import StockLedger
from orderflow.stock._types import Movement, MovementType

MANUAL_REFERENCE = "manual"


async def add_stock(
    ledger: StockLedger,
    product_id: str,
    quantity: int,
    reason: str,
    actor: str | None = None,
) -> Result[Movement, Failure]:
    return await ledger.credit(
        product_id, quantity, MANUAL_REFERENCE, reason, actor,
        movement_type=MovementType.INBOUND,
    )


async def remove_stock(
    ledger: StockLedger,
    product_id: str,
    quantity: int,
    reason: str,
    actor: str | None = None,
) -> Result[Movement, Failure]:
    """InsufficientStock rather than going below zero."""
    return await ledger.debit(product_id, quantity, MANUAL_REFERENCE, reason, actor)


async def adjust_stock(
    ledger: StockLedger,
    product_id: str,
    quantity: int,
    reason: str,
    actor: str | None = None,
) -> Result[Movement, Failure]:
    """Set available to `quantity`."""
    return await ledger.adjust(product_id, quantity, reason, actor)


__all__ = ("MANUAL_REFERENCE", "add_stock", "remove_stock", "adjust_stock")
