"""
Stock — the ledger that owns available, reserved and defective counters.

    from orderflow import stock as St

    ledger = St.MemoryStockLedger()
    await ledger.open("p1", available=5)
    match await ledger.debit("p1", 2, reference="ORD-1", reason="checkout"):
        case Ok(movement): ...
        case Error(failure): ...  # InsufficientStock
"""

from orderflow.stock._types import (
    MovementType,
    Direction,
    Movement,
    ReorderSettings,
    StockLevel,
    variance_direction,
)
from orderflow.stock._ledger import (
    StockLedger,
    MemoryStockLedger,
    WRITE_OFF_REFERENCE,
    check_quantity,
    insufficient,
    unknown_product,
)
from orderflow.stock._operations import (
    MANUAL_REFERENCE,
    add_stock,
    remove_stock,
    adjust_stock,
)

__all__ = (
    "MovementType",
    "Direction",
    "Movement",
    "ReorderSettings",
    "StockLevel",
    "variance_direction",
    "StockLedger",
    "MemoryStockLedger",
    "WRITE_OFF_REFERENCE",
    "check_quantity",
    "insufficient",
    "unknown_product",
    "MANUAL_REFERENCE",
    "add_stock",
    "remove_stock",
    "adjust_stock",
)
