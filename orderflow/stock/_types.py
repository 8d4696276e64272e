"""
Stock types — levels, movements, reorder thresholds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


# ═══════════════════════════════════════════════════════════════════════════════
# Movement — append-only log entry
# ═══════════════════════════════════════════════════════════════════════════════


class MovementType(Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    ADJUSTMENT = "adjustment"
    RETURN = "return"
    TRANSFER = "transfer"
    PHYSICAL_COUNT = "physical_count"


class Direction(Enum):
    """Sign of a movement relative to `available`."""

    UP = 1
    DOWN = -1
    NONE = 0  # Physical count that matched the books


@dataclass(frozen=True, slots=True)
class Movement:
    """
    One stock change.

    quantity is always >= 0; direction carries the sign.
    reference links the movement to its cause (order number, count id...).
    """

    product_id: str
    type: MovementType
    quantity: int
    direction: Direction
    reference: str
    reason: str
    at: datetime
    actor: str | None = None
    location: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError("movement quantity must be >= 0")

    @property
    def signed_quantity(self) -> int:
        return self.quantity * self.direction.value


def variance_direction(variance: int) -> Direction:
    if variance > 0:
        return Direction.UP
    if variance < 0:
        return Direction.DOWN
    return Direction.NONE


# ═══════════════════════════════════════════════════════════════════════════════
# Stock Level — current counters per product
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ReorderSettings:
    minimum_level: int = 10
    reorder_point: int = 20
    reorder_quantity: int = 50


@dataclass(frozen=True, slots=True)
class StockLevel:
    """
    Counters for one product.

    Invariant: every counter >= 0. Written-off units sit in defective
    and still count towards total.
    """

    product_id: str
    available: int
    reserved: int = 0
    defective: int = 0
    reorder: ReorderSettings = ReorderSettings()

    def __post_init__(self) -> None:
        if self.available < 0 or self.reserved < 0 or self.defective < 0:
            raise ValueError(f"negative stock counter for {self.product_id}")

    @property
    def total(self) -> int:
        return self.available + self.reserved + self.defective

    @property
    def is_low_stock(self) -> bool:
        return self.available <= self.reorder.minimum_level

    @property
    def needs_reorder(self) -> bool:
        return self.available <= self.reorder.reorder_point


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "MovementType",
    "Direction",
    "Movement",
    "variance_direction",
    "ReorderSettings",
    "StockLevel",
)
