"""
Catalog types — what checkout is allowed to know about a product.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from orderflow._types import Money, ZERO, round2


@dataclass(frozen=True, slots=True)
class Product:
    """
    Catalog entry. margin_percentage is derived, never stored separately.
    """

    id: str
    name: str
    price: Money
    cost_price: Money = ZERO
    sku: str | None = None
    active: bool = True

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")
        if self.cost_price < 0:
            raise ValueError(f"cost_price must be >= 0, got {self.cost_price}")

    @property
    def margin_percentage(self) -> Decimal:
        if self.price == 0:
            return ZERO
        return round2((self.price - self.cost_price) / self.price * 100)


@dataclass(frozen=True, slots=True)
class ProductSnapshot:
    """
    Read-only view at lookup time: latest price and available stock.
    """

    product_id: str
    name: str
    price: Money
    cost_price: Money
    available: int


__all__ = ("Product", "ProductSnapshot")
