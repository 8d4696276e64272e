"""
Catalog snapshot provider.

CatalogProvider — read-only lookup used by checkout.
MemoryCatalog — products in a dict, stock read from a StockLedger.
"""

from __future__ import annotations

from typing import Protocol

from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureCode, not_found
from orderflow.catalog._types import Product, ProductSnapshot
from orderflow.stock import StockLedger


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class CatalogProvider(Protocol):
    """
    Snapshot lookup. No side effects.

    The snapshot price is the only price checkout trusts.
    """

    async def get_snapshot(self, product_id: str) -> Result[ProductSnapshot, Failure]: ...


def product_not_found(product_id: str) -> Failure:
    return not_found(
        FailureCode.PRODUCT_NOT_FOUND,
        f"product {product_id} not found",
        product_id=product_id,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalog:
    """
    In-memory catalog.

    Note: stock counts are never copied here, every snapshot reads the ledger.
    """

    def __init__(self, ledger: StockLedger) -> None:
        self._products: dict[str, Product] = {}
        self._ledger = ledger

    async def add(self, product: Product, stock: int = 0) -> Result[Product, Failure]:
        """Register product and open its ledger entry."""
        self._products[product.id] = product
        return (await self._ledger.open(product.id, stock)).map(lambda _: product)

    async def update(self, product: Product) -> Result[Product, Failure]:
        """Replace catalog data (price change etc.). Existing orders keep their price."""
        if product.id not in self._products:
            return Error(product_not_found(product.id))
        self._products[product.id] = product
        return Ok(product)

    async def get_product(self, product_id: str) -> Result[Product, Failure]:
        if (product := self._products.get(product_id)) is None:
            return Error(product_not_found(product_id))
        return Ok(product)

    async def get_snapshot(self, product_id: str) -> Result[ProductSnapshot, Failure]:
        product = self._products.get(product_id)
        if product is None or not product.active:
            return Error(product_not_found(product_id))

        match await self._ledger.level(product_id):
            case Ok(level):
                return Ok(ProductSnapshot(
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    cost_price=product.cost_price,
                    available=level.available,
                ))
            case Error(e):
                return Error(e)


__all__ = ("CatalogProvider", "MemoryCatalog", "product_not_found")
