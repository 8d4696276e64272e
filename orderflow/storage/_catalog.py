"""
SQL catalog. Availability always comes from the stock ledger.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

from orderflow._errors import Failure
from orderflow.catalog._provider import product_not_found
from orderflow.catalog._types import Product, ProductSnapshot
from orderflow.stock._ledger import StockLedger
from orderflow.storage._schema import ProductRow, Sessions, guarded


def to_product(row: ProductRow) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=row.price,
        cost_price=row.cost_price,
        sku=row.sku,
        active=row.active,
    )


class SqlCatalog:
    def __init__(self, sessions: Sessions, ledger: StockLedger) -> None:
        self._sessions = sessions
        self._ledger = ledger

    async def add(self, product: Product, stock: int = 0) -> Result[Product, Failure]:
        async def op() -> Result[Product, Failure]:
            async with self._sessions() as session, session.begin():
                await session.merge(ProductRow(
                    id=product.id,
                    name=product.name,
                    price=product.price,
                    cost_price=product.cost_price,
                    sku=product.sku,
                    active=product.active,
                ))
            return Ok(product)

        added = await guarded(op, f"add product {product.id}")
        if isinstance(added, Error):
            return added
        return (await self._ledger.open(product.id, stock)).map(lambda _: product)

    async def update(self, product: Product) -> Result[Product, Failure]:
        async def op() -> Result[Product, Failure]:
            async with self._sessions() as session, session.begin():
                if (row := await session.get(ProductRow, product.id)) is None:
                    return Error(product_not_found(product.id))
                row.name = product.name
                row.price = product.price
                row.cost_price = product.cost_price
                row.sku = product.sku
                row.active = product.active
            return Ok(product)

        return await guarded(op, f"update product {product.id}")

    async def get_product(self, product_id: str) -> Result[Product, Failure]:
        async def op() -> Result[Product, Failure]:
            async with self._sessions() as session:
                if (row := await session.get(ProductRow, product_id)) is None:
                    return Error(product_not_found(product_id))
                return Ok(to_product(row))

        return await guarded(op, f"get product {product_id}")

    async def get_snapshot(self, product_id: str) -> Result[ProductSnapshot, Failure]:
        found = await self.get_product(product_id)
        if isinstance(found, Error):
            return found
        product = found.unwrap()
        if not product.active:
            return Error(product_not_found(product_id))

        return (await self._ledger.level(product_id)).map(
            lambda level: ProductSnapshot(
                product_id=product.id,
                name=product.name,
                price=product.price,
                cost_price=product.cost_price,
                available=level.available,
            )
        )


__all__ = ("SqlCatalog", "to_product")
