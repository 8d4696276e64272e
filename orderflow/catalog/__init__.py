"""
Catalog — product snapshots for pricing.

    from orderflow import catalog as Cat

    catalog = Cat.MemoryCatalog(ledger)
    await catalog.add(Cat.Product("p1", "Mug", Decimal("100")), stock=5)
    snapshot = (await catalog.get_snapshot("p1")).unwrap()
"""

from orderflow.catalog._types import Product, ProductSnapshot
from orderflow.catalog._provider import CatalogProvider, MemoryCatalog, product_not_found

__all__ = (
    "Product",
    "ProductSnapshot",
    "CatalogProvider",
    "MemoryCatalog",
    "product_not_found",
)
