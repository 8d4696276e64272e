"""
Storage — SQLAlchemy (async) backends for every store protocol.

    from orderflow import storage as S

    sessions, engine = await S.create_database("sqlite+aiosqlite:///orders.db")
    ledger = S.SqlStockLedger(sessions)
    catalog = S.SqlCatalog(sessions, ledger)
    orders = S.SqlOrderStore(sessions)
"""

from orderflow.storage._schema import (
    Base,
    MoneyText,
    UtcDateTime,
    Sessions,
    create_database,
    guarded,
    rowcount,
)
from orderflow.storage._codec import Codec
from orderflow.storage._stock import SqlStockLedger
from orderflow.storage._catalog import SqlCatalog
from orderflow.storage._discount import SqlDiscountStore
from orderflow.storage._orders import SqlOrderSequence, SqlOrderStore, SqlPaymentStore

__all__ = (
    "Base",
    "MoneyText",
    "UtcDateTime",
    "Sessions",
    "create_database",
    "guarded",
    "rowcount",
    "Codec",
    "SqlStockLedger",
    "SqlCatalog",
    "SqlDiscountStore",
    "SqlOrderSequence",
    "SqlOrderStore",
    "SqlPaymentStore",
)
