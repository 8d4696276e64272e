"""
SQL discount store.

Usage counters live in the discount document; record_usage is a
read-check-write guarded by the row version, retried when it loses.
"""

from __future__ import annotations

from datetime import datetime

from kungfu import Result, Ok, Error
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from orderflow._errors import Failure, FailureCode, conflict, not_found
from orderflow._retry import on_conflict
from orderflow._types import Money
from orderflow.discount._store import check_limits, code_not_found, with_usage
from orderflow.discount._types import Discount, normalize_code
from orderflow.storage._codec import Codec
from orderflow.storage._schema import DiscountRow, Sessions, guarded, rowcount

DISCOUNTS = Codec(Discount)


class SqlDiscountStore:
    def __init__(self, sessions: Sessions, conflict_retries: int = 5) -> None:
        self._sessions = sessions
        self._conflict_retries = conflict_retries

    async def add(self, discount: Discount) -> Result[Discount, Failure]:
        async def op() -> Result[Discount, Failure]:
            try:
                async with self._sessions() as session, session.begin():
                    session.add(DiscountRow(
                        id=discount.id,
                        code=discount.code,
                        version=0,
                        document=DISCOUNTS.dump(discount),
                    ))
            except IntegrityError:
                return Error(conflict(
                    f"discount code {discount.code} already exists",
                    discount_code=discount.code,
                ))
            return Ok(discount)

        return await guarded(op, f"add discount {discount.code}")

    async def get(self, discount_id: str) -> Result[Discount, Failure]:
        return (await self._get(discount_id)).map(lambda pair: pair[0])

    async def get_by_code(self, code: str) -> Result[Discount, Failure]:
        normalized = normalize_code(code)

        async def op() -> Result[Discount, Failure]:
            async with self._sessions() as session:
                row = await session.scalar(select(DiscountRow).where(DiscountRow.code == normalized))
                if row is None:
                    return Error(code_not_found(normalized))
                return Ok(DISCOUNTS.load(row.document))

        return await guarded(op, f"get discount {normalized}")

    async def record_usage(
        self,
        discount_id: str,
        customer_id: str,
        amount: Money,
        at: datetime,
    ) -> Result[Discount, Failure]:
        return await on_conflict(
            lambda: self._record_once(discount_id, customer_id, amount, at),
            times=self._conflict_retries,
            label=f"discount usage {discount_id}",
        )

    async def _record_once(
        self,
        discount_id: str,
        customer_id: str,
        amount: Money,
        at: datetime,
    ) -> Result[Discount, Failure]:
        found = await self._get(discount_id)
        if isinstance(found, Error):
            return found
        current, version = found.unwrap()

        if isinstance(checked := check_limits(current, customer_id), Error):
            return checked
        updated = with_usage(current, customer_id, amount, at)

        async def op() -> Result[Discount, Failure]:
            async with self._sessions() as session, session.begin():
                stmt = (
                    update(DiscountRow)
                    .where(DiscountRow.id == discount_id, DiscountRow.version == version)
                    .values(version=version + 1, document=DISCOUNTS.dump(updated))
                )
                if await rowcount(session, stmt) == 0:
                    return Error(conflict(
                        f"discount {current.code} used concurrently",
                        discount_id=discount_id,
                    ))
            return Ok(updated)

        return await guarded(op, f"record usage {discount_id}")

    async def _get(self, discount_id: str) -> Result[tuple[Discount, int], Failure]:
        async def op() -> Result[tuple[Discount, int], Failure]:
            async with self._sessions() as session:
                if (row := await session.get(DiscountRow, discount_id)) is None:
                    return Error(not_found(
                        FailureCode.CODE_NOT_FOUND,
                        f"discount {discount_id} not found",
                        discount_id=discount_id,
                    ))
                return Ok((DISCOUNTS.load(row.document), row.version))

        return await guarded(op, f"get discount {discount_id}")


__all__ = ("SqlDiscountStore", "DISCOUNTS")
