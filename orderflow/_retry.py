"""
Bounded retry for operations that lost an optimistic write.

Only CONFLICT failures are retried; each attempt re-runs the whole
read-modify-write, so it sees fresh state.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from combinators import RetryPolicy, retry
from kungfu import Result, Error, LazyCoroResult

from orderflow._errors import Failure, is_conflict

logger = logging.getLogger(__name__)


def on_conflict[T](
    op: Callable[[], Awaitable[Result[T, Failure]]],
    *,
    times: int,
    label: str,
) -> LazyCoroResult[T, Failure]:
    """
    Retry `op` up to `times` attempts while it fails with CONFLICT.

    Example:
        result = await on_conflict(lambda: self._cancel_once(order_id), times=3, label="cancel")
    """

    async def attempt() -> Result[T, Failure]:
        result = await op()
        if isinstance(result, Error) and is_conflict(result.error):
            logger.warning("%s lost a concurrent write: %s", label, result.error)
        return result

    return retry(
        LazyCoroResult(attempt),
        policy=RetryPolicy.fixed(times=times, retry_on=is_conflict),
    )


__all__ = ("on_conflict",)
