"""
Compensated steps — one logical unit over several writes.

Each step is an action plus the write that undoes it. When a later step
fails, recorded compensators run in reverse.

    saga = Saga("checkout ORD-1")
    for line in lines:
        result = await saga.run(step(debit(line), compensate=credit_back))
        if isinstance(result, Error):
            await saga.abort(result.error)
            return result
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from kungfu import Result, Ok, Error, LazyCoroResult

from orderflow._errors import Failure

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[Result[Any, Failure]]]
"""Undo action; receives the value the step produced."""

type RecordedCompensator = tuple[Any, Compensator[Any], str]


@dataclass(frozen=True, slots=True)
class SagaStep[T]:
    """Action + compensator. The compensator is recorded only on success."""

    action: LazyCoroResult[T, Failure]
    compensate: Compensator[T] | None
    label: str


@dataclass(frozen=True, slots=True)
class SagaError:
    """Failure plus rollback outcome."""

    error: Failure
    step_failed: int
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


def step[T](
    action: LazyCoroResult[T, Failure],
    compensate: Compensator[T] | None = None,
    label: str = "step",
) -> SagaStep[T]:
    return SagaStep(action=action, compensate=compensate, label=label)


# ═══════════════════════════════════════════════════════════════════════════════
# Saga — running unit
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class Saga:
    name: str
    _compensators: list[RecordedCompensator] = field(default_factory=list)
    _steps: int = 0

    async def run[T](self, saga_step: SagaStep[T]) -> Result[T, Failure]:
        """Execute one step, recording its compensator on success."""
        self._steps += 1
        result = await saga_step.action
        match result:
            case Ok(value):
                if saga_step.compensate is not None:
                    self._compensators.append((value, saga_step.compensate, saga_step.label))
                return Ok(value)
            case Error(e):
                return Error(e)

    async def abort(self, error: Failure) -> SagaError:
        """Run compensators in reverse. Every compensator runs even if one fails."""
        comp_run = 0
        comp_failed = 0

        for value, compensate, label in reversed(self._compensators):
            try:
                outcome = await compensate(value)
            except Exception:
                logger.exception("%s: compensator %s raised", self.name, label)
                comp_failed += 1
                continue
            if isinstance(outcome, Error):
                logger.error("%s: compensator %s failed: %s", self.name, label, outcome.error)
                comp_failed += 1
            else:
                comp_run += 1

        self._compensators.clear()
        saga_error = SagaError(
            error=error,
            step_failed=self._steps,
            compensators_run=comp_run,
            compensators_failed=comp_failed,
        )
        if saga_error.rollback_complete:
            logger.info("%s rolled back (%d compensators): %s", self.name, comp_run, error)
        else:
            logger.error(
                "%s rollback incomplete: %d ok, %d failed, cause %s",
                self.name, comp_run, comp_failed, error,
            )
        return saga_error


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("Compensator", "SagaStep", "SagaError", "step", "Saga")
