"""
Failure taxonomy.

Every component returns Result[T, Failure]. The kind decides how a caller
reacts (retry, 404, 400...), the code tells which business rule tripped.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

# ═══════════════════════════════════════════════════════════════════════════════
# Kinds & Codes
# ═══════════════════════════════════════════════════════════════════════════════


class FailureKind(Enum):
    """Coarse failure category."""

    NOT_FOUND = auto()  # Never retried
    VALIDATION = auto()  # Rejected before any mutation
    BUSINESS_RULE = auto()  # Domain rule refused the operation
    CONFLICT = auto()  # Lost a race; safe to re-read and retry
    DEPENDENCY = auto()  # Persistence or gateway broke


class FailureCode(Enum):
    """Distinct failure reasons surfaced to callers."""

    # NOT_FOUND
    PRODUCT_NOT_FOUND = "ProductNotFound"
    ORDER_NOT_FOUND = "OrderNotFound"
    PAYMENT_NOT_FOUND = "PaymentNotFound"
    CODE_NOT_FOUND = "CodeNotFound"

    # VALIDATION
    INVALID_INPUT = "InvalidInput"

    # BUSINESS_RULE
    INSUFFICIENT_STOCK = "InsufficientStock"
    EXPIRED = "Expired"
    INACTIVE = "Inactive"
    USAGE_LIMIT_REACHED = "UsageLimitReached"
    BELOW_MINIMUM_CART = "BelowMinimumCart"
    PER_CUSTOMER_LIMIT_REACHED = "PerCustomerLimitReached"
    INVALID_TRANSITION = "InvalidTransition"
    RETRY_LIMIT_EXCEEDED = "RetryLimitExceeded"
    NOT_REFUNDABLE = "NotRefundable"
    INVALID_SIGNATURE = "InvalidSignature"

    # CONFLICT
    VERSION_CONFLICT = "VersionConflict"
    DUPLICATE_NUMBER = "DuplicateNumber"

    # DEPENDENCY
    PERSISTENCE_ERROR = "PersistenceError"
    GATEWAY_ERROR = "GatewayError"


# ═══════════════════════════════════════════════════════════════════════════════
# Failure
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Failure:
    """
    Typed failure returned across component boundaries.

    detail carries machine-readable context (product id, requested qty...).
    cause is set only for DEPENDENCY failures wrapping an exception.
    """

    kind: FailureKind
    code: FailureCode
    message: str
    detail: Mapping[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    @property
    def is_conflict(self) -> bool:
        return self.kind is FailureKind.CONFLICT

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def is_conflict(failure: Failure) -> bool:
    """Retry predicate for combinators.retry."""
    return failure.kind is FailureKind.CONFLICT


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def not_found(code: FailureCode, message: str, /, **detail: Any) -> Failure:
    return Failure(FailureKind.NOT_FOUND, code, message, detail)


def invalid(message: str, /, **detail: Any) -> Failure:
    return Failure(FailureKind.VALIDATION, FailureCode.INVALID_INPUT, message, detail)


def rejected(code: FailureCode, message: str, /, **detail: Any) -> Failure:
    return Failure(FailureKind.BUSINESS_RULE, code, message, detail)


def conflict(message: str, code: FailureCode = FailureCode.VERSION_CONFLICT, **detail: Any) -> Failure:
    return Failure(FailureKind.CONFLICT, code, message, detail)


def dependency(
    message: str,
    cause: Exception | None = None,
    code: FailureCode = FailureCode.PERSISTENCE_ERROR,
) -> Failure:
    return Failure(FailureKind.DEPENDENCY, code, message, {}, cause)


def persistence_error(e: Exception) -> Failure:
    """on_error handler for catching_async around store calls."""
    return dependency(f"persistence failure: {e}", e)


def gateway_error(e: Exception) -> Failure:
    """on_error handler for catching_async around gateway calls."""
    return dependency(f"payment gateway failure: {e}", e, FailureCode.GATEWAY_ERROR)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "FailureKind",
    "FailureCode",
    "Failure",
    "is_conflict",
    "not_found",
    "invalid",
    "rejected",
    "conflict",
    "dependency",
    "persistence_error",
    "gateway_error",
)
