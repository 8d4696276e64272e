"""
Core types for orderflow.

Re-exports from kungfu/combinators + money, clock and id helpers.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

# Re-export from kungfu
from kungfu import Result, Ok, Error, Option, Some, Nothing, LazyCoroResult

# Re-export from combinators
from combinators import LCR, NoError

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Monetary amount. Always Decimal, never float."""

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Decimal | int | str) -> Money:
    """
    Coerce to Decimal without rounding.

    Floats are rejected: binary fractions are not money.
    """
    if isinstance(value, float):
        raise TypeError("money amounts must not be float, pass str or Decimal")
    return value if isinstance(value, Decimal) else Decimal(value)


def round2(value: Decimal) -> Money:
    """Round to 2 places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Methods
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentMethod(Enum):
    """Shared by orders, payments and settings."""

    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    COD = "cod"


# ═══════════════════════════════════════════════════════════════════════════════
# Clock & Ids
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]
"""Source of 'now'. Injected so tests can pin time."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Opaque identifier: `{prefix}_{hex}`."""
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "Option",
    "Some",
    "Nothing",
    "LazyCoroResult",
    # Re-exports from combinators
    "LCR",
    "NoError",
    # Money
    "Money",
    "CENT",
    "ZERO",
    "money",
    "round2",
    # Payment methods
    "PaymentMethod",
    # Clock & ids
    "Clock",
    "utcnow",
    "new_id",
)
