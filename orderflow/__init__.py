"""
orderflow — order pricing and fulfillment pipeline.

    from orderflow import checkout as C   # Place, cancel, return, refund
    from orderflow import order as O      # Order state machine
    from orderflow import payment as Pay  # Payment attempts and refunds
    from orderflow import stock as St     # Stock ledger
    from orderflow import storage as S    # SQLAlchemy backends
"""

from orderflow import pricing
from orderflow import stock
from orderflow import catalog
from orderflow import discount
from orderflow import order
from orderflow import payment
from orderflow import checkout
from orderflow.config import Settings, DEFAULT
from orderflow._errors import Failure, FailureKind, FailureCode
from orderflow._types import Money, PaymentMethod, money, round2

__version__ = "0.1.0"

__all__ = (
    "pricing",
    "stock",
    "catalog",
    "discount",
    "order",
    "payment",
    "checkout",
    "Settings",
    "DEFAULT",
    "Failure",
    "FailureKind",
    "FailureCode",
    "Money",
    "PaymentMethod",
    "money",
    "round2",
)
