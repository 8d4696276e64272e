"""
Settings — pipeline configuration.

Fluent, immutable builder: each with_* returns a new Settings.

    settings = (
        Settings()
        .with_tax(Decimal("18"))
        .with_shipping(Decimal("49.00"))
        .with_payment_retries(5)
    )
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from orderflow._types import PaymentMethod


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Pipeline configuration.

    tax_percentage: flat tax applied to (subtotal - discount).
    shipping_fee: flat fee per order.
    max_payment_retries: retry cap per payment.
    conflict_retries: attempts for operations that lost an optimistic write.
    lookup_concurrency: bound on parallel catalog lookups per checkout.
    """

    tax_percentage: Decimal = Decimal("18")
    shipping_fee: Decimal = Decimal("0")
    max_payment_retries: int = 3
    order_prefix: str = "ORD"
    conflict_retries: int = 3
    lookup_concurrency: int = 10
    currency: str = "INR"
    default_payment_method: PaymentMethod = PaymentMethod.COD
    minimum_level: int = 10
    reorder_point: int = 20
    reorder_quantity: int = 50

    def __post_init__(self) -> None:
        if self.tax_percentage < 0:
            raise ValueError("tax_percentage must be >= 0")
        if self.shipping_fee < 0:
            raise ValueError("shipping_fee must be >= 0")
        if self.max_payment_retries < 0:
            raise ValueError("max_payment_retries must be >= 0")
        if self.conflict_retries < 1:
            raise ValueError("conflict_retries must be >= 1")
        if self.lookup_concurrency < 1:
            raise ValueError("lookup_concurrency must be >= 1")
        if not self.order_prefix:
            raise ValueError("order_prefix must not be empty")

    def with_tax(self, percentage: Decimal) -> Settings:
        return replace(self, tax_percentage=percentage)

    def with_shipping(self, fee: Decimal) -> Settings:
        return replace(self, shipping_fee=fee)

    def with_payment_retries(self, times: int) -> Settings:
        """Cap on payment retries (default 3)."""
        return replace(self, max_payment_retries=times)

    def with_order_prefix(self, prefix: str) -> Settings:
        return replace(self, order_prefix=prefix)

    def with_conflict_retries(self, times: int) -> Settings:
        return replace(self, conflict_retries=times)

    def with_lookup_concurrency(self, limit: int) -> Settings:
        return replace(self, lookup_concurrency=limit)

    def with_currency(self, currency: str) -> Settings:
        return replace(self, currency=currency)

    def with_default_payment_method(self, method: PaymentMethod) -> Settings:
        return replace(self, default_payment_method=method)

    def with_reorder(
        self,
        *,
        minimum_level: int | None = None,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
    ) -> Settings:
        """
        Default reorder thresholds for products without their own.

        Example:
            .with_reorder(minimum_level=5, reorder_point=15)
        """
        return replace(
            self,
            minimum_level=self.minimum_level if minimum_level is None else minimum_level,
            reorder_point=self.reorder_point if reorder_point is None else reorder_point,
            reorder_quantity=self.reorder_quantity if reorder_quantity is None else reorder_quantity,
        )


DEFAULT = Settings()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("Settings", "DEFAULT")
