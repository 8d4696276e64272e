"""
Quote graph — price a validated cart without side effects.

    QuoteSpec (injected)
         │
         ▼
    PricedLinesNode          snapshot lookups, bounded parallel
         │
         ├──────────────┐
         ▼              │
    DiscountNode        │    rejected code → no discount; store failure → fatal
         │              │
         ▼              ▼
    BreakdownNode ──► QuoteNode

A failed lookup is carried forward in the node, not raised; QuoteNode
holds the final Result.

Node signatures are read at runtime; no postponed annotations here.
"""

import logging
from dataclasses import dataclass

from combinators import traverse_par
from kungfu import Result, Ok, Error, LazyCoroResult

from orderflow import _graph as G
from orderflow._errors import Failure, FailureKind, dependency
from orderflow.catalog._provider import CatalogProvider
from orderflow.checkout._types import CheckoutRequest, LineRequest, Quote
from orderflow.config import Settings
from orderflow.discount._resolver import DiscountResolver
from orderflow.discount._types import AppliedDiscount
from orderflow.pricing import LineItem, PriceBreakdown, compute, subtotal_of
from orderflow.stock._ledger import insufficient
from orderflow._types import ZERO

logger = logging.getLogger(__name__)

ABSORBED_KINDS = frozenset({FailureKind.NOT_FOUND, FailureKind.VALIDATION, FailureKind.BUSINESS_RULE})


# ═══════════════════════════════════════════════════════════════════════════════
# Input
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class QuoteSpec:
    request: CheckoutRequest
    catalog: CatalogProvider
    discounts: DiscountResolver
    settings: Settings


# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class PricedLinesNode:
    """Lines priced from current snapshots, in request order."""

    def __init__(
        self,
        spec: QuoteSpec,
        lines: tuple[LineItem, ...] = (),
        failure: Failure | None = None,
    ) -> None:
        self.spec = spec
        self.lines = lines
        self.failure = failure

    @classmethod
    async def __compose__(cls, spec: QuoteSpec) -> "PricedLinesNode":
        def lookup(line: LineRequest) -> LazyCoroResult[LineItem, Failure]:
            return LazyCoroResult(lambda: price_line(spec.catalog, line))

        result = await traverse_par(
            spec.request.lines,
            lookup,
            concurrency=spec.settings.lookup_concurrency,
        )
        match result:
            case Ok(lines):
                return cls(spec, tuple(lines))
            case Error(e):
                return cls(spec, failure=e)


@G.node
class DiscountNode:
    """
    Applied discount, or the reason a supplied code gave none.

    A rejected code prices the cart without a discount. A store or
    conflict failure is carried as `failure` and fails the quote.
    """

    def __init__(
        self,
        applied: AppliedDiscount | None = None,
        rejection: Failure | None = None,
        failure: Failure | None = None,
    ) -> None:
        self.applied = applied
        self.rejection = rejection
        self.failure = failure

    @classmethod
    async def __compose__(cls, priced: PricedLinesNode) -> "DiscountNode":
        request = priced.spec.request
        if priced.failure is not None or not request.discount_code:
            return cls()

        result = await priced.spec.discounts.resolve(
            request.discount_code,
            subtotal_of(priced.lines),
            request.customer_id,
            priced.lines,
        )
        match result:
            case Ok(applied):
                return cls(applied=applied)
            case Error(e) if e.kind not in ABSORBED_KINDS:
                return cls(failure=e)
            case Error(e):
                logger.warning(
                    "discount %s not applied for %s: %s",
                    request.discount_code, request.customer_id, e,
                )
                return cls(rejection=e)


@G.node
class BreakdownNode:
    def __init__(self, breakdown: PriceBreakdown | None = None, failure: Failure | None = None) -> None:
        self.breakdown = breakdown
        self.failure = failure

    @classmethod
    def __compose__(cls, priced: PricedLinesNode, discount: DiscountNode) -> "BreakdownNode":
        if (failure := priced.failure or discount.failure) is not None:
            return cls(failure=failure)
        settings = priced.spec.settings
        applied = discount.applied
        return cls(compute(
            priced.lines,
            applied.amount if applied else ZERO,
            settings.tax_percentage,
            ZERO if applied and applied.waives_shipping else settings.shipping_fee,
        ))


@G.node
class QuoteNode:
    def __init__(self, result: Result[Quote, Failure]) -> None:
        self.result = result

    @classmethod
    def __compose__(
        cls,
        priced: PricedLinesNode,
        discount: DiscountNode,
        breakdown: BreakdownNode,
    ) -> "QuoteNode":
        match breakdown.breakdown, breakdown.failure:
            case PriceBreakdown() as computed, None:
                return cls(Ok(Quote(
                    lines=priced.lines,
                    breakdown=computed,
                    discount=discount.applied,
                    discount_rejection=discount.rejection,
                )))
            case _, Failure() as failure:
                return cls(Error(failure))
            case _:
                return cls(Error(dependency("quote produced no breakdown")))


# ═══════════════════════════════════════════════════════════════════════════════
# Entry
# ═══════════════════════════════════════════════════════════════════════════════


async def price_line(catalog: CatalogProvider, line: LineRequest) -> Result[LineItem, Failure]:
    """Snapshot price × requested quantity. The client's quoted price is ignored."""
    match await catalog.get_snapshot(line.product_id):
        case Error(e):
            return Error(e)
        case Ok(snapshot):
            if snapshot.available < line.quantity:
                return Error(insufficient(line.product_id, line.quantity, snapshot.available))
            return Ok(LineItem(
                product_id=snapshot.product_id,
                name=snapshot.name,
                quantity=line.quantity,
                unit_price=snapshot.price,
            ))


async def run_quote(spec: QuoteSpec) -> Result[Quote, Failure]:
    node = await G.compose(QuoteNode, spec, detail="quote")
    return node.result


__all__ = (
    "ABSORBED_KINDS",
    "QuoteSpec",
    "PricedLinesNode",
    "DiscountNode",
    "BreakdownNode",
    "QuoteNode",
    "price_line",
    "run_quote",
)
