"""
FastAPI application — the inbound contracts over a Checkout.

Failures map to status codes by kind: NOT_FOUND 404, VALIDATION and
BUSINESS_RULE 400, CONFLICT 409, DEPENDENCY 500. The body is a FailureOut.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import fastapi
from kungfu import Result, Ok, Error

from orderflow._errors import Failure, FailureKind
from orderflow.checkout._orchestrator import Checkout
from orderflow.discount._resolver import DiscountResolver
from orderflow.http._models import (
    ApproveReturnIn,
    CancelIn,
    CheckoutIn,
    DiscountPreviewOut,
    DiscountValidateIn,
    FailIn,
    FailureOut,
    MovementOut,
    NoteIn,
    OrderOut,
    PaymentIn,
    PaymentOut,
    PlacementOut,
    ProofIn,
    QuoteOut,
    RefundIn,
    ReturnIn,
    ShipmentIn,
    ShippingStatusIn,
    StatsOut,
    StatusIn,
    StockChangeIn,
    StockLevelOut,
    WebhookIn,
    AddressIn,
)
from orderflow.order._types import OrderStatus
from orderflow.payment._coordinator import PaymentCoordinator
from orderflow.stock import add_stock, adjust_stock, remove_stock
from orderflow.stock._ledger import StockLedger

STATUS_FOR_KIND: Mapping[FailureKind, int] = {
    FailureKind.NOT_FOUND: 404,
    FailureKind.VALIDATION: 400,
    FailureKind.BUSINESS_RULE: 400,
    FailureKind.CONFLICT: 409,
    FailureKind.DEPENDENCY: 500,
}


@dataclass(frozen=True, slots=True)
class Services:
    checkout: Checkout
    payments: PaymentCoordinator
    ledger: StockLedger
    discounts: DiscountResolver

    @classmethod
    def of(cls, checkout: Checkout) -> Services:
        return cls(checkout, checkout.payments, checkout.ledger, checkout.discounts)


def unwrap[T](result: Result[T, Failure]) -> T:
    """Value, or an HTTPException carrying the failure."""
    match result:
        case Ok(value):
            return value
        case Error(failure):
            raise fastapi.HTTPException(
                status_code=STATUS_FOR_KIND[failure.kind],
                detail=FailureOut.from_domain(failure).model_dump(),
            )


def create_app(services: Services) -> fastapi.FastAPI:
    app = fastapi.FastAPI(title="orderflow")
    app.include_router(orders_router(services))
    app.include_router(payments_router(services))
    app.include_router(stock_router(services))
    app.include_router(discounts_router(services))
    return app


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


def orders_router(services: Services) -> fastapi.APIRouter:
    router = fastapi.APIRouter(prefix="/orders", tags=["orders"])
    checkout = services.checkout

    @router.post("", status_code=201)
    async def place_order(req: CheckoutIn) -> PlacementOut:
        return PlacementOut.from_domain(unwrap(await checkout.place_order(req.to_domain())))

    @router.post("/quote")
    async def quote(req: CheckoutIn) -> QuoteOut:
        return QuoteOut.from_domain(unwrap(await checkout.quote(req.to_domain())))

    @router.get("")
    async def list_orders(
        customer_id: str | None = None,
        status: OrderStatus | None = None,
    ) -> list[OrderOut]:
        orders = unwrap(await checkout.list_orders(customer_id=customer_id, status=status))
        return [OrderOut.from_domain(order) for order in orders]

    @router.get("/stats")
    async def order_stats() -> StatsOut:
        return StatsOut.from_domain(unwrap(await checkout.order_stats()))

    @router.get("/track/{number}")
    async def track(number: str) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.track(number)))

    @router.get("/{order_id}")
    async def get_order(order_id: str) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.get_order(order_id)))

    @router.post("/{order_id}/cancel")
    async def cancel_order(order_id: str, req: CancelIn) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.cancel_order(order_id, req.reason, req.actor)))

    @router.post("/{order_id}/status")
    async def update_status(order_id: str, req: StatusIn) -> OrderOut:
        return OrderOut.from_domain(
            unwrap(await checkout.update_order_status(order_id, req.status, req.actor))
        )

    @router.post("/{order_id}/returns")
    async def request_return(order_id: str, req: ReturnIn) -> OrderOut:
        return OrderOut.from_domain(
            unwrap(await checkout.request_return(order_id, req.to_domain(), req.reason))
        )

    @router.post("/{order_id}/returns/approve")
    async def approve_return(order_id: str, req: ApproveReturnIn) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.approve_return(order_id, req.refund_amount)))

    @router.post("/{order_id}/returns/reject")
    async def reject_return(order_id: str) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.reject_return(order_id)))

    @router.post("/{order_id}/shipping-address")
    async def update_shipping_address(order_id: str, req: AddressIn) -> OrderOut:
        return OrderOut.from_domain(
            unwrap(await checkout.update_shipping_address(order_id, req.to_domain()))
        )

    @router.post("/{order_id}/shipment")
    async def assign_shipment(order_id: str, req: ShipmentIn) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.assign_shipment(
            order_id, req.carrier, req.tracking_number, req.estimated_delivery,
        )))

    @router.post("/{order_id}/shipping-status")
    async def update_shipping_status(order_id: str, req: ShippingStatusIn) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.update_shipping_status(order_id, req.status)))

    @router.post("/{order_id}/notes")
    async def add_note(order_id: str, req: NoteIn) -> OrderOut:
        return OrderOut.from_domain(unwrap(await checkout.add_note(order_id, req.text, req.author)))

    return router


# ═══════════════════════════════════════════════════════════════════════════════
# Payments
# ═══════════════════════════════════════════════════════════════════════════════


def payments_router(services: Services) -> fastapi.APIRouter:
    router = fastapi.APIRouter(prefix="/payments", tags=["payments"])
    payments = services.payments

    @router.post("", status_code=201)
    async def initiate_payment(req: PaymentIn) -> PaymentOut:
        return PaymentOut.from_domain(unwrap(await payments.initiate(req.order_id, req.amount, req.method)))

    @router.post("/webhook")
    async def webhook(req: WebhookIn) -> PaymentOut | None:
        handled = unwrap(await payments.handle_webhook(req.to_domain()))
        return PaymentOut.from_domain(handled) if handled else None

    @router.get("/{payment_id}")
    async def get_payment(payment_id: str) -> PaymentOut:
        return PaymentOut.from_domain(unwrap(await payments.get(payment_id)))

    @router.post("/{payment_id}/verify")
    async def verify_payment(payment_id: str, req: ProofIn) -> PaymentOut:
        return PaymentOut.from_domain(unwrap(await payments.verify(payment_id, req.to_domain())))

    @router.post("/{payment_id}/fail")
    async def fail_payment(payment_id: str, req: FailIn) -> PaymentOut:
        return PaymentOut.from_domain(unwrap(await payments.mark_failed(payment_id, req.reason)))

    @router.post("/{payment_id}/retry")
    async def retry_payment(payment_id: str) -> PaymentOut:
        return PaymentOut.from_domain(unwrap(await payments.retry(payment_id)))

    @router.post("/{payment_id}/refund")
    async def process_refund(payment_id: str, req: RefundIn) -> PaymentOut:
        return PaymentOut.from_domain(
            unwrap(await services.checkout.process_refund(payment_id, req.reason, req.amount))
        )

    return router


# ═══════════════════════════════════════════════════════════════════════════════
# Stock
# ═══════════════════════════════════════════════════════════════════════════════


def stock_router(services: Services) -> fastapi.APIRouter:
    router = fastapi.APIRouter(prefix="/stock", tags=["stock"])
    ledger = services.ledger

    @router.get("/low")
    async def low_stock() -> list[StockLevelOut]:
        return [StockLevelOut.from_domain(level) for level in unwrap(await ledger.low_stock())]

    @router.get("/{product_id}")
    async def level(product_id: str) -> StockLevelOut:
        return StockLevelOut.from_domain(unwrap(await ledger.level(product_id)))

    @router.get("/{product_id}/movements")
    async def movements(product_id: str) -> list[MovementOut]:
        return [MovementOut.from_domain(m) for m in unwrap(await ledger.movements(product_id))]

    @router.post("/{product_id}/add")
    async def add(product_id: str, req: StockChangeIn) -> MovementOut:
        return MovementOut.from_domain(
            unwrap(await add_stock(ledger, product_id, req.quantity, req.reason, req.actor))
        )

    @router.post("/{product_id}/remove")
    async def remove(product_id: str, req: StockChangeIn) -> MovementOut:
        return MovementOut.from_domain(
            unwrap(await remove_stock(ledger, product_id, req.quantity, req.reason, req.actor))
        )

    @router.post("/{product_id}/adjust")
    async def adjust(product_id: str, req: StockChangeIn) -> MovementOut:
        return MovementOut.from_domain(
            unwrap(await adjust_stock(ledger, product_id, req.quantity, req.reason, req.actor))
        )

    @router.post("/{product_id}/write-off")
    async def write_off(product_id: str, req: StockChangeIn) -> MovementOut:
        return MovementOut.from_domain(
            unwrap(await ledger.write_off(product_id, req.quantity, req.reason, req.actor))
        )

    return router


# ═══════════════════════════════════════════════════════════════════════════════
# Discounts
# ═══════════════════════════════════════════════════════════════════════════════


def discounts_router(services: Services) -> fastapi.APIRouter:
    router = fastapi.APIRouter(prefix="/discounts", tags=["discounts"])

    @router.post("/validate")
    async def validate_discount(req: DiscountValidateIn) -> DiscountPreviewOut:
        return DiscountPreviewOut.from_domain(
            unwrap(await services.discounts.validate(req.code, req.cart_total))
        )

    return router


__all__ = ("STATUS_FOR_KIND", "Services", "unwrap", "create_app")
