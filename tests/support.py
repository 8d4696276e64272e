"""
Test helpers shared across modules.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from orderflow import catalog as Cat
from orderflow import checkout as C
from orderflow import discount as D
from orderflow import order as O
from orderflow import payment as Pay
from orderflow import stock as St
from orderflow.config import Settings


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


@dataclass
class System:
    clock: FixedClock
    settings: Settings
    ledger: St.MemoryStockLedger
    catalog: Cat.MemoryCatalog
    discount_store: D.MemoryDiscountStore
    resolver: D.DiscountResolver
    orders: O.MemoryOrderStore
    gateway: Pay.HmacGateway
    payments: Pay.PaymentCoordinator
    checkout: C.Checkout


def make_discount(clock: FixedClock, code: str = "SAVE10", **overrides) -> D.Discount:
    fields = dict(
        id=f"disc_{code.lower()}",
        code=code,
        type=D.DiscountType.PERCENTAGE,
        value=Decimal("10"),
        valid_from=clock.now - timedelta(days=1),
        valid_until=clock.now + timedelta(days=30),
    )
    fields.update(overrides)
    return D.Discount(**fields)


def build_system(
    clock: FixedClock,
    settings: Settings,
    gateway: Pay.HmacGateway | None = None,
) -> System:
    ledger = St.MemoryStockLedger(clock)
    catalog = Cat.MemoryCatalog(ledger)
    discount_store = D.MemoryDiscountStore()
    resolver = D.DiscountResolver(discount_store, clock)
    orders = O.MemoryOrderStore()
    gateway = gateway or Pay.HmacGateway("secret")
    payments = Pay.PaymentCoordinator(
        Pay.MemoryPaymentStore(), orders, gateway, settings=settings, clock=clock
    )
    checkout = C.Checkout(
        catalog=catalog,
        ledger=ledger,
        discounts=resolver,
        orders=orders,
        sequence=O.MemoryOrderSequence(),
        payments=payments,
        settings=settings,
        clock=clock,
    )
    return System(
        clock=clock,
        settings=settings,
        ledger=ledger,
        catalog=catalog,
        discount_store=discount_store,
        resolver=resolver,
        orders=orders,
        gateway=gateway,
        payments=payments,
        checkout=checkout,
    )


def cart(
    address: O.Address,
    *lines: tuple[str, int],
    customer_id: str = "cust_a",
    code: str | None = None,
    method: Pay.PaymentMethod | None = None,
) -> C.CheckoutRequest:
    return C.CheckoutRequest(
        customer_id=customer_id,
        lines=tuple(C.LineRequest(pid, qty) for pid, qty in lines),
        shipping_address=address,
        discount_code=code,
        payment_method=method,
    )


async def available(ledger: St.StockLedger, product_id: str) -> int:
    return (await ledger.level(product_id)).unwrap().available
