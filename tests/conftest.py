"""
Shared fixtures: a pinned clock and a fully wired in-memory system.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from orderflow import catalog as Cat
from orderflow import order as O
from orderflow.config import Settings

from support import FixedClock, System, build_system


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def address() -> O.Address:
    return O.Address(
        line1="12 Residency Road",
        city="Bengaluru",
        postal_code="560025",
        country="IN",
        state="KA",
        name="Asha",
    )


@pytest_asyncio.fixture
async def system(clock: FixedClock, settings: Settings) -> System:
    """Product P at 100.00 with 5 units, tax 18%, no shipping fee."""
    built = build_system(clock, settings)
    product = Cat.Product("P", "Steel Bottle", Decimal("100"), Decimal("60"))
    (await built.catalog.add(product, stock=5)).unwrap()
    return built
