# tests/conftest.py
"""
Shared Test Fixtures

Builds a file-backed SQLite store per test (threads in the concurrency
tests need real connections), a fake spot provider with a controllable
answer, a settable clock, and principals for each role.

Files that USE this module:
- pytest (fixtures for every test module)

Files that this module USES:
- jewelrate.adapters.persistence (create_db_engine, Store)
- jewelrate.application.rate_cache (RateCache)
- jewelrate.domain (models, roles, errors)
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from jewelrate.adapters.persistence import Store, create_db_engine
from jewelrate.adapters.providers.base import SpotRateProvider
from jewelrate.application.rate_cache import TROY_OUNCE_GRAMS, RateCache
from jewelrate.domain.errors import UpstreamUnavailable
from jewelrate.domain.models import InventoryItem, ItemType, SpotPrices
from jewelrate.domain.roles import Principal, Role

GOLD_PER_GRAM = Decimal("6000")
SILVER_PER_GRAM = Decimal("80")


class FixedClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeProvider(SpotRateProvider):
    """Spot provider returning a fixed answer, or raising `error` when set."""

    def __init__(self, gold_per_gram=GOLD_PER_GRAM, silver_per_gram=SILVER_PER_GRAM):
        self.spot = SpotPrices(
            gold_per_oz=gold_per_gram * TROY_OUNCE_GRAMS,
            silver_per_oz=silver_per_gram * TROY_OUNCE_GRAMS,
        )
        self.error = None
        self.calls = 0

    def fetch_spot(self) -> SpotPrices:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.spot


@pytest.fixture
def store(tmp_path) -> Store:
    store = Store(create_db_engine(f"sqlite:///{tmp_path / 'jewelrate-test.db'}"))
    store.upsert_metal_rate("gold", Decimal("5500"))
    store.upsert_metal_rate("silver", Decimal("75"))
    store.upsert_metal_rate("platinum", Decimal("3000"))
    return store


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def failing_provider() -> FakeProvider:
    p = FakeProvider()
    p.error = UpstreamUnavailable("feed down")
    return p


@pytest.fixture
def rate_cache(provider, clock) -> RateCache:
    return RateCache(provider, ttl=timedelta(minutes=5), calibration={}, clock=clock)


@pytest.fixture
def customer() -> Principal:
    return Principal(user_id=1, role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Principal:
    return Principal(user_id=2, role=Role.CUSTOMER)


@pytest.fixture
def seller() -> Principal:
    return Principal(user_id=10, role=Role.SELLER)


@pytest.fixture
def admin() -> Principal:
    return Principal(user_id=90, role=Role.ADMIN)


@pytest.fixture
def superadmin() -> Principal:
    return Principal(user_id=99, role=Role.SUPERADMIN)


def make_item(product_id=None, **overrides) -> InventoryItem:
    """22K gold ring: 10 g net, 8% wastage, 500/g making charge."""
    fields = dict(
        product_id=product_id,
        seller_id=10,
        metal="gold",
        purity=Decimal("91.6"),
        net_weight=Decimal("10"),
        gross_weight=Decimal("10"),
        item_type=ItemType.NORMAL,
        wastage_percent=Decimal("8"),
        making_charge_per_gram=Decimal("500"),
        ornament="Ring",
    )
    fields.update(overrides)
    return InventoryItem(**fields)


@pytest.fixture
def ring(store):
    """Product with stock 2 priced from a gold inventory record."""
    product_id = store.add_product("Gold Ring", price=Decimal("1.00"), stock=2, seller_id=10)
    store.insert_inventory(make_item(product_id))
    return product_id


@pytest.fixture
def chain(store):
    """Product with stock 5 and no inventory record (list price 2500.00)."""
    return store.add_product("Silver Chain", price=Decimal("2500.00"), stock=5, seller_id=10)
