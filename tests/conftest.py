"""Pytest configuration and fixtures for testing."""

from decimal import Decimal
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from curation.schemas.catalog import CategorySnapshot, LinkSnapshot
from curation.schemas.product import ProductSnapshot
from curation.services.cache_service import LocalCache
from curation.services.catalog_store import CatalogStore
from curation.services.product_validator import ProductValidator


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# Mock catalog store fixture
@pytest.fixture
def mock_store() -> AsyncMock:
    """Create a mock catalog store with an empty catalog."""
    store = AsyncMock(spec=CatalogStore)

    store.find_product = AsyncMock(return_value=None)
    store.find_category = AsyncMock(return_value=None)
    store.exists_active_category = AsyncMock(return_value=False)
    store.find_active_links_for_product = AsyncMock(return_value=[])
    store.count_active_categories = AsyncMock(return_value=0)
    store.count_active_products = AsyncMock(return_value=0)
    store.count_by_normalized_field = AsyncMock(return_value=0)
    store.count_products_created_by = AsyncMock(return_value=0)

    return store


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    redis.get = AsyncMock(return_value=None)
    redis.delete = AsyncMock(return_value=1)
    redis.smembers = AsyncMock(return_value=set())

    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[True])
    redis.pipeline = MagicMock(return_value=pipe)

    return redis


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> LocalCache:
    """In-process cache driven by the fake clock."""
    return LocalCache(maxsize=1000, timer=clock)


@pytest.fixture
def validator(mock_store: AsyncMock, cache: LocalCache) -> ProductValidator:
    return ProductValidator.create(mock_store, cache)


# Snapshot factories
@pytest.fixture
def make_product() -> Callable[..., ProductSnapshot]:
    """Build a publishable VERIFIED product, overridable per test."""

    def _make(**overrides) -> ProductSnapshot:
        fields = {
            "id": 1,
            "name": "Widget",
            "slug": "widget",
            "description": "A very useful widget",
            "market_price": Decimal("5000.00"),
            "category_id": 3,
            "status": "verified",
            "image": "widget.jpg",
        }
        fields.update(overrides)
        return ProductSnapshot(**fields)

    return _make


@pytest.fixture
def active_category() -> CategorySnapshot:
    return CategorySnapshot(id=3, name="Gadgets", slug="gadgets", active=True)


@pytest.fixture
def inactive_category() -> CategorySnapshot:
    return CategorySnapshot(id=3, name="Gadgets", slug="gadgets", active=False)


@pytest.fixture
def active_link() -> LinkSnapshot:
    return LinkSnapshot(
        id=10,
        product_id=1,
        marketplace_id=2,
        store_name="Gadget Store",
        price=Decimal("4999.00"),
        url="https://example.com/widget",
        active=True,
    )


# Valid create payload
@pytest.fixture
def create_payload() -> dict:
    return {
        "name": "Widget",
        "slug": "widget",
        "description": "A very useful widget",
        "market_price": "5000.00",
        "category_id": 3,
        "image": "widget.jpg",
    }
