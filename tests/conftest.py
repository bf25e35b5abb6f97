"""Shared pytest fixtures for the rate card engine test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from concurrent.futures import Executor, Future
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest

from ratecard.cache.backend import MemoryCache
from ratecard.cache.coordinator import CacheCoordinator
from ratecard.domain.models import (
    Catalog,
    CreatorMetrics,
    Identity,
    Location,
    PlatformMetric,
)
from ratecard.domain.types import CityTier, Experience, Niche, Platform, SubscriptionTier
from ratecard.pricing.engine import PricingEngine
from ratecard.service import RateCardService
from ratecard.store.repository import CatalogRepository
from ratecard.store.schema import close_ratecard_db, init_ratecard_db
from ratecard.versioning.store import VersionStore


class FixedClock:
    """A controllable clock: returns ``now`` until advanced."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """Monotonic seconds for MemoryCache TTL tests."""

    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


@pytest.fixture
def clock() -> FixedClock:
    """Mid-June: outside the festive months."""
    return FixedClock(datetime(2025, 6, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def fake_monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def db_conn() -> Iterator[Any]:
    conn = init_ratecard_db(":memory:")
    yield conn
    close_ratecard_db(conn)


@pytest.fixture
def repository(db_conn: Any) -> CatalogRepository:
    return CatalogRepository(db_conn)


@pytest.fixture
def cache() -> CacheCoordinator:
    return CacheCoordinator(MemoryCache())


@pytest.fixture
def versions(
    repository: CatalogRepository, cache: CacheCoordinator, clock: FixedClock
) -> VersionStore:
    return VersionStore(repository, cache, clock)


@pytest.fixture
def pricing() -> PricingEngine:
    """Engine without an advisory client: always priced locally."""
    return PricingEngine()


@pytest.fixture
def service(
    repository: CatalogRepository,
    versions: VersionStore,
    pricing: PricingEngine,
    cache: CacheCoordinator,
    clock: FixedClock,
    inline_executor: InlineExecutor,
) -> RateCardService:
    return RateCardService(
        repository=repository,
        versions=versions,
        pricing=pricing,
        cache=cache,
        clock=clock,
        base_url="https://cards.example.com",
        view_executor=inline_executor,
    )


@pytest.fixture
def mock_anthropic_client() -> MagicMock:
    """Return a MagicMock standing in for anthropic.Anthropic."""
    return MagicMock()


@pytest.fixture
def owner() -> Identity:
    return Identity(owner_id="owner-1", subscription_tier=SubscriptionTier.PRO)


@pytest.fixture
def other_owner() -> Identity:
    return Identity(owner_id="owner-2", subscription_tier=SubscriptionTier.ELITE)


@pytest.fixture
def sample_metrics() -> CreatorMetrics:
    """A 150k Instagram tech creator in a metro city, new to brand deals."""
    return CreatorMetrics(
        platforms=[
            PlatformMetric(platform=Platform.INSTAGRAM, followers=150_000, engagement_rate=4.0)
        ],
        niche=Niche.TECH,
        location=Location(city="Mumbai", city_tier=CityTier.METRO),
        experience=Experience.BEGINNER,
    )


@pytest.fixture
def rich_metrics() -> CreatorMetrics:
    """Metrics with views, likes and languages on every platform."""
    return CreatorMetrics(
        platforms=[
            PlatformMetric(
                platform=Platform.INSTAGRAM,
                followers=80_000,
                engagement_rate=5.5,
                avg_views=40_000,
                avg_likes=4_000,
            ),
            PlatformMetric(
                platform=Platform.YOUTUBE,
                followers=20_000,
                engagement_rate=3.2,
                avg_views=12_000,
                avg_likes=900,
            ),
        ],
        niche=Niche.FOOD,
        location=Location(city="Pune", city_tier=CityTier.TIER1),
        languages=["Hindi", "English"],
        experience=Experience.TWO_TO_FIVE_YEARS,
    )


@pytest.fixture
def make_catalog(sample_metrics: CreatorMetrics, clock: FixedClock) -> Callable[..., Catalog]:
    """Factory for a priced draft catalog owned by ``owner-1`` by default."""

    def _make(owner_id: str = "owner-1", **updates: Any) -> Catalog:
        outcome = PricingEngine().price_catalog(sample_metrics)
        fields: dict[str, Any] = {
            "owner_id": owner_id,
            "subscription_tier": SubscriptionTier.PRO,
            "metrics": sample_metrics,
            "rates": outcome.rates,
            "created_at": clock(),
            "updated_at": clock(),
        }
        fields.update(updates)
        return Catalog(**fields)

    return _make
