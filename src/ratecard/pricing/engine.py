"""PricingEngine: turns creator metrics into a priced set of deliverables.

The engine consults the advisory cache, then the advisory client, and falls
back to the local market model when the advisory service is unavailable.
It never raises for missing data: every deliverable in the metrics'
universe always receives a price.

Market positions are always classified against the *local* band.  The
advisory service's own range only appears in the display reasoning.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import BaseModel

from ratecard.advisory.models import UNAVAILABLE, AdvisorySuggestion, MarketInsights
from ratecard.cache.coordinator import metrics_fingerprint
from ratecard.domain.errors import IncompletePackageError
from ratecard.domain.models import (
    MAX_PRICE,
    CreatorMetrics,
    DeliverableRate,
    Package,
    PackageItem,
    RateInput,
)
from ratecard.domain.types import PLATFORM_DELIVERABLES, DeliverableType, Platform
from ratecard.pricing.boundaries import MarketBand, classify_market_position, market_band
from ratecard.pricing.calculator import PriceBreakdown, price_for_creator, to_whole_units
from ratecard.pricing.multipliers import is_festive_month
from ratecard.pricing.packages import individual_total, price_package

if TYPE_CHECKING:
    from ratecard.advisory.client import AdvisoryClient
    from ratecard.cache.coordinator import CacheCoordinator

logger = structlog.get_logger()

# Confidence reported for locally computed prices
RICH_METRICS_CONFIDENCE = 90
THIN_METRICS_CONFIDENCE = 70

# A chosen price within this fraction of the suggestion counts as accepted
ACCEPTANCE_TOLERANCE = Decimal("0.10")

MAX_SUGGESTED_PACKAGES = 3

DeliverableKey = tuple[Platform, DeliverableType]


class PackageTemplate(BaseModel, frozen=True):
    """A package suggested when the advisory service is unavailable."""

    platform: Platform
    name: str
    description: str
    items: tuple[tuple[DeliverableType, int], ...]
    discount: Decimal
    is_popular: bool = False


FALLBACK_PACKAGE_TEMPLATES: tuple[PackageTemplate, ...] = (
    PackageTemplate(
        platform=Platform.INSTAGRAM,
        name="Starter Package",
        description="Perfect for brand awareness campaigns",
        items=((DeliverableType.REEL, 1), (DeliverableType.STORY, 3)),
        discount=Decimal("0.10"),
    ),
    PackageTemplate(
        platform=Platform.INSTAGRAM,
        name="Growth Package",
        description="Ideal for product launches and sustained engagement",
        items=(
            (DeliverableType.REEL, 2),
            (DeliverableType.POST, 1),
            (DeliverableType.STORY, 5),
        ),
        discount=Decimal("0.15"),
        is_popular=True,
    ),
    PackageTemplate(
        platform=Platform.YOUTUBE,
        name="Channel Spotlight",
        description="A dedicated video with short-form follow-ups",
        items=((DeliverableType.VIDEO, 1), (DeliverableType.SHORT, 2)),
        discount=Decimal("0.10"),
    ),
)


class PricingOutcome(BaseModel, frozen=True):
    """Result of pricing a creator's metrics.

    Attributes:
        rates: One rate per deliverable in the metrics' universe.
        packages: Suggested packages priced against ``rates``.
        market_insights: Display-only market commentary.
        source: ``advisory`` when the advisory service priced the catalog.
        confidence: Confidence score from 0 to 100.
    """

    rates: list[DeliverableRate]
    packages: list[Package]
    market_insights: MarketInsights
    source: Literal["advisory", "fallback"]
    confidence: int


def deliverable_universe(metrics: CreatorMetrics) -> list[DeliverableKey]:
    """Every platform/deliverable pair priced for *metrics*, in table order."""
    return [
        (metric.platform, dt)
        for metric in metrics.platforms
        for dt in PLATFORM_DELIVERABLES[metric.platform]
    ]


def has_rich_metrics(metrics: CreatorMetrics) -> bool:
    """True when every platform reports views and likes and languages are known."""
    return bool(metrics.languages) and all(
        p.avg_views is not None and p.avg_likes is not None for p in metrics.platforms
    )


def acceptance_rate(rates: Sequence[DeliverableRate]) -> int | None:
    """Percentage of rates priced within 10% of their suggestion.

    Returns None when no rate carries a positive suggestion.
    """
    pairs = [
        (r.chosen_price, r.advisory_suggested)
        for r in rates
        if r.advisory_suggested is not None and r.advisory_suggested > 0
    ]
    if not pairs:
        return None
    accepted = sum(
        1
        for chosen, suggested in pairs
        if abs(chosen - suggested) / suggested <= ACCEPTANCE_TOLERANCE
    )
    return int(to_whole_units(Decimal(accepted) * 100 / len(pairs)))


class PricingEngine:
    """Orchestrates the advisory client and the local market model.

    Args:
        advisor: Advisory client, or None to always price locally.
        cache: Cache coordinator for advisory results, or None to disable.
        seasonal_pricing: Apply the festive-season premium to local prices.
    """

    def __init__(
        self,
        advisor: AdvisoryClient | None = None,
        cache: CacheCoordinator | None = None,
        *,
        seasonal_pricing: bool = False,
    ) -> None:
        self._advisor = advisor
        self._cache = cache
        self._seasonal_pricing = seasonal_pricing

    def local_prices(
        self, metrics: CreatorMetrics, month: int | None = None
    ) -> dict[DeliverableKey, tuple[PriceBreakdown, MarketBand]]:
        """Compute the local price and market band for every deliverable."""
        seasonal_month = month if self._seasonal_pricing else None
        result: dict[DeliverableKey, tuple[PriceBreakdown, MarketBand]] = {}
        for platform, dt in deliverable_universe(metrics):
            breakdown = price_for_creator(metrics, platform, dt, seasonal_month)
            result[(platform, dt)] = (breakdown, market_band(breakdown.price))
        return result

    def price_catalog(self, metrics: CreatorMetrics, month: int | None = None) -> PricingOutcome:
        """Price every deliverable for *metrics*.

        Each rate's ``chosen_price`` starts equal to its suggestion: the
        advisory price when one exists for that deliverable, else the local
        calculated price.

        Args:
            metrics: The creator's metrics.
            month: Current calendar month (1-12), used for the season.

        Returns:
            A PricingOutcome; never raises for missing advisory data.
        """
        local = self.local_prices(metrics, month)
        season = _season(month)
        suggestion = self._advisory_suggestion(metrics, local, season)

        rates = [
            self._suggested_rate(metrics, key, breakdown, band, suggestion)
            for key, (breakdown, band) in local.items()
        ]

        if suggestion is None:
            packages = self._template_packages(rates)
            insights = MarketInsights(
                position=_fallback_position(metrics),
                recommendations=[
                    "Rates are estimated from audience size, engagement, niche and location",
                ],
                confidence=self._fallback_confidence(metrics),
                season=season,
            )
            confidence = insights.confidence
            source: Literal["advisory", "fallback"] = "fallback"
        else:
            packages = self._advisory_packages(rates, suggestion)
            insights = suggestion.market_insights
            confidence = insights.confidence
            source = "advisory"

        logger.info(
            "catalog_priced",
            source=source,
            confidence=confidence,
            rates=len(rates),
            packages=len(packages),
        )
        return PricingOutcome(
            rates=rates,
            packages=packages,
            market_insights=insights,
            source=source,
            confidence=confidence,
        )

    def reprice(
        self,
        metrics: CreatorMetrics,
        existing: Sequence[DeliverableRate],
        *,
        month: int | None = None,
        reset_prices: bool = False,
    ) -> PricingOutcome:
        """Re-price after a metrics change, keeping chosen prices by default.

        Deliverables that already had a rate keep their chosen price, turnaround
        and revisions unless *reset_prices* is set; suggestions and market
        positions are refreshed.  Rates for platforms no longer in the metrics
        are dropped.
        """
        outcome = self.price_catalog(metrics, month)
        if reset_prices:
            return outcome

        by_key = {(r.platform, r.deliverable_type): r for r in existing}
        local = self.local_prices(metrics, month)
        merged: list[DeliverableRate] = []
        for rate in outcome.rates:
            previous = by_key.get((rate.platform, rate.deliverable_type))
            if previous is None:
                merged.append(rate)
                continue
            _, band = local[(rate.platform, rate.deliverable_type)]
            merged.append(
                rate.model_copy(
                    update={
                        "chosen_price": previous.chosen_price,
                        "turnaround": previous.turnaround,
                        "revisions_included": previous.revisions_included,
                        "market_position": classify_market_position(
                            previous.chosen_price, band
                        ),
                    }
                )
            )
        return outcome.model_copy(update={"rates": merged})

    def classify_rates(
        self,
        metrics: CreatorMetrics,
        inputs: Sequence[RateInput],
        existing: Sequence[DeliverableRate],
        month: int | None = None,
    ) -> list[DeliverableRate]:
        """Build rates from caller-chosen prices, classified against local bands.

        Suggestions and reasoning already on the catalog are preserved; new
        deliverables have no suggestion.
        """
        seasonal_month = month if self._seasonal_pricing else None
        by_key = {(r.platform, r.deliverable_type): r for r in existing}
        rates: list[DeliverableRate] = []
        for item in inputs:
            breakdown = price_for_creator(
                metrics, item.platform, item.deliverable_type, seasonal_month
            )
            previous = by_key.get((item.platform, item.deliverable_type))
            rates.append(
                DeliverableRate(
                    platform=item.platform,
                    deliverable_type=item.deliverable_type,
                    advisory_suggested=previous.advisory_suggested if previous else None,
                    chosen_price=item.chosen_price,
                    market_position=classify_market_position(
                        item.chosen_price, market_band(breakdown.price)
                    ),
                    turnaround=item.turnaround,
                    revisions_included=item.revisions_included,
                    reasoning=previous.reasoning if previous else "",
                )
            )
        return rates

    # -- internals ----------------------------------------------------------

    def _advisory_suggestion(
        self,
        metrics: CreatorMetrics,
        local: dict[DeliverableKey, tuple[PriceBreakdown, MarketBand]],
        season: str,
    ) -> AdvisorySuggestion | None:
        if self._advisor is None or not self._advisor.enabled:
            return None

        fingerprint = None
        if self._cache is not None:
            fingerprint = metrics_fingerprint(metrics, season)
            cached = self._cache.get_advisory(fingerprint)
            if cached is not None:
                logger.debug("advisory_cache_hit", fingerprint=fingerprint)
                return cached

        bands = {key: band for key, (_, band) in local.items()}
        result = self._advisor.suggest(metrics, bands, season)
        if result is UNAVAILABLE or not isinstance(result, AdvisorySuggestion):
            return None

        if self._cache is not None and fingerprint is not None:
            self._cache.put_advisory(fingerprint, result)
        return result

    @staticmethod
    def _suggested_rate(
        metrics: CreatorMetrics,
        key: DeliverableKey,
        breakdown: PriceBreakdown,
        band: MarketBand,
        suggestion: AdvisorySuggestion | None,
    ) -> DeliverableRate:
        platform, dt = key
        advised = suggestion.rate_for(platform, dt) if suggestion is not None else None
        if advised is not None:
            suggested = advised.suggested_price
            reasoning = (
                f"{advised.reasoning} (advisory range "
                f"{advised.min_price:,}-{advised.max_price:,})"
            ).strip()
        else:
            suggested = breakdown.price
            reasoning = _local_reasoning(metrics, platform, breakdown)

        return DeliverableRate(
            platform=platform,
            deliverable_type=dt,
            advisory_suggested=suggested,
            chosen_price=suggested,
            market_position=classify_market_position(suggested, band),
            reasoning=reasoning,
        )

    @staticmethod
    def _fallback_confidence(metrics: CreatorMetrics) -> int:
        if has_rich_metrics(metrics):
            return RICH_METRICS_CONFIDENCE
        return THIN_METRICS_CONFIDENCE

    @staticmethod
    def _template_packages(rates: list[DeliverableRate]) -> list[Package]:
        priced = {(r.platform, r.deliverable_type) for r in rates}
        packages: list[Package] = []
        for template in FALLBACK_PACKAGE_TEMPLATES:
            if len(packages) >= MAX_SUGGESTED_PACKAGES:
                break
            items = [
                PackageItem(platform=template.platform, deliverable_type=dt, quantity=qty)
                for dt, qty in template.items
                if (template.platform, dt) in priced
            ]
            if not items:
                continue
            total, _ = individual_total(rates, items)
            price = min(to_whole_units(total * (1 - template.discount)), MAX_PRICE)
            packages.append(
                price_package(
                    rates,
                    name=template.name,
                    items=items,
                    package_price=price,
                    description=template.description,
                    is_popular=template.is_popular,
                )
            )
        return packages

    @staticmethod
    def _advisory_packages(
        rates: list[DeliverableRate], suggestion: AdvisorySuggestion
    ) -> list[Package]:
        priced = {(r.platform, r.deliverable_type) for r in rates}
        packages: list[Package] = []
        for suggested in suggestion.packages[:MAX_SUGGESTED_PACKAGES]:
            items = [i for i in suggested.items if (i.platform, i.deliverable_type) in priced]
            if not items:
                continue
            try:
                packages.append(
                    price_package(
                        rates,
                        name=suggested.name,
                        items=items,
                        package_price=suggested.package_price,
                        description=suggested.description,
                        advisory_suggested=True,
                    )
                )
            except IncompletePackageError:
                logger.info("advisory_package_dropped", name=suggested.name)
        return packages


def _season(month: int | None) -> str:
    if month is None:
        return "regular season"
    return "festive season (higher demand)" if is_festive_month(month) else "regular season"


def _fallback_position(metrics: CreatorMetrics) -> str:
    reach = metrics.total_reach
    return (
        f"{metrics.niche} creator with {reach:,} total followers and "
        f"{metrics.average_engagement_rate}% average engagement"
    )


def _local_reasoning(
    metrics: CreatorMetrics, platform: Platform, breakdown: PriceBreakdown
) -> str:
    metric = metrics.for_platform(platform)
    followers = metric.followers if metric else 0
    engagement = metric.engagement_rate if metric else 0
    text = (
        f"Based on {followers:,} followers, {engagement}% engagement, "
        f"{metrics.niche} niche and {metrics.location.city_tier} location"
    )
    if breakdown.floor_applied:
        text += "; raised to the minimum for this audience size"
    return text
