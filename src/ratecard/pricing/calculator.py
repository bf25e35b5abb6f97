"""Deterministic local price calculation.

Formula: ``round(followers / 1000 * base_rate * product(multipliers))``,
then lifted to the applicable floor for large audiences and capped at
``MAX_PRICE``.  All arithmetic is Decimal; results are whole currency units
rounded ROUND_HALF_UP.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

import structlog
from pydantic import BaseModel

from ratecard.domain.models import MAX_PRICE, CreatorMetrics, PlatformMetric
from ratecard.domain.types import DeliverableType, Platform
from ratecard.pricing.multipliers import (
    city_tier_multiplier,
    engagement_multiplier,
    experience_multiplier,
    niche_multiplier,
    seasonal_multiplier,
)
from ratecard.pricing.rate_cards import (
    FALLBACK_MINIMUM,
    WHOLE_UNITS,
    get_base_rate,
    get_floor,
)

logger = structlog.get_logger()


class PriceBreakdown(BaseModel, frozen=True):
    """Result of pricing one deliverable locally.

    Attributes:
        price: The final calculated price, floor included.
        multiplicative_price: The price before any floor was applied.
        floor: The floor that was applicable, if any.
        multiplier: The product of all multipliers used.
    """

    price: Decimal
    multiplicative_price: Decimal
    floor: Decimal | None = None
    multiplier: Decimal

    @property
    def floor_applied(self) -> bool:
        return self.floor is not None and self.price > self.multiplicative_price


def to_whole_units(value: Decimal) -> Decimal:
    """Round a monetary value to whole currency units."""
    return value.quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP)


def combined_multiplier(multipliers: Iterable[Decimal]) -> Decimal:
    result = Decimal("1")
    for m in multipliers:
        result *= m
    return result


def creator_multipliers(
    metrics: CreatorMetrics, platform_metric: PlatformMetric, month: int | None = None
) -> tuple[Decimal, ...]:
    """Collect the multipliers that apply to one platform of a creator.

    Args:
        metrics: The creator's full metrics (niche, location, experience).
        platform_metric: The platform being priced (engagement rate).
        month: Calendar month for the seasonal premium, or None to skip it.
    """
    return (
        niche_multiplier(metrics.niche),
        city_tier_multiplier(metrics.location.city_tier),
        engagement_multiplier(platform_metric.engagement_rate),
        experience_multiplier(metrics.experience),
        seasonal_multiplier(month),
    )


def calculate_price(
    followers: int,
    platform: Platform,
    deliverable_type: DeliverableType,
    multipliers: Iterable[Decimal] = (),
) -> PriceBreakdown:
    """Calculate the local price for a deliverable.

    Undefined platform/deliverable combinations are priced at
    ``FALLBACK_MINIMUM``.  Above the macro and mega follower thresholds the
    result is ``max(calculated, floor)``; floors are never averaged in.
    The final price never exceeds ``MAX_PRICE``.

    Args:
        followers: Follower count on the platform.
        platform: The platform the deliverable is published on.
        deliverable_type: The deliverable being priced.
        multipliers: Multipliers to apply, each positive.

    Returns:
        A PriceBreakdown with the final price in whole currency units.
    """
    multiplier = combined_multiplier(multipliers)
    base_rate = get_base_rate(followers, platform, deliverable_type)
    if base_rate is None:
        return PriceBreakdown(
            price=FALLBACK_MINIMUM,
            multiplicative_price=FALLBACK_MINIMUM,
            multiplier=multiplier,
        )

    calculated = to_whole_units(
        Decimal(max(followers, 0)) / Decimal("1000") * base_rate * multiplier
    )
    floor = get_floor(followers, platform, deliverable_type)
    price = max(calculated, floor) if floor is not None else calculated

    if floor is not None and price > calculated:
        logger.debug(
            "pricing_floor_applied",
            platform=platform,
            deliverable_type=deliverable_type,
            followers=followers,
            calculated=str(calculated),
            floor=str(floor),
        )

    if price > MAX_PRICE:
        logger.info(
            "pricing_ceiling_applied",
            platform=platform,
            deliverable_type=deliverable_type,
            followers=followers,
            calculated=str(price),
        )
        price = MAX_PRICE

    return PriceBreakdown(
        price=price,
        multiplicative_price=calculated,
        floor=floor,
        multiplier=multiplier,
    )


def price_for_creator(
    metrics: CreatorMetrics,
    platform: Platform,
    deliverable_type: DeliverableType,
    month: int | None = None,
) -> PriceBreakdown:
    """Price a deliverable for a creator using their metrics on *platform*.

    A platform missing from the metrics is priced as zero followers.
    """
    platform_metric = metrics.for_platform(platform)
    if platform_metric is None:
        platform_metric = PlatformMetric(platform=platform, followers=0, engagement_rate=0)
    return calculate_price(
        platform_metric.followers,
        platform,
        deliverable_type,
        creator_multipliers(metrics, platform_metric, month),
    )
