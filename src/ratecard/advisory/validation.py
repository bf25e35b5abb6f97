"""Deterministic sanitization of advisory output.

Nothing the advisory model returns is trusted as-is: unknown platforms and
deliverable types are dropped, numbers are clamped, and package lists are
bounded before anything reaches a catalog.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from ratecard.advisory.models import (
    AdvisoryPackage,
    AdvisoryRate,
    AdvisoryResponse,
    AdvisorySuggestion,
    MarketInsights,
    SuggestedPackage,
)
from ratecard.domain.models import PackageItem
from ratecard.domain.types import DeliverableType, Platform, is_valid_deliverable

logger = structlog.get_logger()

PRICE_UPPER_BOUND = 10_000_000
MAX_PACKAGES = 3
MIN_ITEM_QUANTITY = 1
MAX_ITEM_QUANTITY = 100
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def clamp_price(value: int) -> Decimal:
    """Clamp a price to ``[0, PRICE_UPPER_BOUND]``."""
    return Decimal(clamp(value, 0, PRICE_UPPER_BOUND))


def _sanitize_package(package: SuggestedPackage) -> AdvisoryPackage | None:
    name = package.name.strip()[:MAX_NAME_LENGTH]
    if not name:
        return None
    items = [
        PackageItem(
            platform=Platform(item.platform),
            deliverable_type=DeliverableType(item.deliverable_type),
            quantity=clamp(item.quantity, MIN_ITEM_QUANTITY, MAX_ITEM_QUANTITY),
        )
        for item in package.items
        if is_valid_deliverable(item.platform, item.deliverable_type)
    ]
    if not items:
        return None
    return AdvisoryPackage(
        name=name,
        description=package.description.strip()[:MAX_DESCRIPTION_LENGTH],
        items=items,
        package_price=clamp_price(package.package_price),
    )


def sanitize_response(response: AdvisoryResponse, season: str = "") -> AdvisorySuggestion:
    """Convert a raw advisory response into a trusted suggestion.

    Rules:
    - Rates for unknown platform/deliverable pairs are dropped; the first
      suggestion for a pair wins.
    - Every price is clamped to ``[0, PRICE_UPPER_BOUND]`` and each range is
      ordered so ``min_price <= max_price``.
    - Package items are validated the same way and quantities clamped to
      ``[1, 100]``; packages left without items, or beyond the first
      ``MAX_PACKAGES`` valid ones, are dropped.
    - Confidence is clamped to ``[0, 100]``.

    Args:
        response: The parsed structured output.
        season: Season label recorded on the market insights.

    Returns:
        An AdvisorySuggestion containing only trusted values.
    """
    rates: list[AdvisoryRate] = []
    seen: set[tuple[str, str]] = set()
    dropped = 0
    for rate in response.rates:
        key = (rate.platform, rate.deliverable_type)
        if key in seen or not is_valid_deliverable(*key):
            dropped += 1
            continue
        seen.add(key)
        low, high = sorted((clamp_price(rate.min_price), clamp_price(rate.max_price)))
        rates.append(
            AdvisoryRate(
                platform=Platform(rate.platform),
                deliverable_type=DeliverableType(rate.deliverable_type),
                suggested_price=clamp_price(rate.suggested_price),
                min_price=low,
                max_price=high,
                reasoning=rate.reasoning.strip(),
            )
        )

    packages: list[AdvisoryPackage] = []
    names: set[str] = set()
    for suggested in response.packages:
        if len(packages) >= MAX_PACKAGES:
            break
        package = _sanitize_package(suggested)
        if package is None or package.name in names:
            dropped += 1
            continue
        names.add(package.name)
        packages.append(package)

    if dropped:
        logger.info("advisory_entries_dropped", count=dropped)

    insights = response.market_insights
    return AdvisorySuggestion(
        rates=rates,
        packages=packages,
        market_insights=MarketInsights(
            position=insights.position.strip(),
            strengths=[s.strip() for s in insights.strengths if s.strip()],
            recommendations=[r.strip() for r in insights.recommendations if r.strip()],
            confidence=clamp(insights.confidence, 0, 100),
            season=season,
        ),
    )
