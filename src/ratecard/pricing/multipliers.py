"""Pricing multipliers.

Every function here is total: unknown inputs map to a neutral multiplier
rather than raising, so pricing never fails on an unexpected niche or label.
"""

from decimal import Decimal

from ratecard.domain.types import CityTier, Experience, Niche

NEUTRAL = Decimal("1.0")

NICHE_MULTIPLIERS: dict[Niche, Decimal] = {
    Niche.TECH: Decimal("1.5"),
    Niche.FINANCE: Decimal("1.5"),
    Niche.BUSINESS: Decimal("1.4"),
    Niche.FASHION: Decimal("1.3"),
    Niche.BEAUTY: Decimal("1.3"),
    Niche.LIFESTYLE: Decimal("1.2"),
    Niche.FITNESS: Decimal("1.2"),
    Niche.FOOD: Decimal("1.1"),
    Niche.TRAVEL: Decimal("1.1"),
    Niche.HEALTH: Decimal("1.1"),
    Niche.GAMING: Decimal("1.1"),
    Niche.PARENTING: Decimal("1.1"),
    Niche.EDUCATION: Decimal("1.0"),
    Niche.SPORTS: Decimal("1.0"),
    Niche.ART: Decimal("1.0"),
    Niche.OTHER: Decimal("1.0"),
    Niche.ENTERTAINMENT: Decimal("0.9"),
    Niche.MUSIC: Decimal("0.9"),
}

# Ordered most expensive first: metro > tier1 > tier2 > tier3
CITY_TIER_MULTIPLIERS: dict[CityTier, Decimal] = {
    CityTier.METRO: Decimal("1.4"),
    CityTier.TIER1: Decimal("1.1"),
    CityTier.TIER2: Decimal("0.9"),
    CityTier.TIER3: Decimal("0.7"),
}

EXPERIENCE_MULTIPLIERS: dict[Experience, Decimal] = {
    Experience.BEGINNER: Decimal("0.8"),
    Experience.ONE_TO_TWO_YEARS: Decimal("1.0"),
    Experience.TWO_TO_FIVE_YEARS: Decimal("1.2"),
    Experience.FIVE_PLUS_YEARS: Decimal("1.5"),
}

# (exclusive lower bound on engagement %, multiplier), highest first
ENGAGEMENT_STEPS: tuple[tuple[float, Decimal], ...] = (
    (7.0, Decimal("1.5")),
    (5.0, Decimal("1.3")),
    (3.0, Decimal("1.15")),
    (1.0, Decimal("1.0")),
)
ENGAGEMENT_MINIMUM = Decimal("0.85")

FESTIVE_MONTHS: frozenset[int] = frozenset({10, 11, 12, 1, 3})
SEASONAL_PREMIUM = Decimal("1.2")


def niche_multiplier(niche: str) -> Decimal:
    """Return the niche multiplier, 1.0 for niches without a table entry."""
    try:
        return NICHE_MULTIPLIERS.get(Niche(niche), NEUTRAL)
    except ValueError:
        return NEUTRAL


def city_tier_multiplier(city_tier: str) -> Decimal:
    try:
        return CITY_TIER_MULTIPLIERS[CityTier(city_tier)]
    except (KeyError, ValueError):
        return NEUTRAL


def engagement_multiplier(engagement_rate: float) -> Decimal:
    """Step function increasing with engagement rate, never below 0.85."""
    for threshold, multiplier in ENGAGEMENT_STEPS:
        if engagement_rate > threshold:
            return multiplier
    return ENGAGEMENT_MINIMUM


def experience_multiplier(experience: str) -> Decimal:
    try:
        return EXPERIENCE_MULTIPLIERS[Experience(experience)]
    except (KeyError, ValueError):
        return NEUTRAL


def is_festive_month(month: int) -> bool:
    return month in FESTIVE_MONTHS


def seasonal_multiplier(month: int | None) -> Decimal:
    """Return the festive-season premium for *month*, or 1.0.

    Args:
        month: Calendar month 1-12, or None when seasonal pricing is off.
    """
    if month is not None and is_festive_month(month):
        return SEASONAL_PREMIUM
    return NEUTRAL
