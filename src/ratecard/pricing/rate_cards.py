"""Base-rate and floor tables for deliverable pricing.

Base rates are quoted per 1,000 followers and tiered by follower bracket.
Within a platform/deliverable row the rates never decrease from one bracket
to the next, which keeps the calculated price non-decreasing in followers.
"""

from decimal import ROUND_HALF_UP, Decimal

from ratecard.domain.types import DeliverableType, Platform

# Whole currency units; prices are never quoted with a fractional part
WHOLE_UNITS = Decimal("1")

# Price for any platform/deliverable combination without a base rate
FALLBACK_MINIMUM = Decimal("10000")

# Lower bounds (inclusive) of the follower brackets:
# <10k, 10k-50k, 50k-100k, 100k-500k, 500k-1M, >=1M
FOLLOWER_BRACKETS: tuple[int, ...] = (0, 10_000, 50_000, 100_000, 500_000, 1_000_000)

# Floors apply strictly above these follower counts
MACRO_THRESHOLD = 100_000
MEGA_THRESHOLD = 1_000_000

# Per-bracket scaling applied to the reference per-1k rate
_BRACKET_SCALE: tuple[Decimal, ...] = (
    Decimal("0.75"),
    Decimal("0.85"),
    Decimal("1.00"),
    Decimal("1.00"),
    Decimal("1.05"),
    Decimal("1.10"),
)

# Reference rate per 1,000 followers for the 50k-500k brackets
_REFERENCE_RATES: dict[Platform, dict[DeliverableType, Decimal]] = {
    Platform.INSTAGRAM: {
        DeliverableType.REEL: Decimal("80"),
        DeliverableType.POST: Decimal("50"),
        DeliverableType.STORY: Decimal("15"),
        DeliverableType.CAROUSEL: Decimal("60"),
        DeliverableType.IGTV: Decimal("90"),
        DeliverableType.LIVE: Decimal("100"),
    },
    Platform.YOUTUBE: {
        DeliverableType.VIDEO: Decimal("200"),
        DeliverableType.SHORT: Decimal("60"),
        DeliverableType.COMMUNITY_POST: Decimal("20"),
        DeliverableType.LIVE_STREAM: Decimal("250"),
    },
    Platform.LINKEDIN: {
        DeliverableType.POST: Decimal("40"),
        DeliverableType.ARTICLE: Decimal("80"),
        DeliverableType.VIDEO: Decimal("100"),
        DeliverableType.NEWSLETTER: Decimal("120"),
    },
    Platform.TWITTER: {
        DeliverableType.POST: Decimal("25"),
        DeliverableType.THREAD: Decimal("45"),
        DeliverableType.SPACE: Decimal("80"),
    },
    Platform.FACEBOOK: {
        DeliverableType.POST: Decimal("30"),
        DeliverableType.REEL: Decimal("70"),
        DeliverableType.STORY: Decimal("20"),
        DeliverableType.LIVE: Decimal("90"),
    },
}

BASE_RATES: dict[Platform, dict[DeliverableType, tuple[Decimal, ...]]] = {
    platform: {
        dt: tuple(
            (rate * scale).quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP)
            for scale in _BRACKET_SCALE
        )
        for dt, rate in rates.items()
    }
    for platform, rates in _REFERENCE_RATES.items()
}

# Minimum prices for creators above MACRO_THRESHOLD followers
MACRO_FLOORS: dict[Platform, dict[DeliverableType, Decimal]] = {
    Platform.INSTAGRAM: {
        DeliverableType.REEL: Decimal("25000"),
        DeliverableType.POST: Decimal("15000"),
        DeliverableType.STORY: Decimal("5000"),
    },
    Platform.YOUTUBE: {
        DeliverableType.VIDEO: Decimal("75000"),
        DeliverableType.SHORT: Decimal("35000"),
    },
}

# Minimum prices for creators above MEGA_THRESHOLD followers
MEGA_FLOORS: dict[Platform, dict[DeliverableType, Decimal]] = {
    Platform.INSTAGRAM: {
        DeliverableType.REEL: Decimal("100000"),
        DeliverableType.POST: Decimal("50000"),
        DeliverableType.STORY: Decimal("20000"),
        DeliverableType.CAROUSEL: Decimal("75000"),
        DeliverableType.IGTV: Decimal("120000"),
    },
    Platform.YOUTUBE: {
        DeliverableType.VIDEO: Decimal("250000"),
        DeliverableType.SHORT: Decimal("120000"),
        DeliverableType.COMMUNITY_POST: Decimal("25000"),
    },
    Platform.LINKEDIN: {
        DeliverableType.POST: Decimal("40000"),
        DeliverableType.ARTICLE: Decimal("80000"),
        DeliverableType.VIDEO: Decimal("100000"),
    },
    Platform.TWITTER: {
        DeliverableType.POST: Decimal("30000"),
        DeliverableType.THREAD: Decimal("50000"),
    },
    Platform.FACEBOOK: {
        DeliverableType.POST: Decimal("35000"),
        DeliverableType.REEL: Decimal("80000"),
        DeliverableType.STORY: Decimal("25000"),
    },
}


def follower_bracket(followers: int) -> int:
    """Return the index of the follower bracket containing *followers*.

    Args:
        followers: Follower count; negative counts are treated as zero.

    Returns:
        An index into ``FOLLOWER_BRACKETS`` (0 for <10k, 5 for >=1M).
    """
    index = 0
    for i, lower in enumerate(FOLLOWER_BRACKETS):
        if followers >= lower:
            index = i
    return index


def get_base_rate(
    followers: int, platform: Platform, deliverable_type: DeliverableType
) -> Decimal | None:
    """Look up the per-1k base rate, or None for an undefined combination."""
    row = BASE_RATES.get(platform, {}).get(deliverable_type)
    if row is None:
        return None
    return row[follower_bracket(followers)]


def get_floor(
    followers: int, platform: Platform, deliverable_type: DeliverableType
) -> Decimal | None:
    """Return the highest floor applicable at *followers*, if any.

    Above ``MEGA_THRESHOLD`` both tables apply and the larger value wins, so
    crossing a threshold never lowers the floor.
    """
    floors: list[Decimal] = []
    if followers > MACRO_THRESHOLD:
        macro = MACRO_FLOORS.get(platform, {}).get(deliverable_type)
        if macro is not None:
            floors.append(macro)
    if followers > MEGA_THRESHOLD:
        mega = MEGA_FLOORS.get(platform, {}).get(deliverable_type)
        if mega is not None:
            floors.append(mega)
    return max(floors) if floors else None
