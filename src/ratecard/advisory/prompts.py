"""Prompt templates for the pricing advisory service.

Templates use Python string placeholders ({variable_name}).  The user prompt
always carries the locally computed expected ranges so the advisory model is
anchored to realistic bounds.
"""

from collections.abc import Mapping

from ratecard.domain.models import CreatorMetrics
from ratecard.domain.types import DeliverableType, Platform
from ratecard.pricing.boundaries import MarketBand

ADVISORY_SYSTEM_PROMPT = """You are an expert in influencer marketing pricing for the \
Indian creator economy. Suggest fair, market-realistic prices for a creator's deliverables.

RULES:
- All prices are whole rupees.
- Stay close to the EXPECTED RANGES given for each deliverable; they come from the \
platform's pricing model and reflect real market rates.
- Only price the deliverables listed under EXPECTED RANGES. Do not invent platforms \
or deliverable types.
- Suggest at most 3 packages. Each package bundles deliverables listed under \
EXPECTED RANGES and is priced below the sum of its items.
- confidence is an integer from 0 to 100.
- Keep reasoning to one sentence per deliverable.
"""

ADVISORY_USER_PROMPT = """Suggest rates for this creator:

CREATOR TIER: {creator_tier}
NICHE: {niche}
LOCATION: {city} ({city_tier})
EXPERIENCE: {experience}
LANGUAGES: {languages}
SEASON: {season}

PLATFORMS:
{platforms}

EXPECTED RANGES (rupees):
{expected_ranges}

Return rates for every deliverable above, up to 3 packages, and market insights."""

# Creator tiers by follower count, largest first
CREATOR_TIERS: tuple[tuple[int, str], ...] = (
    (1_000_000, "mega"),
    (100_000, "macro"),
    (10_000, "micro"),
    (0, "nano"),
)


def creator_tier(followers: int) -> str:
    """Label a follower count as nano, micro, macro or mega."""
    for lower, label in CREATOR_TIERS:
        if followers >= lower:
            return label
    return "nano"


def format_platforms(metrics: CreatorMetrics) -> str:
    lines = []
    for p in metrics.platforms:
        line = f"- {p.platform}: {p.followers:,} followers, {p.engagement_rate}% engagement"
        if p.avg_views is not None:
            line += f", {p.avg_views:,} avg views"
        if p.avg_likes is not None:
            line += f", {p.avg_likes:,} avg likes"
        lines.append(line)
    return "\n".join(lines)


def format_expected_ranges(
    bands: Mapping[tuple[Platform, DeliverableType], MarketBand],
) -> str:
    return "\n".join(
        f"- {platform} {deliverable_type}: {band.minimum:,}-{band.maximum:,}"
        for (platform, deliverable_type), band in bands.items()
    )


def build_advisory_prompt(
    metrics: CreatorMetrics,
    bands: Mapping[tuple[Platform, DeliverableType], MarketBand],
    season: str,
) -> str:
    """Render the user prompt for a pricing request.

    Args:
        metrics: The creator's metrics.
        bands: Local market band per deliverable to price.
        season: Season label, e.g. "regular season".
    """
    largest = max(p.followers for p in metrics.platforms)
    return ADVISORY_USER_PROMPT.format(
        creator_tier=creator_tier(largest),
        niche=metrics.niche,
        city=metrics.location.city,
        city_tier=metrics.location.city_tier,
        experience=metrics.experience,
        languages=", ".join(metrics.languages) or "not specified",
        season=season,
        platforms=format_platforms(metrics),
        expected_ranges=format_expected_ranges(bands),
    )
