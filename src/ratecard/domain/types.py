"""Domain enumerations and platform-deliverable mappings for the rate card engine."""

from enum import StrEnum


class Platform(StrEnum):
    """Supported social media platforms."""

    INSTAGRAM = "instagram"
    YOUTUBE = "youtube"
    LINKEDIN = "linkedin"
    TWITTER = "twitter"
    FACEBOOK = "facebook"


class DeliverableType(StrEnum):
    """Deliverable types offered across platforms.

    Some types (``post``, ``reel``, ``story``, ``video``, ``live``) exist on
    more than one platform; a deliverable is always identified by the
    ``(platform, deliverable_type)`` pair.
    """

    REEL = "reel"
    POST = "post"
    STORY = "story"
    CAROUSEL = "carousel"
    IGTV = "igtv"
    LIVE = "live"
    VIDEO = "video"
    SHORT = "short"
    COMMUNITY_POST = "community_post"
    LIVE_STREAM = "live_stream"
    ARTICLE = "article"
    NEWSLETTER = "newsletter"
    THREAD = "thread"
    SPACE = "space"


class Niche(StrEnum):
    """Creator content categories."""

    FASHION = "fashion"
    BEAUTY = "beauty"
    TECH = "tech"
    FINANCE = "finance"
    FOOD = "food"
    TRAVEL = "travel"
    HOME_STYLING = "home styling"
    LIFESTYLE = "lifestyle"
    FITNESS = "fitness"
    GAMING = "gaming"
    EDUCATION = "education"
    ENTERTAINMENT = "entertainment"
    BUSINESS = "business"
    HEALTH = "health"
    PARENTING = "parenting"
    SPORTS = "sports"
    MUSIC = "music"
    ART = "art"
    OTHER = "other"


class CityTier(StrEnum):
    """Regional pricing tiers, most expensive first."""

    METRO = "metro"
    TIER1 = "tier1"
    TIER2 = "tier2"
    TIER3 = "tier3"


class Experience(StrEnum):
    """Creator tenure brackets."""

    BEGINNER = "beginner"
    ONE_TO_TWO_YEARS = "1-2_years"
    TWO_TO_FIVE_YEARS = "2-5_years"
    FIVE_PLUS_YEARS = "5+_years"


class MarketPosition(StrEnum):
    """Where a chosen price sits inside its market band."""

    BELOW_MARKET = "below_market"
    AT_MARKET = "at_market"
    ABOVE_MARKET = "above_market"
    PREMIUM = "premium"


class CatalogStatus(StrEnum):
    """Lifecycle states of a catalog.

    ``EXPIRED`` is never stored; it is derived from an ``ACTIVE`` catalog
    whose public expiry has passed.
    """

    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class ChangeType(StrEnum):
    """Tags recorded on history snapshots."""

    METRICS_UPDATE = "metrics_update"
    PRICING_CHANGE = "pricing_change"
    PACKAGE_UPDATE = "package_update"
    TERMS_UPDATE = "terms_update"
    RESTORE = "restore"


class SubscriptionTier(StrEnum):
    """Subscription plans allowed to own catalogs."""

    PRO = "pro"
    ELITE = "elite"
    AGENCY_STARTER = "agency_starter"
    AGENCY_PRO = "agency_pro"


class TurnaroundUnit(StrEnum):
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


class PaymentTerms(StrEnum):
    ADVANCE_100 = "100_advance"
    SPLIT_50_50 = "50_50"
    SPLIT_30_70 = "30_70"
    ON_DELIVERY = "on_delivery"
    NET_15 = "net_15"
    NET_30 = "net_30"
    CUSTOM = "custom"


# Mapping of platforms to the deliverable universe priced for them
PLATFORM_DELIVERABLES: dict[Platform, tuple[DeliverableType, ...]] = {
    Platform.INSTAGRAM: (
        DeliverableType.REEL,
        DeliverableType.POST,
        DeliverableType.STORY,
        DeliverableType.CAROUSEL,
        DeliverableType.IGTV,
        DeliverableType.LIVE,
    ),
    Platform.YOUTUBE: (
        DeliverableType.VIDEO,
        DeliverableType.SHORT,
        DeliverableType.COMMUNITY_POST,
        DeliverableType.LIVE_STREAM,
    ),
    Platform.LINKEDIN: (
        DeliverableType.POST,
        DeliverableType.ARTICLE,
        DeliverableType.VIDEO,
        DeliverableType.NEWSLETTER,
    ),
    Platform.TWITTER: (
        DeliverableType.POST,
        DeliverableType.THREAD,
        DeliverableType.SPACE,
    ),
    Platform.FACEBOOK: (
        DeliverableType.POST,
        DeliverableType.REEL,
        DeliverableType.STORY,
        DeliverableType.LIVE,
    ),
}


def is_valid_deliverable(platform: str, deliverable_type: str) -> bool:
    """Return True if *deliverable_type* is offered on *platform*.

    Accepts raw strings so untrusted input (advisory responses) can be
    checked without raising.
    """
    try:
        return DeliverableType(deliverable_type) in PLATFORM_DELIVERABLES[Platform(platform)]
    except (KeyError, ValueError):
        return False


def validate_platform_deliverable(
    platform: Platform, deliverable_type: DeliverableType
) -> None:
    """Validate that a deliverable type is offered on the given platform.

    Args:
        platform: The platform to validate against.
        deliverable_type: The deliverable type to validate.

    Raises:
        ValueError: If the deliverable type is not offered on the platform.
    """
    valid_types = PLATFORM_DELIVERABLES.get(platform, ())
    if deliverable_type not in valid_types:
        raise ValueError(
            f"{deliverable_type} is not valid for {platform}. "
            f"Valid types: {', '.join(sorted(valid_types))}"
        )
