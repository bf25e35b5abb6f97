"""QuotaGuard: per-subscription-tier ceilings on live catalogs.

The count is taken before creation and is not locked against concurrent
creations, so two simultaneous requests may leave an owner one catalog over
the limit.  The limit is soft.
"""

from __future__ import annotations

import structlog

from ratecard.domain.errors import QuotaExceededError
from ratecard.domain.types import SubscriptionTier
from ratecard.observability.metrics import QUOTA_REJECTIONS

logger = structlog.get_logger()

UNLIMITED = -1

TIER_LIMITS: dict[SubscriptionTier, int] = {
    SubscriptionTier.PRO: 3,
    SubscriptionTier.ELITE: UNLIMITED,
    SubscriptionTier.AGENCY_STARTER: 10,
    SubscriptionTier.AGENCY_PRO: UNLIMITED,
}


def tier_limit(tier: SubscriptionTier) -> int:
    """Return the catalog ceiling for *tier*, ``UNLIMITED`` (-1) for none."""
    return TIER_LIMITS.get(tier, 0)


def authorize(tier: SubscriptionTier, current_active_count: int) -> None:
    """Allow creation of one more catalog, or raise.

    Args:
        tier: The owner's subscription tier.
        current_active_count: The owner's non-archived, non-deleted catalogs.

    Raises:
        QuotaExceededError: If the tier ceiling has been reached.
    """
    limit = tier_limit(tier)
    if limit == UNLIMITED or current_active_count < limit:
        return
    QUOTA_REJECTIONS.labels(tier=str(tier)).inc()
    logger.info("quota_exceeded", tier=tier, limit=limit, current=current_active_count)
    raise QuotaExceededError(str(tier), limit, current_active_count)
