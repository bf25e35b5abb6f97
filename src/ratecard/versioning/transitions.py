"""Catalog status transitions.

``expired`` never appears here: it is derived at read time from an active
catalog whose public expiry has passed (see ``effective_status``).
"""

from datetime import datetime
from enum import StrEnum

from ratecard.domain.errors import InvalidTransitionError
from ratecard.domain.models import Catalog
from ratecard.domain.types import CatalogStatus


class CatalogEvent(StrEnum):
    """Events that can change or require a catalog status."""

    EDIT = "edit"
    PUBLISH = "publish"
    ARCHIVE = "archive"


# All valid (current_status, event) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[CatalogStatus, str], CatalogStatus] = {
    # From DRAFT
    (CatalogStatus.DRAFT, CatalogEvent.EDIT): CatalogStatus.DRAFT,
    (CatalogStatus.DRAFT, CatalogEvent.PUBLISH): CatalogStatus.ACTIVE,
    (CatalogStatus.DRAFT, CatalogEvent.ARCHIVE): CatalogStatus.ARCHIVED,
    # From ACTIVE
    (CatalogStatus.ACTIVE, CatalogEvent.EDIT): CatalogStatus.ACTIVE,
    (CatalogStatus.ACTIVE, CatalogEvent.PUBLISH): CatalogStatus.ACTIVE,
    (CatalogStatus.ACTIVE, CatalogEvent.ARCHIVE): CatalogStatus.ARCHIVED,
}

# Statuses that reject all events
TERMINAL_STATUSES: frozenset[CatalogStatus] = frozenset({CatalogStatus.ARCHIVED})


def next_status(current: CatalogStatus, event: str) -> CatalogStatus:
    """Return the status reached by applying *event* in *current*.

    Raises:
        InvalidTransitionError: If the event is not allowed in *current*.
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransitionError(str(current), str(event)) from None


def effective_status(catalog: Catalog, now: datetime) -> CatalogStatus:
    """Return the stored status, or EXPIRED for an active catalog past expiry."""
    status = catalog.version.status
    expires_at = catalog.sharing.expires_at
    if status == CatalogStatus.ACTIVE and expires_at is not None and expires_at <= now:
        return CatalogStatus.EXPIRED
    return status
