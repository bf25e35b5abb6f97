"""Catalog status transitions and the versioned mutation store."""

from ratecard.versioning.store import VersionStore
from ratecard.versioning.transitions import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    CatalogEvent,
    effective_status,
    next_status,
)

__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "CatalogEvent",
    "VersionStore",
    "effective_status",
    "next_status",
]
