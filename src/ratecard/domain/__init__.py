"""Domain types, models, and errors for the rate card engine."""

from ratecard.domain.errors import (
    AlreadyPublishedError,
    CatalogExpiredError,
    CatalogNotFoundError,
    ConflictError,
    DuplicatePackageError,
    HistoryNotFoundError,
    IncompleteCatalogError,
    IncompletePackageError,
    InvalidTransitionError,
    NotFoundError,
    PackageNotFoundError,
    PasswordRequiredError,
    QuotaExceededError,
    RateCardError,
    TransactionFailedError,
    ValidationFailedError,
    VersionConflictError,
)
from ratecard.domain.models import (
    AdvisoryMetadata,
    Catalog,
    CatalogSnapshot,
    CreatorMetrics,
    DeliverableRate,
    HistorySnapshot,
    Identity,
    Location,
    Package,
    PackageItem,
    PlatformMetric,
    ProfessionalTerms,
    Savings,
)
from ratecard.domain.types import (
    PLATFORM_DELIVERABLES,
    CatalogStatus,
    ChangeType,
    CityTier,
    DeliverableType,
    Experience,
    MarketPosition,
    Niche,
    Platform,
    SubscriptionTier,
    is_valid_deliverable,
    validate_platform_deliverable,
)

__all__ = [
    "PLATFORM_DELIVERABLES",
    "AdvisoryMetadata",
    "AlreadyPublishedError",
    "Catalog",
    "CatalogExpiredError",
    "CatalogNotFoundError",
    "CatalogSnapshot",
    "CatalogStatus",
    "ChangeType",
    "CityTier",
    "ConflictError",
    "CreatorMetrics",
    "DeliverableRate",
    "DeliverableType",
    "DuplicatePackageError",
    "Experience",
    "HistoryNotFoundError",
    "HistorySnapshot",
    "Identity",
    "IncompleteCatalogError",
    "IncompletePackageError",
    "InvalidTransitionError",
    "Location",
    "MarketPosition",
    "Niche",
    "NotFoundError",
    "Package",
    "PackageItem",
    "PackageNotFoundError",
    "PasswordRequiredError",
    "Platform",
    "PlatformMetric",
    "ProfessionalTerms",
    "QuotaExceededError",
    "RateCardError",
    "Savings",
    "SubscriptionTier",
    "TransactionFailedError",
    "ValidationFailedError",
    "VersionConflictError",
    "is_valid_deliverable",
    "validate_platform_deliverable",
]
