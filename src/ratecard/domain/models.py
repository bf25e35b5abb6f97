"""Pydantic v2 models for the rate card domain.

Catalog state is modelled as frozen value objects: every mutation produces a
new ``Catalog`` via ``model_copy`` so no caller can alias and mutate another
catalog's rates or packages.  Monetary values are ``Decimal`` in whole
currency units -- float inputs are rejected.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ratecard.domain.types import (
    CatalogStatus,
    ChangeType,
    CityTier,
    DeliverableType,
    Experience,
    MarketPosition,
    Niche,
    PaymentTerms,
    Platform,
    SubscriptionTier,
    TurnaroundUnit,
    validate_platform_deliverable,
)

MAX_PRICE = Decimal("10000000")


def new_id() -> str:
    """Return a new opaque entity identifier."""
    return uuid.uuid4().hex


def _reject_float(v: object) -> object:
    if isinstance(v, float):
        raise ValueError("Use Decimal, int or string, not float, for monetary values")
    return v


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """The ``{ownerId, subscriptionTier}`` pair supplied by the auth service."""

    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(min_length=1)
    subscription_tier: SubscriptionTier


# ---------------------------------------------------------------------------
# Creator metrics
# ---------------------------------------------------------------------------


class PlatformMetric(BaseModel):
    """Audience metrics for one platform."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    followers: int = Field(ge=0, le=1_000_000_000)
    engagement_rate: float = Field(ge=0, le=100)
    avg_views: int | None = Field(default=None, ge=0)
    avg_likes: int | None = Field(default=None, ge=0)


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: str = Field(min_length=1, max_length=50)
    city_tier: CityTier = CityTier.TIER1
    state: str | None = Field(default=None, max_length=50)


class CreatorMetrics(BaseModel):
    """Immutable input to pricing; replaced wholesale on update."""

    model_config = ConfigDict(frozen=True)

    platforms: list[PlatformMetric] = Field(min_length=1)
    niche: Niche
    location: Location
    languages: list[str] = Field(default_factory=list)
    experience: Experience = Experience.BEGINNER

    @field_validator("platforms")
    @classmethod
    def platforms_must_be_unique(cls, v: list[PlatformMetric]) -> list[PlatformMetric]:
        """Ensure each platform appears at most once."""
        names = [p.platform for p in v]
        if len(names) != len(set(names)):
            raise ValueError("each platform may appear only once")
        return v

    @property
    def total_reach(self) -> int:
        return sum(p.followers for p in self.platforms)

    @property
    def average_engagement_rate(self) -> float:
        return round(sum(p.engagement_rate for p in self.platforms) / len(self.platforms), 2)

    def for_platform(self, platform: Platform) -> PlatformMetric | None:
        for metric in self.platforms:
            if metric.platform == platform:
                return metric
        return None


# ---------------------------------------------------------------------------
# Deliverables and packages
# ---------------------------------------------------------------------------


class Turnaround(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: int = Field(default=3, ge=1)
    unit: TurnaroundUnit = TurnaroundUnit.DAYS


class DeliverableRate(BaseModel):
    """A single priced deliverable.

    ``advisory_suggested`` stays ``None`` when the advisory service never
    priced this deliverable; ``chosen_price`` is always present.
    """

    model_config = ConfigDict(frozen=True)

    platform: Platform
    deliverable_type: DeliverableType
    advisory_suggested: Decimal | None = Field(default=None, ge=0)
    chosen_price: Decimal = Field(ge=0, le=MAX_PRICE)
    market_position: MarketPosition = MarketPosition.AT_MARKET
    turnaround: Turnaround = Field(default_factory=Turnaround)
    revisions_included: int = Field(default=2, ge=0, le=10)
    reasoning: str = ""

    @field_validator("advisory_suggested", "chosen_price", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)

    @model_validator(mode="after")
    def deliverable_type_must_match_platform(self) -> DeliverableRate:
        validate_platform_deliverable(self.platform, self.deliverable_type)
        return self


class PackageItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: Platform
    deliverable_type: DeliverableType
    quantity: int = Field(default=1, ge=1, le=100)

    @model_validator(mode="after")
    def deliverable_type_must_match_platform(self) -> PackageItem:
        validate_platform_deliverable(self.platform, self.deliverable_type)
        return self

    @property
    def label(self) -> str:
        return f"{self.platform}:{self.deliverable_type}"


class Savings(BaseModel):
    """Package discount; a negative ``amount`` signals a markup."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Decimal("0")
    percentage: int = 0


class Package(BaseModel):
    """A bundle of deliverables sold at a single price.

    ``individual_total`` is derived from the catalog's rates when the package
    is built or edited and is never supplied by callers.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    items: list[PackageItem] = Field(min_length=1)
    individual_total: Decimal = Field(ge=0)
    package_price: Decimal = Field(ge=0, le=MAX_PRICE)
    savings: Savings = Field(default_factory=Savings)
    incomplete: bool = False
    advisory_suggested: bool = False
    validity_days: int = Field(default=30, ge=1, le=365)
    is_popular: bool = False

    @field_validator("package_price", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        return _reject_float(v)


# ---------------------------------------------------------------------------
# Terms, sharing, versioning
# ---------------------------------------------------------------------------


class ProfessionalTerms(BaseModel):
    """Commercial terms quoted alongside the rates."""

    model_config = ConfigDict(frozen=True)

    payment_terms: PaymentTerms = PaymentTerms.SPLIT_50_50
    custom_terms: str | None = Field(default=None, max_length=500)
    usage_duration: Literal[
        "1_month", "3_months", "6_months", "1_year", "perpetual", "custom"
    ] = "3_months"
    usage_media: list[
        Literal["owned_media", "paid_media", "all_digital", "print", "broadcast", "all"]
    ] = Field(default_factory=list)
    geography: Literal["india", "asia", "global", "custom"] = "india"
    exclusivity_required: bool = False
    exclusivity_days: int | None = Field(default=None, ge=1)
    revision_policy: str | None = Field(default=None, max_length=500)
    cancellation_terms: str | None = Field(default=None, max_length=500)
    additional_notes: str | None = Field(default=None, max_length=1000)


class ViewRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    ip_hash: str | None = None
    user_agent: str | None = None
    referrer: str | None = None


class Sharing(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_public: bool = False
    public_id: str | None = None
    public_url: str | None = None
    allow_download: bool = True
    show_contact_form: bool = True
    require_password: bool = False
    password_hash: str | None = None
    expires_at: datetime | None = None
    total_views: int = 0
    last_viewed_at: datetime | None = None
    view_log: list[ViewRecord] = Field(default_factory=list)


class VersionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: int = Field(default=1, ge=1)
    status: CatalogStatus = CatalogStatus.DRAFT
    published_at: datetime | None = None
    archived_at: datetime | None = None


class AdvisoryMetadata(BaseModel):
    """Provenance of the suggested prices on a catalog."""

    model_config = ConfigDict(frozen=True)

    source: Literal["advisory", "fallback"] = "fallback"
    confidence: int = Field(default=70, ge=0, le=100)
    generated_at: datetime | None = None
    market_insights: dict[str, Any] = Field(default_factory=dict)
    acceptance_rate: int | None = Field(default=None, ge=0, le=100)


# ---------------------------------------------------------------------------
# Catalog and history
# ---------------------------------------------------------------------------


class CatalogSnapshot(BaseModel):
    """The priced state of a catalog captured in history."""

    model_config = ConfigDict(frozen=True)

    metrics: CreatorMetrics
    rates: list[DeliverableRate]
    packages: list[Package]
    terms: ProfessionalTerms


class Catalog(BaseModel):
    """A creator's versioned set of priced deliverables and packages."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    owner_id: str
    subscription_tier: SubscriptionTier
    title: str = Field(default="My Rate Card", min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    metrics: CreatorMetrics
    rates: list[DeliverableRate] = Field(default_factory=list)
    packages: list[Package] = Field(default_factory=list)
    terms: ProfessionalTerms = Field(default_factory=ProfessionalTerms)
    version: VersionInfo = Field(default_factory=VersionInfo)
    sharing: Sharing = Field(default_factory=Sharing)
    advisory: AdvisoryMetadata = Field(default_factory=AdvisoryMetadata)
    is_deleted: bool = False
    deleted_at: datetime | None = None
    last_edited_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("rates")
    @classmethod
    def rates_must_be_unique(cls, v: list[DeliverableRate]) -> list[DeliverableRate]:
        """Ensure each (platform, deliverable_type) pair is priced once."""
        keys = [(r.platform, r.deliverable_type) for r in v]
        if len(keys) != len(set(keys)):
            raise ValueError("each platform/deliverable pair may be priced only once")
        return v

    @field_validator("packages")
    @classmethod
    def package_names_must_be_unique(cls, v: list[Package]) -> list[Package]:
        names = [p.name for p in v]
        if len(names) != len(set(names)):
            raise ValueError("package names must be unique within a rate card")
        return v

    def find_rate(
        self, platform: Platform, deliverable_type: DeliverableType
    ) -> DeliverableRate | None:
        for rate in self.rates:
            if rate.platform == platform and rate.deliverable_type == deliverable_type:
                return rate
        return None

    def find_package(self, package_id: str) -> Package | None:
        for package in self.packages:
            if package.id == package_id:
                return package
        return None

    def rates_by_platform(self) -> dict[Platform, list[DeliverableRate]]:
        """Group rates by platform, preserving catalog order."""
        grouped: dict[Platform, list[DeliverableRate]] = {}
        for rate in self.rates:
            grouped.setdefault(rate.platform, []).append(rate)
        return grouped

    def snapshot(self) -> CatalogSnapshot:
        return CatalogSnapshot(
            metrics=self.metrics,
            rates=list(self.rates),
            packages=list(self.packages),
            terms=self.terms,
        )


class HistorySnapshot(BaseModel):
    """Append-only record of a catalog's pre-mutation state.

    ``catalog_id`` is a lookup-only back-reference; history is never used to
    mutate a catalog except by restoring its fields wholesale.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    catalog_id: str
    version: int = Field(ge=1)
    change_type: ChangeType
    change_summary: str = Field(default="", max_length=500)
    edited_by: str | None = None
    snapshot: CatalogSnapshot
    created_at: datetime


class HistoryPage(BaseModel):
    entries: list[HistorySnapshot]
    total: int
    page: int
    pages: int
    limit: int


class CatalogPage(BaseModel):
    catalogs: list[Catalog]
    total: int
    page: int
    pages: int
    limit: int


# ---------------------------------------------------------------------------
# Operation inputs
# ---------------------------------------------------------------------------


class RateInput(BaseModel):
    """Caller-supplied rate; advisory and market fields are derived."""

    platform: Platform
    deliverable_type: DeliverableType
    chosen_price: Decimal = Field(ge=0, le=MAX_PRICE)
    turnaround: Turnaround = Field(default_factory=Turnaround)
    revisions_included: int = Field(default=2, ge=0, le=10)

    @field_validator("chosen_price", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        return _reject_float(v)

    @model_validator(mode="after")
    def deliverable_type_must_match_platform(self) -> RateInput:
        validate_platform_deliverable(self.platform, self.deliverable_type)
        return self


class PackageInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    items: list[PackageItem] = Field(min_length=1)
    package_price: Decimal = Field(ge=0, le=MAX_PRICE)
    validity_days: int = Field(default=30, ge=1, le=365)
    is_popular: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be empty")
        return v.strip()

    @field_validator("package_price", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        return _reject_float(v)


class PackageUpdate(BaseModel):
    """Partial package edit; ``None`` fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    items: list[PackageItem] | None = Field(default=None, min_length=1)
    package_price: Decimal | None = Field(default=None, ge=0, le=MAX_PRICE)
    validity_days: int | None = Field(default=None, ge=1, le=365)
    is_popular: bool | None = None

    @field_validator("package_price", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        return _reject_float(v)


class ShareSettingsUpdate(BaseModel):
    allow_download: bool | None = None
    show_contact_form: bool | None = None
    require_password: bool | None = None
    password: str | None = Field(default=None, min_length=4, max_length=128)
    expiry_days: int | None = Field(default=None, ge=1, le=365)


class ViewContext(BaseModel):
    """Request metadata recorded when a public rate card is viewed."""

    ip_address: str | None = None
    user_agent: str | None = None
    referrer: str | None = None
