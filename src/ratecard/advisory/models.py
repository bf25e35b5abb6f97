"""Pydantic models defining the structured I/O contract with the advisory service.

Two layers:
- ``AdvisoryResponse`` and its parts are the raw structured output parsed
  from the model.  Platform and deliverable names are plain strings and
  numbers are unbounded so that nothing is trusted yet.
- ``AdvisorySuggestion`` is the sanitized result: known platform/deliverable
  pairs only, numbers clamped to their allowed ranges.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from ratecard.domain.models import PackageItem
from ratecard.domain.types import DeliverableType, Platform

# ---------------------------------------------------------------------------
# Raw structured output
# ---------------------------------------------------------------------------


class SuggestedRate(BaseModel):
    """A price suggestion for one deliverable."""

    platform: str = Field(description="Platform name, e.g. 'instagram'")
    deliverable_type: str = Field(description="Deliverable type, e.g. 'reel'")
    suggested_price: int = Field(description="Suggested price in whole rupees")
    min_price: int = Field(description="Low end of the market range in whole rupees")
    max_price: int = Field(description="High end of the market range in whole rupees")
    reasoning: str = Field(default="", description="One sentence justifying the price")


class SuggestedPackageItem(BaseModel):
    platform: str
    deliverable_type: str
    quantity: int = Field(description="Number of this deliverable in the package")


class SuggestedPackage(BaseModel):
    name: str = Field(description="Short package name")
    description: str = Field(default="", description="One-line package description")
    items: list[SuggestedPackageItem]
    package_price: int = Field(description="Bundle price in whole rupees")


class SuggestedInsights(BaseModel):
    position: str = Field(description="One-line summary of the creator's market position")
    strengths: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence: int = Field(description="Confidence in the suggestions, 0 to 100")


class AdvisoryResponse(BaseModel):
    """Structured output requested from the advisory model."""

    rates: list[SuggestedRate]
    packages: list[SuggestedPackage] = Field(default_factory=list)
    market_insights: SuggestedInsights


# ---------------------------------------------------------------------------
# Sanitized result
# ---------------------------------------------------------------------------


class AdvisoryRate(BaseModel, frozen=True):
    platform: Platform
    deliverable_type: DeliverableType
    suggested_price: Decimal
    min_price: Decimal
    max_price: Decimal
    reasoning: str = ""


class AdvisoryPackage(BaseModel, frozen=True):
    name: str
    description: str = ""
    items: list[PackageItem]
    package_price: Decimal


class MarketInsights(BaseModel, frozen=True):
    """Display-only market commentary stored with a catalog."""

    position: str = ""
    strengths: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    confidence: int = Field(default=90, ge=0, le=100)
    season: str = ""


class AdvisorySuggestion(BaseModel, frozen=True):
    """Sanitized advisory output, safe to merge into a catalog."""

    rates: list[AdvisoryRate] = Field(default_factory=list)
    packages: list[AdvisoryPackage] = Field(default_factory=list)
    market_insights: MarketInsights = Field(default_factory=MarketInsights)

    def rate_for(
        self, platform: Platform, deliverable_type: DeliverableType
    ) -> AdvisoryRate | None:
        for rate in self.rates:
            if rate.platform == platform and rate.deliverable_type == deliverable_type:
                return rate
        return None


class AdvisoryStatus(Enum):
    """Sentinel returned instead of a suggestion when the service is unusable."""

    UNAVAILABLE = "unavailable"


UNAVAILABLE = AdvisoryStatus.UNAVAILABLE
