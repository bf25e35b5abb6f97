"""Pricing advisory: prompts, structured output contract, and client."""

from ratecard.advisory.client import (
    ADVISORY_MODEL,
    AdvisoryClient,
    get_anthropic_client,
)
from ratecard.advisory.models import (
    UNAVAILABLE,
    AdvisoryResponse,
    AdvisoryStatus,
    AdvisorySuggestion,
    MarketInsights,
)
from ratecard.advisory.validation import sanitize_response

__all__ = [
    "ADVISORY_MODEL",
    "UNAVAILABLE",
    "AdvisoryClient",
    "AdvisoryResponse",
    "AdvisoryStatus",
    "AdvisorySuggestion",
    "MarketInsights",
    "get_anthropic_client",
    "sanitize_response",
]
