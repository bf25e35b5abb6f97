"""Resilience infrastructure for calls to external services."""

from ratecard.resilience.retry import TRANSIENT_ERRORS, resilient_api_call

__all__ = [
    "TRANSIENT_ERRORS",
    "resilient_api_call",
]
