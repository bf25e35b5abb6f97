"""Anthropic-backed pricing advisory client.

The advisory service is non-authoritative: any failure (timeout, API error,
output that does not parse into ``AdvisoryResponse``) is logged and turned
into the ``UNAVAILABLE`` sentinel.  No exception escapes ``suggest``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import anthropic
import structlog
from anthropic import Anthropic
from pydantic import ValidationError

from ratecard.advisory.models import (
    UNAVAILABLE,
    AdvisoryResponse,
    AdvisoryStatus,
    AdvisorySuggestion,
)
from ratecard.advisory.prompts import ADVISORY_SYSTEM_PROMPT, build_advisory_prompt
from ratecard.advisory.validation import sanitize_response
from ratecard.domain.errors import AdvisoryUnavailableError
from ratecard.domain.models import CreatorMetrics
from ratecard.domain.types import DeliverableType, Platform
from ratecard.pricing.boundaries import MarketBand
from ratecard.resilience.retry import resilient_api_call

logger = structlog.get_logger()

ADVISORY_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_TOKENS = 1500


def get_anthropic_client(
    api_key: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
) -> Anthropic:
    """Create an Anthropic client with a bounded request timeout.

    Retries are handled by ``resilient_api_call``, so the SDK's own retry
    loop is disabled.
    """
    return Anthropic(api_key=api_key, timeout=timeout_seconds, max_retries=0)


class AdvisoryClient:
    """Requests price suggestions from the advisory model.

    The request runs on a worker thread and the caller waits at most
    ``timeout_seconds``.  The same deadline bounds the worker: each attempt
    gets only the time that remains, and no retry starts after it.  A
    response that arrives after the deadline is discarded.

    Args:
        client: An ``anthropic.Anthropic`` instance (or compatible mock), or
            None when no API key is configured; every call then returns
            ``UNAVAILABLE``.
        model: The Anthropic model ID to use.
        timeout_seconds: Overall deadline for one suggestion, retries included.
        max_tokens: Output token limit for the structured response.
        executor: Executor for the blocking request.  Defaults to a small
            private thread pool.
    """

    def __init__(
        self,
        client: Anthropic | None,
        *,
        model: str = ADVISORY_MODEL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        executor: Executor | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout = timeout_seconds
        self._max_tokens = max_tokens
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="advisory"
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def suggest(
        self,
        metrics: CreatorMetrics,
        bands: Mapping[tuple[Platform, DeliverableType], MarketBand],
        season: str,
    ) -> AdvisorySuggestion | AdvisoryStatus:
        """Ask the advisory model for prices.

        Args:
            metrics: The creator's metrics.
            bands: Local market band per deliverable, sent as expected ranges.
            season: Season label included in the prompt.

        Returns:
            A sanitized AdvisorySuggestion, or ``UNAVAILABLE`` on any failure.
        """
        if self._client is None:
            logger.debug("advisory_disabled")
            return UNAVAILABLE

        prompt = build_advisory_prompt(metrics, bands, season)
        deadline = time.monotonic() + self._timeout
        future = self._executor.submit(self._request, prompt, deadline=deadline)
        try:
            response = future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning("advisory_unavailable", reason="timeout", timeout=self._timeout)
            return UNAVAILABLE
        except anthropic.APIError as exc:
            logger.warning("advisory_unavailable", reason="api_error", error=str(exc))
            return UNAVAILABLE
        except (ValidationError, ValueError, AdvisoryUnavailableError) as exc:
            logger.warning("advisory_unavailable", reason="malformed_output", error=str(exc))
            return UNAVAILABLE
        except Exception as exc:
            logger.warning("advisory_unavailable", reason="unexpected_error", error=repr(exc))
            return UNAVAILABLE

        try:
            suggestion = sanitize_response(response, season=season)
        except Exception as exc:
            logger.warning("advisory_unavailable", reason="unexpected_error", error=repr(exc))
            return UNAVAILABLE
        logger.info(
            "advisory_received",
            rates=len(suggestion.rates),
            packages=len(suggestion.packages),
            confidence=suggestion.market_insights.confidence,
        )
        return suggestion

    @resilient_api_call("anthropic_advisory")
    def _request(self, prompt: str, *, deadline: float) -> AdvisoryResponse:
        if self._client is None:
            raise AdvisoryUnavailableError("Advisory client is not configured")
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise AdvisoryUnavailableError("Advisory deadline passed before the request")
        response = self._client.messages.parse(
            model=self._model,
            max_tokens=self._max_tokens,
            system=ADVISORY_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            output_format=AdvisoryResponse,
            timeout=remaining,
        )
        parsed = response.parsed_output
        if parsed is None:
            raise AdvisoryUnavailableError("Advisory structured output was empty")
        if not isinstance(parsed, AdvisoryResponse):
            parsed = AdvisoryResponse.model_validate(parsed)
        return parsed
