"""Retry decorator for calls to external services.

Transient failures (connection errors, rate limits, 5xx responses) are
retried with exponential backoff and jitter.  Anything else fails fast.
After the final attempt the original exception is re-raised.  A call that
passes an absolute ``deadline`` keyword (a ``time.monotonic()`` value) is
not retried past it.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

import anthropic
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.stop import stop_base

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

# Errors worth another attempt; bad requests and auth failures are not
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


class StopAtDeadline(stop_base):
    """Stop once the next attempt could not start before the call's deadline.

    Reads the ``deadline`` keyword argument of the wrapped call.  Calls made
    without one are never stopped by this condition.
    """

    def __call__(self, retry_state: RetryCallState) -> bool:
        deadline = retry_state.kwargs.get("deadline")
        if deadline is None:
            return False
        return time.monotonic() + retry_state.upcoming_sleep >= deadline


def log_final_failure(retry_state: RetryCallState) -> Any:
    """Log the exhausted call and re-raise its last exception.

    Args:
        retry_state: Tenacity retry state with attempt info and outcome.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"

    logger.warning(
        "api_call_exhausted",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    if retry_state.outcome is not None:
        return retry_state.outcome.result()
    return None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "api_call_retrying",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(
    api_name: str,
    *,
    attempts: int = 3,
    initial_wait: float = 1,
    max_wait: float = 8,
) -> Callable[[F], F]:
    """Create a retry decorator for an external API call.

    Returns a tenacity retry decorator configured with:
    - ``attempts`` attempts maximum, retrying only ``TRANSIENT_ERRORS``
    - No retry that would start after the call's ``deadline`` keyword
    - Exponential backoff with jitter between attempts
    - Warning log before each retry and after exhaustion
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs).
        attempts: Total number of attempts, including the first.
        initial_wait: Initial backoff in seconds.
        max_wait: Upper bound on a single backoff in seconds.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for the logging callbacks
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(attempts) | StopAtDeadline(),
            wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=1),
            before_sleep=_before_sleep_log,
            retry_error_callback=log_final_failure,
            reraise=True,
        )(func)

        return wrapped

    return decorator
