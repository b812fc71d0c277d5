"""Retry decorator for messaging provider calls built on tenacity.

Transient provider failures are retried with exponential backoff and jitter;
conflicts and other client errors are raised immediately so callers can tell
them apart.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_api_call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(exception),
    )


def resilient_api_call(
    api_name: str,
    *,
    is_transient: Callable[[BaseException], bool],
    attempts: int = 3,
) -> Callable[[F], F]:
    """Create a retry decorator for a provider API call.

    Returns a tenacity retry decorator configured with:
    - *attempts* attempts maximum (default 3)
    - Exponential backoff with jitter (0.5s initial, 8s max, 1s jitter)
    - Retry only when *is_transient* returns ``True`` for the raised error
    - Warning log before each retry
    - Original exception re-raised after exhaustion

    Args:
        api_name: Human-readable name for the API (used in logs).
        is_transient: Predicate deciding whether an exception is retryable.
        attempts: Maximum number of attempts.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for before_sleep_log access
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            retry=retry_if_exception(is_transient),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(multiplier=0.5, max=8, jitter=1),
            before_sleep=_before_sleep_log,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
