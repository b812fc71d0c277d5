"""Explicit wrapper for secondary calls whose failure must not fail the caller.

A best-effort call returns a :class:`BestEffortOutcome` instead of raising,
so the independence of the enclosing operation is visible in the signature.
The local relational state stays authoritative either way.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from quote_chat.observability.metrics import PROVIDER_SYNC_FAILURES

logger = structlog.get_logger()


@dataclass(frozen=True)
class BestEffortOutcome:
    """Result of a best-effort call.

    Attributes:
        operation: Name of the secondary operation.
        ok: ``True`` when the call completed without raising.
        error: The error text when ``ok`` is ``False``.
    """

    operation: str
    ok: bool
    error: str | None = None


def best_effort(
    operation: str,
    func: Callable[..., Any],
    *args: Any,
    log_context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> BestEffortOutcome:
    """Call *func* and convert any failure into a logged warning.

    Args:
        operation: Name used in logs and the failure counter.
        func: The secondary call to make.
        *args: Positional arguments for *func*.
        log_context: Extra structured fields for the warning log.
        **kwargs: Keyword arguments for *func*.

    Returns:
        A ``BestEffortOutcome`` describing what happened.
    """
    try:
        func(*args, **kwargs)
    except Exception as exc:
        PROVIDER_SYNC_FAILURES.labels(operation=operation).inc()
        logger.warning(
            "best_effort_call_failed",
            operation=operation,
            error=str(exc),
            **(log_context or {}),
        )
        return BestEffortOutcome(operation=operation, ok=False, error=str(exc))
    return BestEffortOutcome(operation=operation, ok=True)
