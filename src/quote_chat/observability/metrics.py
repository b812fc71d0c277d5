"""Prometheus metrics instrumentation for the chat provisioning service.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus custom business counters.
- ``THREADS_CREATED`` / ``THREADS_REUSED``: thread resolution outcomes.
- ``PARTICIPANTS_ENSURED``: participant ensure calls, labelled by outcome.
- ``PROVIDER_SYNC_FAILURES``: best-effort provider calls that failed, by operation.

Business metrics are updated where the events happen (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

THREADS_CREATED: Counter = Counter(
    "quote_chat_threads_created_total",
    "Total number of chat threads created",
)

THREADS_REUSED: Counter = Counter(
    "quote_chat_threads_reused_total",
    "Total number of thread resolutions that found an existing thread",
)

PARTICIPANTS_ENSURED: Counter = Counter(
    "quote_chat_participants_ensured_total",
    "Total number of participant ensure calls",
    ["outcome"],
)

PROVIDER_SYNC_FAILURES: Counter = Counter(
    "quote_chat_provider_sync_failures_total",
    "Best-effort messaging provider calls that failed",
    ["operation"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
