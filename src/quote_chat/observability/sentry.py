"""Sentry SDK initialization with the structlog-sentry bridge.

``init_sentry`` is a no-op without a DSN, so local runs and tests never talk
to Sentry.  ``get_sentry_processor`` forwards ERROR-level structlog events,
which is where unresolved thread conflicts and unexpected API failures land.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, *, production: bool = False) -> bool:
    """Initialize Sentry for the chat service.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        production: Tags events with the ``production`` environment when set.

    Returns:
        ``True`` if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        traces_sample_rate=0.1,
        send_default_pii=False,
        # structlog-sentry reports errors; the stdlib logging hook would duplicate them.
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Goes after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
