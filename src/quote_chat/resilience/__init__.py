"""Resilience helpers: provider retries and best-effort secondary calls."""

from quote_chat.resilience.best_effort import BestEffortOutcome, best_effort
from quote_chat.resilience.retry import resilient_api_call

__all__ = [
    "BestEffortOutcome",
    "best_effort",
    "resilient_api_call",
]
