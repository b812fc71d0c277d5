"""Pydantic models for messaging provider resources."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict


class ProviderConversation(BaseModel):
    """A conversation object as returned by the messaging provider."""

    model_config = ConfigDict(frozen=True)

    sid: str
    unique_name: str | None = None
    friendly_name: str | None = None
    attributes: dict[str, Any] = {}

    @classmethod
    def from_instance(cls, instance: Any) -> ProviderConversation:
        """Build from an SDK conversation instance.

        The SDK returns ``attributes`` as a JSON string; anything that does
        not decode to an object becomes an empty dict.
        """
        raw = getattr(instance, "attributes", None) or "{}"
        try:
            attributes = json.loads(raw) if isinstance(raw, str) else dict(raw)
        except (json.JSONDecodeError, TypeError, ValueError):
            attributes = {}
        if not isinstance(attributes, dict):
            attributes = {}
        return cls(
            sid=instance.sid,
            unique_name=getattr(instance, "unique_name", None),
            friendly_name=getattr(instance, "friendly_name", None),
            attributes=attributes,
        )
