"""Serialization helpers for thread metadata documents.

The metadata column historically held an untyped JSON blob.  Reading goes
through ``normalise_metadata`` so that anything which is not an object becomes
an empty document, roster entries that are not objects are dropped, and
unknown keys survive as extras.  Object entries that do not fit
``ParticipantSummary`` are kept verbatim.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from pydantic import ValidationError

from quote_chat.domain.models import ThreadMetadata

logger = structlog.get_logger()


def _object_roster(entries: Any) -> list[dict[str, Any]]:
    if not isinstance(entries, list):
        return []
    roster = [entry for entry in entries if isinstance(entry, dict)]
    if len(roster) != len(entries):
        logger.warning("roster_entries_dropped", count=len(entries) - len(roster))
    return roster


def normalise_metadata(raw: Any) -> ThreadMetadata:
    """Coerce a stored or in-memory metadata value into ``ThreadMetadata``.

    Args:
        raw: A ``ThreadMetadata``, a dict decoded from JSON, or anything else.

    Returns:
        A fresh ``ThreadMetadata`` instance safe to mutate.
    """
    if isinstance(raw, ThreadMetadata):
        return raw.model_copy(deep=True)
    if not isinstance(raw, dict):
        return ThreadMetadata()

    document = dict(raw)
    document["participants"] = _object_roster(document.get("participants"))

    try:
        return ThreadMetadata.model_validate(document)
    except ValidationError as exc:
        # Drop the offending top-level keys and keep everything else.
        bad_keys = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning("thread_metadata_fields_dropped", fields=sorted(bad_keys))
        cleaned = {key: value for key, value in document.items() if key not in bad_keys}
        try:
            return ThreadMetadata.model_validate(cleaned)
        except ValidationError:
            logger.warning("thread_metadata_reset")
            return ThreadMetadata(participants=cleaned["participants"])


def serialize_metadata(metadata: ThreadMetadata) -> str:
    """JSON-encode a metadata document with stable key order."""
    return json.dumps(metadata.to_document(), sort_keys=True)


def deserialize_metadata(json_str: str | None) -> ThreadMetadata:
    """Decode a stored metadata column back into ``ThreadMetadata``.

    Args:
        json_str: The ``metadata_json`` column value.

    Returns:
        The normalised metadata; empty when the column is null or not JSON.
    """
    if not json_str:
        return ThreadMetadata()
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError:
        logger.warning("thread_metadata_not_json")
        return ThreadMetadata()
    return normalise_metadata(raw)
