"""Roster and display-field synchronization for thread metadata.

Every participant change is merged into the thread's metadata document: the
roster entry for that participant is replaced or appended, role-keyed
display fields are set on first write only, and the result is persisted and
then pushed to the provider's conversation attributes.  Nothing is written
when the merge leaves the document unchanged.
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any

import structlog
from pydantic import ValidationError

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.domain.models import ChatThread, ParticipantSummary, ThreadMetadata
from quote_chat.domain.types import ParticipantRole
from quote_chat.resilience.best_effort import best_effort
from quote_chat.state.serializers import normalise_metadata
from quote_chat.state.store import ChatStore

logger = structlog.get_logger()


def metadata_fingerprint(metadata: ThreadMetadata) -> str:
    """Stable serialized form used to detect no-op merges."""
    return json.dumps(metadata.to_document(), sort_keys=True)


def reassert_scope(metadata: ThreadMetadata, thread: ChatThread) -> None:
    """Copy the thread's persisted scope columns into its metadata."""
    metadata.shipment_id = thread.shipment_id
    metadata.shipper_branch_org_id = thread.shipper_branch_org_id
    metadata.gallery_branch_org_id = thread.gallery_branch_org_id


def _merge_raw_entry(entry: dict[str, Any], summary: ParticipantSummary) -> ParticipantSummary:
    merged = {**entry, **summary.model_dump(by_alias=True, exclude_none=True)}
    try:
        return ParticipantSummary.model_validate(merged)
    except ValidationError:
        logger.warning("roster_entry_replaced", participant_id=summary.id)
        return summary.model_copy()


def merge_participant_summary(metadata: ThreadMetadata, summary: ParticipantSummary) -> None:
    """Merge one participant summary into *metadata* in place.

    An existing roster entry with the same id is shallow-merged (fields the
    new summary leaves empty keep their old values); otherwise the summary is
    appended.  Other entries, including raw ones that do not parse as a
    summary, are left untouched.  The partner/shipper display name and company
    are only filled when still empty, so the first participant of a role stays
    primary.
    """
    roster = list(metadata.participants)
    update: dict[str, Any] = summary.model_dump(exclude_none=True)

    for index, entry in enumerate(roster):
        if isinstance(entry, ParticipantSummary):
            if entry.id == summary.id:
                roster[index] = entry.model_copy(update=update)
                break
        elif entry.get("id") == summary.id:
            roster[index] = _merge_raw_entry(entry, summary)
            break
    else:
        roster.append(summary.model_copy())

    metadata.participants = roster

    if summary.role == ParticipantRole.REQUESTER:
        metadata.partner_name = metadata.partner_name or summary.name
        metadata.partner_company = metadata.partner_company or summary.organization_name
        metadata.partner_org_id = summary.organization_id
    elif summary.role == ParticipantRole.PROVIDER:
        metadata.shipper_name = metadata.shipper_name or summary.name
        metadata.shipper_company = metadata.shipper_company or summary.organization_name
        metadata.shipper_org_id = summary.organization_id


class MetadataSynchronizer:
    """Keep a thread's metadata roster in step with its participants.

    Args:
        store: Thread persistence.
        provider: Messaging provider client (``update_conversation_attributes``).
        audit_logger: Optional audit trail for provider failures.
    """

    def __init__(
        self,
        store: ChatStore,
        provider: Any,
        audit_logger: ChatAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._audit = audit_logger

    def sync_participant(self, thread: ChatThread, summary: ParticipantSummary) -> ChatThread:
        """Merge *summary* into the thread's metadata and propagate it.

        Args:
            thread: The thread as last read from the store.
            summary: The participant's display summary.

        Returns:
            The thread carrying the merged metadata, or *thread* unchanged
            when nothing changed or the write failed.
        """
        metadata = normalise_metadata(thread.metadata)
        reassert_scope(metadata, thread)
        before = metadata_fingerprint(metadata)
        merge_participant_summary(metadata, summary)

        if metadata_fingerprint(metadata) == before:
            return thread

        try:
            self._store.update_thread_metadata(thread.id, metadata)
        except sqlite3.Error as exc:
            # The roster is derived data and heals on the next ensure call.
            logger.warning(
                "participant_metadata_persist_failed",
                thread_id=thread.id,
                participant_id=summary.id,
                error=str(exc),
            )
            return thread

        outcome = best_effort(
            "update_conversation_attributes",
            self._provider.update_conversation_attributes,
            thread.provider_conversation_sid,
            metadata.to_document(),
            log_context={"thread_id": thread.id},
        )
        if not outcome.ok and self._audit is not None:
            self._audit.log_provider_sync_failed(thread.id, outcome.operation, outcome.error or "")

        return thread.model_copy(update={"metadata": metadata})
