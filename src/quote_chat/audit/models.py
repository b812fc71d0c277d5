"""Audit trail models for thread provisioning and participant changes."""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the chat audit trail."""

    THREAD_CREATED = "thread_created"
    THREAD_SCOPE_PROMOTED = "thread_scope_promoted"
    PARTICIPANT_ADDED = "participant_added"
    PARTICIPANT_REMOVED = "participant_removed"
    PROVIDER_SYNC_FAILED = "provider_sync_failed"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., a provider failure may not know the quote).
    """

    event_type: EventType
    thread_id: str | None = None
    quote_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, str] | None = None
