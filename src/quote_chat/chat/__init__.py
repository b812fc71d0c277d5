"""Conversation-thread provisioning and participant synchronization."""

from quote_chat.chat.metadata import MetadataSynchronizer, merge_participant_summary
from quote_chat.chat.participants import (
    ParticipantManager,
    build_participant_summary,
    derive_display_name,
)
from quote_chat.chat.provisioner import ConversationProvisioner
from quote_chat.chat.scope import (
    ResolvedScope,
    ScopeFilters,
    ThreadRequest,
    build_conversation_name,
    resolve_scope,
    scope_hash,
)
from quote_chat.chat.threads import ThreadResolver

__all__ = [
    "ConversationProvisioner",
    "MetadataSynchronizer",
    "ParticipantManager",
    "ResolvedScope",
    "ScopeFilters",
    "ThreadRequest",
    "ThreadResolver",
    "build_conversation_name",
    "build_participant_summary",
    "derive_display_name",
    "merge_participant_summary",
    "resolve_scope",
    "scope_hash",
]
