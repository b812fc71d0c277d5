"""Domain types, models, and errors for quote conversations."""

from quote_chat.domain.errors import (
    ChatError,
    ConfigurationError,
    ConflictError,
    DuplicateThreadError,
    ExternalProviderError,
    ForbiddenError,
    NotFoundError,
    ProviderConflictError,
)
from quote_chat.domain.models import (
    ChatParticipant,
    ChatThread,
    ConversationScope,
    EnsureParticipantResult,
    EnsureThreadResult,
    MembershipRecord,
    OpenQuote,
    OrganizationSummary,
    ParticipantSummary,
    ProfileSummary,
    ProvisionFailure,
    ProvisionResult,
    QuoteContext,
    ThreadMetadata,
)
from quote_chat.domain.types import (
    UNSET,
    OrganizationType,
    ParticipantRole,
    QuoteStatus,
    ScopeOverride,
    ThreadStatus,
    Unset,
    build_identity,
    resolve_participant_role,
)

__all__ = [
    "UNSET",
    "ChatError",
    "ChatParticipant",
    "ChatThread",
    "ConfigurationError",
    "ConflictError",
    "ConversationScope",
    "DuplicateThreadError",
    "EnsureParticipantResult",
    "EnsureThreadResult",
    "ExternalProviderError",
    "ForbiddenError",
    "MembershipRecord",
    "NotFoundError",
    "OpenQuote",
    "OrganizationSummary",
    "OrganizationType",
    "ParticipantRole",
    "ParticipantSummary",
    "ProfileSummary",
    "ProviderConflictError",
    "ProvisionFailure",
    "ProvisionResult",
    "QuoteContext",
    "QuoteStatus",
    "ScopeOverride",
    "ThreadMetadata",
    "ThreadStatus",
    "Unset",
    "build_identity",
    "resolve_participant_role",
]
