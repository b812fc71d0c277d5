"""Pydantic v2 models for chat threads, participants and their collaborators."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from quote_chat.domain.types import ParticipantRole, ThreadStatus


class QuoteContext(BaseModel):
    """Read-only view of a quote used to seed scope and default participants."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    owner_org_id: str
    shipment_id: str | None = None
    submitted_by: str | None = None


class OrganizationSummary(BaseModel):
    """Read-only view of an organization owned by the identity subsystem."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str
    logo_url: str | None = None
    branch_name: str | None = None


class ProfileSummary(BaseModel):
    """Read-only view of a user profile."""

    model_config = ConfigDict(frozen=True)

    id: str
    full_name: str | None = None
    default_org: str | None = None


class MembershipRecord(BaseModel):
    """A user's membership in an organization."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    org_id: str
    role: str


class OpenQuote(BaseModel):
    """Identifier of a quote still open for conversation."""

    model_config = ConfigDict(frozen=True)

    id: str
    owner_org_id: str


class ConversationScope(BaseModel):
    """The addressing tuple that separates conversations for one quote."""

    model_config = ConfigDict(frozen=True)

    shipment_id: str | None = None
    shipper_branch_org_id: str | None = None
    gallery_branch_org_id: str | None = None


class ParticipantSummary(BaseModel):
    """Display-facing roster entry embedded in thread metadata.

    Serialized with camelCase keys because presentation layers and the
    provider's conversation attributes read the same document.  Entries written
    by older clients may lack display fields or carry extra keys; both survive.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    identity: str | None = None
    role: ParticipantRole | None = None
    name: str | None = None
    organization_id: str | None = None
    organization_name: str | None = None
    organization_logo_url: str | None = None
    location_label: str | None = None


# Roster entries that do not fit ParticipantSummary are carried as raw dicts.
RosterEntry = Annotated[ParticipantSummary | dict[str, Any], Field(union_mode="left_to_right")]


class ThreadMetadata(BaseModel):
    """Structured metadata document stored on a thread.

    Unknown keys written by other consumers are kept as extras so a merge
    never drops them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    quote_id: str | None = None
    quote_title: str | None = None
    organization_id: str | None = None
    created_by: str | None = None
    participants: list[RosterEntry] = Field(default_factory=list)

    shipment_id: str | None = None
    shipper_branch_org_id: str | None = None
    gallery_branch_org_id: str | None = None

    partner_name: str | None = None
    partner_company: str | None = None
    partner_org_id: str | None = None
    shipper_name: str | None = None
    shipper_company: str | None = None
    shipper_org_id: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-safe camelCase document, extras included."""
        return self.model_dump(mode="json", by_alias=True)


class ChatThread(BaseModel):
    """A durable conversation record for a quote scope."""

    id: str
    quote_id: str
    shipment_id: str | None = None
    organization_id: str
    shipper_branch_org_id: str | None = None
    gallery_branch_org_id: str | None = None
    provider_conversation_sid: str
    provider_unique_name: str | None = None
    status: ThreadStatus = ThreadStatus.ACTIVE
    last_message_at: str | None = None
    metadata: ThreadMetadata = Field(default_factory=ThreadMetadata)
    created_by: str
    created_at: str
    updated_at: str

    @property
    def scope(self) -> ConversationScope:
        """The scope tuple persisted in this thread's columns."""
        return ConversationScope(
            shipment_id=self.shipment_id,
            shipper_branch_org_id=self.shipper_branch_org_id,
            gallery_branch_org_id=self.gallery_branch_org_id,
        )


class ChatParticipant(BaseModel):
    """A user's membership in a thread."""

    id: str
    thread_id: str
    user_id: str
    organization_id: str | None = None
    role: ParticipantRole
    provider_identity: str
    provider_role_sid: str
    joined_at: str
    left_at: str | None = None
    created_at: str
    updated_at: str

    @property
    def is_active(self) -> bool:
        """True while the participant has not left the thread."""
        return self.left_at is None


class EnsureThreadResult(BaseModel):
    """Outcome of resolving or creating the thread for a quote."""

    thread: ChatThread
    quote: QuoteContext


class EnsureParticipantResult(BaseModel):
    """Outcome of ensuring a user participates in a thread."""

    participant: ChatParticipant
    identity: str
    role: ParticipantRole
    thread: ChatThread


class ProvisionFailure(BaseModel):
    """A quote skipped during bulk provisioning."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    organization_id: str
    quote_id: str
    error: str


class ProvisionResult(BaseModel):
    """Aggregate counters returned by bulk provisioning.

    Serialized with camelCase keys for the HTTP response.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    processed_organizations: int = 0
    ensured_threads: int = 0
    ensured_participants: int = 0
    skipped: list[ProvisionFailure] = Field(default_factory=list)
