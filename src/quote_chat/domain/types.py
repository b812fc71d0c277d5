"""Domain enumerations and role mappings for quote conversations."""

from enum import Enum, StrEnum


class ParticipantRole(StrEnum):
    """Role a user plays inside a quote conversation.

    The wire values are the identity prefixes already registered with the
    messaging provider, so they must not change.
    """

    REQUESTER = "client"
    PROVIDER = "shipper"


class OrganizationType(StrEnum):
    """Organization kinds known to the identity subsystem."""

    CLIENT = "client"
    PARTNER = "partner"


class ThreadStatus(StrEnum):
    """Lifecycle status of a chat thread."""

    ACTIVE = "active"
    ARCHIVED = "archived"


class QuoteStatus(StrEnum):
    """Quote lifecycle values owned by the quoting subsystem."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Unset(Enum):
    """Marker for a scope field the caller did not provide at all.

    Distinct from ``None``, which means "explicitly no value".
    """

    TOKEN = "unset"


UNSET = Unset.TOKEN

# A scope override is a concrete id, an explicit ``None`` or ``UNSET``.
ScopeOverride = str | None | Unset

OPEN_QUOTE_STATUSES: frozenset[QuoteStatus] = frozenset({QuoteStatus.DRAFT, QuoteStatus.ACTIVE})

# Membership roles allowed to manage other users' participation.
ELEVATED_MEMBERSHIP_ROLES: tuple[str, ...] = ("editor", "admin")


def resolve_participant_role(organization_type: str) -> ParticipantRole:
    """Return the default participant role for an organization type.

    Args:
        organization_type: The organization's ``type`` column.

    Returns:
        ``PROVIDER`` for partner organizations, ``REQUESTER`` otherwise.
    """
    if organization_type == OrganizationType.PARTNER:
        return ParticipantRole.PROVIDER
    return ParticipantRole.REQUESTER


def build_identity(role: ParticipantRole, user_id: str) -> str:
    """Build the stable provider identity for a user in a given role."""
    return f"{role.value}:{user_id}"
