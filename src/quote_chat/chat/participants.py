"""Participant role resolution, upsert and removal for chat threads."""

from __future__ import annotations

from typing import Any

import structlog

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.chat.metadata import MetadataSynchronizer
from quote_chat.config import ChatRoleConfig
from quote_chat.domain.errors import ForbiddenError, NotFoundError
from quote_chat.domain.models import (
    ChatParticipant,
    EnsureParticipantResult,
    OrganizationSummary,
    ParticipantSummary,
    ProfileSummary,
)
from quote_chat.domain.types import ParticipantRole, build_identity, resolve_participant_role
from quote_chat.observability.metrics import PARTICIPANTS_ENSURED
from quote_chat.resilience.best_effort import best_effort
from quote_chat.state.directory import DirectoryStore
from quote_chat.state.store import ChatStore

logger = structlog.get_logger()

FALLBACK_DISPLAY_NAMES = {
    ParticipantRole.PROVIDER: "Logistics Partner Team",
    ParticipantRole.REQUESTER: "Gallery Team",
}


def derive_display_name(
    profile: ProfileSummary | None,
    organization: OrganizationSummary,
    role: ParticipantRole,
) -> str:
    """Profile name if set, else the organization name, else a role fallback."""
    full_name = (profile.full_name or "").strip() if profile else ""
    if full_name:
        return full_name
    return organization.name or FALLBACK_DISPLAY_NAMES[role]


def build_participant_summary(
    user_id: str,
    identity: str,
    role: ParticipantRole,
    profile: ProfileSummary | None,
    organization: OrganizationSummary,
) -> ParticipantSummary:
    """Build the roster entry describing one participant."""
    return ParticipantSummary(
        id=user_id,
        identity=identity,
        role=role,
        name=derive_display_name(profile, organization, role),
        organization_id=organization.id,
        organization_name=organization.name,
        organization_logo_url=organization.logo_url,
        location_label=organization.branch_name,
    )


class ParticipantManager:
    """Ensure and remove thread participants.

    The local participant row is authoritative; provider membership changes
    are best-effort and reconciled on later calls.

    Args:
        store: Thread and participant persistence.
        directory: Read access to organizations, profiles and memberships.
        provider: Messaging provider client.
        metadata_sync: Roster synchronizer run after every participant change.
        role_config: Provider role SIDs per participant role.
        audit_logger: Optional audit trail.
    """

    def __init__(
        self,
        store: ChatStore,
        directory: DirectoryStore,
        provider: Any,
        metadata_sync: MetadataSynchronizer,
        role_config: ChatRoleConfig,
        audit_logger: ChatAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._provider = provider
        self._metadata_sync = metadata_sync
        self._role_config = role_config
        self._audit = audit_logger

    def ensure_participant_in_thread(
        self,
        thread_id: str,
        user_id: str,
        organization_id: str | None = None,
        role_override: ParticipantRole | None = None,
    ) -> EnsureParticipantResult:
        """Make *user_id* an active participant of a thread.

        An already-active participant keeps its persisted role; only its
        roster entry is refreshed.  Otherwise the user must belong to the
        target organization.

        Args:
            thread_id: The thread to join.
            user_id: The user joining.
            organization_id: Organization the user joins under; defaults to
                the thread's owning organization.
            role_override: Role to use instead of the organization default.

        Returns:
            The participant row, its identity and role, and the thread.

        Raises:
            NotFoundError: If the thread or target organization is missing.
            ForbiddenError: If the user is not a member of the target
                organization.
        """
        thread = self._store.get_thread_by_id(thread_id)
        if thread is None:
            raise NotFoundError("thread", thread_id)

        existing = self._store.get_participant(thread_id, user_id)
        target_org_id = organization_id or thread.organization_id

        organization = self._directory.get_organization(target_org_id)
        if organization is None:
            raise NotFoundError("organization", target_org_id)

        if existing is not None and existing.is_active:
            profile = self._directory.get_profile(user_id)
            summary = build_participant_summary(
                user_id, existing.provider_identity, existing.role, profile, organization
            )
            thread = self._metadata_sync.sync_participant(thread, summary)
            PARTICIPANTS_ENSURED.labels(outcome="existing").inc()
            return EnsureParticipantResult(
                participant=existing,
                identity=existing.provider_identity,
                role=existing.role,
                thread=thread,
            )

        if self._directory.get_membership_for_org(user_id, target_org_id) is None:
            raise ForbiddenError(
                f"User {user_id} is not a member of organization {target_org_id}"
            )

        role = role_override or resolve_participant_role(organization.type)
        identity = build_identity(role, user_id)
        role_sid = self._role_config.role_sid_for(role)

        participant = self._store.upsert_participant(
            thread_id=thread.id,
            user_id=user_id,
            organization_id=target_org_id,
            role=role,
            provider_identity=identity,
            provider_role_sid=role_sid,
        )
        logger.info(
            "participant_upserted",
            thread_id=thread.id,
            user_id=user_id,
            role=role.value,
            organization_id=target_org_id,
        )
        if self._audit is not None:
            self._audit.log_participant_added(thread.id, user_id, role.value, target_org_id)

        outcome = best_effort(
            "add_participant",
            self._provider.add_participant,
            thread.provider_conversation_sid,
            identity,
            role_sid,
            log_context={"thread_id": thread.id, "identity": identity},
        )
        if not outcome.ok and self._audit is not None:
            self._audit.log_provider_sync_failed(thread.id, outcome.operation, outcome.error or "")

        profile = self._directory.get_profile(user_id)
        summary = build_participant_summary(user_id, identity, role, profile, organization)
        thread = self._metadata_sync.sync_participant(thread, summary)

        PARTICIPANTS_ENSURED.labels(outcome="added").inc()
        return EnsureParticipantResult(
            participant=participant,
            identity=identity,
            role=role,
            thread=thread,
        )

    def remove_participant_from_thread(self, thread_id: str, user_id: str) -> ChatParticipant:
        """Soft-remove a participant and drop them from the provider conversation.

        The roster entry in thread metadata is kept as history.

        Raises:
            NotFoundError: If the thread or participant row is missing.
        """
        thread = self._store.get_thread_by_id(thread_id)
        if thread is None:
            raise NotFoundError("thread", thread_id)

        participant = self._store.get_participant(thread_id, user_id)
        if participant is None:
            raise NotFoundError("participant", user_id)

        self._store.mark_participant_left(thread_id, user_id)
        logger.info("participant_removed", thread_id=thread_id, user_id=user_id)

        outcome = best_effort(
            "remove_participant",
            self._provider.remove_participant,
            thread.provider_conversation_sid,
            participant.provider_identity,
            log_context={"thread_id": thread_id, "identity": participant.provider_identity},
        )
        if self._audit is not None:
            self._audit.log_participant_removed(thread_id, user_id, participant.provider_identity)
            if not outcome.ok:
                self._audit.log_provider_sync_failed(
                    thread_id, outcome.operation, outcome.error or ""
                )

        removed = self._store.get_participant(thread_id, user_id)
        if removed is None:
            raise NotFoundError("participant", user_id)
        return removed
