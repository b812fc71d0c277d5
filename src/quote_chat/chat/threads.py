"""Thread resolution and idempotent creation for quote conversations.

``ThreadResolver.ensure_thread_for_quote`` maps a quote (optionally scoped to
a shipment and a pair of branch organizations) to exactly one active thread.
Existing threads are searched in a fixed order; when none matches, a
provider conversation and a local thread row are created.  Concurrent
callers for the same scope converge on one row through two uniqueness
checks: the provider's unique conversation name and the store's scope index.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.chat.metadata import metadata_fingerprint
from quote_chat.chat.participants import ParticipantManager
from quote_chat.chat.scope import (
    ResolvedScope,
    ThreadRequest,
    build_conversation_name,
    fallback_matches,
    load_quote_scope,
)
from quote_chat.domain.errors import DuplicateThreadError, ProviderConflictError
from quote_chat.domain.models import (
    ChatThread,
    ConversationScope,
    EnsureThreadResult,
    QuoteContext,
    ThreadMetadata,
)
from quote_chat.domain.types import UNSET, ParticipantRole, ScopeOverride, Unset
from quote_chat.observability.metrics import THREADS_CREATED, THREADS_REUSED
from quote_chat.provider.models import ProviderConversation
from quote_chat.state.directory import DirectoryStore
from quote_chat.state.serializers import normalise_metadata
from quote_chat.state.store import ChatStore

logger = structlog.get_logger()


def _scope_json(scope: ConversationScope) -> str:
    return json.dumps(scope.model_dump(), sort_keys=True)


class ThreadResolver:
    """Find or create the thread for a quote scope and seed its participants.

    Args:
        store: Thread persistence.
        directory: Read access to quotes and memberships.
        provider: Messaging provider client.
        participants: Used to seed default participants.
        audit_logger: Optional audit trail.
    """

    def __init__(
        self,
        store: ChatStore,
        directory: DirectoryStore,
        provider: Any,
        participants: ParticipantManager,
        audit_logger: ChatAuditLogger | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._provider = provider
        self._participants = participants
        self._audit = audit_logger

    def ensure_thread_for_quote(
        self,
        quote_id: str,
        initiator_user_id: str,
        *,
        shipment_id: ScopeOverride = UNSET,
        shipper_branch_org_id: ScopeOverride = UNSET,
        gallery_branch_org_id: ScopeOverride = UNSET,
    ) -> EnsureThreadResult:
        """Return the thread for a quote scope, creating it if needed.

        Scope overrides distinguish "not provided" (``UNSET``) from an
        explicit ``None``.  Safe to call concurrently for the same scope.

        Args:
            quote_id: The quote the conversation is about.
            initiator_user_id: The user asking for the thread.
            shipment_id: Shipment override.
            shipper_branch_org_id: Provider-branch organization override.
            gallery_branch_org_id: Requester-branch organization override.

        Returns:
            The resolved thread and the quote it belongs to.

        Raises:
            NotFoundError: If the quote does not exist.
            ExternalProviderError: If the provider conversation cannot be
                created or fetched.
            DuplicateThreadError: If the store rejects the new row and no
                competing row can be found.
        """
        request = ThreadRequest(
            quote_id=quote_id,
            initiator_user_id=initiator_user_id,
            shipment_id=shipment_id,
            shipper_branch_org_id=shipper_branch_org_id,
            gallery_branch_org_id=gallery_branch_org_id,
        )
        quote, resolved = load_quote_scope(self._directory, request)

        thread = self._find_existing(quote_id, resolved)
        if thread is not None:
            thread = self._adopt_existing(thread, quote, resolved)
            THREADS_REUSED.inc()
            logger.debug("thread_reused", thread_id=thread.id, quote_id=quote_id)
        else:
            thread = self._create(quote, resolved, initiator_user_id)

        self._seed_default_participants(thread, quote, initiator_user_id, resolved.scope)

        # Seeding rewrites the roster; hand back the persisted state.
        thread = self._store.get_thread_by_id(thread.id) or thread
        return EnsureThreadResult(thread=thread, quote=quote)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def _find_existing(self, quote_id: str, resolved: ResolvedScope) -> ChatThread | None:
        filters = resolved.filters

        if resolved.scoped:
            thread = self._store.get_thread_by_quote_scope(
                quote_id,
                filters.shipper_branch_org_id,
                filters.gallery_branch_org_id,
                shipment_id=filters.shipment_id,
            )
            if thread is not None:
                return thread

            if resolved.scope.shipment_id is not None:
                thread = self._store.get_thread_by_shipment_scope(
                    resolved.scope.shipment_id,
                    filters.shipper_branch_org_id,
                    filters.gallery_branch_org_id,
                )
                if thread is not None:
                    return thread

        fallback = self._store.get_thread_by_quote_id(quote_id)
        if fallback is None:
            return None
        if not resolved.scoped or fallback_matches(filters, fallback):
            return fallback
        return None

    def _adopt_existing(
        self, thread: ChatThread, quote: QuoteContext, resolved: ResolvedScope
    ) -> ChatThread:
        """Merge the resolved scope into a found thread, promoting it if needed."""
        target = resolved.scope
        if isinstance(resolved.filters.shipment_id, Unset) and thread.shipment_id is not None:
            # A defaulted shipment only fills an empty column.
            target = target.model_copy(update={"shipment_id": thread.shipment_id})

        metadata = normalise_metadata(thread.metadata)
        before = metadata_fingerprint(metadata)
        metadata.shipment_id = target.shipment_id
        metadata.shipper_branch_org_id = target.shipper_branch_org_id
        metadata.gallery_branch_org_id = target.gallery_branch_org_id

        if resolved.scoped and thread.scope != target:
            try:
                promoted = self._store.update_thread_scope(thread.id, target, metadata)
            except DuplicateThreadError:
                # A concurrent caller created or promoted a row for this scope.
                winner = self._find_existing(quote.id, resolved)
                if winner is None or winner.id == thread.id:
                    raise
                logger.info("thread_promotion_lost_race", thread_id=thread.id, winner=winner.id)
                return winner

            logger.info(
                "thread_scope_promoted",
                thread_id=thread.id,
                quote_id=quote.id,
                from_scope=thread.scope.model_dump(),
                to_scope=target.model_dump(),
            )
            if self._audit is not None:
                self._audit.log_scope_promoted(
                    thread.id, quote.id, _scope_json(thread.scope), _scope_json(target)
                )
            return promoted

        if metadata_fingerprint(metadata) != before:
            self._store.update_thread_metadata(thread.id, metadata)
        return thread.model_copy(update={"metadata": metadata})

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _create(
        self, quote: QuoteContext, resolved: ResolvedScope, initiator_user_id: str
    ) -> ChatThread:
        scope = resolved.scope
        unique_name = build_conversation_name(quote.id, scope, resolved.scoped)
        conversation = self._create_or_fetch_conversation(
            quote, scope, unique_name, initiator_user_id
        )

        metadata = ThreadMetadata(
            quote_id=quote.id,
            quote_title=quote.title,
            organization_id=quote.owner_org_id,
            created_by=initiator_user_id,
            participants=[],
            shipment_id=scope.shipment_id,
            shipper_branch_org_id=scope.shipper_branch_org_id,
            gallery_branch_org_id=scope.gallery_branch_org_id,
        )

        try:
            thread = self._store.create_thread(
                quote_id=quote.id,
                organization_id=quote.owner_org_id,
                scope=scope,
                provider_conversation_sid=conversation.sid,
                provider_unique_name=unique_name,
                metadata=metadata,
                created_by=initiator_user_id,
            )
        except DuplicateThreadError:
            winner = self._find_existing(quote.id, resolved)
            if winner is None:
                # A promoted legacy thread can own the unique name without
                # matching the scope search.
                winner = self._store.get_thread_by_unique_name(unique_name)
            if winner is None:
                logger.error(
                    "thread_conflict_unresolved",
                    quote_id=quote.id,
                    unique_name=unique_name,
                )
                raise
            logger.info("thread_creation_lost_race", thread_id=winner.id, quote_id=quote.id)
            THREADS_REUSED.inc()
            return winner

        THREADS_CREATED.inc()
        logger.info(
            "thread_created",
            thread_id=thread.id,
            quote_id=quote.id,
            unique_name=unique_name,
            scoped=resolved.scoped,
        )
        if self._audit is not None:
            self._audit.log_thread_created(
                thread.id, quote.id, initiator_user_id, unique_name, resolved.scoped
            )
        return thread

    def _create_or_fetch_conversation(
        self,
        quote: QuoteContext,
        scope: ConversationScope,
        unique_name: str,
        initiator_user_id: str,
    ) -> ProviderConversation:
        attributes = {
            "quoteId": quote.id,
            "organizationId": quote.owner_org_id,
            "createdBy": initiator_user_id,
            "shipperBranchOrgId": scope.shipper_branch_org_id,
            "galleryBranchOrgId": scope.gallery_branch_org_id,
            "shipmentId": scope.shipment_id,
        }
        try:
            conversation: ProviderConversation = self._provider.create_conversation(
                unique_name, quote.title or f"Quote {quote.id}", attributes
            )
        except ProviderConflictError:
            logger.info("provider_conversation_exists", unique_name=unique_name)
            conversation = self._provider.fetch_conversation(unique_name)
        return conversation

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def _seed_default_participants(
        self,
        thread: ChatThread,
        quote: QuoteContext,
        initiator_user_id: str,
        scope: ConversationScope,
    ) -> None:
        """Add the quote submitter and both branch organizations' members.

        Each seed is independent; failures are logged and skipped because the
        roster heals on later calls.  The initiator is left to the caller.
        """
        gallery_org_id = scope.gallery_branch_org_id or quote.owner_org_id
        shipper_org_id = scope.shipper_branch_org_id

        if quote.submitted_by:
            self._seed_member(
                thread,
                quote.submitted_by,
                gallery_org_id,
                ParticipantRole.REQUESTER,
                initiator_user_id,
            )

        for organization_id, role in (
            (gallery_org_id, ParticipantRole.REQUESTER),
            (shipper_org_id, ParticipantRole.PROVIDER),
        ):
            if not organization_id:
                continue
            try:
                members = self._directory.get_members_for_organization(organization_id)
            except Exception as exc:
                logger.warning(
                    "seed_members_lookup_failed",
                    thread_id=thread.id,
                    organization_id=organization_id,
                    role=role.value,
                    error=str(exc),
                )
                continue
            for member in members:
                self._seed_member(thread, member.user_id, organization_id, role, initiator_user_id)

    def _seed_member(
        self,
        thread: ChatThread,
        user_id: str,
        organization_id: str | None,
        role: ParticipantRole,
        initiator_user_id: str,
    ) -> None:
        if not user_id or user_id == initiator_user_id:
            return
        try:
            self._participants.ensure_participant_in_thread(
                thread.id, user_id, organization_id=organization_id, role_override=role
            )
        except Exception as exc:
            logger.warning(
                "seed_participant_failed",
                thread_id=thread.id,
                user_id=user_id,
                role=role.value,
                organization_id=organization_id,
                error=str(exc),
            )
