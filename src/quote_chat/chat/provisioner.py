"""Bulk "warm up my conversations" provisioning for a user."""

from __future__ import annotations

import structlog

from quote_chat.chat.participants import ParticipantManager
from quote_chat.chat.threads import ThreadResolver
from quote_chat.domain.models import ProvisionFailure, ProvisionResult
from quote_chat.state.directory import DirectoryStore

logger = structlog.get_logger()


def _distinct(values: list[str]) -> list[str]:
    return list(dict.fromkeys(value for value in values if value))


class ConversationProvisioner:
    """Ensure a thread and a participant row exist for every open quote of a user's organizations.

    Args:
        directory: Read access to memberships and open quotes.
        threads: Thread resolver.
        participants: Participant manager.
    """

    def __init__(
        self,
        directory: DirectoryStore,
        threads: ThreadResolver,
        participants: ParticipantManager,
    ) -> None:
        self._directory = directory
        self._threads = threads
        self._participants = participants

    def provision_user_conversations(
        self,
        user_id: str,
        organization_ids: list[str] | None = None,
    ) -> ProvisionResult:
        """Walk the user's organizations and open quotes, ensuring conversations.

        A failing quote is logged and reported in ``skipped``; it does not
        abort the batch, so the counters reflect actual successes.

        Args:
            user_id: The user to provision.
            organization_ids: Restrict to these organizations; defaults to
                every organization the user belongs to.

        Returns:
            Aggregate counters plus the skipped quotes.
        """
        memberships = self._directory.get_memberships_for_user(user_id)
        targets = _distinct(organization_ids or [])
        if not targets:
            targets = _distinct([membership.org_id for membership in memberships])

        result = ProvisionResult()
        for organization_id in targets:
            result.processed_organizations += 1
            for quote in self._directory.get_open_quotes_for_organization(organization_id):
                try:
                    ensured = self._threads.ensure_thread_for_quote(quote.id, user_id)
                    result.ensured_threads += 1
                    self._participants.ensure_participant_in_thread(
                        ensured.thread.id, user_id, organization_id=organization_id
                    )
                    result.ensured_participants += 1
                except Exception as exc:
                    logger.warning(
                        "provision_quote_failed",
                        user_id=user_id,
                        organization_id=organization_id,
                        quote_id=quote.id,
                        error=str(exc),
                    )
                    result.skipped.append(
                        ProvisionFailure(
                            organization_id=organization_id,
                            quote_id=quote.id,
                            error=str(exc),
                        )
                    )

        logger.info(
            "user_conversations_provisioned",
            user_id=user_id,
            processed_organizations=result.processed_organizations,
            ensured_threads=result.ensured_threads,
            ensured_participants=result.ensured_participants,
            skipped=len(result.skipped),
        )
        return result
