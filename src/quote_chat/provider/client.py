"""Twilio Conversations client for the provider side of chat threads.

Wraps ``twilio.rest.Client`` to provide the narrow contract the chat core
needs: create/fetch a conversation by unique name, update its attributes, and
add or remove participants.  SDK errors are translated into
``ExternalProviderError`` / ``ProviderConflictError`` and transient failures
are retried with tenacity.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from quote_chat.config import Settings
from quote_chat.domain.errors import (
    ConfigurationError,
    ExternalProviderError,
    ProviderConflictError,
)
from quote_chat.provider.models import ProviderConversation
from quote_chat.resilience.retry import resilient_api_call

logger = structlog.get_logger()

T = TypeVar("T")

# Twilio error code for "participant already exists in conversation".
DUPLICATE_PARTICIPANT_CODE = 50416


def _is_transient(exc: BaseException) -> bool:
    """Retry throttling, server errors and transport failures only."""
    if isinstance(exc, ProviderConflictError):
        return False
    if isinstance(exc, ExternalProviderError):
        return exc.status is None or exc.status == 429 or exc.status >= 500
    return False


def _call(operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Invoke an SDK method, translating its errors into domain errors."""
    try:
        return func(*args, **kwargs)
    except TwilioRestException as exc:
        if exc.status == 409 or exc.code == DUPLICATE_PARTICIPANT_CODE:
            raise ProviderConflictError(operation, str(exc.msg), status=exc.status) from exc
        raise ExternalProviderError(operation, str(exc.msg), status=exc.status) from exc
    except OSError as exc:
        # requests' connection and timeout errors derive from OSError.
        raise ExternalProviderError(operation, str(exc)) from exc


class ConversationsClient:
    """Service-scoped access to Twilio Conversations.

    Args:
        client: An authenticated ``twilio.rest.Client``.
        service_sid: The Conversations service SID every call is scoped to.
    """

    def __init__(self, client: Client, service_sid: str) -> None:
        self._client = client
        self._service_sid = service_sid

    @classmethod
    def from_settings(cls, settings: Settings) -> ConversationsClient:
        """Build a client with a bounded HTTP timeout from settings.

        Raises:
            ConfigurationError: If any Twilio credential is missing.
        """
        secret = settings.twilio_api_secret.get_secret_value()
        if not (
            settings.twilio_account_sid
            and settings.twilio_api_key
            and secret
            and settings.twilio_conversations_service_sid
        ):
            raise ConfigurationError("Twilio Conversations credentials are not fully configured")

        client = Client(
            settings.twilio_api_key,
            secret,
            settings.twilio_account_sid,
            http_client=TwilioHttpClient(timeout=settings.provider_timeout_seconds),
        )
        return cls(client, settings.twilio_conversations_service_sid)

    def _service(self) -> Any:
        return self._client.conversations.v1.services(self._service_sid)

    @resilient_api_call("twilio.create_conversation", is_transient=_is_transient)
    def create_conversation(
        self,
        unique_name: str,
        friendly_name: str,
        attributes: dict[str, Any] | None = None,
    ) -> ProviderConversation:
        """Create a conversation with a unique name.

        Raises:
            ProviderConflictError: If a conversation with *unique_name* exists.
            ExternalProviderError: For any other provider failure.
        """
        payload: dict[str, Any] = {"unique_name": unique_name, "friendly_name": friendly_name}
        if attributes is not None:
            payload["attributes"] = json.dumps(attributes)

        instance = _call("create_conversation", self._service().conversations.create, **payload)
        logger.info("provider_conversation_created", unique_name=unique_name, sid=instance.sid)
        return ProviderConversation.from_instance(instance)

    @resilient_api_call("twilio.fetch_conversation", is_transient=_is_transient)
    def fetch_conversation(self, sid_or_unique_name: str) -> ProviderConversation:
        """Fetch a conversation by SID or unique name."""
        instance = _call(
            "fetch_conversation",
            self._service().conversations(sid_or_unique_name).fetch,
        )
        return ProviderConversation.from_instance(instance)

    @resilient_api_call("twilio.update_conversation_attributes", is_transient=_is_transient)
    def update_conversation_attributes(
        self,
        conversation_sid: str,
        attributes: dict[str, Any],
    ) -> None:
        """Replace a conversation's attributes document."""
        _call(
            "update_conversation_attributes",
            self._service().conversations(conversation_sid).update,
            attributes=json.dumps(attributes),
        )

    @resilient_api_call("twilio.add_participant", is_transient=_is_transient)
    def add_participant(
        self,
        conversation_sid: str,
        identity: str,
        role_sid: str | None = None,
    ) -> str | None:
        """Add a chat participant by identity.

        Returns:
            The new participant SID, or ``None`` when the identity is already
            a member of the conversation.
        """
        kwargs: dict[str, Any] = {"identity": identity}
        if role_sid:
            kwargs["role_sid"] = role_sid
        try:
            instance = _call(
                "add_participant",
                self._service().conversations(conversation_sid).participants.create,
                **kwargs,
            )
        except ProviderConflictError:
            return None
        return str(instance.sid)

    @resilient_api_call("twilio.remove_participant", is_transient=_is_transient)
    def remove_participant(self, conversation_sid: str, identity: str) -> bool:
        """Remove the participant with *identity* from a conversation.

        Returns:
            ``True`` if a participant was removed, ``False`` if none matched.
        """
        conversation = self._service().conversations(conversation_sid)
        participants = _call("list_participants", conversation.participants.list, limit=50)
        target = next((p for p in participants if p.identity == identity), None)
        if target is None:
            return False
        _call("remove_participant", conversation.participants(target.sid).delete)
        return True
