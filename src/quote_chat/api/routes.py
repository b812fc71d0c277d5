"""HTTP routes for conversation provisioning and participant management.

The upstream gateway authenticates callers and forwards the acting user in
``X-User-Id``.  Handlers are plain ``def`` functions: every collaborator is
blocking (SQLite, the Twilio SDK), so FastAPI runs them in its threadpool,
and each request gets its own database connection.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quote_chat.domain.errors import (
    ChatError,
    ConfigurationError,
    ForbiddenError,
    NotFoundError,
)
from quote_chat.domain.models import ChatParticipant, ChatThread
from quote_chat.domain.types import UNSET, ParticipantRole, ScopeOverride
from quote_chat.state.schema import connect_chat_db
from quote_chat.wiring import ChatServices, build_chat_services

logger = structlog.get_logger()

router = APIRouter(prefix="/chat")


class _CamelBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProvisionBody(_CamelBody):
    """Body of ``POST /chat/provision``."""

    organization_ids: list[str] | None = None


class ThreadBody(_CamelBody):
    """Body of ``POST /chat/threads``.

    An absent scope key means "not provided"; an explicit ``null`` clears it.
    ``organizationId`` is the organization the caller joins under.
    """

    quote_id: str
    organization_id: str | None = None
    shipment_id: str | None = None
    shipper_branch_org_id: str | None = None
    gallery_branch_org_id: str | None = None

    def override(self, field: str) -> ScopeOverride:
        """Return the field value, or ``UNSET`` when the key was absent."""
        if field not in self.model_fields_set:
            return UNSET
        value: str | None = getattr(self, field)
        return value


class AddParticipantBody(_CamelBody):
    """Body of ``POST /chat/threads/{thread_id}/participants``."""

    user_id: str
    organization_id: str | None = None
    role_override: ParticipantRole | None = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_chat_services(request: Request) -> Iterator[ChatServices]:
    """Yield chat services bound to a connection owned by this request."""
    state = request.app.state
    if state.provider is None or state.role_config is None:
        raise ConfigurationError("Messaging provider is not configured")

    conn = connect_chat_db(state.settings.chat_db_path)
    try:
        yield build_chat_services(conn, state.provider, state.role_config)
    finally:
        conn.close()


def get_acting_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Return the authenticated caller forwarded by the gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def _thread_for_manager(services: ChatServices, thread_id: str, acting_user_id: str) -> ChatThread:
    """Load a thread and check the caller may manage its participants."""
    thread = services.store.get_thread_by_id(thread_id)
    if thread is None:
        raise NotFoundError("thread", thread_id)
    if not services.directory.has_membership_role(acting_user_id, thread.organization_id):
        raise ForbiddenError("Not authorized to manage participants for this thread")
    return thread


def _thread_payload(thread: ChatThread) -> dict[str, Any]:
    return {
        "id": thread.id,
        "quoteId": thread.quote_id,
        "shipmentId": thread.shipment_id,
        "organizationId": thread.organization_id,
        "shipperBranchOrgId": thread.shipper_branch_org_id,
        "galleryBranchOrgId": thread.gallery_branch_org_id,
        "conversationSid": thread.provider_conversation_sid,
        "uniqueName": thread.provider_unique_name,
        "status": thread.status.value,
        "metadata": thread.metadata.to_document(),
    }


def _participant_payload(participant: ChatParticipant, identity: str) -> dict[str, Any]:
    return {
        "id": participant.id,
        "userId": participant.user_id,
        "organizationId": participant.organization_id,
        "role": participant.role.value,
        "identity": identity,
        "threadId": participant.thread_id,
        "leftAt": participant.left_at,
    }


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/provision")
def provision(
    body: ProvisionBody | None = None,
    acting_user_id: str = Depends(get_acting_user_id),
    services: ChatServices = Depends(get_chat_services),
) -> dict[str, Any]:
    """Ensure conversations for every open quote of the caller's organizations."""
    organization_ids = body.organization_ids if body else None
    result = services.provisioner.provision_user_conversations(acting_user_id, organization_ids)
    return {"ok": True, "result": result.model_dump(mode="json", by_alias=True)}


@router.post("/threads")
def ensure_thread(
    body: ThreadBody,
    acting_user_id: str = Depends(get_acting_user_id),
    services: ChatServices = Depends(get_chat_services),
) -> dict[str, Any]:
    """Resolve or create the thread for a quote and join the caller to it."""
    ensured = services.threads.ensure_thread_for_quote(
        body.quote_id,
        acting_user_id,
        shipment_id=body.override("shipment_id"),
        shipper_branch_org_id=body.override("shipper_branch_org_id"),
        gallery_branch_org_id=body.override("gallery_branch_org_id"),
    )
    joined = services.participants.ensure_participant_in_thread(
        ensured.thread.id, acting_user_id, organization_id=body.organization_id
    )
    return {
        "ok": True,
        "thread": _thread_payload(joined.thread),
        "participant": _participant_payload(joined.participant, joined.identity),
    }


@router.post("/threads/{thread_id}/participants")
def add_participant(
    thread_id: str,
    body: AddParticipantBody,
    acting_user_id: str = Depends(get_acting_user_id),
    services: ChatServices = Depends(get_chat_services),
) -> dict[str, Any]:
    """Add another user to a thread on behalf of an organization editor or admin."""
    thread = _thread_for_manager(services, thread_id, acting_user_id)
    if body.user_id == acting_user_id:
        raise HTTPException(status_code=400, detail="Cannot add yourself via this endpoint")

    organization_id = body.organization_id
    if not organization_id:
        profile = services.directory.get_profile(body.user_id)
        organization_id = (profile.default_org if profile else None) or thread.organization_id

    result = services.participants.ensure_participant_in_thread(
        thread.id,
        body.user_id,
        organization_id=organization_id,
        role_override=body.role_override,
    )
    return {"ok": True, "participant": _participant_payload(result.participant, result.identity)}


@router.delete("/threads/{thread_id}/participants/{user_id}")
def remove_participant(
    thread_id: str,
    user_id: str,
    acting_user_id: str = Depends(get_acting_user_id),
    services: ChatServices = Depends(get_chat_services),
) -> dict[str, Any]:
    """Soft-remove another user from a thread."""
    thread = _thread_for_manager(services, thread_id, acting_user_id)
    if user_id == acting_user_id:
        raise HTTPException(status_code=400, detail="Cannot remove yourself via this endpoint")

    participant = services.participants.remove_participant_from_thread(thread.id, user_id)
    return {
        "ok": True,
        "participant": _participant_payload(participant, participant.provider_identity),
    }


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Map domain errors onto HTTP status codes.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ForbiddenError)
    async def forbidden(request: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(ConfigurationError)
    async def misconfigured(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.error("chat_configuration_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Chat is not configured"})

    @app.exception_handler(ChatError)
    async def chat_failure(request: Request, exc: ChatError) -> JSONResponse:
        logger.error("chat_request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
