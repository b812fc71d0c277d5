"""Scope resolution for quote conversations.

A thread request may carry overrides for the shipment and for the two branch
organizations.  Each override is either ``UNSET`` (not provided), ``None``
(explicitly cleared) or a concrete id.  Legacy threads created before scoping
have no scope columns populated, so an unscoped request must keep matching
them; only fields the caller actually provided become search filters.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass

from quote_chat.domain.errors import NotFoundError
from quote_chat.domain.models import ChatThread, ConversationScope, QuoteContext
from quote_chat.domain.types import UNSET, ScopeOverride, Unset
from quote_chat.state.directory import DirectoryStore

SCOPE_HASH_LENGTH = 24


@dataclass(frozen=True)
class ThreadRequest:
    """Caller input for resolving the thread of a quote."""

    quote_id: str
    initiator_user_id: str
    shipment_id: ScopeOverride = UNSET
    shipper_branch_org_id: ScopeOverride = UNSET
    gallery_branch_org_id: ScopeOverride = UNSET


@dataclass(frozen=True)
class ScopeFilters:
    """Per-field search filters: a value to match, ``None`` to require NULL,
    or ``UNSET`` to leave the field unfiltered."""

    shipment_id: ScopeOverride = UNSET
    shipper_branch_org_id: ScopeOverride = UNSET
    gallery_branch_org_id: ScopeOverride = UNSET


@dataclass(frozen=True)
class ResolvedScope:
    """The canonical scope for a request and how to search for it.

    Attributes:
        scope: The resolved scope tuple.
        scoped: ``True`` when scoped addressing applies.
        filters: Filters used by the thread search.
    """

    scope: ConversationScope
    scoped: bool
    filters: ScopeFilters


def _provided(value: ScopeOverride) -> bool:
    return not isinstance(value, Unset)


def resolve_scope(quote: QuoteContext, request: ThreadRequest) -> ResolvedScope:
    """Compute the scope tuple, the scoped flag and search filters.

    Args:
        quote: The quote the request refers to.
        request: The caller's request with optional overrides.

    Returns:
        The resolved scope.
    """
    shipment_provided = _provided(request.shipment_id)
    scope_requested = (
        shipment_provided
        or _provided(request.shipper_branch_org_id)
        or _provided(request.gallery_branch_org_id)
    )

    shipper_branch_org_id = (
        None
        if isinstance(request.shipper_branch_org_id, Unset)
        else request.shipper_branch_org_id
    )
    gallery_branch_org_id: str | None
    if not isinstance(request.gallery_branch_org_id, Unset):
        gallery_branch_org_id = request.gallery_branch_org_id
    elif scope_requested:
        gallery_branch_org_id = quote.owner_org_id
    else:
        gallery_branch_org_id = None
    shipment_id = (
        quote.shipment_id if isinstance(request.shipment_id, Unset) else request.shipment_id
    )

    scope = ConversationScope(
        shipment_id=shipment_id,
        shipper_branch_org_id=shipper_branch_org_id,
        gallery_branch_org_id=gallery_branch_org_id,
    )

    filters = ScopeFilters(
        shipment_id=scope.shipment_id if shipment_provided else UNSET,
        shipper_branch_org_id=scope.shipper_branch_org_id if scope_requested else UNSET,
        gallery_branch_org_id=scope.gallery_branch_org_id if scope_requested else UNSET,
    )

    scoped = scope_requested and any(
        value is not None
        for value in (
            scope.shipment_id,
            scope.shipper_branch_org_id,
            scope.gallery_branch_org_id,
        )
    )

    return ResolvedScope(scope=scope, scoped=scoped, filters=filters)


def load_quote_scope(
    directory: DirectoryStore, request: ThreadRequest
) -> tuple[QuoteContext, ResolvedScope]:
    """Load the quote for *request* and resolve its scope.

    Raises:
        NotFoundError: If the quote does not exist.
    """
    quote = directory.get_quote_context(request.quote_id)
    if quote is None:
        raise NotFoundError("quote", request.quote_id)
    return quote, resolve_scope(quote, request)


def scope_hash(scope: ConversationScope) -> str:
    """Stable short hash of a scope tuple.

    Independent callers must derive the same value, so the JSON layout
    (key order, compact separators) is fixed.
    """
    payload = json.dumps(
        {
            "shipmentId": scope.shipment_id,
            "shipperBranchOrgId": scope.shipper_branch_org_id,
            "galleryBranchOrgId": scope.gallery_branch_org_id,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:SCOPE_HASH_LENGTH]


def build_conversation_name(quote_id: str, scope: ConversationScope, scoped: bool) -> str:
    """Deterministic provider unique name for a quote conversation."""
    if not scoped:
        return f"quote::{quote_id}"
    return f"quote::{quote_id}::scope::{scope_hash(scope)}"


def scope_values_match(requested: ScopeOverride, current: str | None) -> bool:
    """``UNSET`` matches anything; otherwise values must be equal (NULL included)."""
    if isinstance(requested, Unset):
        return True
    return requested == current


def fallback_matches(filters: ScopeFilters, thread: ChatThread) -> bool:
    """True when every explicitly filtered field equals the thread's column."""
    return (
        scope_values_match(filters.shipper_branch_org_id, thread.shipper_branch_org_id)
        and scope_values_match(filters.gallery_branch_org_id, thread.gallery_branch_org_id)
        and scope_values_match(filters.shipment_id, thread.shipment_id)
    )
