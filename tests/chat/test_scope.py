"""Tests for scope resolution, unique-name derivation and fallback matching."""

from __future__ import annotations

import hashlib
import sqlite3

import pytest

from quote_chat.chat.scope import (
    ScopeFilters,
    ThreadRequest,
    build_conversation_name,
    fallback_matches,
    load_quote_scope,
    resolve_scope,
    scope_hash,
)
from quote_chat.domain.errors import NotFoundError
from quote_chat.domain.models import ChatThread, ConversationScope, QuoteContext
from quote_chat.domain.types import UNSET
from quote_chat.state.directory import DirectoryStore


@pytest.fixture
def quote() -> QuoteContext:
    return QuoteContext(
        id="q1",
        title="Paintings to Paris",
        owner_org_id="org_gallery",
        shipment_id="ship_1",
        submitted_by="u_submitter",
    )


def _thread(**scope: str | None) -> ChatThread:
    return ChatThread(
        id="t1",
        quote_id="q1",
        organization_id="org_gallery",
        provider_conversation_sid="CH1",
        created_by="u1",
        created_at="2026-01-01T00:00:00.000000Z",
        updated_at="2026-01-01T00:00:00.000000Z",
        **scope,
    )


class TestResolveScope:
    """Tests for resolve_scope defaults, filters and the scoped flag."""

    def test_no_overrides_is_unscoped_with_quote_shipment(self, quote: QuoteContext) -> None:
        resolved = resolve_scope(quote, ThreadRequest("q1", "u1"))

        assert resolved.scoped is False
        assert resolved.scope == ConversationScope(shipment_id="ship_1")
        assert resolved.filters == ScopeFilters()

    def test_branch_override_defaults_gallery_to_owner(self, quote: QuoteContext) -> None:
        resolved = resolve_scope(
            quote, ThreadRequest("q1", "u1", shipper_branch_org_id="org_shipper")
        )

        assert resolved.scoped is True
        assert resolved.scope.gallery_branch_org_id == "org_gallery"
        assert resolved.scope.shipper_branch_org_id == "org_shipper"
        assert resolved.scope.shipment_id == "ship_1"
        assert resolved.filters.shipper_branch_org_id == "org_shipper"
        assert resolved.filters.gallery_branch_org_id == "org_gallery"

    def test_shipment_filter_only_when_shipment_provided(self, quote: QuoteContext) -> None:
        """A defaulted shipment is part of the scope but never a search filter."""
        resolved = resolve_scope(
            quote, ThreadRequest("q1", "u1", shipper_branch_org_id="org_shipper")
        )
        assert resolved.filters.shipment_id is UNSET

        resolved = resolve_scope(quote, ThreadRequest("q1", "u1", shipment_id="ship_9"))
        assert resolved.filters.shipment_id == "ship_9"
        assert resolved.scope.shipment_id == "ship_9"

    def test_explicit_null_is_kept_distinct_from_unset(self, quote: QuoteContext) -> None:
        resolved = resolve_scope(
            quote,
            ThreadRequest(
                "q1", "u1", shipper_branch_org_id="org_shipper", gallery_branch_org_id=None
            ),
        )

        assert resolved.scope.gallery_branch_org_id is None
        assert resolved.filters.gallery_branch_org_id is None
        assert resolved.scoped is True

    def test_all_explicit_nulls_is_not_scoped(self, quote: QuoteContext) -> None:
        resolved = resolve_scope(
            quote,
            ThreadRequest(
                "q1",
                "u1",
                shipment_id=None,
                shipper_branch_org_id=None,
                gallery_branch_org_id=None,
            ),
        )

        assert resolved.scoped is False
        assert resolved.scope == ConversationScope()


class TestLoadQuoteScope:
    """Tests for load_quote_scope."""

    def test_missing_quote_raises_not_found(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(NotFoundError, match="quote not found: nope"):
            load_quote_scope(DirectoryStore(conn), ThreadRequest("nope", "u1"))

    def test_loads_quote_and_resolves(self, conn: sqlite3.Connection) -> None:
        quote, resolved = load_quote_scope(DirectoryStore(conn), ThreadRequest("q1", "u1"))

        assert quote.title == "Paintings to Paris"
        assert resolved.scope.shipment_id == "ship_1"


class TestConversationName:
    """Tests for the deterministic provider unique name."""

    def test_unscoped_name_is_bare_quote(self) -> None:
        scope = ConversationScope(shipment_id="ship_1")
        assert build_conversation_name("q1", scope, scoped=False) == "quote::q1"

    def test_scoped_name_uses_fixed_json_layout(self) -> None:
        scope = ConversationScope(
            shipment_id="ship_1",
            shipper_branch_org_id="org_shipper",
            gallery_branch_org_id="org_gallery",
        )
        payload = (
            '{"shipmentId":"ship_1","shipperBranchOrgId":"org_shipper",'
            '"galleryBranchOrgId":"org_gallery"}'
        )
        expected = hashlib.sha256(payload.encode()).hexdigest()[:24]

        assert scope_hash(scope) == expected
        assert build_conversation_name("q1", scope, scoped=True) == f"quote::q1::scope::{expected}"

    def test_nulls_serialize_as_json_null(self) -> None:
        scope = ConversationScope(gallery_branch_org_id="org_gallery")
        payload = '{"shipmentId":null,"shipperBranchOrgId":null,"galleryBranchOrgId":"org_gallery"}'

        assert scope_hash(scope) == hashlib.sha256(payload.encode()).hexdigest()[:24]

    def test_distinct_scopes_never_share_a_name(self) -> None:
        a = ConversationScope(shipper_branch_org_id="org_shipper", gallery_branch_org_id="g")
        b = ConversationScope(shipper_branch_org_id="org_shipper_b", gallery_branch_org_id="g")

        assert build_conversation_name("q1", a, True) != build_conversation_name("q1", b, True)


class TestFallbackMatches:
    """Tests for legacy-thread fallback acceptance."""

    def test_unset_filters_are_wildcards(self) -> None:
        assert fallback_matches(ScopeFilters(), _thread(shipment_id="ship_1")) is True

    def test_matching_or_null_fields_accept(self) -> None:
        filters = ScopeFilters(shipper_branch_org_id=None, gallery_branch_org_id=None)
        assert fallback_matches(filters, _thread()) is True

    def test_explicit_value_must_equal_column(self) -> None:
        filters = ScopeFilters(shipment_id="ship_2")
        assert fallback_matches(filters, _thread(shipment_id="ship_1")) is False

    def test_explicit_value_rejects_null_column(self) -> None:
        filters = ScopeFilters(shipper_branch_org_id="org_shipper")
        assert fallback_matches(filters, _thread()) is False
