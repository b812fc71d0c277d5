"""Tests for DirectoryStore read-only lookups against the seeded directory."""

from __future__ import annotations

import sqlite3

import pytest

from quote_chat.state.directory import DirectoryStore


@pytest.fixture
def directory(conn: sqlite3.Connection) -> DirectoryStore:
    return DirectoryStore(conn)


class TestQuotes:
    """Tests for quote lookups."""

    def test_quote_context(self, directory: DirectoryStore) -> None:
        quote = directory.get_quote_context("q1")

        assert quote.title == "Paintings to Paris"
        assert quote.owner_org_id == "org_gallery"
        assert quote.shipment_id == "ship_1"
        assert quote.submitted_by == "u_submitter"

    def test_missing_quote(self, directory: DirectoryStore) -> None:
        assert directory.get_quote_context("nope") is None

    def test_open_quotes_include_draft_active_and_null(self, directory: DirectoryStore) -> None:
        quotes = directory.get_open_quotes_for_organization("org_gallery")

        assert [quote.id for quote in quotes] == ["q1", "q2", "q3"]

    def test_open_quotes_for_unknown_org(self, directory: DirectoryStore) -> None:
        assert directory.get_open_quotes_for_organization("org_none") == []


class TestOrganizationsAndProfiles:
    """Tests for organization and profile lookups."""

    def test_organization_maps_logo_and_branch(self, directory: DirectoryStore) -> None:
        org = directory.get_organization("org_shipper")

        assert org.name == "Fast Freight"
        assert org.type == "partner"
        assert org.logo_url == "https://cdn.example/ff.png"
        assert org.branch_name == "Newark"

    def test_missing_organization(self, directory: DirectoryStore) -> None:
        assert directory.get_organization("org_none") is None

    def test_profile(self, directory: DirectoryStore) -> None:
        profile = directory.get_profile("u_outsider")

        assert profile.full_name == "Olive Outsider"
        assert profile.default_org is None
        assert directory.get_profile("u_nameless") is None


class TestMemberships:
    """Tests for membership lookups and role checks."""

    def test_membership_for_org(self, directory: DirectoryStore) -> None:
        membership = directory.get_membership_for_org("u_submitter", "org_gallery")

        assert membership.role == "editor"
        assert directory.get_membership_for_org("u_submitter", "org_shipper") is None

    def test_memberships_for_user(self, directory: DirectoryStore) -> None:
        orgs = [m.org_id for m in directory.get_memberships_for_user("u_shipper")]
        assert orgs == ["org_shipper"]

    def test_members_for_organization(self, directory: DirectoryStore) -> None:
        members = directory.get_members_for_organization("org_gallery")

        assert [m.user_id for m in members] == [
            "u_gallery_admin",
            "u_gallery_member",
            "u_submitter",
        ]

    def test_elevated_roles(self, directory: DirectoryStore) -> None:
        assert directory.has_membership_role("u_gallery_admin", "org_gallery")
        assert directory.has_membership_role("u_submitter", "org_gallery")
        assert not directory.has_membership_role("u_gallery_member", "org_gallery")
        assert not directory.has_membership_role("u_outsider", "org_gallery")
        assert directory.has_membership_role("u_gallery_member", "org_gallery", roles=("member",))
