"""Read-only lookups against the quoting and identity tables.

Quotes, organizations, profiles and memberships are owned by other
subsystems; this module never writes to them.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from quote_chat.domain.models import (
    MembershipRecord,
    OpenQuote,
    OrganizationSummary,
    ProfileSummary,
    QuoteContext,
)
from quote_chat.domain.types import ELEVATED_MEMBERSHIP_ROLES, OPEN_QUOTE_STATUSES


class DirectoryStore:
    """Typed read access to quotes, organizations, profiles and memberships."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _rows(self, query: str, params: tuple[str, ...] | list[str]) -> list[sqlite3.Row]:
        cursor = self._conn.cursor()
        cursor.row_factory = sqlite3.Row
        return cursor.execute(query, params).fetchall()

    def get_quote_context(self, quote_id: str) -> QuoteContext | None:
        """Return the quote fields needed to seed a conversation."""
        rows = self._rows(
            "SELECT id, title, owner_org_id, shipment_id, submitted_by FROM quotes WHERE id = ?",
            (quote_id,),
        )
        return QuoteContext.model_validate(dict(rows[0])) if rows else None

    def get_open_quotes_for_organization(self, organization_id: str) -> list[OpenQuote]:
        """Return quotes owned by an organization that are still open."""
        statuses = sorted(status.value for status in OPEN_QUOTE_STATUSES)
        placeholders = ", ".join("?" for _ in statuses)
        rows = self._rows(
            f"""
            SELECT id, owner_org_id FROM quotes
            WHERE owner_org_id = ?
              AND (status IS NULL OR status IN ({placeholders}))
            ORDER BY rowid ASC
            """,
            [organization_id, *statuses],
        )
        return [OpenQuote.model_validate(dict(row)) for row in rows]

    def get_organization(self, organization_id: str) -> OrganizationSummary | None:
        """Return an organization summary, or ``None``."""
        rows = self._rows(
            "SELECT id, name, type, img_url, branch_name FROM organizations WHERE id = ?",
            (organization_id,),
        )
        if not rows:
            return None
        row = rows[0]
        return OrganizationSummary(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            logo_url=row["img_url"],
            branch_name=row["branch_name"],
        )

    def get_profile(self, user_id: str) -> ProfileSummary | None:
        """Return a user's profile summary, or ``None``."""
        rows = self._rows(
            "SELECT id, full_name, default_org FROM profiles WHERE id = ?",
            (user_id,),
        )
        return ProfileSummary.model_validate(dict(rows[0])) if rows else None

    def get_membership_for_org(self, user_id: str, organization_id: str) -> MembershipRecord | None:
        """Return the user's membership in one organization, or ``None``."""
        rows = self._rows(
            "SELECT user_id, org_id, role FROM memberships WHERE user_id = ? AND org_id = ?",
            (user_id, organization_id),
        )
        return MembershipRecord.model_validate(dict(rows[0])) if rows else None

    def get_memberships_for_user(self, user_id: str) -> list[MembershipRecord]:
        """Return every organization membership of a user."""
        rows = self._rows(
            "SELECT user_id, org_id, role FROM memberships WHERE user_id = ? ORDER BY rowid ASC",
            (user_id,),
        )
        return [MembershipRecord.model_validate(dict(row)) for row in rows]

    def get_members_for_organization(self, organization_id: str) -> list[MembershipRecord]:
        """Return every membership row of an organization."""
        rows = self._rows(
            "SELECT user_id, org_id, role FROM memberships WHERE org_id = ? ORDER BY rowid ASC",
            (organization_id,),
        )
        return [MembershipRecord.model_validate(dict(row)) for row in rows]

    def has_membership_role(
        self,
        user_id: str,
        organization_id: str,
        roles: Iterable[str] = ELEVATED_MEMBERSHIP_ROLES,
    ) -> bool:
        """True when the user holds one of *roles* in the organization."""
        membership = self.get_membership_for_org(user_id, organization_id)
        return membership is not None and membership.role in set(roles)
