"""SQLite-backed store for chat threads and participants.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after every write.  Every mutation is a single-row
insert, upsert or update keyed by a unique column, so no multi-row
transaction is needed.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import UTC, datetime
from typing import Any

from quote_chat.domain.errors import DuplicateThreadError
from quote_chat.domain.models import (
    ChatParticipant,
    ChatThread,
    ConversationScope,
    ThreadMetadata,
)
from quote_chat.domain.types import UNSET, ParticipantRole, ScopeOverride, ThreadStatus, Unset
from quote_chat.state.serializers import deserialize_metadata, serialize_metadata


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string with microseconds."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _scope_condition(column: str, value: ScopeOverride) -> tuple[str | None, list[str]]:
    """Translate one scope filter into a SQL condition.

    ``UNSET`` means "don't filter", ``None`` means "require NULL".
    """
    if isinstance(value, Unset):
        return None, []
    if value is None:
        return f"{column} IS NULL", []
    return f"{column} = ?", [value]


def _row_to_thread(row: sqlite3.Row) -> ChatThread:
    data = dict(row)
    data["metadata"] = deserialize_metadata(data.pop("metadata_json"))
    return ChatThread.model_validate(data)


def _row_to_participant(row: sqlite3.Row) -> ChatParticipant:
    return ChatParticipant.model_validate(dict(row))


class ChatStore:
    """Persist and retrieve chat threads and participants in SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  chat tables (see ``init_chat_tables``).
        """
        self._conn = conn

    def _fetchone(self, query: str, params: list[Any] | tuple[Any, ...]) -> sqlite3.Row | None:
        cursor = self._conn.cursor()
        cursor.row_factory = sqlite3.Row
        row: sqlite3.Row | None = cursor.execute(query, params).fetchone()
        return row

    def _fetchall(self, query: str, params: list[Any] | tuple[Any, ...]) -> list[sqlite3.Row]:
        cursor = self._conn.cursor()
        cursor.row_factory = sqlite3.Row
        return cursor.execute(query, params).fetchall()

    # ------------------------------------------------------------------
    # Thread reads
    # ------------------------------------------------------------------

    def get_thread_by_id(self, thread_id: str) -> ChatThread | None:
        """Return the thread with *thread_id*, or ``None``."""
        row = self._fetchone("SELECT * FROM chat_threads WHERE id = ?", (thread_id,))
        return _row_to_thread(row) if row else None

    def get_thread_by_unique_name(self, unique_name: str) -> ChatThread | None:
        """Return the thread bound to a provider unique name, or ``None``."""
        row = self._fetchone(
            "SELECT * FROM chat_threads WHERE provider_unique_name = ?",
            (unique_name,),
        )
        return _row_to_thread(row) if row else None

    def get_thread_by_quote_id(self, quote_id: str) -> ChatThread | None:
        """Return the oldest legacy (unscoped) thread for a quote.

        Legacy threads have both branch organization columns NULL.
        """
        row = self._fetchone(
            """
            SELECT * FROM chat_threads
            WHERE quote_id = ?
              AND status = ?
              AND shipper_branch_org_id IS NULL
              AND gallery_branch_org_id IS NULL
            ORDER BY created_at ASC, rowid ASC
            LIMIT 1
            """,
            (quote_id, ThreadStatus.ACTIVE.value),
        )
        return _row_to_thread(row) if row else None

    def get_thread_by_quote_scope(
        self,
        quote_id: str,
        shipper_branch_org_id: ScopeOverride,
        gallery_branch_org_id: ScopeOverride,
        shipment_id: ScopeOverride = UNSET,
    ) -> ChatThread | None:
        """Return the newest thread for a quote matching the scope filters."""
        return self._find_scoped(
            "quote_id", quote_id, shipper_branch_org_id, gallery_branch_org_id, shipment_id
        )

    def get_thread_by_shipment_scope(
        self,
        shipment_id: str,
        shipper_branch_org_id: ScopeOverride,
        gallery_branch_org_id: ScopeOverride,
    ) -> ChatThread | None:
        """Return the newest thread for a shipment matching the branch filters."""
        return self._find_scoped(
            "shipment_id", shipment_id, shipper_branch_org_id, gallery_branch_org_id
        )

    def _find_scoped(
        self,
        key_column: str,
        key_value: str,
        shipper_branch_org_id: ScopeOverride,
        gallery_branch_org_id: ScopeOverride,
        shipment_id: ScopeOverride = UNSET,
    ) -> ChatThread | None:
        conditions = [f"{key_column} = ?", "status = ?"]
        params: list[str] = [key_value, ThreadStatus.ACTIVE.value]

        for column, value in (
            ("shipper_branch_org_id", shipper_branch_org_id),
            ("gallery_branch_org_id", gallery_branch_org_id),
            ("shipment_id", shipment_id),
        ):
            condition, extra = _scope_condition(column, value)
            if condition is not None:
                conditions.append(condition)
                params.extend(extra)

        query = (
            f"SELECT * FROM chat_threads WHERE {' AND '.join(conditions)} "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1"
        )
        row = self._fetchone(query, params)
        return _row_to_thread(row) if row else None

    # ------------------------------------------------------------------
    # Thread writes
    # ------------------------------------------------------------------

    def create_thread(
        self,
        *,
        quote_id: str,
        organization_id: str,
        scope: ConversationScope,
        provider_conversation_sid: str,
        provider_unique_name: str,
        metadata: ThreadMetadata,
        created_by: str,
    ) -> ChatThread:
        """Insert a new active thread row.

        Raises:
            DuplicateThreadError: If a thread for the same scope or unique
                name already exists.
        """
        thread_id = str(uuid.uuid4())
        now = utc_now()
        try:
            self._conn.execute(
                """
                INSERT INTO chat_threads (
                    id, quote_id, shipment_id, organization_id,
                    shipper_branch_org_id, gallery_branch_org_id,
                    provider_conversation_sid, provider_unique_name, status,
                    metadata_json, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    thread_id,
                    quote_id,
                    scope.shipment_id,
                    organization_id,
                    scope.shipper_branch_org_id,
                    scope.gallery_branch_org_id,
                    provider_conversation_sid,
                    provider_unique_name,
                    ThreadStatus.ACTIVE.value,
                    serialize_metadata(metadata),
                    created_by,
                    now,
                    now,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateThreadError(
                    f"Thread already exists for quote {quote_id} ({provider_unique_name})"
                ) from exc
            raise

        thread = self.get_thread_by_id(thread_id)
        if thread is None:
            raise RuntimeError(f"Inserted thread {thread_id} could not be read back")
        return thread

    def update_thread_metadata(self, thread_id: str, metadata: ThreadMetadata) -> None:
        """Replace the metadata document of a thread."""
        self._conn.execute(
            "UPDATE chat_threads SET metadata_json = ?, updated_at = ? WHERE id = ?",
            (serialize_metadata(metadata), utc_now(), thread_id),
        )
        self._conn.commit()

    def update_thread_scope(
        self,
        thread_id: str,
        scope: ConversationScope,
        metadata: ThreadMetadata,
    ) -> ChatThread:
        """Promote a thread's scope columns and metadata in one update.

        Raises:
            DuplicateThreadError: If another thread already owns the new scope.
        """
        try:
            self._conn.execute(
                """
                UPDATE chat_threads
                SET shipment_id = ?,
                    shipper_branch_org_id = ?,
                    gallery_branch_org_id = ?,
                    metadata_json = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    scope.shipment_id,
                    scope.shipper_branch_org_id,
                    scope.gallery_branch_org_id,
                    serialize_metadata(metadata),
                    utc_now(),
                    thread_id,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise DuplicateThreadError(f"Scope already taken for thread {thread_id}") from exc

        thread = self.get_thread_by_id(thread_id)
        if thread is None:
            raise RuntimeError(f"Thread {thread_id} disappeared during scope update")
        return thread

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def get_participant(self, thread_id: str, user_id: str) -> ChatParticipant | None:
        """Return the participant row for (thread, user), active or not."""
        row = self._fetchone(
            "SELECT * FROM chat_thread_participants WHERE thread_id = ? AND user_id = ?",
            (thread_id, user_id),
        )
        return _row_to_participant(row) if row else None

    def list_participants(
        self, thread_id: str, *, active_only: bool = True
    ) -> list[ChatParticipant]:
        """Return the participants of a thread in join order."""
        query = "SELECT * FROM chat_thread_participants WHERE thread_id = ?"
        if active_only:
            query += " AND left_at IS NULL"
        query += " ORDER BY joined_at ASC, rowid ASC"
        return [_row_to_participant(row) for row in self._fetchall(query, (thread_id,))]

    def upsert_participant(
        self,
        *,
        thread_id: str,
        user_id: str,
        organization_id: str | None,
        role: ParticipantRole,
        provider_identity: str,
        provider_role_sid: str,
    ) -> ChatParticipant:
        """Insert or update-in-place the participant row keyed on (thread, user).

        An upsert re-activates a previously removed participant.
        """
        now = utc_now()
        self._conn.execute(
            """
            INSERT INTO chat_thread_participants (
                id, thread_id, user_id, organization_id, role,
                provider_identity, provider_role_sid, joined_at, left_at,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            ON CONFLICT (thread_id, user_id) DO UPDATE SET
                organization_id = excluded.organization_id,
                role = excluded.role,
                provider_identity = excluded.provider_identity,
                provider_role_sid = excluded.provider_role_sid,
                joined_at = excluded.joined_at,
                left_at = NULL,
                updated_at = excluded.updated_at
            """,
            (
                str(uuid.uuid4()),
                thread_id,
                user_id,
                organization_id,
                role.value,
                provider_identity,
                provider_role_sid,
                now,
                now,
                now,
            ),
        )
        self._conn.commit()

        participant = self.get_participant(thread_id, user_id)
        if participant is None:
            raise RuntimeError(f"Participant {user_id} missing after upsert")
        return participant

    def mark_participant_left(
        self, thread_id: str, user_id: str, left_at: str | None = None
    ) -> None:
        """Soft-remove a participant by stamping ``left_at``."""
        stamp = left_at or utc_now()
        self._conn.execute(
            """
            UPDATE chat_thread_participants
            SET left_at = ?, updated_at = ?
            WHERE thread_id = ? AND user_id = ?
            """,
            (stamp, stamp, thread_id, user_id),
        )
        self._conn.commit()
