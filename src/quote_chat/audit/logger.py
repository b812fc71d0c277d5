"""Convenience class for inserting chat audit trail entries.

Each method creates a properly structured :class:`AuditEntry` and inserts it
via :func:`insert_audit_entry`.
"""

from __future__ import annotations

import sqlite3

from quote_chat.audit.models import AuditEntry, EventType
from quote_chat.audit.store import insert_audit_entry


class ChatAuditLogger:
    """Typed convenience API for inserting chat audit entries.

    Args:
        conn: An open SQLite connection whose database has ``chat_audit_log``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def log_thread_created(
        self,
        thread_id: str,
        quote_id: str,
        created_by: str,
        unique_name: str,
        scoped: bool,
    ) -> int:
        """Log the creation of a new thread row.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.THREAD_CREATED,
            thread_id=thread_id,
            quote_id=quote_id,
            user_id=created_by,
            metadata={"unique_name": unique_name, "scoped": str(scoped).lower()},
        )
        return insert_audit_entry(self._conn, entry)

    def log_scope_promoted(
        self,
        thread_id: str,
        quote_id: str,
        from_scope: str,
        to_scope: str,
    ) -> int:
        """Log a change of a thread's persisted scope columns.

        Args:
            thread_id: The promoted thread.
            quote_id: The quote that requested the new scope.
            from_scope: JSON of the previous scope tuple.
            to_scope: JSON of the new scope tuple.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.THREAD_SCOPE_PROMOTED,
            thread_id=thread_id,
            quote_id=quote_id,
            metadata={"from_scope": from_scope, "to_scope": to_scope},
        )
        return insert_audit_entry(self._conn, entry)

    def log_participant_added(
        self,
        thread_id: str,
        user_id: str,
        role: str,
        organization_id: str,
    ) -> int:
        """Log a participant row being created or re-activated."""
        entry = AuditEntry(
            event_type=EventType.PARTICIPANT_ADDED,
            thread_id=thread_id,
            user_id=user_id,
            metadata={"role": role, "organization_id": organization_id},
        )
        return insert_audit_entry(self._conn, entry)

    def log_participant_removed(self, thread_id: str, user_id: str, identity: str) -> int:
        """Log a participant being soft-removed from a thread."""
        entry = AuditEntry(
            event_type=EventType.PARTICIPANT_REMOVED,
            thread_id=thread_id,
            user_id=user_id,
            metadata={"identity": identity},
        )
        return insert_audit_entry(self._conn, entry)

    def log_provider_sync_failed(
        self,
        thread_id: str | None,
        operation: str,
        error_message: str,
    ) -> int:
        """Log a best-effort provider call that failed.

        Args:
            thread_id: The affected thread (if known).
            operation: The provider operation name.
            error_message: The error text.

        Returns:
            The row ID of the inserted audit entry.
        """
        entry = AuditEntry(
            event_type=EventType.PROVIDER_SYNC_FAILED,
            thread_id=thread_id,
            metadata={"operation": operation, "error_message": error_message},
        )
        return insert_audit_entry(self._conn, entry)
