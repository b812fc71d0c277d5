"""SQLite-backed audit trail for chat provisioning events.

Provides functions to create the audit table, insert entries and query the
trail with flexible filtering.  Uses parameterized queries exclusively.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from quote_chat.audit.models import AuditEntry


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the chat_audit_log table and its indexes if missing.

    Args:
        conn: An open sqlite3.Connection (the chat database connection).
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS chat_audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            thread_id TEXT,
            quote_id TEXT,
            user_id TEXT,
            metadata TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_chat_audit_thread ON chat_audit_log (thread_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_chat_audit_quote ON chat_audit_log (quote_id)")

    conn.commit()


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO chat_audit_log (
            timestamp, event_type, thread_id, quote_id, user_id, metadata
        ) VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.thread_id,
            entry.quote_id,
            entry.user_id,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    thread_id: str | None = None,
    quote_id: str | None = None,
    user_id: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with optional filters, newest first.

    Args:
        conn: An open database connection.
        thread_id: Filter by thread ID.
        quote_id: Filter by quote ID.
        user_id: Filter by user ID.
        event_type: Filter by event type.
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    for column, value in (
        ("thread_id", thread_id),
        ("quote_id", quote_id),
        ("user_id", user_id),
        ("event_type", event_type),
    ):
        if value is not None:
            conditions.append(f"{column} = ?")
            params.append(value)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM chat_audit_log {where_clause} ORDER BY id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    rows = cursor.execute(query, params).fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(row)
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results
