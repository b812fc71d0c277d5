"""SQLite schema for chat threads, participants and collaborator tables.

The ``quotes``, ``organizations``, ``profiles`` and ``memberships`` tables are
owned by the quoting and identity subsystems; they are created here only so a
standalone database (and the test suite) has the shape this core reads.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def connect_chat_db(db_path: Path | str) -> sqlite3.Connection:
    """Open a connection to the chat database with WAL mode enabled.

    Each unit of work (HTTP request, CLI run) opens its own connection.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    conn = sqlite3.connect(str(db_path), timeout=10, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_chat_tables(conn: sqlite3.Connection) -> None:
    """Create the chat_threads and chat_thread_participants tables.

    The partial unique index on the scope tuple is what decides the winner
    when two callers create a thread for the same scope concurrently.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS chat_threads (
            id TEXT PRIMARY KEY,
            quote_id TEXT NOT NULL,
            shipment_id TEXT,
            organization_id TEXT NOT NULL,
            shipper_branch_org_id TEXT,
            gallery_branch_org_id TEXT,
            provider_conversation_sid TEXT NOT NULL,
            provider_unique_name TEXT UNIQUE,
            status TEXT NOT NULL DEFAULT 'active',
            last_message_at TEXT,
            metadata_json TEXT NOT NULL DEFAULT '{}',
            created_by TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
        )
    """)

    conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_chat_threads_scope ON chat_threads (
            quote_id,
            COALESCE(shipment_id, ''),
            COALESCE(gallery_branch_org_id, ''),
            COALESCE(shipper_branch_org_id, '')
        ) WHERE status != 'archived'
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_chat_threads_shipment ON chat_threads (shipment_id)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS chat_thread_participants (
            id TEXT PRIMARY KEY,
            thread_id TEXT NOT NULL REFERENCES chat_threads (id) ON DELETE CASCADE,
            user_id TEXT NOT NULL,
            organization_id TEXT,
            role TEXT NOT NULL,
            provider_identity TEXT NOT NULL,
            provider_role_sid TEXT NOT NULL,
            joined_at TEXT NOT NULL,
            left_at TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
            UNIQUE (thread_id, user_id)
        )
    """)

    conn.commit()


def init_directory_tables(conn: sqlite3.Connection) -> None:
    """Create the read-only collaborator tables if they do not exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS organizations (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'client',
            img_url TEXT,
            branch_name TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            full_name TEXT,
            default_org TEXT
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS memberships (
            user_id TEXT NOT NULL,
            org_id TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'member',
            PRIMARY KEY (user_id, org_id)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS quotes (
            id TEXT PRIMARY KEY,
            title TEXT,
            owner_org_id TEXT NOT NULL,
            shipment_id TEXT,
            submitted_by TEXT,
            status TEXT DEFAULT 'active'
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_owner_org ON quotes (owner_org_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_memberships_org ON memberships (org_id)")

    conn.commit()
