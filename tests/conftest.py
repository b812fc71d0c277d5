"""Shared pytest fixtures for the quote chat test suite.

The directory fixture seeds two gallery organizations, two shipper
(partner) organizations, their members and a handful of quotes.  The fake
provider mimics the Twilio Conversations contract, including the 409
conflict on a duplicate unique name, and is safe to share across threads.
"""

from __future__ import annotations

import itertools
import sqlite3
import threading
from pathlib import Path
from typing import Any

import pytest

from quote_chat.audit.store import init_audit_table
from quote_chat.config import ChatRoleConfig
from quote_chat.domain.errors import ExternalProviderError, ProviderConflictError
from quote_chat.provider.models import ProviderConversation
from quote_chat.state.schema import connect_chat_db, init_chat_tables, init_directory_tables
from quote_chat.wiring import ChatServices, build_chat_services

ORGANIZATIONS = [
    # id, name, type, img_url, branch_name
    ("org_gallery", "Gallery One", "client", "https://cdn.example/g1.png", "New York"),
    ("org_gallery_b", "Gallery One Boston", "client", None, "Boston"),
    ("org_shipper", "Fast Freight", "partner", "https://cdn.example/ff.png", "Newark"),
    ("org_shipper_b", "Slow Freight", "partner", None, None),
    ("org_nameless", "", "partner", None, None),
]

PROFILES = [
    # id, full_name, default_org
    ("u_gallery_admin", "Grace Gallery", "org_gallery"),
    ("u_gallery_member", "Gus Member", "org_gallery"),
    ("u_submitter", "  Sam Submitter  ", "org_gallery"),
    ("u_gallery_b", "Bea Boston", "org_gallery_b"),
    ("u_shipper", "Sid Shipper", "org_shipper"),
    ("u_shipper_member", "   ", "org_shipper"),
    ("u_outsider", "Olive Outsider", None),
]

MEMBERSHIPS = [
    # user_id, org_id, role
    ("u_gallery_admin", "org_gallery", "admin"),
    ("u_gallery_member", "org_gallery", "member"),
    ("u_submitter", "org_gallery", "editor"),
    ("u_gallery_b", "org_gallery_b", "admin"),
    ("u_shipper", "org_shipper", "admin"),
    ("u_shipper_member", "org_shipper", "member"),
    ("u_shipper_b", "org_shipper_b", "member"),
    ("u_nameless", "org_nameless", "member"),
]

QUOTES = [
    # id, title, owner_org_id, shipment_id, submitted_by, status
    ("q1", "Paintings to Paris", "org_gallery", "ship_1", "u_submitter", "active"),
    ("q2", "Sculpture pickup", "org_gallery", None, None, "draft"),
    ("q3", None, "org_gallery", "ship_3", "u_gallery_admin", None),
    ("q4", "Archived crate", "org_gallery", None, None, "completed"),
    ("q5", "Paintings return leg", "org_gallery", "ship_1", None, "cancelled"),
    ("qb1", "Boston one", "org_gallery_b", None, None, "active"),
    ("qb2", "Boston two", "org_gallery_b", None, None, "active"),
    ("qb3", "Boston three", "org_gallery_b", None, None, "active"),
]


def seed_directory(conn: sqlite3.Connection) -> None:
    """Create and populate the read-only collaborator tables."""
    init_directory_tables(conn)
    conn.executemany(
        "INSERT INTO organizations (id, name, type, img_url, branch_name) VALUES (?, ?, ?, ?, ?)",
        ORGANIZATIONS,
    )
    conn.executemany(
        "INSERT INTO profiles (id, full_name, default_org) VALUES (?, ?, ?)",
        PROFILES,
    )
    conn.executemany(
        "INSERT INTO memberships (user_id, org_id, role) VALUES (?, ?, ?)",
        MEMBERSHIPS,
    )
    conn.executemany(
        "INSERT INTO quotes (id, title, owner_org_id, shipment_id, submitted_by, status) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        QUOTES,
    )
    conn.commit()


class FakeConversationsProvider:
    """In-memory stand-in for ``ConversationsClient``.

    Attributes:
        fail_creates: Unique names whose creation raises a 500.
        fail_updates: Make ``update_conversation_attributes`` raise.
        fail_adds: Make ``add_participant`` raise.
        before_create: Hook run (with the unique name) before a create.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sids = itertools.count(1)
        self.conversations: dict[str, ProviderConversation] = {}
        self.members: dict[str, set[str]] = {}
        self.create_calls: list[str] = []
        self.fetch_calls: list[str] = []
        self.attribute_updates: list[tuple[str, dict[str, Any]]] = []
        self.added: list[tuple[str, str, str | None]] = []
        self.removed: list[tuple[str, str]] = []
        self.fail_creates: set[str] = set()
        self.fail_updates = False
        self.fail_adds = False
        self.before_create: Any = None

    def create_conversation(
        self,
        unique_name: str,
        friendly_name: str,
        attributes: dict[str, Any] | None = None,
    ) -> ProviderConversation:
        if self.before_create is not None:
            self.before_create(unique_name)
        with self._lock:
            self.create_calls.append(unique_name)
            if unique_name in self.fail_creates:
                raise ExternalProviderError("create_conversation", "boom", status=500)
            if unique_name in self.conversations:
                raise ProviderConflictError("create_conversation", "exists", status=409)
            conversation = ProviderConversation(
                sid=f"CH{next(self._sids):08d}",
                unique_name=unique_name,
                friendly_name=friendly_name,
                attributes=attributes or {},
            )
            self.conversations[unique_name] = conversation
            self.members[conversation.sid] = set()
            return conversation

    def fetch_conversation(self, sid_or_unique_name: str) -> ProviderConversation:
        with self._lock:
            self.fetch_calls.append(sid_or_unique_name)
            conversation = self.conversations.get(sid_or_unique_name)
            if conversation is None:
                raise ExternalProviderError("fetch_conversation", "not found", status=404)
            return conversation

    def update_conversation_attributes(
        self, conversation_sid: str, attributes: dict[str, Any]
    ) -> None:
        if self.fail_updates:
            raise ExternalProviderError("update_conversation_attributes", "timeout")
        with self._lock:
            self.attribute_updates.append((conversation_sid, attributes))

    def add_participant(
        self, conversation_sid: str, identity: str, role_sid: str | None = None
    ) -> str | None:
        if self.fail_adds:
            raise ExternalProviderError("add_participant", "unavailable", status=503)
        with self._lock:
            self.added.append((conversation_sid, identity, role_sid))
            members = self.members.setdefault(conversation_sid, set())
            if identity in members:
                return None
            members.add(identity)
            return f"MB{len(self.added):08d}"

    def remove_participant(self, conversation_sid: str, identity: str) -> bool:
        with self._lock:
            self.removed.append((conversation_sid, identity))
            members = self.members.setdefault(conversation_sid, set())
            if identity not in members:
                return False
            members.discard(identity)
            return True


@pytest.fixture
def conn() -> sqlite3.Connection:
    """In-memory SQLite connection with chat, audit and directory tables."""
    connection = sqlite3.connect(":memory:", check_same_thread=False)
    init_chat_tables(connection)
    init_audit_table(connection)
    seed_directory(connection)
    return connection


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """File-backed chat database for tests that need several connections."""
    path = tmp_path / "chat.db"
    connection = connect_chat_db(path)
    init_chat_tables(connection)
    init_audit_table(connection)
    seed_directory(connection)
    connection.close()
    return path


@pytest.fixture
def provider() -> FakeConversationsProvider:
    """Thread-safe fake messaging provider."""
    return FakeConversationsProvider()


@pytest.fixture
def role_config() -> ChatRoleConfig:
    """Role configuration with fixed provider role SIDs."""
    return ChatRoleConfig(client_role_sid="RL_client", shipper_role_sid="RL_shipper")


@pytest.fixture
def services(
    conn: sqlite3.Connection,
    provider: FakeConversationsProvider,
    role_config: ChatRoleConfig,
) -> ChatServices:
    """Fully wired chat services on the in-memory database."""
    return build_chat_services(conn, provider, role_config)
