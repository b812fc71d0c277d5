"""Assemble the chat components around one database connection.

Each unit of work (HTTP request, CLI run) builds its own ``ChatServices``
from its own connection; the provider client and role configuration are
process-wide and shared.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.audit.store import init_audit_table
from quote_chat.chat.metadata import MetadataSynchronizer
from quote_chat.chat.participants import ParticipantManager
from quote_chat.chat.provisioner import ConversationProvisioner
from quote_chat.chat.threads import ThreadResolver
from quote_chat.config import ChatRoleConfig
from quote_chat.state.directory import DirectoryStore
from quote_chat.state.schema import init_chat_tables
from quote_chat.state.store import ChatStore


@dataclass
class ChatServices:
    """The wired chat components sharing one connection."""

    conn: sqlite3.Connection
    store: ChatStore
    directory: DirectoryStore
    audit_logger: ChatAuditLogger
    metadata_sync: MetadataSynchronizer
    participants: ParticipantManager
    threads: ThreadResolver
    provisioner: ConversationProvisioner


def build_chat_services(
    conn: sqlite3.Connection,
    provider: Any,
    role_config: ChatRoleConfig,
) -> ChatServices:
    """Create the chat tables if needed and wire every component.

    Args:
        conn: An open connection to the chat database.
        provider: Messaging provider client.
        role_config: Provider role SIDs.

    Returns:
        The wired services.
    """
    init_chat_tables(conn)
    init_audit_table(conn)

    store = ChatStore(conn)
    directory = DirectoryStore(conn)
    audit_logger = ChatAuditLogger(conn)
    metadata_sync = MetadataSynchronizer(store, provider, audit_logger)
    participants = ParticipantManager(
        store, directory, provider, metadata_sync, role_config, audit_logger
    )
    threads = ThreadResolver(store, directory, provider, participants, audit_logger)
    provisioner = ConversationProvisioner(directory, threads, participants)

    return ChatServices(
        conn=conn,
        store=store,
        directory=directory,
        audit_logger=audit_logger,
        metadata_sync=metadata_sync,
        participants=participants,
        threads=threads,
        provisioner=provisioner,
    )
