"""Tests for ChatAuditLogger convenience methods covering every event type."""

import sqlite3

import pytest

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.audit.store import init_audit_table, query_audit_trail


@pytest.fixture
def audit_conn() -> sqlite3.Connection:
    connection = sqlite3.connect(":memory:")
    init_audit_table(connection)
    return connection


@pytest.fixture
def audit_logger(audit_conn: sqlite3.Connection) -> ChatAuditLogger:
    return ChatAuditLogger(audit_conn)


class TestChatAuditLogger:
    """Tests for ChatAuditLogger convenience methods."""

    def test_log_thread_created(self, audit_logger, audit_conn):
        row_id = audit_logger.log_thread_created("t1", "q1", "u1", "quote::q1", scoped=False)

        assert row_id > 0
        results = query_audit_trail(audit_conn, quote_id="q1")
        assert results[0]["event_type"] == "thread_created"
        assert results[0]["thread_id"] == "t1"
        assert results[0]["user_id"] == "u1"
        assert results[0]["metadata"] == {"unique_name": "quote::q1", "scoped": "false"}

    def test_log_scope_promoted(self, audit_logger, audit_conn):
        audit_logger.log_scope_promoted("t1", "q1", '{"a":null}', '{"a":"b"}')

        results = query_audit_trail(audit_conn, event_type="thread_scope_promoted")
        assert results[0]["metadata"] == {"from_scope": '{"a":null}', "to_scope": '{"a":"b"}'}

    def test_log_participant_added(self, audit_logger, audit_conn):
        audit_logger.log_participant_added("t1", "u2", "shipper", "org_shipper")

        results = query_audit_trail(audit_conn, user_id="u2")
        assert results[0]["event_type"] == "participant_added"
        assert results[0]["metadata"] == {"role": "shipper", "organization_id": "org_shipper"}

    def test_log_participant_removed(self, audit_logger, audit_conn):
        audit_logger.log_participant_removed("t1", "u2", "shipper:u2")

        results = query_audit_trail(audit_conn, event_type="participant_removed")
        assert results[0]["metadata"] == {"identity": "shipper:u2"}

    def test_log_provider_sync_failed_without_thread(self, audit_logger, audit_conn):
        audit_logger.log_provider_sync_failed(None, "add_participant", "503")

        results = query_audit_trail(audit_conn, event_type="provider_sync_failed")
        assert results[0]["thread_id"] is None
        assert results[0]["metadata"] == {"operation": "add_participant", "error_message": "503"}
