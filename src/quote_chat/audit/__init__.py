"""Audit trail: models, storage and logger for chat provisioning events."""

from quote_chat.audit.logger import ChatAuditLogger
from quote_chat.audit.models import AuditEntry, EventType
from quote_chat.audit.store import init_audit_table, insert_audit_entry, query_audit_trail

__all__ = [
    "AuditEntry",
    "ChatAuditLogger",
    "EventType",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
