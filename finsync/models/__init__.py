"""
Data Models Package

This package contains all Pydantic models used by finsync.
All data flowing through the sync engine must conform to these schemas.
"""

from finsync.models.records import (
    LOCAL_ID_PREFIX,
    Document,
    DocumentDraft,
    RecordKind,
    SyncRecord,
    Transaction,
    TransactionDraft,
    TransactionType,
    generate_local_id,
    is_local_id,
    now_ms,
)
from finsync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "LOCAL_ID_PREFIX",
    "Document",
    "DocumentDraft",
    "RecordKind",
    "SyncRecord",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "generate_local_id",
    "is_local_id",
    "now_ms",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
