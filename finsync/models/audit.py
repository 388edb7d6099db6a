"""
Audit Models for finsync

Every step a record takes through the sync engine is logged:
creation, duplicate drops, pushes, adoptions of an existing remote
record, failures and deletions. When a record is stuck in the pending
state, this trail is the only way to find out why.

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Lifecycle
    RECORD_CREATED = "record_created"
    SUBMISSION_DROPPED = "submission_dropped"
    RECORD_DELETED = "record_deleted"

    # Sync
    RECORD_SYNCED = "record_synced"
    DUPLICATE_SUPPRESSED = "duplicate_suppressed"
    PENDING_SUPERSEDED = "pending_superseded"
    SYNC_FAILED = "sync_failed"
    SYNC_SKIPPED = "sync_skipped"
    SYNC_COMPLETED = "sync_completed"
    RETRY_LIMIT_REACHED = "retry_limit_reached"

    # Infrastructure
    STORAGE_ERROR = "storage_error"
    REMOTE_FETCH_FAILED = "remote_fetch_failed"
    CONNECTIVITY_LOST = "connectivity_lost"
    CONNECTIVITY_RESTORED = "connectivity_restored"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is a plain string because record ids live in two identity
    spaces (local and remote).
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Record kind (e.g., 'transaction', 'document')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together events of one sync pass"
    )

    description: str = Field(
        ...,
        max_length=500
    )
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("transaction", record_id)
        event = AuditEventBuilder.record_synced("transaction", local_id, remote_id)
    """

    @staticmethod
    def record_created(kind: str, record_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type=kind,
            entity_id=record_id,
            description=f"New {kind} stored locally as pending",
            is_user_action=True,
        )

    @staticmethod
    def submission_dropped(
        kind: str,
        duplicate_of: str,
        details: dict[str, Any],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_DROPPED,
            entity_type=kind,
            entity_id=duplicate_of,
            description=f"Repeated {kind} submission dropped",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(kind: str, record_id: str, remote_pending: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            entity_type=kind,
            entity_id=record_id,
            description=f"{kind.capitalize()} deleted",
            details={"remote_delete_pending": remote_pending},
            is_user_action=True,
        )

    @staticmethod
    def record_synced(
        kind: str,
        local_id: str,
        remote_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_SYNCED,
            entity_type=kind,
            entity_id=remote_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} pushed to remote store",
            details={"local_id": local_id},
        )

    @staticmethod
    def duplicate_suppressed(
        kind: str,
        local_id: str,
        remote_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SUPPRESSED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=remote_id,
            correlation_id=correlation_id,
            description="Remote already holds this write, adopted its id instead of inserting",
            details={"local_id": local_id},
        )

    @staticmethod
    def pending_superseded(kind: str, local_id: str, remote_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PENDING_SUPERSEDED,
            entity_type=kind,
            entity_id=remote_id,
            description="Pending record found in remote snapshot, marker cleared",
            details={"local_id": local_id},
        )

    @staticmethod
    def sync_failed(
        kind: str,
        record_id: str,
        error_message: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=f"Sync of {kind} failed, will retry on next trigger",
            error_message=error_message,
            details={"attempts": attempts},
        )

    @staticmethod
    def retry_limit_reached(kind: str, record_id: str, attempts: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RETRY_LIMIT_REACHED,
            severity=AuditSeverity.ERROR,
            entity_type=kind,
            entity_id=record_id,
            description=f"{kind.capitalize()} exceeded retry limit and is no longer pushed",
            details={"attempts": attempts},
        )

    @staticmethod
    def sync_skipped(kind: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_SKIPPED,
            severity=AuditSeverity.DEBUG,
            entity_type=kind,
            description=f"Sync pass skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def sync_completed(
        kind: str,
        summary: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            entity_type=kind,
            correlation_id=correlation_id,
            description=f"Sync pass finished: {summary.get('synced', 0)} of {summary.get('attempted', 0)} synced",
            details=summary,
        )

    @staticmethod
    def storage_error(operation: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Local storage failure during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def remote_fetch_failed(kind: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=kind,
            description="Remote fetch failed, serving local data",
            error_message=error_message,
        )

    @staticmethod
    def connectivity_changed(connected: bool) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.CONNECTIVITY_RESTORED
                if connected
                else AuditEventType.CONNECTIVITY_LOST
            ),
            description="Network reachable" if connected else "Network unreachable",
        )
