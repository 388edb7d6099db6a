"""
Audit Logger

Every state change of a record is logged with structlog. Background sync
failures are otherwise invisible to the user (they only see a pending
count that refuses to drop), so this trail is how a stuck record gets
diagnosed.

The audit logger:
- Keeps a bounded in-memory history of recent events
- Supports correlation IDs to tie together the events of one sync pass
"""

from collections import deque
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finsync.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Central audit logging service for the sync engine."""

    def __init__(self, history_size: int = 500):
        self._logger = structlog.get_logger("finsync.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def record(self, event: AuditEvent) -> None:
        """
        Record an event synchronously.

        For callers outside the event loop, e.g. connectivity callbacks.
        """
        self._history.append(event)
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log(self, event: AuditEvent) -> None:
        """Record an event."""
        self.record(event)

    async def log_record_created(self, kind: str, record_id: str) -> None:
        await self.log(AuditEventBuilder.record_created(kind, record_id))

    async def log_submission_dropped(
        self,
        kind: str,
        duplicate_of: str,
        details: dict,
    ) -> None:
        await self.log(AuditEventBuilder.submission_dropped(kind, duplicate_of, details))

    async def log_record_deleted(
        self,
        kind: str,
        record_id: str,
        remote_pending: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(kind, record_id, remote_pending))

    async def log_record_synced(
        self,
        kind: str,
        local_id: str,
        remote_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.record_synced(kind, local_id, remote_id, correlation_id)
        )

    async def log_duplicate_suppressed(
        self,
        kind: str,
        local_id: str,
        remote_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.duplicate_suppressed(kind, local_id, remote_id, correlation_id)
        )

    async def log_pending_superseded(self, kind: str, local_id: str, remote_id: str) -> None:
        await self.log(AuditEventBuilder.pending_superseded(kind, local_id, remote_id))

    async def log_sync_failed(
        self,
        kind: str,
        record_id: str,
        error_message: str,
        attempts: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.sync_failed(
                kind, record_id, error_message, attempts, correlation_id
            )
        )

    async def log_retry_limit_reached(self, kind: str, record_id: str, attempts: int) -> None:
        await self.log(AuditEventBuilder.retry_limit_reached(kind, record_id, attempts))

    async def log_sync_skipped(self, kind: str, reason: str) -> None:
        await self.log(AuditEventBuilder.sync_skipped(kind, reason))

    async def log_sync_completed(
        self,
        kind: str,
        summary: dict,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.sync_completed(kind, summary, correlation_id))

    async def log_storage_error(self, operation: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.storage_error(operation, error_message))

    async def log_remote_fetch_failed(self, kind: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.remote_fetch_failed(kind, error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a sync pass and pass it to every event it emits.
    """
    return uuid4()
