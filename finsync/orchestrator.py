"""
Main Orchestrator for finsync

Ties the components together for one signed-in user:

    local store + remote store + connectivity monitor
        -> TransactionManager   (users/<uid>/transactions)
        -> DocumentManager      (users/<uid>/documents)

DESIGN DECISION: Both managers share one connectivity monitor and one
audit logger, so a reconnect triggers a sync pass for every record kind
and the audit trail reads as one timeline.

The service is the session boundary. shutdown() ends the session: no sync
result arriving afterwards is applied.
"""

from typing import Optional

import structlog

from finsync.audit import AuditLogger
from finsync.config import Settings, get_settings
from finsync.services.files import LocalImageStore
from finsync.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    LocalStoreInterface,
    RemoteStoreInterface,
    SQLiteLocalStore,
)
from finsync.sync import (
    ConnectivityMonitor,
    DocumentManager,
    SyncReport,
    TransactionManager,
)


logger = structlog.get_logger(__name__)


def collection_path(user_id: str, collection: str) -> str:
    """Remote path of one of a user's collections."""
    if not user_id or "/" in user_id:
        raise ValueError(f"Invalid user id: {user_id!r}")
    return f"users/{user_id}/{collection}"


class FinanceSyncService:
    """
    One user's session: transactions and documents kept in sync.

    Usage:
        async with create_sync_service("uid-123") as service:
            await service.transactions.add(draft)
    """

    def __init__(
        self,
        user_id: str,
        local_store: LocalStoreInterface,
        remote_store: Optional[RemoteStoreInterface],
        connectivity: Optional[ConnectivityMonitor] = None,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        image_store: Optional[LocalImageStore] = None,
    ):
        settings = settings or get_settings()
        self.user_id = user_id
        self.audit_logger = audit_logger or AuditLogger()
        self.connectivity = connectivity or ConnectivityMonitor(audit_logger=self.audit_logger)
        self.local_store = local_store
        self.remote_store = remote_store

        self.transactions = TransactionManager(
            local_store,
            remote_store,
            self.connectivity,
            collection_path(user_id, "transactions"),
            settings=settings.sync,
            audit_logger=self.audit_logger,
        )
        self.documents = DocumentManager(
            local_store,
            remote_store,
            self.connectivity,
            collection_path(user_id, "documents"),
            settings=settings.sync,
            audit_logger=self.audit_logger,
            image_store=image_store or LocalImageStore(settings.local.documents_dir),
        )

    @property
    def local_only(self) -> bool:
        return self.remote_store is None

    @property
    def pending_sync_count(self) -> int:
        return self.transactions.pending_sync_count + self.documents.pending_sync_count

    async def start(self) -> None:
        """Load both record kinds."""
        await self.transactions.load()
        await self.documents.load()
        logger.info(
            "sync_service_started",
            user_id=self.user_id,
            local_only=self.local_only,
            transactions=len(self.transactions.records),
            documents=len(self.documents.records),
            pending=self.pending_sync_count,
        )

    async def sync_all(self) -> dict[str, SyncReport]:
        """Run a sync pass for every record kind."""
        return {
            "transactions": await self.transactions.sync_all(),
            "documents": await self.documents.sync_all(),
        }

    async def shutdown(self) -> None:
        await self.transactions.shutdown()
        await self.documents.shutdown()
        self.connectivity.close()
        close = getattr(self.local_store, "close", None)
        if callable(close):
            close()
        logger.info("sync_service_stopped", user_id=self.user_id)

    async def __aenter__(self) -> "FinanceSyncService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()


def create_sync_service(
    user_id: str,
    use_remote: bool = True,
    settings: Optional[Settings] = None,
    local_store: Optional[LocalStoreInterface] = None,
    connectivity: Optional[ConnectivityMonitor] = None,
) -> FinanceSyncService:
    """
    Factory function to create a sync service for one user.

    Args:
        user_id: The signed-in user
        use_remote: Whether to connect the Google Sheets remote store.
                    Set to False for local-only use.
        settings: Settings override (defaults to environment settings)
        local_store: Local store override (defaults to SQLite at db_path)
        connectivity: Monitor override, e.g. one bound to a platform source

    Returns:
        The service; call start() or use it as an async context manager
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()
    local_store = local_store or SQLiteLocalStore(settings.local.db_path)

    remote_store: Optional[RemoteStoreInterface] = None
    if use_remote:
        try:
            remote_store = GoogleSheetsRemoteStore(GoogleSheetsClient(settings.google_sheets))
        except Exception as e:
            # Remote not configured - continue local-only
            logger.warning("remote_store_not_configured", error=str(e))
            remote_store = None

    return FinanceSyncService(
        user_id,
        local_store,
        remote_store,
        connectivity=connectivity,
        settings=settings,
        audit_logger=audit_logger,
    )
