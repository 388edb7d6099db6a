"""
Sync Scheduler

Decides when pending records are pushed to the remote store, and pushes
them one at a time.

Triggers:
1. A new record was added while online (after a short settle delay)
2. Connectivity went from offline to online
3. Explicit request (the UI's "sync now")

GUARANTEES:
- sync_all() is single-flight: a call made while a pass is running returns
  immediately with `skipped=True`; it is dropped, not queued
- one record's failure never stops the others; its marker stays for the
  next trigger
- before inserting, the remote is searched for the same content signature,
  so a retried push adopts the existing remote record instead of creating
  a second one
- a record deleted locally is never pushed; if it was deleted while its
  push was in flight, the remote copy is deleted again
- after shutdown() no result is applied and no new pass starts
"""

import asyncio
from typing import Any, Awaitable, Callable, Generic, NamedTuple, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ValidationError

from finsync.audit import AuditLogger, create_correlation_id
from finsync.config import SyncSettings
from finsync.models.records import SyncRecord, is_local_id
from finsync.services.storage import LocalStoreError, RemoteStoreInterface
from finsync.services.storage.interface import RemoteFields
from finsync.sync.cache import RecordCache
from finsync.sync.connectivity import ConnectivityMonitor, Unsubscribe
from finsync.sync.signature import SignaturePolicy


R = TypeVar("R", bound=SyncRecord)

SyncedCallback = Callable[[str, R], Awaitable[None]]
RefreshCallback = Callable[[], Awaitable[Any]]
PendingChangedCallback = Callable[[], Awaitable[None]]


class SyncReport(BaseModel):
    """Outcome of one sync_all() pass."""

    skipped: bool = False
    attempted: int = 0
    synced: int = 0
    adopted: int = 0
    failed: int = 0
    exhausted: int = 0
    deletions: int = 0

    @property
    def completed(self) -> int:
        """Records that left the pending state during this pass."""
        return self.synced + self.adopted


class _PushResult(NamedTuple):
    record: SyncRecord
    adopted: bool


class SyncScheduler(Generic[R]):
    """Pushes pending records of one kind to one remote collection."""

    def __init__(
        self,
        cache: RecordCache[R],
        record_type: type[R],
        remote: Optional[RemoteStoreInterface],
        connectivity: ConnectivityMonitor,
        collection_path: str,
        policy: SignaturePolicy,
        settings: SyncSettings,
        audit_logger: AuditLogger,
        on_synced: SyncedCallback,
        refresh: RefreshCallback,
        on_pending_changed: Optional[PendingChangedCallback] = None,
    ):
        self._cache = cache
        self._record_type = record_type
        self._remote = remote
        self._connectivity = connectivity
        self._path = collection_path
        self._policy = policy
        self._settings = settings
        self._audit = audit_logger
        self._on_synced = on_synced
        self._refresh = refresh
        self._on_pending_changed = on_pending_changed

        self._kind = record_type.kind.value
        self._active = True
        self._in_flight = False
        self._failures: dict[str, int] = {}
        self._pushing: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Optional[Unsubscribe] = connectivity.on_reconnect(self._on_reconnect)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def active(self) -> bool:
        return self._active

    def _online(self) -> bool:
        return self._active and self._remote is not None and self._connectivity.is_connected

    def failure_count(self, record_id: str) -> int:
        return self._failures.get(record_id, 0)

    def _retry_exhausted(self, record_id: str) -> bool:
        limit = self._settings.max_sync_attempts
        return limit is not None and self._failures.get(record_id, 0) >= limit

    # ------------------------------------------------------------------
    # Background triggers
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Called outside the event loop: nothing can run the pass
            coro.close()
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_reconnect(self) -> None:
        if self._active:
            self._spawn(self.sync_all())

    def schedule_push(self, record: R) -> Optional[asyncio.Task]:
        """Push a freshly added record after the settle delay, if online."""
        if not self._online():
            return None
        return self._spawn(self._delayed_push(record))

    async def _delayed_push(self, record: R) -> None:
        delay = self._settings.settle_delay_ms / 1000
        if delay:
            await asyncio.sleep(delay)
        await self.sync_one(record)

    async def wait_for_background_syncs(self) -> None:
        """Wait until every scheduled push or pass has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Pushing
    # ------------------------------------------------------------------

    async def _still_pending(self, record_id: str) -> bool:
        try:
            return await self._cache.has_pending(record_id)
        except LocalStoreError as e:
            await self._audit.log_storage_error("has_pending", str(e))
            return False

    async def _pending_changed(self) -> None:
        if self._on_pending_changed is not None:
            await self._on_pending_changed()

    def parse_remote(self, rows: list[tuple[str, RemoteFields]]) -> list[R]:
        records = []
        for record_id, fields in rows:
            try:
                records.append(self._record_type.from_remote(record_id, fields))
            except ValidationError:
                continue  # Skip malformed remote documents
        return records

    async def sync_one(
        self,
        record: R,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[R]:
        """
        Push one record.

        Returns:
            The record under its remote identity, or None if nothing was
            done (already synced, offline, failed, or shut down)
        """
        result = await self._push(record, correlation_id)
        return result.record if result else None

    async def _push(
        self,
        record: R,
        correlation_id: Optional[UUID],
    ) -> Optional[_PushResult]:
        if record.synced or not self._online():
            return None
        if self._retry_exhausted(record.id):
            return None

        self._pushing.add(record.id)
        try:
            if not await self._still_pending(record.id):
                return None

            try:
                rows = await self._remote.query(self._path, self._policy.prefilter(record))
                match = self._policy.find_match(record, self.parse_remote(rows))
                if match is not None:
                    remote_id, adopted = match.id, True
                else:
                    remote_id = await self._remote.insert(self._path, record.to_remote_fields())
                    adopted = False
            except Exception as e:
                attempts = self._failures.get(record.id, 0) + 1
                self._failures[record.id] = attempts
                await self._audit.log_sync_failed(
                    self._kind, record.id, str(e), attempts, correlation_id
                )
                if self._retry_exhausted(record.id):
                    await self._audit.log_retry_limit_reached(self._kind, record.id, attempts)
                return None

            self._failures.pop(record.id, None)

            # The session may have ended while the request was in flight
            if not self._active:
                return None
            # Deleted locally, or already acknowledged by a fetch, while in flight
            if not await self._still_pending(record.id):
                await self._discard_if_deleted(record.id, remote_id)
                return None
        finally:
            self._pushing.discard(record.id)

        synced = record.with_remote_id(remote_id)
        try:
            await self._on_synced(record.id, synced)
            await self._cache.clear_pending(record.id)
        except LocalStoreError as e:
            # Marker stays; the next pass adopts the remote record by signature
            await self._audit.log_storage_error("sync_apply", str(e))
            await self._pending_changed()
            return None
        await self._pending_changed()

        if adopted:
            await self._audit.log_duplicate_suppressed(
                self._kind, record.id, remote_id, correlation_id
            )
        else:
            await self._audit.log_record_synced(
                self._kind, record.id, remote_id, correlation_id
            )
        return _PushResult(synced, adopted)

    async def acknowledge_superseded(self, superseded: dict[str, R]) -> int:
        """
        Clear markers of pending records already represented remotely.

        Returns:
            Number of markers cleared
        """
        cleared = 0
        for local_id, remote_record in superseded.items():
            try:
                await self._cache.clear_pending(local_id)
            except LocalStoreError as e:
                await self._audit.log_storage_error("clear_pending", str(e))
                continue
            self._failures.pop(local_id, None)
            await self._audit.log_pending_superseded(self._kind, local_id, remote_record.id)
            cleared += 1
        return cleared

    # ------------------------------------------------------------------
    # Deletions
    # ------------------------------------------------------------------

    def is_pushing(self, record_id: str) -> bool:
        """Whether a remote write for this pending record is in flight."""
        return record_id in self._pushing

    async def forget_local(self, local_id: str) -> None:
        """
        Record that a pending record was deleted locally.

        Only needed while its push is in flight: the push then removes the
        remote copy it created instead of applying it.
        """
        if self.is_pushing(local_id):
            await self._cache.mark_deleted(local_id)

    async def _discard_if_deleted(self, local_id: str, remote_id: str) -> None:
        try:
            if local_id not in await self._cache.load_deleted():
                return
            await self._cache.clear_deleted(local_id)
            await self.delete_remote(remote_id)
        except LocalStoreError as e:
            await self._audit.log_storage_error("discard_deleted", str(e))

    async def delete_remote(self, record_id: str) -> bool:
        """
        Delete a synced record remotely, or queue the deletion.

        Returns:
            True if the remote delete happened now, False if it was queued
        """
        if self._online():
            try:
                await self._remote.delete(self._path, record_id)
                return True
            except Exception as e:
                await self._audit.log_sync_failed(
                    self._kind, record_id, str(e), self._failures.get(record_id, 0) + 1
                )
        await self._cache.mark_deleted(record_id)
        return False

    async def _clear_deleted_quietly(self, record_id: str) -> None:
        try:
            await self._cache.clear_deleted(record_id)
        except LocalStoreError as e:
            await self._audit.log_storage_error("clear_deleted", str(e))

    async def _push_deletions(self, correlation_id: UUID) -> int:
        try:
            record_ids = await self._cache.load_deleted()
        except LocalStoreError as e:
            await self._audit.log_storage_error("load_deleted", str(e))
            return 0

        done = 0
        for record_id in sorted(record_ids):
            if is_local_id(record_id):
                # Left by a local delete; the in-flight push owns it
                if not self.is_pushing(record_id):
                    await self._clear_deleted_quietly(record_id)
                continue
            try:
                await self._remote.delete(self._path, record_id)
                await self._cache.clear_deleted(record_id)
            except Exception as e:
                await self._audit.log_sync_failed(
                    self._kind, record_id, str(e), 1, correlation_id
                )
                continue
            done += 1
        return done

    # ------------------------------------------------------------------
    # Full pass
    # ------------------------------------------------------------------

    async def sync_all(self) -> SyncReport:
        """Push every pending record, then refresh the merged view."""
        if self._in_flight:
            await self._audit.log_sync_skipped(self._kind, "in_flight")
            return SyncReport(skipped=True)
        if not self._online():
            await self._audit.log_sync_skipped(self._kind, "offline")
            return SyncReport(skipped=True)

        self._in_flight = True
        correlation_id = create_correlation_id()
        report = SyncReport()
        try:
            report.deletions = await self._push_deletions(correlation_id)

            try:
                pending = await self._cache.load_pending()
            except LocalStoreError as e:
                await self._audit.log_storage_error("load_pending", str(e))
                pending = []

            for record in pending:
                if self._retry_exhausted(record.id):
                    report.exhausted += 1
                    continue
                report.attempted += 1
                result = await self._push(record, correlation_id)
                if result is None:
                    report.failed += 1
                elif result.adopted:
                    report.adopted += 1
                else:
                    report.synced += 1

            if self._active:
                await self._refresh()

            await self._audit.log_sync_completed(
                self._kind, report.model_dump(exclude={"skipped"}), correlation_id
            )
        finally:
            self._in_flight = False
        return report

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Stop triggering, cancel background work, and drop late results."""
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
