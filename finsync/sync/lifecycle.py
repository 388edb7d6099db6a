"""
Record Lifecycle Managers

The public API the UI layer talks to. Each manager owns the merged,
in-memory view of one record kind and exposes:

    records / loading / error / pending_sync_count     (read-only state)
    add / get_all / get_by_id / filter / sync_all      (operations)

DESIGN DECISION: The view is only ever replaced as a whole (an immutable
tuple), never patched. A reader holding `records` always sees a complete
snapshot, even while a sync pass is rewriting identities underneath it.

Error policy:
- local storage failures are logged, surfaced through `error`, and the
  operation returns a safe default
- a duplicate submission is dropped silently (returns None)
- an unknown id is a normal outcome (returns None)
"""

from typing import Callable, ClassVar, Generic, Iterable, Optional, TypeVar

from finsync.audit import AuditLogger
from finsync.config import SyncSettings, get_settings
from finsync.models.records import (
    Document,
    DocumentDraft,
    SyncRecord,
    Transaction,
    TransactionDraft,
    TransactionType,
    generate_local_id,
    now_ms,
)
from finsync.services.files import ImageFileError, LocalImageStore
from finsync.services.storage import LocalStoreError, LocalStoreInterface, RemoteStoreInterface
from finsync.sync.cache import RecordCache
from finsync.sync.connectivity import ConnectivityMonitor
from finsync.sync.reconcile import find_superseded, reconcile
from finsync.sync.scheduler import SyncReport, SyncScheduler
from finsync.sync.signature import SignaturePolicy


R = TypeVar("R", bound=SyncRecord)

ADD_FAILED_MESSAGE = "Could not add record, try again"
LOAD_FAILED_MESSAGE = "Could not load saved records"


def _newest_first(records: Iterable[R]) -> tuple[R, ...]:
    return tuple(sorted(records, key=lambda r: r.created_at, reverse=True))


class RecordManager(Generic[R]):
    """
    Lifecycle of one record kind: create locally, show optimistically,
    push when possible, adopt the remote identity.
    """

    record_type: ClassVar[type[SyncRecord]]

    def __init__(
        self,
        local_store: LocalStoreInterface,
        remote_store: Optional[RemoteStoreInterface],
        connectivity: ConnectivityMonitor,
        collection_path: str,
        settings: Optional[SyncSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._settings = settings or get_settings().sync
        self._audit = audit_logger or AuditLogger()
        self._cache: RecordCache[R] = RecordCache(local_store, self.record_type)
        self._remote = remote_store
        self._connectivity = connectivity
        self._path = collection_path
        self._policy = SignaturePolicy.for_kind(self.record_type.kind, self._settings)
        self._clock = clock
        self._kind = self.record_type.kind.value

        self._records: tuple[R, ...] = ()
        self._loading = False
        self._error: Optional[str] = None
        self._pending_count = 0
        self._last_fetch_ms: Optional[int] = None

        self.scheduler: SyncScheduler[R] = SyncScheduler(
            cache=self._cache,
            record_type=self.record_type,
            remote=remote_store,
            connectivity=connectivity,
            collection_path=collection_path,
            policy=self._policy,
            settings=self._settings,
            audit_logger=self._audit,
            on_synced=self._apply_synced,
            refresh=self._forced_refresh,
            on_pending_changed=self._refresh_pending_count,
        )

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def records(self) -> list[R]:
        return list(self._records)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def pending_sync_count(self) -> int:
        return self._pending_count

    @property
    def collection_path(self) -> str:
        return self._path

    def _online(self) -> bool:
        return self._remote is not None and self._connectivity.is_connected

    async def _refresh_pending_count(self) -> None:
        try:
            self._pending_count = await self._cache.pending_count()
        except LocalStoreError as e:
            await self._audit.log_storage_error("pending_count", str(e))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def load(self) -> list[R]:
        """Initial load when a session starts."""
        return await self.get_all(force=True)

    def _is_guarded(self, record: R) -> bool:
        """Whether rapid repeats of this record are treated as double submissions."""
        return False

    def _recent_duplicate(self, record: R) -> Optional[R]:
        if not self._is_guarded(record):
            return None
        signature = self._policy.signature(record)
        for existing in self._records:
            if (
                self._policy.signature(existing) == signature
                and abs(record.created_at - existing.created_at) <= self._settings.submission_guard_ms
            ):
                return existing
        return None

    async def add(self, draft) -> Optional[R]:
        """
        Create a record locally and schedule its push.

        Returns:
            The new pending record, or None if it was dropped as a repeat
            submission or could not be stored
        """
        created_at = self._clock()
        record = draft.build(generate_local_id(created_at), created_at)

        duplicate = self._recent_duplicate(record)
        if duplicate is not None:
            await self._audit.log_submission_dropped(
                self._kind,
                duplicate.id,
                {"created_at": created_at, "signature": [str(v) for v in self._policy.signature(record)]},
            )
            return None

        # The marker goes first: once it exists the record survives a crash
        try:
            await self._cache.mark_pending(record)
        except LocalStoreError as e:
            self._error = ADD_FAILED_MESSAGE
            await self._audit.log_storage_error("add", str(e))
            return None

        self._records = _newest_first((record, *self._records))
        try:
            await self._cache.save_snapshot(self._records)
        except LocalStoreError as e:
            await self._audit.log_storage_error("save_snapshot", str(e))

        await self._refresh_pending_count()
        await self._audit.log_record_created(self._kind, record.id)

        self.scheduler.schedule_push(record)
        return record

    async def get_all(self, force: bool = False) -> list[R]:
        """
        Refresh and return the merged view.

        Calls within fetch_throttle_ms of the last completed fetch return the
        cached view without touching storage or the network.
        """
        now = self._clock()
        if (
            not force
            and self._last_fetch_ms is not None
            and now - self._last_fetch_ms < self._settings.fetch_throttle_ms
        ):
            return list(self._records)

        self._loading = True
        try:
            return await self._fetch()
        finally:
            self._loading = False
            self._last_fetch_ms = self._clock()

    async def _forced_refresh(self) -> None:
        await self.get_all(force=True)

    async def _fetch(self) -> list[R]:
        try:
            snapshot = await self._cache.load_snapshot()
            markers = await self._cache.load_pending()
            deleted = await self._cache.load_deleted()
        except LocalStoreError as e:
            self._error = LOAD_FAILED_MESSAGE
            await self._audit.log_storage_error("load", str(e))
            self._records = ()
            return []

        # Unsynced snapshot entries without a marker come from an interrupted add
        marker_ids = {r.id for r in markers}
        orphans = [r for r in snapshot if not r.synced and r.id not in marker_ids]
        for record in orphans:
            try:
                await self._cache.mark_pending(record)
            except LocalStoreError as e:
                await self._audit.log_storage_error("restore_marker", str(e))
        pending = [*markers, *orphans]

        remote_records: list[R] = []
        if self._online():
            try:
                rows = await self._remote.query(self._path)
                remote_records = self.scheduler.parse_remote(rows)
            except Exception as e:
                await self._audit.log_remote_fetch_failed(self._kind, str(e))

        remote_records = [r for r in remote_records if r.id not in deleted]
        snapshot = [r for r in snapshot if r.id not in deleted]

        merged = reconcile(remote_records, snapshot, pending, self._policy)

        superseded = find_superseded(
            [r for r in merged if r.synced],
            pending,
            self._policy,
        )
        if superseded:
            await self.scheduler.acknowledge_superseded(superseded)

        self._records = tuple(merged)
        self._error = None
        try:
            await self._cache.save_snapshot(merged)
        except LocalStoreError as e:
            await self._audit.log_storage_error("save_snapshot", str(e))

        await self._refresh_pending_count()
        return list(merged)

    async def get_by_id(self, record_id: str) -> Optional[R]:
        """
        Find a record by local or remote id.

        Local data first, then the remote store if online.

        Returns:
            The record, or None if it does not exist
        """
        for record in self._records:
            if record.id == record_id:
                return record

        try:
            deleted = await self._cache.load_deleted()
            for record in await self._cache.load_snapshot():
                if record.id == record_id:
                    return record
        except LocalStoreError as e:
            await self._audit.log_storage_error("get_by_id", str(e))
            deleted = set()

        if record_id in deleted or not self._online():
            return None

        try:
            fields = await self._remote.get_by_id(self._path, record_id)
        except Exception as e:
            await self._audit.log_remote_fetch_failed(self._kind, str(e))
            return None
        if fields is None:
            return None
        parsed = self.scheduler.parse_remote([(record_id, fields)])
        return parsed[0] if parsed else None

    def filter(self, predicate: Callable[[R], bool]) -> list[R]:
        """Records of the current view matching predicate."""
        return [r for r in self._records if predicate(r)]

    async def sync_all(self) -> SyncReport:
        """Manual "sync now"."""
        report = await self.scheduler.sync_all()
        await self._refresh_pending_count()
        return report

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    # ------------------------------------------------------------------
    # Scheduler callback
    # ------------------------------------------------------------------

    async def _apply_synced(self, local_id: str, synced: R) -> None:
        """Pending -> Synced: swap the entry under its new identity, as a new view."""
        updated = [r for r in self._records if r.id not in (local_id, synced.id)]
        updated.append(synced)
        self._records = _newest_first(updated)
        await self._cache.save_snapshot(self._records)


class TransactionManager(RecordManager[Transaction]):
    """Income and expense records."""

    record_type = Transaction

    def _is_guarded(self, record: Transaction) -> bool:
        return record.type.value in self._settings.guarded_types_set

    async def add(self, draft: TransactionDraft) -> Optional[Transaction]:
        return await super().add(draft)

    def filter_by_type(self, type: Optional[TransactionType] = None) -> list[Transaction]:
        if type is None:
            return self.records
        return self.filter(lambda t: t.type == type)


class DocumentManager(RecordManager[Document]):
    """Scanned documents, backed by managed image files."""

    record_type = Document

    def __init__(
        self,
        *args,
        image_store: Optional[LocalImageStore] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._images = image_store or LocalImageStore()

    async def add(self, draft: DocumentDraft) -> Optional[Document]:
        return await super().add(draft)

    async def scan(self, image_path: str, title: Optional[str] = None) -> Optional[Document]:
        """
        Copy a captured image into managed storage and record it.

        Returns:
            The new document, or None on failure (error is set)
        """
        self._loading = True
        try:
            try:
                managed_path = self._images.save_copy(image_path)
            except ImageFileError as e:
                self._error = "Could not scan document, try again"
                await self._audit.log_storage_error("scan", str(e))
                return None

            draft = DocumentDraft(title=title or "Scanned document", image_uri=managed_path)
            document = await self.add(draft)
            if document is None:
                self._images.delete(managed_path)
            return document
        finally:
            self._loading = False

    async def delete(self, record_id: str) -> bool:
        """
        Delete a document, its pending marker and its image file.

        A synced document is also deleted remotely, right away when online
        or on the next sync pass otherwise.

        Returns:
            True if the document existed and was removed locally
        """
        document = await self.get_by_id(record_id)
        if document is None:
            return False

        try:
            self._images.delete(document.image_uri)
        except ImageFileError as e:
            # Dangling file is harmless; the record still goes
            await self._audit.log_storage_error("delete_image", str(e))

        self._records = tuple(r for r in self._records if r.id != record_id)
        remote_pending = False
        try:
            await self._cache.save_snapshot(self._records)
            await self._cache.clear_pending(record_id)
            if document.synced:
                remote_pending = not await self.scheduler.delete_remote(record_id)
            else:
                await self.scheduler.forget_local(record_id)
        except LocalStoreError as e:
            self._error = "Could not delete document, try again"
            await self._audit.log_storage_error("delete", str(e))
            return False

        await self._refresh_pending_count()
        await self._audit.log_record_deleted(self._kind, record_id, remote_pending)
        return True
