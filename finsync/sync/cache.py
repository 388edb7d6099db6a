"""
Record Cache

Typed view over the flat key-value store for one record kind:

    "<kind>s"                  the full snapshot (list of records)
    "pending_<kind>_<id>"      one marker per record awaiting acknowledgment
    "deleted_<kind>_<id>"      one marker per remote deletion not yet sent

LocalStoreError propagates to the caller. Malformed entries are skipped
with a warning so that one corrupt value never hides the rest.
"""

from typing import Generic, Iterable, Optional, TypeVar

import structlog
from pydantic import ValidationError

from finsync.models.records import SyncRecord
from finsync.services.storage import LocalStoreInterface


R = TypeVar("R", bound=SyncRecord)

logger = structlog.get_logger(__name__)


class RecordCache(Generic[R]):
    """Snapshot and marker persistence for one record type."""

    def __init__(self, store: LocalStoreInterface, record_type: type[R]):
        self._store = store
        self._record_type = record_type
        kind = record_type.kind
        self.snapshot_key = kind.collection
        self.pending_prefix = f"pending_{kind.value}_"
        self.deletion_prefix = f"deleted_{kind.value}_"

    def _parse(self, data, source: str) -> Optional[R]:
        try:
            return self._record_type.from_storage(data)
        except (ValidationError, TypeError) as e:
            logger.warning("malformed_cached_record", source=source, error=str(e))
            return None

    # Snapshot

    async def load_snapshot(self) -> list[R]:
        raw = await self._store.get(self.snapshot_key)
        if not isinstance(raw, list):
            return []
        records = []
        for item in raw:
            record = self._parse(item, self.snapshot_key)
            if record is not None:
                records.append(record)
        return records

    async def save_snapshot(self, records: Iterable[R]) -> None:
        await self._store.set(self.snapshot_key, [r.to_storage() for r in records])

    # Pending markers

    def pending_key(self, record_id: str) -> str:
        return f"{self.pending_prefix}{record_id}"

    async def mark_pending(self, record: R) -> None:
        await self._store.set(self.pending_key(record.id), record.to_storage())

    async def has_pending(self, record_id: str) -> bool:
        return await self._store.get(self.pending_key(record_id)) is not None

    async def clear_pending(self, record_id: str) -> None:
        await self._store.remove(self.pending_key(record_id))

    async def load_pending(self) -> list[R]:
        records = []
        for key in await self._store.list_keys(self.pending_prefix):
            data = await self._store.get(key)
            if data is None:
                # Removed between listing and reading
                continue
            record = self._parse(data, key)
            if record is not None:
                records.append(record)
        return records

    async def pending_count(self) -> int:
        return len(await self._store.list_keys(self.pending_prefix))

    # Deletion markers

    async def mark_deleted(self, record_id: str) -> None:
        await self._store.set(f"{self.deletion_prefix}{record_id}", record_id)

    async def clear_deleted(self, record_id: str) -> None:
        await self._store.remove(f"{self.deletion_prefix}{record_id}")

    async def load_deleted(self) -> set[str]:
        keys = await self._store.list_keys(self.deletion_prefix)
        return {key[len(self.deletion_prefix):] for key in keys}
