"""
In-Memory Storage Implementations

Used by the test-suite and for ephemeral sessions (e.g. a demo mode
with no credentials). They behave like the real backends:

- values are copied in and out, so callers never share mutable state
- the remote store assigns its own ids
- the remote store can be switched "offline" to exercise failure paths
"""

import copy
from typing import Any, Optional
from uuid import uuid4

from finsync.services.storage.interface import (
    ConnectionError,
    JsonValue,
    LocalStoreInterface,
    RemoteFields,
    RemoteStoreInterface,
    matches_filters,
)


class InMemoryLocalStore(LocalStoreInterface):
    """Dict-backed key-value store. Not durable."""

    def __init__(self, initial: Optional[dict[str, JsonValue]] = None):
        self._data: dict[str, JsonValue] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[JsonValue]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: JsonValue) -> None:
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class InMemoryRemoteStore(RemoteStoreInterface):
    """
    Dict-backed remote document store.

    Set `available = False` to make every call raise ConnectionError,
    mimicking an unreachable backend.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, RemoteFields]] = {}
        self.available = True
        self.insert_count = 0

    def _check(self) -> None:
        if not self.available:
            raise ConnectionError("Remote store unreachable")

    def _collection(self, collection_path: str) -> dict[str, RemoteFields]:
        return self._collections.setdefault(collection_path, {})

    def seed(self, collection_path: str, record_id: str, fields: RemoteFields) -> None:
        """Place a document directly, bypassing insert accounting."""
        self._collection(collection_path)[record_id] = copy.deepcopy(fields)

    def documents(self, collection_path: str) -> dict[str, RemoteFields]:
        return copy.deepcopy(self._collection(collection_path))

    async def query(
        self,
        collection_path: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[tuple[str, RemoteFields]]:
        self._check()
        return [
            (record_id, copy.deepcopy(fields))
            for record_id, fields in self._collection(collection_path).items()
            if matches_filters(fields, filters)
        ]

    async def insert(self, collection_path: str, fields: RemoteFields) -> str:
        self._check()
        record_id = uuid4().hex[:20]
        self._collection(collection_path)[record_id] = copy.deepcopy(fields)
        self.insert_count += 1
        return record_id

    async def get_by_id(
        self,
        collection_path: str,
        record_id: str,
    ) -> Optional[RemoteFields]:
        self._check()
        fields = self._collection(collection_path).get(record_id)
        return copy.deepcopy(fields) if fields is not None else None

    async def delete(self, collection_path: str, record_id: str) -> bool:
        self._check()
        return self._collection(collection_path).pop(record_id, None) is not None
