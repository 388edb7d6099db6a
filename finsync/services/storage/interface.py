"""
Abstract Storage Interfaces

DESIGN DECISION: The sync engine talks to two stores through abstract
interfaces:

1. A local, durable key-value store (the device)
2. A remote document store (the authoritative copy)

This allows us to:
1. Swap Google Sheets for a real document database later
2. Use in-memory storage for testing
3. Keep the reconciliation logic decoupled from both backends

Neither interface promises transactions across keys. Callers must tolerate
partial writes, and the reconciliation engine re-derives truth from
whatever is currently present.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


JsonValue = Any
RemoteFields = dict[str, Any]


class LocalStoreInterface(ABC):
    """
    Flat durable key-value storage on the device.

    Values are JSON-compatible structures (dicts, lists, strings, numbers).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[JsonValue]:
        """
        Read a value.

        Returns:
            The stored value, or None if the key is absent

        Raises:
            LocalStoreError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: JsonValue) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            LocalStoreError: If the backend cannot be written
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """
        Delete a key. Removing an absent key is not an error.

        Raises:
            LocalStoreError: If the backend cannot be written
        """
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """
        List keys starting with prefix, in sorted order.

        Raises:
            LocalStoreError: If the backend cannot be read
        """
        pass


class RemoteStoreInterface(ABC):
    """
    Remote document database, addressed by collection path
    (e.g. 'users/<uid>/transactions').

    Assumed eventually consistent and queryable by equality on payload fields.
    """

    @abstractmethod
    async def query(
        self,
        collection_path: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[tuple[str, RemoteFields]]:
        """
        Find documents whose fields equal every filter value.

        Args:
            collection_path: Collection to search
            filters: Field -> value equality filters; None or {} returns all

        Returns:
            List of (remote_id, fields) pairs

        Raises:
            RemoteStoreError: If the remote cannot be queried
        """
        pass

    @abstractmethod
    async def insert(self, collection_path: str, fields: RemoteFields) -> str:
        """
        Insert a new document.

        Returns:
            The id assigned by the remote store

        Raises:
            RemoteStoreError: If the write is rejected or fails
        """
        pass

    @abstractmethod
    async def get_by_id(
        self,
        collection_path: str,
        record_id: str,
    ) -> Optional[RemoteFields]:
        """
        Read one document.

        Returns:
            Its fields, or None if no such document exists
        """
        pass

    @abstractmethod
    async def delete(self, collection_path: str, record_id: str) -> bool:
        """
        Delete one document.

        Returns:
            True if a document was deleted, False if it did not exist
        """
        pass


def matches_filters(fields: RemoteFields, filters: Optional[dict[str, Any]]) -> bool:
    """
    Equality check shared by the Python-side query implementations.

    Values are compared in their string form so that numbers round-tripped
    through JSON or a spreadsheet still compare equal.
    """
    if not filters:
        return True
    for key, expected in filters.items():
        if key not in fields or str(fields[key]) != str(expected):
            return False
    return True


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class LocalStoreError(StorageError):
    """The on-device key-value store failed to read or write."""
    pass


class RemoteStoreError(StorageError):
    """The remote store rejected or failed an operation."""
    pass
