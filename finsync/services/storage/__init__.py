"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the two
stores the sync engine reconciles: the device key-value store and the
remote document store.
"""

from finsync.services.storage.interface import (
    ConnectionError,
    LocalStoreError,
    LocalStoreInterface,
    RemoteStoreError,
    RemoteStoreInterface,
    StorageError,
    matches_filters,
)
from finsync.services.storage.local import SQLiteLocalStore
from finsync.services.storage.memory import InMemoryLocalStore, InMemoryRemoteStore
from finsync.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "LocalStoreInterface",
    "RemoteStoreInterface",
    "matches_filters",
    # Exceptions
    "ConnectionError",
    "LocalStoreError",
    "RemoteStoreError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "SQLiteLocalStore",
]
