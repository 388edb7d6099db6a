"""Services package."""

from finsync.services.files import ImageFileError, LocalImageStore
from finsync.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryLocalStore,
    InMemoryRemoteStore,
    LocalStoreError,
    LocalStoreInterface,
    RemoteStoreError,
    RemoteStoreInterface,
    SQLiteLocalStore,
    StorageError,
)

__all__ = [
    # Image files
    "ImageFileError",
    "LocalImageStore",
    # Storage services
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryLocalStore",
    "InMemoryRemoteStore",
    "LocalStoreError",
    "LocalStoreInterface",
    "RemoteStoreError",
    "RemoteStoreInterface",
    "SQLiteLocalStore",
    "StorageError",
]
