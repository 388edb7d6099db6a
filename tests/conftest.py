"""
Shared fixtures for finsync tests.

No real network or credentials are used: remote stores are the in-memory
implementation (or a subclass of it that blocks or fails on demand).
"""

import asyncio
from decimal import Decimal
from typing import Any, Optional

import pytest

from finsync.audit import AuditLogger
from finsync.config import SyncSettings
from finsync.models import TransactionDraft, TransactionType
from finsync.services import LocalImageStore
from finsync.services.storage import (
    InMemoryLocalStore,
    InMemoryRemoteStore,
    LocalStoreError,
    RemoteStoreError,
)
from finsync.sync import ConnectivityMonitor, DocumentManager, TransactionManager


TRANSACTIONS_PATH = "users/test-user/transactions"
DOCUMENTS_PATH = "users/test-user/documents"
START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class GatedRemoteStore(InMemoryRemoteStore):
    """Remote store whose inserts wait until the gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def insert(self, collection_path: str, fields: dict[str, Any]) -> str:
        await self.gate.wait()
        return await super().insert(collection_path, fields)


class FlakyRemoteStore(InMemoryRemoteStore):
    """Remote store that rejects inserts of one category."""

    def __init__(self, broken_category: str = "Broken"):
        super().__init__()
        self.broken_category = broken_category

    async def insert(self, collection_path: str, fields: dict[str, Any]) -> str:
        if fields.get("category") == self.broken_category:
            raise RemoteStoreError("Insert rejected")
        return await super().insert(collection_path, fields)


class FailingLocalStore(InMemoryLocalStore):
    """Local store whose reads, writes or removals raise LocalStoreError."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = True, fail_removes: bool = False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.fail_removes = fail_removes

    async def get(self, key: str):
        if self.fail_reads:
            raise LocalStoreError("Disk unavailable")
        return await super().get(key)

    async def list_keys(self, prefix: str = "") -> list[str]:
        if self.fail_reads:
            raise LocalStoreError("Disk unavailable")
        return await super().list_keys(prefix)

    async def set(self, key: str, value) -> None:
        if self.fail_writes:
            raise LocalStoreError("Disk full")
        await super().set(key, value)

    async def remove(self, key: str) -> None:
        if self.fail_removes:
            raise LocalStoreError("Disk busy")
        await super().remove(key)


def income(amount: str = "20", category: str = "Salary") -> TransactionDraft:
    return TransactionDraft(
        type=TransactionType.INCOME,
        amount=Decimal(amount),
        category=category,
    )


def expense(amount: str = "12.50", category: str = "Food") -> TransactionDraft:
    return TransactionDraft(
        type=TransactionType.EXPENSE,
        amount=Decimal(amount),
        category=category,
    )


def dining_fields(created_at: int) -> dict[str, Any]:
    """Remote form of a 20.00 dining expense."""
    return {
        "created_at": created_at,
        "type": "expense",
        "amount": "20.00",
        "category": "Dining",
        "description": "",
        "date": "2024-05-01",
    }


@pytest.fixture
def sync_settings() -> SyncSettings:
    return SyncSettings(settle_delay_ms=0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest.fixture
def remote_store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def monitor(audit_logger) -> ConnectivityMonitor:
    return ConnectivityMonitor(audit_logger=audit_logger)


@pytest.fixture
def make_transactions(local_store, remote_store, monitor, sync_settings, audit_logger, clock):
    """Build a TransactionManager; any dependency can be overridden."""

    def factory(
        local=None,
        remote: Optional[InMemoryRemoteStore] = remote_store,
        connectivity=None,
        settings=None,
    ) -> TransactionManager:
        return TransactionManager(
            local or local_store,
            remote,
            connectivity or monitor,
            TRANSACTIONS_PATH,
            settings=settings or sync_settings,
            audit_logger=audit_logger,
            clock=clock,
        )

    return factory


@pytest.fixture
def image_store(tmp_path) -> LocalImageStore:
    return LocalImageStore(str(tmp_path / "documents"))


@pytest.fixture
def documents(local_store, remote_store, monitor, sync_settings, audit_logger, clock, image_store):
    return DocumentManager(
        local_store,
        remote_store,
        monitor,
        DOCUMENTS_PATH,
        settings=sync_settings,
        audit_logger=audit_logger,
        clock=clock,
        image_store=image_store,
    )


@pytest.fixture
def make_documents(local_store, remote_store, monitor, sync_settings, audit_logger, clock, image_store):
    """Build a DocumentManager; any dependency can be overridden."""

    def factory(remote=remote_store, settings=None) -> DocumentManager:
        return DocumentManager(
            local_store,
            remote,
            monitor,
            DOCUMENTS_PATH,
            settings=settings or sync_settings,
            audit_logger=audit_logger,
            clock=clock,
            image_store=image_store,
        )

    return factory


@pytest.fixture
def scanned_image(tmp_path) -> str:
    path = tmp_path / "camera" / "capture.jpg"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return str(path)


def event_types(audit_logger: AuditLogger) -> list[str]:
    return [event.event_type.value for event in audit_logger.history]
