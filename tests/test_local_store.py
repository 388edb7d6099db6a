"""Tests for local key-value stores and the record cache built on them."""

from decimal import Decimal

import pytest

from finsync.models import Transaction, TransactionType
from finsync.services.storage import InMemoryLocalStore, LocalStoreError, SQLiteLocalStore
from finsync.sync import RecordCache


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryLocalStore()
    else:
        sqlite_store = SQLiteLocalStore(str(tmp_path / "data" / "finsync.db"))
        yield sqlite_store
        sqlite_store.close()


def tx(record_id: str, created_at: int = 1) -> Transaction:
    return Transaction(
        id=record_id,
        created_at=created_at,
        type=TransactionType.EXPENSE,
        amount=Decimal("3"),
        category="Bus",
    )


class TestLocalStores:
    """Tests shared by every LocalStoreInterface implementation."""

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        """Test an absent key reads as None."""
        assert await store.get("nothing") is None

    @pytest.mark.asyncio
    async def test_set_overwrites(self, store):
        """Test set replaces an existing value."""
        await store.set("k", {"a": 1})
        await store.set("k", {"a": 2})
        assert await store.get("k") == {"a": 2}

    @pytest.mark.asyncio
    async def test_remove_missing_is_noop(self, store):
        """Test removing an absent key does not fail."""
        await store.remove("nothing")

    @pytest.mark.asyncio
    async def test_list_keys_prefix_is_literal(self, store):
        """Test underscores in the prefix are not wildcards."""
        await store.set("pending_transaction_1", 1)
        await store.set("pendingXtransaction_2", 2)
        await store.set("transactions", [])

        assert await store.list_keys("pending_transaction_") == ["pending_transaction_1"]
        assert len(await store.list_keys()) == 3


class TestSQLiteLocalStore:
    """Tests specific to the durable store."""

    @pytest.mark.asyncio
    async def test_values_survive_reopen(self, tmp_path):
        """Test data is still there after closing and reopening."""
        path = str(tmp_path / "finsync.db")
        first = SQLiteLocalStore(path)
        await first.set("transactions", [{"id": "r1"}])
        first.close()

        second = SQLiteLocalStore(path)
        assert await second.get("transactions") == [{"id": "r1"}]
        second.close()

    @pytest.mark.asyncio
    async def test_rejects_unserializable_value(self, tmp_path):
        """Test non-JSON values raise LocalStoreError."""
        store = SQLiteLocalStore(str(tmp_path / "finsync.db"))
        with pytest.raises(LocalStoreError):
            await store.set("k", object())
        store.close()


class TestRecordCache:
    """Tests for snapshot and marker persistence."""

    @pytest.mark.asyncio
    async def test_snapshot_round_trip(self, store):
        """Test the snapshot restores the saved records."""
        cache = RecordCache(store, Transaction)
        records = [tx("r1", 2), tx("r2", 1)]
        await cache.save_snapshot(records)
        assert await cache.load_snapshot() == records

    @pytest.mark.asyncio
    async def test_pending_markers(self, store):
        """Test one marker per pending record under pending_transaction_<id>."""
        cache = RecordCache(store, Transaction)
        await cache.mark_pending(tx("local_1_aaaaaaa"))
        await cache.mark_pending(tx("local_2_bbbbbbb"))
        await cache.clear_pending("local_1_aaaaaaa")

        assert await store.list_keys("pending_transaction_") == [
            "pending_transaction_local_2_bbbbbbb"
        ]
        assert [r.id for r in await cache.load_pending()] == ["local_2_bbbbbbb"]
        assert await cache.pending_count() == 1

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, store):
        """Test one corrupt marker does not hide the others."""
        cache = RecordCache(store, Transaction)
        await cache.mark_pending(tx("local_1_aaaaaaa"))
        await store.set("pending_transaction_broken", {"id": "broken"})

        assert [r.id for r in await cache.load_pending()] == ["local_1_aaaaaaa"]

    @pytest.mark.asyncio
    async def test_deletion_markers(self, store):
        """Test queued remote deletions are tracked by id."""
        cache = RecordCache(store, Transaction)
        await cache.mark_deleted("r1")
        await cache.mark_deleted("r2")
        await cache.clear_deleted("r1")
        assert await cache.load_deleted() == {"r2"}
