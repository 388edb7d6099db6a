"""Tests for content signatures and duplicate matching."""

from decimal import Decimal

from finsync.config import SyncSettings
from finsync.models import Document, RecordKind, Transaction, TransactionType
from finsync.sync import SignaturePolicy


def tx(record_id="local_1_aaaaaaa", created_at=0, type=TransactionType.EXPENSE,
       amount="10", category="Food", synced=False, **extra) -> Transaction:
    return Transaction(
        id=record_id,
        created_at=created_at,
        type=type,
        amount=Decimal(amount),
        category=category,
        synced=synced,
        **extra,
    )


def policy() -> SignaturePolicy:
    return SignaturePolicy.for_kind(RecordKind.TRANSACTION, SyncSettings())


class TestSignature:
    """Tests for signature extraction."""

    def test_signature_uses_configured_fields(self):
        """Test description and date do not affect the signature."""
        a = tx(description="Lunch", date="2024-01-01")
        b = tx(description="Dinner", date="2024-02-01")
        assert policy().signature(a) == policy().signature(b)

    def test_amount_formatting_does_not_matter(self):
        """Test 20 and 20.00 share a signature."""
        assert policy().signature(tx(amount="20")) == policy().signature(tx(amount="20.00"))

    def test_document_policy(self):
        """Test documents are compared by title and managed image path."""
        document_policy = SignaturePolicy.for_kind(RecordKind.DOCUMENT, SyncSettings())
        doc = Document(id="d", created_at=0, title="Receipt", image_uri="/a.jpg")
        assert document_policy.signature(doc) == ("Receipt", "/a.jpg")

    def test_untitled_scans_do_not_match(self):
        """Test two scans sharing the default title stay distinct."""
        document_policy = SignaturePolicy.for_kind(RecordKind.DOCUMENT, SyncSettings())
        first = Document(id="d1", created_at=0, title="Scanned document", image_uri="/docs/document_1.jpg")
        second = Document(id="d2", created_at=2000, title="Scanned document", image_uri="/docs/document_2.jpg")
        assert not document_policy.matches(first, second)

    def test_prefilter_excludes_created_at(self):
        """Test the remote query filter never pins createdAt."""
        filters = policy().prefilter(tx(amount="20"))
        assert filters == {"type": "expense", "amount": "20.00", "category": "Food"}


class TestMatching:
    """Tests for window-based matching."""

    def test_match_within_window(self):
        """Test equal signatures 5s apart match."""
        assert policy().matches(tx(created_at=0), tx(created_at=5000))

    def test_no_match_outside_window(self):
        """Test equal signatures more than 5s apart do not match."""
        assert not policy().matches(tx(created_at=0), tx(created_at=5001))

    def test_no_match_with_different_amount(self):
        """Test differing salient fields never match."""
        assert not policy().matches(tx(amount="10"), tx(amount="11"))

    def test_income_uses_lenient_window(self):
        """Test income records match up to 60s apart."""
        a = tx(type=TransactionType.INCOME, category="Salary", created_at=0)
        b = tx(type=TransactionType.INCOME, category="Salary", created_at=59_000)
        assert policy().matches(a, b)
        c = tx(type=TransactionType.INCOME, category="Salary", created_at=61_000)
        assert not policy().matches(a, c)

    def test_find_match_prefers_closest(self):
        """Test the candidate nearest in createdAt wins."""
        record = tx(created_at=10_000)
        far = tx(record_id="far", created_at=6_000, synced=True)
        near = tx(record_id="near", created_at=11_000, synced=True)
        assert policy().find_match(record, [far, near]).id == "near"

    def test_find_match_none(self):
        """Test no candidate means no match."""
        assert policy().find_match(tx(), []) is None

    def test_custom_window(self):
        """Test the window comes from settings."""
        strict = SignaturePolicy.for_kind(
            RecordKind.TRANSACTION, SyncSettings(dedup_window_ms=100)
        )
        assert not strict.matches(tx(created_at=0), tx(created_at=200))
