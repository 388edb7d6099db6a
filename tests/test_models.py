"""
Tests for finsync models

Test strategy:
1. Unit tests for individual components (models, settings, audit)
2. Integration tests for flows (with in-memory stores)
3. No real API calls in tests
"""

import re
from decimal import Decimal

import pytest
from pydantic import ValidationError

from finsync.config import SyncSettings
from finsync.models.records import (
    Document,
    DocumentDraft,
    RecordKind,
    Transaction,
    TransactionDraft,
    TransactionType,
    generate_local_id,
    is_local_id,
)
from finsync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finsync.audit import AuditLogger


def make_transaction(**overrides) -> Transaction:
    data = {
        "id": "local_1700000000000_abc1234",
        "created_at": 1_700_000_000_000,
        "type": TransactionType.EXPENSE,
        "amount": Decimal("12.50"),
        "category": "Food",
    }
    data.update(overrides)
    return Transaction(**data)


class TestLocalIds:
    """Tests for local id generation."""

    def test_local_id_format(self):
        """Test ids look like local_<ms>_<7 base36 chars>."""
        record_id = generate_local_id(1_700_000_000_000)
        assert re.fullmatch(r"local_1700000000000_[a-z0-9]{7}", record_id)

    def test_local_ids_are_unique(self):
        """Test ids generated in the same millisecond still differ."""
        ids = {generate_local_id(1) for _ in range(200)}
        assert len(ids) == 200

    def test_is_local_id(self):
        """Test local and remote ids are told apart by prefix."""
        assert is_local_id(generate_local_id())
        assert not is_local_id("a1b2c3d4e5")


class TestRecordModels:
    """Tests for record Pydantic models."""

    def test_record_kind_collection(self):
        """Test snapshot key / collection names."""
        assert RecordKind.TRANSACTION.collection == "transactions"
        assert RecordKind.DOCUMENT.collection == "documents"

    def test_amount_is_normalized(self):
        """Test that 20, 20.0 and 20.00 become the same amount."""
        assert make_transaction(amount=Decimal("20")).amount == Decimal("20.00")
        assert str(make_transaction(amount=Decimal("20.0")).amount) == "20.00"

    def test_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            make_transaction(amount=Decimal("-1"))

    def test_category_strips_whitespace(self):
        """Test that whitespace is stripped from the category."""
        assert make_transaction(category="  Food  ").category == "Food"

    def test_records_are_frozen(self):
        """Test that records cannot be mutated in place."""
        transaction = make_transaction()
        with pytest.raises(ValidationError):
            transaction.amount = Decimal("1")

    def test_new_record_is_local_and_unsynced(self):
        """Test the Pending state of a new record."""
        transaction = make_transaction()
        assert transaction.is_local
        assert transaction.synced is False

    def test_with_remote_id_returns_new_record(self):
        """Test the Pending -> Synced transition keeps the payload."""
        transaction = make_transaction()
        synced = transaction.with_remote_id("remote-1")

        assert synced.id == "remote-1"
        assert synced.synced is True
        assert synced.created_at == transaction.created_at
        assert synced.amount == transaction.amount
        assert transaction.id.startswith("local_")

    def test_remote_fields_exclude_identity(self):
        """Test id and synced flag never reach the remote store."""
        fields = make_transaction().to_remote_fields()
        assert "id" not in fields
        assert "synced" not in fields
        assert fields["amount"] == "12.50"
        assert fields["type"] == "expense"
        assert fields["created_at"] == 1_700_000_000_000

    def test_storage_round_trip(self):
        """Test the local store form restores an equal record."""
        transaction = make_transaction(description="Lunch")
        assert Transaction.from_storage(transaction.to_storage()) == transaction

    def test_from_remote_marks_synced_and_ignores_unknown_fields(self):
        """Test remote documents with extra fields still parse."""
        fields = make_transaction().to_remote_fields()
        fields["legacy_column"] = "x"

        record = Transaction.from_remote("remote-9", fields)

        assert record.id == "remote-9"
        assert record.synced is True
        assert not hasattr(record, "legacy_column")

    def test_document_requires_image(self):
        """Test a document without an image is invalid."""
        with pytest.raises(ValidationError):
            Document(id="d1", created_at=1, title="Receipt", image_uri="")


class TestDrafts:
    """Tests for the input models the UI submits."""

    def test_transaction_draft_build(self):
        """Test identity is assigned when the draft is built."""
        draft = TransactionDraft(
            type=TransactionType.INCOME,
            amount=Decimal("100"),
            category="Salary",
            description="March",
        )
        record = draft.build("local_5_abcdefg", 5)

        assert isinstance(record, Transaction)
        assert record.id == "local_5_abcdefg"
        assert record.created_at == 5
        assert record.amount == Decimal("100.00")
        assert record.synced is False

    def test_document_draft_default_title(self):
        """Test scanned documents get a default title."""
        record = DocumentDraft(image_uri="/tmp/doc.jpg").build("local_1_abcdefg", 1)
        assert record.title == "Scanned document"


class TestSettings:
    """Tests for sync settings."""

    def test_defaults(self):
        """Test the default windows and throttles."""
        settings = SyncSettings()
        assert settings.dedup_window_ms == 5000
        assert settings.lenient_dedup_window_ms == 60000
        assert settings.fetch_throttle_ms == 1000
        assert settings.max_sync_attempts is None
        assert settings.transaction_signature_list == ["type", "amount", "category"]
        assert settings.lenient_types_set == frozenset({"income"})

    def test_environment_override(self, monkeypatch):
        """Test settings are read from FINSYNC_SYNC_* variables."""
        monkeypatch.setenv("FINSYNC_SYNC_DEDUP_WINDOW_MS", "2500")
        monkeypatch.setenv("FINSYNC_SYNC_GUARDED_TYPES", "income, expense")

        settings = SyncSettings()

        assert settings.dedup_window_ms == 2500
        assert settings.guarded_types_set == frozenset({"income", "expense"})

    def test_rejects_zero_retry_cap(self):
        """Test a retry cap must allow at least one attempt."""
        with pytest.raises(ValidationError):
            SyncSettings(max_sync_attempts=0)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            entity_type="transaction",
            entity_id="local_1_abcdefg",
            description="Test event",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp is not None

    def test_sync_failed_builder(self):
        """Test failures are logged as warnings with the attempt count."""
        event = AuditEventBuilder.sync_failed(
            "transaction", "local_1_abcdefg", "timeout", 3
        )
        assert event.event_type == AuditEventType.SYNC_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.details["attempts"] == 3
        assert event.error_message == "timeout"

    def test_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEventBuilder.record_synced("transaction", "local_1_abcdefg", "remote-1")
        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "record_synced"
        assert log_dict["entity_type"] == "transaction"
        assert "timestamp" in log_dict

    def test_connectivity_events(self):
        """Test connectivity changes map to two event types."""
        assert (
            AuditEventBuilder.connectivity_changed(True).event_type
            == AuditEventType.CONNECTIVITY_RESTORED
        )
        assert (
            AuditEventBuilder.connectivity_changed(False).event_type
            == AuditEventType.CONNECTIVITY_LOST
        )

    def test_audit_logger_history_is_bounded(self):
        """Test that the in-memory history keeps only recent events."""
        audit_logger = AuditLogger(history_size=3)
        for i in range(5):
            audit_logger.record(AuditEventBuilder.record_created("transaction", f"id-{i}"))

        assert [e.entity_id for e in audit_logger.history] == ["id-2", "id-3", "id-4"]
