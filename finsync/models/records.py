"""
Core Record Models for finsync

A record is either a Transaction or a scanned Document. Both share the
same sync lifecycle:

    created locally (local id, synced=False)
        -> pushed or matched remotely
        -> id rewritten to the remote id, synced=True

DESIGN DECISION: Records are frozen. Payload fields never change after
creation, and the local -> remote transition produces a NEW record via
with_remote_id() instead of mutating the old one. Views holding the old
object therefore never observe a half-updated record.
"""

import random
import string
import time
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


LOCAL_ID_PREFIX = "local_"
_LOCAL_ID_ALPHABET = string.ascii_lowercase + string.digits

R = TypeVar("R", bound="SyncRecord")


def now_ms() -> int:
    """Current client clock in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_local_id(created_at: Optional[int] = None) -> str:
    """
    Generate a local record id.

    Format: local_{epoch_ms}_{7 random base36 chars}
    """
    timestamp = created_at if created_at is not None else now_ms()
    suffix = "".join(random.choices(_LOCAL_ID_ALPHABET, k=7))
    return f"{LOCAL_ID_PREFIX}{timestamp}_{suffix}"


def is_local_id(record_id: str) -> bool:
    return record_id.startswith(LOCAL_ID_PREFIX)


def _today() -> str:
    return date_type.today().isoformat()


# =============================================================================
# ENUMS
# =============================================================================

class RecordKind(str, Enum):
    """The two record families handled by the sync engine."""
    TRANSACTION = "transaction"
    DOCUMENT = "document"

    @property
    def collection(self) -> str:
        """Name of the local snapshot key and the remote collection."""
        return f"{self.value}s"


class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


# =============================================================================
# RECORDS
# =============================================================================

class SyncRecord(BaseModel):
    """
    Fields and behaviour shared by every synchronizable record.

    Subclasses declare `kind` and their payload fields.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: ClassVar[RecordKind]

    id: str = Field(
        ...,
        min_length=1,
        description="Local id until acknowledged remotely, remote id afterwards"
    )
    created_at: int = Field(
        ...,
        ge=0,
        description="Client clock at creation, epoch milliseconds"
    )
    synced: bool = Field(
        default=False,
        description="True once the remote store has acknowledged the record"
    )

    @property
    def is_local(self) -> bool:
        return is_local_id(self.id)

    def to_remote_fields(self) -> dict[str, Any]:
        """Fields written to the remote store (identity and sync flag excluded)."""
        return self.model_dump(mode="json", exclude={"id", "synced"})

    def to_storage(self) -> dict[str, Any]:
        """JSON-compatible form used by the local key-value store."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls: type[R], data: dict[str, Any]) -> R:
        return cls.model_validate(data)

    @classmethod
    def from_remote(cls: type[R], record_id: str, fields: dict[str, Any]) -> R:
        """Build a record from a remote document. Remote records are always synced."""
        known = {k: v for k, v in fields.items() if k in cls.model_fields}
        known["id"] = record_id
        known["synced"] = True
        return cls.model_validate(known)

    def with_remote_id(self: R, remote_id: str) -> R:
        """The Pending -> Synced transition: adopt the remote identity."""
        return self.model_copy(update={"id": remote_id, "synced": True})


class Transaction(SyncRecord):
    """An income or expense entry."""

    kind: ClassVar[RecordKind] = RecordKind.TRANSACTION

    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount, normalized to two decimal places"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100
    )
    description: str = Field(
        default="",
        max_length=500
    )
    date: str = Field(
        default_factory=_today,
        description="ISO date the user assigned to the transaction"
    )

    @field_validator('amount')
    @classmethod
    def normalize_amount(cls, v: Decimal) -> Decimal:
        """Quantize so that 20, 20.0 and 20.00 share one signature."""
        return v.quantize(Decimal("0.01"))


class Document(SyncRecord):
    """A scanned document image kept on the device."""

    kind: ClassVar[RecordKind] = RecordKind.DOCUMENT

    title: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    image_uri: str = Field(
        ...,
        min_length=1,
        description="Path of the managed local copy of the image"
    )
    date: str = Field(
        default_factory=_today,
        description="ISO date of the scan"
    )


# =============================================================================
# DRAFTS - what the UI submits
# =============================================================================

class TransactionDraft(BaseModel):
    """User input for a new transaction, before identity is assigned."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    date: str = Field(default_factory=_today)

    def build(self, record_id: str, created_at: int) -> Transaction:
        return Transaction(
            id=record_id,
            created_at=created_at,
            synced=False,
            **self.model_dump(),
        )


class DocumentDraft(BaseModel):
    """User input for a new document."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(default="Scanned document", min_length=1, max_length=200)
    image_uri: str = Field(..., min_length=1)
    date: str = Field(default_factory=_today)

    def build(self, record_id: str, created_at: int) -> Document:
        return Document(
            id=record_id,
            created_at=created_at,
            synced=False,
            **self.model_dump(),
        )

