"""
Content Signatures

A local pending record and its remote counterpart have different ids, so
identity alone cannot tell that they describe the same user action. A
content signature can: the salient payload fields plus createdAt, compared
within a tolerance window.

KNOWN TRADEOFF: this is a heuristic. Two genuinely distinct transactions
with the same amount, type and category entered within the window collapse
into one. The window and the compared fields are configurable for that
reason (see SyncSettings).
"""

from typing import Any, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from finsync.config import SyncSettings
from finsync.models.records import RecordKind, SyncRecord

R = TypeVar("R", bound=SyncRecord)


class SignaturePolicy(BaseModel):
    """Which fields make two records 'the same write', and how close in time."""
    model_config = ConfigDict(frozen=True)

    fields: tuple[str, ...] = Field(..., min_length=1)
    window_ms: int = Field(default=5000, ge=0)
    lenient_window_ms: int = Field(default=60000, ge=0)
    lenient_types: frozenset[str] = frozenset({"income"})

    @classmethod
    def for_kind(cls, kind: RecordKind, settings: SyncSettings) -> "SignaturePolicy":
        if kind == RecordKind.TRANSACTION:
            fields = settings.transaction_signature_list
        else:
            fields = settings.document_signature_list
        return cls(
            fields=tuple(fields),
            window_ms=settings.dedup_window_ms,
            lenient_window_ms=settings.lenient_dedup_window_ms,
            lenient_types=settings.lenient_types_set,
        )

    def signature(self, record: SyncRecord) -> tuple[Any, ...]:
        """Salient field values in their JSON form (enums as values, amounts as strings)."""
        dumped = record.model_dump(mode="json", include=set(self.fields))
        return tuple(dumped.get(field) for field in self.fields if field != "created_at")

    def window_for(self, record: SyncRecord) -> int:
        record_type = getattr(record, "type", None)
        type_value = getattr(record_type, "value", record_type)
        if type_value is not None and str(type_value) in self.lenient_types:
            return max(self.window_ms, self.lenient_window_ms)
        return self.window_ms

    def matches(self, a: SyncRecord, b: SyncRecord) -> bool:
        if self.signature(a) != self.signature(b):
            return False
        window = max(self.window_for(a), self.window_for(b))
        return abs(a.created_at - b.created_at) <= window

    def find_match(self, record: SyncRecord, candidates: Iterable[R]) -> Optional[R]:
        """The same-signature candidate closest in createdAt, if any."""
        best: Optional[R] = None
        for candidate in candidates:
            if not self.matches(record, candidate):
                continue
            if best is None or (
                abs(candidate.created_at - record.created_at)
                < abs(best.created_at - record.created_at)
            ):
                best = candidate
        return best

    def prefilter(self, record: SyncRecord) -> dict[str, Any]:
        """
        Coarse equality filters for the remote query.

        createdAt is excluded: it is matched by window, not equality.
        """
        remote_fields = record.to_remote_fields()
        return {
            field: remote_fields[field]
            for field in self.fields
            if field in remote_fields and field != "created_at"
        }
