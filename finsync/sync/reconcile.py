"""
Reconciliation Engine

Merges three overlapping views of the same record set into the single
canonical view shown to the UI:

    remote records      authoritative for anything already acknowledged
    local snapshot      the device cache, possibly ahead of a fresh remote read
    pending records     local writes not yet acknowledged

GUARANTEES:
- exactly one entry per id
- no pending record sits next to a synced record with the same content signature
- sorted by createdAt, newest first (stable for ties)
- pure: no persistence, no network; safe to call any number of times

If the remote could not be read, pass an empty list: the result degrades
to snapshot + pending and this function never raises.
"""

from typing import Iterable, TypeVar

import structlog

from finsync.models.records import SyncRecord
from finsync.sync.signature import SignaturePolicy


R = TypeVar("R", bound=SyncRecord)

logger = structlog.get_logger(__name__)


def reconcile(
    remote_records: Iterable[R],
    local_snapshot: Iterable[R],
    pending_records: Iterable[R],
    policy: SignaturePolicy,
) -> list[R]:
    """
    Produce the merged view.

    1. Remote records verbatim, each marked synced
    2. Snapshot records that are synced but absent from the remote read
    3. Pending records not already present by id and not matched by
       signature against a synced record from steps 1-2
    4. Stable sort by createdAt descending
    """
    merged: list[R] = []
    seen_ids: set[str] = set()

    for record in remote_records:
        if record.id in seen_ids:
            continue
        if not record.synced:
            record = record.model_copy(update={"synced": True})
        merged.append(record)
        seen_ids.add(record.id)

    for record in local_snapshot:
        if record.synced and record.id not in seen_ids:
            merged.append(record)
            seen_ids.add(record.id)

    synced = list(merged)
    superseded = 0
    for record in pending_records:
        if record.id in seen_ids:
            continue
        if policy.find_match(record, synced) is not None:
            superseded += 1
            continue
        merged.append(record)
        seen_ids.add(record.id)

    if superseded:
        logger.debug(
            "pending_records_superseded",
            count=superseded,
        )

    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(merged, key=lambda r: r.created_at, reverse=True)


def find_superseded(
    remote_records: Iterable[R],
    pending_records: Iterable[R],
    policy: SignaturePolicy,
) -> dict[str, R]:
    """
    Map each pending record's local id to the remote record representing it.

    The caller uses this to clear pending markers for writes that already
    reached the remote store (e.g. a push whose acknowledgment was lost).
    """
    remote = list(remote_records)
    superseded: dict[str, R] = {}
    for record in pending_records:
        if record.synced:
            continue
        match = policy.find_match(record, remote)
        if match is not None:
            superseded[record.id] = match
    return superseded
