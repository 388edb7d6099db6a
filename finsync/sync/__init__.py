"""Offline-first synchronization package."""

from finsync.sync.cache import RecordCache
from finsync.sync.connectivity import ConnectivityMonitor, ReachabilitySource
from finsync.sync.lifecycle import DocumentManager, RecordManager, TransactionManager
from finsync.sync.reconcile import find_superseded, reconcile
from finsync.sync.scheduler import SyncReport, SyncScheduler
from finsync.sync.signature import SignaturePolicy

__all__ = [
    # Connectivity
    "ConnectivityMonitor",
    "ReachabilitySource",
    # Reconciliation
    "SignaturePolicy",
    "find_superseded",
    "reconcile",
    # Scheduling
    "RecordCache",
    "SyncReport",
    "SyncScheduler",
    # Lifecycle
    "DocumentManager",
    "RecordManager",
    "TransactionManager",
]
