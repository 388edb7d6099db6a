"""
finsync - Source Package

Offline-first synchronization engine for a personal finance tracker.
Transactions and scanned documents are created on the device, shown
immediately, and pushed to a remote store whenever connectivity allows.

DESIGN PRINCIPLES:
1. Local write first, remote write later
2. Never lose a user's write, never show it twice
3. One record, one id, at every moment
4. Every state change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finsync Team"
