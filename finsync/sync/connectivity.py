"""
Connectivity Monitor

Wraps a platform reachability signal (a stream of booleans) into:

- `is_connected`: the latest known state
- `on_reconnect(callback)`: an edge-triggered subscription that fires only
  on an offline -> online transition, never on a repeated "online" or on
  going offline

Subscriptions are explicit handles with stable identity. Unsubscribing
removes exactly that handle and can be called any number of times.
"""

from typing import Callable, Optional, Protocol

import structlog

from finsync.audit import AuditLogger
from finsync.models.audit import AuditEventBuilder


ReconnectCallback = Callable[[], None]
Unsubscribe = Callable[[], None]

logger = structlog.get_logger(__name__)


class ReachabilitySource(Protocol):
    """Anything that pushes reachability changes to a listener."""

    def subscribe(self, listener: Callable[[bool], None]) -> Unsubscribe:
        ...


class _Subscription:
    """One registered callback. Identity, not equality, is what unsubscribe removes."""

    __slots__ = ("callback",)

    def __init__(self, callback: ReconnectCallback):
        self.callback = callback


class ConnectivityMonitor:
    """
    Edge-triggered view over a reachability signal.

    Starts connected, as the app assumes until the platform says otherwise.
    """

    def __init__(
        self,
        initially_connected: bool = True,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._connected = initially_connected
        self._subscriptions: list[_Subscription] = []
        self._audit_logger = audit_logger
        self._source_unsubscribe: Optional[Unsubscribe] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def set_connected(self, connected: bool) -> None:
        """Feed a new reachability reading."""
        was_connected = self._connected
        self._connected = bool(connected)

        if was_connected == self._connected:
            return

        if self._audit_logger:
            self._audit_logger.record(AuditEventBuilder.connectivity_changed(self._connected))

        if self._connected:
            self._fire_reconnect()

    def _fire_reconnect(self) -> None:
        # Snapshot the list: a callback may unsubscribe itself or others
        for subscription in list(self._subscriptions):
            if subscription not in self._subscriptions:
                continue
            try:
                subscription.callback()
            except Exception as e:
                logger.error(
                    "reconnect_callback_failed",
                    error=str(e),
                    callback=getattr(subscription.callback, "__qualname__", repr(subscription.callback)),
                )

    def on_reconnect(self, callback: ReconnectCallback) -> Unsubscribe:
        """
        Register a callback for offline -> online transitions.

        Returns:
            An idempotent function removing this registration only
        """
        subscription = _Subscription(callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            self._subscriptions = [s for s in self._subscriptions if s is not subscription]

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def bind(self, source: ReachabilitySource) -> None:
        """Follow a platform reachability source. Replaces any earlier binding."""
        self.close()
        self._source_unsubscribe = source.subscribe(self.set_connected)

    def close(self) -> None:
        """Stop following the bound source, if any."""
        if self._source_unsubscribe is not None:
            self._source_unsubscribe()
            self._source_unsubscribe = None
