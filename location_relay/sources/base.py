"""Location source interfaces used by the sender."""
from __future__ import annotations

from abc import ABC, abstractmethod
import logging
import threading
from typing import Callable, Dict, Optional, Protocol, Set

from ..protocol.messages import LocationFix, distance_m

LOGGER = logging.getLogger(__name__)

FixCallback = Callable[[LocationFix], None]


class Subscription:
    """Handle returned by :meth:`LocationSource.subscribe`.

    Delivery and cancellation share a re-entrant lock: once :meth:`cancel`
    returns, the callback is not running and will not run again.
    """

    def __init__(
        self,
        provider_name: str,
        interval_ms: int,
        min_distance_m: float,
        on_fix: FixCallback,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if min_distance_m < 0:
            raise ValueError("min_distance_m must be non-negative")
        self.provider_name = provider_name
        self.interval_ms = interval_ms
        self.min_distance_m = min_distance_m
        self._on_fix = on_fix
        self._lock = threading.RLock()
        self._cancelled = threading.Event()
        self._last_delivered: Optional[LocationFix] = None
        self.thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def deliver(self, fix: LocationFix) -> bool:
        """Invoke the callback unless cancelled or below the distance threshold."""

        with self._lock:
            if self._cancelled.is_set():
                return False
            last = self._last_delivered
            if last is not None and self.min_distance_m > 0 and distance_m(last, fix) < self.min_distance_m:
                return False
            self._last_delivered = fix
            try:
                self._on_fix(fix)
            except Exception:
                LOGGER.exception("location callback failed for provider %s", self.provider_name)
            return True

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; ``True`` means the handle was cancelled."""

        return self._cancelled.wait(timeout)

    def cancel(self) -> None:
        self._cancelled.set()
        with self._lock:
            # Wait for an in-flight callback to return.
            pass


class LocationSource(Protocol):
    """Protocol describing how the sender reads positions from the device."""

    def has_permission(self) -> bool:
        """Return ``True`` when the positioning capability may be used."""

    def last_known(self, provider_name: str) -> Optional[LocationFix]:
        """Return the most recent fix known for ``provider_name``, if any."""

    def subscribe(
        self,
        provider_name: str,
        interval_ms: int,
        min_distance_m: float,
        on_fix: FixCallback,
    ) -> Subscription:
        """Start delivering fixes for ``provider_name`` to ``on_fix``."""

    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop deliveries; no callback fires once this returns."""


class PollingLocationSource(ABC):
    """Base class for sources read by periodically polling a provider.

    Subclasses implement :meth:`read_fix`. Every subscription gets its own
    daemon thread which calls it every ``interval_ms`` and forwards the
    result to the subscriber.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_fixes: Dict[str, LocationFix] = {}
        self._subscriptions: Set[Subscription] = set()

    # Public API -----------------------------------------------------
    def has_permission(self) -> bool:
        return True

    @abstractmethod
    def read_fix(self, provider_name: str) -> Optional[LocationFix]:
        """Return a fresh fix for ``provider_name`` or ``None`` when unavailable."""

    def last_known(self, provider_name: str) -> Optional[LocationFix]:
        with self._lock:
            return self._last_fixes.get(provider_name)

    def subscribe(
        self,
        provider_name: str,
        interval_ms: int,
        min_distance_m: float,
        on_fix: FixCallback,
    ) -> Subscription:
        subscription = Subscription(provider_name, interval_ms, min_distance_m, on_fix)
        thread = threading.Thread(
            target=self._poll,
            args=(subscription,),
            name=f"location-poll-{provider_name}",
            daemon=True,
        )
        subscription.thread = thread
        with self._lock:
            self._subscriptions.add(subscription)
        thread.start()
        LOGGER.debug("subscribed to %s every %d ms", provider_name, interval_ms)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()
        with self._lock:
            self._subscriptions.discard(subscription)
        thread = subscription.thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout=2.0)

    def close(self) -> None:
        """Cancel every live subscription."""

        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            self.unsubscribe(subscription)

    # Internal helpers -----------------------------------------------
    def _remember(self, provider_name: str, fix: LocationFix) -> None:
        with self._lock:
            self._last_fixes[provider_name] = fix

    def _poll(self, subscription: Subscription) -> None:
        interval = subscription.interval_ms / 1000.0
        while subscription.active:
            try:
                fix = self.read_fix(subscription.provider_name)
            except Exception:
                LOGGER.exception("failed to read a fix from %s", subscription.provider_name)
                fix = None
            if fix is not None:
                self._remember(subscription.provider_name, fix)
                subscription.deliver(fix)
            if subscription.wait(interval):
                break
        LOGGER.debug("polling of %s stopped", subscription.provider_name)


__all__ = ["FixCallback", "LocationSource", "PollingLocationSource", "Subscription"]
