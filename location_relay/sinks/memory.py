"""In-process mock provider registry."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Dict, List, Optional

from ..protocol.messages import LocationFix
from .base import MockLocation, ProviderProperties, SinkError

LOGGER = logging.getLogger(__name__)

LocationListener = Callable[[MockLocation], None]


@dataclass
class _Registration:
    properties: ProviderProperties
    location: Optional[MockLocation] = None
    listeners: List[LocationListener] = field(default_factory=list)


class MemoryMockSink:
    """Keep the latest position of each registered mock provider in memory.

    Consumers in the same process read :meth:`last_location` or register a
    listener, the same way they would with a real provider.
    """

    def __init__(self) -> None:
        self._providers: Dict[str, _Registration] = {}
        self._lock = threading.Lock()

    # MockSink API ---------------------------------------------------
    def register_provider(self, name: str, properties: Optional[ProviderProperties] = None) -> None:
        with self._lock:
            if name in self._providers:
                raise SinkError(f"mock provider {name!r} is already registered")
            self._providers[name] = _Registration(properties=properties or ProviderProperties())
        LOGGER.info("mock provider %s registered", name)

    def unregister_provider(self, name: str) -> None:
        with self._lock:
            if self._providers.pop(name, None) is None:
                raise SinkError(f"mock provider {name!r} is not registered")
        LOGGER.info("mock provider %s removed", name)

    def push(self, name: str, fix: LocationFix, wall_clock_ms: int, monotonic_ns: int) -> None:
        location = MockLocation.from_fix(name, fix, wall_clock_ms, monotonic_ns)
        with self._lock:
            registration = self._providers.get(name)
            if registration is None:
                raise SinkError(f"mock provider {name!r} is not registered")
            registration.location = location
            listeners = list(registration.listeners)
        for listener in listeners:
            try:
                listener(location)
            except Exception:
                LOGGER.exception("mock location listener %r failed", listener)

    # Consumer API ---------------------------------------------------
    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._providers

    def properties(self, name: str) -> Optional[ProviderProperties]:
        with self._lock:
            registration = self._providers.get(name)
            return registration.properties if registration else None

    def last_location(self, name: str) -> Optional[MockLocation]:
        with self._lock:
            registration = self._providers.get(name)
            return registration.location if registration else None

    def add_listener(self, name: str, listener: LocationListener) -> None:
        with self._lock:
            registration = self._providers.get(name)
            if registration is None:
                raise SinkError(f"mock provider {name!r} is not registered")
            registration.listeners.append(listener)

    def remove_listener(self, name: str, listener: LocationListener) -> None:
        with self._lock:
            registration = self._providers.get(name)
            if registration is not None and listener in registration.listeners:
                registration.listeners.remove(listener)


__all__ = ["LocationListener", "MemoryMockSink"]
