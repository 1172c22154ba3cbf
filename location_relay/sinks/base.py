"""Mock location sink interfaces used by the receiver."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
import sys
from typing import Any, Dict, Optional, Protocol

from ..protocol.messages import LocationFix

# ``slots`` support for ``dataclasses`` arrived in Python 3.10. Prefer slots
# when available but remain compatible with Python 3.9.
_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}


class SinkError(Exception):
    """Raised when a mock provider cannot be registered, fed or removed."""


class PowerUsage(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Accuracy(str, Enum):
    FINE = "fine"
    COARSE = "coarse"


@dataclass(frozen=True, **_DATACLASS_KWARGS)
class ProviderProperties:
    """Capabilities announced when a mock provider is registered."""

    requires_network: bool = False
    requires_satellite: bool = False
    requires_cell: bool = False
    has_monetary_cost: bool = False
    supports_altitude: bool = True
    supports_speed: bool = True
    supports_bearing: bool = True
    power_usage: PowerUsage = PowerUsage.LOW
    accuracy: Accuracy = Accuracy.FINE

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["power_usage"] = self.power_usage.value
        data["accuracy"] = self.accuracy.value
        return data


@dataclass(frozen=True, **_DATACLASS_KWARGS)
class MockLocation:
    """A fix as published by a mock provider."""

    provider: str
    latitude: float
    longitude: float
    time_ms: int
    elapsed_realtime_ns: int

    @classmethod
    def from_fix(
        cls, provider: str, fix: LocationFix, wall_clock_ms: int, monotonic_ns: int
    ) -> "MockLocation":
        return cls(
            provider=provider,
            latitude=fix.latitude,
            longitude=fix.longitude,
            time_ms=int(wall_clock_ms),
            elapsed_realtime_ns=int(monotonic_ns),
        )

    def to_fix(self) -> LocationFix:
        return LocationFix(
            latitude=self.latitude,
            longitude=self.longitude,
            timestamp=self.time_ms / 1000.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MockSink(Protocol):
    """Protocol describing where the receiver publishes relayed fixes."""

    def register_provider(self, name: str, properties: Optional[ProviderProperties] = None) -> None:
        """Claim the ``name`` provider slot; raises :class:`SinkError` if taken."""

    def unregister_provider(self, name: str) -> None:
        """Release the ``name`` provider slot."""

    def push(self, name: str, fix: LocationFix, wall_clock_ms: int, monotonic_ns: int) -> None:
        """Publish ``fix`` as the current position of provider ``name``."""


__all__ = [
    "Accuracy",
    "MockLocation",
    "MockSink",
    "PowerUsage",
    "ProviderProperties",
    "SinkError",
]
