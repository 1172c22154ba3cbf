"""Configuration model for the location relay."""
from __future__ import annotations

from dataclasses import dataclass
import os
import sys
from typing import Any, Mapping


# ``slots`` support for ``dataclasses`` was added in Python 3.10. Keep using
# slots where available, but remain compatible with Python 3.9.
_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}

DEFAULT_PORT = 2004
DEFAULT_MOCK_PROVIDER = "LocationProviderMock"

# Keys understood by :meth:`RelayConfig.from_mapping`, as stored by the
# settings screen of the companion app.
MAPPING_KEYS = {
    "destinationHost": "destination_host",
    "destinationPort": "destination_port",
    "pollIntervalMillis": "poll_interval_ms",
    "locationProviderName": "provider_name",
    "minDistanceMeters": "min_distance_m",
    "listenHost": "listen_host",
    "mockProviderName": "mock_provider_name",
}


@dataclass(frozen=True, **_DATACLASS_KWARGS)
class RelayConfig:
    destination_host: str = "127.0.0.1"
    destination_port: int = DEFAULT_PORT
    poll_interval_ms: int = 5000
    provider_name: str = "gps"
    min_distance_m: float = 0.0
    listen_host: str = "0.0.0.0"
    mock_provider_name: str = DEFAULT_MOCK_PROVIDER

    def __post_init__(self) -> None:
        if not 0 <= self.destination_port <= 65535:
            raise ValueError(f"destination_port out of range: {self.destination_port}")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        if self.min_distance_m < 0:
            raise ValueError("min_distance_m must be non-negative")
        if not self.provider_name:
            raise ValueError("provider_name must not be empty")
        if not self.mock_provider_name:
            raise ValueError("mock_provider_name must not be empty")

    @classmethod
    def from_env(cls) -> "RelayConfig":
        return cls(
            destination_host=os.environ.get("LOCATION_RELAY_DESTINATION_HOST", "127.0.0.1"),
            destination_port=int(os.environ.get("LOCATION_RELAY_DESTINATION_PORT", str(DEFAULT_PORT))),
            poll_interval_ms=int(os.environ.get("LOCATION_RELAY_POLL_INTERVAL_MS", "5000")),
            provider_name=os.environ.get("LOCATION_RELAY_PROVIDER", "gps"),
            min_distance_m=float(os.environ.get("LOCATION_RELAY_MIN_DISTANCE_M", "0.0")),
            listen_host=os.environ.get("LOCATION_RELAY_LISTEN_HOST", "0.0.0.0"),
            mock_provider_name=os.environ.get("LOCATION_RELAY_MOCK_PROVIDER", DEFAULT_MOCK_PROVIDER),
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], *, base: "RelayConfig | None" = None) -> "RelayConfig":
        """Build a config from a key-value store, falling back to ``base``.

        Unknown keys are ignored. Values may be strings, as most key-value
        stores keep them.
        """

        base = base or cls()
        converters = {
            "destination_host": str,
            "destination_port": int,
            "poll_interval_ms": int,
            "provider_name": str,
            "min_distance_m": float,
            "listen_host": str,
            "mock_provider_name": str,
        }
        kwargs = {name: getattr(base, name) for name in converters}
        for key, name in MAPPING_KEYS.items():
            if key in values and values[key] is not None:
                try:
                    kwargs[name] = converters[name](values[key])
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"invalid value for {key}: {values[key]!r}") from exc
        return cls(**kwargs)

    def to_mapping(self) -> dict:
        return {key: getattr(self, name) for key, name in MAPPING_KEYS.items()}


__all__ = ["RelayConfig", "DEFAULT_PORT", "DEFAULT_MOCK_PROVIDER", "MAPPING_KEYS"]
