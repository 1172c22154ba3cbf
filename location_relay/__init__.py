"""UDP location relay package."""
from __future__ import annotations

from typing import Any, Iterable

__all__ = [
    "LocationCodec",
    "LocationFix",
    "LocationReceiver",
    "LocationSender",
    "RelayConfig",
    "RelayService",
    "read_version",
]

_LAZY = {
    "LocationCodec": ".protocol.codec",
    "LocationFix": ".protocol.messages",
    "LocationReceiver": ".receiver",
    "LocationSender": ".sender",
    "RelayConfig": ".config",
    "RelayService": ".service",
    "read_version": ".versioning",
}


def __getattr__(name: str) -> Any:  # pragma: no cover - simple import proxy
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    from importlib import import_module

    return getattr(import_module(module_name, __name__), name)


def __dir__() -> Iterable[str]:  # pragma: no cover - introspection helper
    return sorted(set(globals()) | set(__all__))
