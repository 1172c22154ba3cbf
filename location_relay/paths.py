"""Filesystem locations used by the location relay.

Every path can be overridden through an environment variable prefixed
with ``LOCATION_RELAY_`` which is handy while running the relay from a
user account or inside tests.
"""
from __future__ import annotations

import os
from pathlib import Path

__all__ = [
    "RELAY_ROOT",
    "LOG_DIR",
    "LOG_FILE",
    "SINK_DIR",
    "VERSION_FILE",
]

ENV_PREFIX = "LOCATION_RELAY"


def _env_path(name: str, default: str) -> Path:
    value = os.environ.get(f"{ENV_PREFIX}_{name}")
    return Path(value) if value else Path(default)


RELAY_ROOT: Path = _env_path("ROOT", str(Path.home() / ".location-relay"))
LOG_DIR: Path = _env_path("LOG_DIR", str(RELAY_ROOT / "logs"))
LOG_FILE: Path = _env_path("LOG_FILE", str(LOG_DIR / "relay.log"))
SINK_DIR: Path = _env_path("SINK_DIR", str(RELAY_ROOT / "providers"))
VERSION_FILE: Path = _env_path("VERSION_FILE", str(Path(__file__).with_name("VERSION.txt")))
