"""Resolve the version string reported by ``location-relay --version``."""
from __future__ import annotations

from importlib import metadata
from pathlib import Path

from .paths import VERSION_FILE

DISTRIBUTION = "location-relay"
UNKNOWN_VERSION = "0+unknown"


def read_version(version_file: Path | None = None) -> str:
    """Return the bundled ``VERSION.txt``, else the installed distribution version."""

    target = version_file or VERSION_FILE
    try:
        text = target.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        text = ""
    if text:
        return text
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return UNKNOWN_VERSION


__all__ = ["DISTRIBUTION", "UNKNOWN_VERSION", "read_version"]
