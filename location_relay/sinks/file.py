"""Mock sink exposing the latest relayed fix as a JSON file per provider."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Any, Dict, Optional

from ..paths import SINK_DIR
from ..protocol.messages import LocationFix
from .base import MockLocation, ProviderProperties, SinkError

LOGGER = logging.getLogger(__name__)


class JsonFileMockSink:
    """Write ``<directory>/<provider>.json`` for every registered provider.

    The document holds the provider properties and the latest location
    (``null`` until the first push). Each write goes through a temporary
    file and :func:`os.replace` so readers never see a partial document.
    The file is removed when the provider is unregistered.
    """

    def __init__(self, directory: Path | str | None = None) -> None:
        self.directory = Path(directory) if directory is not None else SINK_DIR
        self._registered: Dict[str, ProviderProperties] = {}
        self._lock = threading.Lock()

    def path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise SinkError(f"invalid mock provider name {name!r}")
        return self.directory / f"{name}.json"

    def register_provider(self, name: str, properties: Optional[ProviderProperties] = None) -> None:
        properties = properties or ProviderProperties()
        with self._lock:
            if name in self._registered:
                raise SinkError(f"mock provider {name!r} is already registered")
            self._write(name, {"provider": name, "properties": properties.to_dict(), "location": None})
            self._registered[name] = properties
        LOGGER.info("mock provider %s registered at %s", name, self.path_for(name))

    def unregister_provider(self, name: str) -> None:
        with self._lock:
            if self._registered.pop(name, None) is None:
                raise SinkError(f"mock provider {name!r} is not registered")
            try:
                self.path_for(name).unlink()
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise SinkError(f"cannot remove {self.path_for(name)}: {exc}") from exc
        LOGGER.info("mock provider %s removed", name)

    def push(self, name: str, fix: LocationFix, wall_clock_ms: int, monotonic_ns: int) -> None:
        location = MockLocation.from_fix(name, fix, wall_clock_ms, monotonic_ns)
        with self._lock:
            properties = self._registered.get(name)
            if properties is None:
                raise SinkError(f"mock provider {name!r} is not registered")
            self._write(
                name,
                {"provider": name, "properties": properties.to_dict(), "location": location.to_dict()},
            )

    def read(self, name: str) -> Optional[MockLocation]:
        """Return the location currently stored for ``name``, if any."""

        try:
            data = json.loads(self.path_for(name).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise SinkError(f"cannot read {self.path_for(name)}: {exc}") from exc
        location = data.get("location")
        return MockLocation(**location) if location else None

    def _write(self, name: str, document: Dict[str, Any]) -> None:
        target = self.path_for(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, separators=(",", ":"))
                os.replace(tmp_name, target)
            except BaseException:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
                raise
        except OSError as exc:
            raise SinkError(f"cannot write {target}: {exc}") from exc


__all__ = ["JsonFileMockSink"]
