"""Logging helpers for the location relay."""
from __future__ import annotations

from collections import deque
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import threading
import time
from typing import Callable, Deque, Iterable, List, Optional, Protocol

from .paths import LOG_FILE

DEFAULT_LOG_LEVEL = logging.INFO

LOGGER = logging.getLogger(__name__)


def setup_logging(
    extra_handlers: Iterable[logging.Handler] | None = None,
    *,
    log_file: Path | None = None,
    level: int = DEFAULT_LOG_LEVEL,
) -> None:
    """Configure the root logger used by the relay.

    The logger streams human-readable lines to stdout and also writes to a
    rotating file under ``~/.location-relay/logs`` by default.  Consumers
    can supply additional handlers when embedding the relay in a
    different runtime.
    """

    root = logging.getLogger()
    if root.handlers:
        # Assume logging is already configured.
        return

    root.setLevel(level)

    formatter = logging.Formatter(
        fmt="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    target = log_file or LOG_FILE
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target,
            maxBytes=2 * 1024 * 1024,
            backupCount=5,
        )
    except OSError as exc:
        LOGGER.warning("file logging disabled, cannot open %s: %s", target, exc)
    else:
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root.addHandler(handler)


class LogSink(Protocol):
    """Receives human-readable status lines from the sender and receiver."""

    def append(self, message: str) -> None:
        """Record ``message``; must not block meaningfully nor raise."""


class StatusLog:
    """Thread-safe, bounded status log shared by the relay components.

    Each line is prefixed with the local ``[HH:MM:SS]`` time, forwarded to
    :mod:`logging` and handed to the registered listeners (for instance an
    on-screen log viewer).
    """

    def __init__(
        self,
        *,
        max_lines: int = 500,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be positive")
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()
        self._listeners: List[Callable[[str], None]] = []
        self._logger = logger or logging.getLogger("location_relay.status")
        self._clock: Callable[[], float] = clock or time.time

    def append(self, message: str) -> None:
        try:
            stamp = time.strftime("%H:%M:%S", time.localtime(self._clock()))
            line = f"[{stamp}] {message}"
            with self._lock:
                self._lines.append(line)
                listeners = list(self._listeners)
            self._logger.info("%s", message)
        except Exception:  # pragma: no cover - status logging must never fail the caller
            LOGGER.exception("failed to record status message %r", message)
            return
        for listener in listeners:
            try:
                listener(line)
            except Exception:
                LOGGER.exception("status listener %r failed", listener)

    def add_listener(self, listener: Callable[[str], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], None]) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def last(self) -> Optional[str]:
        with self._lock:
            return self._lines[-1] if self._lines else None

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


__all__ = ["setup_logging", "DEFAULT_LOG_LEVEL", "LogSink", "StatusLog"]
