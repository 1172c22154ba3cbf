"""Runtime state for the relay components."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import threading
import time
from typing import Dict


class SenderState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


class ReceiverState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


@dataclass
class RelayStats:
    """Thread-safe counters describing what a component has done so far."""

    started_at: float = field(default_factory=time.time)
    _counters: Dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def increment(self, name: str, amount: int = 1) -> int:
        with self._lock:
            value = self._counters.get(name, 0) + amount
            self._counters[name] = value
            return value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            data = dict(self._counters)
        data["uptime_s"] = int(time.time() - self.started_at)
        return data


__all__ = ["SenderState", "ReceiverState", "RelayStats"]
