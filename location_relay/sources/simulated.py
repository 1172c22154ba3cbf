"""Simulated location source used for demos and tests."""
from __future__ import annotations

import logging
import math
import threading
import time
from typing import Iterable, List, Optional, Tuple

from ..protocol.messages import EARTH_RADIUS_M, LocationFix
from .base import PollingLocationSource

LOGGER = logging.getLogger(__name__)


class SimulatedLocationSource(PollingLocationSource):
    """Produce fixes travelling on a circle around a base coordinate.

    When ``positions`` is given the source replays them in order instead,
    looping when ``loop`` is set and running dry otherwise.
    """

    def __init__(
        self,
        *,
        base_latitude: float = -23.55052,
        base_longitude: float = -46.633308,
        radius_m: float = 15.0,
        step_deg: float = 1.0,
        positions: Optional[Iterable[Tuple[float, float]]] = None,
        loop: bool = True,
        permission_granted: bool = True,
    ) -> None:
        super().__init__()
        if radius_m < 0:
            raise ValueError("radius_m must be non-negative")
        self._base_latitude = base_latitude
        self._base_longitude = base_longitude
        self._radius_m = radius_m
        self._step_deg = step_deg
        self._positions: Optional[List[Tuple[float, float]]] = (
            [(float(lat), float(lon)) for lat, lon in positions] if positions is not None else None
        )
        self._loop = loop
        self.permission_granted = permission_granted
        self._sequence = 0
        self._sequence_lock = threading.Lock()

    def has_permission(self) -> bool:
        return self.permission_granted

    def last_known(self, provider_name: str) -> Optional[LocationFix]:
        fix = super().last_known(provider_name)
        if fix is not None:
            return fix
        with self._sequence_lock:
            return self._fix_at(self._sequence)

    def read_fix(self, provider_name: str) -> Optional[LocationFix]:
        with self._sequence_lock:
            fix = self._fix_at(self._sequence)
            if fix is not None:
                self._sequence += 1
        return fix

    def _fix_at(self, sequence: int) -> Optional[LocationFix]:
        now = time.time()
        if self._positions is not None:
            if not self._positions:
                return None
            if sequence >= len(self._positions) and not self._loop:
                return None
            latitude, longitude = self._positions[sequence % len(self._positions)]
            return LocationFix(latitude=latitude, longitude=longitude, timestamp=now)

        angle = math.radians((sequence * self._step_deg) % 360.0)
        delta_lat = math.degrees(self._radius_m / EARTH_RADIUS_M)
        delta_lon = delta_lat / max(math.cos(math.radians(self._base_latitude)), 1e-6)
        return LocationFix(
            latitude=self._base_latitude + delta_lat * math.sin(angle),
            longitude=self._base_longitude + delta_lon * math.cos(angle),
            timestamp=now,
        )


__all__ = ["SimulatedLocationSource"]
