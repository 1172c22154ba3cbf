"""Location fix model exchanged between the sender and the receiver."""
from __future__ import annotations

from dataclasses import dataclass, replace
import math
from typing import Optional

EARTH_RADIUS_M = 6_371_000.0

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


@dataclass(frozen=True)
class LocationFix:
    """A single latitude/longitude observation.

    ``timestamp`` is a POSIX timestamp (seconds). It never travels on the
    wire: the receiver stamps each fix with its own clock on arrival.
    """

    latitude: float
    longitude: float
    timestamp: Optional[float] = None

    def is_valid(self) -> bool:
        """Return ``True`` when both coordinates are finite and in range."""

        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            return False
        return (
            LATITUDE_RANGE[0] <= self.latitude <= LATITUDE_RANGE[1]
            and LONGITUDE_RANGE[0] <= self.longitude <= LONGITUDE_RANGE[1]
        )

    def with_timestamp(self, timestamp: float) -> "LocationFix":
        return replace(self, timestamp=timestamp)


def distance_m(a: LocationFix, b: LocationFix) -> float:
    """Great-circle (haversine) distance between two fixes in meters."""

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.longitude - a.longitude)
    h = math.sin(d_lat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


__all__ = ["EARTH_RADIUS_M", "LocationFix", "distance_m"]
