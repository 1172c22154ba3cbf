"""Location sources feeding the sender."""
from .base import FixCallback, LocationSource, PollingLocationSource, Subscription
from .simulated import SimulatedLocationSource
from .termux import TermuxLocationSource

__all__ = [
    "FixCallback",
    "LocationSource",
    "PollingLocationSource",
    "SimulatedLocationSource",
    "Subscription",
    "TermuxLocationSource",
]
