"""Wire protocol shared by the sender and the receiver."""
from .codec import LocationCodec, ParseError
from .messages import LocationFix, distance_m

__all__ = ["LocationCodec", "LocationFix", "ParseError", "distance_m"]
