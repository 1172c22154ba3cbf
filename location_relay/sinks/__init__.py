"""Mock location sinks fed by the receiver."""
from .base import Accuracy, MockLocation, MockSink, PowerUsage, ProviderProperties, SinkError
from .file import JsonFileMockSink
from .memory import MemoryMockSink

__all__ = [
    "Accuracy",
    "JsonFileMockSink",
    "MemoryMockSink",
    "MockLocation",
    "MockSink",
    "PowerUsage",
    "ProviderProperties",
    "SinkError",
]
