"""Utilities to serialise location fixes to/from the wire format."""
from __future__ import annotations

from decimal import Decimal
import math
import re

from .messages import LocationFix

# Plain decimal notation only: no ``nan``/``inf``, no digit separators.
_DECIMAL = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class ParseError(ValueError):
    """Raised when a datagram does not hold a ``<latitude>,<longitude>`` pair."""


class LocationCodec:
    """Encode/decode ``"<latitude>,<longitude>"`` UTF-8 payloads."""

    @staticmethod
    def encode(fix: LocationFix) -> bytes:
        return f"{_format_decimal(fix.latitude)},{_format_decimal(fix.longitude)}".encode("utf-8")

    @staticmethod
    def decode(data: bytes) -> LocationFix:
        try:
            raw = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("payload is not valid UTF-8") from exc
        fields = raw.split(",")
        if len(fields) != 2:
            raise ParseError(f"expected 2 fields, got {len(fields)}: {raw!r}")
        latitude, longitude = (_parse_decimal(value) for value in fields)
        return LocationFix(latitude=latitude, longitude=longitude)


def _format_decimal(value: float) -> str:
    # Shortest round-trip digits from repr(), always in positional notation.
    text = format(Decimal(repr(float(value))), "f")
    if "." not in text and math.isfinite(value):
        text += ".0"
    return text


def _parse_decimal(value: str) -> float:
    text = value.strip()
    if not _DECIMAL.fullmatch(text):
        raise ParseError(f"not a decimal number: {value!r}")
    number = float(text)
    if not math.isfinite(number):
        raise ParseError(f"number out of range: {value!r}")
    return number


__all__ = ["LocationCodec", "ParseError"]
