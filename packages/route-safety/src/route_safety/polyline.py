"""Encoded polyline codec (5-bit chunked, zig-zag signed, scale 1e5)."""

from __future__ import annotations

from collections.abc import Iterable
import math

from route_safety.errors import MalformedInputError
from route_safety.models import GeoPoint

PRECISION = 1e5
_CHAR_OFFSET = 63
_CHUNK_MASK = 0x1F
_CONTINUATION = 0x20
_MAX_CHAR = _CHAR_OFFSET + (_CHUNK_MASK | _CONTINUATION)


def decode(encoded: str) -> list[GeoPoint]:
    points: list[GeoPoint] = []
    index = 0
    lat = 0
    lng = 0
    length = len(encoded)
    while index < length:
        delta_lat, index = _read_value(encoded, index)
        if index >= length:
            raise MalformedInputError(f"polyline ends after latitude at offset {index}")
        delta_lng, index = _read_value(encoded, index)
        lat += delta_lat
        lng += delta_lng
        try:
            points.append(GeoPoint(lat=lat / PRECISION, lng=lng / PRECISION))
        except ValueError as exc:
            raise MalformedInputError(f"decoded coordinate out of range at offset {index}") from exc
    return points


def encode(points: Iterable[GeoPoint]) -> str:
    chunks: list[str] = []
    previous_lat = 0
    previous_lng = 0
    for point in points:
        lat = _quantize(point.lat)
        lng = _quantize(point.lng)
        chunks.append(_write_value(lat - previous_lat))
        chunks.append(_write_value(lng - previous_lng))
        previous_lat = lat
        previous_lng = lng
    return "".join(chunks)


def _read_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise MalformedInputError(f"polyline terminates mid-group at offset {index}")
        code = ord(encoded[index])
        if code < _CHAR_OFFSET or code > _MAX_CHAR:
            raise MalformedInputError(f"invalid polyline character {encoded[index]!r} at offset {index}")
        chunk = code - _CHAR_OFFSET
        index += 1
        result |= (chunk & _CHUNK_MASK) << shift
        shift += 5
        if chunk < _CONTINUATION:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def _write_value(value: int) -> str:
    remaining = ~(value << 1) if value < 0 else value << 1
    out: list[str] = []
    while remaining >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (remaining & _CHUNK_MASK)) + _CHAR_OFFSET))
        remaining >>= 5
    out.append(chr(remaining + _CHAR_OFFSET))
    return "".join(out)


def _quantize(value: float) -> int:
    scaled = abs(value) * PRECISION
    return int(math.copysign(math.floor(scaled + 0.5), value))
