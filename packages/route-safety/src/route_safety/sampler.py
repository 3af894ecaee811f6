from __future__ import annotations

from collections.abc import Sequence

from route_safety.models import GeoPoint

DEFAULT_STRIDE = 10


def sample(points: Sequence[GeoPoint], stride: int = DEFAULT_STRIDE) -> list[GeoPoint]:
    """Keep every ``stride``-th point, starting with the first.

    The stride is an index stride, not a distance; the last point is only
    kept when it happens to fall on the stride.
    """
    if stride < 1:
        raise ValueError("stride must be >= 1")
    return list(points[::stride])
