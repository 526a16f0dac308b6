"""Coordinate validation and small geometry helpers.

Everything that comes from outside the process (device fixes, Overpass
elements, OSRM geometry, the durable store, map clicks) passes through
these functions before it reaches controller state.
"""

import logging
import math
from numbers import Real
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

# (latitude, longitude) in decimal degrees
Coordinate = tuple[float, float]

EARTH_RADIUS_M = 6371000.0


def _is_real(value: Any) -> bool:
    # bool is a Real subclass but never a coordinate component
    return isinstance(value, Real) and not isinstance(value, bool)


def is_valid_coordinate(candidate: Any) -> bool:
    """
    Check whether a loosely-typed value is a usable (lat, lon) pair.

    Args:
        candidate: Anything. Lists and tuples are inspected, everything
            else (including strings and dicts) is rejected.

    Returns:
        True only for a two-element list/tuple of finite real numbers with
        latitude in [-90, 90] and longitude in [-180, 180].

    Example:
        >>> is_valid_coordinate((48.85, 2.35))
        True
        >>> is_valid_coordinate([float("nan"), 2.35])
        False
    """
    if not isinstance(candidate, (list, tuple)) or len(candidate) != 2:
        return False

    lat, lon = candidate
    if not (_is_real(lat) and _is_real(lon)):
        return False
    try:
        lat, lon = float(lat), float(lon)
    except OverflowError:
        # Integers too large for a float (JSON decodes long literals as int)
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False

    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def to_coordinate(candidate: Any) -> Optional[Coordinate]:
    """Return candidate as a float tuple, or None if it is not valid."""
    if not is_valid_coordinate(candidate):
        return None
    return (float(candidate[0]), float(candidate[1]))


def sanitize_sequence(candidates: Any) -> list[Coordinate]:
    """
    Filter a loosely-typed sequence down to valid coordinates.

    Order is preserved and invalid entries are dropped silently. Applying
    the function to its own output returns an equal list.

    Args:
        candidates: Expected to be a list/tuple of pairs. Any other type
            yields an empty list.

    Returns:
        List of (lat, lon) float tuples
    """
    if not isinstance(candidates, (list, tuple)):
        return []

    sanitized: list[Coordinate] = []
    for candidate in candidates:
        coordinate = to_coordinate(candidate)
        if coordinate is not None:
            sanitized.append(coordinate)

    dropped = len(candidates) - len(sanitized)
    if dropped:
        logger.debug(f"Dropped {dropped} invalid coordinates out of {len(candidates)}")
    return sanitized


def swap_lon_lat(pair: Any) -> Any:
    """
    Transpose a longitude-first pair into latitude-first order.

    Non-pairs are returned unchanged so validation can reject them later.
    """
    if isinstance(pair, (list, tuple)) and len(pair) == 2:
        return (pair[1], pair[0])
    return pair


def displacement_deg(a: Coordinate, b: Coordinate) -> float:
    """Largest per-axis difference between two coordinates, in degrees."""
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters between two coordinates."""
    phi1 = math.radians(a[0])
    phi2 = math.radians(b[0])
    dphi = math.radians(b[0] - a[0])
    dlmb = math.radians(b[1] - a[1])

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(s))


def polyline_length_m(points: Iterable[Coordinate]) -> float:
    """Sum of haversine distances along a path."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += haversine_m(previous, point)
        previous = point
    return total
