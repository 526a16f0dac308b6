"""Turn map snapshots into plot-ready arrays and a camera view."""

import logging
import math
from typing import TYPE_CHECKING, Iterable, Optional

import numpy as np

from src.navigation.geo import Coordinate, polyline_length_m
from src.navigation.poi import PoiCategory, PointOfInterest

if TYPE_CHECKING:
    from src.navigation.controller import MapSnapshot

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 13.0
RECENTER_ZOOM = 15.0
MIN_ZOOM = 1.0
MAX_ZOOM = 17.0


def coordinates_to_arrays(points: Iterable[Coordinate]) -> tuple[np.ndarray, np.ndarray]:
    """
    Split coordinates into latitude and longitude arrays.

    Args:
        points: (lat, lon) pairs

    Returns:
        Tuple of (lats, lons) float arrays, both empty for no points
    """
    data = np.asarray(list(points), dtype=float)
    if data.size == 0:
        return np.empty(0), np.empty(0)
    return data[:, 0], data[:, 1]


def compute_bounds(
    snapshot: "MapSnapshot",
) -> Optional[tuple[float, float, float, float]]:
    """
    Bounding box of everything drawn for a snapshot.

    Returns:
        (min_lat, min_lon, max_lat, max_lon), or None if nothing is placed
    """
    points: list[Coordinate] = []
    if snapshot.player_position is not None:
        points.append(snapshot.player_position)
    if snapshot.waypoint is not None:
        points.append(snapshot.waypoint)
    points.extend(snapshot.animated_route)
    points.extend(snapshot.exploration_trail)

    if not points:
        return None

    lats, lons = coordinates_to_arrays(points)
    return (float(lats.min()), float(lons.min()), float(lats.max()), float(lons.max()))


def _zoom_for_span(span_deg: float) -> float:
    # Web-mercator tiles halve their span per zoom level
    if span_deg <= 0:
        return RECENTER_ZOOM
    zoom = math.log2(360.0 / span_deg) - 1
    return float(np.clip(zoom, MIN_ZOOM, MAX_ZOOM))


def compute_view(
    snapshot: "MapSnapshot",
    default_center: Coordinate,
) -> tuple[Coordinate, float]:
    """
    Pick the camera center and zoom for a snapshot.

    An explicit recenter target wins. Otherwise the view fits the bounds of
    the player, waypoint, route and trail, falling back to default_center.

    Returns:
        Tuple of (center, zoom)
    """
    if snapshot.recenter_target is not None:
        return snapshot.recenter_target, RECENTER_ZOOM

    bounds = compute_bounds(snapshot)
    if bounds is None:
        return default_center, DEFAULT_ZOOM

    min_lat, min_lon, max_lat, max_lon = bounds
    center = ((min_lat + max_lat) / 2, (min_lon + max_lon) / 2)
    span = max(max_lat - min_lat, max_lon - min_lon)
    return center, _zoom_for_span(span)


def group_pois_by_category(
    pois: Iterable[PointOfInterest],
) -> dict[PoiCategory, list[PointOfInterest]]:
    """Group POIs per category, in PoiCategory declaration order."""
    groups: dict[PoiCategory, list[PointOfInterest]] = {category: [] for category in PoiCategory}
    for poi in pois:
        groups[poi.category].append(poi)
    return {category: items for category, items in groups.items() if items}


def route_length_m(snapshot: "MapSnapshot") -> Optional[float]:
    """Reported route distance, or the drawn path length when the service gave none."""
    if snapshot.distance_m is not None:
        return snapshot.distance_m
    if len(snapshot.animated_route) < 2:
        return None
    return polyline_length_m(snapshot.animated_route)
