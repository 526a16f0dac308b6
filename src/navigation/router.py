"""Road-following routes from the OSRM HTTP API."""

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Mapping, Optional

import httpx

from src.navigation.config import NavigationConfig
from src.navigation.errors import RoutingError
from src.navigation.geo import Coordinate, is_valid_coordinate, sanitize_sequence, swap_lon_lat

logger = logging.getLogger(__name__)

MIN_ROUTE_POINTS = 2


@dataclass(frozen=True)
class Route:
    """Validated path geometry (lat, lon) from origin to destination."""

    points: tuple[Coordinate, ...]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None

    def __len__(self) -> int:
        return len(self.points)


def build_route_url(base_url: str, profile: str, origin: Coordinate, destination: Coordinate) -> str:
    """OSRM wants longitude-first pairs separated by ';'."""
    return (
        f"{base_url.rstrip('/')}/route/v1/{profile}/"
        f"{origin[1]},{origin[0]};{destination[1]},{destination[0]}"
    )


def _optional_scalar(value: Any) -> Optional[float]:
    if not isinstance(value, Real) or isinstance(value, bool):
        return None
    try:
        scalar = float(value)
    except OverflowError:
        return None
    return scalar if math.isfinite(scalar) else None


def parse_route(payload: Any) -> Route:
    """
    Extract the first route from an OSRM response.

    Args:
        payload: Decoded JSON body of /route/v1/...?geometries=geojson

    Returns:
        Route with latitude-first points, invalid points dropped

    Raises:
        RoutingError: If the payload has no geometry or fewer than
            MIN_ROUTE_POINTS valid points survive validation.
    """
    if not isinstance(payload, Mapping):
        raise RoutingError("OSRM payload is not an object")

    routes = payload.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], Mapping):
        raise RoutingError(f"OSRM returned no routes (code={payload.get('code')!r})")

    first = routes[0]
    geometry = first.get("geometry")
    coordinates = geometry.get("coordinates") if isinstance(geometry, Mapping) else None
    if not isinstance(coordinates, list):
        raise RoutingError("OSRM route has no geometry coordinates")

    points = sanitize_sequence([swap_lon_lat(pair) for pair in coordinates])
    if len(points) < MIN_ROUTE_POINTS:
        raise RoutingError(
            f"Route has {len(points)} valid points out of {len(coordinates)}"
        )

    return Route(
        points=tuple(points),
        distance_m=_optional_scalar(first.get("distance")),
        duration_s=_optional_scalar(first.get("duration")),
    )


class Router:
    """Fetches driving routes between two coordinates."""

    def __init__(self, client: httpx.AsyncClient, config: NavigationConfig) -> None:
        self.client = client
        self.config = config

    async def route(self, origin: Coordinate, destination: Coordinate) -> Route:
        """
        Request a route with full geometry.

        Args:
            origin: Start (lat, lon)
            destination: End (lat, lon)

        Returns:
            Validated Route

        Raises:
            RoutingError: On invalid endpoints, network or HTTP failures,
                malformed payloads, or routes too short to draw.
        """
        if not (is_valid_coordinate(origin) and is_valid_coordinate(destination)):
            raise RoutingError(f"Invalid endpoints: {origin!r} -> {destination!r}")

        url = build_route_url(self.config.osrm_url, self.config.osrm_profile, origin, destination)
        try:
            resp = await self.client.get(
                url, params={"overview": "full", "geometries": "geojson"}
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise RoutingError(f"OSRM HTTP error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RoutingError(f"OSRM request error: {e}") from e
        except ValueError as e:
            raise RoutingError(f"OSRM returned invalid JSON: {e}") from e

        route = parse_route(payload)
        logger.info(
            f"Route with {len(route)} points "
            f"(distance={route.distance_m} m, duration={route.duration_s} s)"
        )
        return route
