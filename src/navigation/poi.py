"""Nearby point-of-interest discovery against the Overpass API."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

from src.navigation.config import NavigationConfig
from src.navigation.errors import QueryError
from src.navigation.geo import Coordinate, displacement_deg, to_coordinate

logger = logging.getLogger(__name__)


class PoiCategory(str, Enum):
    """Closed set of place kinds shown on the map."""

    HOSPITAL = "hospital"
    GAS_STATION = "gas-station"
    SHERIFF = "sheriff"
    BANK = "bank"
    RESTAURANT = "restaurant"
    SHOP = "shop"
    CAMP = "camp"
    HOTEL = "hotel"
    SALOON = "saloon"


# Priority-ordered (tag key, accepted values, category). First match wins.
CATEGORY_RULES: tuple[tuple[str, frozenset[str], PoiCategory], ...] = (
    ("amenity", frozenset({"hospital"}), PoiCategory.HOSPITAL),
    ("amenity", frozenset({"fuel"}), PoiCategory.GAS_STATION),
    ("amenity", frozenset({"police"}), PoiCategory.SHERIFF),
    ("amenity", frozenset({"bank"}), PoiCategory.BANK),
    ("amenity", frozenset({"restaurant"}), PoiCategory.RESTAURANT),
    ("tourism", frozenset({"camp_site"}), PoiCategory.CAMP),
    ("tourism", frozenset({"hotel"}), PoiCategory.HOTEL),
    ("amenity", frozenset({"bar", "pub"}), PoiCategory.SALOON),
)
DEFAULT_CATEGORY = PoiCategory.SHOP


@dataclass(frozen=True)
class PointOfInterest:
    """A categorized place marker near the player."""

    id: int
    category: PoiCategory
    position: Coordinate
    name: Optional[str] = None


def classify_tags(tags: Any) -> PoiCategory:
    """
    Pick a category for an OSM tag set.

    Args:
        tags: The element's "tags" mapping (anything else counts as no tags)

    Returns:
        The category of the first matching rule in CATEGORY_RULES, or
        DEFAULT_CATEGORY when nothing matches.
    """
    if not isinstance(tags, Mapping):
        return DEFAULT_CATEGORY
    for key, values, category in CATEGORY_RULES:
        if tags.get(key) in values:
            return category
    return DEFAULT_CATEGORY


def build_overpass_query(center: Coordinate, radius_m: int, timeout_s: int = 25) -> str:
    """Build the Overpass QL query for everything we can classify around center."""
    lat, lon = center
    around = f"around:{radius_m},{lat},{lon}"
    amenity = "hospital|fuel|police|bank|restaurant|bar|pub"
    tourism = "camp_site|hotel"
    return (
        f"[out:json][timeout:{timeout_s}];\n"
        "(\n"
        f'  node({around})[amenity~"{amenity}"];\n'
        f'  way({around})[amenity~"{amenity}"];\n'
        f'  node({around})[tourism~"{tourism}"];\n'
        f'  way({around})[tourism~"{tourism}"];\n'
        f"  node({around})[shop];\n"
        f"  way({around})[shop];\n"
        ");\n"
        "out center tags;\n"
    )


def element_to_poi(element: Any) -> Optional[PointOfInterest]:
    """
    Convert one Overpass element into a PointOfInterest.

    Nodes carry lat/lon directly; ways and relations carry a "center" when
    queried with "out center". Elements without a valid coordinate or an
    integer id are rejected.
    """
    if not isinstance(element, Mapping):
        return None

    element_id = element.get("id")
    if not isinstance(element_id, int) or isinstance(element_id, bool):
        return None

    lat, lon = element.get("lat"), element.get("lon")
    center = element.get("center")
    if (lat is None or lon is None) and isinstance(center, Mapping):
        lat, lon = center.get("lat"), center.get("lon")

    position = to_coordinate((lat, lon))
    if position is None:
        return None

    tags = element.get("tags")
    name = tags.get("name") if isinstance(tags, Mapping) else None
    return PointOfInterest(
        id=element_id,
        category=classify_tags(tags),
        position=position,
        name=name if isinstance(name, str) else None,
    )


def parse_elements(payload: Any, max_results: int) -> list[PointOfInterest]:
    """
    Turn an Overpass JSON payload into at most max_results POIs.

    Raises:
        QueryError: If the payload has no "elements" list.
    """
    if not isinstance(payload, Mapping) or not isinstance(payload.get("elements"), list):
        raise QueryError("Overpass payload has no elements list")

    pois: list[PointOfInterest] = []
    for element in payload["elements"]:
        poi = element_to_poi(element)
        if poi is None:
            continue
        pois.append(poi)
        if len(pois) >= max_results:
            break
    return pois


class PoiFetcher:
    """
    Single-flight POI query component.

    At most one query is in flight per instance, and a new query is only
    worth issuing once the center has moved past the displacement threshold
    from the last queried center.
    """

    def __init__(self, client: httpx.AsyncClient, config: NavigationConfig) -> None:
        self.client = client
        self.config = config
        self._in_flight = False
        self._last_center: Optional[Coordinate] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_center(self) -> Optional[Coordinate]:
        return self._last_center

    def should_query(self, center: Coordinate) -> bool:
        """True when no query is running and center moved far enough."""
        if self._in_flight:
            return False
        if self._last_center is None:
            return True
        return displacement_deg(center, self._last_center) > self.config.poi_min_displacement_deg

    async def refresh(self, center: Coordinate) -> Optional[list[PointOfInterest]]:
        """
        Query POIs around center if the debounce policy allows it.

        Returns:
            The new POI list (to replace the current collection wholesale),
            or None when the query was suppressed or failed.
        """
        if not self.should_query(center):
            logger.debug(f"POI query suppressed for {center} (in_flight={self._in_flight})")
            return None

        previous_center = self._last_center
        self._in_flight = True
        self._last_center = center
        try:
            pois = await self._query(center)
        except QueryError as e:
            # Failed centers do not count as queried, the next fix may retry
            self._last_center = previous_center
            logger.warning(f"POI query failed, keeping previous POIs: {e}")
            return None
        except Exception:
            self._last_center = previous_center
            raise
        finally:
            self._in_flight = False

        logger.info(f"Fetched {len(pois)} POIs around {center[0]:.4f}, {center[1]:.4f}")
        return pois

    async def _query(self, center: Coordinate) -> list[PointOfInterest]:
        query = build_overpass_query(
            center, self.config.poi_radius_m, self.config.overpass_timeout_s
        )
        try:
            resp = await self.client.post(self.config.overpass_url, data={"data": query})
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise QueryError(f"Overpass HTTP error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise QueryError(f"Overpass request error: {e}") from e
        except ValueError as e:
            raise QueryError(f"Overpass returned invalid JSON: {e}") from e

        return parse_elements(payload, self.config.poi_max_results)
