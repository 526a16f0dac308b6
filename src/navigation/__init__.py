"""Frontier map navigation core - position, POIs, routing and route reveal."""

from src.navigation.animator import AnimationState, LoopFrameScheduler, RouteAnimator
from src.navigation.config import NavigationConfig
from src.navigation.controller import MapSnapshot, MapStateController
from src.navigation.geo import Coordinate, is_valid_coordinate, sanitize_sequence
from src.navigation.poi import PoiCategory, PoiFetcher, PointOfInterest
from src.navigation.position import PositionSource, ReplayPositionProvider
from src.navigation.router import Route, Router
from src.navigation.storage import LocationStore

__all__ = [
    "AnimationState",
    "LoopFrameScheduler",
    "RouteAnimator",
    "NavigationConfig",
    "MapSnapshot",
    "MapStateController",
    "Coordinate",
    "is_valid_coordinate",
    "sanitize_sequence",
    "PoiCategory",
    "PoiFetcher",
    "PointOfInterest",
    "PositionSource",
    "ReplayPositionProvider",
    "Route",
    "Router",
    "LocationStore",
]
