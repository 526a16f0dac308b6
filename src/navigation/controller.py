"""Map state orchestration: position, POIs, waypoint, route and its reveal."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional

from src.navigation.animator import FrameScheduler, RouteAnimator
from src.navigation.config import NavigationConfig
from src.navigation.errors import (
    PermissionDeniedError,
    PositioningError,
    RoutingError,
)
from src.navigation.geo import Coordinate, to_coordinate
from src.navigation.poi import PoiCategory, PoiFetcher, PointOfInterest
from src.navigation.position import PositionSource, PositionSubscription
from src.navigation.router import Route, Router
from src.navigation.storage import LocationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapSnapshot:
    """Everything the render layer needs to draw one frame of the map."""

    player_position: Optional[Coordinate]
    pois: tuple[PointOfInterest, ...]
    waypoint: Optional[Coordinate]
    animated_route: tuple[Coordinate, ...]
    distance_m: Optional[float]
    duration_s: Optional[float]
    recenter_target: Optional[Coordinate]
    recenter_token: int
    visible_categories: frozenset[PoiCategory]
    permission_blocked: bool
    exploration_trail: tuple[Coordinate, ...]
    onboarding_seen: bool = False


class MapStateController:
    """
    Owns the map state and wires the navigation components together.

    Position fixes flow in from the PositionSource, trigger POI discovery
    and (once a waypoint is set) routing, and every new route restarts the
    route animation. All methods must be called from the event loop thread;
    network work runs as tasks on that loop.

    Example:
        controller = MapStateController(source, fetcher, router, scheduler,
                                        config, store, on_change=render)
        await controller.start()
        controller.set_waypoint((48.86, 2.34))
        ...
        controller.close()
    """

    def __init__(
        self,
        position_source: PositionSource,
        poi_fetcher: PoiFetcher,
        router: Router,
        scheduler: FrameScheduler,
        config: NavigationConfig,
        store: Optional[LocationStore] = None,
        on_change: Optional[Callable[[MapSnapshot], None]] = None,
    ) -> None:
        self.position_source = position_source
        self.poi_fetcher = poi_fetcher
        self.router = router
        self.config = config
        self.store = store
        self.on_change = on_change
        self.animator = RouteAnimator(
            scheduler, stride=config.animation_stride, on_frame=self._on_frame
        )

        # Entity state
        self.player_position: Optional[Coordinate] = None
        self.waypoint: Optional[Coordinate] = None
        self.pois: list[PointOfInterest] = []
        self.route: Optional[Route] = None
        self.animated_route: list[Coordinate] = []
        self.exploration_trail: list[Coordinate] = []

        # View state
        self.recenter_target: Optional[Coordinate] = None
        self.recenter_token = 0
        self.visible_categories: set[PoiCategory] = set(PoiCategory)
        self.permission_blocked = False
        self.onboarding_seen = store.onboarding_seen() if store is not None else False

        # Late route responses for an older generation are discarded
        self._route_generation = 0
        self._subscription: Optional[PositionSubscription] = None
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def distance_m(self) -> Optional[float]:
        return self.route.distance_m if self.route else None

    @property
    def duration_s(self) -> Optional[float]:
        return self.route.duration_s if self.route else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Seed from the last known location, take a live fix, then keep watching.

        A denied permission sets `permission_blocked`; other positioning
        failures are logged and the map keeps its seeded view.
        """
        if self.store is not None and self.player_position is None:
            seeded = self.store.load_last_location()
            if seeded is not None:
                logger.info(f"Seeding view from last known location {seeded}")
                self.player_position = seeded
                self.recenter(seeded)

        try:
            fix = await self.position_source.locate()
        except PermissionDeniedError:
            logger.warning("Positioning permission denied")
            self.permission_blocked = True
            self._notify()
        except PositioningError as e:
            logger.warning(f"Initial position unavailable: {e}")
        else:
            self.permission_blocked = False
            self.update_position(fix)
            self.recenter(fix)

        if self._closed:
            return
        self._subscription = self.position_source.watch(
            self.update_position, self._on_position_error
        )
        self._subscription.start()

    def close(self) -> None:
        """
        Tear down the position subscription and the pending animation frame.

        In-flight HTTP requests are left to finish; their results are ignored.
        """
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.animator.cancel()
        logger.info("Map state controller closed")

    async def wait_idle(self) -> None:
        """Wait until no POI or routing task is pending."""
        while self._tasks:
            # Failures were already logged by _on_task_done
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def update_position(self, candidate: Any) -> None:
        """Apply a new player position (invalid candidates are ignored)."""
        position = to_coordinate(candidate)
        if position is None or self._closed:
            return

        self.player_position = position
        self.exploration_trail.append(position)

        if self.poi_fetcher.should_query(position):
            self._spawn(self._refresh_pois(position))
        if self.waypoint is not None:
            self._request_route()
        self._notify()

    def set_waypoint(self, candidate: Any) -> None:
        """
        Set the destination from a map click or POI selection.

        The waypoint is also persisted as the last known location, and a
        route is requested if the player position is known.
        """
        waypoint = to_coordinate(candidate)
        if waypoint is None:
            logger.debug(f"Ignoring invalid waypoint {candidate!r}")
            return

        self.waypoint = waypoint
        if self.store is not None:
            self.store.save_last_location(waypoint)
        logger.info(f"Waypoint set to {waypoint[0]:.5f}, {waypoint[1]:.5f}")
        self._request_route()
        self._notify()

    def select_poi(self, poi_id: int) -> bool:
        """Use a POI as the waypoint. Returns False if the id is unknown."""
        for poi in self.pois:
            if poi.id == poi_id:
                self.set_waypoint(poi.position)
                return True
        return False

    def clear_route(self) -> None:
        """Drop waypoint, route, animation and distance/duration together."""
        self._route_generation += 1
        self.waypoint = None
        self.route = None
        # reset() emits the empty frame, which notifies once with everything cleared
        self.animator.reset()

    def recenter(self, target: Any = None) -> None:
        """
        Ask the render layer to move the camera.

        Args:
            target: Explicit coordinate. Defaults to the player position, or
                the configured default center when no fix is known yet.
                An invalid explicit target is ignored.
        """
        if target is None:
            target = self.player_position or self.config.default_center

        coordinate = to_coordinate(target)
        if coordinate is None:
            logger.debug(f"Ignoring invalid recenter target {target!r}")
            return

        self.recenter_target = coordinate
        # Token changes even when the target does not, forcing a camera jump
        self.recenter_token += 1
        self._notify()

    def toggle_category(self, category: PoiCategory | str) -> bool:
        """
        Flip visibility of a POI category.

        Returns:
            True if the category is visible after the toggle.

        Raises:
            ValueError: If category is not a known PoiCategory value.
        """
        category = PoiCategory(category)
        if category in self.visible_categories:
            self.visible_categories.discard(category)
        else:
            self.visible_categories.add(category)
        self._notify()
        return category in self.visible_categories

    def mark_onboarding_seen(self) -> None:
        self.onboarding_seen = True
        if self.store is not None:
            self.store.mark_onboarding_seen()
        self._notify()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def visible_pois(self) -> list[PointOfInterest]:
        return [poi for poi in self.pois if poi.category in self.visible_categories]

    def snapshot(self) -> MapSnapshot:
        return MapSnapshot(
            player_position=self.player_position,
            pois=tuple(self.visible_pois()),
            waypoint=self.waypoint,
            animated_route=tuple(self.animated_route),
            distance_m=self.distance_m,
            duration_s=self.duration_s,
            recenter_target=self.recenter_target,
            recenter_token=self.recenter_token,
            visible_categories=frozenset(self.visible_categories),
            permission_blocked=self.permission_blocked,
            exploration_trail=tuple(self.exploration_trail),
            onboarding_seen=self.onboarding_seen,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task failed, keeping previous state: {error!r}",
                exc_info=error,
            )

    def _request_route(self) -> None:
        if self.player_position is None or self.waypoint is None:
            return
        self._route_generation += 1
        self._spawn(
            self._fetch_route(self._route_generation, self.player_position, self.waypoint)
        )

    async def _fetch_route(
        self, generation: int, origin: Coordinate, destination: Coordinate
    ) -> None:
        try:
            route = await self.router.route(origin, destination)
        except RoutingError as e:
            logger.warning(f"Routing failed, keeping previous route: {e}")
            return

        if self._closed or generation != self._route_generation:
            logger.debug(f"Discarding stale route response (generation {generation})")
            return

        self.route = route
        # start() emits the first frame, which notifies
        self.animator.start(route.points)

    async def _refresh_pois(self, center: Coordinate) -> None:
        pois = await self.poi_fetcher.refresh(center)
        if pois is None or self._closed:
            return
        self.pois = pois
        self._notify()

    def _on_frame(self, animated: list[Coordinate]) -> None:
        self.animated_route = animated
        self._notify()

    def _on_position_error(self, error: PositioningError) -> None:
        if isinstance(error, PermissionDeniedError):
            self.permission_blocked = True
            self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.snapshot())
