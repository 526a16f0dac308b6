"""Command-line interface: replay a track through the map controller and draw it."""

import argparse
import asyncio
import logging
import sys

import httpx

from src.logging_config import setup_logging
from src.map_viewer.loader import load_track
from src.map_viewer.viewer import create_figure, export_html, show_figure
from src.navigation.animator import AnimationState, LoopFrameScheduler
from src.navigation.config import NavigationConfig
from src.navigation.controller import MapSnapshot, MapStateController
from src.navigation.geo import Coordinate, to_coordinate
from src.navigation.poi import PoiCategory, PoiFetcher
from src.navigation.position import PositionOptions, PositionSource, ReplayPositionProvider
from src.navigation.router import Router
from src.navigation.storage import LocationStore

logger = logging.getLogger(__name__)

ANIMATION_POLL_INTERVAL = 0.05  # seconds between animation state checks


def parse_coordinate(value: str) -> Coordinate:
    """argparse type for "LAT,LON"."""
    try:
        lat, lon = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected LAT,LON, got {value!r}")
    coordinate = to_coordinate((lat, lon))
    if coordinate is None:
        raise argparse.ArgumentTypeError(f"coordinate out of range: {value!r}")
    return coordinate


def build_controller(
    config: NavigationConfig,
    client: httpx.AsyncClient,
    provider: ReplayPositionProvider,
    store: LocationStore | None,
) -> MapStateController:
    """Wire the navigation components the way the application does."""
    options = PositionOptions(
        high_accuracy=config.high_accuracy,
        timeout_s=config.position_timeout_s,
        maximum_age_s=config.position_maximum_age_s,
    )
    return MapStateController(
        position_source=PositionSource(provider, options, store),
        poi_fetcher=PoiFetcher(client, config),
        router=Router(client, config),
        scheduler=LoopFrameScheduler(config.frame_interval_s),
        config=config,
        store=store,
    )


async def run_session(
    config: NavigationConfig,
    fixes: list,
    interval_s: float,
    waypoint: Coordinate | None = None,
    hidden_categories: list[str] | None = None,
    use_store: bool = True,
    animation_timeout_s: float = 30.0,
) -> MapSnapshot:
    """
    Drive one controller session from a recorded track.

    Returns:
        The final snapshot after the track replayed, pending queries settled
        and the route animation finished (or timed out).
    """
    store = LocationStore(config.store_path) if use_store else None
    provider = ReplayPositionProvider(fixes, interval_s=interval_s)

    async with httpx.AsyncClient(timeout=config.http_timeout_s) as client:
        controller = build_controller(config, client, provider, store)
        for category in hidden_categories or []:
            controller.toggle_category(category)

        await controller.start()
        if waypoint is not None:
            controller.set_waypoint(waypoint)

        # Let the replay run through the whole track
        await asyncio.sleep(len(fixes) * interval_s)
        await controller.wait_idle()

        waited = 0.0
        while controller.animator.state == AnimationState.ANIMATING and waited < animation_timeout_s:
            await asyncio.sleep(ANIMATION_POLL_INTERVAL)
            waited += ANIMATION_POLL_INTERVAL
        if controller.animator.state == AnimationState.ANIMATING:
            logger.warning(f"Route animation still running after {animation_timeout_s}s")

        controller.close()
        return controller.snapshot()


def main() -> None:
    """Main entry point for the map viewer CLI."""
    parser = argparse.ArgumentParser(
        description="Frontier Map - replay a position track and draw the map state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Replay a track and open the map in the browser
  python -m src.map_viewer tracks/morning_ride.json

  # Route to a waypoint and export to HTML
  python -m src.map_viewer tracks/morning_ride.json --waypoint 23.47,75.43 --export map.html

  # Hide shops and banks
  python -m src.map_viewer tracks/morning_ride.csv --hide shop bank
        """,
    )

    parser.add_argument(
        "path",
        type=str,
        help="Path to a .json or .csv position track",
    )
    parser.add_argument(
        "--waypoint",
        type=parse_coordinate,
        metavar="LAT,LON",
        help="Destination to route to",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0.2,
        help="Seconds between replayed fixes (default: 0.2)",
    )
    parser.add_argument(
        "--hide",
        type=str,
        nargs="+",
        metavar="CATEGORY",
        choices=[category.value for category in PoiCategory],
        help="POI categories to hide",
    )
    parser.add_argument(
        "--export",
        type=str,
        metavar="FILE",
        help="Export to HTML file instead of opening browser",
    )
    parser.add_argument(
        "--no-pois",
        action="store_true",
        help="Hide all POI markers",
    )
    parser.add_argument(
        "--no-trail",
        action="store_true",
        help="Hide the exploration trail",
    )
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Do not read or write the last known location",
    )
    parser.add_argument(
        "--title",
        type=str,
        default=None,
        help="Custom title for the visualization",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    setup_logging(console_level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        logger.info(f"Loading track from {args.path}")
        track = load_track(args.path)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    config = NavigationConfig.from_env()
    snapshot = asyncio.run(
        run_session(
            config,
            track.fixes,
            interval_s=args.interval,
            waypoint=args.waypoint,
            hidden_categories=args.hide,
            use_store=not args.no_store,
        )
    )

    fig = create_figure(
        snapshot,
        title=args.title or f"Frontier Map: {args.path}",
        default_center=config.default_center,
        show_pois=not args.no_pois,
        show_trail=not args.no_trail,
    )

    if args.export:
        logger.info(f"Exporting to {args.export}")
        export_html(fig, args.export)
        print(f"Exported to {args.export}")
    else:
        logger.info("Opening in browser")
        show_figure(fig)


if __name__ == "__main__":
    main()
