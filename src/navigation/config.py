"""Runtime configuration for the navigation core.

Policy constants live here instead of being scattered as literals. Values
can be overridden through FRONTIER_* environment variables (a .env file in
the working directory is honoured).

Usage:
    from src.navigation.config import NavigationConfig
    config = NavigationConfig.from_env()
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from dotenv import load_dotenv

from src.navigation.geo import Coordinate

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# Environment variable prefix for overrides (e.g. FRONTIER_POI_RADIUS_M=5000)
ENV_PREFIX = "FRONTIER_"

DEFAULT_OVERPASS_URL = "https://overpass.kumi.systems/api/interpreter"
DEFAULT_OSRM_URL = "https://router.project-osrm.org"


@dataclass
class NavigationConfig:
    """Tunable policy for POI discovery, routing, animation and positioning."""

    # POI discovery
    poi_radius_m: int = 20000                # Overpass "around" radius
    poi_min_displacement_deg: float = 0.01   # ~1 km, ignore GPS jitter
    poi_max_results: int = 500               # bounds payload and render cost
    overpass_url: str = DEFAULT_OVERPASS_URL
    overpass_timeout_s: int = 25             # server-side [timeout:..] in the query

    # Routing
    osrm_url: str = DEFAULT_OSRM_URL
    osrm_profile: str = "driving"

    # Route reveal pacing
    animation_stride: int = 2
    frame_interval_s: float = 1 / 60

    # Positioning
    high_accuracy: bool = True
    position_timeout_s: float = 10.0
    position_maximum_age_s: float = 0.0      # 0 means never accept a cached fix

    # HTTP client
    http_timeout_s: float = 30.0

    # Fallback camera target before any fix is known
    default_center: Coordinate = (23.458, 75.417)

    store_path: Path = field(default_factory=lambda: PROJECT_ROOT / "data" / "state.json")

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "NavigationConfig":
        """
        Build a config from defaults overridden by FRONTIER_* variables.

        Args:
            dotenv_path: Optional explicit .env file. When omitted, python-dotenv
                searches the working directory tree.

        Returns:
            NavigationConfig with overrides applied. Unparseable values are
            logged and the default is kept.
        """
        load_dotenv(dotenv_path)
        config = cls()

        for config_field in fields(cls):
            env_name = f"{ENV_PREFIX}{config_field.name.upper()}"
            raw = os.getenv(env_name)
            if raw is None:
                continue

            current = getattr(config, config_field.name)
            try:
                setattr(config, config_field.name, _coerce(raw, current))
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")

        return config


def _coerce(raw: str, current):
    """Parse an environment string into the type of the current value."""
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(raw)
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, Path):
        return Path(raw).expanduser()
    if isinstance(current, tuple):
        lat, lon = (float(part) for part in raw.split(","))
        return (lat, lon)
    return raw
