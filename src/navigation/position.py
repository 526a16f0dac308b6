"""Device positioning: one-shot fixes and revocable continuous subscriptions."""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from src.navigation.errors import (
    PermissionDeniedError,
    PositioningError,
    PositionUnavailableError,
)
from src.navigation.geo import Coordinate, to_coordinate
from src.navigation.storage import LocationStore

logger = logging.getLogger(__name__)

# Failure codes reported by positioning providers (W3C Geolocation numbering)
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3


@dataclass(frozen=True)
class PositionOptions:
    """Request options passed through to the provider."""

    high_accuracy: bool = True
    timeout_s: float = 10.0
    maximum_age_s: float = 0.0  # 0 forces a fresh fix


class PositionFailure(Exception):
    """Raw failure reported by a provider, carrying a numeric code."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"positioning failure (code {code})")
        self.code = code


class PositionProvider(Protocol):
    """
    Source of raw device fixes.

    Raw fixes are mappings with "latitude" and "longitude" keys (optionally
    nested under "coords", "accuracy" is ignored). Nothing about them is
    trusted.
    """

    async def get_current_position(self, options: PositionOptions) -> Any:
        ...

    def watch_position(
        self,
        on_fix: Callable[[Any], None],
        on_failure: Callable[[PositionFailure], None],
        options: PositionOptions,
    ) -> Any:
        ...

    def clear_watch(self, watch_id: Any) -> None:
        ...


def parse_fix(raw: Any) -> Optional[Coordinate]:
    """
    Extract a validated coordinate from a raw provider fix.

    Returns:
        (lat, lon) tuple, or None when the fix is malformed.
    """
    if not isinstance(raw, Mapping):
        return None
    coords = raw.get("coords", raw)
    if not isinstance(coords, Mapping):
        return None
    return to_coordinate((coords.get("latitude"), coords.get("longitude")))


def classify_failure(failure: PositionFailure) -> PositioningError:
    """Map a provider failure code onto the positioning error taxonomy."""
    if failure.code == PERMISSION_DENIED:
        return PermissionDeniedError(str(failure))
    return PositionUnavailableError(str(failure))


class PositionSubscription:
    """
    A revocable continuous position feed.

    Created stopped; start() registers with the provider and cancel() stops
    all further delivery, including fixes the provider emits late.
    """

    def __init__(
        self,
        provider: PositionProvider,
        on_position: Callable[[Coordinate], None],
        on_error: Optional[Callable[[PositioningError], None]] = None,
        options: PositionOptions = PositionOptions(),
    ) -> None:
        self._provider = provider
        self._on_position = on_position
        self._on_error = on_error
        self._options = options
        self._watch_id: Any = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        if self._active:
            return
        self._active = True
        self._watch_id = self._provider.watch_position(self._deliver, self._fail, self._options)
        logger.debug(f"Position watch started (id={self._watch_id})")

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._provider.clear_watch(self._watch_id)
        logger.debug(f"Position watch cancelled (id={self._watch_id})")
        self._watch_id = None

    def _deliver(self, raw: Any) -> None:
        if not self._active:
            return
        coordinate = parse_fix(raw)
        if coordinate is None:
            logger.debug(f"Dropping malformed position update: {raw!r}")
            return
        self._on_position(coordinate)

    def _fail(self, failure: PositionFailure) -> None:
        if not self._active:
            return
        error = classify_failure(failure)
        logger.warning(f"Position watch reported {error.reason}: {failure}")
        if self._on_error is not None:
            self._on_error(error)


class PositionSource:
    """Normalizes a PositionProvider into validated coordinates or classified errors."""

    def __init__(
        self,
        provider: PositionProvider,
        options: PositionOptions = PositionOptions(),
        store: Optional[LocationStore] = None,
    ) -> None:
        self.provider = provider
        self.options = options
        self.store = store

    async def locate(self) -> Coordinate:
        """
        Request a single fresh fix.

        On success the fix is also written to the durable store (best-effort).

        Returns:
            Validated (lat, lon) tuple

        Raises:
            PermissionDeniedError: The provider refused access.
            PositionUnavailableError: Timeout, provider failure or malformed fix.
        """
        try:
            raw = await asyncio.wait_for(
                self.provider.get_current_position(self.options),
                timeout=self.options.timeout_s,
            )
        except PositionFailure as failure:
            raise classify_failure(failure) from failure
        except asyncio.TimeoutError as e:
            raise PositionUnavailableError(
                f"No fix within {self.options.timeout_s}s"
            ) from e
        except OSError as e:
            raise PositionUnavailableError(f"Provider error: {e}") from e

        coordinate = parse_fix(raw)
        if coordinate is None:
            raise PositionUnavailableError(f"Malformed fix: {raw!r}")

        logger.info(f"Position fix: {coordinate[0]:.5f}, {coordinate[1]:.5f}")
        if self.store is not None:
            self.store.save_last_location(coordinate)
        return coordinate

    def watch(
        self,
        on_position: Callable[[Coordinate], None],
        on_error: Optional[Callable[[PositioningError], None]] = None,
    ) -> PositionSubscription:
        """Create (but do not start) a continuous subscription."""
        return PositionSubscription(self.provider, on_position, on_error, self.options)


class ReplayPositionProvider:
    """
    Replays a recorded track as if it were a live device.

    Entries are raw fixes or PositionFailure instances (delivered to the
    failure callback). The first entry answers one-shot requests.

    Example:
        provider = ReplayPositionProvider(
            [{"latitude": 48.85, "longitude": 2.35}], interval_s=0.5
        )
    """

    def __init__(
        self,
        track: Sequence[Any],
        interval_s: float = 1.0,
        permission_denied: bool = False,
    ) -> None:
        self.track = list(track)
        self.interval_s = interval_s
        self.permission_denied = permission_denied
        self._tasks: dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    async def get_current_position(self, options: PositionOptions) -> Any:
        if self.permission_denied:
            raise PositionFailure(PERMISSION_DENIED, "User denied geolocation")
        if not self.track:
            raise PositionFailure(POSITION_UNAVAILABLE, "Track is empty")
        first = self.track[0]
        if isinstance(first, PositionFailure):
            raise first
        return first

    def watch_position(
        self,
        on_fix: Callable[[Any], None],
        on_failure: Callable[[PositionFailure], None],
        options: PositionOptions,
    ) -> int:
        watch_id = next(self._ids)
        loop = asyncio.get_running_loop()
        self._tasks[watch_id] = loop.create_task(self._replay(on_fix, on_failure))
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        task = self._tasks.pop(watch_id, None)
        if task is not None:
            task.cancel()

    async def _replay(
        self,
        on_fix: Callable[[Any], None],
        on_failure: Callable[[PositionFailure], None],
    ) -> None:
        if self.permission_denied:
            on_failure(PositionFailure(PERMISSION_DENIED, "User denied geolocation"))
            return
        for entry in self.track:
            if isinstance(entry, PositionFailure):
                on_failure(entry)
            else:
                on_fix(entry)
            await asyncio.sleep(self.interval_s)
