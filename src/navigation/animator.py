"""Progressive, restartable reveal of a route over successive frames."""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

from src.navigation.geo import Coordinate, sanitize_sequence

logger = logging.getLogger(__name__)

DEFAULT_STRIDE = 2
DEFAULT_FRAME_INTERVAL_S = 1 / 60


class AnimationState(str, Enum):
    IDLE = "idle"
    ANIMATING = "animating"
    COMPLETE = "complete"


class FrameScheduler(Protocol):
    """Schedules a callback for the next frame and can revoke it."""

    def schedule(self, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class LoopFrameScheduler:
    """Frame scheduling on the running asyncio loop via call_later."""

    def __init__(self, frame_interval_s: float = DEFAULT_FRAME_INTERVAL_S) -> None:
        self.frame_interval_s = frame_interval_s

    def schedule(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(self.frame_interval_s, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class RouteAnimator:
    """
    Reveals a route a few points per frame.

    Every start() bumps a generation counter. A tick scheduled for an older
    generation does nothing when it fires, so two animations can never
    write to the same animated route, even if a scheduler fails to cancel.

    The animated route starts with the first route point; each tick
    advances the index by `stride` and appends that point. Once the index
    reaches the end of the route the animation is complete (the final
    point is only shown if the stride lands on it).
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        stride: int = DEFAULT_STRIDE,
        on_frame: Optional[Callable[[list[Coordinate]], None]] = None,
    ) -> None:
        if stride < 1:
            raise ValueError(f"stride must be >= 1, got {stride}")
        self.scheduler = scheduler
        self.stride = stride
        self.on_frame = on_frame

        self._generation = 0
        self._points: list[Coordinate] = []
        self._index = 0
        self._animated: list[Coordinate] = []
        self._handle: Any = None
        self._state = AnimationState.IDLE

    @property
    def state(self) -> AnimationState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def animated_route(self) -> list[Coordinate]:
        return list(self._animated)

    def start(self, route: Sequence[Any]) -> None:
        """
        Begin revealing a new route, superseding any running animation.

        Args:
            route: Candidate points; they are sanitized first. Fewer than two
                valid points empties the animated route and leaves the
                animator idle.
        """
        self._cancel_pending()
        self._generation += 1
        self._points = sanitize_sequence(list(route))
        self._index = 0

        if len(self._points) < 2:
            self._state = AnimationState.IDLE
            self._emit([])
            return

        self._state = AnimationState.ANIMATING
        self._emit([self._points[0]])
        self._schedule_tick()
        logger.debug(
            f"Animation generation {self._generation} started ({len(self._points)} points)"
        )

    def cancel(self) -> None:
        """Stop the running animation, keeping what has been revealed."""
        self._cancel_pending()
        self._generation += 1
        if self._state == AnimationState.ANIMATING:
            self._state = AnimationState.IDLE

    def reset(self) -> None:
        """Stop and forget the current route entirely."""
        self.cancel()
        self._points = []
        self._index = 0
        self._state = AnimationState.IDLE
        self._emit([])

    def _schedule_tick(self) -> None:
        generation = self._generation
        self._handle = self.scheduler.schedule(lambda: self._tick(generation))

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def _tick(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._handle = None

        self._index += self.stride
        if self._index >= len(self._points):
            self._state = AnimationState.COMPLETE
            logger.debug(f"Animation generation {generation} complete")
            return

        self._emit(self._animated + [self._points[self._index]])
        self._schedule_tick()

    def _emit(self, animated: list[Coordinate]) -> None:
        self._animated = animated
        if self.on_frame is not None:
            self.on_frame(list(animated))
