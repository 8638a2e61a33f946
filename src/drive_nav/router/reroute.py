# reroute.py
# Off-route detection and the single outstanding reroute request.
# The request runs on an executor; its answer is applied only if the session
# that asked for it is still the current one.

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional, Protocol

from .models import (
    Coord, PositionSample, ProgressResult, Route, RouteStatus, RoutingError, SessionState,
)
from .nav_config import NavConfig
from .narration import Announcement, format_distance
from .route_tracker import RouteTracker

logger = logging.getLogger(__name__)


class RouteProvider(Protocol):
    """Anything that can compute a route, e.g. OsrmClient."""

    def route(self, origin: Coord, destination: Coord, avoid_motorways: bool = False) -> Optional[Route]:
        ...


class RerouteCoordinator:
    """
    Watches every sample for off-route drift and asks for a new route.

    Off-route means: past the exempt first steps, more than
    off_route_threshold_m away from the upcoming maneuver point. Only one
    request is ever in flight; checks are suppressed until it resolves.

    Args:
        tracker:   RouteTracker whose session gets the new route.
        provider:  RouteProvider used for the request.
        config:    NavConfig instance.
        executor:  Where the request runs; a one-thread pool by default.
        on_result: Called with the REROUTED / REROUTE_FAILED result.
        lock:      Lock serialising access to the tracker (shared with the
                   caller feeding samples).
    """

    def __init__(
        self,
        tracker: RouteTracker,
        provider: RouteProvider,
        config: Optional[NavConfig] = None,
        executor: Optional[Executor] = None,
        on_result: Optional[Callable[[ProgressResult], None]] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._tracker = tracker
        self._provider = provider
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="reroute")
        self._on_result = on_result
        self._lock = lock or threading.RLock()

        self._in_flight: Optional[Future] = None
        self._quiet_until: Optional[float] = None

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    # ------------------------------------------------------------------
    # Per-sample check
    # ------------------------------------------------------------------

    def check(self, sample: PositionSample) -> Optional[ProgressResult]:
        """
        Run the off-route policy for one sample.

        Returns:
            An OFF_ROUTE result when a reroute was requested, otherwise None.
        """
        with self._lock:
            tracker = self._tracker
            if not tracker.is_active:
                return None
            if tracker.step_index <= self.config.off_route_exempt_steps:
                return None
            if self._in_flight is not None:
                return None
            if self._quiet_until is not None and sample.timestamp < self._quiet_until:
                return None

            dist = tracker.distance_to_maneuver(sample)
            if dist is None or dist <= self.config.off_route_threshold_m:
                return None

            logger.warning(
                f"Off route at step {tracker.step_index}: {dist:.1f} m from maneuver point, requesting new route."
            )
            self._submit(sample)

            text = Announcement.REROUTING.value
            return ProgressResult(
                status=RouteStatus.OFF_ROUTE,
                display_text=text,
                voice_text=text,
                distance_text=format_distance(dist),
                distance_m=dist,
                step_index=tracker.step_index,
                current_step=tracker.current_step,
                position=sample.coord,
            )

    def reset(self) -> None:
        """Forget any outstanding request; its answer will be ignored."""
        with self._lock:
            future, self._in_flight = self._in_flight, None
            self._quiet_until = None
            if future is not None:
                future.cancel()

    def close(self) -> None:
        self.reset()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _submit(self, sample: PositionSample) -> None:
        origin = sample.coord
        destination = self._tracker.destination
        generation = self._tracker.generation
        future = self._executor.submit(
            self._provider.route, origin, destination, self.config.avoid_motorways,
        )
        self._in_flight = future
        future.add_done_callback(
            lambda f: self._on_done(f, generation, sample.timestamp)
        )

    def _on_done(self, future: Future, generation: int, requested_at: float) -> None:
        with self._lock:
            if self._in_flight is not future:
                logger.info("Discarding reroute answer for a request that was reset.")
                return
            self._in_flight = None

            tracker = self._tracker
            if tracker.generation != generation or tracker.state is not SessionState.NAVIGATING:
                logger.info(f"Discarding reroute answer for generation {generation} (now {tracker.generation}).")
                return

            route = None
            try:
                route = future.result()
            except RoutingError as e:
                logger.error(f"Reroute request failed: {e}")
            except Exception:
                logger.exception("Route provider raised while rerouting.")

            if route is None:
                self._quiet_until = requested_at + self.config.reroute_cooldown_s
                text = Announcement.ROUTE_NOT_FOUND.value
                result = ProgressResult(
                    status=RouteStatus.REROUTE_FAILED,
                    display_text=text,
                    voice_text=text,
                    step_index=tracker.step_index,
                    current_step=tracker.current_step,
                )
                logger.warning("No new route; continuing on the previous one.")
            else:
                result = tracker.reroute(route)

            if self._on_result is not None:
                self._on_result(result)
