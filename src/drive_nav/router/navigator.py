# navigator.py
# Public entry point for the navigation engine.
# Owns no business logic: wires the tracker, rerouter, position sources and
# the display / speech collaborators together and serialises the event stream.

import logging
import threading
from concurrent.futures import Executor
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .models import (
    Coord, LocationUnavailable, NavigationMode, PositionSample, ProgressResult,
    Route, RouteStatus, RoutingError, SessionState,
)
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .narration import Announcement
from .osrm_client import OsrmClient
from .position_source import SimulatedPositionSource
from .reroute import RerouteCoordinator, RouteProvider
from .route_tracker import RouteTracker

logger = logging.getLogger(__name__)

Listener = Callable[[ProgressResult], None]


class DisplaySurface(Protocol):
    def draw_route(self, points: Sequence[Coord]) -> None:
        ...

    def place_marker(self, position: Coord, heading: float) -> None:
        ...


class SpeechSurface(Protocol):
    def say(self, text: str, lang: str) -> None:
        ...


class PositionSource(Protocol):
    def samples(self):
        ...

    def close(self) -> None:
        ...


class NavigationSystem:
    """
    High-level navigation facade.

    Typical lifecycle:
        nav = NavigationSystem(speech=SpeechQueue())
        nav.subscribe(print)
        nav.start_navigation(Coord(33.590, 130.401), Coord(33.583, 130.420))

        # Position loop (or run_source(LiveGpsSource(...))):
        results = nav.update(sample)

    Args:
        provider: RouteProvider; an OsrmClient when omitted.
        config:   Optional NavConfig; defaults to NavConfig().
        speech:   Speech surface (say(text, lang)); optional.
        display:  Display surface (draw_route / place_marker); optional.
        executor: Executor for reroute requests; a one-thread pool when omitted.
    """

    def __init__(
        self,
        provider: Optional[RouteProvider] = None,
        config: Optional[NavConfig] = None,
        speech: Optional[SpeechSurface] = None,
        display: Optional[DisplaySurface] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._source: Optional[PositionSource] = None
        self._speech = speech
        self._display = display

        # Specialist modules
        self._provider = provider or OsrmClient(self.config)
        self._tracker  = RouteTracker(self.config)
        self._rerouter = RerouteCoordinator(
            self._tracker,
            self._provider,
            self.config,
            executor=executor,
            on_result=self._on_reroute_result,
            lock=self._lock,
        )
        self._logger = NavLogger(self.config) if self.config.session_log else None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Receive every published ProgressResult.

        Returns:
            A function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Navigation control
    # ------------------------------------------------------------------

    def start_navigation(
        self,
        origin: Coord,
        destination: Coord,
        mode: NavigationMode = NavigationMode.LIVE,
    ) -> Tuple[bool, str]:
        """
        Request a route and begin tracking it.

        Returns:
            (success, message)
        """
        logger.info(f"Calculating route: {origin} → {destination}")
        try:
            route = self._provider.route(origin, destination, self.config.avoid_motorways)
        except RoutingError as e:
            logger.warning(f"Route calculation failed: {e}")
            route = None

        if route is None:
            text = Announcement.ROUTE_NOT_FOUND.value
            self._publish(ProgressResult(status=RouteStatus.NO_ROUTE, display_text=text, voice_text=text))
            return False, text

        self.start(route, mode)
        return True, f"Route ready. {len(route.steps)} steps."

    def start(self, route: Route, mode: NavigationMode = NavigationMode.LIVE) -> None:
        """Begin tracking an already computed route."""
        with self._lock:
            self._rerouter.reset()
            self._tracker.start(route, mode)
            if self._logger:
                self._logger.save_route(route)
            self._draw(route)
        logger.info(f"Route ready: {len(route.steps)} steps. First: {route.steps[0].instruction}")

    def stop(self, announce: bool = True) -> ProgressResult:
        """
        End navigation from any state. Safe while a reroute is outstanding;
        its answer will be discarded.

        Args:
            announce: Publish (and speak) the "guidance ended" acknowledgment.
        """
        self._close_source()
        with self._lock:
            self._rerouter.reset()
            result = self._tracker.stop()
            if announce:
                self._publish(result)
        logger.info("Navigation stopped by user.")
        return result

    def reroute(self, route: Route) -> ProgressResult:
        """Replace the active route; step index restarts at 0."""
        with self._lock:
            self._rerouter.reset()
            result = self._tracker.reroute(route)
            self._after_reroute(route, result)
        return result

    def close(self) -> None:
        """Release the position source and the reroute worker."""
        self._close_source()
        self._rerouter.close()

    # ------------------------------------------------------------------
    # Position update: call this on every position sample
    # ------------------------------------------------------------------

    def update(self, sample: PositionSample) -> List[ProgressResult]:
        """
        Process one position sample to completion.

        Args:
            sample: Current position.

        Returns:
            The results published for this sample: the progress result and,
            when the traveler left the route, an OFF_ROUTE result.
        """
        with self._lock:
            result = self._tracker.advance(sample)
            if result.status is RouteStatus.INACTIVE:
                return [result]

            results = [result]
            off_route = self._rerouter.check(sample)
            if off_route is not None:
                results.append(off_route)

            self._place_marker(sample.coord, self._tracker.heading)
            for r in results:
                self._publish(r)
            return results

    def run_source(self, source: PositionSource, mode: NavigationMode = NavigationMode.LIVE) -> None:
        """
        Feed every sample of source into update() until the source ends,
        navigation stops, or the destination is reached.

        Any previously attached source is closed first. A source failure is
        published as LOCATION_ERROR; the session is left as it was so another
        source can be attached.
        """
        self._close_source()
        self._source = source
        logger.info(f"Position source attached ({mode.value}).")

        try:
            for sample in source.samples():
                if self._source is not source:
                    break
                self.update(sample)
                if self._tracker.state is not SessionState.NAVIGATING:
                    break
        except LocationUnavailable as e:
            logger.error(f"Position source failed: {e}")
            if self._source is source:
                self._source = None
            text = Announcement.LOCATION_UNAVAILABLE.value
            self._publish(ProgressResult(status=RouteStatus.LOCATION_ERROR, display_text=text, voice_text=text))
            return
        finally:
            source.close()

        if self._source is not source:
            # Replaced or stopped from elsewhere
            return
        self._source = None

        if mode is NavigationMode.SIMULATED:
            text = Announcement.SIMULATION_ENDED.value
            self._publish(ProgressResult(status=RouteStatus.SIMULATION_ENDED, display_text=text, voice_text=text))
            with self._lock:
                self._rerouter.reset()
                self._tracker.stop()

    def simulate(self, route: Optional[Route] = None, sleep: Optional[Callable[[float], None]] = None) -> None:
        """
        Demo drive: replay a route's own geometry as the position stream.

        Args:
            route: Route to play; the active route when omitted.
            sleep: Override for the pause between points.
        """
        route = route or self._tracker.route
        if route is None:
            raise RoutingError("No route to simulate.")
        self.start(route, NavigationMode.SIMULATED)

        kwargs = {"interval_s": self.config.simulation_interval_s}
        if sleep is not None:
            kwargs["sleep"] = sleep
        self.run_source(SimulatedPositionSource(route.geometry, **kwargs), NavigationMode.SIMULATED)

    # ------------------------------------------------------------------
    # Convenience read-only properties
    # ------------------------------------------------------------------

    @property
    def tracker(self) -> RouteTracker:
        return self._tracker

    @property
    def is_active(self) -> bool:
        return self._tracker.is_active

    @property
    def remaining_steps(self) -> int:
        return self._tracker.remaining_steps

    @property
    def reroute_pending(self) -> bool:
        return self._rerouter.in_flight

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _on_reroute_result(self, result: ProgressResult) -> None:
        # Runs with self._lock held by the coordinator
        if result.status is RouteStatus.REROUTED:
            self._after_reroute(self._tracker.route, result)
        else:
            self._publish(result)

    def _after_reroute(self, route: Route, result: ProgressResult) -> None:
        if self._logger:
            self._logger.save_route(route)
        self._draw(route)
        self._publish(result)

    def _close_source(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.close()

    def _publish(self, result: ProgressResult) -> None:
        if self._logger:
            self._logger.log_event(result)

        if self._speech is not None and result.voice_text:
            try:
                self._speech.say(result.voice_text, self.config.language)
            except Exception as e:
                logger.warning(f"Speech failed: {e}")

        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Navigation listener raised.")

    def _draw(self, route: Route) -> None:
        if self._display is None:
            return
        try:
            self._display.draw_route(route.geometry)
        except Exception as e:
            logger.warning(f"Display failed to draw route: {e}")

    def _place_marker(self, position: Coord, heading: float) -> None:
        if self._display is None:
            return
        try:
            self._display.place_marker(position, heading)
        except Exception as e:
            logger.warning(f"Display failed to place marker: {e}")
