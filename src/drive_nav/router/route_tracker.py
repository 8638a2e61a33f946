# route_tracker.py
# State machine that tracks a driver's position against an active route.
# Call start() once, then advance() on every position sample.

import logging
from typing import Optional

from .geo_utils import calculate_bearing, haversine_distance
from .maneuver import CLASSIFIERS
from .models import (
    Coord, NavigationError, NavigationMode, NavigationSession, PositionSample,
    ProgressResult, Route, RouteStatus, RouteStep, SessionState,
)
from .nav_config import NavConfig
from .narration import Announcement, narrate_step

logger = logging.getLogger(__name__)


class RouteTracker:
    """
    Stateful progress tracker for a single navigation session.

    States: INACTIVE → NAVIGATING(step) → ARRIVED. ARRIVED only leaves
    through start() or stop().

    Usage:
        tracker = RouteTracker(config)
        tracker.start(route)

        # Inside the position loop:
        result = tracker.advance(sample)
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self._session = NavigationSession()
        self._classify = CLASSIFIERS[self.config.classifier]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, route: Route, mode: NavigationMode = NavigationMode.LIVE) -> None:
        """Load a route and begin at step 0."""
        generation = self._session.generation + 1
        self._session = NavigationSession(
            route=route,
            step_index=0,
            mode=mode,
            state=SessionState.NAVIGATING,
            heading=self._session.heading,
            destination=route.destination,
            generation=generation,
        )
        logger.info(f"Navigation started ({mode.value}): {len(route.steps)} steps, generation {generation}.")

    def stop(self) -> ProgressResult:
        """
        End navigation from any state.

        Returns:
            The "guidance ended" acknowledgment; voicing it is up to the caller.
        """
        previous = self._session.state
        self._session = NavigationSession(
            heading=self._session.heading,
            generation=self._session.generation + 1,
        )
        logger.info(f"Navigation stopped (was {previous.value}).")
        text = Announcement.GUIDANCE_ENDED.value
        return ProgressResult(status=RouteStatus.STOPPED, display_text=text, voice_text=text)

    def reroute(self, route: Route) -> ProgressResult:
        """
        Swap in a freshly computed route and restart at its first step.

        Raises:
            NavigationError: navigation is not active.
        """
        if self._session.state is SessionState.INACTIVE:
            raise NavigationError("Cannot reroute: navigation is not active.")

        s = self._session
        s.route = route
        s.step_index = 0
        s.state = SessionState.NAVIGATING
        s.generation += 1
        logger.info(f"Rerouted: {len(route.steps)} steps, generation {s.generation}.")

        text = Announcement.REROUTED.value
        return ProgressResult(
            status=RouteStatus.REROUTED,
            display_text=text,
            voice_text=text,
            step_index=0,
            current_step=s.current_step,
        )

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def is_active(self) -> bool:
        return self._session.state is SessionState.NAVIGATING

    @property
    def mode(self) -> NavigationMode:
        return self._session.mode

    @property
    def generation(self) -> int:
        return self._session.generation

    @property
    def route(self) -> Optional[Route]:
        return self._session.route

    @property
    def step_index(self) -> int:
        return self._session.step_index

    @property
    def current_step(self) -> Optional[RouteStep]:
        return self._session.current_step

    @property
    def destination(self) -> Optional[Coord]:
        return self._session.destination

    @property
    def heading(self) -> float:
        return self._session.heading

    @property
    def remaining_steps(self) -> int:
        if not self._session.route:
            return 0
        return max(0, len(self._session.route.steps) - self._session.step_index)

    def distance_to_maneuver(self, sample: PositionSample) -> Optional[float]:
        """Metres from sample to the current step's maneuver point."""
        step = self.current_step
        if step is None:
            return None
        return haversine_distance(sample.lat, sample.lon, step.location.lat, step.location.lon)

    # ------------------------------------------------------------------
    # Core method: call on every position sample
    # ------------------------------------------------------------------

    def advance(self, sample: PositionSample) -> ProgressResult:
        """
        Compare a position sample to the active route.

        Args:
            sample: Current position.

        Returns:
            ProgressResult with fresh narration; every call narrates.
        """
        s = self._session
        if s.state is SessionState.INACTIVE:
            return ProgressResult(
                status=RouteStatus.INACTIVE,
                display_text="",
                voice_text="",
                position=sample.coord,
            )
        if s.state is SessionState.ARRIVED:
            text = Announcement.ARRIVED.value
            return ProgressResult(
                status=RouteStatus.ARRIVED,
                display_text=text,
                voice_text="",
                step_index=s.step_index,
                position=sample.coord,
            )

        self._update_heading(sample)

        target = s.current_step
        dist = self.distance_to_maneuver(sample)

        # 1. Maneuver point reached
        if dist < self.config.arrival_threshold_m:
            if s.step_index == len(s.route.steps) - 1:
                s.state = SessionState.ARRIVED
                logger.info(f"Arrived at destination (step {s.step_index}, {dist:.1f} m).")
                text = Announcement.ARRIVED.value
                return ProgressResult(
                    status=RouteStatus.ARRIVED,
                    display_text=text,
                    voice_text=text,
                    distance_text="",
                    distance_m=dist,
                    step_index=s.step_index,
                    current_step=target,
                    heading=s.heading,
                    position=sample.coord,
                )

            s.step_index += 1
            logger.debug(f"Step {s.step_index - 1} done, now on step {s.step_index}.")
            return self._narrate(RouteStatus.WAYPOINT_HIT, sample)

        # 2. Still heading for the same maneuver
        return self._narrate(RouteStatus.PROGRESSING, sample, dist)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _narrate(self, status: RouteStatus, sample: PositionSample, dist: Optional[float] = None) -> ProgressResult:
        s = self._session
        step = s.current_step
        if dist is None:
            dist = self.distance_to_maneuver(sample)
        n = narrate_step(step, dist, self._classify)
        return ProgressResult(
            status=status,
            display_text=n.display_text,
            voice_text=n.voice_text,
            category=n.category,
            distance_text=n.distance_text,
            distance_m=dist,
            step_index=s.step_index,
            current_step=step,
            heading=s.heading,
            position=sample.coord,
        )

    def _update_heading(self, sample: PositionSample) -> None:
        s = self._session
        if sample.heading is not None:
            s.heading = sample.heading % 360
        elif s.last_sample is not None and (s.last_sample.lat, s.last_sample.lon) != (sample.lat, sample.lon):
            s.heading = calculate_bearing(s.last_sample.lat, s.last_sample.lon, sample.lat, sample.lon)
        s.last_sample = sample
