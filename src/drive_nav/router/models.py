# models.py
# Shared data structures, enums and exceptions used across all modules.

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class NavigationError(Exception):
    """Base class for navigation engine errors."""


class RoutingError(NavigationError):
    """The route-computation service could not be reached or replied garbage."""


class LocationUnavailable(NavigationError):
    """The position source failed and will not produce further samples."""


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float


@dataclass(frozen=True)
class PositionSample:
    """One position observation from a live or simulated source."""
    lat: float
    lon: float
    timestamp: float
    heading: Optional[float] = None      # degrees clockwise from north, None if the sensor has none

    @property
    def coord(self) -> Coord:
        return Coord(self.lat, self.lon)


# ---------------------------------------------------------------------------
# Maneuver tags
# ---------------------------------------------------------------------------

class ManeuverType(Enum):
    TURN              = "turn"
    UTURN             = "u-turn"
    MERGE             = "merge"
    FORK              = "fork"
    RAMP              = "ramp"
    EXIT              = "exit"
    MOTORWAY_JUNCTION = "motorway_junction"
    ROUNDABOUT        = "roundabout"
    CONTINUE          = "continue"
    OTHER             = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ManeuverType":
        """Map a routing-service type string to a tag; unknown strings become OTHER."""
        if not value:
            return cls.OTHER
        value = value.strip().lower()
        aliases = {
            "on ramp": cls.RAMP,
            "off ramp": cls.EXIT,
            "end of road": cls.TURN,
            "new name": cls.CONTINUE,
            "notification": cls.CONTINUE,
            "rotary": cls.ROUNDABOUT,
            "roundabout turn": cls.ROUNDABOUT,
            "motorway-junction": cls.MOTORWAY_JUNCTION,
            "uturn": cls.UTURN,
        }
        if value in aliases:
            return aliases[value]
        for member in cls:
            if member.value == value:
                return member
        return cls.OTHER


class Modifier(Enum):
    RIGHT        = "right"
    LEFT         = "left"
    SLIGHT_RIGHT = "slight right"
    SLIGHT_LEFT  = "slight left"
    SHARP_RIGHT  = "sharp right"
    SHARP_LEFT   = "sharp left"
    STRAIGHT     = "straight"
    UTURN        = "uturn"
    NONE         = "none"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Modifier":
        if not value:
            return cls.NONE
        value = value.strip().lower().replace("-", " ")
        for member in cls:
            if member.value == value:
                return member
        return cls.NONE


class DirectionCategory(Enum):
    """Hand-off between maneuver classification and narration."""
    RIGHT         = "right"
    LEFT          = "left"
    SLIGHT_RIGHT  = "slight-right"
    SLIGHT_LEFT   = "slight-left"
    SHARP_RIGHT   = "sharp-right"
    SHARP_LEFT    = "sharp-left"
    STRAIGHT      = "straight"
    UTURN         = "uturn"
    HIGHWAY_ENTER = "highway-enter"
    HIGHWAY_EXIT  = "highway-exit"
    MERGE         = "merge"
    JUNCTION      = "junction"
    IC            = "ic"
    SAPA          = "sapa"
    NONE          = "none"


# ---------------------------------------------------------------------------
# Route step / route
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteStep:
    """A single maneuver of a route."""
    index: int
    distance_m: float
    location: Coord                       # where the maneuver happens
    instruction: str = ""
    road_name: str = ""
    maneuver_type: ManeuverType = ManeuverType.OTHER
    modifier: Modifier = Modifier.NONE
    exit_number: Optional[int] = None     # roundabouts only

    def __post_init__(self) -> None:
        if self.distance_m < 0:
            raise ValueError(f"Step {self.index}: negative distance {self.distance_m}")

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "distance_m": self.distance_m,
            "location": {"lat": self.location.lat, "lon": self.location.lon},
            "instruction": self.instruction,
            "road_name": self.road_name,
            "maneuver_type": self.maneuver_type.value,
            "modifier": self.modifier.value,
            "exit_number": self.exit_number,
        }

    @staticmethod
    def from_dict(d: dict) -> "RouteStep":
        return RouteStep(
            index=d["index"],
            distance_m=d["distance_m"],
            location=Coord(d["location"]["lat"], d["location"]["lon"]),
            instruction=d.get("instruction", ""),
            road_name=d.get("road_name") or "",
            maneuver_type=ManeuverType.parse(d.get("maneuver_type")),
            modifier=Modifier.parse(d.get("modifier")),
            exit_number=d.get("exit_number"),
        )


@dataclass(frozen=True)
class Route:
    """
    Geometry to draw plus the ordered maneuver steps.

    Never mutated; a reroute builds a new Route.
    """
    geometry: Tuple[Coord, ...]
    steps: Tuple[RouteStep, ...]

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples
        object.__setattr__(self, "geometry", tuple(self.geometry))
        object.__setattr__(self, "steps", tuple(self.steps))
        if not self.steps:
            raise ValueError("A route needs at least one step.")
        if not self.geometry:
            raise ValueError("A route needs at least one geometry point.")

    @property
    def destination(self) -> Coord:
        return self.geometry[-1]

    @property
    def total_distance_m(self) -> float:
        return sum(s.distance_m for s in self.steps)

    def to_dict(self) -> dict:
        return {
            "geometry": [[c.lat, c.lon] for c in self.geometry],
            "steps": [s.to_dict() for s in self.steps],
        }

    @staticmethod
    def from_dict(d: dict) -> "Route":
        return Route(
            geometry=[Coord(lat, lon) for lat, lon in d["geometry"]],
            steps=[RouteStep.from_dict(s) for s in d["steps"]],
        )


# ---------------------------------------------------------------------------
# Navigation session
# ---------------------------------------------------------------------------

class NavigationMode(Enum):
    INACTIVE  = "inactive"
    LIVE      = "live"
    SIMULATED = "simulated"


class SessionState(Enum):
    INACTIVE   = "inactive"
    NAVIGATING = "navigating"
    ARRIVED    = "arrived"


@dataclass
class NavigationSession:
    """Mutable state owned by RouteTracker. Nothing else writes to it."""
    route: Optional[Route] = None
    step_index: int = 0
    mode: NavigationMode = NavigationMode.INACTIVE
    state: SessionState = SessionState.INACTIVE
    heading: float = 0.0
    destination: Optional[Coord] = None
    generation: int = 0
    last_sample: Optional[PositionSample] = None

    @property
    def current_step(self) -> Optional[RouteStep]:
        if self.route and 0 <= self.step_index < len(self.route.steps):
            return self.route.steps[self.step_index]
        return None


# ---------------------------------------------------------------------------
# Navigation status
# ---------------------------------------------------------------------------

class RouteStatus(Enum):
    INACTIVE         = "inactive"
    PROGRESSING      = "progressing"
    WAYPOINT_HIT     = "waypoint_hit"
    ARRIVED          = "arrived"
    OFF_ROUTE        = "off_route"
    REROUTED         = "rerouted"
    REROUTE_FAILED   = "reroute_failed"
    NO_ROUTE         = "no_route"
    STOPPED          = "stopped"
    SIMULATION_ENDED = "simulation_ended"
    LOCATION_ERROR   = "location_error"


@dataclass
class ProgressResult:
    """One guidance event, pushed to listeners and returned by update()."""
    status: RouteStatus
    display_text: str
    voice_text: str
    category: DirectionCategory = DirectionCategory.NONE
    distance_text: str = ""
    distance_m: Optional[float] = None     # metres
    step_index: Optional[int] = None
    current_step: Optional[RouteStep] = None
    heading: Optional[float] = None
    position: Optional[Coord] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "category": self.category.value,
            "display_text": self.display_text,
            "voice_text": self.voice_text,
            "distance_text": self.distance_text,
            "distance_m": self.distance_m,
            "step_index": self.step_index,
        }

