# osrm_client.py
# Route-computation collaborator: asks an OSRM server for a driving route and
# converts the answer into a Route.

import logging
from typing import List, Optional

import requests

from .models import Coord, ManeuverType, Modifier, Route, RouteStep, RoutingError
from .nav_config import NavConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# English instruction text
# ---------------------------------------------------------------------------

# The public OSRM server returns maneuvers without text; build the usual
# English phrasing so the text classifier has something to read.
_TURN_TEXT = {
    Modifier.RIGHT:        "Turn right",
    Modifier.LEFT:         "Turn left",
    Modifier.SLIGHT_RIGHT: "Bear right",
    Modifier.SLIGHT_LEFT:  "Bear left",
    Modifier.SHARP_RIGHT:  "Make a sharp right",
    Modifier.SHARP_LEFT:   "Make a sharp left",
    Modifier.STRAIGHT:     "Go straight",
    Modifier.UTURN:        "Make a U-turn",
}


def english_instruction(raw_type: str, modifier: Modifier, name: str, exit_number: Optional[int] = None) -> str:
    """
    Instruction text for an OSRM maneuver, e.g. "Turn right onto Main St".

    Args:
        raw_type:    OSRM maneuver type ("turn", "depart", "on ramp", ...).
        modifier:    Parsed modifier.
        name:        Road name of the step, may be empty.
        exit_number: Roundabout exit.
    """
    # Empty when the modifier names no side
    side = next((s for s in ("right", "left") if s in modifier.value), "")

    if raw_type == "depart":
        text = "Head out"
    elif raw_type == "arrive":
        return "You have arrived at your destination"
    elif raw_type in ("turn", "end of road"):
        text = _TURN_TEXT.get(modifier, "Continue")
    elif raw_type in ("continue", "new name", "notification"):
        text = "Make a U-turn" if modifier is Modifier.UTURN else "Continue straight"
    elif raw_type == "merge":
        text = "Merge"
    elif raw_type == "on ramp":
        text = "Take the motorway ramp"
    elif raw_type == "off ramp":
        text = f"Take the motorway exit on the {side}" if side else "Take the motorway exit"
    elif raw_type == "fork":
        text = f"Keep {side} at the junction" if side else "Take the fork at the junction"
    elif raw_type in ("roundabout", "rotary", "roundabout turn"):
        if exit_number:
            text = f"Enter the roundabout and take exit {exit_number}"
        else:
            text = "Enter the roundabout"
    else:
        text = "Continue"

    if name:
        text = f"{text} onto {name}"
    return text


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def parse_route(data: dict) -> Route:
    """
    Convert an OSRM /route response (geojson geometry, steps=true) to a Route.

    Raises:
        RoutingError: required fields are missing.
    """
    try:
        route = data["routes"][0]
        geometry = [Coord(lat, lon) for lon, lat in route["geometry"]["coordinates"]]
        raw_steps = [s for leg in route["legs"] for s in leg["steps"]]

        steps: List[RouteStep] = []
        for i, s in enumerate(raw_steps):
            m = s["maneuver"]
            raw_type = (m.get("type") or "").lower()
            modifier = Modifier.parse(m.get("modifier"))
            name = s.get("name") or ""
            exit_number = m.get("exit")
            lon, lat = m["location"]
            steps.append(RouteStep(
                index=i,
                distance_m=float(s.get("distance", 0.0)),
                location=Coord(lat, lon),
                instruction=m.get("instruction") or english_instruction(raw_type, modifier, name, exit_number),
                road_name=name,
                maneuver_type=ManeuverType.parse(raw_type),
                modifier=modifier,
                exit_number=exit_number,
            ))
        return Route(geometry=geometry, steps=steps)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise RoutingError(f"Malformed OSRM response: {e}") from e


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class OsrmClient:
    """
    Calculates driving routes through an OSRM HTTP server.

    Args:
        config:  NavConfig with osrm_url, osrm_profile and request_timeout_s.
        session: Optional requests.Session to reuse connections.
    """

    def __init__(self, config: Optional[NavConfig] = None, session: Optional[requests.Session] = None) -> None:
        self.config = config or NavConfig()
        self._session = session or requests.Session()

    def build_url(self, origin: Coord, destination: Coord, avoid_motorways: bool = False) -> str:
        coords = f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        url = (
            f"{self.config.osrm_url.rstrip('/')}/route/v1/{self.config.osrm_profile}/{coords}"
            "?overview=full&geometries=geojson&steps=true"
        )
        if avoid_motorways:
            url += "&exclude=motorway"
        return url

    def route(self, origin: Coord, destination: Coord, avoid_motorways: bool = False) -> Optional[Route]:
        """
        Request a route.

        Returns:
            Route, or None when the server found no route.

        Raises:
            RoutingError: transport failure, HTTP error or unusable payload.
        """
        url = self.build_url(origin, destination, avoid_motorways)
        logger.info(f"Requesting route {origin} → {destination} (avoid motorways: {avoid_motorways})")
        try:
            r = self._session.get(url, timeout=self.config.request_timeout_s)
        except requests.RequestException as e:
            raise RoutingError(f"OSRM request failed: {e}") from e

        try:
            data = r.json()
        except ValueError as e:
            raise RoutingError(f"OSRM returned non-JSON (HTTP {r.status_code})") from e

        code = data.get("code")
        if code in ("NoRoute", "NoSegment") or (code == "Ok" and not data.get("routes")):
            logger.warning(f"OSRM found no route: {data.get('message', code)}")
            return None
        if r.status_code >= 400 or code != "Ok":
            raise RoutingError(f"OSRM error {r.status_code} {code}: {data.get('message', '')}")

        route = parse_route(data)
        logger.info(f"Route ready: {len(route.steps)} steps, {route.total_distance_m:.0f} m.")
        return route
