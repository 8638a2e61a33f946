"""
Unit tests for the OSRM route client and response parsing.
"""

from unittest.mock import MagicMock

import pytest
import requests

from drive_nav.router.maneuver import classify, classify_structured
from drive_nav.router.models import Coord, DirectionCategory, ManeuverType, Modifier, RoutingError
from drive_nav.router.nav_config import NavConfig
from drive_nav.router.osrm_client import OsrmClient, english_instruction, parse_route

ORIGIN = Coord(33.5902, 130.4017)
DEST = Coord(33.5897, 130.4207)


def osrm_step(kind, lon, lat, modifier=None, name="", distance=100.0, exit_number=None, instruction=None):
    maneuver = {"type": kind, "location": [lon, lat]}
    if modifier:
        maneuver["modifier"] = modifier
    if exit_number is not None:
        maneuver["exit"] = exit_number
    if instruction:
        maneuver["instruction"] = instruction
    return {"maneuver": maneuver, "name": name, "distance": distance}


def ok_payload():
    return {
        "code": "Ok",
        "routes": [{
            "geometry": {"coordinates": [[130.4017, 33.5902], [130.4100, 33.5900], [130.4207, 33.5897]]},
            "legs": [{
                "steps": [
                    osrm_step("depart", 130.4017, 33.5902, name="Watanabe-dori", distance=800),
                    osrm_step("turn", 130.4100, 33.5900, modifier="right", name="Meiji-dori", distance=950),
                    osrm_step("roundabout", 130.4150, 33.5899, modifier="straight", exit_number=2, distance=120),
                    osrm_step("arrive", 130.4207, 33.5897, distance=0),
                ],
            }],
        }],
    }


def make_session(payload=None, status=200, error=None, json_error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
        return session
    response = MagicMock()
    response.status_code = status
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    session.get.return_value = response
    return session


class TestEnglishInstruction:

    @pytest.mark.unit
    @pytest.mark.parametrize("raw_type, modifier, name, exit_number, expected", [
        ("turn", Modifier.RIGHT, "Main St", None, "Turn right onto Main St"),
        ("turn", Modifier.SLIGHT_LEFT, "", None, "Bear left"),
        ("turn", Modifier.SHARP_RIGHT, "", None, "Make a sharp right"),
        ("end of road", Modifier.LEFT, "Oak Ave", None, "Turn left onto Oak Ave"),
        ("continue", Modifier.STRAIGHT, "", None, "Continue straight"),
        ("continue", Modifier.UTURN, "", None, "Make a U-turn"),
        ("merge", Modifier.SLIGHT_RIGHT, "Route 3", None, "Merge onto Route 3"),
        ("on ramp", Modifier.RIGHT, "", None, "Take the motorway ramp"),
        ("off ramp", Modifier.SLIGHT_LEFT, "", None, "Take the motorway exit on the left"),
        ("fork", Modifier.SLIGHT_RIGHT, "", None, "Keep right at the junction"),
        ("fork", Modifier.STRAIGHT, "", None, "Take the fork at the junction"),
        ("fork", Modifier.NONE, "", None, "Take the fork at the junction"),
        ("off ramp", Modifier.NONE, "", None, "Take the motorway exit"),
        ("roundabout", Modifier.NONE, "", 3, "Enter the roundabout and take exit 3"),
        ("roundabout", Modifier.NONE, "", None, "Enter the roundabout"),
        ("depart", Modifier.NONE, "Watanabe-dori", None, "Head out onto Watanabe-dori"),
        ("arrive", Modifier.NONE, "Hakata", None, "You have arrived at your destination"),
        ("use lane", Modifier.NONE, "", None, "Continue"),
    ])
    def test_phrasing(self, raw_type, modifier, name, exit_number, expected):
        assert english_instruction(raw_type, modifier, name, exit_number) == expected


class TestParseRoute:

    @pytest.mark.unit
    def test_geometry_swaps_lon_lat(self):
        route = parse_route(ok_payload())
        assert route.geometry[0] == ORIGIN
        assert route.destination == DEST

    @pytest.mark.unit
    def test_steps(self):
        route = parse_route(ok_payload())
        assert [s.index for s in route.steps] == [0, 1, 2, 3]

        turn = route.steps[1]
        assert turn.location == Coord(33.5900, 130.4100)
        assert turn.instruction == "Turn right onto Meiji-dori"
        assert turn.road_name == "Meiji-dori"
        assert turn.maneuver_type is ManeuverType.TURN
        assert turn.modifier is Modifier.RIGHT
        assert turn.distance_m == 950

        roundabout = route.steps[2]
        assert roundabout.maneuver_type is ManeuverType.ROUNDABOUT
        assert roundabout.exit_number == 2

    @pytest.mark.unit
    def test_server_instruction_preferred(self):
        payload = ok_payload()
        payload["routes"][0]["legs"][0]["steps"][1]["maneuver"]["instruction"] = "Turn right at the lights"
        assert parse_route(payload).steps[1].instruction == "Turn right at the lights"

    @pytest.mark.unit
    def test_steps_from_every_leg(self):
        payload = ok_payload()
        legs = payload["routes"][0]["legs"]
        legs.append({"steps": [osrm_step("arrive", 130.43, 33.59)]})
        route = parse_route(payload)
        assert len(route.steps) == 5
        assert route.steps[-1].index == 4

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [
        {},
        {"routes": []},
        {"routes": [{"geometry": {"coordinates": []}, "legs": []}]},
        {"routes": [{"geometry": {"coordinates": [[1, 2]]}, "legs": [{"steps": [{"name": "x"}]}]}]},
    ])
    def test_malformed(self, payload):
        with pytest.raises(RoutingError):
            parse_route(payload)


OSRM_TYPES = [
    "depart", "arrive", "turn", "end of road", "continue", "new name", "notification",
    "merge", "on ramp", "off ramp", "fork", "roundabout", "rotary", "roundabout turn", "use lane",
]
OSRM_MODIFIERS = [None, "right", "left", "slight right", "slight left", "sharp right", "sharp left", "straight", "uturn"]


def single_step_route(kind, modifier=None, exit_number=None):
    payload = ok_payload()
    payload["routes"][0]["legs"] = [{
        "steps": [osrm_step(kind, 130.4100, 33.5900, modifier=modifier, name="Main St", exit_number=exit_number)],
    }]
    return parse_route(payload).steps[0]


class TestClassifierAgreement:
    """Synthesized text and maneuver tags must lead to the same category."""

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", OSRM_TYPES)
    @pytest.mark.parametrize("modifier", OSRM_MODIFIERS)
    def test_text_matches_structured(self, kind, modifier):
        step = single_step_route(kind, modifier)
        assert classify(step) is classify_structured(step), step.instruction

    @pytest.mark.unit
    @pytest.mark.parametrize("kind", ["roundabout", "rotary", "roundabout turn"])
    def test_roundabout_with_exit(self, kind):
        step = single_step_route(kind, exit_number=2)
        assert classify(step) is classify_structured(step) is DirectionCategory.NONE

    @pytest.mark.unit
    @pytest.mark.parametrize("kind, modifier, expected_type, expected", [
        ("off ramp", "slight right", ManeuverType.EXIT, DirectionCategory.HIGHWAY_EXIT),
        ("off ramp", None, ManeuverType.EXIT, DirectionCategory.HIGHWAY_EXIT),
        ("on ramp", "right", ManeuverType.RAMP, DirectionCategory.HIGHWAY_ENTER),
        ("end of road", "right", ManeuverType.TURN, DirectionCategory.RIGHT),
        ("continue", "straight", ManeuverType.CONTINUE, DirectionCategory.STRAIGHT),
        ("new name", None, ManeuverType.CONTINUE, DirectionCategory.STRAIGHT),
        ("continue", "uturn", ManeuverType.CONTINUE, DirectionCategory.UTURN),
        ("fork", "straight", ManeuverType.FORK, DirectionCategory.JUNCTION),
    ])
    def test_category(self, kind, modifier, expected_type, expected):
        step = single_step_route(kind, modifier)
        assert step.maneuver_type is expected_type
        assert classify(step) is expected
        assert classify_structured(step) is expected


class TestOsrmClient:

    @pytest.mark.unit
    def test_url(self):
        client = OsrmClient(NavConfig(osrm_url="http://osrm.local:5000/"), session=MagicMock())
        url = client.build_url(ORIGIN, DEST)
        assert url == (
            "http://osrm.local:5000/route/v1/driving/130.4017,33.5902;130.4207,33.5897"
            "?overview=full&geometries=geojson&steps=true"
        )

    @pytest.mark.unit
    def test_url_avoid_motorways(self):
        client = OsrmClient(session=MagicMock())
        assert client.build_url(ORIGIN, DEST, avoid_motorways=True).endswith("&exclude=motorway")

    @pytest.mark.unit
    def test_route_ok(self):
        session = make_session(ok_payload())
        client = OsrmClient(NavConfig(request_timeout_s=7), session=session)

        route = client.route(ORIGIN, DEST)

        assert len(route.steps) == 4
        args, kwargs = session.get.call_args
        assert args[0] == client.build_url(ORIGIN, DEST)
        assert kwargs["timeout"] == 7

    @pytest.mark.unit
    @pytest.mark.parametrize("payload", [
        {"code": "NoRoute", "message": "Impossible route between points"},
        {"code": "NoSegment"},
        {"code": "Ok", "routes": []},
    ])
    def test_no_route_is_none(self, payload):
        client = OsrmClient(session=make_session(payload, status=400 if payload["code"] != "Ok" else 200))
        assert client.route(ORIGIN, DEST) is None

    @pytest.mark.unit
    def test_transport_error(self):
        client = OsrmClient(session=make_session(error=requests.ConnectionError("refused")))
        with pytest.raises(RoutingError):
            client.route(ORIGIN, DEST)

    @pytest.mark.unit
    def test_timeout(self):
        client = OsrmClient(session=make_session(error=requests.Timeout("slow")))
        with pytest.raises(RoutingError):
            client.route(ORIGIN, DEST)

    @pytest.mark.unit
    def test_non_json(self):
        client = OsrmClient(session=make_session(status=502, json_error=ValueError("no json")))
        with pytest.raises(RoutingError):
            client.route(ORIGIN, DEST)

    @pytest.mark.unit
    def test_server_error_code(self):
        client = OsrmClient(session=make_session({"code": "InvalidQuery", "message": "bad coords"}, status=400))
        with pytest.raises(RoutingError):
            client.route(ORIGIN, DEST)

    @pytest.mark.unit
    def test_http_error_with_ok_body(self):
        client = OsrmClient(session=make_session(ok_payload(), status=500))
        with pytest.raises(RoutingError):
            client.route(ORIGIN, DEST)
