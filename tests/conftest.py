"""
Shared pytest fixtures for drive-nav tests.
"""

import sys
from concurrent.futures import Future
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = PROJECT_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from drive_nav.router.geo_utils import offset_coord
from drive_nav.router.models import (
    Coord, ManeuverType, Modifier, PositionSample, Route, RouteStep,
)
from drive_nav.router.nav_config import NavConfig

# Tenjin, Fukuoka
ORIGIN = Coord(33.5902, 130.4017)


def move(c: Coord, bearing: float, metres: float) -> Coord:
    lat, lon = offset_coord(c.lat, c.lon, bearing, metres)
    return Coord(lat, lon)


def sample_at(c: Coord, t: float = 0.0, heading=None) -> PositionSample:
    return PositionSample(lat=c.lat, lon=c.lon, timestamp=t, heading=heading)


def straight_route(n_steps: int, spacing_m: float = 300.0, start: Coord = ORIGIN) -> Route:
    """n_steps maneuvers spaced spacing_m apart, heading due north."""
    points = [start]
    for _ in range(n_steps - 1):
        points.append(move(points[-1], 0.0, spacing_m))
    steps = [
        RouteStep(
            index=i,
            distance_m=spacing_m,
            location=p,
            instruction=f"Turn right onto Road {i}",
            road_name=f"Road {i}",
            maneuver_type=ManeuverType.TURN,
            modifier=Modifier.RIGHT,
        )
        for i, p in enumerate(points)
    ]
    return Route(geometry=points, steps=steps)


class FakeProvider:
    """Route provider returning canned answers and recording calls."""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def route(self, origin, destination, avoid_motorways=False):
        self.calls.append((origin, destination, avoid_motorways))
        if self.error is not None:
            raise self.error
        return self.result


class ManualExecutor:
    """Executor that runs submitted work only when the test says so."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class FakeSpeech:
    def __init__(self, fail=False):
        self.spoken = []
        self.fail = fail

    def say(self, text, lang):
        if self.fail:
            raise RuntimeError("speaker unplugged")
        self.spoken.append((text, lang))


class FakeDisplay:
    def __init__(self):
        self.routes = []
        self.markers = []

    def draw_route(self, points):
        self.routes.append(list(points))

    def place_marker(self, position, heading):
        self.markers.append((position, heading))


@pytest.fixture
def config():
    return NavConfig(session_log=False)


@pytest.fixture
def main_oak_route():
    """
    Two maneuvers: right onto Main St 500 m north of ORIGIN, then left onto
    Oak Ave 200 m further east (the destination).
    """
    main_st = move(ORIGIN, 0.0, 500.0)
    oak_ave = move(main_st, 90.0, 200.0)
    steps = [
        RouteStep(
            index=0, distance_m=500, location=main_st,
            instruction="Turn right onto Main St", road_name="Main St",
            maneuver_type=ManeuverType.TURN, modifier=Modifier.RIGHT,
        ),
        RouteStep(
            index=1, distance_m=200, location=oak_ave,
            instruction="Turn left onto Oak Ave", road_name="Oak Ave",
            maneuver_type=ManeuverType.TURN, modifier=Modifier.LEFT,
        ),
    ]
    return Route(geometry=[ORIGIN, main_st, oak_ave], steps=steps)


@pytest.fixture
def executor():
    return ManualExecutor()
