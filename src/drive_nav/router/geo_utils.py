# geo_utils.py
# Spherical-earth helpers shared by the tracker, the rerouter and playback.
# Everything takes and returns decimal degrees; distances are metres.

import math
from typing import Tuple


EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between (lat1, lon1) and (lat2, lon2)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = (phi2 - phi1) / 2
    half_dlmb = math.radians(lon2 - lon1) / 2
    h = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlmb) ** 2
    # Clamp: rounding can push h a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Initial compass bearing for the great circle from point 1 to point 2.

    0 is north, 90 east; the result is always in [0, 360). Identical points
    give 0.0 because atan2(0, 0) is 0, which is what simulated playback
    reports for the last point of a route.
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlmb = math.radians(lon2 - lon1)
    east = math.sin(dlmb) * math.cos(phi2)
    north = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlmb)
    return math.degrees(math.atan2(east, north)) % 360


def offset_coord(lat: float, lon: float, bearing_deg: float, distance_m: float) -> Tuple[float, float]:
    """
    Point reached by travelling distance_m along bearing_deg from (lat, lon).

    Returns:
        (lat, lon) tuple in decimal degrees.
    """
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    rlat1, rlon1 = math.radians(lat), math.radians(lon)
    rlat2 = math.asin(
        math.sin(rlat1) * math.cos(delta)
        + math.cos(rlat1) * math.sin(delta) * math.cos(theta)
    )
    rlon2 = rlon1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(rlat1),
        math.cos(delta) - math.sin(rlat1) * math.sin(rlat2),
    )
    return math.degrees(rlat2), (math.degrees(rlon2) + 540) % 360 - 180
