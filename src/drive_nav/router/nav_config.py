# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Routing service constants
# ---------------------------------------------------------------------------

OSRM_PUBLIC_URL: str = "https://router.project-osrm.org"

CLASSIFIERS: frozenset = frozenset({"text", "structured"})


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Progress tracking
    arrival_threshold_m: float = 20.0      # closer than this to a maneuver point → step done
    off_route_threshold_m: float = 30.0    # farther than this from the next maneuver → off-route
    off_route_exempt_steps: int = 1        # no off-route check while step_index <= this
    reroute_cooldown_s: float = 10.0       # quiet period after a failed reroute request
    classifier: str = "text"               # "text" | "structured"

    # Routing service
    osrm_url: str = OSRM_PUBLIC_URL
    osrm_profile: str = "driving"
    request_timeout_s: float = 15.0
    avoid_motorways: bool = False

    # Simulated playback
    simulation_interval_s: float = 0.6

    # Speech
    language: str = "ja-JP"
    speech_rate: int = 165

    # Logging
    session_log: bool = True
    log_dir: str = "."                     # directory for saved JSON files
    route_filename: str = "active_route.json"
    events_filename: str = "nav_session.jsonl"

    def __post_init__(self) -> None:
        if self.classifier not in CLASSIFIERS:
            raise ValueError(f"Unknown classifier '{self.classifier}', expected one of {sorted(CLASSIFIERS)}")

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def events_filepath(self) -> str:
        return os.path.join(self.log_dir, self.events_filename)
