# main.py
# Entry point: requests a route from OSRM and drives it, either as a demo
# (simulated playback of the route geometry) or from a serial NMEA GPS.
#
# Usage:
#   drive-nav demo 33.5902 130.4017 33.5847 130.4208
#   drive-nav live 33.5902 130.4017 33.5847 130.4208 --port /dev/ttyUSB0
#   drive-nav demo --resume --log-dir logs

import argparse
import logging
import sys
from typing import Optional, Sequence

from .models import Coord, NavigationMode, ProgressResult, RouteStatus
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .navigator import NavigationSystem
from .narration import guidance_line
from .position_source import LiveGpsSource

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Prints what a map surface would draw."""

    def draw_route(self, points: Sequence[Coord]) -> None:
        print(f"[Map] Route line with {len(points)} points.")

    def place_marker(self, position: Coord, heading: float) -> None:
        logger.debug(f"Marker at {position.lat:.6f},{position.lon:.6f} heading {heading:.0f}°")


def print_result(result: ProgressResult) -> None:
    if result.status in (RouteStatus.PROGRESSING, RouteStatus.WAYPOINT_HIT):
        print(f"  [{result.status.name}] {guidance_line(result.distance_text, result.display_text)}")
    else:
        print(f"  [{result.status.name}] {result.display_text}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drive-nav", description="Turn-by-turn driving guidance.")
    parser.add_argument("mode", choices=["demo", "live"], help="demo = replay the route, live = serial GPS")
    parser.add_argument("coords", nargs="*", type=float, metavar="COORD",
                        help="START_LAT START_LON END_LAT END_LON (omit with --resume)")
    parser.add_argument("--resume", action="store_true", help="drive the route last saved in --log-dir")
    parser.add_argument("--avoid-motorways", action="store_true", help="exclude motorways from the route")
    parser.add_argument("--port", default="/dev/ttyUSB0", help="serial GPS device (live mode)")
    parser.add_argument("--baudrate", type=int, default=9600)
    parser.add_argument("--osrm-url", default=None, help="OSRM server base URL")
    parser.add_argument("--interval", type=float, default=None, help="seconds between demo points")
    parser.add_argument("--no-speech", action="store_true", help="disable voice output")
    parser.add_argument("--log-dir", default="logs")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.resume and args.coords:
        parser.error("--resume takes no coordinates")
    if not args.resume and len(args.coords) != 4:
        parser.error("expected START_LAT START_LON END_LAT END_LON")

    # ------------------------------------------------------------------
    # Logging setup: configure once here, all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = NavConfig(avoid_motorways=args.avoid_motorways, log_dir=args.log_dir)
    if args.osrm_url:
        config.osrm_url = args.osrm_url
    if args.interval is not None:
        config.simulation_interval_s = args.interval

    route = None
    if args.resume:
        route = NavLogger(config).load_route()
        if route is None:
            print(f"[Nav] No saved route in {config.log_dir}/")
            return 1

    speech = None
    if not args.no_speech:
        # Imported lazily so --no-speech works without a TTS backend
        from drive_nav.speech.tts import SpeechQueue
        speech = SpeechQueue(rate=config.speech_rate, lang=config.language)

    nav = NavigationSystem(config=config, speech=speech, display=ConsoleDisplay())
    nav.subscribe(print_result)

    try:
        if route is not None:
            print(f"[Nav] Resuming saved route ({len(route.steps)} steps).")
            if args.mode == "demo":
                nav.simulate(route)
            else:
                nav.start(route, NavigationMode.LIVE)
                nav.run_source(LiveGpsSource(args.port, args.baudrate), NavigationMode.LIVE)
        elif args.mode == "demo":
            origin, destination = Coord(*args.coords[:2]), Coord(*args.coords[2:])
            ok, msg = nav.start_navigation(origin, destination, NavigationMode.SIMULATED)
            print(f"[Nav] {msg}")
            if not ok:
                return 1
            nav.simulate()
        else:
            origin, destination = Coord(*args.coords[:2]), Coord(*args.coords[2:])
            ok, msg = nav.start_navigation(origin, destination, NavigationMode.LIVE)
            print(f"[Nav] {msg}")
            if not ok:
                return 1
            nav.run_source(LiveGpsSource(args.port, args.baudrate), NavigationMode.LIVE)
    except KeyboardInterrupt:
        nav.stop()
    finally:
        nav.close()
        if speech is not None:
            speech.wait()
            speech.close()

    print("\n--- Session complete ---")
    print(f"    Log files written to: {config.log_dir}/")
    return 0


if __name__ == "__main__":
    sys.exit(main())
