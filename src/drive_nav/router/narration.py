# narration.py
# Display and voice guidance text for a maneuver, plus the distance formatter.
# Two independent phrase tables: the panel shows the distance in its own field,
# the voice has to announce it.

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from .maneuver import build_instruction, classify, classify_structured, extract_place_name
from .models import DirectionCategory, RouteStep


# ---------------------------------------------------------------------------
# Distance formatter
# ---------------------------------------------------------------------------

def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_distance(meters: float) -> str:
    """
    Human distance for display and speech.

    Below 1000 m: nearest 10 m ("950メートル"). From 1000 m: kilometres with
    one decimal ("1.2キロ"). Halves round up.

    Raises:
        ValueError: meters is negative.
    """
    if meters < 0:
        raise ValueError(f"Distance must be >= 0, got {meters}")
    if meters < 1000:
        return f"{_round_half_up(meters / 10) * 10}メートル"
    tenths = _round_half_up(meters / 100)
    return f"{tenths // 10}.{tenths % 10}キロ"


# ---------------------------------------------------------------------------
# Phrase tables
# ---------------------------------------------------------------------------

_DISPLAY: Dict[DirectionCategory, str] = {
    DirectionCategory.RIGHT:         "{place}右方向です。",
    DirectionCategory.LEFT:          "{place}左方向です。",
    DirectionCategory.SLIGHT_RIGHT:  "{place}斜め右方向です。",
    DirectionCategory.SLIGHT_LEFT:   "{place}斜め左方向です。",
    DirectionCategory.SHARP_RIGHT:   "{place}大きく右に曲がります。",
    DirectionCategory.SHARP_LEFT:    "{place}大きく左に曲がります。",
    DirectionCategory.STRAIGHT:      "{place}直進です。",
    DirectionCategory.UTURN:         "{place}Uターンです。",
    DirectionCategory.HIGHWAY_ENTER: "{place}高速道路に入ります。",
    DirectionCategory.HIGHWAY_EXIT:  "{place}高速道路から降ります。",
    DirectionCategory.MERGE:         "{place}本線に合流します。",
    DirectionCategory.JUNCTION:      "{place}分岐があります。",
    DirectionCategory.SAPA:          "{place}サービスエリア付近です。",
    DirectionCategory.IC:            "{place}インターチェンジ方向です。",
}
_DISPLAY_FALLBACK = "{place}案内があります。"

_VOICE: Dict[DirectionCategory, str] = {
    DirectionCategory.RIGHT:         "あと{dist}で、{place}右に曲がります。",
    DirectionCategory.LEFT:          "あと{dist}で、{place}左に曲がります。",
    DirectionCategory.SLIGHT_RIGHT:  "あと{dist}で、{place}斜め右方向です。",
    DirectionCategory.SLIGHT_LEFT:   "あと{dist}で、{place}斜め左方向です。",
    DirectionCategory.SHARP_RIGHT:   "あと{dist}で、{place}大きく右に曲がります。",
    DirectionCategory.SHARP_LEFT:    "あと{dist}で、{place}大きく左に曲がります。",
    DirectionCategory.STRAIGHT:      "あと{dist}で、{place}直進です。",
    DirectionCategory.UTURN:         "あと{dist}で、{place}Uターンです。",
    DirectionCategory.HIGHWAY_ENTER: "あと{dist}で{place}高速道路に入ります。",
    DirectionCategory.HIGHWAY_EXIT:  "あと{dist}で{place}高速道路を降ります。",
    DirectionCategory.MERGE:         "あと{dist}で{place}本線に合流します。",
    DirectionCategory.JUNCTION:      "あと{dist}で{place}分岐があります。",
    DirectionCategory.SAPA:          "あと{dist}で{place}サービスエリア付近です。",
    DirectionCategory.IC:            "あと{dist}で{place}インターチェンジ方向です。",
}
_VOICE_FALLBACK = "あと{dist}で、{place}そのまま進みます。"


def _place_clause(place_name: str) -> str:
    return f"{place_name}を" if place_name else ""


def display_narration(category: DirectionCategory, place_name: str = "") -> str:
    """Panel text for a maneuver. Never contains the distance."""
    template = _DISPLAY.get(category, _DISPLAY_FALLBACK)
    return template.format(place=_place_clause(place_name))


def voice_narration(category: DirectionCategory, distance_text: str, place_name: str = "") -> str:
    """Spoken text for a maneuver, always leading with the remaining distance."""
    template = _VOICE.get(category, _VOICE_FALLBACK)
    return template.format(dist=distance_text, place=_place_clause(place_name))


def guidance_line(distance_text: str, display_text: str) -> str:
    """Single-line banner: "次 - 300メートル：右方向です。"."""
    return f"次 - {distance_text}：{display_text}"


# ---------------------------------------------------------------------------
# Fixed announcements
# ---------------------------------------------------------------------------

class Announcement(Enum):
    ARRIVED              = "目的地に到着しました。案内を終了します。"
    GUIDANCE_ENDED       = "案内を終了します。"
    REROUTING            = "ルートから外れました。経路を再検索します。"
    REROUTED             = "新しいルートで案内します。"
    ROUTE_NOT_FOUND      = "ルートが取得できません。"
    SIMULATION_ENDED     = "デモ走行が終了しました。"
    LOCATION_UNAVAILABLE = "GPSが使えません。"


# ---------------------------------------------------------------------------
# Step narration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Narration:
    category: DirectionCategory
    place_name: str
    distance_text: str
    display_text: str
    voice_text: str


def narrate_step(
    step: RouteStep,
    distance_m: float,
    classifier: Optional[Callable[[RouteStep], DirectionCategory]] = None,
) -> Narration:
    """
    Full guidance for the maneuver at the end of step.

    Args:
        step:       Upcoming maneuver.
        distance_m: Current distance to its maneuver point.
        classifier: Defaults to the free-text classifier.

    Steps without instruction text are narrated from their maneuver type and
    modifier instead.
    """
    dist_text = format_distance(distance_m)
    if not (step.instruction or "").strip():
        built = build_instruction(step)
        return Narration(
            category=classify_structured(step),
            place_name=step.road_name,
            distance_text=dist_text,
            display_text=f"{built}。",
            voice_text=f"あと{dist_text}で、{built}。",
        )

    category = (classifier or classify)(step)
    place = extract_place_name(step.instruction)
    return Narration(
        category=category,
        place_name=place,
        distance_text=dist_text,
        display_text=display_narration(category, place),
        voice_text=voice_narration(category, dist_text, place),
    )
