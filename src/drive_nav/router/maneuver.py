# maneuver.py
# Turns raw routing-service steps into direction categories and instruction text.
# Pure functions only; nothing here may raise on odd upstream data.

from typing import Callable, Dict, List, Tuple

from .models import DirectionCategory, ManeuverType, Modifier, RouteStep


Classifier = Callable[[RouteStep], DirectionCategory]


# ---------------------------------------------------------------------------
# Free-text classifier
# ---------------------------------------------------------------------------

# First match wins. Order matters: "sharp right" must be tested before
# "turn right" and both before "straight".
_TEXT_RULES: List[Tuple[str, DirectionCategory]] = [
    ("u-turn",      DirectionCategory.UTURN),
    ("sharp right", DirectionCategory.SHARP_RIGHT),
    ("sharp left",  DirectionCategory.SHARP_LEFT),
    ("bear right",  DirectionCategory.SLIGHT_RIGHT),
    ("bear left",   DirectionCategory.SLIGHT_LEFT),
    ("turn right",  DirectionCategory.RIGHT),
    ("turn left",   DirectionCategory.LEFT),
    ("straight",    DirectionCategory.STRAIGHT),
]

_FACILITY_RULES: List[Tuple[Tuple[str, ...], DirectionCategory]] = [
    (("merge",),                        DirectionCategory.MERGE),
    (("junction",),                     DirectionCategory.JUNCTION),
    (("interchange",),                  DirectionCategory.IC),
    (("service area", "parking area"),  DirectionCategory.SAPA),
]


def classify_text(instruction: str) -> DirectionCategory:
    """
    Classify a free-text routing instruction.

    Args:
        instruction: Raw instruction, any case. None and "" are accepted.

    Returns:
        DirectionCategory, NONE when nothing matches.
    """
    t = (instruction or "").lower()

    for needle, category in _TEXT_RULES:
        if needle in t:
            return category

    if "motorway" in t:
        if "enter" in t or "ramp" in t:
            return DirectionCategory.HIGHWAY_ENTER
        if "exit" in t:
            return DirectionCategory.HIGHWAY_EXIT

    for needles, category in _FACILITY_RULES:
        if any(n in t for n in needles):
            return category

    return DirectionCategory.NONE


def classify(step: RouteStep) -> DirectionCategory:
    """Classify a step by its instruction text only."""
    return classify_text(step.instruction)


# ---------------------------------------------------------------------------
# Structured classifier (type / modifier only)
# ---------------------------------------------------------------------------

_MODIFIER_CATEGORY: Dict[Modifier, DirectionCategory] = {
    Modifier.RIGHT:        DirectionCategory.RIGHT,
    Modifier.LEFT:         DirectionCategory.LEFT,
    Modifier.SLIGHT_RIGHT: DirectionCategory.SLIGHT_RIGHT,
    Modifier.SLIGHT_LEFT:  DirectionCategory.SLIGHT_LEFT,
    Modifier.SHARP_RIGHT:  DirectionCategory.SHARP_RIGHT,
    Modifier.SHARP_LEFT:   DirectionCategory.SHARP_LEFT,
    Modifier.STRAIGHT:     DirectionCategory.STRAIGHT,
    Modifier.UTURN:        DirectionCategory.UTURN,
}


def classify_structured(step: RouteStep) -> DirectionCategory:
    """
    Classify a step from its maneuver type and modifier, ignoring the text.

    Agrees with classify() for routing-service instructions phrased the usual
    way ("Turn right onto ...", "Make a U-turn", "Merge onto ...").
    """
    kind = step.maneuver_type
    if kind is ManeuverType.UTURN:
        return DirectionCategory.UTURN
    if kind is ManeuverType.TURN:
        return _MODIFIER_CATEGORY.get(step.modifier, DirectionCategory.NONE)
    if kind is ManeuverType.CONTINUE:
        # "Continue straight" unless the road turns back on itself
        if step.modifier is Modifier.UTURN:
            return DirectionCategory.UTURN
        return DirectionCategory.STRAIGHT
    if kind is ManeuverType.MERGE:
        return DirectionCategory.MERGE
    if kind in (ManeuverType.FORK, ManeuverType.MOTORWAY_JUNCTION):
        return DirectionCategory.JUNCTION
    if kind is ManeuverType.RAMP:
        return DirectionCategory.HIGHWAY_ENTER
    if kind is ManeuverType.EXIT:
        return DirectionCategory.HIGHWAY_EXIT
    return DirectionCategory.NONE


CLASSIFIERS: Dict[str, Classifier] = {
    "text": classify,
    "structured": classify_structured,
}


# ---------------------------------------------------------------------------
# Structured instruction builder
# ---------------------------------------------------------------------------

_DIRECTION_PHRASES: Dict[Modifier, str] = {
    Modifier.RIGHT:        "右方向です",
    Modifier.LEFT:         "左方向です",
    Modifier.SLIGHT_RIGHT: "斜め右方向です",
    Modifier.SLIGHT_LEFT:  "斜め左方向です",
    Modifier.SHARP_RIGHT:  "大きく右方向です",
    Modifier.SHARP_LEFT:   "大きく左方向です",
    Modifier.UTURN:        "Uターンです",
}
_STRAIGHT_AHEAD = "直進です"
_PHRASE_SUFFIX = "です"

_DIRECTED_TEMPLATES: Dict[ManeuverType, str] = {
    ManeuverType.FORK:              "{dir}方向の分岐です",
    ManeuverType.EXIT:              "{dir}方向の出口です",
    ManeuverType.MOTORWAY_JUNCTION: "{dir}方向の分岐（IC / JCT）です",
}


def direction_phrase(modifier: Modifier) -> str:
    return _DIRECTION_PHRASES.get(modifier, _STRAIGHT_AHEAD)


def _stem(modifier: Modifier) -> str:
    """Direction phrase without its trailing 'です', ready to be composed."""
    phrase = direction_phrase(modifier)
    if phrase.endswith(_PHRASE_SUFFIX):
        phrase = phrase[: -len(_PHRASE_SUFFIX)]
    return phrase


def build_instruction(step: RouteStep) -> str:
    """
    Instruction text built from maneuver type and modifier alone.

    Args:
        step: RouteStep; its instruction text is not consulted.

    Returns:
        Japanese instruction, prefixed with "<road>を" when the road is named.
    """
    kind = step.maneuver_type
    mod = step.modifier

    if kind is ManeuverType.TURN:
        text = direction_phrase(mod)
    elif kind is ManeuverType.UTURN or (kind is ManeuverType.CONTINUE and mod is Modifier.UTURN):
        text = "Uターンしてください"
    elif kind is ManeuverType.MERGE:
        text = "本線に合流します"
    elif kind is ManeuverType.RAMP:
        if mod in (Modifier.RIGHT, Modifier.LEFT):
            text = f"{_stem(mod)}方向のランプに入ります"
        else:
            text = "ランプに入ります"
    elif kind in _DIRECTED_TEMPLATES:
        text = _DIRECTED_TEMPLATES[kind].format(dir=_stem(mod))
    elif kind is ManeuverType.ROUNDABOUT:
        if step.exit_number is None:
            text = "ラウンドアバウトを出ます"
        else:
            text = f"ラウンドアバウト {step.exit_number} 番目で出ます"
    else:
        text = "そのまま進みます"

    prefix = f"{step.road_name}を" if step.road_name else ""
    return f"{prefix}{text}"


# ---------------------------------------------------------------------------
# Place-name extraction
# ---------------------------------------------------------------------------

_ONTO = "onto "
_TOWARD = "toward "
_PUNCTUATION = str.maketrans("", "", ",.;")


def extract_place_name(instruction: str) -> str:
    """
    Road or place named in an instruction ("... onto X", "... toward Y").

    When both markers are present the "toward" target wins.

    Returns:
        The name with commas, periods and semicolons removed, or "".
    """
    text = instruction or ""
    name = ""

    pos = text.find(_ONTO)
    if pos != -1:
        name = text[pos + len(_ONTO):].strip()

    pos = text.find(_TOWARD)
    if pos != -1:
        name = text[pos + len(_TOWARD):].strip()

    return name.translate(_PUNCTUATION).strip()
