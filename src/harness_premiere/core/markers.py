from typing import Any, Dict, List, Optional, Tuple

from harness_premiere.core.errors import ParseError
from harness_premiere.core.ranges import resolve_time
from harness_premiere.core.sequence import SequenceContext
from harness_premiere.core.ticks import parse_number, to_ticks

COLOR_INDEX = {
    "green": 0,
    "red": 1,
    "purple": 2,
    "orange": 3,
    "yellow": 4,
    "white": 5,
    "blue": 6,
    "cyan": 7,
}

# ARGB values the host reports for its marker palette
COLOR_VALUE_INDEX = {
    4281740498: 1,
    4289825711: 2,
    4280578025: 3,
    4281049552: 4,
    4294967295: 5,
    4294741314: 6,
    4292277273: 7,
}


def color_index(name: Any) -> Optional[int]:
    if not name:
        return None
    return COLOR_INDEX.get(str(name).strip().lower())


def clamp_color_index(value: Any) -> Optional[int]:
    try:
        n = parse_number(value, "colorIndex")
    except ParseError:
        return None
    if n < 0 or n > 7:
        return None
    return round(n)


def color_index_from_value(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        n = parse_number(value, "colorValue")
    except ParseError:
        return color_index(value) if isinstance(value, str) else None
    if n in COLOR_VALUE_INDEX:
        return COLOR_VALUE_INDEX[int(n)]
    if 0 <= n <= 7:
        return round(n)
    return None


def resolve_color(marker: Dict[str, Any]) -> Tuple[Optional[int], Optional[str]]:
    if marker.get("colorIndex") is not None:
        return clamp_color_index(marker["colorIndex"]), "colorIndex"
    if marker.get("colorValue") is not None:
        return color_index_from_value(marker["colorValue"]), "colorValue"
    if marker.get("color") is not None:
        return color_index(marker["color"]), "color"
    return None, None


def marker_ticks(marker: Dict[str, Any], context: SequenceContext) -> Optional[int]:
    """Absolute position of a marker given as timeTicks, timeSeconds, timecode or time."""
    if marker.get("timecode") and "timeTimecode" not in marker:
        marker = dict(marker, timeTimecode=marker["timecode"])
    return resolve_time(marker, ("time",), context)


def resolve_markers(markers: List[Any], context: SequenceContext) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Split ``markers`` into host-ready entries and skipped ones with a reason."""
    resolved: List[Dict[str, Any]] = []
    skipped: List[Dict[str, Any]] = []
    for index, marker in enumerate(markers):
        if not isinstance(marker, dict):
            skipped.append({"index": index, "reason": "marker must be an object"})
            continue
        try:
            ticks = marker_ticks(marker, context)
        except ParseError as exc:
            skipped.append({"index": index, "reason": exc.message})
            continue
        if ticks is None:
            skipped.append({"index": index, "reason": "no time given"})
            continue
        entry: Dict[str, Any] = {"ticks": str(ticks)}
        if marker.get("name"):
            entry["name"] = str(marker["name"])
        if marker.get("comment"):
            entry["comment"] = str(marker["comment"])
        if marker.get("durationTicks"):
            try:
                entry["durationTicks"] = str(max(0, to_ticks(marker["durationTicks"], "durationTicks")))
            except ParseError as exc:
                skipped.append({"index": index, "reason": exc.message})
                continue
        index_value, source = resolve_color(marker)
        if index_value is not None:
            entry["colorIndex"] = index_value
            entry["colorSource"] = source
        resolved.append(entry)
    return resolved, skipped


def normalize_marker_document(document: Any) -> Optional[List[Any]]:
    if isinstance(document, list):
        return document
    if isinstance(document, dict) and isinstance(document.get("markers"), list):
        return document["markers"]
    return None
