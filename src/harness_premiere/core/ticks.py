"""Fixed-rate tick clock shared by every time conversion in the bridge.

254,016,000,000 is the least common multiple of the tick-per-frame values of
every frame rate the host supports, so each timebase is an exact integer.
"""

import math
from fractions import Fraction
from typing import Any, Union

from harness_premiere.core.errors import ParseError

TICKS_PER_SECOND = 254_016_000_000

Number = Union[int, float, Fraction]


def parse_number(value: Any, label: str) -> Number:
    if isinstance(value, bool):
        raise ParseError(f"{label} must be a number, got {value!r}")
    if isinstance(value, (int, float, Fraction)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ParseError(f"{label} must be finite, got {value!r}")
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError as exc:
            raise ParseError(f"{label} is not numeric: {value!r}") from exc
        if not math.isfinite(parsed):
            raise ParseError(f"{label} must be finite, got {value!r}")
        return parsed
    raise ParseError(f"{label} must be a number, got {type(value).__name__}")


def to_ticks(value: Any, label: str = "ticks") -> int:
    """Coerce an int, float or decimal string to an integer tick count."""
    n = parse_number(value, label)
    if isinstance(n, int):
        return n
    return round(n)


def seconds_to_ticks(seconds: Any, label: str = "seconds") -> int:
    return round(parse_number(seconds, label) * TICKS_PER_SECOND)


def ticks_to_seconds(ticks: int) -> float:
    return ticks / TICKS_PER_SECOND


def frames_to_ticks(frames: Number, timebase: Number) -> int:
    return round(frames * timebase)


def frame_ticks(timebase: Number) -> int:
    return max(1, round(timebase))


def snap_down(ticks: int, frame: int) -> int:
    return (ticks // frame) * frame


def snap_up(ticks: int, frame: int) -> int:
    return -((-ticks) // frame) * frame


def seconds_to_frames(seconds: Any, fps: Number, label: str = "seconds") -> int:
    return round(parse_number(seconds, label) * Fraction(fps))
