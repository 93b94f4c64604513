from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Dict, Optional, Tuple

from harness_premiere.core.errors import BoundsError, ParseError
from harness_premiere.core.ticks import TICKS_PER_SECOND, to_ticks, ticks_to_seconds
from harness_premiere.core.timecode import ticks_to_timecode

DEFAULT_NOMINAL_FPS = 30

DROP_FRAME_FORMATS = {"FPS_29_97", "FPS_59_94", "FPS_119_88"}
NON_DROP_FRAME_FORMATS = {"FPS_29_97_NON_DROP", "FPS_59_94_NON_DROP", "FPS_119_88_NON_DROP"}


@dataclass(frozen=True)
class SequenceContext:
    timebase: int
    nominal_fps: int
    exact_fps: Fraction
    drop_frame: Optional[bool] = None
    start_ticks: int = 0
    end_ticks: Optional[int] = None
    name: Optional[str] = None
    sequence_id: Optional[str] = None

    @classmethod
    def from_timebase(
        cls,
        timebase: int,
        drop_frame: Optional[bool] = None,
        start_ticks: int = 0,
        end_ticks: Optional[int] = None,
        nominal_fps: Optional[int] = None,
    ) -> "SequenceContext":
        if timebase <= 0:
            raise BoundsError(f"Sequence timebase must be > 0, got {timebase}")
        exact = Fraction(TICKS_PER_SECOND, timebase)
        return cls(
            timebase=timebase,
            nominal_fps=nominal_fps or max(1, round(exact)),
            exact_fps=exact,
            drop_frame=drop_frame,
            start_ticks=start_ticks,
            end_ticks=end_ticks,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "id": self.sequence_id,
            "timebase": str(self.timebase),
            "nominalFps": self.nominal_fps,
            "exactFps": {"num": self.exact_fps.numerator, "den": self.exact_fps.denominator},
            "dropFrame": self.drop_frame,
            "start": summarize_ticks(self.start_ticks, self),
            "end": summarize_ticks(self.end_ticks, self),
        }


def _get(mapping: Any, *keys: str) -> Any:
    current = mapping
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _optional_ticks(value: Any, label: str) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get("ticks")
    if value is None or value == "":
        return None
    try:
        return to_ticks(value, label)
    except ParseError:
        return None


def derive_drop_frame(settings: Any) -> Optional[bool]:
    fmt = _get(settings, "videoDisplayFormat")
    if fmt is None:
        return None
    name = str(fmt).upper()
    if name in NON_DROP_FRAME_FORMATS:
        return False
    if name in DROP_FRAME_FORMATS:
        return True
    return None


def _derive_timebase(sequence: Dict[str, Any], settings: Any) -> int:
    for candidate in (sequence.get("timebase"), _get(settings, "videoFrameRate", "ticks")):
        if candidate is None or candidate == "":
            continue
        try:
            value = to_ticks(candidate, "timebase")
        except ParseError:
            continue
        if value > 0:
            return value
    raise BoundsError("Unable to derive sequence timebase")


def _derive_nominal_fps(sequence: Dict[str, Any], settings: Any, timebase: int) -> int:
    explicit = sequence.get("nominalFps")
    if isinstance(explicit, (int, float)) and not isinstance(explicit, bool) and round(explicit) > 0:
        return round(explicit)
    frame_seconds = _get(settings, "videoFrameRate", "seconds")
    if isinstance(frame_seconds, (int, float)) and not isinstance(frame_seconds, bool) and frame_seconds > 0:
        if round(1 / frame_seconds) > 0:
            return round(1 / frame_seconds)
    derived = round(TICKS_PER_SECOND / timebase)
    return derived if derived > 0 else DEFAULT_NOMINAL_FPS


def _clip_end_ticks(tracks: Any) -> Optional[int]:
    if not isinstance(tracks, dict):
        return None
    ends = []
    for kind in ("video", "audio"):
        for track in tracks.get(kind) or []:
            for clip in _get(track, "clips") or []:
                end = _optional_ticks(_get(clip, "end"), "clip end")
                if end is not None:
                    ends.append(end)
    return max(ends) if ends else None


def build_sequence_context(info: Dict[str, Any]) -> SequenceContext:
    """Build a working time context from a host sequence query.

    Accepts either the full inventory shape ``{"sequence": {...}, "tracks":
    {...}}`` or the bare sequence object. Raises ``BoundsError`` when no
    positive timebase can be found.
    """
    if not isinstance(info, dict):
        raise BoundsError("Sequence query result must be an object")
    sequence = info.get("sequence") if isinstance(info.get("sequence"), dict) else info
    settings = sequence.get("settings")

    timebase = _derive_timebase(sequence, settings)
    nominal_fps = _derive_nominal_fps(sequence, settings, timebase)

    drop_frame = sequence.get("dropFrame")
    if not isinstance(drop_frame, bool):
        drop_frame = derive_drop_frame(settings)

    start_ticks = _optional_ticks(sequence.get("start", sequence.get("startTicks")), "start") or 0
    end_ticks = _optional_ticks(sequence.get("end", sequence.get("endTicks")), "end")
    if end_ticks is None:
        end_ticks = _clip_end_ticks(info.get("tracks"))
    if end_ticks is not None and start_ticks > 0 and end_ticks < start_ticks:
        end_ticks += start_ticks

    name = sequence.get("name")
    sequence_id = sequence.get("id") or sequence.get("guid")
    return SequenceContext(
        timebase=timebase,
        nominal_fps=nominal_fps,
        exact_fps=Fraction(TICKS_PER_SECOND, timebase),
        drop_frame=drop_frame,
        start_ticks=start_ticks,
        end_ticks=end_ticks,
        name=str(name) if name is not None else None,
        sequence_id=str(sequence_id) if sequence_id is not None else None,
    )


def summarize_ticks(ticks: Optional[int], context: Optional[SequenceContext]) -> Dict[str, Any]:
    if ticks is None:
        return {"ticks": None, "seconds": None, "timecode": None}
    return {
        "ticks": str(ticks),
        "seconds": ticks_to_seconds(ticks),
        "timecode": ticks_to_timecode(ticks, context),
    }


def sequence_bounds(context: SequenceContext) -> Tuple[int, int]:
    if context.end_ticks is None:
        raise BoundsError("Sequence end is unknown; cannot compute ranges to remove")
    return context.start_ticks, context.end_ticks
