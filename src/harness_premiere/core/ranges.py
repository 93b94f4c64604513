"""Turn loosely typed range descriptors into absolute, frame-aligned ranges.

A descriptor may give each endpoint as ticks, seconds or a timecode, under
``start``/``in`` and ``end``/``out`` names. Within one endpoint the first
present field wins, in this order::

    startTicks, inTicks, startSeconds, inSeconds,
    startTimecode, inTimecode, start, in

A bare ``start``/``in`` value is sniffed: text containing ``:`` or ``;`` is a
timecode, a number above one second's worth of ticks is ticks, anything else
is seconds.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from harness_premiere.core.errors import ParseError, ValidationError
from harness_premiere.core.sequence import SequenceContext, summarize_ticks
from harness_premiere.core.ticks import (
    TICKS_PER_SECOND,
    frame_ticks,
    frames_to_ticks,
    parse_number,
    seconds_to_frames,
    seconds_to_ticks,
    snap_down,
    snap_up,
    ticks_to_seconds,
    to_ticks,
)
from harness_premiere.core.timecode import is_timecode_text, timecode_duration_ticks, timecode_to_ticks

START_ALIASES = ("start", "in")
END_ALIASES = ("end", "out")

_EXPLICIT_FIELDS = (("Ticks", "ticks"), ("Seconds", "seconds"), ("Timecode", "timecode"))


@dataclass(frozen=True)
class TickRange:
    start_ticks: int
    end_ticks: int

    def __post_init__(self) -> None:
        if self.start_ticks > self.end_ticks:
            start, end = self.end_ticks, self.start_ticks
            object.__setattr__(self, "start_ticks", start)
            object.__setattr__(self, "end_ticks", end)

    @property
    def duration_ticks(self) -> int:
        return self.end_ticks - self.start_ticks

    @property
    def duration_seconds(self) -> float:
        return ticks_to_seconds(self.duration_ticks)

    def to_dict(self, context: Optional[SequenceContext] = None) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "startTicks": str(self.start_ticks),
            "endTicks": str(self.end_ticks),
            "durationSeconds": self.duration_seconds,
        }
        if context is not None:
            row["start"] = summarize_ticks(self.start_ticks, context)
            row["end"] = summarize_ticks(self.end_ticks, context)
        return row


def _field_name(alias: str, suffix: str) -> str:
    return f"{alias}{suffix}" if alias else suffix.lower()


def _offset(ticks: int, context: SequenceContext, absolute: bool) -> int:
    return ticks if absolute else context.start_ticks + ticks


def _convert(kind: str, value: Any, key: str, context: SequenceContext, absolute: bool) -> int:
    if kind == "ticks":
        return _offset(to_ticks(value, key), context, absolute)
    if kind == "seconds":
        return _offset(seconds_to_ticks(value, key), context, absolute)
    ticks = timecode_to_ticks(value, context)
    if ticks is None:
        raise ParseError(f"{key} is not a valid timecode: {value!r}")
    return ticks


def _sniff(value: Any, key: str) -> str:
    if isinstance(value, str) and is_timecode_text(value):
        return "timecode"
    number = parse_number(value, key)
    return "ticks" if abs(number) > TICKS_PER_SECOND else "seconds"


def resolve_time(
    payload: Dict[str, Any],
    aliases: Sequence[str],
    context: SequenceContext,
    absolute: bool = False,
) -> Optional[int]:
    """Resolve one time value from ``payload`` to absolute ticks.

    Returns ``None`` when none of the candidate fields is present. A present
    but malformed value raises ``ParseError``.
    """
    for suffix, kind in _EXPLICIT_FIELDS:
        for alias in aliases:
            key = _field_name(alias, suffix)
            value = payload.get(key)
            if value is None or value == "":
                continue
            return _convert(kind, value, key, context, absolute)
    for alias in aliases:
        if not alias:
            continue
        value = payload.get(alias)
        if value is None or value == "":
            continue
        return _convert(_sniff(value, alias), value, alias, context, absolute)
    return None


def _as_descriptor(index: int, descriptor: Any) -> Dict[str, Any]:
    if isinstance(descriptor, dict):
        return descriptor
    if isinstance(descriptor, (list, tuple)) and len(descriptor) == 2:
        return {"start": descriptor[0], "end": descriptor[1]}
    raise ValidationError(f"Range {index}: descriptor must be an object or a [start, end] pair")


def resolve_descriptor(
    index: int,
    descriptor: Any,
    context: SequenceContext,
    absolute: bool = False,
) -> Tuple[int, int]:
    payload = _as_descriptor(index, descriptor)
    absolute = absolute or bool(payload.get("absolute", False))
    try:
        start = resolve_time(payload, START_ALIASES, context, absolute)
        end = resolve_time(payload, END_ALIASES, context, absolute)
    except ParseError as exc:
        raise ParseError(f"Range {index}: {exc.message}") from exc
    if start is None:
        raise ValidationError(f"Range {index}: unable to resolve start (give ticks, seconds or timecode)")
    if end is None:
        raise ValidationError(f"Range {index}: unable to resolve end (give ticks, seconds or timecode)")
    return start, end


def ensure_in_out(payload: Dict[str, Any], context: SequenceContext, absolute: bool = False) -> Tuple[int, int]:
    """Resolve an in/out pair for a single host range command."""
    in_ticks = resolve_time(payload, ("in", "start"), context, absolute)
    out_ticks = resolve_time(payload, ("out", "end"), context, absolute)
    if in_ticks is None or out_ticks is None:
        raise ValidationError("Provide in/out ticks, seconds, or timecode")
    if out_ticks <= in_ticks:
        raise ValidationError("out must be greater than in")
    return in_ticks, out_ticks


def padding_ticks(params: Dict[str, Any], context: SequenceContext) -> int:
    total = 0
    if params.get("paddingSeconds") is not None:
        frames = seconds_to_frames(params["paddingSeconds"], context.exact_fps, "paddingSeconds")
        total += frames_to_ticks(frames, context.timebase)
    if params.get("paddingFrames") is not None:
        frames = parse_number(params["paddingFrames"], "paddingFrames")
        total += frames_to_ticks(frames, context.timebase)
    if params.get("paddingTimecode"):
        duration = timecode_duration_ticks(params["paddingTimecode"], context)
        if duration is None:
            raise ParseError(f"paddingTimecode is not a valid timecode: {params['paddingTimecode']!r}")
        total += duration
    if params.get("paddingTicks") is not None:
        total += to_ticks(params["paddingTicks"], "paddingTicks")
    return total


def snap_to_frames(start: int, end: int, frame: int) -> Tuple[int, int]:
    start = snap_down(start, frame)
    end = snap_up(end, frame)
    if end <= start:
        end = start + frame
    return start, end


def clamp(start: int, end: int, lower: int, upper: Optional[int]) -> Optional[TickRange]:
    start = max(start, lower)
    if upper is not None:
        end = min(end, upper)
    if end <= start:
        return None
    return TickRange(start, end)


def merge_ranges(ranges: Sequence[TickRange]) -> List[TickRange]:
    merged: List[TickRange] = []
    for current in sorted(ranges, key=lambda r: (r.start_ticks, r.end_ticks)):
        if merged and current.start_ticks <= merged[-1].end_ticks:
            previous = merged[-1]
            merged[-1] = TickRange(previous.start_ticks, max(previous.end_ticks, current.end_ticks))
        else:
            merged.append(current)
    return merged


def normalize_ranges(
    descriptors: Any,
    context: SequenceContext,
    padding: int = 0,
    absolute: bool = False,
) -> List[TickRange]:
    """Resolve, pad, snap, clamp, sort and merge ``descriptors``.

    One unresolvable descriptor aborts the whole call; ranges that fall
    entirely outside the sequence are dropped. Raises ``ValidationError``
    when nothing survives.
    """
    if not isinstance(descriptors, (list, tuple)) or not descriptors:
        raise ValidationError("ranges must be a non-empty list")
    frame = frame_ticks(context.timebase)
    survivors: List[TickRange] = []
    for index, descriptor in enumerate(descriptors):
        start, end = resolve_descriptor(index, descriptor, context, absolute)
        if start > end:
            start, end = end, start
        start, end = start - padding, end + padding
        if start > end:
            start, end = end, start
        start, end = snap_to_frames(start, end, frame)
        clamped = clamp(start, end, context.start_ticks, context.end_ticks)
        if clamped is not None:
            survivors.append(clamped)
    merged = merge_ranges(survivors)
    if not merged:
        raise ValidationError("No valid ranges remain after clamping to the sequence bounds")
    return merged


def normalize_params(params: Dict[str, Any], context: SequenceContext) -> List[TickRange]:
    return normalize_ranges(
        params.get("ranges"),
        context,
        padding=padding_ticks(params, context),
        absolute=bool(params.get("absolute", False)),
    )
