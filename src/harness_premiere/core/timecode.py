"""SMPTE timecode parsing and formatting.

Decoding applies the drop-frame correction; encoding never re-inserts it, so
a drop-frame timecode read and written back comes out as the non-drop label
of the same frame count. Callers that display drop-frame timecodes should be
aware of the asymmetry.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from harness_premiere.core.sequence import SequenceContext

DROP_FRAME_RATIO = 0.066666


def is_timecode_text(value: str) -> bool:
    return ":" in value or ";" in value


def drop_frames_per_minute(nominal_fps: int) -> int:
    return round(nominal_fps * DROP_FRAME_RATIO)


def parse_timecode(text: object, nominal_fps: int, drop_frame_hint: Optional[bool] = None) -> Optional[int]:
    """Return the frame count for ``text`` or ``None`` when it cannot be parsed.

    ``drop_frame_hint`` wins when it is ``True`` or ``False``; when it is
    ``None`` a ``;`` anywhere in the text selects drop-frame counting.
    """
    if text is None or text == "":
        return None
    raw = str(text).strip()
    if drop_frame_hint is True or drop_frame_hint is False:
        drop_frame = drop_frame_hint
    else:
        drop_frame = ";" in raw
    parts = raw.replace(";", ":").split(":")
    if len(parts) < 4:
        return None
    fields = []
    for part in parts[:4]:
        part = part.strip()
        if not (part.isascii() and part.isdigit()):
            return None
        fields.append(int(part))
    hours, minutes, seconds, frames = fields
    total_minutes = hours * 60 + minutes
    total_frames = ((hours * 3600 + minutes * 60 + seconds) * nominal_fps) + frames
    if drop_frame:
        dropped = drop_frames_per_minute(nominal_fps)
        total_frames -= dropped * (total_minutes - total_minutes // 10)
    return total_frames


def format_timecode(frames: int, nominal_fps: int) -> str:
    frames = max(0, int(frames))
    frames_per_hour = nominal_fps * 3600
    frames_per_minute = nominal_fps * 60
    hours, frames = divmod(frames, frames_per_hour)
    minutes, frames = divmod(frames, frames_per_minute)
    seconds, frame_part = divmod(frames, nominal_fps)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}:{frame_part:02d}"


def timecode_to_ticks(text: object, context: "SequenceContext") -> Optional[int]:
    frames = parse_timecode(text, context.nominal_fps, context.drop_frame)
    if frames is None:
        return None
    return context.start_ticks + round(frames * context.timebase)


def timecode_duration_ticks(text: object, context: "SequenceContext") -> Optional[int]:
    frames = parse_timecode(text, context.nominal_fps, context.drop_frame)
    if frames is None:
        return None
    return round(frames * context.timebase)


def ticks_to_timecode(ticks: int, context: Optional["SequenceContext"]) -> Optional[str]:
    if context is None or not context.timebase or not context.nominal_fps:
        return None
    if context.timebase <= 0 or context.nominal_fps <= 0:
        return None
    frames = (int(ticks) - context.start_ticks) // context.timebase
    return format_timecode(max(0, frames), context.nominal_fps)
