import json
from pathlib import Path
from typing import Any, Dict, List

from lxml import etree

from harness_premiere.core.ranges import TickRange
from harness_premiere.core.sequence import SequenceContext
from harness_premiere.core.ticks import ticks_to_seconds
from harness_premiere.core.timecode import ticks_to_timecode

EXPORT_FORMATS = ("edl", "xml", "otio")


def _frames(ticks: int, context: SequenceContext) -> int:
    return (ticks - context.start_ticks) // context.timebase


def edl_lines(keep: List[TickRange], context: SequenceContext, title: str) -> List[str]:
    fcm = "DROP FRAME" if context.drop_frame else "NON-DROP FRAME"
    lines = [f"TITLE: {title}", f"FCM: {fcm}"]
    record = context.start_ticks
    for idx, rng in enumerate(keep, start=1):
        src_in = ticks_to_timecode(rng.start_ticks, context)
        src_out = ticks_to_timecode(rng.end_ticks, context)
        rec_in = ticks_to_timecode(record, context)
        record += rng.duration_ticks
        rec_out = ticks_to_timecode(record, context)
        lines.append(f"{idx:03d}  AX       V     C        {src_in} {src_out} {rec_in} {rec_out}")
    return lines


def _range_attrs(rng: TickRange, context: SequenceContext) -> Dict[str, str]:
    return {
        "startTicks": str(rng.start_ticks),
        "endTicks": str(rng.end_ticks),
        "startTimecode": ticks_to_timecode(rng.start_ticks, context) or "",
        "endTimecode": ticks_to_timecode(rng.end_ticks, context) or "",
        "durationSeconds": repr(rng.duration_seconds),
    }


def plan_xml(plan: Dict[str, Any], context: SequenceContext) -> etree._Element:
    root = etree.Element(
        "cut_plan",
        sequence=context.name or "",
        timebase=str(context.timebase),
        nominalFps=str(context.nominal_fps),
        dropFrame="unknown" if context.drop_frame is None else str(context.drop_frame).lower(),
    )
    bounds = plan["bounds"]
    etree.SubElement(root, "bounds", **_range_attrs(bounds, context))
    keep_el = etree.SubElement(root, "keep")
    for rng in plan["keep"]:
        etree.SubElement(keep_el, "range", **_range_attrs(rng, context))
    gaps_el = etree.SubElement(root, "gaps", order="descending")
    for order, gap in enumerate(plan["gaps"], start=1):
        etree.SubElement(gaps_el, "range", order=str(order), **_range_attrs(gap, context))
    return root


def _rational(value: int, rate: float) -> Dict[str, Any]:
    return {"OTIO_SCHEMA": "RationalTime.1", "rate": rate, "value": float(value)}


def plan_otio(plan: Dict[str, Any], context: SequenceContext, name: str) -> Dict[str, Any]:
    rate = float(context.exact_fps)
    clips = []
    for idx, rng in enumerate(plan["keep"], start=1):
        clips.append(
            {
                "OTIO_SCHEMA": "Clip.1",
                "name": f"keep_{idx:03d}",
                "source_range": {
                    "OTIO_SCHEMA": "TimeRange.1",
                    "start_time": _rational(_frames(rng.start_ticks, context), rate),
                    "duration": _rational(rng.duration_ticks // context.timebase, rate),
                },
                "metadata": {
                    "startTicks": str(rng.start_ticks),
                    "endTicks": str(rng.end_ticks),
                },
            }
        )
    return {
        "OTIO_SCHEMA": "Timeline.1",
        "name": name,
        "global_start_time": _rational(context.start_ticks // context.timebase, rate),
        "tracks": {
            "OTIO_SCHEMA": "Stack.1",
            "children": [{"OTIO_SCHEMA": "Track.1", "kind": "Video", "children": clips}],
        },
        "metadata": {
            "harness_premiere": {
                "removedSeconds": plan["removedSeconds"],
                "keptSeconds": plan["keptSeconds"],
                "boundsSeconds": ticks_to_seconds(plan["bounds"].duration_ticks),
            }
        },
    }


def write_plan(fmt: str, plan: Dict[str, Any], context: SequenceContext, output: Path) -> Path:
    output.parent.mkdir(parents=True, exist_ok=True)
    name = context.name or output.stem
    if fmt == "edl":
        lines = edl_lines(plan["keep"], context, title=name)
        output.write_text("\n".join(lines) + "\n", encoding="utf-8")
    elif fmt == "xml":
        root = plan_xml(plan, context)
        etree.ElementTree(root).write(str(output), encoding="utf-8", xml_declaration=True, pretty_print=True)
    elif fmt == "otio":
        output.write_text(json.dumps(plan_otio(plan, context, name), indent=2), encoding="utf-8")
    else:
        raise ValueError(f"Unknown export format: {fmt}")
    return output
