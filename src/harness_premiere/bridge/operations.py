import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from harness_premiere import __version__
from harness_premiere.bridge.export import EXPORT_FORMATS, write_plan
from harness_premiere.bridge.host import HostPort, parse_track_ref
from harness_premiere.core.errors import BridgeOperationError, ValidationError
from harness_premiere.core.gaps import gap_row, plan_cut
from harness_premiere.core.markers import normalize_marker_document, resolve_markers
from harness_premiere.core.ranges import ensure_in_out, normalize_params, padding_ticks, resolve_time
from harness_premiere.core.sequence import SequenceContext, build_sequence_context, summarize_ticks
from harness_premiere.core.ticks import ticks_to_seconds
from harness_premiere.core.timecode import ticks_to_timecode

logger = logging.getLogger(__name__)

ACTION_METHODS = [
    "system.health",
    "system.version",
    "system.actions",
    "sequence.info",
    "sequence.inventory",
    "sequence.context",
    "sequence.list",
    "sequence.open",
    "sequence.duplicate",
    "project.save",
    "project.reload",
    "project.find_item",
    "project.transcript",
    "timecode.debug",
    "timecode.convert",
    "timeline.set_playhead",
    "timeline.set_in_out",
    "timeline.razor",
    "timeline.extract_range",
    "timeline.ripple_delete_selection",
    "ranges.normalize",
    "ranges.gaps",
    "ranges.keep",
    "markers.add",
    "markers.add_file",
    "track.set_state",
    "track.toggle_video",
    "export.edl",
    "export.xml",
    "export.otio",
    "batch.execute",
]

MUTATING_METHODS = {
    "sequence.open",
    "sequence.duplicate",
    "project.save",
    "project.reload",
    "timeline.set_playhead",
    "timeline.set_in_out",
    "timeline.razor",
    "timeline.extract_range",
    "timeline.ripple_delete_selection",
    "ranges.keep",
    "markers.add",
    "markers.add_file",
    "track.set_state",
    "track.toggle_video",
}


def _context(params: Dict[str, Any], host: Optional[HostPort]) -> SequenceContext:
    # An inline sequence description lets pure computations run without a host.
    inline = params.get("sequence")
    if isinstance(inline, dict):
        return build_sequence_context(inline)
    if host is None:
        raise BridgeOperationError("BRIDGE_UNAVAILABLE", "No host connection and no sequence description given")
    return build_sequence_context(host.sequence_inventory())


def _require_host(host: Optional[HostPort]) -> HostPort:
    if host is None:
        raise BridgeOperationError("BRIDGE_UNAVAILABLE", "This action needs a running editor bridge")
    return host


def _mutation_payload(
    data: Dict[str, Any],
    changed: bool = True,
    idempotent: bool = False,
    warnings: Optional[List[str]] = None,
) -> Dict[str, Any]:
    merged = dict(data)
    merged["changed"] = changed
    merged["idempotent"] = idempotent
    merged["warnings"] = warnings or []
    return merged


def _dry_run(method: str, data: Dict[str, Any]) -> Dict[str, Any]:
    result = _mutation_payload(dict(data, method=method, skipped=True), changed=False)
    result["dryRun"] = True
    return result


def _bool_param(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _plan_payload(plan: Dict[str, Any], context: SequenceContext) -> Dict[str, Any]:
    return {
        "sequence": context.to_dict(),
        "bounds": gap_row(plan["bounds"]),
        "keep": [r.to_dict(context) for r in plan["keep"]],
        "gaps": [gap_row(g) for g in plan["gaps"]],
        "keepCount": len(plan["keep"]),
        "gapCount": len(plan["gaps"]),
        "keptSeconds": plan["keptSeconds"],
        "removedSeconds": plan["removedSeconds"],
    }


def _keep_ranges(params: Dict[str, Any], host: Optional[HostPort]) -> Dict[str, Any]:
    context = _context(params, host)
    plan = plan_cut(params, context)
    data = _plan_payload(plan, context)
    gaps = plan["gaps"]
    if _bool_param(params.get("dry_run", False)):
        result = _mutation_payload(data, changed=False)
        result["dryRun"] = True
        return result
    if not gaps:
        return _mutation_payload(dict(data, removed=[]), changed=False, idempotent=True)
    port = _require_host(host)
    removed: List[Dict[str, Any]] = []
    for index, gap in enumerate(gaps):
        logger.info("Removing gap %d/%d [%d, %d)", index + 1, len(gaps), gap.start_ticks, gap.end_ticks)
        try:
            outcome = port.extract_range(gap.start_ticks, gap.end_ticks)
        except BridgeOperationError as exc:
            raise BridgeOperationError(
                exc.code,
                f"Removing gap {index + 1} of {len(gaps)} "
                f"[{gap.start_ticks}, {gap.end_ticks}) failed after {index} removed: {exc.message}",
                details={"completed": index, "total": len(gaps), "failedGap": gap_row(gap), "removed": removed},
            ) from exc
        removed.append(dict(gap_row(gap), result=outcome))
    return _mutation_payload(dict(data, removed=removed))


def _convert_time(params: Dict[str, Any], context: SequenceContext) -> Dict[str, Any]:
    ticks = resolve_time(params, ("",), context, absolute=_bool_param(params.get("absolute", False)))
    if ticks is None:
        raise ValidationError("Provide ticks, seconds, or timecode")
    summary = summarize_ticks(ticks, context)
    summary["frames"] = (ticks - context.start_ticks) // context.timebase
    summary["relativeTicks"] = str(ticks - context.start_ticks)
    return summary


def _load_marker_file(file_path: str) -> List[Any]:
    path = Path(file_path)
    if not path.exists():
        raise BridgeOperationError("NOT_FOUND", f"Marker file not found: {path}")
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise BridgeOperationError("INVALID_INPUT", f"Marker file is not valid JSON: {exc}") from exc
    markers = normalize_marker_document(document)
    if markers is None:
        raise BridgeOperationError("INVALID_INPUT", "Marker file must be an array or an object with a markers array")
    return markers


def _add_markers(method: str, markers: Any, params: Dict[str, Any], host: Optional[HostPort]) -> Dict[str, Any]:
    if not isinstance(markers, list) or not markers:
        raise ValidationError("Markers array is required")
    context = _context(params, host)
    resolved, skipped = resolve_markers(markers, context)
    if not resolved:
        raise ValidationError("No markers could be parsed")
    warnings = [f"marker {s['index']}: {s['reason']}" for s in skipped]
    if _bool_param(params.get("dry_run", False)):
        return _dry_run(method, {"markers": resolved, "skipped": skipped})
    outcome = _require_host(host).add_markers(resolved)
    return _mutation_payload(
        {"markersAdded": len(resolved), "skipped": skipped, "host": outcome},
        warnings=warnings,
    )


def _set_track_state(method: str, params: Dict[str, Any], host: Optional[HostPort]) -> Dict[str, Any]:
    kind_hint = "video" if method == "track.toggle_video" else params.get("kind")
    track = parse_track_ref(params.get("track"), kind_hint)
    if method == "track.toggle_video" and track["kind"] != "video":
        raise BridgeOperationError("INVALID_INPUT", f"{track['label']} is not a video track")
    if params.get("mute") is not None:
        mute = _bool_param(params["mute"])
    elif params.get("visible") is not None:
        mute = not _bool_param(params["visible"])
    else:
        raise BridgeOperationError("INVALID_INPUT", "Provide mute or visible")
    data = {"track": track["label"], "kind": track["kind"], "mute": mute, "visible": not mute}
    if _bool_param(params.get("dry_run", False)):
        return _dry_run(method, data)
    outcome = _require_host(host).set_track_state(track["kind"], track["index"], mute)
    return _mutation_payload(dict(data, host=outcome))


def execute(method: str, params: Dict[str, Any], host: Optional[HostPort] = None) -> Dict[str, Any]:
    try:
        dry_run = _bool_param(params.get("dry_run", False))
        if method == "system.health":
            return {"status": "ok", "version": __version__, "host": _require_host(host).ping()}
        if method == "system.version":
            return {"version": __version__}
        if method == "system.actions":
            return {"actions": ACTION_METHODS, "mutating": sorted(MUTATING_METHODS)}
        if method == "sequence.info":
            return _require_host(host).sequence_info()
        if method == "sequence.inventory":
            return _require_host(host).sequence_inventory()
        if method == "sequence.context":
            return _context(params, host).to_dict()
        if method == "sequence.list":
            return _require_host(host).list_sequences()
        if method == "sequence.open":
            name = params.get("name")
            sequence_id = params.get("id")
            if not name and not sequence_id:
                raise BridgeOperationError("INVALID_INPUT", "Provide name or id for sequence.open")
            if dry_run:
                return _dry_run(method, {"name": name, "id": sequence_id})
            return _mutation_payload(_require_host(host).open_sequence(name, sequence_id))
        if method == "sequence.duplicate":
            if dry_run:
                return _dry_run(method, {"name": params.get("name")})
            return _mutation_payload(_require_host(host).duplicate_sequence(params.get("name")))
        if method in {"project.save", "project.reload"}:
            if dry_run:
                return _dry_run(method, {})
            port = _require_host(host)
            outcome = port.save_project() if method == "project.save" else port.reload_project()
            return _mutation_payload(outcome)
        if method == "project.find_item":
            if not params.get("name") and not params.get("path"):
                raise BridgeOperationError("INVALID_INPUT", "Provide name or path")
            query = {
                k: params[k]
                for k in ("name", "path", "contains", "caseSensitive", "limit")
                if params.get(k) is not None
            }
            return _require_host(host).find_project_item(query)
        if method == "project.transcript":
            return _require_host(host).transcript()
        if method == "timecode.debug":
            if not params.get("timecode"):
                raise ValidationError("Provide timecode")
            context = _context(params, host)
            data = _convert_time({"timecode": params["timecode"]}, context)
            data.update(
                {
                    "input": str(params["timecode"]),
                    "timebase": str(context.timebase),
                    "nominalFps": context.nominal_fps,
                    "dropFrame": context.drop_frame,
                }
            )
            return data
        if method == "timecode.convert":
            return _convert_time(params, _context(params, host))
        if method == "timeline.set_playhead":
            context = _context(params, host)
            ticks = resolve_time(params, ("",), context)
            if ticks is None:
                raise ValidationError("Provide timecode, ticks, or seconds")
            data = {"ticks": str(ticks), "timecode": ticks_to_timecode(ticks, context)}
            if dry_run:
                return _dry_run(method, data)
            return _mutation_payload(dict(data, host=_require_host(host).set_playhead(ticks)))
        if method in {"timeline.set_in_out", "timeline.extract_range"}:
            context = _context(params, host)
            in_ticks, out_ticks = ensure_in_out(params, context)
            data = {
                "inTicks": str(in_ticks),
                "outTicks": str(out_ticks),
                "inTimecode": ticks_to_timecode(in_ticks, context),
                "outTimecode": ticks_to_timecode(out_ticks, context),
                "durationSeconds": ticks_to_seconds(out_ticks - in_ticks),
            }
            if dry_run:
                return _dry_run(method, data)
            port = _require_host(host)
            if method == "timeline.set_in_out":
                outcome = port.set_in_out(in_ticks, out_ticks)
            else:
                outcome = port.extract_range(in_ticks, out_ticks)
            return _mutation_payload(dict(data, host=outcome))
        if method == "timeline.razor":
            context = _context(params, host)
            ticks = resolve_time(params, ("",), context)
            if ticks is None:
                raise ValidationError("Provide ticks, seconds, or timecode")
            data = {"ticks": str(ticks), "timecode": ticks_to_timecode(ticks, context)}
            if dry_run:
                return _dry_run(method, data)
            return _mutation_payload(dict(data, host=_require_host(host).razor(ticks)))
        if method == "timeline.ripple_delete_selection":
            if dry_run:
                return _dry_run(method, {})
            return _mutation_payload(_require_host(host).ripple_delete_selection())
        if method == "ranges.normalize":
            context = _context(params, host)
            keep = normalize_params(params, context)
            return {
                "sequence": context.to_dict(),
                "paddingTicks": str(padding_ticks(params, context)),
                "count": len(keep),
                "ranges": [r.to_dict(context) for r in keep],
            }
        if method == "ranges.gaps":
            context = _context(params, host)
            return _plan_payload(plan_cut(params, context), context)
        if method == "ranges.keep":
            return _keep_ranges(params, host)
        if method == "markers.add":
            return _add_markers(method, params.get("markers"), params, host)
        if method == "markers.add_file":
            file_path = params.get("file_path") or params.get("filePath")
            if not file_path:
                raise BridgeOperationError("INVALID_INPUT", "Missing file_path")
            return _add_markers(method, _load_marker_file(str(file_path)), params, host)
        if method in {"track.set_state", "track.toggle_video"}:
            return _set_track_state(method, params, host)
        if method in {"export.edl", "export.xml", "export.otio"}:
            fmt = method.split(".")[1]
            if fmt not in EXPORT_FORMATS:
                raise BridgeOperationError("INVALID_INPUT", f"Unknown export format: {fmt}")
            if not params.get("output"):
                raise BridgeOperationError("INVALID_INPUT", "Missing output path")
            context = _context(params, host)
            plan = plan_cut(params, context)
            output = write_plan(fmt, plan, context, Path(params["output"]))
            return {
                "output": str(output),
                "format": fmt,
                "keepCount": len(plan["keep"]),
                "gapCount": len(plan["gaps"]),
            }
        if method == "batch.execute":
            steps = params.get("steps")
            if not isinstance(steps, list) or not steps:
                raise BridgeOperationError("INVALID_INPUT", "steps must be a non-empty list")
            stop_on_error = _bool_param(params.get("stop_on_error", True))
            results: List[Dict[str, Any]] = []
            for index, step in enumerate(steps):
                if not isinstance(step, dict) or "method" not in step:
                    raise BridgeOperationError("INVALID_INPUT", f"Invalid step at index {index}")
                step_method = str(step["method"])
                if step_method == "batch.execute":
                    raise BridgeOperationError("INVALID_INPUT", f"Nested batch at index {index}")
                step_params = dict(step.get("params", {}))
                try:
                    step_result = execute(step_method, step_params, host)
                    results.append({"index": index, "method": step_method, "ok": True, "result": step_result})
                except BridgeOperationError as exc:
                    error = {"code": exc.code, "message": exc.message}
                    results.append({"index": index, "method": step_method, "ok": False, "error": error})
                    if stop_on_error:
                        return {
                            "ok": False,
                            "stopOnError": stop_on_error,
                            "completedSteps": index,
                            "totalSteps": len(steps),
                            "results": results,
                        }
            return {
                "ok": all(r.get("ok") for r in results),
                "stopOnError": stop_on_error,
                "completedSteps": len(results),
                "totalSteps": len(steps),
                "results": results,
            }
        raise BridgeOperationError("INVALID_INPUT", f"Unknown method: {method}")
    except (TypeError, ValueError) as exc:
        raise BridgeOperationError("INVALID_INPUT", str(exc)) from exc


def handle_command(method: str, params: Dict[str, Any], host: Optional[HostPort] = None) -> Dict[str, Any]:
    """Value-level wrapper: never raises for bridge errors."""
    try:
        return {"ok": True, "data": execute(method, params, host)}
    except BridgeOperationError as exc:
        logger.debug("%s failed: %s %s", method, exc.code, exc.message)
        result: Dict[str, Any] = {"ok": False, "error": exc.message, "code": exc.code}
        if exc.details:
            result["details"] = exc.details
        return result
