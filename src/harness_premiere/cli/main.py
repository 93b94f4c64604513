import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer

from harness_premiere.bridge import operations
from harness_premiere.bridge.config import generate_token, load_config, save_config
from harness_premiere.bridge.export import EXPORT_FORMATS
from harness_premiere.bridge.host import HostPort, RelayHostPort
from harness_premiere.bridge.protocol import ERROR_CODES, PROTOCOL_VERSION
from harness_premiere.bridge.session import BridgeSession
from harness_premiere.core.errors import BridgeOperationError

app = typer.Typer(add_completion=False, help="Bridge-first CLI for Premiere Pro timeline editing")
config_app = typer.Typer(add_completion=False, help="Bridge configuration and token management")
app.add_typer(config_app, name="config")

logger = logging.getLogger("harness_premiere")

RETRYABLE_CODES = {"BRIDGE_UNAVAILABLE", "TIMEOUT"}

# Methods that can run without the editor when a sequence description is given.
OFFLINE_METHODS = {
    "system.version",
    "system.actions",
    "sequence.context",
    "timecode.debug",
    "timecode.convert",
    "ranges.normalize",
    "ranges.gaps",
    "export.edl",
    "export.xml",
    "export.otio",
}

_STATE: Dict[str, Any] = {"overrides": {}}


def _print(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _ok(command: str, data: Dict[str, Any]) -> None:
    _print({"ok": True, "protocolVersion": PROTOCOL_VERSION, "command": command, "data": data})


def _fail(
    command: str,
    code: str,
    message: str,
    retryable: bool = False,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    error: Dict[str, Any] = {"code": code, "message": message, "retryable": retryable}
    if details:
        error["details"] = details
    _print({"ok": False, "protocolVersion": PROTOCOL_VERSION, "command": command, "error": error})
    raise SystemExit(ERROR_CODES.get(code, 1))


@app.callback()
def _global_options(
    port: Optional[int] = typer.Option(None, "--port", help="Panel HTTP port"),
    token: Optional[str] = typer.Option(None, "--token", help="Shared bridge token"),
    transport: Optional[str] = typer.Option(None, "--transport", help="http or uxp"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait per host command"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log bridge traffic to stderr"),
) -> None:
    _STATE["overrides"] = {"port": port, "token": token, "transport": transport, "timeout_seconds": timeout}
    if verbose:
        logging.basicConfig(stream=sys.stderr, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        logger.setLevel(logging.DEBUG)


def _connect() -> Tuple[BridgeSession, HostPort]:
    session = BridgeSession(load_config(_STATE["overrides"])).open()
    return session, RelayHostPort(session)


def _runs_offline(method: str, params: Dict[str, Any]) -> bool:
    if method not in OFFLINE_METHODS:
        return False
    return method.startswith("system.") or isinstance(params.get("sequence"), dict)


def _call_bridge(command: str, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    session = None
    try:
        host = None
        if not _runs_offline(method, params):
            session, host = _connect()
        return operations.execute(method, params, host)
    except BridgeOperationError as exc:
        _fail(command, exc.code, exc.message, retryable=exc.code in RETRYABLE_CODES, details=exc.details)
    except Exception as exc:
        _fail(command, "ERROR", str(exc))
    finally:
        if session is not None:
            session.close()
    raise RuntimeError("unreachable")


def _json_value(command: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        _fail(command, "INVALID_INPUT", f"Invalid JSON: {exc}")


def _json_arg(command: str, raw: str) -> Dict[str, Any]:
    val = _json_value(command, raw)
    if not isinstance(val, dict):
        _fail(command, "INVALID_INPUT", "JSON value must be an object")
    return val


def _sequence_arg(command: str, raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    return {"sequence": _json_arg(command, raw)}


def _ranges_arg(command: str, raw: Optional[str], ranges_file: Optional[Path]) -> List[Any]:
    if ranges_file is not None:
        if not ranges_file.exists():
            _fail(command, "NOT_FOUND", f"Ranges file not found: {ranges_file}")
        raw = ranges_file.read_text(encoding="utf-8")
    if not raw:
        _fail(command, "INVALID_INPUT", "Provide RANGES_JSON or --ranges-file")
    val = _json_value(command, raw)
    if isinstance(val, dict):
        val = val.get("ranges")
    if not isinstance(val, list):
        _fail(command, "INVALID_INPUT", "Ranges must be a JSON array or an object with a ranges array")
    return val


def _range_params(
    command: str,
    ranges_json: Optional[str],
    ranges_file: Optional[Path],
    padding_seconds: Optional[float],
    padding_frames: Optional[int],
    padding_timecode: Optional[str],
    absolute: bool,
    sequence_json: Optional[str],
) -> Dict[str, Any]:
    params: Dict[str, Any] = {"ranges": _ranges_arg(command, ranges_json, ranges_file), "absolute": absolute}
    if padding_seconds is not None:
        params["paddingSeconds"] = padding_seconds
    if padding_frames is not None:
        params["paddingFrames"] = padding_frames
    if padding_timecode:
        params["paddingTimecode"] = padding_timecode
    params.update(_sequence_arg(command, sequence_json))
    return params


def _time_params(timecode: Optional[str], ticks: Optional[str], seconds: Optional[float]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if ticks is not None:
        params["ticks"] = ticks
    if seconds is not None:
        params["seconds"] = seconds
    if timecode is not None:
        params["timecode"] = timecode
    return params


@config_app.command("show")
def config_show(reveal_token: bool = False) -> None:
    try:
        config = load_config(_STATE["overrides"])
    except BridgeOperationError as exc:
        _fail("config.show", exc.code, exc.message)
    _ok("config.show", config.to_dict(reveal_token=reveal_token))


@config_app.command("init")
def config_init(force: bool = False) -> None:
    try:
        config = load_config(_STATE["overrides"])
    except BridgeOperationError as exc:
        _fail("config.init", exc.code, exc.message)
    created = False
    if not config.token or force:
        config.token = generate_token()
        created = True
    path = save_config(config)
    _ok("config.init", {"path": str(path), "tokenCreated": created, "config": config.to_dict()})


@config_app.command("regenerate-token")
def config_regenerate_token() -> None:
    try:
        config = load_config(_STATE["overrides"])
    except BridgeOperationError as exc:
        _fail("config.regenerate-token", exc.code, exc.message)
    config.token = generate_token()
    path = save_config(config)
    _ok("config.regenerate-token", {"path": str(path), "token": config.token})


@app.command("ping")
def ping() -> None:
    _ok("ping", _call_bridge("ping", "system.health", {}))


@app.command("version")
def version() -> None:
    _ok("version", _call_bridge("version", "system.version", {}))


@app.command("actions")
def actions() -> None:
    _ok("actions", _call_bridge("actions", "system.actions", {}))


@app.command("sequence-info")
def sequence_info() -> None:
    _ok("sequence-info", _call_bridge("sequence-info", "sequence.info", {}))


@app.command("sequence-inventory")
def sequence_inventory() -> None:
    _ok("sequence-inventory", _call_bridge("sequence-inventory", "sequence.inventory", {}))


@app.command("sequence-context")
def sequence_context(sequence_json: Optional[str] = None) -> None:
    _ok(
        "sequence-context",
        _call_bridge("sequence-context", "sequence.context", _sequence_arg("sequence-context", sequence_json)),
    )


@app.command("list-sequences")
def list_sequences() -> None:
    _ok("list-sequences", _call_bridge("list-sequences", "sequence.list", {}))


@app.command("open-sequence")
def open_sequence(
    name: Optional[str] = None,
    sequence_id: Optional[str] = typer.Option(None, "--id"),
    dry_run: bool = False,
) -> None:
    _ok(
        "open-sequence",
        _call_bridge("open-sequence", "sequence.open", {"name": name, "id": sequence_id, "dry_run": dry_run}),
    )


@app.command("duplicate-sequence")
def duplicate_sequence(name: Optional[str] = None, dry_run: bool = False) -> None:
    _ok(
        "duplicate-sequence",
        _call_bridge("duplicate-sequence", "sequence.duplicate", {"name": name, "dry_run": dry_run}),
    )


@app.command("save-project")
def save_project(dry_run: bool = False) -> None:
    _ok("save-project", _call_bridge("save-project", "project.save", {"dry_run": dry_run}))


@app.command("reload-project")
def reload_project(dry_run: bool = False) -> None:
    _ok("reload-project", _call_bridge("reload-project", "project.reload", {"dry_run": dry_run}))


@app.command("find-project-item")
def find_project_item(
    name: Optional[str] = None,
    path: Optional[str] = None,
    contains: bool = False,
    case_sensitive: bool = False,
    limit: Optional[int] = None,
) -> None:
    _ok(
        "find-project-item",
        _call_bridge(
            "find-project-item",
            "project.find_item",
            {
                "name": name,
                "path": path,
                "contains": contains,
                "caseSensitive": case_sensitive,
                "limit": limit,
            },
        ),
    )


@app.command("transcript")
def transcript() -> None:
    _ok("transcript", _call_bridge("transcript", "project.transcript", {}))


@app.command("debug-timecode")
def debug_timecode(timecode: str, sequence_json: Optional[str] = None) -> None:
    params: Dict[str, Any] = {"timecode": timecode}
    params.update(_sequence_arg("debug-timecode", sequence_json))
    _ok("debug-timecode", _call_bridge("debug-timecode", "timecode.debug", params))


@app.command("convert")
def convert(
    timecode: Optional[str] = None,
    ticks: Optional[str] = None,
    seconds: Optional[float] = None,
    absolute: bool = False,
    sequence_json: Optional[str] = None,
) -> None:
    params = _time_params(timecode, ticks, seconds)
    params["absolute"] = absolute
    params.update(_sequence_arg("convert", sequence_json))
    _ok("convert", _call_bridge("convert", "timecode.convert", params))


@app.command("set-playhead")
def set_playhead(
    timecode: Optional[str] = None,
    ticks: Optional[str] = None,
    seconds: Optional[float] = None,
    dry_run: bool = False,
) -> None:
    params = _time_params(timecode, ticks, seconds)
    params["dry_run"] = dry_run
    _ok("set-playhead", _call_bridge("set-playhead", "timeline.set_playhead", params))


@app.command("set-in-out")
def set_in_out(
    in_point: str = typer.Option(..., "--in", help="Timecode, seconds or ticks"),
    out_point: str = typer.Option(..., "--out", help="Timecode, seconds or ticks"),
    absolute: bool = False,
    dry_run: bool = False,
) -> None:
    _ok(
        "set-in-out",
        _call_bridge(
            "set-in-out",
            "timeline.set_in_out",
            {"in": in_point, "out": out_point, "absolute": absolute, "dry_run": dry_run},
        ),
    )


@app.command("extract-range")
def extract_range(
    in_point: str = typer.Option(..., "--in", help="Timecode, seconds or ticks"),
    out_point: str = typer.Option(..., "--out", help="Timecode, seconds or ticks"),
    absolute: bool = False,
    dry_run: bool = False,
) -> None:
    _ok(
        "extract-range",
        _call_bridge(
            "extract-range",
            "timeline.extract_range",
            {"in": in_point, "out": out_point, "absolute": absolute, "dry_run": dry_run},
        ),
    )


@app.command("razor-cut")
def razor_cut(
    timecode: Optional[str] = None,
    ticks: Optional[str] = None,
    seconds: Optional[float] = None,
    dry_run: bool = False,
) -> None:
    params = _time_params(timecode, ticks, seconds)
    params["dry_run"] = dry_run
    _ok("razor-cut", _call_bridge("razor-cut", "timeline.razor", params))


@app.command("ripple-delete-selection")
def ripple_delete_selection(dry_run: bool = False) -> None:
    _ok(
        "ripple-delete-selection",
        _call_bridge("ripple-delete-selection", "timeline.ripple_delete_selection", {"dry_run": dry_run}),
    )


@app.command("add-markers")
def add_markers(markers_json: str, dry_run: bool = False) -> None:
    markers = _json_value("add-markers", markers_json)
    if isinstance(markers, dict):
        markers = markers.get("markers")
    _ok("add-markers", _call_bridge("add-markers", "markers.add", {"markers": markers, "dry_run": dry_run}))


@app.command("add-markers-file")
def add_markers_file(file_path: Path, dry_run: bool = False) -> None:
    _ok(
        "add-markers-file",
        _call_bridge("add-markers-file", "markers.add_file", {"file_path": str(file_path), "dry_run": dry_run}),
    )


@app.command("set-track-state")
def set_track_state(
    track: str,
    kind: Optional[str] = None,
    mute: Optional[bool] = typer.Option(None, "--mute/--unmute"),
    dry_run: bool = False,
) -> None:
    _ok(
        "set-track-state",
        _call_bridge(
            "set-track-state",
            "track.set_state",
            {"track": track, "kind": kind, "mute": mute, "dry_run": dry_run},
        ),
    )


@app.command("toggle-video-track")
def toggle_video_track(
    track: str,
    visible: bool = typer.Option(True, "--visible/--hidden"),
    dry_run: bool = False,
) -> None:
    _ok(
        "toggle-video-track",
        _call_bridge(
            "toggle-video-track",
            "track.toggle_video",
            {"track": track, "visible": visible, "dry_run": dry_run},
        ),
    )


@app.command("normalize-ranges")
def normalize_ranges(
    ranges_json: Optional[str] = typer.Argument(None),
    ranges_file: Optional[Path] = None,
    padding_seconds: Optional[float] = None,
    padding_frames: Optional[int] = None,
    padding_timecode: Optional[str] = None,
    absolute: bool = False,
    sequence_json: Optional[str] = None,
) -> None:
    params = _range_params(
        "normalize-ranges",
        ranges_json,
        ranges_file,
        padding_seconds,
        padding_frames,
        padding_timecode,
        absolute,
        sequence_json,
    )
    _ok("normalize-ranges", _call_bridge("normalize-ranges", "ranges.normalize", params))


@app.command("plan-gaps")
def plan_gaps(
    ranges_json: Optional[str] = typer.Argument(None),
    ranges_file: Optional[Path] = None,
    padding_seconds: Optional[float] = None,
    padding_frames: Optional[int] = None,
    padding_timecode: Optional[str] = None,
    absolute: bool = False,
    sequence_json: Optional[str] = None,
) -> None:
    params = _range_params(
        "plan-gaps",
        ranges_json,
        ranges_file,
        padding_seconds,
        padding_frames,
        padding_timecode,
        absolute,
        sequence_json,
    )
    _ok("plan-gaps", _call_bridge("plan-gaps", "ranges.gaps", params))


@app.command("keep-ranges")
def keep_ranges(
    ranges_json: Optional[str] = typer.Argument(None),
    ranges_file: Optional[Path] = None,
    padding_seconds: Optional[float] = None,
    padding_frames: Optional[int] = None,
    padding_timecode: Optional[str] = None,
    absolute: bool = False,
    dry_run: bool = False,
) -> None:
    params = _range_params(
        "keep-ranges",
        ranges_json,
        ranges_file,
        padding_seconds,
        padding_frames,
        padding_timecode,
        absolute,
        None,
    )
    params["dry_run"] = dry_run
    _ok("keep-ranges", _call_bridge("keep-ranges", "ranges.keep", params))


@app.command("export-plan")
def export_plan(
    fmt: str,
    output: Path,
    ranges_json: Optional[str] = typer.Argument(None),
    ranges_file: Optional[Path] = None,
    padding_seconds: Optional[float] = None,
    padding_frames: Optional[int] = None,
    padding_timecode: Optional[str] = None,
    absolute: bool = False,
    sequence_json: Optional[str] = None,
) -> None:
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        _fail("export-plan", "INVALID_INPUT", f"format must be one of {', '.join(EXPORT_FORMATS)}")
    params = _range_params(
        "export-plan",
        ranges_json,
        ranges_file,
        padding_seconds,
        padding_frames,
        padding_timecode,
        absolute,
        sequence_json,
    )
    params["output"] = str(output)
    _ok("export-plan", _call_bridge("export-plan", f"export.{fmt}", params))


@app.command("batch")
def batch(
    steps_json: str,
    stop_on_error: bool = True,
) -> None:
    steps = _json_value("batch", steps_json)
    _ok("batch", _call_bridge("batch", "batch.execute", {"steps": steps, "stop_on_error": stop_on_error}))


def main() -> None:
    app()
