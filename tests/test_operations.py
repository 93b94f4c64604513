import json

import pytest
from lxml import etree

from harness_premiere.bridge.operations import ACTION_METHODS, execute, handle_command
from harness_premiere.core.errors import BridgeOperationError
from harness_premiere.core.ticks import TICKS_PER_SECOND

TIMEBASE_2997 = 8475667200

SECOND = TICKS_PER_SECOND
MIDDLE = [{"startTimecode": "00:00:10:00", "endTimecode": "00:00:20:00"}]


def test_keep_ranges_removes_gaps_from_the_end(host):
    data = execute("ranges.keep", {"ranges": MIDDLE}, host)
    assert host.extracts == [(20 * SECOND, 30 * SECOND), (0, 10 * SECOND)]
    assert data["changed"] is True
    assert data["gapCount"] == 2
    assert [r["startTicks"] for r in data["removed"]] == [str(20 * SECOND), "0"]
    assert data["keep"][0]["startTicks"] == str(10 * SECOND)


def test_keep_ranges_dry_run_touches_nothing(host):
    data = execute("ranges.keep", {"ranges": MIDDLE, "dry_run": True}, host)
    assert host.extracts == []
    assert data["dryRun"] is True
    assert data["changed"] is False
    assert data["gaps"] == [
        {"startTicks": str(20 * SECOND), "endTicks": str(30 * SECOND), "durationSeconds": 10.0},
        {"startTicks": "0", "endTicks": str(10 * SECOND), "durationSeconds": 10.0},
    ]


def test_keep_ranges_reports_progress_on_failure(host):
    host.fail_on_extract = 2
    with pytest.raises(BridgeOperationError) as info:
        execute("ranges.keep", {"ranges": MIDDLE}, host)
    assert info.value.code == "HOST_ERROR"
    assert "gap 2 of 2" in info.value.message
    assert info.value.details["completed"] == 1
    assert info.value.details["total"] == 2
    assert info.value.details["failedGap"]["startTicks"] == "0"
    assert len(host.extracts) == 2


def test_keep_everything_is_idempotent(host):
    data = execute("ranges.keep", {"ranges": [[0, 30]]}, host)
    assert host.extracts == []
    assert data["idempotent"] is True
    assert data["changed"] is False


def test_handle_command_wraps_errors(host):
    result = handle_command("ranges.keep", {"ranges": []}, host)
    assert result["ok"] is False
    assert result["code"] == "VALIDATION_FAILED"
    assert handle_command("nope.nothing", {}, host)["code"] == "INVALID_INPUT"
    assert handle_command("system.version", {}, host)["ok"] is True


def test_non_ascii_digits_are_a_parse_error(host):
    result = handle_command("ranges.normalize", {"ranges": [{"start": "00:00:0²:00", "end": 5}]}, host)
    assert result["ok"] is False
    assert result["code"] == "PARSE_ERROR"


def test_failure_details_reach_handle_command(host):
    host.fail_on_extract = 1
    result = handle_command("ranges.keep", {"ranges": MIDDLE}, host)
    assert result["ok"] is False
    assert result["details"]["completed"] == 0


def test_pure_actions_run_without_a_host(sequence_30):
    data = execute("ranges.gaps", {"ranges": MIDDLE, "sequence": sequence_30})
    assert data["gapCount"] == 2
    assert data["keptSeconds"] == 10.0
    with pytest.raises(BridgeOperationError) as info:
        execute("ranges.gaps", {"ranges": MIDDLE})
    assert info.value.code == "BRIDGE_UNAVAILABLE"


def test_normalize_reports_padding(host):
    data = execute("ranges.normalize", {"ranges": [[10, 20]], "paddingSeconds": 1}, host)
    assert data["count"] == 1
    assert data["paddingTicks"] == str(SECOND)
    assert data["ranges"][0]["startTicks"] == str(9 * SECOND)


def test_debug_drop_frame_timecode():
    sequence = {
        "settings": {"videoFrameRate": {"ticks": str(TIMEBASE_2997)}, "videoDisplayFormat": "FPS_29_97"},
        "end": {"ticks": str(3600 * SECOND)},
    }
    data = execute("timecode.debug", {"timecode": "00;01;00;00", "sequence": sequence})
    assert data["frames"] == 1798
    assert data["ticks"] == str(1798 * TIMEBASE_2997)
    assert data["timecode"] == "00:00:59:28"
    assert data["dropFrame"] is True


def test_convert_seconds(host):
    data = execute("timecode.convert", {"seconds": 1}, host)
    assert data["ticks"] == str(SECOND)
    assert data["timecode"] == "00:00:01:00"
    assert data["frames"] == 30


def test_set_playhead(host):
    data = execute("timeline.set_playhead", {"timecode": "00:00:01:00"}, host)
    assert host.calls == [("setPlayheadTimecode", SECOND)]
    assert data["changed"] is True


def test_set_in_out_dry_run(host):
    data = execute("timeline.set_in_out", {"in": "00:00:01:00", "out": 2, "dry_run": True}, host)
    assert host.calls == []
    assert data["dryRun"] is True
    assert data["inTicks"] == str(SECOND)
    assert data["outTicks"] == str(2 * SECOND)


def test_extract_range(host):
    execute("timeline.extract_range", {"inSeconds": 1, "outSeconds": 2}, host)
    assert host.extracts == [(SECOND, 2 * SECOND)]


def test_add_markers_skips_unparseable(host):
    markers = [{"timecode": "00:00:01:00", "name": "A"}, {"name": "untimed"}]
    data = execute("markers.add", {"markers": markers}, host)
    assert data["markersAdded"] == 1
    assert len(data["warnings"]) == 1
    assert host.calls == [("addMarkers", [{"ticks": str(SECOND), "name": "A"}])]


def test_add_markers_needs_one_valid_marker(host):
    with pytest.raises(BridgeOperationError) as info:
        execute("markers.add", {"markers": [{"name": "untimed"}]}, host)
    assert info.value.code == "VALIDATION_FAILED"


def test_add_markers_from_file(host, tmp_path):
    path = tmp_path / "markers.json"
    path.write_text(json.dumps({"markers": [{"timeSeconds": 2, "color": "blue"}]}), encoding="utf-8")
    data = execute("markers.add_file", {"file_path": str(path)}, host)
    assert data["markersAdded"] == 1
    with pytest.raises(BridgeOperationError) as info:
        execute("markers.add_file", {"file_path": str(tmp_path / "missing.json")}, host)
    assert info.value.code == "NOT_FOUND"


def test_toggle_video_track(host):
    data = execute("track.toggle_video", {"track": "V2", "visible": False}, host)
    assert host.calls == [("setTrackState", "video", 1, True)]
    assert data["visible"] is False
    with pytest.raises(BridgeOperationError):
        execute("track.toggle_video", {"track": "A1", "visible": True}, host)


def test_set_audio_track_state(host):
    execute("track.set_state", {"track": "A1", "mute": True}, host)
    assert host.calls == [("setTrackState", "audio", 0, True)]


def test_open_sequence_needs_name_or_id(host):
    with pytest.raises(BridgeOperationError) as info:
        execute("sequence.open", {}, host)
    assert info.value.code == "INVALID_INPUT"
    execute("sequence.open", {"name": "Edit"}, host)
    assert host.calls == [("openSequence", "Edit", None)]


def test_batch_stops_on_first_error(host):
    steps = [
        {"method": "system.version"},
        {"method": "ranges.normalize", "params": {"ranges": []}},
        {"method": "system.version"},
    ]
    data = execute("batch.execute", {"steps": steps}, host)
    assert data["ok"] is False
    assert data["completedSteps"] == 1
    assert len(data["results"]) == 2
    assert data["results"][1]["error"]["code"] == "VALIDATION_FAILED"


def test_batch_rejects_nesting(host):
    with pytest.raises(BridgeOperationError):
        execute("batch.execute", {"steps": [{"method": "batch.execute"}]}, host)


def test_actions_list_every_method(host):
    data = execute("system.actions", {}, host)
    assert data["actions"] == ACTION_METHODS
    assert "ranges.keep" in data["mutating"]


def test_export_xml_plan(host, tmp_path):
    output = tmp_path / "plan.xml"
    data = execute("export.xml", {"ranges": MIDDLE, "output": str(output)}, host)
    assert data["gapCount"] == 2
    root = etree.parse(str(output)).getroot()
    assert root.tag == "cut_plan"
    assert len(root.find("gaps")) == 2
