import json

import pytest
from typer.testing import CliRunner

from harness_premiere.cli import main as cli
from harness_premiere.core.ticks import TICKS_PER_SECOND

SECOND = TICKS_PER_SECOND
SEQUENCE_JSON = json.dumps({"timebase": "8467200000", "end": {"ticks": str(30 * SECOND)}})
MIDDLE_JSON = json.dumps([{"startTimecode": "00:00:10:00", "endTimecode": "00:00:20:00"}])

runner = CliRunner()


class _Session:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HARNESS_PREMIERE_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.delenv("HARNESS_PREMIERE_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def connected(host, monkeypatch):
    session = _Session()
    monkeypatch.setattr(cli, "_connect", lambda: (session, host))
    return host, session


def _payload(result):
    return json.loads(result.stdout)


def test_version_runs_offline():
    result = runner.invoke(cli.app, ["version"])
    assert result.exit_code == 0
    payload = _payload(result)
    assert payload["ok"] is True
    assert payload["command"] == "version"
    assert payload["data"]["version"] == "0.1.0"


def test_plan_gaps_with_inline_sequence():
    result = runner.invoke(cli.app, ["plan-gaps", MIDDLE_JSON, "--sequence-json", SEQUENCE_JSON])
    assert result.exit_code == 0
    data = _payload(result)["data"]
    assert data["gapCount"] == 2
    assert data["gaps"][0]["startTicks"] == str(20 * SECOND)


def test_plan_gaps_padding_timecode():
    args = ["plan-gaps", MIDDLE_JSON, "--sequence-json", SEQUENCE_JSON, "--padding-timecode", "00:00:01:00"]
    result = runner.invoke(cli.app, args)
    assert result.exit_code == 0
    gaps = _payload(result)["data"]["gaps"]
    assert [gap["startTicks"] for gap in gaps] == [str(21 * SECOND), "0"]
    assert gaps[1]["endTicks"] == str(9 * SECOND)


def test_plan_gaps_rejects_bad_padding_timecode():
    args = ["plan-gaps", MIDDLE_JSON, "--sequence-json", SEQUENCE_JSON, "--padding-timecode", "soon"]
    result = runner.invoke(cli.app, args)
    assert result.exit_code == 4
    assert _payload(result)["error"]["code"] == "PARSE_ERROR"


def test_keep_ranges_through_the_host(connected):
    host, session = connected
    result = runner.invoke(cli.app, ["keep-ranges", MIDDLE_JSON])
    assert result.exit_code == 0
    assert host.extracts == [(20 * SECOND, 30 * SECOND), (0, 10 * SECOND)]
    assert session.closed is True


def test_keep_ranges_from_file(connected, tmp_path):
    host, _ = connected
    ranges_file = tmp_path / "keep.json"
    ranges_file.write_text(json.dumps({"ranges": [[0, 30]]}), encoding="utf-8")
    result = runner.invoke(cli.app, ["keep-ranges", "--ranges-file", str(ranges_file)])
    assert result.exit_code == 0
    assert _payload(result)["data"]["idempotent"] is True
    assert host.extracts == []


def test_validation_failure_exit_code(connected):
    result = runner.invoke(cli.app, ["keep-ranges", "[]"])
    assert result.exit_code == 3
    payload = _payload(result)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "VALIDATION_FAILED"
    assert payload["error"]["retryable"] is False


def test_invalid_json_argument():
    result = runner.invoke(cli.app, ["plan-gaps", "{oops", "--sequence-json", SEQUENCE_JSON])
    assert result.exit_code == 2
    assert _payload(result)["error"]["code"] == "INVALID_INPUT"


def test_dry_run_in_out(connected):
    host, _ = connected
    result = runner.invoke(cli.app, ["set-in-out", "--in", "00:00:01:00", "--out", "00:00:02:00", "--dry-run"])
    assert result.exit_code == 0
    assert _payload(result)["data"]["dryRun"] is True
    assert host.calls == []


def test_toggle_video_track(connected):
    host, _ = connected
    result = runner.invoke(cli.app, ["toggle-video-track", "V1", "--hidden"])
    assert result.exit_code == 0
    assert host.calls == [("setTrackState", "video", 0, True)]


def test_missing_token_is_unauthorized():
    result = runner.invoke(cli.app, ["ping"])
    assert result.exit_code == 8
    assert _payload(result)["error"]["code"] == "UNAUTHORIZED"


def test_unknown_export_format(tmp_path):
    result = runner.invoke(
        cli.app,
        ["export-plan", "aaf", str(tmp_path / "plan.aaf"), MIDDLE_JSON, "--sequence-json", SEQUENCE_JSON],
    )
    assert result.exit_code == 2


def test_export_edl_offline(tmp_path):
    output = tmp_path / "plan.edl"
    result = runner.invoke(
        cli.app,
        ["export-plan", "edl", str(output), MIDDLE_JSON, "--sequence-json", SEQUENCE_JSON],
    )
    assert result.exit_code == 0
    assert output.read_text(encoding="utf-8").startswith("TITLE: plan")


def test_config_init_creates_token(tmp_path):
    result = runner.invoke(cli.app, ["config", "init"])
    assert result.exit_code == 0
    saved = json.loads((tmp_path / "config" / "config.json").read_text(encoding="utf-8"))
    assert len(saved["token"]) == 32
    assert _payload(result)["data"]["tokenCreated"] is True


def test_global_options_reach_the_config():
    result = runner.invoke(cli.app, ["--port", "18123", "config", "show"])
    assert result.exit_code == 0
    assert _payload(result)["data"]["port"] == 18123
