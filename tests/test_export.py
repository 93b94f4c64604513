import json

import pytest
from lxml import etree

from harness_premiere.bridge.export import edl_lines, plan_otio, plan_xml, write_plan
from harness_premiere.core.gaps import plan_cut
from harness_premiere.core.sequence import SequenceContext
from harness_premiere.core.ticks import TICKS_PER_SECOND

SECOND = TICKS_PER_SECOND


@pytest.fixture
def context():
    return SequenceContext.from_timebase(8467200000, end_ticks=30 * SECOND)


@pytest.fixture
def plan(context):
    return plan_cut({"ranges": [{"startTimecode": "00:00:10:00", "endTimecode": "00:00:20:00"}]}, context)


def test_edl_events(plan, context):
    lines = edl_lines(plan["keep"], context, title="Main")
    assert lines[0] == "TITLE: Main"
    assert lines[1] == "FCM: NON-DROP FRAME"
    assert lines[2].startswith("001")
    assert lines[2].endswith("00:00:10:00 00:00:20:00 00:00:00:00 00:00:10:00")


def test_xml_lists_gaps_in_removal_order(plan, context):
    root = plan_xml(plan, context)
    assert root.get("timebase") == "8467200000"
    assert len(root.find("keep")) == 1
    gaps = root.find("gaps")
    assert gaps.get("order") == "descending"
    assert [g.get("startTicks") for g in gaps] == [str(20 * SECOND), "0"]


def test_otio_clip_ranges(plan, context):
    timeline = plan_otio(plan, context, "Main")
    clips = timeline["tracks"]["children"][0]["children"]
    assert len(clips) == 1
    source = clips[0]["source_range"]
    assert source["start_time"]["value"] == 300.0
    assert source["duration"]["value"] == 300.0
    assert source["start_time"]["rate"] == 30.0


def test_write_plan_formats(plan, context, tmp_path):
    xml_path = write_plan("xml", plan, context, tmp_path / "out" / "plan.xml")
    assert etree.parse(str(xml_path)).getroot().tag == "cut_plan"
    otio_path = write_plan("otio", plan, context, tmp_path / "plan.otio")
    assert json.loads(otio_path.read_text(encoding="utf-8"))["OTIO_SCHEMA"] == "Timeline.1"
    with pytest.raises(ValueError):
        write_plan("aaf", plan, context, tmp_path / "plan.aaf")
