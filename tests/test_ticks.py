from fractions import Fraction

import pytest

from harness_premiere.core.errors import ParseError
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


def test_seconds_and_ticks():
    assert seconds_to_ticks(1) == TICKS_PER_SECOND
    assert seconds_to_ticks("0.5") == 127008000000
    assert ticks_to_seconds(TICKS_PER_SECOND * 3) == 3.0


def test_to_ticks_accepts_decimal_strings():
    assert to_ticks("8467200000") == 8467200000
    assert to_ticks(" 42 ") == 42
    assert to_ticks(1.4) == 1


@pytest.mark.parametrize("value", [True, None, "abc", "nan", float("inf"), [1]])
def test_parse_number_rejects_non_numbers(value):
    with pytest.raises(ParseError):
        parse_number(value, "value")


def test_frame_helpers():
    assert frame_ticks(0.2) == 1
    assert frames_to_ticks(10, 8467200000) == 84672000000
    assert seconds_to_frames(2, 30) == 60
    assert seconds_to_frames("1.5", Fraction(30000, 1001)) == 45


def test_snapping():
    assert snap_down(10, 4) == 8
    assert snap_up(10, 4) == 12
    assert snap_up(8, 4) == 8
    assert snap_down(-1, 4) == -4


@pytest.mark.parametrize("seconds", [0, 0.001, 1 / 3, 2.5, 59.94, 3600.123456])
def test_tick_second_duality(seconds):
    ticks = seconds_to_ticks(seconds)
    assert abs(ticks_to_seconds(ticks) - seconds) * TICKS_PER_SECOND <= 1
