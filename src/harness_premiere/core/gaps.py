from typing import Any, Dict, List, Sequence

from harness_premiere.core.ranges import TickRange, normalize_params
from harness_premiere.core.sequence import SequenceContext, sequence_bounds
from harness_premiere.core.ticks import ticks_to_seconds


def compute_gaps(keep: Sequence[TickRange], bounds_start: int, bounds_end: int) -> List[TickRange]:
    """Complement of the sorted, merged ``keep`` ranges inside the bounds.

    Gaps come back in ascending order. Together with ``keep`` they tile
    ``[bounds_start, bounds_end]`` exactly.
    """
    gaps: List[TickRange] = []
    cursor = bounds_start
    for rng in sorted(keep, key=lambda r: r.start_ticks):
        if rng.start_ticks > cursor:
            gaps.append(TickRange(cursor, rng.start_ticks))
        cursor = max(cursor, rng.end_ticks)
    if cursor < bounds_end:
        gaps.append(TickRange(cursor, bounds_end))
    return [g for g in gaps if g.duration_ticks > 0]


def removal_order(gaps: Sequence[TickRange]) -> List[TickRange]:
    # ripple removal renumbers everything after the cut, so work from the end
    return sorted(gaps, key=lambda g: g.start_ticks, reverse=True)


def gap_row(gap: TickRange) -> Dict[str, Any]:
    return {
        "startTicks": str(gap.start_ticks),
        "endTicks": str(gap.end_ticks),
        "durationSeconds": gap.duration_seconds,
    }


def plan_cut(params: Dict[str, Any], context: SequenceContext) -> Dict[str, Any]:
    bounds_start, bounds_end = sequence_bounds(context)
    keep = normalize_params(params, context)
    gaps = removal_order(compute_gaps(keep, bounds_start, bounds_end))
    kept_ticks = sum(r.duration_ticks for r in keep)
    removed_ticks = sum(g.duration_ticks for g in gaps)
    return {
        "keep": keep,
        "gaps": gaps,
        "bounds": TickRange(bounds_start, bounds_end),
        "keptSeconds": ticks_to_seconds(kept_ticks),
        "removedSeconds": ticks_to_seconds(removed_ticks),
    }
