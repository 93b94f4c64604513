from typing import Any, Dict, List, Optional

import pytest

from harness_premiere.bridge.host import HostPort
from harness_premiere.core.errors import BridgeOperationError
from harness_premiere.core.ticks import TICKS_PER_SECOND

TIMEBASE_30 = 8467200000


class FakeHost(HostPort):
    """In-memory editor that records every command it receives."""

    def __init__(self, end_seconds: int = 30, start_ticks: int = 0):
        self.inventory: Dict[str, Any] = {
            "sequence": {
                "name": "Main",
                "id": "seq-1",
                "timebase": str(TIMEBASE_30),
                "start": {"ticks": str(start_ticks)},
                "end": {"ticks": str(start_ticks + end_seconds * TICKS_PER_SECOND)},
            },
            "tracks": {"video": [], "audio": []},
        }
        self.calls: List[tuple] = []
        self.extracts: List[tuple] = []
        self.fail_on_extract: Optional[int] = None

    def _record(self, name: str, *args: Any) -> Dict[str, Any]:
        self.calls.append((name,) + args)
        return {"command": name}

    def ping(self):
        return {"status": "ok"}

    def sequence_info(self):
        return dict(self.inventory["sequence"])

    def sequence_inventory(self):
        return self.inventory

    def list_sequences(self):
        return {"sequences": [{"name": "Main", "id": "seq-1"}]}

    def open_sequence(self, name=None, sequence_id=None):
        return self._record("openSequence", name, sequence_id)

    def duplicate_sequence(self, name=None):
        return self._record("duplicateSequence", name)

    def save_project(self):
        return self._record("saveProject")

    def reload_project(self):
        return self._record("reloadProject")

    def find_project_item(self, query):
        return {"items": [], "query": query}

    def transcript(self):
        return {"segments": []}

    def set_playhead(self, ticks):
        return self._record("setPlayheadTimecode", ticks)

    def set_in_out(self, in_ticks, out_ticks):
        return self._record("setInOutPoints", in_ticks, out_ticks)

    def razor(self, ticks):
        return self._record("razorAtTimecode", ticks)

    def extract_range(self, in_ticks, out_ticks):
        self.extracts.append((in_ticks, out_ticks))
        if self.fail_on_extract == len(self.extracts):
            raise BridgeOperationError("HOST_ERROR", "extractRange failed: sequence locked")
        return {"inTicks": str(in_ticks), "outTicks": str(out_ticks)}

    def ripple_delete_selection(self):
        return self._record("rippleDeleteSelection")

    def add_markers(self, markers):
        self.calls.append(("addMarkers", markers))
        return {"added": len(markers)}

    def set_track_state(self, kind, index, mute):
        return self._record("setTrackState", kind, index, mute)


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def sequence_30():
    """Inline description of a 30 fps, 30 second sequence starting at zero."""
    return {"timebase": str(TIMEBASE_30), "end": {"ticks": str(30 * TICKS_PER_SECOND)}}
