"""The editor as seen by the bridge: one method per host operation.

Tick arguments are absolute and travel as decimal strings so long timelines
survive the JSON hop without losing precision.
"""

import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from harness_premiere.bridge.protocol import HOST_COMMANDS
from harness_premiere.bridge.session import BridgeSession
from harness_premiere.core.errors import BridgeOperationError

TRACK_REF = re.compile(r"^([VAva])(\d+)$")


def parse_track_ref(track_ref: Any, kind_hint: Optional[str] = None) -> Dict[str, Any]:
    """Turn ``V1``/``A2`` (or a 1-based number plus a kind) into kind and index."""
    if not track_ref and not kind_hint:
        raise BridgeOperationError("INVALID_INPUT", "Provide a track like V1 or A1")
    raw = str(track_ref).strip() if track_ref is not None else ""
    match = TRACK_REF.match(raw)
    if match:
        kind = "video" if match.group(1).upper() == "V" else "audio"
        index = max(0, int(match.group(2)) - 1)
    else:
        kind = "audio" if str(kind_hint or "").lower() == "audio" else "video"
        try:
            index = max(0, int(raw or 1) - 1)
        except ValueError as exc:
            raise BridgeOperationError("INVALID_INPUT", f"Invalid track reference: {track_ref!r}") from exc
    label = f"{'V' if kind == 'video' else 'A'}{index + 1}"
    return {"kind": kind, "index": index, "label": label}


class HostPort(ABC):
    @abstractmethod
    def ping(self) -> Dict[str, Any]: ...

    @abstractmethod
    def sequence_info(self) -> Dict[str, Any]: ...

    @abstractmethod
    def sequence_inventory(self) -> Dict[str, Any]: ...

    @abstractmethod
    def list_sequences(self) -> Dict[str, Any]: ...

    @abstractmethod
    def open_sequence(self, name: Optional[str] = None, sequence_id: Optional[str] = None) -> Dict[str, Any]: ...

    @abstractmethod
    def duplicate_sequence(self, name: Optional[str] = None) -> Dict[str, Any]: ...

    @abstractmethod
    def save_project(self) -> Dict[str, Any]: ...

    @abstractmethod
    def reload_project(self) -> Dict[str, Any]: ...

    @abstractmethod
    def find_project_item(self, query: Dict[str, Any]) -> Dict[str, Any]: ...

    @abstractmethod
    def transcript(self) -> Dict[str, Any]: ...

    @abstractmethod
    def set_playhead(self, ticks: int) -> Dict[str, Any]: ...

    @abstractmethod
    def set_in_out(self, in_ticks: int, out_ticks: int) -> Dict[str, Any]: ...

    @abstractmethod
    def razor(self, ticks: int) -> Dict[str, Any]: ...

    @abstractmethod
    def extract_range(self, in_ticks: int, out_ticks: int) -> Dict[str, Any]: ...

    @abstractmethod
    def ripple_delete_selection(self) -> Dict[str, Any]: ...

    @abstractmethod
    def add_markers(self, markers: List[Dict[str, Any]]) -> Dict[str, Any]: ...

    @abstractmethod
    def set_track_state(self, kind: str, index: int, mute: bool) -> Dict[str, Any]: ...


class RelayHostPort(HostPort):
    """HostPort backed by a BridgeSession relaying to the editor panel."""

    def __init__(self, session: BridgeSession):
        self.session = session

    def _call(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if command not in HOST_COMMANDS:
            raise BridgeOperationError("INVALID_INPUT", f"Unknown host command: {command}")
        result = self.session.send_command(command, payload or {})
        if not result.get("ok"):
            raise BridgeOperationError("HOST_ERROR", f"{command} failed: {result.get('error') or 'unknown error'}")
        data = result.get("data")
        return data if isinstance(data, dict) else {"value": data}

    def ping(self) -> Dict[str, Any]:
        return self._call("ping")

    def sequence_info(self) -> Dict[str, Any]:
        return self._call("getSequenceInfo")

    def sequence_inventory(self) -> Dict[str, Any]:
        return self._call("sequenceInventory")

    def list_sequences(self) -> Dict[str, Any]:
        return self._call("listSequences")

    def open_sequence(self, name: Optional[str] = None, sequence_id: Optional[str] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if name:
            payload["name"] = name
        if sequence_id:
            payload["id"] = sequence_id
        return self._call("openSequence", payload)

    def duplicate_sequence(self, name: Optional[str] = None) -> Dict[str, Any]:
        return self._call("duplicateSequence", {"name": name} if name else {})

    def save_project(self) -> Dict[str, Any]:
        return self._call("saveProject")

    def reload_project(self) -> Dict[str, Any]:
        return self._call("reloadProject")

    def find_project_item(self, query: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("findProjectItem", query)

    def transcript(self) -> Dict[str, Any]:
        return self._call("transcriptJSON")

    def set_playhead(self, ticks: int) -> Dict[str, Any]:
        return self._call("setPlayheadTimecode", {"ticks": str(ticks)})

    def set_in_out(self, in_ticks: int, out_ticks: int) -> Dict[str, Any]:
        return self._call("setInOutPoints", {"inTicks": str(in_ticks), "outTicks": str(out_ticks)})

    def razor(self, ticks: int) -> Dict[str, Any]:
        return self._call("razorAtTimecode", {"ticks": str(ticks)})

    def extract_range(self, in_ticks: int, out_ticks: int) -> Dict[str, Any]:
        return self._call("extractRange", {"inTicks": str(in_ticks), "outTicks": str(out_ticks)})

    def ripple_delete_selection(self) -> Dict[str, Any]:
        return self._call("rippleDeleteSelection")

    def add_markers(self, markers: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._call("addMarkers", {"markers": markers})

    def set_track_state(self, kind: str, index: int, mute: bool) -> Dict[str, Any]:
        return self._call("setTrackState", {"kind": kind, "track": index + 1, "mute": mute})
