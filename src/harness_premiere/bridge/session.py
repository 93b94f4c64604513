import json
import logging
import os
import socket
import threading
import time
import urllib.error
import urllib.request
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from harness_premiere.bridge.config import BridgeConfig
from harness_premiere.bridge.protocol import AUTH_HEADER, COMMAND_PATH, TRANSPORT_HTTP, TRANSPORT_UXP
from harness_premiere.core.errors import BridgeOperationError

logger = logging.getLogger(__name__)

COMMAND_FILENAME = "command.json"
RESULT_FILENAME = "result.json"


def _host_result(raw: Any, command: str) -> Dict[str, Any]:
    if not isinstance(raw, dict) or "ok" not in raw:
        raise BridgeOperationError("HOST_ERROR", f"Malformed host response for {command}: {raw!r}")
    if not raw.get("ok") and str(raw.get("error", "")) == "Unauthorized":
        raise BridgeOperationError("UNAUTHORIZED", "Host rejected the bridge token")
    return raw


class HttpRelay:
    """POSTs ``{"cmd", "payload"}`` to the panel's loopback HTTP server."""

    def __init__(self, config: BridgeConfig):
        self.config = config

    def send(self, command: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = json.dumps({"cmd": command, "payload": payload}).encode("utf-8")
        request = urllib.request.Request(
            self.config.url + COMMAND_PATH,
            data=body,
            headers={"Content-Type": "application/json", AUTH_HEADER: self.config.token or ""},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.config.timeout_seconds) as response:
                raw = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            if exc.code == 401:
                raise BridgeOperationError("UNAUTHORIZED", "Host rejected the bridge token") from exc
            raw = exc.read().decode("utf-8", errors="replace")
        except (socket.timeout, TimeoutError) as exc:
            raise BridgeOperationError(
                "TIMEOUT", f"Timed out after {self.config.timeout_seconds}s waiting for {command}"
            ) from exc
        except (urllib.error.URLError, ConnectionError) as exc:
            if isinstance(getattr(exc, "reason", None), (socket.timeout, TimeoutError)):
                raise BridgeOperationError(
                    "TIMEOUT", f"Timed out after {self.config.timeout_seconds}s connecting for {command}"
                ) from exc
            raise BridgeOperationError(
                "BRIDGE_UNAVAILABLE", f"Cannot reach bridge at {self.config.url}: {exc}"
            ) from exc
        try:
            parsed = json.loads(raw)
        except ValueError as exc:
            raise BridgeOperationError("HOST_ERROR", f"Host returned invalid JSON for {command}") from exc
        return _host_result(parsed, command)


class FileRelay:
    """Drops a command file for the panel to pick up and polls for its result."""

    def __init__(self, config: BridgeConfig):
        self.config = config

    @property
    def command_path(self) -> Path:
        return self.config.ipc_dir / COMMAND_FILENAME

    @property
    def result_path(self) -> Path:
        return self.config.ipc_dir / RESULT_FILENAME

    def prepare(self) -> None:
        self.config.ipc_dir.mkdir(parents=True, exist_ok=True)

    def _write_command(self, envelope: Dict[str, Any]) -> None:
        tmp = self.command_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(envelope, indent=2), encoding="utf-8")
        os.replace(tmp, self.command_path)

    def _read_result(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.result_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            # the panel may be midway through writing the file
            return None
        return data if isinstance(data, dict) else None

    def send(self, command: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.prepare()
        command_id = uuid4().hex
        self._write_command(
            {
                "id": command_id,
                "command": command,
                "payload": payload,
                "token": self.config.token,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        deadline = time.monotonic() + self.config.timeout_seconds
        while time.monotonic() <= deadline:
            result = self._read_result()
            if result is not None and str(result.get("id")) == command_id:
                return _host_result(result, command)
            time.sleep(max(0.01, self.config.poll_interval_seconds))
        raise BridgeOperationError(
            "TIMEOUT",
            f"Timed out after {self.config.timeout_seconds}s waiting for {command} ({command_id}); "
            "is the panel running?",
        )


class BridgeSession:
    """One open channel to the editor. Commands go out strictly one at a time."""

    def __init__(self, config: BridgeConfig, relay: Any = None):
        self.config = config
        self._relay = relay
        self._lock = threading.Lock()
        self._open = False
        self.commands_sent = 0

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> "BridgeSession":
        if self._open:
            return self
        if not self.config.token:
            raise BridgeOperationError(
                "UNAUTHORIZED",
                "Missing token. Open the panel to generate one, run 'config init', or pass --token.",
            )
        if self._relay is None:
            if self.config.transport == TRANSPORT_UXP:
                relay = FileRelay(self.config)
                relay.prepare()
                self._relay = relay
            elif self.config.transport == TRANSPORT_HTTP:
                self._relay = HttpRelay(self.config)
            else:
                raise BridgeOperationError("INVALID_INPUT", f"Unknown transport: {self.config.transport}")
        self._open = True
        logger.debug("Bridge session opened (transport=%s)", self.config.transport)
        return self

    def close(self) -> None:
        if self._open:
            logger.debug("Bridge session closed after %d command(s)", self.commands_sent)
        self._open = False

    def __enter__(self) -> "BridgeSession":
        return self.open()

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def send_command(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self._open:
            raise BridgeOperationError("BRIDGE_UNAVAILABLE", "Bridge session is not open")
        with self._lock:
            started = time.perf_counter()
            logger.debug("-> %s %s", command, json.dumps(payload or {})[:200])
            result = self._relay.send(command, payload or {})
            self.commands_sent += 1
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug("<- %s ok=%s (%.1fms)", command, result.get("ok"), elapsed_ms)
            return result
