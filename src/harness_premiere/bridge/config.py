import json
import logging
import os
import platform
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from harness_premiere.bridge.protocol import (
    DEFAULT_HOST,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PORT,
    DEFAULT_TIMEOUT_SECONDS,
    TRANSPORT_HTTP,
    TRANSPORTS,
)
from harness_premiere.core.errors import BridgeOperationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
LOCAL_CONFIG_FILENAME = ".premiere-bridge.json"
IPC_DIRNAME = "uxp-ipc"

ENV_PREFIX = "HARNESS_PREMIERE_"


def default_config_dir() -> Path:
    override = os.getenv(f"{ENV_PREFIX}CONFIG_DIR")
    if override:
        return Path(override)
    if platform.system() == "Darwin":
        return Path.home() / "Library" / "Application Support" / "PremiereBridge"
    root = Path(os.getenv("APPDATA", Path.home()))
    return root / "PremiereBridge"


def generate_token() -> str:
    return secrets.token_hex(16)


@dataclass
class BridgeConfig:
    port: int = DEFAULT_PORT
    token: Optional[str] = None
    transport: str = TRANSPORT_HTTP
    host: str = DEFAULT_HOST
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    config_dir: Path = field(default_factory=default_config_dir)
    sources: List[str] = field(default_factory=list)

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def ipc_dir(self) -> Path:
        return self.config_dir / IPC_DIRNAME

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def to_dict(self, reveal_token: bool = False) -> Dict[str, Any]:
        token = self.token
        if token and not reveal_token:
            token = token[:4] + "..." if len(token) > 4 else "..."
        return {
            "port": self.port,
            "token": token,
            "transport": self.transport,
            "host": self.host,
            "timeoutSeconds": self.timeout_seconds,
            "pollIntervalSeconds": self.poll_interval_seconds,
            "configPath": str(self.config_path),
            "ipcDir": str(self.ipc_dir),
            "sources": list(self.sources),
        }


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read config at %s: %s", path, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top-level value must be an object", path)
        return None
    return data


def _env_values() -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for key in ("port", "token", "transport", "host", "timeout"):
        raw = os.getenv(f"{ENV_PREFIX}{key.upper()}")
        if raw:
            values["timeout_seconds" if key == "timeout" else key] = raw
    return values


def _coerce(values: Dict[str, Any], config: BridgeConfig) -> None:
    if values.get("port") is not None:
        try:
            config.port = int(values["port"])
        except (TypeError, ValueError) as exc:
            raise BridgeOperationError("INVALID_INPUT", f"port must be an integer: {values['port']!r}") from exc
    if values.get("token"):
        config.token = str(values["token"])
    if values.get("transport"):
        config.transport = str(values["transport"]).lower()
    if values.get("host"):
        config.host = str(values["host"])
    for key in ("timeout_seconds", "timeoutSeconds"):
        if values.get(key) is not None:
            try:
                config.timeout_seconds = float(values[key])
            except (TypeError, ValueError) as exc:
                raise BridgeOperationError("INVALID_INPUT", f"timeout must be a number: {values[key]!r}") from exc
    for key in ("poll_interval_seconds", "pollIntervalSeconds"):
        if values.get(key) is not None:
            config.poll_interval_seconds = float(values[key])


def load_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_dir: Optional[Path] = None,
    cwd: Optional[Path] = None,
) -> BridgeConfig:
    """Merge the user config file, a project-local file, env vars and overrides."""
    config = BridgeConfig(config_dir=config_dir or default_config_dir())
    candidates = [config.config_path, (cwd or Path.cwd()) / LOCAL_CONFIG_FILENAME]
    for path in candidates:
        data = _read_json(path)
        if data is None:
            continue
        _coerce(data, config)
        config.sources.append(str(path))
    env = _env_values()
    if env:
        _coerce(env, config)
        config.sources.append("env")
    if overrides:
        _coerce({k: v for k, v in overrides.items() if v is not None}, config)
    if config.port <= 0 or config.port > 65535:
        raise BridgeOperationError("INVALID_INPUT", f"port out of range: {config.port}")
    if config.transport not in TRANSPORTS:
        raise BridgeOperationError(
            "INVALID_INPUT",
            f"transport must be one of {', '.join(TRANSPORTS)}, got {config.transport!r}",
        )
    if config.timeout_seconds <= 0:
        raise BridgeOperationError("INVALID_INPUT", "timeout must be > 0")
    return config


def save_config(config: BridgeConfig) -> Path:
    config.config_dir.mkdir(parents=True, exist_ok=True)
    existing = _read_json(config.config_path) or {}
    existing.update({"port": config.port, "token": config.token, "transport": config.transport})
    config.config_path.write_text(json.dumps(existing, indent=2), encoding="utf-8")
    return config.config_path
