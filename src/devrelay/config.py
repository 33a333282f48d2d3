from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

# Default listen address - override via DEVRELAY_HOST / DEVRELAY_PORT or the config file.
_DEFAULT_HOST = os.environ.get("DEVRELAY_HOST", "127.0.0.1")
_DEFAULT_PORT = os.environ.get("DEVRELAY_PORT", "3456")

CONFIG_PATH = Path.home() / ".config" / "devrelay" / "config.yml"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env_port() -> int:
    return int(_DEFAULT_PORT) if _DEFAULT_PORT.isdigit() else 3456


@dataclass(frozen=True)
class RelayConfig:
    host: str = _DEFAULT_HOST
    port: int = _env_port()
    # Command relay
    command_timeout: float = 30.0     # seconds a tool call waits for the peer
    poll_interval: float = 0.1        # dispatcher re-check cadence
    reaper_interval: float = 60.0     # how often stale commands are swept
    command_max_age: float = 60.0     # records older than this are reaped, any status
    # Telemetry buffer capacities (oldest entries evicted first)
    network_capacity: int = 5000
    console_capacity: int = 5000
    performance_capacity: int = 500
    max_body_bytes: int = 50 * 1024 * 1024
    log_level: str = "INFO"

    def with_overrides(self, **overrides: Any) -> "RelayConfig":
        given = {k: v for k, v in overrides.items() if v is not None}
        if not given:
            return self
        return RelayConfig(**_validate({**asdict(self), **given}))


def _positive_float(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value) if float(value) > 0 else default


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value) if int(value) > 0 else default


def _validate(cfg: dict[str, Any]) -> dict[str, Any]:
    defaults = asdict(RelayConfig())
    merged = {**defaults, **{k: v for k, v in cfg.items() if k in defaults}}
    if not isinstance(merged["host"], str) or not merged["host"].strip():
        merged["host"] = defaults["host"]
    raw_port = merged["port"]
    if isinstance(raw_port, str) and raw_port.isdigit():
        raw_port = int(raw_port)
    merged["port"] = raw_port if isinstance(raw_port, int) and 0 < raw_port < 65536 else defaults["port"]
    for key in ("command_timeout", "poll_interval", "reaper_interval", "command_max_age"):
        merged[key] = _positive_float(merged[key], defaults[key])
    for key in ("network_capacity", "console_capacity", "performance_capacity", "max_body_bytes"):
        merged[key] = _positive_int(merged[key], defaults[key])
    level = str(merged.get("log_level") or "").upper()
    merged["log_level"] = level if level in _LOG_LEVELS else defaults["log_level"]
    return merged


def load_config(path: Path = CONFIG_PATH) -> RelayConfig:
    if not path.exists():
        return RelayConfig()
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return RelayConfig(**_validate(raw if isinstance(raw, dict) else {}))


def save_config(cfg: RelayConfig, path: Path = CONFIG_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    validated = _validate(asdict(cfg))
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(yaml.safe_dump(validated, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
