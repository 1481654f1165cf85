from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .origin import DEFAULT_MARKER
from .transport import DEFAULT_TIMEOUT_S, DEFAULT_USER_AGENT

CONFIG_ENV_VAR = "DVT_BEACON_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class BeaconConfig:
    # None => discover from the loader script element
    endpoint: Optional[str] = None
    marker: str = DEFAULT_MARKER


@dataclass(frozen=True)
class TransportConfig:
    timeout_s: float = DEFAULT_TIMEOUT_S
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class CollectorConfig:
    host: str = "127.0.0.1"
    port: int = 8290
    max_events: int = 1000


@dataclass(frozen=True)
class Settings:
    beacon: BeaconConfig = field(default_factory=BeaconConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    log_level: str = "INFO"


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    v = data.get(name)
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ConfigError(f"'{name}' must be a mapping, got: {v!r}")
    return v


def _as_int(v: Any, *, field: str, lo: int = 1) -> int:
    try:
        n = int(v)
    except Exception as e:  # noqa: BLE001
        raise ConfigError(f"Invalid int for '{field}': {v!r}") from e
    if n < lo:
        raise ConfigError(f"'{field}' must be >= {lo}, got {n}")
    return n


def _as_float(v: Any, *, field: str) -> float:
    try:
        x = float(v)
    except Exception as e:  # noqa: BLE001
        raise ConfigError(f"Invalid float for '{field}': {v!r}") from e
    if x <= 0:
        raise ConfigError(f"'{field}' must be > 0, got {x}")
    return x


def _as_str(v: Any, *, field: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ConfigError(f"Invalid string for '{field}': {v!r}")
    return v.strip()


def parse_settings(data: Any) -> Settings:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    b = _section(data, "beacon")
    t = _section(data, "transport")
    c = _section(data, "collector")
    lg = _section(data, "logging")

    endpoint = b.get("endpoint")
    beacon = BeaconConfig(
        endpoint=_as_str(endpoint, field="beacon.endpoint") if endpoint is not None else None,
        marker=_as_str(b.get("marker", DEFAULT_MARKER), field="beacon.marker"),
    )
    transport = TransportConfig(
        timeout_s=_as_float(t.get("timeout_s", DEFAULT_TIMEOUT_S), field="transport.timeout_s"),
        user_agent=_as_str(t.get("user_agent", DEFAULT_USER_AGENT), field="transport.user_agent"),
    )
    collector = CollectorConfig(
        host=_as_str(c.get("host", "127.0.0.1"), field="collector.host"),
        port=_as_int(c.get("port", 8290), field="collector.port"),
        max_events=_as_int(c.get("max_events", 1000), field="collector.max_events"),
    )
    level = _as_str(lg.get("level", "INFO"), field="logging.level").upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"Unknown logging.level: {level!r}")
    return Settings(beacon=beacon, transport=transport, collector=collector, log_level=level)


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Read settings from YAML. The path comes from the argument, then
    $DVT_BEACON_CONFIG, then config.yaml next to this package. A missing
    default file just means defaults; a missing explicit file is an error.
    """
    explicit = path or os.environ.get(CONFIG_ENV_VAR)
    p = Path(explicit) if explicit else DEFAULT_CONFIG_PATH
    if not p.exists():
        if explicit:
            raise FileNotFoundError(str(p))
        return Settings()
    with open(p, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
    return parse_settings(data)
