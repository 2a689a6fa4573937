from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_SERIAL_PORT_ENV = "RFLINK_SERIAL_PORT"
_BAUD_RATE_ENV = "RFLINK_BAUD_RATE"
_LISTEN_HOST_ENV = "RFLINK_LISTEN_HOST"
_LISTEN_PORT_ENV = "RFLINK_LISTEN_PORT"
_NAME_MAP_ENV = "RFLINK_NAME_MAP_PATH"
_TIMEOUT_ENV = "RFLINK_METRIC_TIMEOUT"
_NAMESPACE_ENV = "RFLINK_METRIC_NAMESPACE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    serial_port: str
    baud_rate: int
    listen_host: str
    listen_port: int
    name_map_path: Optional[str]
    metric_timeout: float
    metric_namespace: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        serial_port=_read_str_env(_SERIAL_PORT_ENV, "/dev/ttyUSB0"),
        baud_rate=_read_positive_int(_BAUD_RATE_ENV, 57600),
        listen_host=_read_str_env(_LISTEN_HOST_ENV, "0.0.0.0"),
        listen_port=_read_positive_int(_LISTEN_PORT_ENV, 8080),
        name_map_path=_read_optional_env(_NAME_MAP_ENV, "mapping.yaml"),
        metric_timeout=_read_positive_float(_TIMEOUT_ENV, 180.0),
        metric_namespace=_read_str_env(_NAMESPACE_ENV, "rflink"),
        log_level=_read_log_level("INFO"),
    )
