from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import find_dotenv, load_dotenv


_TARGET_URL_ENV = "TARGET_API_URL"
_PORT_ENV = "PORT"
_TICK_INTERVAL_ENV = "TICK_INTERVAL_MS"
_REQUEST_TIMEOUT_ENV = "REQUEST_TIMEOUT_SECONDS"
_REGISTRY_PATH_ENV = "DEVICE_REGISTRY_PATH"
_WORKER_COUNT_ENV = "DISPATCH_WORKER_COUNT"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_TARGET_URL = "http://localhost:3000/api/telemetry"
DEFAULT_PORT = 4000
# Fast mode. The slow cadence used against real collectors is 5 * 60 * 1000.
DEFAULT_TICK_INTERVAL_MS = 2000
DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_REGISTRY_PATH = "devices.json"


@dataclass(frozen=True)
class Settings:
    target_api_url: str
    port: int
    tick_interval_ms: int
    request_timeout: float
    registry_path: str
    dispatch_workers: Optional[int]
    log_level: str

    @property
    def tick_interval_seconds(self) -> float:
        return self.tick_interval_ms / 1000.0


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_positive_int(name: str, default: Optional[int]) -> Optional[int]:
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
    # .env is looked up from the working directory; existing variables win.
    load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings(
        target_api_url=_read_str_env(_TARGET_URL_ENV, DEFAULT_TARGET_URL),
        port=_read_positive_int(_PORT_ENV, DEFAULT_PORT) or DEFAULT_PORT,
        tick_interval_ms=(
            _read_positive_int(_TICK_INTERVAL_ENV, DEFAULT_TICK_INTERVAL_MS)
            or DEFAULT_TICK_INTERVAL_MS
        ),
        request_timeout=_read_positive_float(_REQUEST_TIMEOUT_ENV, DEFAULT_REQUEST_TIMEOUT),
        registry_path=_read_str_env(_REGISTRY_PATH_ENV, DEFAULT_REGISTRY_PATH),
        dispatch_workers=_read_positive_int(_WORKER_COUNT_ENV, None),
        log_level=_read_log_level("INFO"),
    )
