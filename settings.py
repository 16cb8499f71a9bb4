from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_DATABASE_URL_ENV = "SENSORS_DATABASE_URL"
_PAGE_SIZE_ENV = "SENSORS_PAGE_SIZE"
_LINK_BASE_ENV = "SENSORS_LINK_BASE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    database_url: str
    page_size: int
    link_base: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_page_size(default: int) -> int:
    value = os.getenv(_PAGE_SIZE_ENV)
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


def _read_link_base(default: str) -> str:
    return _read_str_env(_LINK_BASE_ENV, default).rstrip("/")


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
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite+aiosqlite:///./tmp/sensors.db"),
        page_size=_read_page_size(5),
        link_base=_read_link_base(""),
        log_level=_read_log_level("INFO"),
    )
