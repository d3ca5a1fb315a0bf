from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import time
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/habits.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - NOTIFICATIONS_ENABLED: 'false' to stop scheduling habit reminders (default: true)
    - RESET_TIME: HH:MM daily reset time shown to the user (default: 00:00)
    - CASCADE_COMPLETIONS_ON_DELETE: 'true' to drop a habit's history when it is deleted
    - LOG_LEVEL: logging level name (default: INFO)
    - LOG_FILE: optional path of a rotating log file
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    notifications_enabled: bool
    reset_time: time
    cascade_completions_on_delete: bool
    log_level: str
    log_file: Optional[str]


@dataclass(frozen=True)
class TrackerConfig:
    """
    The subset of settings the core consumes, injected at construction.
    """

    notifications_enabled: bool = True
    reset_time: time = time(0, 0)
    cascade_completions_on_delete: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrackerConfig":
        return cls(
            notifications_enabled=settings.notifications_enabled,
            reset_time=settings.reset_time,
            cascade_completions_on_delete=settings.cascade_completions_on_delete,
        )


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_time(value: str, default: time) -> time:
    try:
        parsed = time.fromisoformat(value.strip())
    except ValueError:
        return default
    return parsed.replace(second=0, microsecond=0)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/habits.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    log_file = os.getenv("LOG_FILE") or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        notifications_enabled=_parse_bool(_get_env("NOTIFICATIONS_ENABLED", "true"), True),
        reset_time=_parse_time(_get_env("RESET_TIME", "00:00"), time(0, 0)),
        cascade_completions_on_delete=_parse_bool(_get_env("CASCADE_COMPLETIONS_ON_DELETE", "false"), False),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_file=log_file.strip() if log_file else None,
    )
