from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

PERMISSION_STATES = {"default", "granted", "denied"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - NOTIFICATION_PERMISSION: initial notification permission: 'default' (default), 'granted' or 'denied'
    - NOTIFICATION_PROMPT_RESPONSE: answer given to a permission prompt: 'granted' (default) or 'denied'
    - NOTIFICATION_SOUND: 'true' to ring the terminal bell with each alert (default: false)
    - NOTIFICATION_INBOX_SIZE: number of delivered alerts kept for the inbox endpoint. Default 50
    - LOG_LEVEL: root log level name. Default 'INFO'
    - LOG_FILE: optional path of a log file
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    notification_permission: str
    notification_prompt_response: str
    notification_sound: bool
    notification_inbox_size: int
    log_level: str
    log_file: Optional[str]


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


def _parse_int(value: str, default: int, minimum: int = 1) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_permission(value: str, default: str, allowed: set) -> str:
    v = value.strip().lower()
    return v if v in allowed else default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/tasks.db").strip()
    cors_raw = _get_env("CORS_ALLOW_ORIGINS", "*")
    origins = _parse_origins(cors_raw)

    permission = _parse_permission(
        _get_env("NOTIFICATION_PERMISSION", "default"), "default", PERMISSION_STATES
    )
    prompt_response = _parse_permission(
        _get_env("NOTIFICATION_PROMPT_RESPONSE", "granted"), "granted", {"granted", "denied"}
    )
    sound = _parse_bool(_get_env("NOTIFICATION_SOUND", "false"), False)
    inbox_size = _parse_int(_get_env("NOTIFICATION_INBOX_SIZE", "50"), 50)

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"
    log_file = os.getenv("LOG_FILE") or None

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        notification_permission=permission,
        notification_prompt_response=prompt_response,
        notification_sound=sound,
        notification_inbox_size=inbox_size,
        log_level=log_level,
        log_file=log_file,
    )
