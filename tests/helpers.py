from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from tasktracker.settings import Settings, get_settings


def make_settings(**overrides) -> Settings:
    return replace(get_settings(), **{"persistence_backend": "memory", **overrides})


def in_minutes(minutes: float) -> str:
    """ISO timestamp, with offset, a number of minutes from the real now."""
    return (datetime.now().astimezone() + timedelta(minutes=minutes)).isoformat()
