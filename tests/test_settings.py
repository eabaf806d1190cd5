import logging

import pytest

from tasktracker.logging_setup import setup_logging
from tasktracker.settings import get_settings


def test_defaults(monkeypatch):
    for name in [
        "PERSISTENCE_BACKEND",
        "NOTIFICATION_PERMISSION",
        "NOTIFICATION_PROMPT_RESPONSE",
        "NOTIFICATION_SOUND",
        "NOTIFICATION_INBOX_SIZE",
        "LOG_LEVEL",
        "LOG_FILE",
    ]:
        monkeypatch.delenv(name, raising=False)
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.notification_permission == "default"
    assert s.notification_prompt_response == "granted"
    assert s.notification_sound is False
    assert s.notification_inbox_size == 50
    assert s.log_level == "INFO"
    assert s.log_file is None


def test_unsupported_values_fall_back(monkeypatch):
    monkeypatch.setenv("PERSISTENCE_BACKEND", "postgres")
    monkeypatch.setenv("NOTIFICATION_PERMISSION", "sometimes")
    monkeypatch.setenv("NOTIFICATION_PROMPT_RESPONSE", "default")
    monkeypatch.setenv("NOTIFICATION_INBOX_SIZE", "-3")
    monkeypatch.setenv("LOG_LEVEL", "chatty")
    s = get_settings()
    assert s.persistence_backend == "memory"
    assert s.notification_permission == "default"
    assert s.notification_prompt_response == "granted"
    assert s.notification_inbox_size == 50
    assert s.log_level == "INFO"


def test_explicit_values(monkeypatch):
    monkeypatch.setenv("NOTIFICATION_PERMISSION", "Granted")
    monkeypatch.setenv("NOTIFICATION_SOUND", "yes")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
    s = get_settings()
    assert s.notification_permission == "granted"
    assert s.notification_sound is True
    assert s.cors_allow_origins == ["http://a.test", "http://b.test"]


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_setup_logging_writes_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "tracker.log"
    setup_logging(level="WARNING", log_file=log_file)
    logging.getLogger("tasktracker.test").debug("scheduled %d alerts", 2)
    for h in logging.getLogger().handlers:
        h.flush()
    assert "scheduled 2 alerts" in log_file.read_text(encoding="utf-8")
