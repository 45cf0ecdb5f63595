from __future__ import annotations

import logging

import pytest

import app
import client
import settings
from core.errors import ConfigError


def test_redacting_formatter_masks_secrets() -> None:
    formatter = app._RedactingFormatter(["123:abc"], fmt="%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "GET /bot123:abc/getUpdates", None, None)
    assert formatter.format(record) == "GET /bot***/getUpdates"


def test_token_and_secret_are_always_redacted(monkeypatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("ADMIN_PASS", "hunter2")
    monkeypatch.setenv("EXTRA_SECRET", "longer-secret-value")

    assert set(app._collect_redaction_values({})) == {"123:abc", "hunter2"}
    values = app._collect_redaction_values({"redact": {"enabled": True, "patterns": ["EXTRA_SECRET"]}})
    assert values[0] == "longer-secret-value"
    assert "hunter2" in values


def test_missing_credentials_are_config_errors(monkeypatch) -> None:
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)
    monkeypatch.setattr(settings, "TELEGRAM_CHAT_ID", None)
    with pytest.raises(ConfigError):
        client.build_client()
    with pytest.raises(ConfigError):
        client.resolve_chat_id()

    monkeypatch.setattr(settings, "TELEGRAM_CHAT_ID", "my-group")
    with pytest.raises(ConfigError):
        client.resolve_chat_id()

    monkeypatch.setattr(settings, "TELEGRAM_CHAT_ID", "-1001234")
    assert client.resolve_chat_id() == -1001234


def test_run_refuses_to_start_without_token(monkeypatch) -> None:
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", None)
    monkeypatch.setattr(settings, "LOGGING", {"enabled": False})
    monkeypatch.setattr(app, "_print_banner", lambda: None)
    assert app._run() == 2


def test_engine_config_from_settings(monkeypatch) -> None:
    monkeypatch.setattr(settings, "WIPE_INTERVAL_HOURS", "24")
    monkeypatch.setattr(settings, "WIPE_TIME", "09:15")
    monkeypatch.setattr(settings, "ADMIN_PASS", "hunter2")
    config = app._build_engine_config(-5)
    assert config.chat_id == -5
    assert config.default_interval_hours == 24
    assert config.default_time_of_day == "09:15"
    assert config.admin_secret == "hunter2"

    monkeypatch.setattr(settings, "WIPE_INTERVAL_HOURS", "daily")
    with pytest.raises(ConfigError):
        app._build_engine_config(-5)
