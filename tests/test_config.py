"""Tests for settings loading."""

import logging

from kether.communication.tags import DEFAULT_ALLOWED_TAGS
from kether.config import DEFAULT_ECHO_TIMEOUT, KetherSettings, load_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("KETHER_ECHO_TIMEOUT", "KETHER_NOTIFICATION_THROTTLE", "KETHER_STREAM_BACKOFF"):
            monkeypatch.delenv(name, raising=False)
        settings = KetherSettings(_env_file=None)
        assert settings.echo_timeout == 5.0
        assert settings.notification_throttle == 0.025
        assert settings.stream_backoff == 0.25
        assert set(settings.allowed_tags) == set(DEFAULT_ALLOWED_TAGS)

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("KETHER_ECHO_TIMEOUT", "1.5")
        monkeypatch.setenv("KETHER_LOG_LEVEL", "DEBUG")
        settings = KetherSettings(_env_file=None)
        assert settings.echo_timeout == 1.5
        assert settings.log_level == "DEBUG"

    def test_overrides(self):
        settings = load_settings(echo_timeout=0.5, allowed_tags=["code"])
        assert settings.echo_timeout == 0.5
        assert settings.allowed_tags == ["code"]


class TestLoadSettings:
    def test_non_positive_echo_timeout_falls_back(self, caplog):
        with caplog.at_level(logging.WARNING, logger="kether.config"):
            settings = load_settings(echo_timeout=0)
        assert settings.echo_timeout == DEFAULT_ECHO_TIMEOUT
        assert "echo_timeout" in caplog.text
