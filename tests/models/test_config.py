"""Tests for AppSettings and SessionOptions."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from plantwatch.errors import ConfigurationError
from plantwatch.models.config import AppSettings, SessionOptions


class TestSessionOptions:
    def test_defaults_match_gateway_client(self) -> None:
        opts = SessionOptions()
        assert opts.reconnect is True
        assert opts.max_reconnect_attempts == 10
        assert opts.reconnect_delay == 2.0

    def test_negative_attempts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SessionOptions(max_reconnect_attempts=-1)

    def test_zero_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SessionOptions(connect_timeout=0)


class TestAppSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PLANTWATCH_ENDPOINT", raising=False)
        settings = AppSettings()
        assert settings.endpoint == "http://localhost:5000"
        assert settings.event_name == "mqtt_message"
        assert settings.min_interval == 100.0

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLANTWATCH_ENDPOINT", "https://scada.example:5000")
        monkeypatch.setenv("PLANTWATCH_MIN_INTERVAL", "10")
        monkeypatch.setenv("PLANTWATCH_RECONNECTION", "false")
        settings = AppSettings.load()
        assert settings.endpoint == "https://scada.example:5000"
        assert settings.min_interval == 10.0
        assert settings.reconnection is False

    def test_load_invalid_raises_configuration_error(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLANTWATCH_RECONNECTION_ATTEMPTS", "-3")
        with pytest.raises(ConfigurationError):
            AppSettings.load()

    def test_merge_overrides_skips_none(self) -> None:
        base = AppSettings(endpoint="http://a:1", min_interval=30)
        merged = base.merge_overrides(endpoint=None, min_interval=5.0)
        assert merged.endpoint == "http://a:1"
        assert merged.min_interval == 5.0
        assert base.min_interval == 30

    def test_merge_overrides_invalid(self) -> None:
        with pytest.raises(ConfigurationError):
            AppSettings().merge_overrides(reconnection_delay=-1)

    def test_session_options(self) -> None:
        settings = AppSettings(
            reconnection=False,
            reconnection_attempts=3,
            reconnection_delay=0.5,
            connect_timeout=4,
        )
        opts = settings.session_options()
        assert opts == SessionOptions(
            reconnect=False,
            max_reconnect_attempts=3,
            reconnect_delay=0.5,
            connect_timeout=4,
        )
