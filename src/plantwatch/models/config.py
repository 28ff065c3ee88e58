from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from plantwatch.errors import ConfigurationError


class SessionOptions(BaseModel):
    """Reconnection policy for a :class:`TransportSession`."""

    reconnect: bool = True
    max_reconnect_attempts: int = Field(default=10, ge=0)
    reconnect_delay: float = Field(default=2.0, ge=0)
    """Fixed delay in seconds between reconnection attempts."""
    connect_timeout: float = Field(default=10.0, gt=0)
    """Upper bound in seconds for the websocket open and each handshake step."""


class AppSettings(BaseSettings):
    """Application-wide settings populated from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PLANTWATCH_",
        extra="ignore",
    )

    endpoint: str = "http://localhost:5000"
    event_name: str = "mqtt_message"
    reconnection: bool = True
    reconnection_attempts: int = Field(default=10, ge=0)
    reconnection_delay: float = Field(default=2.0, ge=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    min_interval: float = Field(default=100.0, ge=0)
    log_level: str = "WARNING"

    @classmethod
    def load(cls, **overrides: Any) -> AppSettings:
        """Build settings from the environment, raising :class:`ConfigurationError`."""
        try:
            return cls(**overrides)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc

    def merge_overrides(self, **overrides: Any) -> AppSettings:
        """Return a new validated copy with non-``None`` CLI overrides applied."""
        data: dict[str, Any] = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        try:
            return AppSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc

    def session_options(self) -> SessionOptions:
        return SessionOptions(
            reconnect=self.reconnection,
            max_reconnect_attempts=self.reconnection_attempts,
            reconnect_delay=self.reconnection_delay,
            connect_timeout=self.connect_timeout,
        )
