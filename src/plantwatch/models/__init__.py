from __future__ import annotations

from plantwatch.models.config import AppSettings, SessionOptions
from plantwatch.models.reading import (
    CHANNEL_LABELS,
    CHANNEL_NAMES,
    DEFAULT_READING,
    Channel,
    TelemetryReading,
)

__all__ = [
    # config
    "AppSettings",
    "SessionOptions",
    # reading
    "CHANNEL_LABELS",
    "CHANNEL_NAMES",
    "DEFAULT_READING",
    "Channel",
    "TelemetryReading",
]
