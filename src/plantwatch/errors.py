"""Exception hierarchy for plantwatch.

``GatewayConnectionError`` and ``DataFormatError`` are handled inside the
sync client (logged and counted).  Only ``ConfigurationError`` is raised to
callers of :meth:`PlantMonitor.start` / :meth:`TransportSession.open`.
"""

from __future__ import annotations


class PlantwatchError(Exception):
    """Base class for all plantwatch errors."""


class ConfigurationError(PlantwatchError):
    """Invalid endpoint, options, or settings."""


class GatewayConnectionError(PlantwatchError):
    """Failed to connect to, or lost the connection with, the telemetry gateway."""


class ProtocolError(GatewayConnectionError):
    """A frame from the gateway could not be decoded."""


class DataFormatError(PlantwatchError):
    """A telemetry payload is missing required channels or has bad values."""

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing: list[str] = list(missing or [])
