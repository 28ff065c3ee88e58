"""Live telemetry viewer for water-treatment plant gateways."""

from __future__ import annotations

__version__ = "0.1.0"
