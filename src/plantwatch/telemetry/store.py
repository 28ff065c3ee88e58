"""Snapshot store: the single source of truth for what consumers display.

Holds one immutable :class:`Snapshot` (latest accepted reading plus
connection status).  Writers replace it wholesale; readers always see a
fully-formed value.  Owned by :class:`~plantwatch.telemetry.monitor.PlantMonitor`
and handed only to the two writers (the message gate and the monitor's
session-event handler).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from plantwatch.models.reading import DEFAULT_READING, TelemetryReading

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ConnectionStatus(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Latest reading and connectivity, as one value."""

    reading: TelemetryReading
    status: ConnectionStatus
    received_at: datetime | None = None
    """When ``reading`` was accepted; ``None`` while showing the default."""

    @property
    def is_connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "reading": self.reading.to_payload(),
        }


class SnapshotStore:
    """In-memory holder of the current :class:`Snapshot` (single event loop)."""

    def __init__(self, default_reading: TelemetryReading = DEFAULT_READING) -> None:
        self._default_reading = default_reading
        self._snapshot = Snapshot(reading=default_reading, status=ConnectionStatus.DISCONNECTED)
        self._listeners: dict[object, Callable[[Snapshot], None]] = {}

    @property
    def default_reading(self) -> TelemetryReading:
        return self._default_reading

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def read(self) -> Snapshot:
        """Return the current snapshot."""
        return self._snapshot

    def write_reading(self, reading: TelemetryReading, received_at: datetime | None = None) -> None:
        """Replace the latest reading."""
        self._publish(
            replace(
                self._snapshot,
                reading=reading,
                received_at=received_at or datetime.now(UTC),
            )
        )

    def write_status(self, status: ConnectionStatus) -> None:
        """Replace the connection status.  Unchanged status is not re-published."""
        if status == self._snapshot.status:
            return
        self._publish(replace(self._snapshot, status=status))

    def reset(self) -> None:
        """Restore the default reading and ``disconnected``."""
        initial = Snapshot(reading=self._default_reading, status=ConnectionStatus.DISCONNECTED)
        if initial == self._snapshot:
            return
        self._publish(initial)

    def age_seconds(self) -> float | None:
        """Seconds since the current reading was accepted, or ``None`` for the default."""
        received_at = self._snapshot.received_at
        if received_at is None:
            return None
        return time.time() - received_at.timestamp()

    def subscribe(self, listener: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Call *listener* with every new snapshot.  Returns an unsubscribe handle."""
        token = object()
        self._listeners[token] = listener

        def _unsubscribe() -> None:
            self._listeners.pop(token, None)

        return _unsubscribe

    def _publish(self, snapshot: Snapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners.values()):
            try:
                listener(snapshot)
            except Exception:
                logger.warning("Snapshot listener %s failed", listener, exc_info=True)
