"""Message gate: validation plus a minimum-interval throttle.

Every inbound payload passes through :meth:`MessageGate.offer`:

1. **Liveness gate**: payloads delivered while the snapshot reads
   ``disconnected`` are dropped (the transport may still flush frames after
   a disconnect event).
2. **Format gate**: the payload must carry every channel with a numeric
   value; otherwise it is dropped and counted as a format error.  A
   malformed payload never touches the snapshot.
3. **Throttle gate**: accepted only if ``min_interval`` seconds have
   elapsed since the last accepted payload.  Throttled payloads are
   discarded, not queued or merged: last-value-wins with sampling.

:meth:`reset` forgets the last acceptance time so the first payload after a
(re)connect is always accepted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from plantwatch.errors import ConfigurationError, DataFormatError
from plantwatch.models.reading import TelemetryReading
from plantwatch.telemetry.store import ConnectionStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from plantwatch.telemetry.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GateStats:
    accepted: int
    throttled: int
    malformed: int
    stale: int


class MessageGate:
    """Decides acceptance of each inbound payload and writes accepted readings.

    Usage::

        gate = MessageGate(store, min_interval=100.0)
        gate.reset()              # on every connect
        gate.offer(payload)       # on every message
    """

    def __init__(
        self,
        store: SnapshotStore,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if min_interval < 0:
            raise ConfigurationError(f"min_interval must be >= 0, got {min_interval}")
        self._store = store
        self._min_interval = float(min_interval)
        self._clock = clock
        self._last_accepted: float | None = None
        self._accepted = 0
        self._throttled = 0
        self._malformed = 0
        self._stale = 0

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def last_accepted(self) -> float | None:
        """Clock time of the last accepted payload, or ``None`` if none since reset."""
        return self._last_accepted

    @property
    def stats(self) -> GateStats:
        return GateStats(
            accepted=self._accepted,
            throttled=self._throttled,
            malformed=self._malformed,
            stale=self._stale,
        )

    def should_accept(self, now: float) -> bool:
        """Throttle gate only: has ``min_interval`` elapsed since the last acceptance?"""
        last = self._last_accepted
        return last is None or (now - last) >= self._min_interval

    def record_accept(self, now: float) -> None:
        self._last_accepted = now

    def reset(self) -> None:
        """Clear the throttle window."""
        self._last_accepted = None

    def offer(self, raw: Any, now: float | None = None) -> bool:
        """Run *raw* through all gates.  Returns ``True`` if the snapshot was updated."""
        if self._store.read().status != ConnectionStatus.CONNECTED:
            self._stale += 1
            logger.debug("Dropping telemetry received while disconnected")
            return False

        try:
            reading = TelemetryReading.from_payload(raw)
        except DataFormatError as exc:
            self._malformed += 1
            logger.warning("Dropping malformed telemetry payload: %s", exc)
            return False

        if now is None:
            now = self._clock()
        if not self.should_accept(now):
            self._throttled += 1
            logger.debug(
                "Throttled reading at %s (%.1fs since last accepted, window %.1fs)",
                reading.timestamp,
                now - (self._last_accepted or 0.0),
                self._min_interval,
            )
            return False

        self.record_accept(now)
        self._accepted += 1
        self._store.write_reading(reading)
        logger.debug("Accepted reading at %s", reading.timestamp)
        return True
