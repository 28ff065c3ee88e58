"""Plant monitor: wires transport session → message gate → snapshot store.

The only object presentation code needs::

    async with PlantMonitor(settings) as monitor:
        unsubscribe = monitor.subscribe(render)
        render(monitor.read())
        ...

A single pump task drains session events in order and applies each one
synchronously, so status changes and reading updates are totally ordered
without locks.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from plantwatch._internal.async_utils import log_task_failure
from plantwatch.gateway.session import (
    SessionConnected,
    SessionDisconnected,
    SessionMessage,
    SessionState,
    TransportSession,
)
from plantwatch.models.config import AppSettings
from plantwatch.telemetry.gate import MessageGate
from plantwatch.telemetry.store import ConnectionStatus, SnapshotStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from plantwatch.gateway.session import SessionEvent
    from plantwatch.models.reading import TelemetryReading
    from plantwatch.telemetry.store import Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MonitorStats:
    state: SessionState
    connect_count: int
    connect_failures: int
    messages: int
    accepted: int
    throttled: int
    malformed: int
    stale: int


class PlantMonitor:
    """Owns the snapshot and the session; exposes read/subscribe/start/stop."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        default_reading: TelemetryReading | None = None,
        session: TransportSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings if settings is not None else AppSettings.load()
        self._store = (
            SnapshotStore(default_reading) if default_reading is not None else SnapshotStore()
        )
        self._gate = MessageGate(self._store, self._settings.min_interval, clock=clock)
        self._session = session or TransportSession(event_name=self._settings.event_name)
        self._pump: asyncio.Task[None] | None = None

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def is_running(self) -> bool:
        return self._session.is_open

    @property
    def stats(self) -> MonitorStats:
        gate = self._gate.stats
        return MonitorStats(
            state=self._session.state,
            connect_count=self._session.connect_count,
            connect_failures=self._session.connect_failures,
            messages=self._session.message_count,
            accepted=gate.accepted,
            throttled=gate.throttled,
            malformed=gate.malformed,
            stale=gate.stale,
        )

    # -- Consumer API ------------------------------------------------------------

    def read(self) -> Snapshot:
        """Return the current snapshot."""
        return self._store.read()

    def subscribe(self, listener: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Notify *listener* on every snapshot change; returns an unsubscribe handle."""
        return self._store.subscribe(listener)

    def age_seconds(self) -> float | None:
        return self._store.age_seconds()

    # -- Lifecycle -----------------------------------------------------------------

    async def start(self) -> None:
        """Open the gateway session and begin applying its events.

        Raises :class:`~plantwatch.errors.ConfigurationError` for a bad
        endpoint or options.  Calling it while running is a no-op; calling
        it after reconnection attempts ran out opens a fresh session.
        """
        if not self._session.is_open:
            logger.info("Starting plant monitor for %s", self._settings.endpoint)
            # A fresh session always starts from disconnected.
            self._store.write_status(ConnectionStatus.DISCONNECTED)
            self._gate.reset()
        self._session.open(self._settings.endpoint, self._settings.session_options())
        if self._pump is None or self._pump.done():
            self._pump = asyncio.create_task(self._run_pump(), name="plantwatch-pump")
            self._pump.add_done_callback(log_task_failure)

    async def stop(self) -> None:
        """Close the session and reset the snapshot to its default."""
        await self._session.close()
        pump, self._pump = self._pump, None
        if pump is not None and not pump.done():
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump
        self._gate.reset()
        self._store.reset()
        logger.info("Plant monitor stopped")

    async def wait_stopped(self) -> None:
        """Wait until the session gives up or is closed.

        Returns once every event the session produced has been applied, so
        the snapshot is final for that session.
        """
        await self._session.wait_stopped()
        while self._session.pending_events and self._pump is not None and not self._pump.done():
            await asyncio.sleep(0)

    async def __aenter__(self) -> PlantMonitor:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # -- Event application -----------------------------------------------------------

    async def _run_pump(self) -> None:
        async for event in self._session.events():
            self.apply(event)

    def apply(self, event: SessionEvent) -> None:
        """Apply one session event to the gate and store."""
        if isinstance(event, SessionConnected):
            self._gate.reset()
            self._store.write_status(ConnectionStatus.CONNECTED)
        elif isinstance(event, SessionDisconnected):
            self._store.write_status(ConnectionStatus.DISCONNECTED)
        elif isinstance(event, SessionMessage):
            self._gate.offer(event.payload)
