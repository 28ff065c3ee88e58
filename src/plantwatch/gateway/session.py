"""Transport session: one logical Socket.IO connection to the telemetry gateway.

The session runs a background *runner* task that connects, completes the
Socket.IO handshake, reads frames, and reconnects with a fixed delay.  It
does not touch any state directly; instead it produces typed events onto a
queue which a single consumer drains in order::

    session.open("https://scada.example:5000", SessionOptions())
    async for event in session.events():
        ...  # SessionConnected / SessionMessage / SessionDisconnected
    await session.close()

State machine::

    idle ──open()──▶ connecting ──ok──▶ connected
                        │  ▲                │ lost
               failure  ▼  │ delay          ▼
                     reconnect_wait ◀───────┘
    (attempts exhausted or reconnect off → idle;  close() → closed)

Every event carries the *generation* of the ``open()`` that produced it.
``close()`` bumps the generation, so events from a superseded runner are
discarded at dequeue time rather than reaching the snapshot.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from plantwatch.errors import ConfigurationError, GatewayConnectionError, ProtocolError
from plantwatch.gateway.protocol import (
    PONG,
    OpenInfo,
    PacketKind,
    decode_packet,
    encode_connect,
    encode_disconnect,
    parse_open,
    socketio_url,
)
from plantwatch.models.config import SessionOptions

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_CLOSE_TIMEOUT = 2.0


class SessionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_WAIT = "reconnect_wait"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class SessionConnected:
    generation: int


@dataclass(frozen=True, slots=True)
class SessionDisconnected:
    generation: int
    reason: str = ""


@dataclass(frozen=True, slots=True)
class SessionMessage:
    generation: int
    payload: Any


SessionEvent = SessionConnected | SessionDisconnected | SessionMessage


def _coerce_options(options: SessionOptions | Mapping[str, Any] | None) -> SessionOptions:
    if options is None:
        return SessionOptions()
    if isinstance(options, SessionOptions):
        return options
    try:
        return SessionOptions.model_validate(dict(options))
    except (ValidationError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid session options: {exc}") from exc


class TransportSession:
    """Maintains at most one live connection to a gateway endpoint.

    Parameters
    ----------
    event_name:
        Socket.IO event carrying telemetry payloads.
    namespace:
        Socket.IO namespace to join (``"/"`` by default).
    """

    def __init__(self, *, event_name: str = "mqtt_message", namespace: str = "/") -> None:
        self._event_name = event_name
        self._namespace = namespace
        self._state = SessionState.IDLE
        self._generation = 0
        self._url: str | None = None
        self._runner: asyncio.Task[None] | None = None
        self._queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._connect_count = 0
        self._connect_failures = 0
        self._message_count = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def url(self) -> str | None:
        """Resolved websocket URL of the last ``open()``."""
        return self._url

    @property
    def is_open(self) -> bool:
        """``True`` while the runner is alive (connecting, connected, or waiting)."""
        return self._runner is not None and not self._runner.done()

    @property
    def connect_count(self) -> int:
        """Number of connections established since construction."""
        return self._connect_count

    @property
    def connect_failures(self) -> int:
        """Number of failed connect/handshake attempts since construction."""
        return self._connect_failures

    @property
    def message_count(self) -> int:
        """Number of telemetry events received from the gateway."""
        return self._message_count

    # -- Lifecycle -------------------------------------------------------------

    def open(
        self,
        endpoint: str,
        options: SessionOptions | Mapping[str, Any] | None = None,
    ) -> None:
        """Start connecting to *endpoint*.  No-op while already open.

        Must be called with a running event loop.  Raises
        :class:`ConfigurationError` for a malformed endpoint or options.
        """
        if self.is_open:
            return
        url = socketio_url(endpoint)
        opts = _coerce_options(options)

        self._generation += 1
        self._drain()
        self._url = url
        self._state = SessionState.CONNECTING
        self._runner = asyncio.create_task(
            self._run(self._generation, url, opts),
            name=f"plantwatch-session-{self._generation}",
        )
        self._runner.add_done_callback(self._on_runner_done)
        logger.info("Gateway session %d opened for %s", self._generation, url)

    async def close(self) -> None:
        """Release the connection and stop all event delivery.

        Cancels a pending reconnect delay or in-flight connect.  Safe to
        call repeatedly.
        """
        if self._state is SessionState.CLOSED and self._runner is None:
            return
        self._generation += 1
        self._state = SessionState.CLOSED
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        self._drain()
        logger.info("Gateway session closed")

    # -- Event delivery ----------------------------------------------------------

    async def next_event(self) -> SessionEvent:
        """Wait for the next event from the current generation."""
        while True:
            event = await self._queue.get()
            if event.generation == self._generation and self._state is not SessionState.CLOSED:
                return event
            logger.debug(
                "Discarding %s from superseded session %d",
                type(event).__name__,
                event.generation,
            )

    @property
    def pending_events(self) -> int:
        """Events queued but not yet taken by a consumer."""
        return self._queue.qsize()

    async def wait_stopped(self) -> None:
        """Wait until the runner stops: closed, reconnect disabled, or attempts exhausted."""
        runner = self._runner
        if runner is not None and not runner.done():
            await asyncio.wait({runner})

    async def events(self) -> AsyncIterator[SessionEvent]:
        """Yield events in arrival order until cancelled."""
        while True:
            yield await self.next_event()

    def _emit(self, event: SessionEvent) -> None:
        if event.generation != self._generation or self._state is SessionState.CLOSED:
            return
        self._queue.put_nowait(event)

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def _on_runner_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Gateway session runner crashed", exc_info=exc)
            if self._state is not SessionState.CLOSED:
                self._state = SessionState.IDLE

    # -- Runner ------------------------------------------------------------------

    async def _run(self, generation: int, url: str, options: SessionOptions) -> None:
        """Connect, read until the link drops, then apply the reconnect policy."""
        attempts = 0
        while True:
            self._state = SessionState.CONNECTING
            connected = False
            reason = ""
            try:
                async with self._dial(url, options) as (ws, info):
                    connected = True
                    attempts = 0
                    self._connect_count += 1
                    self._state = SessionState.CONNECTED
                    logger.info("Connected to telemetry gateway (sid=%s)", info.sid)
                    self._emit(SessionConnected(generation))
                    reason = await self._receive(ws, info, generation)
            except GatewayConnectionError as exc:
                reason = str(exc)
                if not connected:
                    self._connect_failures += 1
                    logger.warning("Gateway connection failed: %s", exc)
            except Exception as exc:
                reason = f"unexpected error ({exc})"
                logger.exception("Unexpected error on gateway connection")
                if not connected:
                    self._connect_failures += 1

            if connected:
                logger.info("Disconnected from telemetry gateway: %s", reason)
                self._emit(SessionDisconnected(generation, reason))

            if not options.reconnect:
                self._state = SessionState.IDLE
                return
            if attempts >= options.max_reconnect_attempts:
                logger.warning(
                    "Giving up on %s after %d reconnection attempt(s)",
                    url,
                    attempts,
                )
                self._state = SessionState.IDLE
                return

            attempts += 1
            self._state = SessionState.RECONNECT_WAIT
            logger.info(
                "Reconnecting in %.1fs (attempt %d/%d)",
                options.reconnect_delay,
                attempts,
                options.max_reconnect_attempts,
            )
            await asyncio.sleep(options.reconnect_delay)

    @asynccontextmanager
    async def _dial(
        self, url: str, options: SessionOptions
    ) -> AsyncIterator[tuple[Any, OpenInfo]]:
        """Open the websocket and complete the handshake; always closes on exit.

        Raises :class:`GatewayConnectionError` on connect or handshake failure.
        """
        import websockets.asyncio.client as ws_client

        try:
            ws = await ws_client.connect(
                url,
                open_timeout=options.connect_timeout,
                close_timeout=_CLOSE_TIMEOUT,
            )
        except Exception as exc:
            raise GatewayConnectionError(f"Failed to connect to gateway at {url}: {exc}") from exc

        try:
            try:
                info = await self._handshake(ws, options.connect_timeout)
            except GatewayConnectionError:
                raise
            except Exception as exc:
                raise GatewayConnectionError(f"Handshake failed with {url}: {exc}") from exc
            yield ws, info
        finally:
            with contextlib.suppress(Exception):
                await ws.send(encode_disconnect(self._namespace))
            with contextlib.suppress(Exception):
                await ws.close()

    async def _handshake(self, ws: Any, timeout: float) -> OpenInfo:
        """Engine.IO OPEN → Socket.IO CONNECT → CONNECT ack."""
        raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
        info = parse_open(decode_packet(raw))
        logger.debug("Engine.IO open: sid=%s ping=%.0fs", info.sid, info.ping_interval)

        await ws.send(encode_connect(self._namespace))
        while True:
            raw = await asyncio.wait_for(ws.recv(), timeout=timeout)
            packet = decode_packet(raw)
            if packet.kind is PacketKind.PING:
                await ws.send(PONG)
                continue
            if packet.kind is PacketKind.NOOP:
                continue
            if packet.kind is PacketKind.CONNECT and packet.namespace == self._namespace:
                return info
            if packet.kind is PacketKind.CONNECT_ERROR:
                raise GatewayConnectionError(f"Gateway refused connection: {packet.data}")
            raise GatewayConnectionError(f"Unexpected handshake packet: {packet.kind}")

    async def _receive(self, ws: Any, info: OpenInfo, generation: int) -> str:
        """Read frames until the connection ends; return the reason."""
        while True:
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=info.liveness_timeout)
            except TimeoutError:
                return f"no frames for {info.liveness_timeout:.0f}s"
            except Exception as exc:
                # ConnectionClosed and other WS errors
                return f"connection closed ({exc})"

            try:
                packet = decode_packet(raw)
            except ProtocolError as exc:
                logger.warning("Ignoring undecodable frame: %s", exc)
                continue

            if packet.kind is PacketKind.PING:
                try:
                    await ws.send(PONG)
                except Exception as exc:
                    return f"pong failed ({exc})"
            elif packet.kind is PacketKind.EVENT:
                if packet.namespace == self._namespace and packet.event == self._event_name:
                    self._message_count += 1
                    self._emit(SessionMessage(generation, packet.data))
                else:
                    logger.debug("Ignoring event %r on %s", packet.event, packet.namespace)
            elif packet.kind is PacketKind.DISCONNECT and packet.namespace == self._namespace:
                return "server disconnect"
            elif packet.kind is PacketKind.CLOSE:
                return "transport close"
