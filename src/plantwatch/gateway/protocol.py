"""Socket.IO v4 framing over the Engine.IO websocket transport.

Only the subset a read-only telemetry subscriber needs:

Engine.IO (first character of every text frame):
  - ``0`` OPEN ``{"sid", "pingInterval", "pingTimeout", ...}``
  - ``1`` CLOSE
  - ``2`` PING / ``3`` PONG
  - ``4`` MESSAGE (carries a Socket.IO packet)
  - ``6`` NOOP

Socket.IO (second character of a MESSAGE frame):
  - ``0`` CONNECT, ``1`` DISCONNECT, ``2`` EVENT, ``3`` ACK,
    ``4`` CONNECT_ERROR

An EVENT looks like ``42["mqtt_message",{...}]``; a namespace other than
``/`` is written ``42/plant,["event",...]`` and an ack id may precede the
JSON array.  Binary packets are not supported.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from plantwatch.errors import ConfigurationError, ProtocolError

SOCKETIO_PATH = "/socket.io/"
ENGINEIO_VERSION = 4

PONG = "3"

_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}
_ASCII_DIGITS = frozenset("0123456789")


class PacketKind(StrEnum):
    OPEN = "open"
    CLOSE = "close"
    PING = "ping"
    PONG = "pong"
    NOOP = "noop"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    EVENT = "event"
    ACK = "ack"
    CONNECT_ERROR = "connect_error"


_ENGINEIO_KINDS: dict[str, PacketKind] = {
    "1": PacketKind.CLOSE,
    "2": PacketKind.PING,
    "3": PacketKind.PONG,
    "6": PacketKind.NOOP,
}

_SOCKETIO_KINDS: dict[str, PacketKind] = {
    "0": PacketKind.CONNECT,
    "1": PacketKind.DISCONNECT,
    "2": PacketKind.EVENT,
    "3": PacketKind.ACK,
    "4": PacketKind.CONNECT_ERROR,
}


@dataclass(frozen=True, slots=True)
class Packet:
    """A decoded frame.  ``data`` is the first event argument for EVENTs."""

    kind: PacketKind
    data: Any = None
    namespace: str = "/"
    event: str | None = None
    ack_id: int | None = None


@dataclass(frozen=True, slots=True)
class OpenInfo:
    """Engine.IO session parameters from the OPEN packet (seconds)."""

    sid: str
    ping_interval: float
    ping_timeout: float

    @property
    def liveness_timeout(self) -> float:
        """Seconds of silence after which the server is considered gone."""
        return self.ping_interval + self.ping_timeout


def socketio_url(endpoint: str) -> str:
    """Build the websocket transport URL for a gateway *endpoint*.

    ``http://host:5000`` → ``ws://host:5000/socket.io/?EIO=4&transport=websocket``

    Raises :class:`ConfigurationError` for unsupported schemes or a missing host.
    """
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ConfigurationError("Gateway endpoint must be a non-empty URL")
    parts = urlsplit(endpoint.strip())
    scheme = _SCHEMES.get(parts.scheme.lower())
    if scheme is None:
        raise ConfigurationError(
            f"Unsupported endpoint scheme {parts.scheme!r} in {endpoint!r} "
            "(expected http, https, ws, or wss)"
        )
    if not parts.hostname:
        raise ConfigurationError(f"Gateway endpoint has no host: {endpoint!r}")
    try:
        _ = parts.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in gateway endpoint {endpoint!r}") from exc

    path = parts.path.rstrip("/")
    if not path.endswith(SOCKETIO_PATH.rstrip("/")):
        path += SOCKETIO_PATH.rstrip("/")
    path += "/"
    query = f"EIO={ENGINEIO_VERSION}&transport=websocket"
    return urlunsplit((scheme, parts.netloc, path, query, ""))


def encode_connect(namespace: str = "/") -> str:
    """Socket.IO CONNECT for *namespace*."""
    return "40" if namespace == "/" else f"40{namespace},"


def encode_disconnect(namespace: str = "/") -> str:
    """Socket.IO DISCONNECT for *namespace*."""
    return "41" if namespace == "/" else f"41{namespace},"


def parse_open(packet: Packet) -> OpenInfo:
    """Extract session parameters from an OPEN packet."""
    data = packet.data
    if packet.kind is not PacketKind.OPEN or not isinstance(data, dict):
        raise ProtocolError(f"Expected Engine.IO OPEN, got {packet.kind}")
    try:
        return OpenInfo(
            sid=str(data["sid"]),
            ping_interval=float(data.get("pingInterval", 25000)) / 1000,
            ping_timeout=float(data.get("pingTimeout", 20000)) / 1000,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ProtocolError(f"Malformed OPEN packet: {data!r}") from exc


def decode_packet(raw: str | bytes) -> Packet:
    """Decode one websocket text frame.

    Raises :class:`ProtocolError` for binary, empty, or unparseable frames.
    """
    try:
        return _decode_frame(raw)
    except ProtocolError:
        raise
    except (ValueError, TypeError, RecursionError) as exc:
        raise ProtocolError(f"Undecodable frame: {str(raw)[:200]!r}") from exc


def _decode_frame(raw: str | bytes) -> Packet:
    if isinstance(raw, (bytes, bytearray)):
        raise ProtocolError(f"Binary frames are not supported ({len(raw)} bytes)")
    if not raw:
        raise ProtocolError("Empty frame")

    eio_type, body = raw[0], raw[1:]
    if eio_type == "0":
        return Packet(PacketKind.OPEN, data=_load_json(body))
    if eio_type == "4":
        return _decode_socketio(body)
    kind = _ENGINEIO_KINDS.get(eio_type)
    if kind is None:
        raise ProtocolError(f"Unknown Engine.IO packet type {eio_type!r}")
    return Packet(kind, data=body or None)


def _decode_socketio(body: str) -> Packet:
    if not body:
        raise ProtocolError("Empty Socket.IO packet")
    kind = _SOCKETIO_KINDS.get(body[0])
    if kind is None:
        raise ProtocolError(f"Unsupported Socket.IO packet type {body[0]!r}")
    rest = body[1:]

    namespace = "/"
    if rest.startswith("/"):
        namespace, _, rest = rest.partition(",")

    digits = 0
    while digits < len(rest) and rest[digits] in _ASCII_DIGITS:
        digits += 1
    ack_id = int(rest[:digits]) if digits else None
    rest = rest[digits:]

    data = _load_json(rest) if rest else None
    if kind is not PacketKind.EVENT:
        return Packet(kind, data=data, namespace=namespace, ack_id=ack_id)

    if not isinstance(data, list) or not data or not isinstance(data[0], str):
        raise ProtocolError(f"Malformed EVENT packet: {body[:200]!r}")
    return Packet(
        kind,
        data=data[1] if len(data) > 1 else None,
        namespace=namespace,
        event=data[0],
        ack_id=ack_id,
    )


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Invalid JSON in frame: {text[:200]!r}") from exc
