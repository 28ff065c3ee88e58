"""Gateway transport: Socket.IO framing and the reconnecting session."""

from __future__ import annotations

from plantwatch.gateway.protocol import Packet, PacketKind, decode_packet, socketio_url
from plantwatch.gateway.session import (
    SessionConnected,
    SessionDisconnected,
    SessionEvent,
    SessionMessage,
    SessionState,
    TransportSession,
)

__all__ = [
    "Packet",
    "PacketKind",
    "SessionConnected",
    "SessionDisconnected",
    "SessionEvent",
    "SessionMessage",
    "SessionState",
    "TransportSession",
    "decode_packet",
    "socketio_url",
]
