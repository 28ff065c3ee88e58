"""Shared fixtures: telemetry payloads and a scriptable fake websocket."""

from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any

import pytest

_SAMPLE_CHANNELS: dict[str, tuple[float, str]] = {
    "reservoir_water_level_1": (2.71, "m"),
    "reservoir_turbidity_1": (4.3, "NTU"),
    "reservoir_ph_1": (7.25, "pH"),
    "reservoir_chlorine_1": (0.31, "mg/L"),
    "reservoir_temperature_1": (28.104, "C"),
    "Matang_Bayu_Flow": (255.5, "m3/h"),
    "Matang_Bayu_Cubic": (4102.337, "m3"),
    "Lhoksukon_Flow": (150.02, "m3/h"),
    "Lhoksukon_Cubic": (2701.9, "m3"),
    "Matang_Bayu_Pressure": (2.801, "bar"),
    "Lhoksukon_Pressure": (3.3, "bar"),
    "Brigif_Pressure": (3.35, "bar"),
}


def build_payload(
    timestamp: str = "2025-11-05 10:00:00",
    *,
    nested: bool = True,
    drop: tuple[str, ...] = (),
    **values: float,
) -> dict[str, Any]:
    """Gateway payload with sample values; *values* override by wire name."""
    channels = {
        name: {"value": values.get(name, value), "unit": unit}
        for name, (value, unit) in _SAMPLE_CHANNELS.items()
        if name not in drop
    }
    if nested:
        return {"timestamp": timestamp, "offtake": channels}
    return {"timestamp": timestamp, **channels}


@pytest.fixture()
def make_payload() -> Any:
    """Factory fixture for gateway payloads (see :func:`build_payload`)."""
    return build_payload


def open_frame(sid: str = "eio-sid", ping_interval: int = 25000, ping_timeout: int = 20000) -> str:
    """Engine.IO OPEN frame."""
    body = {"sid": sid, "upgrades": [], "pingInterval": ping_interval, "pingTimeout": ping_timeout}
    return "0" + json.dumps(body)


def connect_ack(sid: str = "sio-sid") -> str:
    """Socket.IO CONNECT ack for the default namespace."""
    return "40" + json.dumps({"sid": sid})


def event_frame(payload: Any, event: str = "mqtt_message") -> str:
    """Socket.IO EVENT frame."""
    return "42" + json.dumps([event, payload])


class FakeWebSocket:
    """Scriptable websocket: ``recv`` returns fed frames, raising fed exceptions.

    ``recv`` blocks when no frames are queued, like a quiet live connection.
    """

    def __init__(self, frames: list[Any] | None = None) -> None:
        self._frames: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        for frame in frames or []:
            self.feed(frame)

    def feed(self, frame: Any) -> None:
        self._frames.put_nowait(frame)

    async def recv(self) -> Any:
        item = await self._frames.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def frames() -> SimpleNamespace:
    """Frame builders: ``frames.open()``, ``frames.ack()``, ``frames.event(payload)``."""
    return SimpleNamespace(open=open_frame, ack=connect_ack, event=event_frame)


@pytest.fixture()
def fake_ws() -> Any:
    """Factory for :class:`FakeWebSocket`; prepends the handshake unless told not to."""

    def _make(*scripted: Any, handshake: bool = True) -> FakeWebSocket:
        prefix = [open_frame(), connect_ack()] if handshake else []
        return FakeWebSocket([*prefix, *scripted])

    return _make


async def _wait_until(predicate: Any, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture()
def wait_until() -> Any:
    """Coroutine that yields to the loop until ``predicate()`` holds (2s limit)."""
    return _wait_until
