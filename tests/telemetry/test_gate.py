from __future__ import annotations

import json
from typing import Any

import pytest

from plantwatch.errors import ConfigurationError
from plantwatch.models.reading import DEFAULT_READING
from plantwatch.telemetry.gate import MessageGate
from plantwatch.telemetry.store import ConnectionStatus, SnapshotStore


def _connected_store() -> SnapshotStore:
    store = SnapshotStore()
    store.write_status(ConnectionStatus.CONNECTED)
    return store


class TestThrottle:
    def test_first_message_always_accepted(self, make_payload: Any) -> None:
        gate = MessageGate(_connected_store(), 100.0)
        assert gate.offer(make_payload(), now=5.0)
        assert gate.last_accepted == 5.0

    def test_greedy_sampling(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 60.0)
        times = [0.0, 30.0, 59.9, 60.0, 61.0, 119.9, 120.5]
        accepted = [t for t in times if gate.offer(make_payload(timestamp=f"t={t}"), now=t)]

        assert accepted == [0.0, 60.0, 120.5]
        assert store.read().reading.timestamp == "t=120.5"
        assert gate.stats.accepted == 3
        assert gate.stats.throttled == 4

    def test_throttled_message_leaves_snapshot(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 60.0)
        gate.offer(make_payload(timestamp="first"), now=0.0)
        before = store.read()
        assert not gate.offer(make_payload(timestamp="second"), now=10.0)
        assert store.read() is before

    def test_zero_interval_accepts_everything(self, make_payload: Any) -> None:
        gate = MessageGate(_connected_store(), 0.0)
        assert all(gate.offer(make_payload(), now=1.0) for _ in range(3))

    def test_uses_clock_when_now_omitted(self, make_payload: Any) -> None:
        ticks = iter([10.0, 20.0, 200.0])
        gate = MessageGate(_connected_store(), 100.0, clock=lambda: next(ticks))
        assert gate.offer(make_payload())
        assert not gate.offer(make_payload())
        assert gate.offer(make_payload())

    def test_reset_clears_window(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 60.0)
        assert gate.offer(make_payload(timestamp="a"), now=0.0)
        assert not gate.offer(make_payload(timestamp="b"), now=5.0)

        gate.reset()
        assert gate.last_accepted is None
        assert gate.offer(make_payload(timestamp="c"), now=6.0)
        assert store.read().reading.timestamp == "c"

    def test_should_accept_and_record(self) -> None:
        gate = MessageGate(SnapshotStore(), 10.0)
        assert gate.should_accept(0.0)
        gate.record_accept(0.0)
        assert not gate.should_accept(9.99)
        assert gate.should_accept(10.0)

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            MessageGate(SnapshotStore(), -1.0)


class TestFormatGate:
    def test_missing_channel_dropped(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 0.0)
        before = store.read()

        assert not gate.offer(make_payload(drop=("reservoir_ph_1",)), now=0.0)
        assert store.read() is before
        assert gate.stats.malformed == 1
        assert gate.last_accepted is None

    def test_non_numeric_value_dropped(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 0.0)
        payload = make_payload()
        payload["offtake"]["Lhoksukon_Flow"]["value"] = "n/a"
        assert not gate.offer(payload, now=0.0)
        assert store.read().reading == DEFAULT_READING

    def test_malformed_does_not_consume_window(self, make_payload: Any) -> None:
        gate = MessageGate(_connected_store(), 60.0)
        gate.offer({"timestamp": "x"}, now=0.0)
        assert gate.offer(make_payload(), now=1.0)

    def test_json_text_accepted(self, make_payload: Any) -> None:
        store = _connected_store()
        gate = MessageGate(store, 0.0)
        assert gate.offer(json.dumps(make_payload(timestamp="as-text")), now=0.0)
        assert store.read().reading.timestamp == "as-text"


class TestLivenessGate:
    def test_dropped_while_disconnected(self, make_payload: Any) -> None:
        store = SnapshotStore()
        gate = MessageGate(store, 0.0)
        assert not gate.offer(make_payload(), now=0.0)
        assert store.read().reading == DEFAULT_READING
        assert gate.stats.stale == 1
        assert gate.stats.accepted == 0
