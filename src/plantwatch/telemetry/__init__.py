"""Snapshot synchronization: message gate, snapshot store, and monitor."""

from __future__ import annotations

from plantwatch.telemetry.gate import GateStats, MessageGate
from plantwatch.telemetry.monitor import MonitorStats, PlantMonitor
from plantwatch.telemetry.store import ConnectionStatus, Snapshot, SnapshotStore

__all__ = [
    "ConnectionStatus",
    "GateStats",
    "MessageGate",
    "MonitorStats",
    "PlantMonitor",
    "Snapshot",
    "SnapshotStore",
]
