from __future__ import annotations

from datetime import UTC, datetime
from io import StringIO
from typing import Any

from rich.console import Console

from plantwatch.models.reading import DEFAULT_READING, TelemetryReading
from plantwatch.output.rich_output import RichOutput
from plantwatch.telemetry.store import ConnectionStatus, Snapshot


def _make_console() -> tuple[Console, StringIO]:
    """Return a ``(Console, buffer)`` pair for capturing Rich output."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=120)
    return console, buf


def _live_snapshot(make_payload: Any) -> Snapshot:
    reading = TelemetryReading.from_payload(make_payload(timestamp="2025-11-05 10:00:00"))
    return Snapshot(
        reading=reading,
        status=ConnectionStatus.CONNECTED,
        received_at=datetime(2025, 11, 5, 3, 0, tzinfo=UTC),
    )


class TestStatusBadge:
    def test_live(self, make_payload: Any) -> None:
        ro = RichOutput(_make_console()[0])
        badge = ro.status_badge(_live_snapshot(make_payload))
        assert "LIVE" in badge.plain
        assert "2025-11-05 10:00:00" in badge.plain
        assert "default" not in badge.plain

    def test_offline_default(self) -> None:
        ro = RichOutput(_make_console()[0])
        badge = ro.status_badge(
            Snapshot(reading=DEFAULT_READING, status=ConnectionStatus.DISCONNECTED)
        )
        assert "OFFLINE" in badge.plain
        assert "(default values)" in badge.plain


class TestSnapshot:
    def test_renders_both_tables(self, make_payload: Any) -> None:
        console, buf = _make_console()
        RichOutput(console).snapshot(_live_snapshot(make_payload))
        output = buf.getvalue()

        assert "Reservoir" in output
        assert "Distribution" in output
        assert "Turbidity" in output
        assert "4.300" in output
        assert "Lhoksukon volume" in output
        assert "2,701.900" in output
        assert "m3/h" in output

    def test_reading_split_by_group(self, make_payload: Any) -> None:
        ro = RichOutput(_make_console()[0])
        reading = _live_snapshot(make_payload).reading
        reservoir, distribution = ro.reading_tables(reading)
        assert reservoir.row_count == 5
        assert distribution.row_count == 7


class TestChannelList:
    def test_lists_wire_names(self) -> None:
        console, buf = _make_console()
        RichOutput(console).channel_list(DEFAULT_READING)
        output = buf.getvalue()
        assert "reservoir_ph_1" in output
        assert "Brigif_Pressure" in output
        assert "NTU" in output


class TestMessages:
    def test_error(self) -> None:
        console, buf = _make_console()
        RichOutput(console).error("gateway unreachable")
        output = buf.getvalue()
        assert "Error:" in output
        assert "gateway unreachable" in output
