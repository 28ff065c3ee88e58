from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Group
from rich.table import Table
from rich.text import Text

from plantwatch.models.reading import CHANNEL_LABELS, CHANNEL_NAMES

if TYPE_CHECKING:
    from rich.console import Console, RenderableType

    from plantwatch.models.reading import TelemetryReading
    from plantwatch.telemetry.store import Snapshot

_RESERVOIR_PREFIX = "reservoir_"


class RichOutput:
    """Rich-based terminal output helpers for *plantwatch*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    @property
    def console(self) -> Console:
        return self._con

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def status_badge(self, snapshot: Snapshot) -> Text:
        """A coloured connection indicator plus the reading timestamp."""
        if snapshot.is_connected:
            badge = Text("● LIVE", style="bold green")
        else:
            badge = Text("● OFFLINE", style="bold red")
        badge.append(f"  last reading {snapshot.reading.timestamp}", style="dim")
        if snapshot.received_at is None:
            badge.append("  (default values)", style="yellow")
        return badge

    def reading_tables(self, reading: TelemetryReading) -> tuple[Table, Table]:
        """Reservoir quality and distribution tables for *reading*."""
        reservoir = Table(title="Reservoir")
        distribution = Table(title="Distribution")
        for table in (reservoir, distribution):
            table.add_column("Channel", style="bold")
            table.add_column("Value", justify="right", style="cyan")
            table.add_column("Unit")

        for name, channel in reading.channels().items():
            table = reservoir if name.startswith(_RESERVOIR_PREFIX) else distribution
            table.add_row(CHANNEL_LABELS[name], f"{channel.value:,.3f}", channel.unit)
        return reservoir, distribution

    def render_snapshot(self, snapshot: Snapshot) -> RenderableType:
        """Renderable for a live display of *snapshot*."""
        return Group(self.status_badge(snapshot), *self.reading_tables(snapshot.reading))

    def snapshot(self, snapshot: Snapshot) -> None:
        """Print *snapshot* once."""
        self._con.print(self.render_snapshot(snapshot))

    # ------------------------------------------------------------------
    # Channel catalogue
    # ------------------------------------------------------------------

    def channel_list(self, reading: TelemetryReading) -> None:
        """Print every channel with its wire name and unit."""
        table = Table(title="Channels")
        table.add_column("Wire name", style="cyan")
        table.add_column("Label")
        table.add_column("Unit")

        channels = reading.channels()
        for name in CHANNEL_NAMES:
            table.add_row(name, CHANNEL_LABELS[name], channels[name].unit)

        self._con.print(table)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
