"""CLI commands for watching live plant telemetry."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import click

from plantwatch._internal.async_utils import run_async
from plantwatch.cli._options import global_options
from plantwatch.errors import GatewayConnectionError

if TYPE_CHECKING:
    from collections.abc import Callable

    from plantwatch.cli.main import AppContext
    from plantwatch.models.config import AppSettings
    from plantwatch.telemetry.monitor import PlantMonitor
    from plantwatch.telemetry.store import Snapshot

logger = logging.getLogger(__name__)


def _load_settings(app_ctx: AppContext, **overrides: object) -> AppSettings:
    """Environment settings with global and command-level overrides applied."""
    from plantwatch.cli.main import configure_logging
    from plantwatch.models.config import AppSettings

    settings = AppSettings.load().merge_overrides(endpoint=app_ctx.endpoint, **overrides)
    configure_logging(verbose=app_ctx.verbose, level=settings.log_level)
    logger.debug("Watch settings: %s", settings.model_dump())
    return settings


@click.command("watch")
@click.option(
    "--min-interval",
    type=float,
    default=None,
    help="Minimum seconds between accepted readings (default: 100)",
)
@click.option(
    "--reconnect-attempts",
    type=int,
    default=None,
    help="Consecutive reconnection attempts before giving up (default: 10)",
)
@click.option(
    "--reconnect-delay",
    type=float,
    default=None,
    help="Fixed seconds between reconnection attempts (default: 2)",
)
@click.option("--no-reconnect", is_flag=True, default=False, help="Do not reconnect after a drop")
@click.option("--event", "event_name", default=None, help="Socket.IO event carrying telemetry")
@click.option("--once", is_flag=True, default=False, help="Exit after the first live reading")
@global_options
def watch_cmd(
    app_ctx: AppContext,
    min_interval: float | None,
    reconnect_attempts: int | None,
    reconnect_delay: float | None,
    no_reconnect: bool,
    event_name: str | None,
    once: bool,
) -> None:
    """Subscribe to the gateway and display the live plant snapshot.

    Rich output redraws a table on every change; JSON output prints one
    envelope per change.  Runs until Ctrl+C (or the first live reading
    with --once).

    \b
    Examples:
      plantwatch watch --endpoint https://scada.example:5000
      plantwatch watch --min-interval 10 --format json
      plantwatch watch --once --format json | jq .data.reading
    """
    settings = _load_settings(
        app_ctx,
        min_interval=min_interval,
        reconnection_attempts=reconnect_attempts,
        reconnection_delay=reconnect_delay,
        reconnection=False if no_reconnect else None,
        event_name=event_name,
    )
    run_async(_cmd_watch(app_ctx, settings, once=once))


async def _cmd_watch(app_ctx: AppContext, settings: AppSettings, *, once: bool) -> None:
    from plantwatch.telemetry.monitor import PlantMonitor

    formatter = app_ctx.formatter
    monitor = PlantMonitor(settings)

    if formatter.format == "rich":
        from rich.live import Live

        console = formatter.rich.console
        console.print(f"Connecting to telemetry gateway: {settings.endpoint}")
        with Live(
            formatter.rich.render_snapshot(monitor.read()),
            console=console,
            auto_refresh=False,
        ) as live:

            def _redraw(snapshot: Snapshot) -> None:
                live.update(formatter.rich.render_snapshot(snapshot), refresh=True)

            await _run_monitor(monitor, _redraw, once=once)

        stats = monitor.stats
        formatter.rich.info(
            f"[dim]Readings accepted: {stats.accepted}, throttled: {stats.throttled}, "
            f"malformed: {stats.malformed}, connect failures: {stats.connect_failures}[/dim]"
        )
        return

    def _emit(snapshot: Snapshot) -> None:
        formatter.output(snapshot, command="watch", stream=True)

    await _run_monitor(monitor, _emit, once=once)


async def _run_monitor(
    monitor: PlantMonitor,
    listener: Callable[[Snapshot], None],
    *,
    once: bool,
) -> None:
    """Run *monitor* until cancelled, or until the first live reading with *once*."""
    first_live = asyncio.Event()

    def _on_change(snapshot: Snapshot) -> None:
        listener(snapshot)
        if snapshot.received_at is not None:
            first_live.set()

    async with monitor:
        unsubscribe = monitor.subscribe(_on_change)
        try:
            if once:
                await _wait_first_live(monitor, first_live)
            else:
                await asyncio.Event().wait()
        finally:
            unsubscribe()


async def _wait_first_live(monitor: PlantMonitor, first_live: asyncio.Event) -> None:
    """Wait for *first_live*; raise if the session stops before it is set."""
    live = asyncio.create_task(first_live.wait())
    stopped = asyncio.create_task(monitor.wait_stopped())
    try:
        await asyncio.wait({live, stopped}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        live.cancel()
        stopped.cancel()
    if not first_live.is_set():
        raise GatewayConnectionError(
            f"Gateway session to {monitor.settings.endpoint} ended before any live reading"
        )


@click.command("channels")
@global_options
def channels_cmd(app_ctx: AppContext) -> None:
    """List the telemetry channels the gateway publishes."""
    from plantwatch.models.reading import CHANNEL_LABELS, DEFAULT_READING

    formatter = app_ctx.formatter
    if formatter.format == "json":
        data = [
            {"name": name, "label": CHANNEL_LABELS[name], "unit": channel.unit}
            for name, channel in DEFAULT_READING.channels().items()
        ]
        formatter.output(data, command="channels")
        return
    formatter.rich.channel_list(DEFAULT_READING)
