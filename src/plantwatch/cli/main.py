"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses
import logging

import click

from plantwatch.errors import ConfigurationError, GatewayConnectionError
from plantwatch.output.formatter import OutputFormatter

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    endpoint: str | None
    output_format: str | None
    quiet: bool
    verbose: bool
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            force = "quiet" if self.quiet else self.output_format
            self._formatter = OutputFormatter(force_format=force)
        return self._formatter


def configure_logging(*, verbose: bool, level: str = "WARNING") -> None:
    """Send ``plantwatch`` log records to stderr through Rich.

    ``--verbose`` forces DEBUG; otherwise *level* (``PLANTWATCH_LOG_LEVEL``)
    applies.  Safe to call more than once.
    """
    from rich.console import Console
    from rich.logging import RichHandler

    log = logging.getLogger("plantwatch")
    for handler in list(log.handlers):
        if isinstance(handler, RichHandler):
            log.removeHandler(handler)

    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    log.addHandler(handler)
    log.setLevel(logging.DEBUG if verbose else level.upper())
    log.propagate = False


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--endpoint",
    default=None,
    envvar="PLANTWATCH_ENDPOINT",
    help="Telemetry gateway URL (env: PLANTWATCH_ENDPOINT)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json", "quiet"]),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--quiet", is_flag=True, default=False, help="Suppress normal output")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    endpoint: str | None,
    output_format: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Live telemetry viewer for water-treatment plant gateways."""
    ctx.ensure_object(dict)
    ctx.obj = AppContext(
        endpoint=endpoint,
        output_format=output_format,
        quiet=quiet,
        verbose=verbose,
    )


# ---------------------------------------------------------------------------
# Register subcommands (lazy imports keep startup fast)
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from plantwatch.cli.watch import channels_cmd, watch_cmd

    cli.add_command(channels_cmd)
    cli.add_command(watch_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.exceptions.UsageError as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = _get_command_name()

        if isinstance(exc, ConfigurationError):
            formatter.output_error(code="configuration_error", message=str(exc), command=cmd_name)
            raise SystemExit(1) from exc

        if isinstance(exc, GatewayConnectionError):
            formatter.output_error(code="gateway_unavailable", message=str(exc), command=cmd_name)
            raise SystemExit(1) from exc

        formatter.output_error(
            code=type(exc).__name__,
            message=str(exc),
            command=cmd_name,
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _extract_app_ctx() -> AppContext | None:
    """Try to extract AppContext from the current Click context."""
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, AppContext):
            return ctx.obj
        ctx = ctx.parent
    return None


def _get_command_name() -> str:
    """Reconstruct a dotted command name from the Click context chain."""
    ctx = click.get_current_context(silent=True)
    parts: list[str] = []
    while ctx is not None:
        if ctx.info_name and ctx.info_name != "cli":
            parts.append(ctx.info_name)
        ctx = ctx.parent
    return ".".join(reversed(parts)) or "unknown"
