"""Shared CLI decorator that propagates global options to leaf commands."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

import click

if TYPE_CHECKING:
    from plantwatch.cli.main import AppContext


def global_options(f: Any) -> Any:
    """Add global CLI options to a leaf command.

    Allows ``--endpoint``, ``--format``, ``--quiet``, and ``--verbose`` to be
    specified **after** the subcommand name (e.g.
    ``plantwatch watch --endpoint https://scada.example:5000``).
    Command-level values override the root-group values stored in
    :class:`AppContext`.
    """

    @click.option(
        "--verbose",
        "local_verbose",
        is_flag=True,
        default=False,
        help="Enable verbose logging",
    )
    @click.option(
        "--quiet",
        "local_quiet",
        is_flag=True,
        default=False,
        help="Suppress normal output",
    )
    @click.option(
        "--format",
        "local_output_format",
        type=click.Choice(["rich", "json", "quiet"]),
        default=None,
        help="Output format (default: auto-detect)",
    )
    @click.option("--endpoint", "local_endpoint", default=None, help="Telemetry gateway URL")
    @click.pass_obj
    def wrapper(app_ctx: AppContext, /, **kwargs: Any) -> Any:
        local_endpoint: str | None = kwargs.pop("local_endpoint", None)
        local_output_format: str | None = kwargs.pop("local_output_format", None)
        local_quiet: bool = kwargs.pop("local_quiet", False)
        local_verbose: bool = kwargs.pop("local_verbose", False)

        # Merge overrides into AppContext (command-level wins)
        if local_endpoint is not None:
            app_ctx.endpoint = local_endpoint
        if local_output_format is not None:
            app_ctx.output_format = local_output_format
            app_ctx._formatter = None  # reset cached formatter
        if local_quiet:
            app_ctx.quiet = True
            app_ctx._formatter = None
        if local_verbose:
            app_ctx.verbose = True

        return f(app_ctx, **kwargs)

    functools.update_wrapper(wrapper, f)
    return wrapper
