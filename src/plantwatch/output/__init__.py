"""Output formatting: Rich tables for terminals, JSON envelopes for pipes."""

from __future__ import annotations

from plantwatch.output.formatter import OutputFormatter
from plantwatch.output.rich_output import RichOutput

__all__ = ["OutputFormatter", "RichOutput"]
