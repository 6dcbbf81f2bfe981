"""Diagnostics output and result export."""

from .diagnostics import StatsFileSink, format_period

__all__ = [
    "StatsFileSink",
    "format_period",
]
