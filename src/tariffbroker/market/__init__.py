"""Competitor tracking and market statistics."""

from .observer import MarketObserver, MarketSnapshot, SeriesStats

__all__ = [
    "MarketObserver",
    "MarketSnapshot",
    "SeriesStats",
]
