"""Scenario execution for the broker."""

from .runner import SimulationResult, SimulationRunner
from .scenario import SyntheticMarket

__all__ = [
    "SimulationResult",
    "SimulationRunner",
    "SyntheticMarket",
]
