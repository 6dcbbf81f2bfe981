"""Broker collaborators. The portfolio manager lives in ``tariffbroker.broker.portfolio``."""

from .services import BrokerAccount, MarketOutbox, SimulationClock, TariffDirectory

__all__ = [
    "BrokerAccount",
    "MarketOutbox",
    "SimulationClock",
    "TariffDirectory",
]
