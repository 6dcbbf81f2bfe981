"""In-process collaborators the portfolio manager depends on.

The host platform normally provides these. The implementations here are
plain in-memory versions used by the scenario runner and the tests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Type

from ..domain.messages import OutboundAction
from ..domain.tariffs import TariffOffer

logger = logging.getLogger(__name__)


class TariffDirectory:
    """Tariff lookup by id and by owning broker."""

    def __init__(self):
        self._offers: Dict[int, TariffOffer] = {}

    def add(self, offer: TariffOffer):
        self._offers[offer.id] = offer

    def remove(self, offer_id: int) -> Optional[TariffOffer]:
        return self._offers.pop(offer_id, None)

    def find_by_id(self, offer_id: int) -> Optional[TariffOffer]:
        return self._offers.get(offer_id)

    def find_by_broker(self, broker: str) -> List[TariffOffer]:
        return [offer for offer in self._offers.values() if offer.broker == broker]


@dataclass
class SimulationClock:
    """Current timeslot and the mapping from instants to timeslots."""
    base: datetime = field(default_factory=lambda: datetime(2009, 1, 1, tzinfo=timezone.utc))
    timeslot_duration_ms: int = 3_600_000
    current_timeslot: int = 0

    def timeslot_of(self, instant: datetime) -> int:
        """
        Timeslot index containing an instant.

        Assumes the index equals the number of timeslots elapsed since the
        simulation base time.
        """
        elapsed_ms = (instant - self.base).total_seconds() * 1000.0
        return int(elapsed_ms // self.timeslot_duration_ms)

    def advance_to(self, timeslot: int):
        self.current_timeslot = timeslot


@dataclass
class BrokerAccount:
    """Our identity and cash position."""
    username: str
    cash_balance: float = 0.0

    def post(self, amount: float):
        """Credit (amount > 0) or debit the cash balance."""
        self.cash_balance += amount


class MarketOutbox:
    """
    Fire-and-forget channel for outbound broker actions.

    Every action is kept in ``sent`` in send order. Sinks are called once per
    action; a failing sink is logged and does not stop delivery to the rest.
    """

    def __init__(self):
        self.sent: List[OutboundAction] = []
        self._sinks: List[Callable[[OutboundAction], None]] = []

    def subscribe(self, sink: Callable[[OutboundAction], None]):
        self._sinks.append(sink)

    def send(self, action: OutboundAction):
        self.sent.append(action)
        for sink in list(self._sinks):
            try:
                sink(action)
            except Exception:
                logger.exception("outbound sink failed for %s", type(action).__name__)

    def of_type(self, action_type: Type) -> List[OutboundAction]:
        return [action for action in self.sent if isinstance(action, action_type)]
