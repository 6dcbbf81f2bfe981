"""Simulation runner - Drive a portfolio manager through a market timeline.

Key Features:
- Scripted timelines: a mapping of timeslot to inbound events
- Synthetic closed-loop market: rivals reprice, customers follow the best
  offer, our published tariffs are echoed back and charged a fee
- Outbound actions are queued by an outbox sink and delivered at the next
  timeslot, as the host platform would
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..broker.portfolio import PortfolioManager
from ..broker.services import BrokerAccount
from ..config.schema import Config
from ..domain.messages import (
    InboundEvent,
    OutboundAction,
    PeriodElapsed,
    PublishTariff,
    ReviseTariff,
    RevokeTariff,
    TariffAnnounced,
    TariffWithdrawn,
)
from ..pricing.decision import PeriodRecord
from .scenario import PUBLICATION_FEE, SLOTS_PER_DAY, SyntheticMarket

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Complete simulation result."""
    config: Config
    actions: List[OutboundAction]
    periods: List[PeriodRecord]
    net_usage: List[float]
    final_metrics: Dict[str, Any]
    customer_counts: Dict[str, int] = field(default_factory=dict)


class SimulationRunner:
    """Runs one broker against a scripted or synthetic market."""

    def __init__(self, config: Config, diagnostics=None):
        """
        Initialize simulation runner.

        Args:
            config: Broker and scenario configuration
            diagnostics: Optional per-period callback passed to the manager
        """
        self.config = config
        self.account = BrokerAccount(
            username=config.broker.username,
            cash_balance=config.simulation.initial_cash,
        )
        self.manager = PortfolioManager(config, account=self.account, diagnostics=diagnostics)
        self._pending: List[InboundEvent] = []
        self._market: Optional[SyntheticMarket] = None
        self._successors: Dict[int, int] = {}
        self.manager.outbox.subscribe(self._on_action)

    def _on_action(self, action: OutboundAction):
        """Echo our own actions back the way the server would."""
        if isinstance(action, (PublishTariff, ReviseTariff)):
            self.account.post(-PUBLICATION_FEE)
            self._pending.append(TariffAnnounced(action.offer))
            if self._market is not None:
                self._market.observe_own_offer(action.offer)
            if isinstance(action, ReviseTariff):
                self._successors[action.supersedes_id] = action.offer.id
        elif isinstance(action, RevokeTariff):
            self._pending.append(TariffWithdrawn(action.offer_id, self.account.username))
            if self._market is not None:
                successor = self._successors.pop(action.offer_id, None)
                self._pending.extend(self._market.retire_offer(action.offer_id, successor))

    def run_script(self, timeline: Dict[int, List[InboundEvent]], num_timeslots: int = None) -> SimulationResult:
        """
        Deliver scripted events, activating the manager every timeslot.

        Args:
            timeline: Events to deliver at each timeslot, before activation
            num_timeslots: Timeslots to run (defaults to config value)

        Returns:
            Simulation result
        """
        if num_timeslots is None:
            num_timeslots = self.config.simulation.num_timeslots
        net_usage = []
        for t in range(num_timeslots):
            events = self._drain() + list(timeline.get(t, []))
            self.manager.handle_all(events)
            self.manager.handle(PeriodElapsed(t))
            net_usage.append(self.manager.collect_usage(t))
        return self._result(net_usage)

    def run(self, seed: int = None) -> SimulationResult:
        """
        Run against a synthetic market.

        Args:
            seed: Random seed for the market (defaults to config value)

        Returns:
            Simulation result
        """
        self._market = SyntheticMarket.build(self.config, seed)
        market = self._market
        username = self.account.username
        self.manager.handle_all(market.opening_events())

        net_usage = []
        for t in range(self.config.simulation.num_timeslots):
            events = self._drain()
            if t % SLOTS_PER_DAY == 0:
                if t > 0:
                    events.extend(market.rival_repricing())
                events.extend(market.customer_moves(t, username))
            usage_events, revenue = market.consumption(t, username)
            self.account.post(revenue)
            self.manager.handle_all(events + usage_events)
            self.manager.handle(PeriodElapsed(t))
            net_usage.append(self.manager.collect_usage(t))
        return self._result(net_usage)

    def _drain(self) -> List[InboundEvent]:
        events, self._pending = self._pending, []
        return events

    def _result(self, net_usage: List[float]) -> SimulationResult:
        engine = self.manager.engine
        actions = list(self.manager.outbox.sent)
        published = [a for a in actions if isinstance(a, (PublishTariff, ReviseTariff))]
        final_metrics = {
            'final_cash': self.account.cash_balance,
            'periods': len(engine.history),
            'tariffs_published': len(published),
            'revocations': sum(1 for a in actions if isinstance(a, RevokeTariff)),
            'entry_budget_remaining': engine.entry_budget,
            'last_rate': engine.last_rate,
            'own_tariffs': len(self.manager.book.own_tariffs()),
            'publication_fee': engine.publication_fee,
        }
        logger.info(
            "simulation finished: %d periods, %d tariffs, cash %.2f",
            final_metrics["periods"], final_metrics["tariffs_published"], final_metrics["final_cash"]
        )
        return SimulationResult(
            config=self.config,
            actions=actions,
            periods=list(engine.history),
            net_usage=net_usage,
            final_metrics=final_metrics,
            customer_counts=self.manager.customer_counts(),
        )
