"""Synthetic retail market for exercising the broker end to end.

Key Concepts:
- Rival brokers hold one consumption tariff each and reprice once a day
  with a random drift; the reference broker posts a fixed expensive tariff
- Every segment subscribes wholly to the most favorable live offer
  (rate closest to zero); moves are re-evaluated once a day
- Subscribed segments consume every timeslot along a daily load shape and
  pay the broker rate times energy
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..config.schema import Config
from ..domain.messages import (
    BootstrapUsage,
    InboundEvent,
    TariffAnnounced,
    TariffTransaction,
    TariffWithdrawn,
    TransactionType,
)
from ..domain.tariffs import CustomerSegment, PowerType, Rate, TariffOffer

SLOTS_PER_DAY = 24
REFERENCE_RATE = -0.5
PUBLICATION_FEE = 100.0


@dataclass
class SegmentState:
    """Where a segment is subscribed."""
    segment: CustomerSegment
    base_load: float  # Mean kWh per customer per timeslot
    offer_id: Optional[int] = None
    broker: Optional[str] = None


@dataclass
class SyntheticMarket:
    """Generates market events in response to the broker's offers."""
    config: Config
    rng: np.random.Generator
    segments: List[SegmentState] = field(default_factory=list)
    offers: Dict[int, TariffOffer] = field(default_factory=dict)
    rival_offers: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def build(cls, config: Config, seed: Optional[int] = None) -> 'SyntheticMarket':
        """Create a market with segments and rival brokers from config."""
        sim = config.simulation
        rng = np.random.default_rng(sim.random_seed if seed is None else seed)
        market = cls(config=config, rng=rng)
        for i in range(sim.segments):
            market.segments.append(SegmentState(
                segment=CustomerSegment(f"segment-{i}", PowerType.CONSUMPTION, sim.segment_population),
                base_load=float(rng.uniform(0.5, 2.0)),
            ))
        return market

    def load_shape(self, base_load: float, timeslot: int) -> float:
        """Per-customer consumption with a daily peak in the evening."""
        hour = timeslot % SLOTS_PER_DAY
        daily = 1.0 + 0.4 * np.sin((hour - 12) * np.pi / 12.0)
        return float(base_load * daily * self.rng.uniform(0.9, 1.1))

    def opening_events(self) -> List[InboundEvent]:
        """Bootstrap data, the reference tariff and one tariff per rival."""
        events: List[InboundEvent] = []
        history = self.config.timing.cycle_length
        for state in self.segments:
            usage = tuple(
                self.load_shape(state.base_load, slot) * state.segment.population
                for slot in range(history)
            )
            events.append(BootstrapUsage(state.segment, PowerType.CONSUMPTION, usage, 0))

        reference = TariffOffer(
            broker=self.config.broker.default_broker,
            power_type=PowerType.CONSUMPTION,
            rates=(Rate(value=REFERENCE_RATE),),
        )
        events.append(self._announce(reference))
        for i in range(self.config.simulation.competitors):
            events.append(self._announce(self._rival_offer(f"rival-{i}")))
        return events

    def _rival_offer(self, broker: str, around: Optional[float] = None) -> TariffOffer:
        if around is None:
            rate = float(self.rng.uniform(-0.15, -0.08))
        else:
            rate = float(np.clip(around * self.rng.uniform(0.95, 1.05), -0.2, -0.05))
        offer = TariffOffer(
            broker=broker,
            power_type=PowerType.CONSUMPTION,
            rates=(Rate(value=rate),),
            signup_payment=float(self.rng.uniform(0.0, 5.0)),
        )
        self.rival_offers[broker] = offer.id
        return offer

    def _announce(self, offer: TariffOffer) -> TariffAnnounced:
        self.offers[offer.id] = offer
        return TariffAnnounced(offer)

    def observe_own_offer(self, offer: TariffOffer):
        """Make one of our offers visible to customers."""
        self.offers[offer.id] = offer

    def retire_offer(self, offer_id: int, successor_id: Optional[int] = None) -> List[InboundEvent]:
        """
        Remove an offer, moving its subscribers to the successor if one exists.

        Returns:
            Signup transactions against the successor
        """
        self.offers.pop(offer_id, None)
        events: List[InboundEvent] = []
        if successor_id is None:
            return events
        for state in self.segments:
            if state.offer_id == offer_id:
                state.offer_id = successor_id
                events.append(TariffTransaction(
                    successor_id, state.segment, TransactionType.SIGNUP, state.segment.population
                ))
        return events

    def rival_repricing(self) -> List[InboundEvent]:
        """Each rival replaces its tariff with probability 0.3."""
        events: List[InboundEvent] = []
        for broker, offer_id in list(self.rival_offers.items()):
            if self.rng.random() >= 0.3:
                continue
            old = self.offers.pop(offer_id)
            events.append(self._announce(self._rival_offer(broker, around=old.rates[0].value)))
            events.append(TariffWithdrawn(offer_id, broker))
        return events

    def best_offer(self) -> TariffOffer:
        live = [o for o in self.offers.values() if o.power_type is PowerType.CONSUMPTION and o.rates]
        return max(live, key=lambda o: (o.rates[0].value, o.signup_payment))

    def customer_moves(self, timeslot: int, own_broker: str) -> List[InboundEvent]:
        """Re-subscribe every segment to the best live offer.

        Only transactions against our own tariffs are returned.
        """
        events: List[InboundEvent] = []
        best = self.best_offer()
        for state in self.segments:
            current = state.offer_id
            if current == best.id and current in self.offers:
                continue
            count = state.segment.population
            if current is not None and state.broker == own_broker:
                events.append(TariffTransaction(
                    current, state.segment, TransactionType.WITHDRAW, count, posted_time=timeslot
                ))
            if best.broker == own_broker:
                events.append(TariffTransaction(
                    best.id, state.segment, TransactionType.SIGNUP, count, posted_time=timeslot
                ))
            state.offer_id = best.id
            state.broker = best.broker
        return events

    def consumption(self, timeslot: int, own_broker: str) -> Tuple[List[InboundEvent], float]:
        """
        Metered usage for the timeslot.

        Returns:
            (events addressed to our broker, revenue credited to our broker)
        """
        events: List[InboundEvent] = []
        revenue = 0.0
        for state in self.segments:
            offer = self.offers.get(state.offer_id)
            if offer is None or offer.broker != own_broker:
                continue
            count = state.segment.population
            kwh = self.load_shape(state.base_load, timeslot) * count
            events.append(TariffTransaction(
                offer.id, state.segment, TransactionType.CONSUME, count, kwh, timeslot
            ))
            revenue += -offer.rates[0].value * kwh
        return events, revenue
