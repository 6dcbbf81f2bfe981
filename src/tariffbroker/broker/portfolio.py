"""Portfolio manager - Entry point for market events and periodic activation.

All handlers and activate() run under one lock, so the ledger, the book,
the observer and the decision engine only ever see serialized updates even
when the host platform delivers messages from several threads.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional

import numpy as np

from ..config.schema import Config
from ..domain.messages import (
    BalancingControlExercised,
    BootstrapUsage,
    InboundEvent,
    PeriodElapsed,
    TariffAnnounced,
    TariffStatus,
    TariffStatusCode,
    TariffTransaction,
    TariffWithdrawn,
    TransactionType,
)
from ..domain.tariffs import CustomerSegment, PowerType
from ..engine.subscriptions import SubscriptionBook
from ..engine.usage import UsageLedger
from ..market.observer import MarketObserver
from ..pricing.decision import PeriodRecord, PricingDecisionEngine
from .services import BrokerAccount, MarketOutbox, SimulationClock, TariffDirectory

logger = logging.getLogger(__name__)


class PortfolioManager:
    """Composes, offers and tracks tariffs for one broker."""

    def __init__(
        self,
        config: Config,
        account: Optional[BrokerAccount] = None,
        clock: Optional[SimulationClock] = None,
        directory: Optional[TariffDirectory] = None,
        outbox: Optional[MarketOutbox] = None,
        diagnostics: Optional[Callable[[PeriodRecord], None]] = None,
        market_price: Optional[Callable[[], float]] = None,
        rng: Optional[np.random.Generator] = None
    ):
        """
        Initialize portfolio manager.

        Args:
            config: Broker configuration
            account: Identity and cash (defaults to a zero-balance account)
            clock: Simulation clock
            directory: Tariff directory
            outbox: Outbound action channel
            diagnostics: Called with each period's record
            market_price: Mean wholesale price per MWh, for opening tariffs
            rng: Random generator for the decision engine
        """
        self.config = config
        self.account = account or BrokerAccount(username=config.broker.username)
        self.clock = clock or SimulationClock(timeslot_duration_ms=config.timing.timeslot_duration_ms)
        self.directory = directory or TariffDirectory()
        self.outbox = outbox or MarketOutbox()
        self.diagnostics = diagnostics
        self.market_price = market_price or (lambda: 0.0)
        self._lock = threading.Lock()

        self.ledger = UsageLedger(
            cycle_length=config.timing.cycle_length,
            alpha=config.usage.alpha,
            index_of=self.clock.timeslot_of,
        )
        self.book = SubscriptionBook(self.ledger)
        self.observer = MarketObserver(
            own_broker=self.account.username,
            default_broker=config.broker.default_broker,
        )
        self.engine = PricingDecisionEngine(
            config=config,
            observer=self.observer,
            book=self.book,
            directory=self.directory,
            outbox=self.outbox,
            rng=rng,
            broker=self.account.username,
        )
        self.engine.previous_cash = self.account.cash_balance

        self._handlers: Dict[type, Callable] = {
            BootstrapUsage: self._on_bootstrap,
            TariffAnnounced: self._on_tariff_announced,
            TariffStatus: self._on_tariff_status,
            TariffTransaction: self._on_transaction,
            TariffWithdrawn: self._on_tariff_withdrawn,
            BalancingControlExercised: self._on_balancing_exercised,
            PeriodElapsed: self._on_period_elapsed,
        }

    @property
    def username(self) -> str:
        return self.account.username

    # -------------- message handlers ------------------

    def handle(self, event: InboundEvent):
        """Dispatch one inbound event."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")
        with self._lock:
            handler(event)

    def handle_all(self, events: List[InboundEvent]):
        for event in events:
            self.handle(event)

    def _on_bootstrap(self, event: BootstrapUsage):
        # gives the broker a running start on customer profiles
        self.ledger.bootstrap(event.power_type, event.segment, event.net_usage, event.start_index)

    def _on_tariff_announced(self, event: TariffAnnounced):
        offer = event.offer
        self.engine.counters.tariffs += 1
        if self.observer.on_competitor_tariff_announced(offer):
            self.directory.add(offer)
        elif self.directory.find_by_id(offer.id) is None:
            # our own offers are registered before they are sent
            logger.error("Spec %s not in local repo", offer.id)

    def _on_tariff_status(self, event: TariffStatus):
        if self.directory.find_by_id(event.offer_id) is None:
            logger.error("TariffStatus %s for unknown tariff %s", event.status.value, event.offer_id)
        elif event.status is not TariffStatusCode.SUCCESS:
            logger.warning("TariffStatus %s for tariff %s", event.status.value, event.offer_id)
        else:
            logger.info("TariffStatus: %s", event.status.value)

    def _on_transaction(self, tx: TariffTransaction):
        if self.directory.find_by_id(tx.offer_id) is None:
            logger.error("TariffTransaction type=%s for unknown spec %s", tx.tx_type.value, tx.offer_id)

        counters = self.engine.counters
        if tx.tx_type is TransactionType.SIGNUP:
            self.book.on_signup(tx.offer_id, tx.segment, tx.customer_count)
            counters.signups += 1
        elif tx.tx_type is TransactionType.WITHDRAW:
            self.book.on_withdraw(tx.offer_id, tx.segment, tx.customer_count)
            counters.withdrawals += 1
        elif tx.tx_type is TransactionType.PRODUCE:
            self.book.on_transaction(tx.offer_id, tx.segment, tx.kwh, tx.posted_time, tx.customer_count)
        elif tx.tx_type is TransactionType.CONSUME:
            self.book.on_transaction(tx.offer_id, tx.segment, tx.kwh, tx.posted_time, tx.customer_count)
            counters.consumptions += 1
        else:
            logger.debug("ignoring %s transaction", tx.tx_type.value)

    def _on_tariff_withdrawn(self, event: TariffWithdrawn):
        logger.info("Revoke tariff %s from %s", event.offer_id, event.broker)
        if event.broker == self.username:
            return
        self.directory.remove(event.offer_id)
        self.observer.on_competitor_tariff_withdrawn(event.offer_id)

    def _on_balancing_exercised(self, event: BalancingControlExercised):
        logger.info("BalancingControlEvent %s on tariff %s", event.kwh, event.offer_id)

    def _on_period_elapsed(self, event: PeriodElapsed):
        self._activate(event.timeslot)

    # -------------- activation ------------------

    def activate(self, timeslot: int) -> Optional[PeriodRecord]:
        """Run the per-timeslot portfolio work. Returns the period record, if any."""
        with self._lock:
            return self._activate(timeslot)

    def is_decision_timeslot(self, timeslot: int) -> bool:
        timing = self.config.timing
        return timeslot % timing.period_length == 0 and timeslot > timing.warmup_timeslots

    def _activate(self, timeslot: int) -> Optional[PeriodRecord]:
        self.clock.advance_to(timeslot)

        if self.config.initial_tariffs.enabled and not self.book.own_tariffs():
            self.engine.publish_initial_tariffs(self.market_price())

        triggers = self.config.triggers
        if triggers.balancing_timeslot is not None and timeslot == triggers.balancing_timeslot:
            self.engine.issue_balancing_orders()
        if triggers.supersede_timeslot is not None and timeslot == triggers.supersede_timeslot:
            self.engine.supersede_consumption_tariff()

        if not self.is_decision_timeslot(timeslot):
            return None
        record = self.engine.on_period(timeslot, self.account.cash_balance)
        if self.diagnostics is not None:
            self.diagnostics(record)
        return record

    # -------------- usage queries ------------------

    def collect_usage(self, index: int) -> float:
        """Net energy the broker must supply at a timeslot index."""
        with self._lock:
            return self.book.total_net_usage(index)

    def usage_for_customer(self, segment: CustomerSegment, tariff_id: int, index: int) -> float:
        with self._lock:
            return self.book.usage_for_customer(segment, tariff_id, index)

    def raw_usage_for_customer(self, segment: CustomerSegment) -> Dict[PowerType, np.ndarray]:
        with self._lock:
            return {k: v.copy() for k, v in self.book.raw_usage_for_customer(segment).items()}

    def customer_counts(self) -> Dict[str, int]:
        with self._lock:
            return self.book.customer_counts()
