"""Pricing decision engine - Turn market statistics into tariff actions.

Key Concepts:
- Once per period the engine takes a market snapshot and walks an ordered
  rule list; the first rule that applies publishes one tariff, the rest are
  skipped
- Aggressive entry is limited by a budget that only ever counts down
- Published rates are nudged toward zero by a small random amount, then
  capped so we never publish worse than the configured ceiling
- Publishing costs money; the fee is read off the cash balance one period
  after publication and used as the bar for the profitable-hold rule
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from ..broker.services import MarketOutbox, TariffDirectory
from ..config.schema import Config
from ..domain.messages import IssueBalancingOrder, PublishTariff, ReviseTariff, RevokeTariff
from ..domain.tariffs import PowerType, Rate, TariffOffer
from ..engine.subscriptions import SubscriptionBook
from ..market.observer import MarketObserver, MarketSnapshot

logger = logging.getLogger(__name__)


@dataclass
class PeriodCounters:
    """Activity seen since the last decision."""
    tariffs: int = 0  # Tariff announcements, ours included
    signups: int = 0
    consumptions: int = 0
    withdrawals: int = 0

    def reset(self):
        self.tariffs = 0
        self.signups = 0
        self.consumptions = 0
        self.withdrawals = 0


@dataclass
class DecisionContext:
    """Inputs visible to the pricing rules for one period."""
    snapshot: MarketSnapshot
    counters: PeriodCounters
    cash: float
    previous_cash: float
    publication_fee: float
    entry_budget: int
    last_rate: Optional[float]

    @property
    def cash_gain(self) -> float:
        return self.cash - self.previous_cash


@dataclass
class PricingRule:
    """One entry of the priority list: when it applies and what base rate it sets."""
    name: str
    applies: Callable[[DecisionContext], bool]
    base_rate: Callable[[DecisionContext], float]
    uses_entry_budget: bool = False


@dataclass
class PeriodRecord:
    """Diagnostics for one decision period."""
    period: int
    timeslot: int
    snapshot: Optional[MarketSnapshot]
    signups: int
    consumptions: int
    withdrawals: int
    tariffs: int
    cash: float
    cash_gain: float
    publication_fee: float
    entry_budget: int
    rule: Optional[str] = None
    published_rate: Optional[float] = None

    @property
    def aggressiveness(self) -> float:
        if self.snapshot is None:
            return math.nan
        return self.snapshot.aggressiveness(self.signups, self.tariffs)


def _rate_above_market(ctx: DecisionContext) -> bool:
    # A broker that has never published is treated as priced out of the market
    if ctx.last_rate is None:
        return True
    return ctx.last_rate > ctx.snapshot.fixed_rate.max


def default_rules() -> List[PricingRule]:
    """The standard priority list, highest priority first."""
    return [
        PricingRule(
            name="aggressive_entry",
            applies=lambda ctx: ctx.entry_budget > 0 and _rate_above_market(ctx),
            base_rate=lambda ctx: (ctx.snapshot.fixed_rate.max + ctx.snapshot.fixed_rate.mean) / 2.0,
            uses_entry_budget=True,
        ),
        PricingRule(
            name="no_uptake",
            applies=lambda ctx: ctx.counters.signups == 0 or ctx.counters.consumptions == 0,
            base_rate=lambda ctx: ctx.snapshot.fixed_rate.max,
        ),
        PricingRule(
            name="profitable_hold",
            applies=lambda ctx: ctx.cash_gain > ctx.publication_fee,
            base_rate=lambda ctx: ctx.snapshot.fixed_rate.mean,
        ),
    ]


class PricingDecisionEngine:
    """Decides when to publish consumption tariffs and at what price."""

    def __init__(
        self,
        config: Config,
        observer: MarketObserver,
        book: SubscriptionBook,
        directory: TariffDirectory,
        outbox: MarketOutbox,
        rules: Optional[List[PricingRule]] = None,
        rng: Optional[np.random.Generator] = None,
        broker: Optional[str] = None
    ):
        """
        Initialize pricing decision engine.

        Args:
            config: Broker configuration
            observer: Source of market snapshots
            book: Our tariffs and subscribers
            directory: Tariff directory shared with the message handlers
            outbox: Outbound action channel
            rules: Priority list (defaults to default_rules())
            rng: Random generator for rate perturbation
            broker: Our username as issued by the account service
                (defaults to the configured username)
        """
        self.config = config
        self.observer = observer
        self.book = book
        self.directory = directory
        self.outbox = outbox
        self.rules = rules if rules is not None else default_rules()
        self.rng = rng if rng is not None else np.random.default_rng(config.pricing.random_seed)

        self.broker = broker if broker is not None else config.broker.username
        self.counters = PeriodCounters()
        self.entry_budget = config.pricing.entry_budget
        self.last_rate: Optional[float] = None
        self.previous_cash = 0.0
        self.publication_fee = 0.0
        self.fee_pending = False
        self.period = 0
        self.history: List[PeriodRecord] = []

    # -------------- period decision ------------------

    def on_period(self, timeslot: int, cash: float) -> PeriodRecord:
        """
        Run one decision period.

        Args:
            timeslot: Current timeslot index
            cash: Current cash balance

        Returns:
            Diagnostics record for the period
        """
        if self.fee_pending:
            self.publication_fee = self.previous_cash - cash
            self.fee_pending = False
            logger.info("Publication fee: %s", self.publication_fee)

        snapshot = self.observer.compute_snapshot(self.book.own_tariffs())
        record = PeriodRecord(
            period=self.period,
            timeslot=timeslot,
            snapshot=snapshot,
            signups=self.counters.signups,
            consumptions=self.counters.consumptions,
            withdrawals=self.counters.withdrawals,
            tariffs=self.counters.tariffs,
            cash=cash,
            cash_gain=cash - self.previous_cash,
            publication_fee=self.publication_fee,
            entry_budget=self.entry_budget,
        )

        if snapshot is not None:
            ctx = DecisionContext(
                snapshot=snapshot,
                counters=self.counters,
                cash=cash,
                previous_cash=self.previous_cash,
                publication_fee=self.publication_fee,
                entry_budget=self.entry_budget,
                last_rate=self.last_rate,
            )
            rule = self.select_rule(ctx)
            if rule is not None:
                if rule.uses_entry_budget:
                    self.entry_budget -= 1
                offer = self.create_tariff(rule.base_rate(ctx))
                record.rule = rule.name
                record.published_rate = offer.rates[0].value
                self.fee_pending = True
                logger.info("%s publish at %.5f", rule.name, record.published_rate)

        self._close_period(cash)
        self.history.append(record)
        return record

    def select_rule(self, ctx: DecisionContext) -> Optional[PricingRule]:
        """First rule in priority order that applies, or None."""
        for rule in self.rules:
            if rule.applies(ctx):
                return rule
        return None

    def _close_period(self, cash: float):
        self.period += 1
        self.counters.reset()
        self.previous_cash = cash

    # -------------- tariff composition ------------------

    def perturb_rate(self, base_rate: float) -> float:
        """
        Move a rate up to the perturbation fraction toward zero, then cap it.

        Args:
            base_rate: Rate suggested by a pricing rule

        Returns:
            Rate no less favorable to the customer than the configured ceiling
        """
        rate = base_rate * (1.0 - self.rng.random() * self.config.pricing.perturbation)
        if rate > self.config.pricing.rate_ceiling:
            rate = self.config.pricing.rate_ceiling
        return rate

    def create_tariff(self, base_rate: float) -> TariffOffer:
        """Compose, register and publish a consumption tariff."""
        rate_value = self.perturb_rate(base_rate)
        terms = self.config.tariff
        offer = TariffOffer(
            broker=self.broker,
            power_type=PowerType.CONSUMPTION,
            rates=(Rate(value=rate_value),),
            signup_payment=terms.signup_payment,
            early_withdraw_payment=terms.early_withdraw_payment,
            periodic_payment=terms.periodic_payment,
            min_duration=terms.min_duration,
        )
        self.last_rate = rate_value
        self._publish(offer)
        return offer

    def publish_initial_tariffs(self, market_price_per_mwh: float = 0.0) -> List[TariffOffer]:
        """
        Opening consumption and production tariffs for a broker with none.

        Args:
            market_price_per_mwh: Mean wholesale price (tariffs are per kWh)
        """
        opening = self.config.initial_tariffs
        terms = self.config.tariff
        market_price = market_price_per_mwh / 1000.0
        consumption_rate = (
            (market_price + opening.fixed_per_kwh)
            * (1.0 + opening.margin)
            * (1.0 - self.rng.random() * opening.perturbation)
        )
        offers = [
            TariffOffer(
                broker=self.broker,
                power_type=PowerType.CONSUMPTION,
                rates=(Rate(value=consumption_rate),),
                signup_payment=terms.signup_payment,
                early_withdraw_payment=terms.early_withdraw_payment,
                min_duration=terms.min_duration,
            ),
            TariffOffer(
                broker=self.broker,
                power_type=PowerType.PRODUCTION,
                rates=(Rate(value=opening.production_factor * market_price),),
                signup_payment=terms.signup_payment,
                early_withdraw_payment=terms.early_withdraw_payment,
                min_duration=terms.min_duration,
            ),
        ]
        self.last_rate = consumption_rate
        for offer in offers:
            self._publish(offer)
        self.fee_pending = True
        return offers

    def _publish(self, offer: TariffOffer):
        self.book.register_own_tariff(offer)
        self.directory.add(offer)
        self.outbox.send(PublishTariff(offer))

    # -------------- portfolio maintenance ------------------

    def supersede_consumption_tariff(self) -> Optional[TariffOffer]:
        """
        Replace our first consumption tariff with an identical superseding one.

        The replacement is announced before the revoke goes out so that
        subscribers always have an active offer to migrate to.

        Returns:
            The replacement offer, or None if there was nothing to replace
        """
        candidates = self.directory.find_by_broker(self.broker)
        if not candidates:
            logger.error("No tariffs found for broker")
            return None
        old = next((c for c in candidates if c.power_type is PowerType.CONSUMPTION), None)
        if old is None:
            logger.warning("No CONSUMPTION tariffs found")
            return None

        replacement = TariffOffer(
            broker=self.broker,
            power_type=PowerType.CONSUMPTION,
            rates=(Rate(value=old.rates[0].value),),
            supersedes=(old.id,),
        )
        self.book.register_own_tariff(replacement)
        self.directory.add(replacement)
        self.outbox.send(ReviseTariff(replacement, supersedes_id=old.id))

        self.outbox.send(RevokeTariff(old.id))
        self.directory.remove(old.id)
        self.book.remove_tariff(old.id)
        return replacement

    def issue_balancing_orders(self) -> List[IssueBalancingOrder]:
        """Offer balancing capacity on interruptible and regulation-capable tariffs."""
        factors = self.config.triggers.balancing
        orders = []
        for offer in self.directory.find_by_broker(self.broker):
            if offer.power_type is PowerType.INTERRUPTIBLE_CONSUMPTION and offer.rates:
                orders.append(IssueBalancingOrder(
                    offer_id=offer.id,
                    fraction=factors.interruptible_fraction,
                    price=offer.rates[0].min_value * factors.interruptible_price_factor,
                ))
            elif offer.has_regulation_rate:
                # supports both up-regulation and down-regulation
                rr = offer.regulation_rates[0]
                orders.append(IssueBalancingOrder(
                    offer_id=offer.id,
                    fraction=1.0,
                    price=-rr.up_regulation_payment * factors.up_regulation_price_factor,
                ))
                orders.append(IssueBalancingOrder(
                    offer_id=offer.id,
                    fraction=-1.0,
                    price=-rr.down_regulation_payment * factors.down_regulation_price_factor,
                ))
        for order in orders:
            self.outbox.send(order)
        return orders
