"""Market observer - Competing tariffs and periodic price statistics."""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..domain.tariffs import PowerType, TariffOffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesStats:
    """Summary statistics over one set of values."""
    mean: float
    sd: float  # Sample standard deviation; NaN with fewer than 2 samples
    min: float
    max: float
    count: int

    @classmethod
    def of(cls, values: Sequence[float]) -> Optional['SeriesStats']:
        """Statistics for values, or None when there are none."""
        if len(values) == 0:
            return None
        arr = np.asarray(values, dtype=float)
        sd = float(np.std(arr, ddof=1)) if arr.size > 1 else math.nan
        return cls(
            mean=float(arr.mean()),
            sd=sd,
            min=float(arr.min()),
            max=float(arr.max()),
            count=int(arr.size),
        )


@dataclass(frozen=True)
class MarketSnapshot:
    """Consumption-tariff statistics for one period."""
    fixed_rate: SeriesStats
    signup_payment: SeriesStats
    delta_mean_rate: float = 0.0
    delta_min_rate: float = 0.0
    delta_max_rate: float = 0.0
    delta_mean_signup: float = 0.0

    def aggressiveness(self, signups: int, tariffs_seen: int) -> float:
        """
        Weighted summary of how hard the market is competing.

        Cheaper, tighter, falling rates and richer signup payments push the
        score up. Diagnostic only.
        """
        rate, signup = self.fixed_rate, self.signup_payment
        rate_sd = 0.0 if math.isnan(rate.sd) else rate.sd
        signup_sd = 0.0 if math.isnan(signup.sd) else signup.sd
        return (
            -10.0 * (rate.mean + rate_sd + rate.max + rate.min + self.delta_mean_rate)
            + 10.0 * (signup.mean + signup.max + signup.min)
            - 10.0 * (signup_sd + self.delta_mean_signup)
            + signups + tariffs_seen
        )


class MarketObserver:
    """Keeps the live set of rival tariffs per power type."""

    def __init__(self, own_broker: str, default_broker: str = "default broker"):
        """
        Initialize market observer.

        Args:
            own_broker: Our username; announcements from it are echoes
            default_broker: Reference broker excluded from statistics
        """
        self.own_broker = own_broker
        self.default_broker = default_broker
        self.competing: Dict[PowerType, List[TariffOffer]] = {}
        self.previous: Optional[MarketSnapshot] = None

    def competing_tariffs(self, power_type: PowerType) -> List[TariffOffer]:
        """Live competitor offers for a power type."""
        return self.competing.setdefault(power_type, [])

    def on_competitor_tariff_announced(self, offer: TariffOffer) -> bool:
        """Track a rival's offer. Returns False for our own echoed offers."""
        if offer.broker == self.own_broker:
            logger.info("published %s", offer.id)
            return False
        self.competing_tariffs(offer.power_type).append(offer)
        return True

    def on_competitor_tariff_withdrawn(self, offer_id: int) -> Optional[TariffOffer]:
        """Drop a rival's offer. Unknown ids are logged and ignored."""
        for offers in self.competing.values():
            for offer in offers:
                if offer.id == offer_id:
                    offers.remove(offer)
                    return offer
        logger.warning("Original tariff %s not found", offer_id)
        return None

    def find(self, offer_id: int) -> Optional[TariffOffer]:
        for offers in self.competing.values():
            for offer in offers:
                if offer.id == offer_id:
                    return offer
        return None

    def compute_snapshot(self, own_offers: Iterable[TariffOffer]) -> Optional[MarketSnapshot]:
        """
        Statistics over every live consumption offer, ours included.

        Args:
            own_offers: Our current offers; non-consumption ones are skipped

        Returns:
            MarketSnapshot, or None when there are no rates to summarize. The
            previous snapshot is kept in that case so deltas stay meaningful.
        """
        offers = [
            offer for offer in self.competing_tariffs(PowerType.CONSUMPTION)
            if offer.broker != self.default_broker
        ]
        offers.extend(
            offer for offer in own_offers if offer.power_type is PowerType.CONSUMPTION
        )

        rates: List[float] = []
        signups: List[float] = []
        for offer in offers:
            rates.extend(offer.fixed_rate_values())
            signups.append(offer.signup_payment)

        rate_stats = SeriesStats.of(rates)
        signup_stats = SeriesStats.of(signups)
        if rate_stats is None or signup_stats is None:
            logger.info("No tariffs found")
            return None

        previous = self.previous
        if previous is None:
            snapshot = MarketSnapshot(fixed_rate=rate_stats, signup_payment=signup_stats)
        else:
            snapshot = MarketSnapshot(
                fixed_rate=rate_stats,
                signup_payment=signup_stats,
                delta_mean_rate=rate_stats.mean - previous.fixed_rate.mean,
                delta_min_rate=rate_stats.min - previous.fixed_rate.min,
                delta_max_rate=rate_stats.max - previous.fixed_rate.max,
                delta_mean_signup=signup_stats.mean - previous.signup_payment.mean,
            )
        self.previous = snapshot
        return snapshot
