"""Tariff and customer-segment value types.

Sign conventions follow the retail market: rate values are seen from the
customer's side, so a consumption rate is negative (the customer pays) and a
rate closer to zero is a better deal for the customer.
"""

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class PowerType(Enum):
    """Classification of a tariff or customer segment."""
    CONSUMPTION = "CONSUMPTION"
    PRODUCTION = "PRODUCTION"
    INTERRUPTIBLE_CONSUMPTION = "INTERRUPTIBLE_CONSUMPTION"


@dataclass(frozen=True)
class CustomerSegment:
    """A customer model of one power type.

    Identity is (name, power_type); population is supplied by the host
    platform and is the ceiling for any subscribed count.
    """
    name: str
    power_type: PowerType
    population: int = field(default=1, compare=False)


@dataclass(frozen=True)
class Rate:
    """A per-kWh rate term."""
    value: float
    min_value: Optional[float] = None  # Lower bound for variable rates
    max_value: Optional[float] = None  # Upper bound for variable rates
    is_fixed: bool = True

    def __post_init__(self):
        """Fixed rates carry their value as both bounds."""
        if self.min_value is None:
            object.__setattr__(self, "min_value", self.value)
        if self.max_value is None:
            object.__setattr__(self, "max_value", self.value)


@dataclass(frozen=True)
class RegulationRate:
    """Payments for up- and down-regulation capacity."""
    up_regulation_payment: float
    down_regulation_payment: float


# Process-wide id source for offers issued by this broker
_offer_ids = itertools.count(1)


def next_offer_id() -> int:
    """Issue a fresh offer id."""
    return next(_offer_ids)


@dataclass(frozen=True)
class TariffOffer:
    """A published pricing plan.

    Offers are immutable. A price change is a new offer whose ``supersedes``
    names the old id, followed by a revoke of the old offer.
    """
    broker: str
    power_type: PowerType
    rates: Tuple[Rate, ...] = ()
    regulation_rates: Tuple[RegulationRate, ...] = ()
    signup_payment: float = 0.0
    early_withdraw_payment: float = 0.0
    periodic_payment: float = 0.0
    min_duration: int = 0  # Milliseconds
    supersedes: Tuple[int, ...] = ()
    id: int = field(default_factory=next_offer_id)

    @property
    def has_regulation_rate(self) -> bool:
        return len(self.regulation_rates) > 0

    def fixed_rate_values(self) -> Tuple[float, ...]:
        """Values of every fixed rate term."""
        return tuple(rate.value for rate in self.rates if rate.is_fixed)
