"""Inbound market events and outbound broker actions.

The wire format belongs to the host platform; these are the decoded
payloads the portfolio manager consumes and produces.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple, Union

from .tariffs import CustomerSegment, PowerType, TariffOffer


class TransactionType(Enum):
    """Tariff transaction kinds posted by the host platform."""
    SIGNUP = "SIGNUP"
    WITHDRAW = "WITHDRAW"
    PRODUCE = "PRODUCE"
    CONSUME = "CONSUME"
    PERIODIC = "PERIODIC"
    PUBLISH = "PUBLISH"
    REVOKE = "REVOKE"


class TariffStatusCode(Enum):
    """Acknowledgment codes for a tariff message."""
    SUCCESS = "SUCCESS"
    NO_SUCH_TARIFF = "NO_SUCH_TARIFF"
    NO_SUCH_UPDATE = "NO_SUCH_UPDATE"
    ILLEGAL_SPECIFICATION = "ILLEGAL_SPECIFICATION"
    DUPLICATE_ID = "DUPLICATE_ID"
    INVALID_UPDATE = "INVALID_UPDATE"
    INVALID_SPECIFICATION = "INVALID_SPECIFICATION"


# ---- inbound ----

@dataclass(frozen=True)
class BootstrapUsage:
    """Historical per-slot net usage for a whole customer segment."""
    segment: CustomerSegment
    power_type: PowerType
    net_usage: Tuple[float, ...]
    start_index: int = 0


@dataclass(frozen=True)
class TariffAnnounced:
    offer: TariffOffer


@dataclass(frozen=True)
class TariffStatus:
    offer_id: int
    status: TariffStatusCode = TariffStatusCode.SUCCESS


@dataclass(frozen=True)
class TariffTransaction:
    """A signup, withdrawal or metered usage against one tariff."""
    offer_id: int
    segment: CustomerSegment
    tx_type: TransactionType
    customer_count: int = 0
    kwh: float = 0.0
    posted_time: Union[int, datetime] = 0


@dataclass(frozen=True)
class TariffWithdrawn:
    offer_id: int
    broker: str


@dataclass(frozen=True)
class BalancingControlExercised:
    offer_id: int
    kwh: float


@dataclass(frozen=True)
class PeriodElapsed:
    timeslot: int


InboundEvent = Union[
    BootstrapUsage,
    TariffAnnounced,
    TariffStatus,
    TariffTransaction,
    TariffWithdrawn,
    BalancingControlExercised,
    PeriodElapsed,
]


# ---- outbound ----

@dataclass(frozen=True)
class PublishTariff:
    offer: TariffOffer


@dataclass(frozen=True)
class ReviseTariff:
    offer: TariffOffer
    supersedes_id: int


@dataclass(frozen=True)
class RevokeTariff:
    offer_id: int


@dataclass(frozen=True)
class IssueBalancingOrder:
    """Standing offer to curtail (fraction > 0) or boost (fraction < 0) usage."""
    offer_id: int
    fraction: float
    price: float


OutboundAction = Union[PublishTariff, ReviseTariff, RevokeTariff, IssueBalancingOrder]
