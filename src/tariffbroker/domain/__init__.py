"""Domain value types and message payloads."""

from .messages import (
    BalancingControlExercised,
    BootstrapUsage,
    InboundEvent,
    IssueBalancingOrder,
    OutboundAction,
    PeriodElapsed,
    PublishTariff,
    ReviseTariff,
    RevokeTariff,
    TariffAnnounced,
    TariffStatus,
    TariffStatusCode,
    TariffTransaction,
    TariffWithdrawn,
    TransactionType,
)
from .tariffs import (
    CustomerSegment,
    PowerType,
    Rate,
    RegulationRate,
    TariffOffer,
    next_offer_id,
)

__all__ = [
    "BalancingControlExercised",
    "BootstrapUsage",
    "CustomerSegment",
    "InboundEvent",
    "IssueBalancingOrder",
    "OutboundAction",
    "PeriodElapsed",
    "PowerType",
    "PublishTariff",
    "Rate",
    "RegulationRate",
    "ReviseTariff",
    "RevokeTariff",
    "TariffAnnounced",
    "TariffOffer",
    "TariffStatus",
    "TariffStatusCode",
    "TariffTransaction",
    "TariffWithdrawn",
    "TransactionType",
    "next_offer_id",
]
