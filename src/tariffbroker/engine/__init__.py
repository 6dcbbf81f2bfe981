"""Usage estimation and subscription tracking."""

from .subscriptions import SubscriptionBook
from .usage import UsageLedger, UsageRecord

__all__ = [
    "SubscriptionBook",
    "UsageLedger",
    "UsageRecord",
]
