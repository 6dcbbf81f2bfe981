"""Subscription book - Our tariffs and the customers subscribed to them."""

import logging
from typing import Dict, List, Optional

import numpy as np

from ..domain.tariffs import CustomerSegment, PowerType, TariffOffer
from .usage import TimeIndex, UsageLedger, UsageRecord

logger = logging.getLogger(__name__)


class SubscriptionBook:
    """Tracks our own tariffs and routes subscriber activity to the usage ledger."""

    def __init__(self, ledger: UsageLedger):
        """
        Initialize subscription book.

        Args:
            ledger: Usage ledger holding the per-tariff records
        """
        self.ledger = ledger
        self.tariffs: Dict[int, TariffOffer] = {}

    # -------------- own tariffs ------------------

    def register_own_tariff(self, offer: TariffOffer):
        """Add a tariff with an empty subscriber table."""
        self.tariffs[offer.id] = offer
        self.ledger.open_tariff(offer.id)

    def remove_tariff(self, tariff_id: int) -> bool:
        """Forget a tariff and its per-tariff usage table."""
        known = self.tariffs.pop(tariff_id, None) is not None
        self.ledger.drop_tariff(tariff_id)
        return known

    def own_tariffs(self, power_type: Optional[PowerType] = None) -> List[TariffOffer]:
        """Our tariffs in publication order, optionally filtered by power type."""
        return [
            offer for offer in self.tariffs.values()
            if power_type is None or offer.power_type is power_type
        ]

    def is_empty(self) -> bool:
        return len(self.ledger.subscriptions) == 0

    # -------------- subscriber activity ------------------

    def record_for(self, tariff_id: int, segment: CustomerSegment) -> UsageRecord:
        """
        Per-tariff record for a segment.

        The tariff's power type selects the profile used as seed; for a
        tariff we do not know, the segment's own power type is used.
        """
        offer = self.tariffs.get(tariff_id)
        power_type = offer.power_type if offer is not None else segment.power_type
        return self.ledger.tariff_record(tariff_id, power_type, segment)

    def on_signup(self, tariff_id: int, segment: CustomerSegment, count: int) -> UsageRecord:
        record = self.record_for(tariff_id, segment)
        self.ledger.adjust_population(record, count)
        return record

    def on_withdraw(self, tariff_id: int, segment: CustomerSegment, count: int) -> UsageRecord:
        # customers presumably found a better deal
        record = self.record_for(tariff_id, segment)
        self.ledger.adjust_population(record, -count)
        return record

    def on_transaction(
        self,
        tariff_id: int,
        segment: CustomerSegment,
        kwh: float,
        when: TimeIndex,
        customer_count: Optional[int] = None
    ) -> UsageRecord:
        """
        Record metered production (kwh < 0) or consumption (kwh > 0).

        A customer count that differs from our subscribed population makes the
        per-capita estimate unreliable; it is logged and applied anyway.
        """
        record = self.record_for(tariff_id, segment)
        if customer_count is not None and customer_count != record.subscribed_population:
            logger.warning(
                "usage by subset %d of subscribed population %d (tariff %s, %s)",
                customer_count, record.subscribed_population, tariff_id, segment.name
            )
        self.ledger.record_usage(record, kwh, when)
        return record

    # -------------- usage queries ------------------

    def total_net_usage(self, index: int) -> float:
        """
        Net energy we must supply at a timeslot index.

        Records track flow from the customer's side; the sign is flipped to
        give the broker's energy account balance.
        """
        result = 0.0
        for _, record in self.ledger.iter_tariff_records():
            result += self.ledger.get_usage(record, index)
        return -result

    def usage_for_customer(self, segment: CustomerSegment, tariff_id: int, index: int) -> float:
        return self.ledger.get_usage(self.record_for(tariff_id, segment), index)

    def raw_usage_for_customer(self, segment: CustomerSegment) -> Dict[PowerType, np.ndarray]:
        return self.ledger.raw_profiles(segment)

    def customer_counts(self) -> Dict[str, int]:
        """Subscribed population keyed by segment name plus tariff power type."""
        result = {}
        for tariff_id, record in self.ledger.iter_tariff_records():
            offer = self.tariffs.get(tariff_id)
            power_type = offer.power_type if offer is not None else record.segment.power_type
            result[record.segment.name + power_type.value] = record.subscribed_population
        return result
