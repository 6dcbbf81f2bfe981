"""Usage ledger - Per-capita usage profiles with exponential smoothing.

Key Concepts:
- Usage is stored per customer unit and reported as per-capita usage times
  the subscribed population, so history stays useful as subscriptions shift
- Each segment has one profile record per power type and one record per
  tariff it subscribes to; the two are independent copies
- Slots wrap modulo the cycle length (one simulated week by default)
- Sign convention: negative kWh is production, positive is consumption
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Hashable, Optional, Sequence, Union

import numpy as np

from ..domain.tariffs import CustomerSegment, PowerType

logger = logging.getLogger(__name__)

TimeIndex = Union[int, datetime]


@dataclass
class UsageRecord:
    """Subscribed population and smoothed per-capita usage for one segment."""
    segment: CustomerSegment
    cycle_length: int
    alpha: float = 0.3
    subscribed_population: int = 0
    usage: np.ndarray = field(default=None, repr=False)
    # Slots that have been written at least once
    written: np.ndarray = field(default=None, repr=False)

    def __post_init__(self):
        if self.usage is None:
            self.usage = np.zeros(self.cycle_length)
        if self.written is None:
            self.written = np.zeros(self.cycle_length, dtype=bool)

    def copy_profile(self) -> 'UsageRecord':
        """Clone the usage profile with an empty subscription count."""
        return UsageRecord(
            segment=self.segment,
            cycle_length=self.cycle_length,
            alpha=self.alpha,
            usage=self.usage.copy(),
            written=self.written.copy(),
        )

    def slot(self, raw_index: int) -> int:
        return raw_index % self.cycle_length

    def signup(self, population: int):
        """Add individuals, never beyond the segment population."""
        self.subscribed_population = min(
            self.segment.population,
            self.subscribed_population + population
        )

    def withdraw(self, population: int):
        """Remove individuals from the count."""
        remaining = self.subscribed_population - population
        if remaining < 0:
            logger.warning(
                "withdrawal of %d exceeds %d subscribed for %s",
                population, self.subscribed_population, self.segment.name
            )
            remaining = 0
        self.subscribed_population = remaining

    def produce_consume(self, kwh: float, raw_index: int):
        """Blend an observation into the slot for raw_index."""
        index = self.slot(raw_index)
        kwh_per_customer = 0.0
        if self.subscribed_population > 0:
            kwh_per_customer = kwh / float(self.subscribed_population)
        if not self.written[index]:
            self.usage[index] = kwh_per_customer
            self.written[index] = True
        else:
            self.usage[index] = (
                self.alpha * kwh_per_customer + (1.0 - self.alpha) * self.usage[index]
            )
        logger.debug("consume %s at %d, customer %s", kwh, index, self.segment.name)

    def get_usage(self, index: int) -> float:
        """Expected usage of the subscribed population at a timeslot index."""
        if index < 0:
            logger.warning("usage requested for negative index %d", index)
            index = 0
        return float(self.usage[self.slot(index)] * self.subscribed_population)


class UsageLedger:
    """Owns every UsageRecord, keyed by power type or by tariff."""

    def __init__(
        self,
        cycle_length: int,
        alpha: float = 0.3,
        index_of: Optional[Callable[[datetime], int]] = None
    ):
        """
        Initialize usage ledger.

        Args:
            cycle_length: Number of slots per usage cycle
            alpha: Exponential smoothing factor
            index_of: Maps a wall-clock instant to a timeslot index
        """
        self.cycle_length = cycle_length
        self.alpha = alpha
        self.index_of = index_of
        self.profiles: Dict[PowerType, Dict[CustomerSegment, UsageRecord]] = {}
        self.subscriptions: Dict[Hashable, Dict[CustomerSegment, UsageRecord]] = {}

    def profile_record(self, power_type: PowerType, segment: CustomerSegment) -> UsageRecord:
        """Return the record for a power type and segment, creating it if necessary."""
        records = self.profiles.setdefault(power_type, {})
        record = records.get(segment)
        if record is None:
            record = UsageRecord(segment, self.cycle_length, self.alpha)
            records[segment] = record
        return record

    def tariff_record(
        self,
        tariff_id: Hashable,
        power_type: PowerType,
        segment: CustomerSegment
    ) -> UsageRecord:
        """
        Return the record for a tariff and segment, creating it if necessary.

        A new record is seeded with a one-time copy of the segment's profile
        for the tariff's power type.
        """
        records = self.subscriptions.setdefault(tariff_id, {})
        record = records.get(segment)
        if record is None:
            record = self.profile_record(power_type, segment).copy_profile()
            records[segment] = record
        return record

    def open_tariff(self, tariff_id: Hashable):
        """Start an empty subscriber table for a tariff."""
        self.subscriptions.setdefault(tariff_id, {})

    def drop_tariff(self, tariff_id: Hashable) -> bool:
        """Delete a tariff's subscriber table. Returns False if unknown."""
        return self.subscriptions.pop(tariff_id, None) is not None

    def resolve_index(self, when: TimeIndex) -> int:
        """Convert an instant or raw timeslot to a timeslot index."""
        if isinstance(when, datetime):
            if self.index_of is None:
                raise ValueError("No clock mapping configured for instant-based usage")
            return self.index_of(when)
        return int(when)

    def record_usage(self, record: UsageRecord, kwh: float, when: TimeIndex):
        record.produce_consume(kwh, self.resolve_index(when))

    def get_usage(self, record: UsageRecord, index: int) -> float:
        return record.get_usage(index)

    def adjust_population(self, record: UsageRecord, delta: int, clamp_to_segment_total: bool = True):
        """
        Apply a signup (delta > 0) or withdrawal (delta < 0).

        Args:
            record: Record to adjust
            delta: Change in subscribed individuals
            clamp_to_segment_total: Cap signups at the segment population
        """
        if delta >= 0:
            if clamp_to_segment_total:
                record.signup(delta)
            else:
                record.subscribed_population += delta
        else:
            record.withdraw(-delta)

    def bootstrap(
        self,
        power_type: PowerType,
        segment: CustomerSegment,
        net_usage: Sequence[float],
        start_index: int = 0
    ) -> UsageRecord:
        """
        Seed a segment profile from historical whole-population usage.

        The full population is treated as subscribed while recording, then the
        previous subscribed count is restored.
        """
        record = self.profile_record(power_type, segment)
        saved = record.subscribed_population
        record.subscribed_population = segment.population
        for offset, kwh in enumerate(net_usage):
            record.produce_consume(kwh, start_index + offset)
        record.subscribed_population = saved
        return record

    def iter_tariff_records(self):
        """Yield (tariff_id, record) for every per-tariff record."""
        for tariff_id, records in self.subscriptions.items():
            for record in records.values():
                yield tariff_id, record

    def raw_profiles(self, segment: CustomerSegment) -> Dict[PowerType, np.ndarray]:
        """Per-capita usage arrays for a segment, by power type."""
        result = {}
        for power_type, records in self.profiles.items():
            record = records.get(segment)
            if record is not None:
                result[power_type] = record.usage
        return result

