"""Human-readable per-period statistics file."""

import logging
import math
import os
from typing import Optional, TextIO

from ..pricing.decision import PeriodRecord

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 42


def format_period(record: PeriodRecord) -> str:
    """Render one period as the block written to the stats file."""
    lines = [f"Period: {record.period}", f"Timeslot: {record.timeslot}"]
    snapshot = record.snapshot
    if snapshot is None:
        lines.append("No tariffs found")
    else:
        rate, signup = snapshot.fixed_rate, snapshot.signup_payment
        lines.extend([
            f"Mean of fixed rate: {rate.mean}",
            f"Max of fixed rate: {rate.max}",
            f"Min of fixed rate: {rate.min}",
            f"SD of fixed rate: {rate.sd}",
            f"rate of change of mean fixed rate: {snapshot.delta_mean_rate}",
            f"Mean of signup: {signup.mean}",
            f"Max of signup: {signup.max}",
            f"Min of signup: {signup.min}",
            f"SD of signup: {signup.sd}",
            f"rate of change of mean signup: {snapshot.delta_mean_signup}",
        ])
    lines.extend([
        f"Subscription of customers to Agent: {record.signups}",
        f"Number of tariffs published in period: {record.tariffs}",
    ])
    if not math.isnan(record.aggressiveness):
        lines.append(f"Aggressive value: {record.aggressiveness}")
    if record.rule is not None:
        lines.append(f"Published ({record.rule}): {record.published_rate}")
    lines.extend([SEPARATOR, SEPARATOR])
    return os.linesep.join(lines) + os.linesep


class StatsFileSink:
    """
    Appends period blocks to a text file.

    Writing is best-effort: the file is opened on first use, and any
    OSError is logged and dropped so the broker keeps running.
    """

    def __init__(self, path: str):
        self.path = path
        self._handle: Optional[TextIO] = None
        self._failed = False

    def __call__(self, record: PeriodRecord):
        self.write(record)

    def write(self, record: PeriodRecord):
        if self._failed:
            return
        try:
            if self._handle is None:
                self._handle = open(self.path, "w")
            self._handle.write(format_period(record))
            self._handle.flush()
        except OSError as e:
            logger.debug("stats file %s unavailable: %s", self.path, e)
            self._failed = True

    def close(self):
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError as e:
                logger.debug("closing stats file %s failed: %s", self.path, e)
            self._handle = None
