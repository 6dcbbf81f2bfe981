"""Unit tests for the usage ledger.

Tests verify:
- First write stores the observation, later writes blend with alpha
- Subscribed population is clamped to [0, segment population]
- Profile and per-tariff records are independent copies
- Bootstrap does not leave the profile looking subscribed
"""

import logging
import pytest
import sys
import os
from datetime import datetime, timedelta, timezone

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tariffbroker.domain.tariffs import CustomerSegment, PowerType
from tariffbroker.engine.usage import UsageLedger, UsageRecord


@pytest.fixture
def segment():
    return CustomerSegment("village", PowerType.CONSUMPTION, population=10)


class TestUsageRecord:
    """Tests for smoothing and population bookkeeping."""

    def test_first_write_is_stored_directly(self, segment):
        record = UsageRecord(segment, cycle_length=168)
        record.signup(10)
        record.produce_consume(50.0, 3)
        assert record.usage[3] == pytest.approx(5.0)
        assert record.get_usage(3) == pytest.approx(50.0)

    def test_second_write_blends(self, segment):
        """0.3 * 10 + 0.7 * 5 = 6.5 per customer."""
        record = UsageRecord(segment, cycle_length=168, alpha=0.3)
        record.signup(10)
        record.produce_consume(50.0, 3)
        record.produce_consume(100.0, 3 + 168)
        assert record.usage[3] == pytest.approx(6.5)
        assert record.get_usage(3 + 168 * 2) == pytest.approx(65.0)

    def test_zero_observation_counts_as_written(self, segment):
        """A zero reading is real data; the next reading blends with it."""
        record = UsageRecord(segment, cycle_length=168, alpha=0.3)
        record.signup(10)
        record.produce_consume(0.0, 5)
        record.produce_consume(100.0, 5)
        assert record.usage[5] == pytest.approx(3.0)

    def test_usage_with_no_subscribers_is_zero(self, segment):
        record = UsageRecord(segment, cycle_length=168)
        record.produce_consume(40.0, 0)
        assert record.usage[0] == 0.0
        assert record.get_usage(0) == 0.0

    def test_signup_clamped_to_population(self, segment):
        record = UsageRecord(segment, cycle_length=168)
        record.signup(7)
        record.signup(7)
        assert record.subscribed_population == 10

    def test_withdraw_underflow_clamps_and_warns(self, segment, caplog):
        record = UsageRecord(segment, cycle_length=168)
        record.signup(3)
        with caplog.at_level(logging.WARNING):
            record.withdraw(5)
        assert record.subscribed_population == 0
        assert "exceeds" in caplog.text

    def test_negative_index_reads_slot_zero(self, segment, caplog):
        record = UsageRecord(segment, cycle_length=168)
        record.signup(10)
        record.produce_consume(20.0, 0)
        with caplog.at_level(logging.WARNING):
            assert record.get_usage(-4) == pytest.approx(20.0)
        assert "negative index" in caplog.text

    def test_production_is_negative(self):
        producers = CustomerSegment("solar", PowerType.PRODUCTION, population=4)
        record = UsageRecord(producers, cycle_length=24)
        record.signup(4)
        record.produce_consume(-8.0, 1)
        assert record.get_usage(1) == pytest.approx(-8.0)


class TestUsageLedger:
    """Tests for profile and per-tariff records."""

    def test_profile_record_created_once(self, segment):
        ledger = UsageLedger(cycle_length=168)
        first = ledger.profile_record(PowerType.CONSUMPTION, segment)
        assert ledger.profile_record(PowerType.CONSUMPTION, segment) is first

    def test_tariff_record_seeded_from_profile(self, segment):
        ledger = UsageLedger(cycle_length=168)
        ledger.bootstrap(PowerType.CONSUMPTION, segment, [30.0, 40.0])
        record = ledger.tariff_record(11, PowerType.CONSUMPTION, segment)
        assert record.usage[0] == pytest.approx(3.0)
        assert record.subscribed_population == 0

    def test_tariff_record_independent_of_profile(self, segment):
        ledger = UsageLedger(cycle_length=168)
        profile = ledger.bootstrap(PowerType.CONSUMPTION, segment, [30.0])
        record = ledger.tariff_record(11, PowerType.CONSUMPTION, segment)
        ledger.adjust_population(record, 10)
        ledger.record_usage(record, 100.0, 0)
        assert profile.usage[0] == pytest.approx(3.0)
        assert record.usage[0] == pytest.approx(0.3 * 10.0 + 0.7 * 3.0)

    def test_bootstrap_restores_subscribed_count(self, segment):
        ledger = UsageLedger(cycle_length=168)
        profile = ledger.bootstrap(PowerType.CONSUMPTION, segment, [10.0] * 24)
        assert profile.subscribed_population == 0
        assert profile.usage[23] == pytest.approx(1.0)

    def test_bootstrap_start_index_wraps(self, segment):
        ledger = UsageLedger(cycle_length=168)
        profile = ledger.bootstrap(PowerType.CONSUMPTION, segment, [10.0, 20.0, 30.0], start_index=166)
        assert profile.usage[166] == pytest.approx(1.0)
        assert profile.usage[167] == pytest.approx(2.0)
        assert profile.usage[0] == pytest.approx(3.0)

    def test_adjust_population_withdrawal(self, segment):
        ledger = UsageLedger(cycle_length=168)
        record = ledger.tariff_record(1, PowerType.CONSUMPTION, segment)
        ledger.adjust_population(record, 8)
        ledger.adjust_population(record, -3)
        assert record.subscribed_population == 5

    def test_adjust_population_unclamped(self, segment):
        ledger = UsageLedger(cycle_length=168)
        record = ledger.tariff_record(1, PowerType.CONSUMPTION, segment)
        ledger.adjust_population(record, 25, clamp_to_segment_total=False)
        assert record.subscribed_population == 25

    def test_instant_resolved_through_clock(self, segment):
        base = datetime(2009, 1, 1, tzinfo=timezone.utc)
        ledger = UsageLedger(
            cycle_length=168,
            index_of=lambda t: int((t - base).total_seconds() // 3600),
        )
        assert ledger.resolve_index(base + timedelta(hours=5, minutes=30)) == 5
        assert ledger.resolve_index(7) == 7

    def test_instant_without_clock_raises(self):
        ledger = UsageLedger(cycle_length=168)
        with pytest.raises(ValueError):
            ledger.resolve_index(datetime(2009, 1, 1, tzinfo=timezone.utc))

    def test_drop_tariff(self, segment):
        ledger = UsageLedger(cycle_length=168)
        ledger.tariff_record(1, PowerType.CONSUMPTION, segment)
        assert ledger.drop_tariff(1) is True
        assert ledger.drop_tariff(1) is False
        assert list(ledger.iter_tariff_records()) == []
