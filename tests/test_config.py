"""Tests for configuration loading, validation and sanity checks."""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pydantic import ValidationError

from tariffbroker.config.loader import load_config, config_from_dict, merge_dicts
from tariffbroker.config.schema import Config
from tariffbroker.pricing.decision import PeriodRecord
from tariffbroker.validation.sanity_checks import SanityChecker, validate_history


def config_with(section, **values):
    """Default config with one section's fields overridden."""
    data = load_config().to_dict()
    data[section].update(values)
    return config_from_dict(data)


class TestConfigLoading:
    """Tests for the packaged defaults."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert isinstance(config, Config)

    def test_default_cadence(self):
        """Defaults decide every 6 timeslots after a 360-slot warmup."""
        config = load_config()
        assert config.timing.period_length == 6
        assert config.timing.warmup_timeslots == 360
        assert config.timing.cycle_length == 168
        assert config.usage.alpha == pytest.approx(0.3)

    def test_default_pricing(self):
        config = load_config()
        assert config.pricing.entry_budget == 3
        assert config.pricing.perturbation == pytest.approx(0.01)
        assert config.pricing.rate_ceiling == pytest.approx(-0.065)

    def test_default_triggers(self):
        config = load_config()
        assert config.triggers.balancing_timeslot == 371
        assert config.triggers.supersede_timeslot == 380
        assert config.initial_tariffs.enabled is False

    def test_config_hash_deterministic(self):
        """Same config produces same hash."""
        assert load_config().compute_hash() == load_config().compute_hash()

    def test_config_hash_changes_with_values(self):
        assert config_with("pricing", entry_budget=5).compute_hash() != load_config().compute_hash()

    def test_round_trip_dict(self):
        config = load_config()
        assert config_from_dict(config.to_dict()) == config


class TestOverrides:
    """Tests for partial configs layered over the packaged defaults."""

    def test_partial_dict_keeps_other_defaults(self):
        config = config_from_dict({"pricing": {"entry_budget": 5}})
        assert config.pricing.entry_budget == 5
        assert config.pricing.rate_ceiling == pytest.approx(-0.065)
        assert config.timing.warmup_timeslots == 360

    def test_empty_dict_is_defaults(self):
        assert config_from_dict({}) == load_config()

    def test_non_dict_override_replaces(self):
        merged = merge_dicts({"broker": {"username": "sample"}}, {"broker": "alice"})
        assert merged == {"broker": "alice"}

    def test_merge_does_not_mutate(self):
        base = {"timing": {"period_length": 6}}
        merge_dicts(base, {"timing": {"period_length": 12}})
        assert base == {"timing": {"period_length": 6}}

    def test_partial_yaml_file(self, tmp_path):
        path = tmp_path / "game.yaml"
        path.write_text("broker:\n  username: alice\ntriggers:\n  supersede_timeslot: 400\n")
        config = load_config(str(path))
        assert config.broker.username == "alice"
        assert config.triggers.supersede_timeslot == 400
        assert config.triggers.balancing_timeslot == 371


class TestConfigValidation:
    """Tests for schema constraints."""

    def test_broker_accepts_bare_username(self):
        data = load_config().to_dict()
        data["broker"] = "alice"
        config = config_from_dict(data)
        assert config.broker.username == "alice"
        assert config.broker.default_broker == "default broker"

    def test_username_cannot_be_default_broker(self):
        data = load_config().to_dict()
        data["broker"]["username"] = "default broker"
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_alpha_must_be_positive(self):
        with pytest.raises(ValidationError):
            config_with("usage", alpha=0.0)

    def test_alpha_at_most_one(self):
        with pytest.raises(ValidationError):
            config_with("usage", alpha=1.5)

    def test_rate_ceiling_must_be_negative(self):
        with pytest.raises(ValidationError):
            config_with("pricing", rate_ceiling=0.0)

    def test_period_length_positive(self):
        with pytest.raises(ValidationError):
            config_with("timing", period_length=0)

    def test_optional_sections_default(self):
        """Sections with defaults may be omitted."""
        data = load_config().to_dict()
        for section in ("tariff", "triggers", "initial_tariffs", "diagnostics"):
            del data[section]
        config = Config.from_dict(data)
        assert config.triggers.balancing_timeslot is None
        assert config.triggers.supersede_timeslot is None
        assert config.diagnostics.stats_path is None


class TestSanityChecks:
    """Tests for implausible-but-valid settings."""

    def test_defaults_are_clean(self):
        assert SanityChecker(load_config()).check_config_inputs() == []

    def test_warmup_not_on_period_boundary(self):
        warnings = SanityChecker(config_with("timing", warmup_timeslots=361)).check_config_inputs()
        assert any("multiple of the period" in w.message for w in warnings)

    def test_partial_day_cycle(self):
        warnings = SanityChecker(config_with("timing", cycle_length=100)).check_config_inputs()
        assert any(w.category == "timing" and "whole days" in w.message for w in warnings)

    def test_trigger_before_warmup(self):
        warnings = SanityChecker(config_with("triggers", supersede_timeslot=100)).check_config_inputs()
        assert any("supersede_timeslot" in w.message for w in warnings)

    def test_zero_entry_budget(self):
        warnings = SanityChecker(config_with("pricing", entry_budget=0)).check_config_inputs()
        assert any("aggressive entry is disabled" in w.message for w in warnings)

    def test_extreme_alpha(self):
        warnings = SanityChecker(config_with("usage", alpha=0.01)).check_config_inputs()
        assert any(w.category == "usage" for w in warnings)

    def test_published_rate_above_ceiling_is_error(self):
        record = PeriodRecord(
            period=0, timeslot=366, snapshot=None, signups=0, consumptions=0,
            withdrawals=0, tariffs=0, cash=0.0, cash_gain=0.0, publication_fee=0.0,
            entry_budget=3, rule="no_uptake", published_rate=-0.01,
        )
        warnings = SanityChecker(load_config()).check_period(record)
        assert [w.severity for w in warnings] == ["error"]

    def test_history_budget_must_not_increase(self):
        def record(period, budget):
            return PeriodRecord(
                period=period, timeslot=366 + 6 * period, snapshot=None, signups=0,
                consumptions=0, withdrawals=0, tariffs=0, cash=0.0, cash_gain=0.0,
                publication_fee=0.0, entry_budget=budget,
            )

        warnings = validate_history(load_config(), [record(0, 2), record(1, 3)])
        assert any("increased" in w.message for w in warnings)
        assert validate_history(load_config(), [record(0, 3), record(1, 2)]) == []
