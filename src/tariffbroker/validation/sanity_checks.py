"""Sanity checks for broker configuration and decision history."""

from dataclasses import dataclass
from typing import List, Optional

from ..config.schema import Config
from ..pricing.decision import PeriodRecord


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "timing", "pricing", "history"
    message: str
    details: Optional[str] = None


class SanityChecker:
    """Run sanity checks on configuration and period history."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        The schema already rejects impossible settings; these are values
        that load fine but are unlikely to be what was meant.

        Returns:
            List of validation warnings
        """
        warnings = []
        timing = self.config.timing

        # Decisions happen on period boundaries after warmup
        if timing.warmup_timeslots % timing.period_length != 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="timing",
                message="Warmup is not a multiple of the period length",
                details=f"warmup={timing.warmup_timeslots}, period={timing.period_length}"
            ))

        if timing.cycle_length % 24 != 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="timing",
                message="Usage cycle does not cover whole days",
                details=f"cycle_length={timing.cycle_length}"
            ))

        if timing.period_length > timing.cycle_length:
            warnings.append(ValidationWarning(
                severity="warning",
                category="timing",
                message="Decision period is longer than the usage cycle",
                details=f"period={timing.period_length}, cycle={timing.cycle_length}"
            ))

        # One-shot procedures that fire before any tariff exists do nothing
        triggers = self.config.triggers
        for name in ("balancing_timeslot", "supersede_timeslot"):
            slot = getattr(triggers, name)
            if slot is not None and slot <= timing.warmup_timeslots and not self.config.initial_tariffs.enabled:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="timing",
                    message=f"Trigger {name} fires before the first decision period",
                    details=f"{name}={slot}, warmup={timing.warmup_timeslots}"
                ))
        if (triggers.balancing_timeslot is not None and triggers.supersede_timeslot is not None
                and triggers.supersede_timeslot == triggers.balancing_timeslot):
            warnings.append(ValidationWarning(
                severity="warning",
                category="timing",
                message="Balancing orders and supersession share a timeslot",
                details="Orders are issued against the tariff about to be revoked"
            ))

        pricing = self.config.pricing
        if pricing.rate_ceiling <= -1.0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="pricing",
                message="Rate ceiling of 1.0/kWh or more is unlikely to attract customers",
                details=f"rate_ceiling={pricing.rate_ceiling}"
            ))

        if pricing.entry_budget == 0:
            warnings.append(ValidationWarning(
                severity="warning",
                category="pricing",
                message="Entry budget is zero; aggressive entry is disabled",
            ))

        if pricing.perturbation > 0.1:
            warnings.append(ValidationWarning(
                severity="warning",
                category="pricing",
                message="Rate perturbation above 10% makes published prices erratic",
                details=f"perturbation={pricing.perturbation*100:.1f}%"
            ))

        alpha = self.config.usage.alpha
        if alpha < 0.05 or alpha > 0.9:
            warnings.append(ValidationWarning(
                severity="warning",
                category="usage",
                message="Smoothing factor is extreme; usage estimates will "
                        + ("barely move" if alpha < 0.05 else "track only the latest reading"),
                details=f"alpha={alpha}"
            ))

        return warnings

    def check_period(self, record: PeriodRecord) -> List[ValidationWarning]:
        """
        Check one period record for inconsistencies.

        Args:
            record: Diagnostics record from the decision engine

        Returns:
            List of validation warnings
        """
        warnings = []

        if record.published_rate is not None:
            ceiling = self.config.pricing.rate_ceiling
            if record.published_rate > ceiling:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="pricing",
                    message="Published rate is above the rate ceiling",
                    details=f"period {record.period}: {record.published_rate} > {ceiling}"
                ))

        if record.entry_budget < 0:
            warnings.append(ValidationWarning(
                severity="error",
                category="pricing",
                message="Entry budget went negative",
                details=f"period {record.period}: {record.entry_budget}"
            ))

        snapshot = record.snapshot
        if snapshot is not None:
            rate = snapshot.fixed_rate
            if not (rate.min <= rate.mean <= rate.max):
                warnings.append(ValidationWarning(
                    severity="error",
                    category="history",
                    message="Rate statistics are inconsistent",
                    details=f"period {record.period}: min={rate.min}, mean={rate.mean}, max={rate.max}"
                ))

        return warnings


def validate_history(config: Config, records: List[PeriodRecord]) -> List[ValidationWarning]:
    """
    Validate a configuration together with the decision history it produced.

    Args:
        config: Broker configuration
        records: Period records, oldest first

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(config)
    warnings = []

    # Check config first
    warnings.extend(checker.check_config_inputs())

    for record in records:
        warnings.extend(checker.check_period(record))

    budgets = [r.entry_budget for r in records]
    if any(later > earlier for earlier, later in zip(budgets, budgets[1:])):
        warnings.append(ValidationWarning(
            severity="error",
            category="history",
            message="Entry budget increased between periods",
        ))

    return warnings
