"""Tariff pricing decisions."""

from .decision import (
    DecisionContext,
    PeriodCounters,
    PeriodRecord,
    PricingDecisionEngine,
    PricingRule,
    default_rules,
)

__all__ = [
    "DecisionContext",
    "PeriodCounters",
    "PeriodRecord",
    "PricingDecisionEngine",
    "PricingRule",
    "default_rules",
]
