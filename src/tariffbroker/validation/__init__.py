"""Validation and sanity checks for the tariff broker."""

from .sanity_checks import SanityChecker, ValidationWarning, validate_history

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "validate_history"
]
