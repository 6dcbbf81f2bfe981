"""Retail electricity tariff broker."""

__version__ = "0.1.0"
