"""Utility helpers exposed by :mod:`bachelier_engine`."""

from .validation import (
    validate_implied_volatility_parameters,
    validate_pricing_parameters,
)

__all__ = [
    "validate_implied_volatility_parameters",
    "validate_pricing_parameters",
]
