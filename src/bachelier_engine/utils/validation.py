"""Validation helpers for normal model inputs."""

from __future__ import annotations

import math

from ..core.errors import InvalidInputError


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite, got {value!r}")


def validate_pricing_parameters(
    forward: float,
    strike: float,
    time_to_expiry: float,
    volatility: float,
    discount_factor: float = 1.0,
) -> None:
    """Validate that inputs to the forward pricing formula are well formed."""

    _require_finite("forward", forward)
    _require_finite("strike", strike)
    _require_finite("volatility", volatility)
    if not time_to_expiry > 0 or not math.isfinite(time_to_expiry):
        raise InvalidInputError("time_to_expiry must be strictly positive")
    if volatility < 0:
        raise InvalidInputError("volatility must be non-negative")
    if not discount_factor > 0 or not math.isfinite(discount_factor):
        raise InvalidInputError("discount_factor must be strictly positive")


def validate_implied_volatility_parameters(
    option_price: float,
    forward: float,
    strike: float,
    time_to_expiry: float,
    discount_factor: float,
) -> None:
    """Validate the inputs of an implied volatility inversion."""

    _require_finite("option_price", option_price)
    _require_finite("forward", forward)
    _require_finite("strike", strike)
    if option_price < 0:
        raise InvalidInputError("option_price must be non-negative")
    if not time_to_expiry > 0 or not math.isfinite(time_to_expiry):
        raise InvalidInputError("time_to_expiry must be strictly positive")
    if not discount_factor > 0 or not math.isfinite(discount_factor):
        raise InvalidInputError("discount_factor must be strictly positive")
