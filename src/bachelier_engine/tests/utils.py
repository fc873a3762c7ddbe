"""Shared market scenarios for the normal model tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

FORWARD = 123.4
DISCOUNT_FACTOR = 0.95
TIME_TO_EXPIRY = 3.25
NB_SCENARIOS = 10
TOLERANCE_VOL = 1.0e-7


@dataclass(frozen=True)
class RoundTripScenario:
    """Strike and normal volatility pair used by the round trip checks."""

    strike: float
    volatility: float


def _volatility(index: int) -> float:
    return FORWARD * (0.05 + 4.0 * index / 100.0)


def wide_strike_grid() -> List[RoundTripScenario]:
    """Strikes ten units apart on both sides of the forward."""

    return [
        RoundTripScenario(FORWARD + (-NB_SCENARIOS // 2 + index) * 10.0, _volatility(index))
        for index in range(NB_SCENARIOS)
    ]


def atm_strike_grid() -> List[RoundTripScenario]:
    """Strikes within a few 1e-10 of the forward."""

    return [
        RoundTripScenario(FORWARD + (-0.5 * NB_SCENARIOS + index) * 3.0e-10, _volatility(index))
        for index in range(NB_SCENARIOS)
    ]


__all__ = [
    "DISCOUNT_FACTOR",
    "FORWARD",
    "NB_SCENARIOS",
    "RoundTripScenario",
    "TIME_TO_EXPIRY",
    "TOLERANCE_VOL",
    "atm_strike_grid",
    "wide_strike_grid",
]
