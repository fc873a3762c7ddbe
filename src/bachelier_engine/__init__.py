"""Bachelier (normal) model option pricing and implied volatility."""

from __future__ import annotations

from .core import (
    ArbitrageViolationError,
    BoardReport,
    BoardResult,
    ImpliedVolatilityBoard,
    InvalidInputError,
    NormalGreeks,
    NormalMarketData,
    NormalModel,
    NormalModelError,
    NormalOptionContract,
    NormalPricingEngine,
    OptionType,
    PricingResult,
    implied_volatility,
    implied_volatility_root,
    intrinsic_value,
    price,
    price_array,
    price_greeks,
)

__all__ = [
    "ArbitrageViolationError",
    "BoardReport",
    "BoardResult",
    "ImpliedVolatilityBoard",
    "InvalidInputError",
    "NormalGreeks",
    "NormalMarketData",
    "NormalModel",
    "NormalModelError",
    "NormalOptionContract",
    "NormalPricingEngine",
    "OptionType",
    "PricingResult",
    "implied_volatility",
    "implied_volatility_root",
    "intrinsic_value",
    "price",
    "price_array",
    "price_greeks",
]
