"""Core pricing and inversion for the normal model."""

from .errors import ArbitrageViolationError, InvalidInputError, NormalModelError
from .models import NormalMarketData, NormalOptionContract, OptionType, PricingResult
from .normal_formula import (
    NormalGreeks,
    implied_volatility,
    implied_volatility_root,
    intrinsic_value,
    price,
    price_array,
    price_greeks,
)
from .pricing_engine import NormalPricingEngine
from .pricing_models import NormalModel
from .quote_board import BoardReport, BoardResult, ImpliedVolatilityBoard

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
