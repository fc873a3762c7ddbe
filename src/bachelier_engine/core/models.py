"""Domain models for the normal model pricing engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from .errors import InvalidInputError


class OptionType(str, Enum):
    """Supported option contract types."""

    CALL = "call"
    PUT = "put"

    @property
    def sign(self) -> float:
        """Return ``+1`` for calls and ``-1`` for puts."""

        return 1.0 if self is OptionType.CALL else -1.0

    @classmethod
    def parse(cls, value: "OptionType | str") -> "OptionType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise InvalidInputError(f"unknown option type {value!r}") from exc


@dataclass(frozen=True, slots=True)
class NormalMarketData:
    """Forward and discounting required to price an option."""

    forward: float
    discount_factor: float = 1.0
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.forward):
            raise InvalidInputError("forward must be finite")
        if not math.isfinite(self.discount_factor) or self.discount_factor <= 0:
            raise InvalidInputError("discount_factor must be strictly positive")
        if self.timestamp is None:
            object.__setattr__(self, "timestamp", datetime.now(UTC))


@dataclass(frozen=True, slots=True)
class NormalOptionContract:
    """Immutable description of a European option on a forward."""

    symbol: str
    strike_price: float
    time_to_expiry: float
    option_type: OptionType
    contract_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.symbol:
            raise InvalidInputError("symbol must be a non-empty string")
        if not math.isfinite(self.strike_price):
            raise InvalidInputError("strike_price must be finite")
        if not self.time_to_expiry > 0:
            raise InvalidInputError("time_to_expiry must be strictly positive")

        contract_id = self.contract_id or (
            f"{self.symbol}_{self.strike_price:.4f}_"
            f"{self.time_to_expiry:.6f}_{self.option_type.value}"
        )
        object.__setattr__(self, "contract_id", contract_id)


@dataclass(slots=True)
class PricingResult:
    """Container for the outcome of a pricing model evaluation."""

    contract_id: str
    theoretical_price: float
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    implied_volatility: Optional[float] = None
    computation_time_ms: float = 0.0
    model_used: str = "unknown"
    error: Optional[str] = None
