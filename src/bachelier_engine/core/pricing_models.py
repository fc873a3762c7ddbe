"""Normal model wrapper producing pricing results for contracts."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..config import get_settings
from ..observability.metrics import IMPLIED_VOL_BRANCH
from .models import NormalMarketData, NormalOptionContract, PricingResult
from .normal_formula import _solve_implied_volatility, check_atm_threshold, price_greeks

LOGGER = logging.getLogger(__name__)

MODEL_NAME = "bachelier"


@dataclass(slots=True)
class NormalModel:
    """Deterministic Bachelier pricing model.

    ``atm_threshold`` and ``intrinsic_tolerance`` default to the values held in
    :func:`bachelier_engine.config.get_settings`.
    """

    atm_threshold: Optional[float] = None
    intrinsic_tolerance: Optional[float] = None

    def __post_init__(self) -> None:
        settings = get_settings()
        if self.atm_threshold is None:
            self.atm_threshold = settings.atm_threshold
        check_atm_threshold(self.atm_threshold)
        if self.intrinsic_tolerance is None:
            self.intrinsic_tolerance = settings.intrinsic_tolerance

    def calculate_price(
        self,
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        volatility: float,
    ) -> PricingResult:
        start = time.perf_counter()
        try:
            greeks = price_greeks(
                market_data.forward,
                contract.strike_price,
                contract.time_to_expiry,
                volatility,
                contract.option_type,
                discount_factor=market_data.discount_factor,
            )
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            return PricingResult(
                contract_id=contract.contract_id,
                theoretical_price=greeks.price,
                delta=greeks.delta,
                gamma=greeks.gamma,
                theta=greeks.theta,
                vega=greeks.vega,
                implied_volatility=volatility,
                computation_time_ms=elapsed_ms,
                model_used=MODEL_NAME,
            )
        except Exception as exc:
            LOGGER.exception("Bachelier pricing failed for %s", contract.contract_id)
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            return PricingResult(
                contract_id=contract.contract_id,
                theoretical_price=0.0,
                computation_time_ms=elapsed_ms,
                model_used=MODEL_NAME,
                error=str(exc),
            )

    def implied_volatility(
        self,
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        option_price: float,
    ) -> float:
        """Return the normal volatility implied by a discounted ``option_price``."""

        volatility, branch = _solve_implied_volatility(
            option_price,
            market_data.forward,
            contract.strike_price,
            contract.time_to_expiry,
            market_data.discount_factor,
            contract.option_type,
            self.atm_threshold,
            self.intrinsic_tolerance,
        )
        IMPLIED_VOL_BRANCH.labels(branch=branch).inc()
        LOGGER.debug(
            "Implied volatility %.12g for %s using %s branch",
            volatility,
            contract.contract_id,
            branch,
        )
        return volatility
