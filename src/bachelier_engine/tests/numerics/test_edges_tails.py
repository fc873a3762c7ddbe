import math

import pytest

from bachelier_engine.core.models import NormalMarketData, NormalOptionContract, OptionType
from bachelier_engine.core.normal_formula import implied_volatility, implied_volatility_root, price
from bachelier_engine.core.pricing_models import NormalModel


def test_deep_itm_small_tau_near_intrinsic():
    """Deep ITM & small-tau call ~ discounted intrinsic value."""
    forward, strike, tau, sigma, df = 250.0, 100.0, 0.01, 20.0, 0.97
    c = NormalOptionContract("DEEP_ITM", strike, tau, OptionType.CALL)
    m = NormalMarketData(forward=forward, discount_factor=df)
    result = NormalModel().calculate_price(c, m, sigma)
    intrinsic = df * (forward - strike)
    assert abs(result.theoretical_price - intrinsic) <= 1e-12 * intrinsic
    assert result.delta == pytest.approx(df)


def test_short_expiry_round_trip():
    """One-day expiry keeps full relative accuracy."""
    tau = 1.0 / 365.0
    for strike in (99.0, 100.0, 101.0):
        value = price(100.0, strike, tau, 15.0, OptionType.PUT)
        vol = implied_volatility(value, 100.0, strike, tau, option_type=OptionType.PUT)
        assert math.isclose(vol, 15.0, rel_tol=1e-9)


def test_long_expiry_round_trip():
    for strike in (-0.01, 0.02, 0.08):
        value = price(0.02, strike, 50.0, 0.01, discount_factor=0.4)
        vol = implied_volatility(value, 0.02, strike, 50.0, 0.4)
        assert math.isclose(vol, 0.01, rel_tol=1e-9)


def test_tail_round_trip_agrees_with_root_search():
    """Far wing time values are inverted consistently by both solvers."""
    forward, strike, tau = 100.0, 160.0, 1.0
    value = price(forward, strike, tau, 12.0)
    assert 0.0 < value < 1e-5
    closed_form = implied_volatility(value, forward, strike, tau)
    root = implied_volatility_root(value, forward, strike, tau)
    assert math.isclose(closed_form, 12.0, rel_tol=1e-8)
    assert math.isclose(closed_form, root, rel_tol=1e-8)


def test_huge_volatility_round_trip():
    value = price(100.0, 90.0, 1.0, 1e4)
    assert math.isclose(implied_volatility(value, 100.0, 90.0, 1.0), 1e4, rel_tol=1e-9)
