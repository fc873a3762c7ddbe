"""Tests for the threaded normal model engine."""

from __future__ import annotations

import pytest

from bachelier_engine.core.models import NormalMarketData, NormalOptionContract, OptionType
from bachelier_engine.core.normal_formula import price
from bachelier_engine.core.pricing_engine import NormalPricingEngine


def _make_contract(
    symbol: str, strike: float, option_type: OptionType = OptionType.CALL
) -> NormalOptionContract:
    return NormalOptionContract(
        symbol=symbol,
        strike_price=strike,
        time_to_expiry=1.0,
        option_type=option_type,
    )


def test_portfolio_pricing_preserves_order_and_per_contract_volatility() -> None:
    with NormalPricingEngine(num_threads=2) as engine:
        contracts = [_make_contract(f"TEST{i}", 90.0 + 5.0 * i) for i in range(6)]
        market_data = NormalMarketData(forward=100.0, discount_factor=0.97)
        volatilities = [6.0 + i for i in range(6)]

        results = engine.price_portfolio(contracts, market_data, volatilities)

        assert [result["contract_id"] for result in results] == [
            contract.contract_id for contract in contracts
        ]
        for contract, volatility, result in zip(contracts, volatilities, results):
            expected = price(
                100.0, contract.strike_price, 1.0, volatility, discount_factor=0.97
            )
            assert result["theoretical_price"] == pytest.approx(expected, rel=1e-14)
            assert result["implied_volatility"] == volatility
            assert result["error"] is None


def test_single_volatility_is_broadcast_across_contracts() -> None:
    with NormalPricingEngine(num_threads=2) as engine:
        contracts = [_make_contract("A", 95.0), _make_contract("B", 105.0)]
        results = engine.price_portfolio(contracts, NormalMarketData(forward=100.0), 8.0)
        assert [result["implied_volatility"] for result in results] == [8.0, 8.0]


def test_repeated_pricing_is_served_from_cache() -> None:
    with NormalPricingEngine(num_threads=1, cache_ttl_seconds=60.0) as engine:
        contract = _make_contract("CACHE", 100.0)
        market_data = NormalMarketData(forward=100.0)

        first = engine.price_option(contract, market_data, 10.0)
        second = engine.price_option(contract, market_data, 10.0)

        assert first["cached"] is False
        assert second["cached"] is True
        assert second["theoretical_price"] == first["theoretical_price"]


def test_cache_distinguishes_contracts_sharing_a_rounded_id() -> None:
    market_data = NormalMarketData(forward=100.0)
    near = _make_contract("SOFR", 100.00001)
    far = _make_contract("SOFR", 100.00004)
    custom = NormalOptionContract("SOFR", 95.0, 1.0, OptionType.PUT, contract_id=near.contract_id)
    assert near.contract_id == far.contract_id == custom.contract_id

    with NormalPricingEngine(num_threads=1, cache_ttl_seconds=60.0) as engine:
        first = engine.price_option(near, market_data, 0.5)
        second = engine.price_option(far, market_data, 0.5)
        third = engine.price_option(custom, market_data, 0.5)

    assert first["cached"] is second["cached"] is third["cached"] is False
    assert second["theoretical_price"] == pytest.approx(
        price(100.0, 100.00004, 1.0, 0.5), rel=1e-14
    )
    assert second["theoretical_price"] != first["theoretical_price"]
    assert third["theoretical_price"] == pytest.approx(
        price(100.0, 95.0, 1.0, 0.5, OptionType.PUT), rel=1e-14, abs=1e-300
    )


def test_pricing_failures_are_reported_per_contract() -> None:
    with NormalPricingEngine(num_threads=2) as engine:
        contracts = [_make_contract("OK", 100.0), _make_contract("BAD", 100.0)]
        results = engine.price_portfolio(contracts, NormalMarketData(forward=100.0), [10.0, -1.0])
        assert results[0]["error"] is None
        assert results[1]["error"]
        assert results[1]["cached"] is False


def test_volatility_length_mismatch_is_rejected() -> None:
    with NormalPricingEngine(num_threads=1) as engine:
        with pytest.raises(ValueError):
            engine.price_portfolio(
                [_make_contract("X", 100.0)], NormalMarketData(100.0), [1.0, 2.0]
            )


def test_implied_volatility_portfolio_round_trip_and_rejections() -> None:
    market_data = NormalMarketData(forward=100.0, discount_factor=0.99)
    contracts = [
        _make_contract("C90", 90.0),
        _make_contract("P110", 110.0, OptionType.PUT),
        _make_contract("ATM", 100.0),
        _make_contract("ARB", 90.0),
    ]
    prices = [
        price(100.0, c.strike_price, 1.0, 12.0, c.option_type, discount_factor=0.99)
        for c in contracts[:3]
    ]
    prices.append(0.99 * 9.0)

    with NormalPricingEngine(num_threads=2) as engine:
        results = engine.implied_volatility_portfolio(contracts, market_data, prices)

    assert [result["contract_id"] for result in results] == [c.contract_id for c in contracts]
    for result in results[:3]:
        assert result["error"] is None
        assert result["implied_volatility"] == pytest.approx(12.0, rel=1e-8)
    assert results[3]["implied_volatility"] is None
    assert "intrinsic" in results[3]["error"]


def test_implied_volatility_portfolio_length_mismatch() -> None:
    with NormalPricingEngine(num_threads=1) as engine:
        with pytest.raises(ValueError):
            engine.implied_volatility_portfolio(
                [_make_contract("X", 100.0)], NormalMarketData(100.0), []
            )


def test_engine_rejects_work_after_shutdown() -> None:
    engine = NormalPricingEngine(num_threads=1)
    engine.shutdown()
    with pytest.raises(RuntimeError):
        engine.price_option(_make_contract("LATE", 100.0), NormalMarketData(100.0), 10.0)


def test_calculate_portfolio_greeks_handles_empty_input() -> None:
    totals = NormalPricingEngine.calculate_portfolio_greeks([])
    assert totals["delta"] == 0.0
    assert totals["position_count"] == 0.0


def test_calculate_portfolio_greeks_scales_by_quantity_and_skips_errors() -> None:
    results = [
        {
            "delta": 0.5,
            "gamma": 0.1,
            "theta": -0.2,
            "vega": 0.3,
            "theoretical_price": 10.0,
            "quantity": 3,
        },
        {"theoretical_price": 0.0, "error": "volatility must be non-negative"},
    ]

    totals = NormalPricingEngine.calculate_portfolio_greeks(results)
    assert totals["delta"] == pytest.approx(1.5)
    assert totals["gamma"] == pytest.approx(0.3)
    assert totals["theta"] == pytest.approx(-0.6)
    assert totals["vega"] == pytest.approx(0.9)
    assert totals["total_value"] == pytest.approx(30.0)
    assert totals["position_count"] == pytest.approx(3.0)


def test_calculate_portfolio_greeks_explicit_quantities() -> None:
    results = [{"delta": 1.0, "theoretical_price": 2.0}, {"delta": -0.5, "theoretical_price": 1.0}]
    totals = NormalPricingEngine.calculate_portfolio_greeks(results, quantities=[2.0, -4.0])
    assert totals["delta"] == pytest.approx(4.0)
    assert totals["total_value"] == pytest.approx(0.0)
    with pytest.raises(ValueError):
        NormalPricingEngine.calculate_portfolio_greeks(results, quantities=[1.0])
