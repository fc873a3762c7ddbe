from __future__ import annotations

import pytest

from bachelier_engine.config import get_settings
from bachelier_engine.core.normal_formula import DEFAULT_ATM_THRESHOLD, DEFAULT_INTRINSIC_TOLERANCE
from bachelier_engine.core.pricing_engine import NormalPricingEngine

_VARIABLES = (
    "BACHELIER_ATM_THRESHOLD",
    "BACHELIER_INTRINSIC_TOLERANCE",
    "BACHELIER_THREADS",
    "BACHELIER_THREAD_QUEUE_MAX",
    "BACHELIER_THREAD_QUEUE_TIMEOUT_SECONDS",
    "BACHELIER_THREAD_TASK_TIMEOUT_SECONDS",
    "BACHELIER_CACHE_SIZE",
    "BACHELIER_CACHE_TTL_SECONDS",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARIABLES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    settings = get_settings()
    assert settings.atm_threshold == DEFAULT_ATM_THRESHOLD
    assert settings.intrinsic_tolerance == DEFAULT_INTRINSIC_TOLERANCE
    assert settings.threadpool_workers == 8
    assert settings.threadpool_queue_size == 32
    assert settings.threadpool_queue_timeout_seconds == 0.5
    assert settings.threadpool_task_timeout_seconds == 30.0
    assert settings.cache_size == 10_000
    assert settings.cache_ttl_seconds == 5.0


def test_environment_overrides(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("BACHELIER_ATM_THRESHOLD", " 0.01 ")
    clean_env.setenv("BACHELIER_THREADS", "3")
    clean_env.setenv("BACHELIER_CACHE_TTL_SECONDS", "0")

    settings = get_settings()
    assert settings.atm_threshold == 0.01
    assert settings.threadpool_workers == 3
    assert settings.cache_ttl_seconds == 0.0

    with NormalPricingEngine() as engine:
        assert engine.num_threads == 3
        assert engine.model.atm_threshold == 0.01


def test_blank_values_fall_back_to_defaults(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("BACHELIER_THREADS", "   ")
    assert get_settings().threadpool_workers == 8


@pytest.mark.parametrize(
    "name, value",
    [
        ("BACHELIER_THREADS", "many"),
        ("BACHELIER_THREADS", "0"),
        ("BACHELIER_ATM_THRESHOLD", "-0.1"),
        ("BACHELIER_ATM_THRESHOLD", "nan"),
        ("BACHELIER_ATM_THRESHOLD", "0.5"),
        ("BACHELIER_INTRINSIC_TOLERANCE", "inf"),
        ("BACHELIER_CACHE_SIZE", "1.5"),
    ],
)
def test_invalid_values_raise(clean_env: pytest.MonkeyPatch, name: str, value: str) -> None:
    clean_env.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        get_settings()
