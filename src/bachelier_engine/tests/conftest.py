"""Test configuration and environment bootstrapping."""

from __future__ import annotations

from typing import Iterator

import pytest

from bachelier_engine.config import get_settings


@pytest.fixture(autouse=True)
def _reset_settings() -> Iterator[None]:
    """Ensure each test sees settings derived from its own environment."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
