"""Centralised configuration derived from environment variables."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache

from .core.normal_formula import (
    DEFAULT_ATM_THRESHOLD,
    DEFAULT_INTRINSIC_TOLERANCE,
    MAX_ATM_THRESHOLD,
)


def _get_env(name: str, *, default: str | None = None, required: bool = False) -> str | None:
    """Return a trimmed environment variable value.

    Parameters
    ----------
    name:
        Name of the environment variable to read.
    default:
        Optional default returned when the variable is not set.
    required:
        When ``True`` a ``RuntimeError`` is raised if the variable is missing
        or blank.
    """

    value = os.getenv(name)
    if value is None:
        if required:
            raise RuntimeError(f"Environment variable {name} is required")
        return default

    trimmed = value.strip()
    if not trimmed:
        if required:
            raise RuntimeError(f"Environment variable {name} must not be blank")
        return default
    return trimmed


def _as_int(name: str, *, default: int | None = None, minimum: int | None = None) -> int:
    raw = _get_env(name)
    if raw is None:
        if default is None:
            raise RuntimeError(f"Environment variable {name} is required")
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be an integer") from exc
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    return value


def _as_float(
    name: str,
    *,
    default: float | None = None,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    raw = _get_env(name)
    if raw is None:
        if default is None:
            raise RuntimeError(f"Environment variable {name} is required")
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {name} must be a number") from exc
    if not math.isfinite(value):
        raise RuntimeError(f"Environment variable {name} must be finite")
    if minimum is not None and value < minimum:
        raise RuntimeError(f"Environment variable {name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise RuntimeError(f"Environment variable {name} must be <= {maximum}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable view over library configuration."""

    atm_threshold: float
    intrinsic_tolerance: float
    threadpool_workers: int
    threadpool_queue_size: int
    threadpool_queue_timeout_seconds: float
    threadpool_task_timeout_seconds: float
    cache_size: int
    cache_ttl_seconds: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the current process environment."""

    return Settings(
        atm_threshold=_as_float(
            "BACHELIER_ATM_THRESHOLD",
            default=DEFAULT_ATM_THRESHOLD,
            minimum=0.0,
            maximum=MAX_ATM_THRESHOLD,
        ),
        intrinsic_tolerance=_as_float(
            "BACHELIER_INTRINSIC_TOLERANCE",
            default=DEFAULT_INTRINSIC_TOLERANCE,
            minimum=0.0,
        ),
        threadpool_workers=_as_int("BACHELIER_THREADS", default=8, minimum=1),
        threadpool_queue_size=_as_int("BACHELIER_THREAD_QUEUE_MAX", default=32, minimum=0),
        threadpool_queue_timeout_seconds=_as_float(
            "BACHELIER_THREAD_QUEUE_TIMEOUT_SECONDS", default=0.5, minimum=0.0
        ),
        threadpool_task_timeout_seconds=_as_float(
            "BACHELIER_THREAD_TASK_TIMEOUT_SECONDS", default=30.0, minimum=0.0
        ),
        cache_size=_as_int("BACHELIER_CACHE_SIZE", default=10_000, minimum=1),
        cache_ttl_seconds=_as_float("BACHELIER_CACHE_TTL_SECONDS", default=5.0, minimum=0.0),
    )
