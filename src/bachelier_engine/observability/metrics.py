"""Prometheus metrics used across the normal model engine."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


MODEL_LATENCY = Histogram(
    "bachelier_model_latency_seconds",
    "Time spent executing normal model operations",
    labelnames=("operation",),
    buckets=(
        0.00001,
        0.00005,
        0.0001,
        0.0005,
        0.001,
        0.005,
        0.01,
        0.05,
        0.1,
        0.5,
        1.0,
    ),
)

MODEL_ERRORS = Counter(
    "bachelier_model_errors_total",
    "Number of failures encountered while executing normal model operations",
    labelnames=("operation", "reason"),
)

IMPLIED_VOL_BRANCH = Counter(
    "bachelier_implied_vol_branch_total",
    "Implied volatility inversions by approximation branch",
    labelnames=("branch",),
)

BOARD_QUOTES = Counter(
    "bachelier_board_quotes_total",
    "Quotes processed by the implied volatility board",
    labelnames=("outcome",),
)

THREADPOOL_QUEUE_DEPTH = Gauge(
    "bachelier_threadpool_queue_depth",
    "Tasks waiting in the pricing engine queue",
    labelnames=("engine",),
)

THREADPOOL_IN_FLIGHT = Gauge(
    "bachelier_threadpool_tasks_in_flight",
    "Currently executing pricing tasks",
    labelnames=("engine",),
)

THREADPOOL_WORKERS = Gauge(
    "bachelier_threadpool_workers",
    "Configured worker threads for the pricing engine",
    labelnames=("engine",),
)

THREADPOOL_QUEUE_WAIT = Histogram(
    "bachelier_threadpool_queue_wait_seconds",
    "Time spent waiting to submit work to the pricing engine",
    labelnames=("engine",),
    buckets=(
        0.0001,
        0.0005,
        0.001,
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.0,
    ),
)

THREADPOOL_REJECTIONS = Counter(
    "bachelier_threadpool_rejections_total",
    "Number of submissions rejected because the pricing engine queue was full",
    labelnames=("engine",),
)
