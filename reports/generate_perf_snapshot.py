"""Generate the implied volatility latency snapshot used for regressions."""
from __future__ import annotations

import json
import sys
import time
from pathlib import Path
from typing import Callable, Sequence

import numpy as np

import bachelier_engine.core.normal_formula as normal_formula
from bachelier_engine.core.normal_formula import implied_volatility, implied_volatility_root, price

EXPECTED_FRAGMENT = "src/bachelier_engine"
FORWARD = 100.0
TIME_TO_EXPIRY = 0.5
STRIKES = np.linspace(60.0, 140.0, 401)
VOL = 18.0


def _ensure_source_tree() -> None:
    module_path = Path(normal_formula.__file__).resolve().as_posix()
    if EXPECTED_FRAGMENT not in module_path:
        raise SystemExit(
            "Perf snapshot must run against the source tree; "
            f"imported module at {module_path!r}."
        )


def _time(fn: Callable[[], None]) -> float:
    start = time.perf_counter()
    fn()
    return (time.perf_counter() - start) * 1e3


def _board_prices() -> Sequence[float]:
    return [price(FORWARD, float(strike), TIME_TO_EXPIRY, VOL) for strike in STRIKES]


def _invert(solver: Callable[..., float], prices: Sequence[float]) -> None:
    for strike, value in zip(STRIKES, prices):
        solver(value, FORWARD, float(strike), TIME_TO_EXPIRY)


def _snapshot_runs(
    solver: Callable[..., float], prices: Sequence[float], num_runs: int = 10
) -> Sequence[float]:
    _invert(solver, prices)  # warm-up
    return sorted(_time(lambda: _invert(solver, prices)) for _ in range(num_runs))


def main() -> int:
    _ensure_source_tree()

    prices = _board_prices()
    closed_form_runs = list(_snapshot_runs(implied_volatility, prices))
    root_runs = list(_snapshot_runs(implied_volatility_root, prices, num_runs=3))
    payload = {
        "quotes": len(prices),
        "closed_form_ms_p50": closed_form_runs[len(closed_form_runs) // 2],
        "closed_form_ms_runs": closed_form_runs,
        "root_search_ms_p50": root_runs[len(root_runs) // 2],
    }
    output_path = Path(__file__).with_name("perf_snapshot.json")
    output_path.write_text(json.dumps(payload, indent=2) + "\n")
    resolved = output_path.resolve()
    try:
        display_path = resolved.relative_to(Path.cwd())
    except ValueError:
        display_path = resolved
    print(f"Wrote {display_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
