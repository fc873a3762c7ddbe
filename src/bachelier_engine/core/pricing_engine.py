"""Threaded normal model engine with caching."""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..config import get_settings
from ..observability.metrics import (
    MODEL_ERRORS,
    MODEL_LATENCY,
    THREADPOOL_IN_FLIGHT,
    THREADPOOL_QUEUE_DEPTH,
    THREADPOOL_QUEUE_WAIT,
    THREADPOOL_REJECTIONS,
    THREADPOOL_WORKERS,
)
from .errors import NormalModelError
from .models import NormalMarketData, NormalOptionContract, PricingResult
from .pricing_models import MODEL_NAME, NormalModel

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _CacheEntry:
    """Internal representation of a cached pricing result."""

    payload: Dict[str, object]
    timestamp: float


class _ResultCache:
    """Thread-safe LRU cache with TTL support."""

    def __init__(self, max_size: int = 10_000, ttl_seconds: float = 5.0) -> None:
        self._max_size = max(1, max_size)
        self._ttl = max(0.0, ttl_seconds)
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()

    def get(self, key: str, now: Optional[float] = None) -> Optional[Dict[str, object]]:
        if not key:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            current_time = now or time.time()
            if self._ttl and current_time - entry.timestamp > self._ttl:
                self._entries.pop(key, None)
                return None

            self._entries.move_to_end(key)
            return dict(entry.payload)

    def put(self, key: str, payload: Dict[str, object], now: Optional[float] = None) -> None:
        if not key:
            return

        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)

            current_time = now or time.time()
            self._entries[key] = _CacheEntry(dict(payload), current_time)

            while len(self._entries) > self._max_size:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class NormalPricingEngine:
    """Coordinates normal model pricing and inversion across a pool of workers."""

    def __init__(
        self,
        *,
        num_threads: Optional[int] = None,
        cache_size: Optional[int] = None,
        cache_ttl_seconds: Optional[float] = None,
        queue_size: Optional[int] = None,
        queue_timeout_seconds: Optional[float] = None,
        task_timeout_seconds: Optional[float] = None,
        name: str = "default",
        model: Optional[NormalModel] = None,
    ) -> None:
        settings = get_settings()
        self.num_threads = max(
            1, settings.threadpool_workers if num_threads is None else num_threads
        )
        self.queue_size = max(
            0, settings.threadpool_queue_size if queue_size is None else queue_size
        )
        self.queue_timeout_seconds = max(
            0.0,
            settings.threadpool_queue_timeout_seconds
            if queue_timeout_seconds is None
            else queue_timeout_seconds,
        )
        self.task_timeout_seconds = max(
            0.0,
            settings.threadpool_task_timeout_seconds
            if task_timeout_seconds is None
            else task_timeout_seconds,
        )
        self.name = name
        self.model = model or NormalModel()
        self._cache = _ResultCache(
            max_size=settings.cache_size if cache_size is None else cache_size,
            ttl_seconds=settings.cache_ttl_seconds if cache_ttl_seconds is None else cache_ttl_seconds,
        )
        self._executor_lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=self.num_threads,
            thread_name_prefix="bachelier-engine",
        )
        self._queue_capacity = threading.BoundedSemaphore(self.num_threads + self.queue_size)
        self._pending_lock = threading.Lock()
        self._pending_tasks = 0
        THREADPOOL_WORKERS.labels(engine=self.name).set(self.num_threads)

    def __enter__(self) -> "NormalPricingEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait, cancel_futures=True)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            executor = self._executor
        if executor is None:
            raise RuntimeError("NormalPricingEngine has been shut down")
        return executor

    def _update_queue_metrics(self) -> None:
        running = min(self._pending_tasks, self.num_threads)
        waiting = max(0, self._pending_tasks - self.num_threads)
        THREADPOOL_IN_FLIGHT.labels(engine=self.name).set(running)
        THREADPOOL_QUEUE_DEPTH.labels(engine=self.name).set(waiting)

    def _submit_task(self, func: Callable[..., Dict[str, object]], *args) -> Future:
        executor = self._get_executor()
        start = time.perf_counter()
        if self.queue_timeout_seconds == 0:
            acquired = self._queue_capacity.acquire(blocking=False)
        else:
            acquired = self._queue_capacity.acquire(timeout=self.queue_timeout_seconds)
        THREADPOOL_QUEUE_WAIT.labels(engine=self.name).observe(time.perf_counter() - start)
        if not acquired:
            THREADPOOL_REJECTIONS.labels(engine=self.name).inc()
            raise RuntimeError("Pricing engine is saturated")

        with self._pending_lock:
            self._pending_tasks += 1
            self._update_queue_metrics()

        def _finalise(_: Future) -> None:
            self._queue_capacity.release()
            with self._pending_lock:
                self._pending_tasks = max(0, self._pending_tasks - 1)
                self._update_queue_metrics()

        future = executor.submit(func, *args)
        future.add_done_callback(_finalise)
        return future

    def _result_timeout(self) -> Optional[float]:
        return None if self.task_timeout_seconds == 0 else self.task_timeout_seconds

    @staticmethod
    def _make_cache_key(
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        volatility: float,
    ) -> str:
        # contract_id may be rounded or caller supplied; key on the exact inputs.
        return (
            f"{contract.contract_id}|{contract.strike_price!r}|{contract.time_to_expiry!r}|"
            f"{contract.option_type.value}|{market_data.forward!r}|"
            f"{market_data.discount_factor!r}|{volatility!r}"
        )

    @staticmethod
    def _prepare_result(result: PricingResult) -> Dict[str, object]:
        return {
            "contract_id": result.contract_id,
            "theoretical_price": result.theoretical_price,
            "delta": result.delta,
            "gamma": result.gamma,
            "theta": result.theta,
            "vega": result.vega,
            "implied_volatility": result.implied_volatility,
            "model_used": result.model_used,
            "computation_time_ms": result.computation_time_ms,
            "error": result.error,
        }

    def _run_pricing(
        self,
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        volatility: float,
    ) -> Dict[str, object]:
        cache_key = self._make_cache_key(contract, market_data, volatility)
        cached = self._cache.get(cache_key)
        if cached is not None:
            cached["cached"] = True
            return cached

        start = time.perf_counter()
        result = self.model.calculate_price(contract, market_data, volatility)
        MODEL_LATENCY.labels(operation="price").observe(time.perf_counter() - start)
        if result.error:
            MODEL_ERRORS.labels(operation="price", reason="pricing_failed").inc()
            payload = self._prepare_result(result)
            payload["cached"] = False
            return payload

        payload = self._prepare_result(result)
        payload["cached"] = False
        self._cache.put(cache_key, payload)
        return payload

    def _run_inversion(
        self,
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        option_price: float,
    ) -> Dict[str, object]:
        start = time.perf_counter()
        try:
            volatility = self.model.implied_volatility(contract, market_data, option_price)
        except NormalModelError as exc:
            reason = type(exc).__name__
            MODEL_ERRORS.labels(operation="implied_volatility", reason=reason).inc()
            LOGGER.warning(
                "Implied volatility rejected for %s: %s", contract.contract_id, exc
            )
            return {
                "contract_id": contract.contract_id,
                "implied_volatility": None,
                "model_used": MODEL_NAME,
                "error": str(exc),
            }
        finally:
            MODEL_LATENCY.labels(operation="implied_volatility").observe(
                time.perf_counter() - start
            )
        return {
            "contract_id": contract.contract_id,
            "implied_volatility": volatility,
            "model_used": MODEL_NAME,
            "error": None,
        }

    def price_option(
        self,
        contract: NormalOptionContract,
        market_data: NormalMarketData,
        volatility: float,
    ) -> Dict[str, object]:
        future = self._submit_task(self._run_pricing, contract, market_data, volatility)
        try:
            return future.result(timeout=self._result_timeout())
        except TimeoutError as exc:
            future.cancel()
            raise RuntimeError("Pricing task timed out") from exc

    def _gather(
        self,
        func: Callable[..., Dict[str, object]],
        contracts: Sequence[NormalOptionContract],
        market_data: NormalMarketData,
        values: Sequence[float],
        failure: Callable[[NormalOptionContract, Exception], Dict[str, object]],
    ) -> List[Dict[str, object]]:
        futures: Dict[Future, int] = {}
        results: List[Optional[Dict[str, object]]] = [None] * len(contracts)

        for index, (contract, value) in enumerate(zip(contracts, values)):
            try:
                future = self._submit_task(func, contract, market_data, value)
            except RuntimeError as exc:
                LOGGER.error("Could not schedule %s: %s", contract.contract_id, exc)
                results[index] = failure(contract, exc)
                continue
            futures[future] = index

        for future in as_completed(futures):
            index = futures[future]
            try:
                results[index] = future.result(timeout=self._result_timeout())
            except Exception as exc:
                if isinstance(exc, TimeoutError):
                    future.cancel()
                LOGGER.exception("Task failed for contract %s", contracts[index].contract_id)
                results[index] = failure(contracts[index], exc)

        return [result for result in results if result is not None]

    def price_portfolio(
        self,
        contracts: Iterable[NormalOptionContract],
        market_data: NormalMarketData,
        volatilities: float | Sequence[float],
    ) -> List[Dict[str, object]]:
        """Price ``contracts`` in parallel, preserving the input order.

        ``volatilities`` is either a single normal volatility applied to every
        contract or one volatility per contract.
        """

        contract_list = list(contracts)
        if not contract_list:
            return []
        if isinstance(volatilities, (int, float)):
            vol_list = [float(volatilities)] * len(contract_list)
        else:
            vol_list = [float(value) for value in volatilities]
        if len(vol_list) != len(contract_list):
            raise ValueError("The number of volatilities does not match the number of contracts")

        def _failure(contract: NormalOptionContract, exc: Exception) -> Dict[str, object]:
            return {
                "contract_id": contract.contract_id,
                "theoretical_price": 0.0,
                "model_used": MODEL_NAME,
                "error": str(exc),
            }

        results = self._gather(self._run_pricing, contract_list, market_data, vol_list, _failure)
        LOGGER.info("Priced %d contracts", len(results))
        return results

    def implied_volatility_portfolio(
        self,
        contracts: Iterable[NormalOptionContract],
        market_data: NormalMarketData,
        prices: Sequence[float],
    ) -> List[Dict[str, object]]:
        """Invert discounted ``prices`` into normal volatilities, one per contract."""

        contract_list = list(contracts)
        price_list = [float(value) for value in prices]
        if len(price_list) != len(contract_list):
            raise ValueError("The number of prices does not match the number of contracts")
        if not contract_list:
            return []

        def _failure(contract: NormalOptionContract, exc: Exception) -> Dict[str, object]:
            return {
                "contract_id": contract.contract_id,
                "implied_volatility": None,
                "model_used": MODEL_NAME,
                "error": str(exc),
            }

        results = self._gather(
            self._run_inversion, contract_list, market_data, price_list, _failure
        )
        LOGGER.info("Inverted %d option prices", len(results))
        return results

    @staticmethod
    def calculate_portfolio_greeks(
        results: Iterable[Dict[str, object]],
        quantities: Optional[Sequence[float]] = None,
    ) -> Dict[str, float]:
        totals = {
            "delta": 0.0,
            "gamma": 0.0,
            "theta": 0.0,
            "vega": 0.0,
            "total_value": 0.0,
            "position_count": 0.0,
        }

        result_list = list(results)
        if quantities is None:
            quantity_list = [float(result.get("quantity") or 1.0) for result in result_list]
        else:
            quantity_list = [float(quantity) for quantity in quantities]
            if len(quantity_list) != len(result_list):
                raise ValueError(
                    "The number of pricing results does not match the number of quantities"
                )

        for result, quantity in zip(result_list, quantity_list):
            if result.get("error"):
                continue
            for greek in ("delta", "gamma", "theta", "vega"):
                totals[greek] += float(result.get(greek) or 0.0) * quantity
            totals["total_value"] += float(result.get("theoretical_price") or 0.0) * quantity
            totals["position_count"] += quantity

        return totals
