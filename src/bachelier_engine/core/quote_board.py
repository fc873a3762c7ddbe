"""Quote board ingestion and implied normal volatility extraction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from ..config import get_settings
from ..observability.metrics import BOARD_QUOTES
from .errors import ArbitrageViolationError, InvalidInputError
from .models import OptionType
from .normal_formula import check_atm_threshold, implied_volatility, price_array

LOGGER = logging.getLogger(__name__)

_NUMERIC_COLUMNS = ("forward", "strike", "tenor", "price", "discount_factor")


@dataclass(slots=True)
class BoardReport:
    """Quick summary of the board inversion stage."""

    total_quotes: int
    dropped_invalid: int
    dropped_arbitrage: int
    retained_quotes: int
    max_reprice_error: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Return a serialisable view of the report."""

        return {
            "total_quotes": self.total_quotes,
            "dropped_invalid": self.dropped_invalid,
            "dropped_arbitrage": self.dropped_arbitrage,
            "retained_quotes": self.retained_quotes,
            "max_reprice_error": self.max_reprice_error,
        }


@dataclass(slots=True)
class BoardResult:
    """Container for the inverted board and the associated QC information."""

    data: pd.DataFrame
    report: BoardReport
    rejections: List[Dict[str, Any]] = field(default_factory=list)

    def to_records(self) -> List[Dict[str, Any]]:
        """Return the retained quotes as plain records."""

        if self.data.empty:
            return []
        records = self.data.to_dict("records")
        for record in records:
            for key, value in list(record.items()):
                if isinstance(value, (np.floating, np.integer)):
                    record[key] = float(value)
        return records


_OPTIONAL_COLUMNS = (("discount_factor", 1.0), ("option_type", OptionType.CALL.value))


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return value is None or (isinstance(value, float) and np.isnan(value))


def _normalise_option_type(value: Any) -> Optional[str]:
    try:
        return OptionType.parse(value).value
    except InvalidInputError:
        return None


class ImpliedVolatilityBoard:
    """Turn a board of option prices into implied normal volatilities."""

    REQUIRED_COLUMNS = {"forward", "strike", "tenor", "price"}

    def __init__(
        self,
        *,
        atm_threshold: Optional[float] = None,
        intrinsic_tolerance: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._atm_threshold = check_atm_threshold(
            settings.atm_threshold if atm_threshold is None else atm_threshold
        )
        self._intrinsic_tolerance = (
            settings.intrinsic_tolerance if intrinsic_tolerance is None else intrinsic_tolerance
        )

    def ingest(self, quotes: Iterable[Mapping[str, Any]]) -> BoardResult:
        """Invert the provided quotes and return a :class:`BoardResult`.

        Parameters
        ----------
        quotes:
            Iterable of mappings representing raw quotes. Each mapping must include
            ``forward``, ``strike``, ``tenor`` (year fraction to expiry) and
            ``price`` (discounted premium). Optional columns are
            ``discount_factor`` (defaults to one) and ``option_type`` (``call`` or
            ``put``, defaults to calls). Any additional fields are preserved.
        """

        df = pd.DataFrame(list(quotes))
        if df.empty:
            return BoardResult(df, BoardReport(0, 0, 0, 0))

        missing = self.REQUIRED_COLUMNS - set(df.columns)
        if missing:
            missing_str = ", ".join(sorted(missing))
            raise KeyError(f"missing required columns: {missing_str}")

        # Absent columns and blank cells take the default.
        for column, default in _OPTIONAL_COLUMNS:
            if column not in df.columns:
                df[column] = default
            else:
                df[column] = df[column].where(~df[column].map(_is_blank).astype(bool), default)

        for column in _NUMERIC_COLUMNS:
            df[column] = pd.to_numeric(df[column], errors="coerce")
        df = df.replace([np.inf, -np.inf], np.nan)
        df["option_type"] = df["option_type"].map(_normalise_option_type)

        total = len(df)
        invalid = (
            df[list(_NUMERIC_COLUMNS)].isna().any(axis=1)
            | df["option_type"].isna()
            | (df["tenor"] <= 0.0)
            | (df["discount_factor"] <= 0.0)
            | (df["price"] < 0.0)
        )
        rejections: List[Dict[str, Any]] = [
            {"index": int(index), "reason": "invalid"} for index in df.index[invalid]
        ]
        candidates = df[~invalid]

        retained_index: List[Any] = []
        volatilities: List[float] = []
        dropped_arbitrage = 0
        dropped_invalid = int(invalid.sum())
        for row in candidates.itertuples():
            try:
                volatility = implied_volatility(
                    row.price,
                    row.forward,
                    row.strike,
                    row.tenor,
                    row.discount_factor,
                    row.option_type,
                    atm_threshold=self._atm_threshold,
                    intrinsic_tolerance=self._intrinsic_tolerance,
                )
            except ArbitrageViolationError as exc:
                dropped_arbitrage += 1
                rejections.append({"index": int(row.Index), "reason": "arbitrage", "detail": str(exc)})
                continue
            except InvalidInputError as exc:
                dropped_invalid += 1
                rejections.append({"index": int(row.Index), "reason": "invalid", "detail": str(exc)})
                continue
            retained_index.append(row.Index)
            volatilities.append(volatility)

        retained = candidates.loc[retained_index].copy()
        retained["implied_vol"] = np.asarray(volatilities, dtype=float)
        max_reprice_error = 0.0
        if not retained.empty:
            model_prices = price_array(
                retained["forward"].to_numpy(dtype=float),
                retained["strike"].to_numpy(dtype=float),
                retained["tenor"].to_numpy(dtype=float),
                retained["implied_vol"].to_numpy(dtype=float),
                retained["option_type"].tolist(),
                discount_factor=retained["discount_factor"].to_numpy(dtype=float),
            )
            retained["reprice_error"] = np.abs(model_prices - retained["price"].to_numpy(dtype=float))
            max_reprice_error = float(retained["reprice_error"].max())
            retained = retained.sort_values(["tenor", "strike", "option_type"]).reset_index(drop=True)
        else:
            retained["reprice_error"] = np.asarray([], dtype=float)

        BOARD_QUOTES.labels(outcome="retained").inc(len(retained))
        BOARD_QUOTES.labels(outcome="invalid").inc(dropped_invalid)
        BOARD_QUOTES.labels(outcome="arbitrage").inc(dropped_arbitrage)
        if dropped_invalid or dropped_arbitrage:
            LOGGER.warning(
                "Dropped %d invalid and %d arbitrageable quotes out of %d",
                dropped_invalid,
                dropped_arbitrage,
                total,
            )

        report = BoardReport(
            total_quotes=total,
            dropped_invalid=dropped_invalid,
            dropped_arbitrage=dropped_arbitrage,
            retained_quotes=len(retained),
            max_reprice_error=max_reprice_error,
        )
        return BoardResult(retained, report, rejections)
