"""Per-run indicator memoization keyed by candle content and indicator parameters."""

from __future__ import annotations
import hashlib
import logging
from typing import Callable, Dict, Tuple

import numpy as np
import pandas as pd

from strategy_backtester.core.types import CANDLE_COLUMNS
from strategy_backtester.indicators.registry import IndicatorSpec, compute_indicator

logger = logging.getLogger("strategy_backtester.indicators.cache")


def frame_fingerprint(df: pd.DataFrame) -> str:
    """Content hash of the OHLCV columns."""
    hashed = pd.util.hash_pandas_object(df[CANDLE_COLUMNS], index=False)
    return hashlib.sha256(hashed.values.tobytes()).hexdigest()[:16]


def series_fingerprint(values) -> str:
    """Content hash of a float series, e.g. a benchmark close."""
    hashed = pd.util.hash_pandas_object(pd.Series(np.asarray(values, dtype=float)), index=False)
    return hashlib.sha256(hashed.values.tobytes()).hexdigest()[:16]


class IndicatorCache:
    """
    Memo of computed series for one candle frame. Created per run and never shared,
    so concurrent runs cannot see each other's intermediate state.
    """

    def __init__(self, df: pd.DataFrame):
        self._df = df
        self.series_id = frame_fingerprint(df)
        self._store: Dict[Tuple[str, str], pd.Series] = {}
        self.hits = 0
        self.misses = 0

    @property
    def frame(self) -> pd.DataFrame:
        return self._df

    def get_or_compute(self, key: str, compute: Callable[[], pd.Series]) -> pd.Series:
        cache_key = (self.series_id, key)
        if cache_key in self._store:
            self.hits += 1
            return self._store[cache_key]
        self.misses += 1
        series = compute()
        if len(series) != len(self._df):
            raise RuntimeError(f"indicator {key} length {len(series)} != candles {len(self._df)}")
        self._store[cache_key] = series.rename(key)
        return self._store[cache_key]

    def get(self, spec: IndicatorSpec) -> pd.Series:
        return self.get_or_compute(spec.key, lambda: compute_indicator(self._df, spec))

    def to_frame(self) -> pd.DataFrame:
        """All computed series as columns next to open_time, for charting."""
        out = self._df[["open_time"]].copy()
        for (_, key), series in self._store.items():
            out[key] = series.values
        return out
