"""
Composite regime score: four normalized factors blended with fixed weights and
smoothed by an EMA, then thresholded into long / short / exit series.

Long:  score > long_threshold
Short: score < short_threshold
Exit long when score < exit_threshold; exit short when score > exit_threshold.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.indicators.cache import IndicatorCache, series_fingerprint
from strategy_backtester.indicators.factors import (
    momentum_factor,
    relative_strength_factor,
    trend_factor,
    volatility_factor,
)
from strategy_backtester.indicators.library import ema
from strategy_backtester.strategies.base import BaseStrategy, SignalSeries

logger = logging.getLogger("strategy_backtester.strategies.composite")


@dataclass(frozen=True)
class FactorWeights:
    momentum: float = 0.25
    trend: float = 0.35
    volatility: float = 0.20
    relative_strength: float = 0.20

    def validate(self) -> None:
        values = (self.momentum, self.trend, self.volatility, self.relative_strength)
        if any(w < 0 for w in values):
            raise InputError("weights", f"weights must be >= 0, got {values}")
        if sum(values) <= 0:
            raise InputError("weights", "weights must not all be zero")


class CompositeScoreStrategy(BaseStrategy):
    """Multi-factor regime mode (momentum, trend, volatility, relative strength)."""

    name = "composite"

    def __init__(
        self,
        weights: Optional[FactorWeights] = None,
        smoothing: int = 5,
        long_threshold: float = 30.0,
        short_threshold: float = -30.0,
        exit_threshold: float = 0.0,
        allow_short: bool = True,
        rsi_period: int = 14,
        trend_fast: int = 10,
        trend_slow: int = 21,
        band_period: int = 20,
        band_deviation: float = 2.0,
        relative_period: int = 14,
        benchmark: Optional[pd.Series] = None,
    ):
        self.weights = weights or FactorWeights()
        self.weights.validate()
        if smoothing < 1:
            raise InputError("smoothing", f"must be >= 1, got {smoothing}")
        if not short_threshold <= exit_threshold <= long_threshold:
            raise InputError(
                "thresholds",
                f"expected short <= exit <= long, got {short_threshold}, {exit_threshold}, {long_threshold}",
            )
        self.smoothing = smoothing
        self.long_threshold = long_threshold
        self.short_threshold = short_threshold
        self.exit_threshold = exit_threshold
        self.allow_short = allow_short
        self.rsi_period = rsi_period
        self.trend_fast = trend_fast
        self.trend_slow = trend_slow
        self.band_period = band_period
        self.band_deviation = band_deviation
        self.relative_period = relative_period
        self.benchmark = benchmark
        self._benchmark_id = "none" if benchmark is None else series_fingerprint(benchmark)

    def warmup_candles(self) -> int:
        # Candles until every factor is defined; the EMA seeds on the first raw score
        return max(self.rsi_period + 1, self.trend_slow, self.band_period, self.relative_period + 1)

    def raw_score(self, df: pd.DataFrame, cache: IndicatorCache) -> pd.Series:
        close = df["close"]
        w = self.weights
        m = cache.get_or_compute(f"momentum_factor_{self.rsi_period}", lambda: momentum_factor(close, self.rsi_period))
        t = cache.get_or_compute(
            f"trend_factor_{self.trend_fast}_{self.trend_slow}",
            lambda: trend_factor(close, self.trend_fast, self.trend_slow),
        )
        v = cache.get_or_compute(
            f"volatility_factor_{self.band_period}_{self.band_deviation:g}",
            lambda: volatility_factor(close, self.band_period, self.band_deviation),
        )
        r = cache.get_or_compute(
            f"relative_strength_factor_{self.relative_period}_{self._benchmark_id}",
            lambda: relative_strength_factor(close, self.relative_period, self.benchmark),
        )
        # NaN in any factor leaves the raw score NaN
        raw = w.momentum * m + w.trend * t + w.volatility * (v * 200.0 - 100.0) + w.relative_strength * r
        return raw.rename("composite_raw")

    @property
    def score_key(self) -> str:
        """Cache key covering every input of the smoothed score."""
        w = self.weights
        parts = [
            f"{w.momentum:g}", f"{w.trend:g}", f"{w.volatility:g}", f"{w.relative_strength:g}",
            self.rsi_period, self.trend_fast, self.trend_slow, self.band_period, f"{self.band_deviation:g}",
            self.relative_period, self.smoothing, self._benchmark_id,
        ]
        return "composite_score_" + "_".join(str(p) for p in parts)

    def score(self, df: pd.DataFrame, cache: IndicatorCache) -> pd.Series:
        return cache.get_or_compute(self.score_key, lambda: ema(self.raw_score(df, cache), self.smoothing))

    def generate_signals(self, df: pd.DataFrame, cache: IndicatorCache) -> SignalSeries:
        score = self.score(df, cache).to_numpy(dtype=float)
        defined = ~np.isnan(score)
        with np.errstate(invalid="ignore"):
            entry_long = (score > self.long_threshold) & defined
            exit_long = (score < self.exit_threshold) & defined
            entry_short = (score < self.short_threshold) & defined
            exit_short = (score > self.exit_threshold) & defined
        if not self.allow_short:
            entry_short = np.zeros(len(score), dtype=bool)
        if not defined.any():
            logger.warning("Composite score undefined for all %d candles", len(score))
        return SignalSeries(entry_long, exit_long, entry_short, exit_short)
