"""
Normalized factor inputs for the composite regime score.

Momentum, volatility and relative strength use only data up to each index.
The trend factor scales the EMA spread by the min/max observed so far, so its value
at i depends on the whole history [0..i] rather than a fixed window: a run that starts
later can produce different early values. This mirrors the dashboard's scoring.
"""

from __future__ import annotations
from typing import Optional

import numpy as np
import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.indicators.library import bollinger_bands, ema, roc, rsi


def momentum_factor(close: pd.Series, period: int = 14) -> pd.Series:
    """RSI mapped from [0, 100] to [-100, 100]."""
    return ((rsi(close, period) - 50.0) * 2.0).rename("momentum_factor")


def trend_factor(close: pd.Series, fast: int = 10, slow: int = 21) -> pd.Series:
    """EMA(fast) - EMA(slow), scaled to [-100, 100] by the expanding min/max of the spread."""
    if fast >= slow:
        raise InputError("trend_periods", f"fast ({fast}) must be < slow ({slow})")
    spread = ema(close, fast) - ema(close, slow)
    spread.iloc[: slow - 1] = np.nan
    lo = spread.expanding().min()
    hi = spread.expanding().max()
    rng = hi - lo
    with np.errstate(divide="ignore", invalid="ignore"):
        scaled = (spread - lo) / rng * 200.0 - 100.0
    scaled = scaled.where(rng > 0, 0.0).where(spread.notna())
    return scaled.rename("trend_factor")


def volatility_factor(close: pd.Series, period: int = 20, deviation: float = 2.0) -> pd.Series:
    """Position of close inside the Bollinger band, clamped to [0, 1]; 0.5 for a zero-width band."""
    upper, _, lower = bollinger_bands(close, period, deviation)
    width = upper - lower
    with np.errstate(divide="ignore", invalid="ignore"):
        pos = ((pd.Series(np.asarray(close, dtype=float), index=close.index) - lower) / width).clip(0.0, 1.0)
    pos = pos.where(width > 0, 0.5).where(upper.notna())
    return pos.rename("volatility_factor")


def relative_strength_factor(
    close: pd.Series, period: int = 14, benchmark: Optional[pd.Series] = None
) -> pd.Series:
    """
    Rate of change over `period`, clipped to [-100, 100].
    With a benchmark close series (same length), the benchmark's ROC is subtracted.
    """
    rs = roc(close, period)
    if benchmark is not None:
        if len(benchmark) != len(close):
            raise InputError("benchmark", f"length {len(benchmark)} != candles {len(close)}")
        rs = rs - roc(pd.Series(np.asarray(benchmark, dtype=float), index=close.index), period)
    return rs.clip(-100.0, 100.0).rename("relative_strength_factor")
