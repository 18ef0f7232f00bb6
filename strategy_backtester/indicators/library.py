"""
Streaming technical indicators over a price Series.
Every output has the input's length and index; warm-up positions are NaN (never 0).
Value at i depends only on inputs[0..i]: windows are computed independently per index.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from strategy_backtester.core.errors import InputError


def _check_period(period: int, name: str = "period") -> int:
    if period is None or int(period) < 1:
        raise InputError(name, f"must be >= 1, got {period}", period)
    return int(period)


def _values(series: pd.Series) -> np.ndarray:
    return np.asarray(series, dtype=float)


def _rolling(values: np.ndarray, period: int, reducer) -> np.ndarray:
    """Apply reducer(windows) -> one value per full window. NaN inside a window propagates."""
    out = np.full(len(values), np.nan)
    if len(values) >= period:
        out[period - 1:] = reducer(sliding_window_view(values, period))
    return out


def sma(series: pd.Series, period: int) -> pd.Series:
    """Simple moving average; first defined at period-1."""
    period = _check_period(period)
    out = _rolling(_values(series), period, lambda w: w.mean(axis=1))
    return pd.Series(out, index=series.index, name=f"sma_{period}")


def ema(series: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average: ema[i] = x[i]*k + ema[i-1]*(1-k), k = 2/(period+1).
    Seeded with the first defined input (ema[0] = x[0] for a plain price series).
    Undefined inputs stay undefined.
    """
    period = _check_period(period)
    s = pd.Series(_values(series), index=series.index)
    out = s.ewm(span=period, adjust=False).mean().where(s.notna())
    out.name = f"ema_{period}"
    return out


def wma(series: pd.Series, period: int) -> pd.Series:
    """Linearly weighted moving average (weights 1..period, newest heaviest)."""
    period = _check_period(period)
    weights = np.arange(1, period + 1, dtype=float)
    out = _rolling(_values(series), period, lambda w: (w @ weights) / weights.sum())
    return pd.Series(out, index=series.index, name=f"wma_{period}")


def rsi(series: pd.Series, period: int = 14) -> pd.Series:
    """
    RSI from rolling means of gains and losses over `period` changes.
    First defined at index `period`. Average loss of zero saturates at 100.
    """
    period = _check_period(period)
    values = _values(series)
    delta = np.diff(values, prepend=np.nan)
    gains = np.clip(delta, 0.0, None)
    losses = np.clip(-delta, 0.0, None)
    avg_gain = _rolling(gains, period, lambda w: w.mean(axis=1))
    avg_loss = _rolling(losses, period, lambda w: w.mean(axis=1))
    with np.errstate(divide="ignore", invalid="ignore"):
        rs = avg_gain / avg_loss
        out = np.where(avg_loss == 0, 100.0, 100.0 - 100.0 / (1.0 + rs))
    out[np.isnan(avg_loss)] = np.nan
    return pd.Series(out, index=series.index, name=f"rsi_{period}")


def bollinger_bands(
    series: pd.Series, period: int = 20, deviation: float = 2.0
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """(upper, middle, lower): SMA +/- deviation * population std over the same window."""
    period = _check_period(period)
    values = _values(series)
    middle = _rolling(values, period, lambda w: w.mean(axis=1))
    std = _rolling(values, period, lambda w: w.std(axis=1, ddof=0))
    idx = series.index
    return (
        pd.Series(middle + deviation * std, index=idx, name=f"bb_upper_{period}"),
        pd.Series(middle, index=idx, name=f"bb_middle_{period}"),
        pd.Series(middle - deviation * std, index=idx, name=f"bb_lower_{period}"),
    )


def true_range(df: pd.DataFrame) -> pd.Series:
    """max(high-low, |high-prev_close|, |low-prev_close|). Undefined at 0 (no previous close)."""
    high_low = df["high"] - df["low"]
    prev_close = df["close"].shift()
    high_close = (df["high"] - prev_close).abs()
    low_close = (df["low"] - prev_close).abs()
    tr = pd.concat([high_low, high_close, low_close], axis=1).max(axis=1, skipna=False)
    tr.iloc[:1] = np.nan
    return tr.rename("true_range")


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """Average true range: SMA of true range; first defined at index `period`."""
    return sma(true_range(df), period).rename(f"atr_{period}")


def macd(series: pd.Series, fast: int = 12, slow: int = 26) -> pd.Series:
    """MACD line: EMA(fast) - EMA(slow)."""
    return (ema(series, fast) - ema(series, slow)).rename("macd")


def macd_signal(series: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9) -> pd.Series:
    return ema(macd(series, fast, slow), signal).rename("macd_signal")


def momentum(series: pd.Series, period: int = 10) -> pd.Series:
    """Price change over `period` candles: x[i] - x[i-period]."""
    period = _check_period(period)
    s = pd.Series(_values(series), index=series.index)
    return (s - s.shift(period)).rename(f"momentum_{period}")


def roc(series: pd.Series, period: int = 12) -> pd.Series:
    """Rate of change in percent over `period` candles."""
    period = _check_period(period)
    s = pd.Series(_values(series), index=series.index)
    base = s.shift(period).replace(0.0, np.nan)
    return ((s - base) / base * 100.0).rename(f"roc_{period}")
