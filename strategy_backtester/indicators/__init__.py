"""Indicators: moving averages, oscillators, bands, ATR, composite factors and the per-run cache."""

from strategy_backtester.indicators.library import (
    sma,
    ema,
    wma,
    rsi,
    bollinger_bands,
    true_range,
    atr,
    macd,
    macd_signal,
    momentum,
    roc,
)
from strategy_backtester.indicators.registry import IndicatorKind, IndicatorSpec, compute_indicator
from strategy_backtester.indicators.cache import IndicatorCache

__all__ = [
    "sma",
    "ema",
    "wma",
    "rsi",
    "bollinger_bands",
    "true_range",
    "atr",
    "macd",
    "macd_signal",
    "momentum",
    "roc",
    "IndicatorKind",
    "IndicatorSpec",
    "compute_indicator",
    "IndicatorCache",
]
