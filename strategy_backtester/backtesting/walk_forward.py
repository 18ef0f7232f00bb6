"""
Walk-forward evaluation: split history into in-sample (train) and out-of-sample (test)
windows and backtest each test slice independently.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from strategy_backtester.backtesting.engine import BacktestEngine, BacktestResult
from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import candles_to_frame

logger = logging.getLogger("strategy_backtester.backtest.walk_forward")


@dataclass
class WalkForwardWindow:
    """Single train/test window (half-open candle index ranges)."""
    train_start: int
    train_end: int
    test_start: int
    test_end: int


@dataclass
class WalkForwardResult:
    window: WalkForwardWindow
    result: BacktestResult


def split_windows(
    n_bars: int,
    train_pct: float = 0.7,
    step_bars: Optional[int] = None,
) -> List[WalkForwardWindow]:
    """
    Generate train/test splits. If step_bars is None, one split (train_pct / (1-train_pct)).
    Else rolling windows with step_bars step.
    """
    if not 0 < train_pct < 1:
        raise InputError("train_pct", "must be in (0, 1)", train_pct)
    if step_bars is not None and step_bars < 1:
        raise InputError("step_bars", "must be >= 1", step_bars)
    if step_bars is None:
        train_end = int(n_bars * train_pct)
        if train_end < 1 or train_end >= n_bars:
            return []
        return [WalkForwardWindow(train_start=0, train_end=train_end, test_start=train_end, test_end=n_bars)]
    windows = []
    train_len = int(n_bars * train_pct)
    if train_len < 1:
        return []
    start = 0
    while start + train_len < n_bars:
        test_end = min(start + train_len + step_bars, n_bars)
        windows.append(WalkForwardWindow(
            train_start=start,
            train_end=start + train_len,
            test_start=start + train_len,
            test_end=test_end,
        ))
        start += step_bars
    return windows


def run_walk_forward(
    engine: BacktestEngine,
    candles: pd.DataFrame,
    windows: List[WalkForwardWindow],
) -> List[WalkForwardResult]:
    """
    Backtest each out-of-sample slice on its own. Slices shorter than the strategy
    warm-up are skipped with a warning.
    """
    df = candles_to_frame(candles)
    needed = engine.strategy.warmup_candles()
    results: List[WalkForwardResult] = []
    for w in windows:
        if w.test_end - w.test_start < needed:
            logger.warning("Skipping window %d:%d, shorter than warm-up %d", w.test_start, w.test_end, needed)
            continue
        test = df.iloc[w.test_start:w.test_end].reset_index(drop=True)
        results.append(WalkForwardResult(window=w, result=engine.run(test)))
    logger.info("Walk-forward: %d of %d windows evaluated", len(results), len(windows))
    return results
