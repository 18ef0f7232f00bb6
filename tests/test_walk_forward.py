"""Unit tests for backtesting.walk_forward."""

import numpy as np
import pandas as pd
import pytest

from strategy_backtester.backtesting.engine import BacktestEngine
from strategy_backtester.backtesting.walk_forward import run_walk_forward, split_windows
from strategy_backtester.core.errors import InputError
from strategy_backtester.risk.config import RiskConfig
from strategy_backtester.strategies.composite import CompositeScoreStrategy


def _frame(n, seed=2):
    rng = np.random.default_rng(seed)
    closes = 100.0 + np.cumsum(rng.normal(0, 1, n))
    return pd.DataFrame({
        "open_time": np.arange(n, dtype="int64") * 60_000,
        "open": closes,
        "high": closes,
        "low": closes,
        "close": closes,
        "volume": np.ones(n),
    })


def test_single_split():
    windows = split_windows(100, train_pct=0.7)
    assert len(windows) == 1
    w = windows[0]
    assert (w.train_start, w.train_end, w.test_start, w.test_end) == (0, 70, 70, 100)


def test_rolling_windows_do_not_overlap_test_with_train():
    windows = split_windows(100, train_pct=0.5, step_bars=20)
    assert [(w.test_start, w.test_end) for w in windows] == [(50, 70), (70, 90), (90, 100)]
    for w in windows:
        assert w.train_end == w.test_start


def test_invalid_split_arguments():
    with pytest.raises(InputError):
        split_windows(100, train_pct=1.5)
    with pytest.raises(InputError):
        split_windows(100, step_bars=0)
    assert split_windows(1, train_pct=0.5) == []


def test_run_walk_forward_skips_short_windows():
    df = _frame(300)
    engine = BacktestEngine(CompositeScoreStrategy(), RiskConfig())
    windows = split_windows(len(df), train_pct=0.5, step_bars=60)
    results = run_walk_forward(engine, df, windows)
    # the last window holds 30 candles, more than the 21-candle warm-up
    assert len(results) == len(windows)
    for wf in results:
        assert len(wf.result.equity_curve) == wf.window.test_end - wf.window.test_start
    short = split_windows(len(df), train_pct=0.95)
    assert run_walk_forward(engine, df, short) == []
