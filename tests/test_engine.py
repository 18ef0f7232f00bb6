"""Unit tests for backtesting.engine."""

import numpy as np
import pandas as pd
import pytest

from strategy_backtester.backtesting.engine import BacktestEngine
from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import Candle, ExitReason
from strategy_backtester.risk.config import RiskConfig
from strategy_backtester.strategies.composite import CompositeScoreStrategy
from strategy_backtester.strategies.conditions import RuleBasedStrategy


class RecordingSink:
    def __init__(self):
        self.records = []

    def record(self, name, value, tags=None):
        self.records.append((name, value, dict(tags or {})))


def _frame(closes):
    closes = [float(c) for c in closes]
    n = len(closes)
    return pd.DataFrame({
        "open_time": [i * 60_000 for i in range(n)],
        "open": closes,
        "high": closes,
        "low": closes,
        "close": closes,
        "volume": [1.0] * n,
    })


def _rsi_rules():
    return RuleBasedStrategy.from_rows([
        {"indicator_type": "price", "operator": "crosses_above", "indicator_type_2": "sma", "period_2": 5},
        {"indicator_type": "price", "operator": "crosses_below", "indicator_type_2": "sma", "period_2": 5,
         "order_type": "exit"},
    ], name="sma_cross")


def _random_walk(n=200, seed=5):
    rng = np.random.default_rng(seed)
    return (100.0 + np.cumsum(rng.normal(0, 1, n))).tolist()


def test_flat_series_has_no_trades():
    result = BacktestEngine(_rsi_rules(), RiskConfig()).run(_frame([100.0] * 200))
    assert result.trades == []
    assert result.metrics.total_return_pct == 0.0
    assert result.final_balance == result.initial_balance == 10000.0


def test_run_produces_consistent_result():
    risk = RiskConfig(stop_loss_percent=2.0, take_profit_percent=3.0)
    result = BacktestEngine(_rsi_rules(), risk).run(_frame(_random_walk()))
    assert len(result.trades) > 0
    assert result.final_balance == pytest.approx(risk.initial_balance + sum(t.profit for t in result.trades))
    assert result.metrics.final_balance == pytest.approx(result.final_balance)
    assert len(result.equity_curve) == 200
    assert result.equity_curve[-1].balance == pytest.approx(result.final_balance)
    assert {"open_time", "price", "sma_5"} <= set(result.indicators.columns)
    trades = result.trades_frame()
    assert len(trades) == len(result.trades)
    assert set(trades["exit_reason"]) <= {r.value for r in ExitReason}
    equity = result.equity_frame()
    assert list(equity.columns) == ["timestamp", "balance"]


def test_metrics_reported_to_injected_sink():
    sink = RecordingSink()
    BacktestEngine(_rsi_rules(), RiskConfig(), metrics_sink=sink).run(_frame(_random_walk()), symbol="BTCUSDT")
    names = {name for name, _, _ in sink.records}
    assert "backtest.total_return_pct" in names
    assert "backtest.max_drawdown_pct" in names
    assert all(tags == {"strategy": "sma_cross", "symbol": "BTCUSDT"} for _, _, tags in sink.records)


def test_accepts_candle_objects():
    candles = [Candle(i * 60_000, c, c, c, c, 1.0) for i, c in enumerate(_random_walk(50))]
    result = BacktestEngine(_rsi_rules(), RiskConfig()).run(candles)
    assert len(result.equity_curve) == 50


def test_too_few_candles_rejected():
    with pytest.raises(InputError) as exc:
        BacktestEngine(CompositeScoreStrategy(), RiskConfig()).run(_frame([100.0] * 10))
    assert exc.value.field == "candles"


def test_empty_and_malformed_candles_rejected():
    engine = BacktestEngine(_rsi_rules(), RiskConfig())
    with pytest.raises(InputError):
        engine.run(_frame([]))
    with pytest.raises(InputError):
        engine.run(_frame([1.0, 2.0]).drop(columns=["volume"]))
    unordered = _frame([1.0, 2.0, 3.0])
    unordered.loc[2, "open_time"] = 0
    with pytest.raises(InputError):
        engine.run(unordered)


def test_bad_risk_config_rejected_before_simulation():
    sink = RecordingSink()
    engine = BacktestEngine(_rsi_rules(), RiskConfig(position_size_percent=0.0), metrics_sink=sink)
    with pytest.raises(InputError) as exc:
        engine.run(_frame(_random_walk()))
    assert exc.value.field == "position_size_percent"
    assert sink.records == []


def test_runs_are_independent():
    engine = BacktestEngine(CompositeScoreStrategy(), RiskConfig(stop_loss_percent=1.0))
    df = _frame(_random_walk())
    first = engine.run(df)
    engine.run(_frame(_random_walk(seed=9)))
    again = engine.run(df)
    assert first.trades == again.trades
    assert first.equity_curve == again.equity_curve
