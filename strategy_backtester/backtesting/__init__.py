"""Backtesting: engine, trade simulator, walk-forward windows."""

from strategy_backtester.backtesting.engine import BacktestEngine, BacktestResult
from strategy_backtester.backtesting.simulator import PositionState, SimulationLedger, TradeSimulator
from strategy_backtester.backtesting.walk_forward import (
    WalkForwardResult,
    WalkForwardWindow,
    run_walk_forward,
    split_windows,
)

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "PositionState",
    "SimulationLedger",
    "TradeSimulator",
    "WalkForwardResult",
    "WalkForwardWindow",
    "run_walk_forward",
    "split_windows",
]
