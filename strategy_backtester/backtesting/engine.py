"""
Backtest engine: validate inputs, compute signals on a fresh indicator cache,
simulate trades, aggregate metrics. No lookahead; the engine performs no I/O.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import pandas as pd

from strategy_backtester.analytics.metrics import PerformanceMetrics, compute_metrics
from strategy_backtester.analytics.sink import MetricsSink, NullMetricsSink
from strategy_backtester.backtesting.simulator import TradeSimulator
from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import Candle, EquityPoint, Trade, candles_to_frame
from strategy_backtester.indicators.cache import IndicatorCache
from strategy_backtester.risk.config import RiskConfig
from strategy_backtester.strategies.base import BaseStrategy

logger = logging.getLogger("strategy_backtester.backtest")


@dataclass
class BacktestResult:
    """Backtest output: trades, equity curve, metrics and the indicator columns used."""
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[PerformanceMetrics] = None
    initial_balance: float = 0.0
    final_balance: float = 0.0
    indicators: Optional[pd.DataFrame] = None
    rejected_entries: int = 0

    def trades_frame(self) -> pd.DataFrame:
        rows = [
            {
                "side": t.side.value,
                "entry_time": t.entry_time,
                "exit_time": t.exit_time,
                "entry_price": t.entry_price,
                "exit_price": t.exit_price,
                "quantity": t.quantity,
                "exit_reason": t.exit_reason.value,
                "profit": t.profit,
                "profit_percent": t.profit_percent,
                "fees": t.fees,
                "slippage_cost": t.slippage_cost,
            }
            for t in self.trades
        ]
        columns = ["side", "entry_time", "exit_time", "entry_price", "exit_price", "quantity",
                   "exit_reason", "profit", "profit_percent", "fees", "slippage_cost"]
        return pd.DataFrame(rows, columns=columns)

    def equity_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"timestamp": [p.timestamp for p in self.equity_curve], "balance": [p.balance for p in self.equity_curve]}
        )


class BacktestEngine:
    """
    Runs one strategy over one candle series. Each run() builds its own cache and
    simulator, so an engine can be reused and runs never share state.
    """

    def __init__(
        self,
        strategy: BaseStrategy,
        risk: Optional[RiskConfig] = None,
        metrics_sink: Optional[MetricsSink] = None,
    ):
        self.strategy = strategy
        self.risk = risk or RiskConfig()
        self.metrics_sink = metrics_sink or NullMetricsSink()

    def prepare(self, candles: Union[pd.DataFrame, Sequence[Candle]]) -> pd.DataFrame:
        """Convert and validate inputs. Raises InputError; nothing is simulated on failure."""
        df = candles_to_frame(candles)
        self.risk.validate()
        needed = self.strategy.warmup_candles()
        if len(df) < needed:
            raise InputError("candles", f"{len(df)} candles, strategy {self.strategy.name} needs at least {needed}",
                             len(df))
        if not df["open_time"].is_monotonic_increasing or df["open_time"].duplicated().any():
            raise InputError("candles", "open_time must be strictly increasing")
        return df

    def run(self, candles: Union[pd.DataFrame, Sequence[Candle]], symbol: str = "") -> BacktestResult:
        df = self.prepare(candles)
        logger.info("Backtest start: strategy=%s symbol=%s candles=%d", self.strategy.name, symbol or "-", len(df))
        cache = IndicatorCache(df)
        signals = self.strategy.generate_signals(df, cache)
        ledger = TradeSimulator(self.risk).run(df, signals)
        metrics = compute_metrics(ledger.trades, ledger.equity_curve, self.risk.initial_balance)
        result = BacktestResult(
            trades=ledger.trades,
            equity_curve=ledger.equity_curve,
            metrics=metrics,
            initial_balance=self.risk.initial_balance,
            final_balance=ledger.final_balance,
            indicators=cache.to_frame(),
            rejected_entries=ledger.rejected_entries,
        )
        self._report(result, symbol)
        logger.info(
            "Backtest done: trades=%d return=%.2f%% win_rate=%.1f%% max_dd=%.2f%% final=%.2f",
            metrics.total_trades, metrics.total_return_pct, metrics.win_rate,
            metrics.max_drawdown_pct, ledger.final_balance,
        )
        if ledger.rejected_entries:
            logger.info("Entries rejected by sizing: %d", ledger.rejected_entries)
        return result

    def _report(self, result: BacktestResult, symbol: str) -> None:
        tags = {"strategy": self.strategy.name}
        if symbol:
            tags["symbol"] = symbol
        for name, value in result.metrics.to_dict().items():
            self.metrics_sink.record(f"backtest.{name}", float(value), tags)
