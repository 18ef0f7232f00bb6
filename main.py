#!/usr/bin/env python3
"""
Strategy backtester CLI: backtest | signal | walk-forward
Usage:
  python main.py backtest [--config config.yaml] [--csv data.csv] [--trades-out trades.csv]
  python main.py signal [--config config.yaml]
  python main.py walk-forward [--config config.yaml]
"""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from strategy_backtester.analytics.sink import LoggingMetricsSink
from strategy_backtester.backtesting.engine import BacktestEngine
from strategy_backtester.backtesting.walk_forward import run_walk_forward, split_windows
from strategy_backtester.core.config import Config, load_config
from strategy_backtester.core.errors import InputError
from strategy_backtester.core.logger import setup_logging
from strategy_backtester.data.csv_source import CsvCandleSource

logger = logging.getLogger("strategy_backtester.cli")

EXIT_INPUT_ERROR = 2


def _load_candles(config: Config, csv_path: Path | None):
    source = CsvCandleSource(csv_path) if csv_path else config.candle_source()
    return source.get_candles(config.symbol, config.timeframe, config.limit)


def run_backtest(config: Config, csv_path: Path | None, trades_out: Path | None) -> int:
    """Run one backtest and print the metrics."""
    engine = BacktestEngine(config.build_strategy(), config.risk_config(), LoggingMetricsSink(logging.DEBUG))
    df = _load_candles(config, csv_path)
    result = engine.run(df, symbol=config.symbol)
    m = result.metrics
    print("\n--- Backtest Results ---")
    print(f"Total trades: {m.total_trades} (wins: {m.winning_trades}, losses: {m.losing_trades})")
    print(f"Total return: {m.total_return_pct:.2f}%")
    print(f"Final balance: {m.final_balance:.2f}")
    print(f"Sharpe ratio: {m.sharpe_ratio:.2f}")
    print(f"Sortino ratio: {m.sortino_ratio:.2f}")
    print(f"Max drawdown: {m.max_drawdown_pct:.2f}%")
    print(f"Win rate: {m.win_rate:.1f}%")
    print(f"Profit factor: {m.profit_factor:.2f}")
    print(f"Avg win / loss: {m.avg_win:.2f} / {m.avg_loss:.2f}")
    print(f"Fees paid: {m.total_fees:.2f}")
    if trades_out:
        result.trades_frame().to_csv(trades_out, index=False)
        logger.info("Trades written to %s", trades_out)
    return 0


def run_signal(config: Config, csv_path: Path | None) -> int:
    """Print the latest entry/exit decision for the last closed candle."""
    strategy = config.build_strategy()
    df = _load_candles(config, csv_path)
    signal = strategy.get_signal(df)
    if signal is None:
        print(f"{config.symbol} {config.timeframe}: no signal")
        return 0
    kind = "ENTRY" if signal.is_entry else "EXIT"
    print(f"{config.symbol} {config.timeframe}: {kind} {signal.side.value} @ {signal.price:.6f} "
          f"(open_time={signal.open_time}) {signal.reason}")
    return 0


def run_walk_forward_mode(config: Config, csv_path: Path | None) -> int:
    """Backtest each out-of-sample window and print one line per window."""
    engine = BacktestEngine(config.build_strategy(), config.risk_config())
    df = _load_candles(config, csv_path)
    windows = split_windows(len(df), config.walk_forward_train_pct, config.walk_forward_step_bars)
    print("\n--- Walk-forward (out-of-sample) ---")
    for wf in run_walk_forward(engine, df, windows):
        m = wf.result.metrics
        print(f"[{wf.window.test_start}:{wf.window.test_end}] trades={m.total_trades} "
              f"return={m.total_return_pct:.2f}% max_dd={m.max_drawdown_pct:.2f}% win_rate={m.win_rate:.1f}%")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Strategy backtester CLI")
    parser.add_argument("mode", choices=["backtest", "signal", "walk-forward"], help="What to run")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--csv", type=Path, default=None, help="Read candles from this CSV instead of the configured source")
    parser.add_argument("--trades-out", type=Path, default=None, help="Write the trade ledger to this CSV")
    args = parser.parse_args()
    try:
        config = load_config(args.config, ROOT)
        setup_logging(config.log_level, config.log_dir, config.log_file)
        if args.mode == "backtest":
            return run_backtest(config, args.csv, args.trades_out)
        if args.mode == "signal":
            return run_signal(config, args.csv)
        return run_walk_forward_mode(config, args.csv)
    except InputError as e:
        logger.error("Rejected input: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    exit(main())
