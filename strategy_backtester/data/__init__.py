"""Candle sources: CSV files and Binance public klines."""

from strategy_backtester.data.base import CandleSource
from strategy_backtester.data.binance_source import BinanceCandleSource
from strategy_backtester.data.csv_source import CsvCandleSource

__all__ = ["CandleSource", "BinanceCandleSource", "CsvCandleSource"]
