"""Core: config, types, errors, logging."""

from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import (
    Candle,
    EquityPoint,
    ExitReason,
    Signal,
    SignalSide,
    Trade,
    candles_to_frame,
)
from strategy_backtester.core.logger import setup_logging
from strategy_backtester.core.config import load_config, Config

__all__ = [
    "InputError",
    "Candle",
    "EquityPoint",
    "ExitReason",
    "Signal",
    "SignalSide",
    "Trade",
    "candles_to_frame",
    "setup_logging",
    "load_config",
    "Config",
]
