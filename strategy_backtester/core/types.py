"""
Core data types for candles, signals, trades and equity points.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Iterable, Sequence, Union

import pandas as pd

from strategy_backtester.core.errors import InputError

CANDLE_COLUMNS = ["open_time", "open", "high", "low", "close", "volume"]


class SignalSide(str, Enum):
    LONG = "BUY"
    SHORT = "SELL"

    @property
    def direction(self) -> int:
        return 1 if self is SignalSide.LONG else -1


class ExitReason(str, Enum):
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    TRAILING_STOP = "trailing_stop"
    SIGNAL = "signal"
    END_OF_PERIOD = "end_of_period"


@dataclass(frozen=True)
class Candle:
    """OHLCV candle. open_time in epoch milliseconds."""
    open_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Signal:
    """Latest entry/exit decision for the last candle of a series."""
    side: SignalSide
    is_entry: bool
    price: float
    open_time: int
    reason: str = ""


@dataclass(frozen=True)
class Trade:
    """Closed trade. Created at exit, never mutated."""
    side: SignalSide
    entry_time: int
    exit_time: int
    entry_price: float
    exit_price: float
    quantity: float
    exit_reason: ExitReason
    profit: float
    profit_percent: float
    fees: float = 0.0
    slippage_cost: float = 0.0


@dataclass(frozen=True)
class EquityPoint:
    """Mark-to-market balance at one candle."""
    timestamp: int
    balance: float


def candles_to_frame(candles: Union[pd.DataFrame, Sequence[Candle], Iterable[Candle]]) -> pd.DataFrame:
    """
    Normalize input candles to a DataFrame with CANDLE_COLUMNS and a RangeIndex.
    Accepts a DataFrame (extra columns dropped) or a sequence of Candle.
    OHLC invariants are the data provider's job and are not re-checked here.
    """
    if isinstance(candles, pd.DataFrame):
        missing = [c for c in CANDLE_COLUMNS if c not in candles.columns]
        if missing:
            raise InputError("candles", f"missing columns {missing}")
        df = candles[CANDLE_COLUMNS].copy()
    else:
        rows = [asdict(c) for c in candles]
        df = pd.DataFrame(rows, columns=CANDLE_COLUMNS)
    if df.empty:
        raise InputError("candles", "candle series is empty")
    df = df.reset_index(drop=True)
    df["open_time"] = df["open_time"].astype("int64")
    df[CANDLE_COLUMNS[1:]] = df[CANDLE_COLUMNS[1:]].astype(float)
    return df
