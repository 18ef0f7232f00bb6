"""Abstract strategy: indicators + boolean entry/exit series."""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from strategy_backtester.core.types import Signal, SignalSide
from strategy_backtester.indicators.cache import IndicatorCache


@dataclass(frozen=True)
class SignalSeries:
    """Per-candle decisions, aligned 1:1 with the candle frame."""
    entry_long: np.ndarray
    exit_long: np.ndarray
    entry_short: np.ndarray
    exit_short: np.ndarray

    @classmethod
    def long_only(cls, entry: np.ndarray, exit_: np.ndarray) -> "SignalSeries":
        flat = np.zeros(len(entry), dtype=bool)
        return cls(np.asarray(entry, dtype=bool), np.asarray(exit_, dtype=bool), flat, flat.copy())

    def __len__(self) -> int:
        return len(self.entry_long)

    def entry_side(self, i: int) -> Optional[SignalSide]:
        if self.entry_long[i]:
            return SignalSide.LONG
        if self.entry_short[i]:
            return SignalSide.SHORT
        return None

    def exit_for(self, side: SignalSide, i: int) -> bool:
        return bool(self.exit_long[i] if side == SignalSide.LONG else self.exit_short[i])


class BaseStrategy(ABC):
    """Strategy turns a candle frame into entry/exit series. No lookahead."""

    name: str = "strategy"

    @abstractmethod
    def warmup_candles(self) -> int:
        """Minimum number of candles before any signal can be defined."""

    @abstractmethod
    def generate_signals(self, df: pd.DataFrame, cache: IndicatorCache) -> SignalSeries:
        """Boolean series for the whole frame. Value at i may use candles[0..i] only."""

    def get_signal(self, df: pd.DataFrame, cache: Optional[IndicatorCache] = None) -> Optional[Signal]:
        """
        Decision for the last candle of df, or None.
        Exits are reported for both sides; the caller knows which position it holds.
        """
        if len(df) < self.warmup_candles():
            return None
        cache = cache or IndicatorCache(df)
        signals = self.generate_signals(df, cache)
        i = len(df) - 1
        price = float(df["close"].iloc[i])
        open_time = int(df["open_time"].iloc[i])
        side = signals.entry_side(i)
        if side is not None:
            return Signal(side=side, is_entry=True, price=price, open_time=open_time, reason=f"{self.name} entry")
        if signals.exit_long[i]:
            return Signal(SignalSide.SHORT, False, price, open_time, f"{self.name} exit long")
        if signals.exit_short[i]:
            return Signal(SignalSide.LONG, False, price, open_time, f"{self.name} exit short")
        return None
