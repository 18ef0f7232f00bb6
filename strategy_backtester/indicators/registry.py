"""
Closed set of indicator kinds, their typed parameters and dispatch to the library.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.indicators import library


class IndicatorKind(str, Enum):
    PRICE = "price"
    VOLUME = "volume"
    SMA = "sma"
    EMA = "ema"
    WMA = "wma"
    RSI = "rsi"
    BOLLINGER_UPPER = "bollinger_upper"
    BOLLINGER_MIDDLE = "bollinger_middle"
    BOLLINGER_LOWER = "bollinger_lower"
    ATR = "atr"
    MACD = "macd"
    MACD_SIGNAL = "macd_signal"
    MOMENTUM = "momentum"
    ROC = "roc"


# Names used by saved strategies in the dashboard
_ALIASES = {
    "close": IndicatorKind.PRICE,
    "bollinger_bands": IndicatorKind.BOLLINGER_UPPER,
    "bb_upper": IndicatorKind.BOLLINGER_UPPER,
    "bb_middle": IndicatorKind.BOLLINGER_MIDDLE,
    "bb_lower": IndicatorKind.BOLLINGER_LOWER,
}

DEFAULT_PERIODS: Dict[IndicatorKind, Optional[int]] = {
    IndicatorKind.PRICE: None,
    IndicatorKind.VOLUME: None,
    IndicatorKind.SMA: 20,
    IndicatorKind.EMA: 20,
    IndicatorKind.WMA: 20,
    IndicatorKind.RSI: 14,
    IndicatorKind.BOLLINGER_UPPER: 20,
    IndicatorKind.BOLLINGER_MIDDLE: 20,
    IndicatorKind.BOLLINGER_LOWER: 20,
    IndicatorKind.ATR: 14,
    IndicatorKind.MACD: None,
    IndicatorKind.MACD_SIGNAL: None,
    IndicatorKind.MOMENTUM: 10,
    IndicatorKind.ROC: 12,
}

_BANDS = (IndicatorKind.BOLLINGER_UPPER, IndicatorKind.BOLLINGER_MIDDLE, IndicatorKind.BOLLINGER_LOWER)


def parse_kind(name: str, field: str = "indicator_type") -> IndicatorKind:
    key = str(name or "").strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return IndicatorKind(key)
    except ValueError:
        raise InputError(field, f"unknown indicator type {name!r}", name) from None


def _as_number(cast, raw: Any, field: str):
    try:
        return cast(raw)
    except (TypeError, ValueError):
        raise InputError(field, f"not a number: {raw!r}", raw) from None


@dataclass(frozen=True)
class IndicatorSpec:
    """One indicator series request: kind plus its parameters."""
    kind: IndicatorKind
    period: Optional[int] = None
    deviation: float = 2.0

    def __post_init__(self) -> None:
        default = DEFAULT_PERIODS[self.kind]
        if default is None:
            object.__setattr__(self, "period", None)
            return
        period = default if self.period is None else _as_number(int, self.period, "period")
        if period < 1:
            raise InputError("period", f"{self.kind.value} period must be >= 1, got {period}", period)
        object.__setattr__(self, "period", period)

    @classmethod
    def parse(
        cls,
        name: str,
        period: Any = None,
        deviation: Any = None,
        period_field: str = "period_1",
    ) -> "IndicatorSpec":
        """Build an IndicatorSpec from saved-row values; blank period or deviation means the default."""
        kind = parse_kind(name)
        if period is not None and period != "":
            period = _as_number(int, period, period_field)
        else:
            period = None
        if deviation is None or deviation == "":
            deviation = 2.0
        return cls(kind, period, _as_number(float, deviation, "deviation"))

    @property
    def key(self) -> str:
        parts = [self.kind.value]
        if self.period is not None:
            parts.append(str(self.period))
        if self.kind in _BANDS:
            parts.append(f"{self.deviation:g}")
        return "_".join(parts)

    @property
    def warmup(self) -> int:
        """Candles needed before the first defined value."""
        if self.period is None or self.kind is IndicatorKind.EMA:
            return 1
        if self.kind in (IndicatorKind.RSI, IndicatorKind.ATR, IndicatorKind.MOMENTUM, IndicatorKind.ROC):
            return self.period + 1
        return self.period


def _band(position: int) -> Callable[[pd.DataFrame, IndicatorSpec], pd.Series]:
    def calc(df: pd.DataFrame, spec: IndicatorSpec) -> pd.Series:
        return library.bollinger_bands(df["close"], spec.period, spec.deviation)[position]
    return calc


_CALCULATORS: Dict[IndicatorKind, Callable[[pd.DataFrame, IndicatorSpec], pd.Series]] = {
    IndicatorKind.PRICE: lambda df, s: df["close"].astype(float),
    IndicatorKind.VOLUME: lambda df, s: df["volume"].astype(float),
    IndicatorKind.SMA: lambda df, s: library.sma(df["close"], s.period),
    IndicatorKind.EMA: lambda df, s: library.ema(df["close"], s.period),
    IndicatorKind.WMA: lambda df, s: library.wma(df["close"], s.period),
    IndicatorKind.RSI: lambda df, s: library.rsi(df["close"], s.period),
    IndicatorKind.BOLLINGER_UPPER: _band(0),
    IndicatorKind.BOLLINGER_MIDDLE: _band(1),
    IndicatorKind.BOLLINGER_LOWER: _band(2),
    IndicatorKind.ATR: lambda df, s: library.atr(df, s.period),
    IndicatorKind.MACD: lambda df, s: library.macd(df["close"]),
    IndicatorKind.MACD_SIGNAL: lambda df, s: library.macd_signal(df["close"]),
    IndicatorKind.MOMENTUM: lambda df, s: library.momentum(df["close"], s.period),
    IndicatorKind.ROC: lambda df, s: library.roc(df["close"], s.period),
}

_missing = set(IndicatorKind) - set(_CALCULATORS)
if _missing:
    raise RuntimeError(f"indicator kinds without a calculator: {sorted(k.value for k in _missing)}")


def compute_indicator(df: pd.DataFrame, spec: IndicatorSpec) -> pd.Series:
    """Compute one indicator over the candle frame, named by spec.key."""
    return _CALCULATORS[spec.kind](df, spec).rename(spec.key)
