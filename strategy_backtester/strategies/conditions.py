"""
Rule-based strategy: threshold / crossover / range / breakout conditions over indicator
series, combined per group into entry and exit boolean series.
"""

from __future__ import annotations
import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.indicators.cache import IndicatorCache
from strategy_backtester.indicators.registry import IndicatorSpec
from strategy_backtester.strategies.base import BaseStrategy, SignalSeries

logger = logging.getLogger("strategy_backtester.strategies.conditions")

EQUALS_TOLERANCE = 0.01


class Operator(str, Enum):
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    EQUALS = "equals"
    IN_RANGE = "in_range"
    CROSSES_ABOVE = "crosses_above"
    CROSSES_BELOW = "crosses_below"
    BREAKOUT_ABOVE = "breakout_above"
    BREAKOUT_BELOW = "breakout_below"


class OrderType(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


_OPERATOR_ALIASES = {
    "between": Operator.IN_RANGE,
    "indicator_comparison": Operator.GREATER_THAN,
}
_ORDER_TYPE_ALIASES = {"buy": OrderType.ENTRY, "sell": OrderType.EXIT}
_CROSSOVERS = (Operator.CROSSES_ABOVE, Operator.CROSSES_BELOW)
_BREAKOUTS = (Operator.BREAKOUT_ABOVE, Operator.BREAKOUT_BELOW)


def _parse_enum(enum_cls, raw: Any, field: str, aliases: Optional[Mapping[str, Any]] = None, upper: bool = False):
    key = str(raw or "").strip()
    key = key.upper() if upper else key.lower()
    if aliases and key in aliases:
        return aliases[key]
    try:
        return enum_cls(key)
    except ValueError:
        raise InputError(field, f"unknown value {raw!r}", raw) from None


def _optional_float(row: Mapping[str, Any], key: str) -> Optional[float]:
    raw = row.get(key)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise InputError(key, f"not a number: {raw!r}", raw) from None


def _optional_int(row: Mapping[str, Any], key: str, default: int) -> int:
    raw = row.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InputError(key, f"not an integer: {raw!r}", raw) from None


@dataclass(frozen=True)
class Condition:
    """
    One rule. Compares the indicator against `value` (or against the live series
    `compare_to` when set). in_range uses [value, value2]; breakouts compare against the
    highest high / lowest low of the previous `lookback_bars` candles.
    """
    indicator: IndicatorSpec
    operator: Operator
    order_type: OrderType = OrderType.ENTRY
    value: Optional[float] = None
    value2: Optional[float] = None
    compare_to: Optional[IndicatorSpec] = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    group_id: Optional[str] = None
    lookback_bars: int = 10

    def __post_init__(self) -> None:
        op = self.operator
        if op == Operator.IN_RANGE:
            if self.value is None or self.value2 is None:
                raise InputError("value2", "in_range needs value and value2")
            if self.value > self.value2:
                raise InputError("value2", f"range lower bound {self.value} > upper bound {self.value2}")
        elif op in _BREAKOUTS:
            if self.lookback_bars < 1:
                raise InputError("lookback_bars", f"must be >= 1, got {self.lookback_bars}")
        elif self.compare_to is None and self.value is None:
            raise InputError("value", f"{op.value} needs a threshold value or a second indicator")
        if self.compare_to is not None and (op == Operator.IN_RANGE or op in _BREAKOUTS):
            raise InputError("indicator_type_2", f"{op.value} does not take a second indicator")

    @property
    def warmup(self) -> int:
        need = self.indicator.warmup
        if self.compare_to is not None:
            need = max(need, self.compare_to.warmup)
        if self.operator in _CROSSOVERS:
            need += 1
        if self.operator in _BREAKOUTS:
            need = max(need, self.lookback_bars + 1)
        return need

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "Condition":
        """Parse a saved strategy condition row (indicator_type, period_1, operator, value, ...)."""
        indicator = IndicatorSpec.parse(row.get("indicator_type"), row.get("period_1"), row.get("deviation"))
        compare_to = None
        if row.get("indicator_type_2") or row.get("period_2"):
            compare_to = IndicatorSpec.parse(
                row.get("indicator_type_2") or row.get("indicator_type"),
                row.get("period_2"),
                row.get("deviation"),
                period_field="period_2",
            )
        return cls(
            indicator=indicator,
            operator=_parse_enum(Operator, row.get("operator"), "operator", _OPERATOR_ALIASES),
            order_type=_parse_enum(OrderType, row.get("order_type", "entry"), "order_type", _ORDER_TYPE_ALIASES),
            value=_optional_float(row, "value"),
            value2=_optional_float(row, "value2"),
            compare_to=compare_to,
            logical_operator=_parse_enum(
                LogicalOperator, row.get("logical_operator") or "AND", "logical_operator", upper=True
            ),
            group_id=row.get("group_id"),
            lookback_bars=_optional_int(row, "lookback_bars", 10),
        )


def _previous(a: np.ndarray) -> np.ndarray:
    out = np.zeros_like(a)
    out[1:] = a[:-1]
    return out


def _reference(condition: Condition, cache: IndicatorCache, n: int) -> np.ndarray:
    if condition.compare_to is not None:
        return cache.get(condition.compare_to).to_numpy(dtype=float)
    if condition.value is None:
        return np.full(n, np.nan)
    return np.full(n, condition.value, dtype=float)


def _breakout_level(cache: IndicatorCache, condition: Condition) -> np.ndarray:
    df = cache.frame
    if condition.operator == Operator.BREAKOUT_ABOVE:
        level = df["high"].shift(1).rolling(condition.lookback_bars).max()
    else:
        level = df["low"].shift(1).rolling(condition.lookback_bars).min()
    return level.to_numpy(dtype=float)


_Comparator = Callable[[np.ndarray, np.ndarray, np.ndarray, Condition], np.ndarray]


def _crosses(compare: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> _Comparator:
    def evaluate(x: np.ndarray, ref: np.ndarray, defined: np.ndarray, c: Condition) -> np.ndarray:
        now = compare(x, ref) & defined
        before = _previous(now)
        return now & ~before & _previous(defined)
    return evaluate


_COMPARATORS: Dict[Operator, _Comparator] = {
    Operator.GREATER_THAN: lambda x, ref, d, c: x > ref,
    Operator.LESS_THAN: lambda x, ref, d, c: x < ref,
    Operator.EQUALS: lambda x, ref, d, c: np.abs(x - ref) < EQUALS_TOLERANCE,
    Operator.IN_RANGE: lambda x, ref, d, c: (x >= c.value) & (x <= c.value2),
    Operator.CROSSES_ABOVE: _crosses(np.greater),
    Operator.CROSSES_BELOW: _crosses(np.less),
    Operator.BREAKOUT_ABOVE: lambda x, ref, d, c: x > ref,
    Operator.BREAKOUT_BELOW: lambda x, ref, d, c: x < ref,
}


def evaluate_condition(condition: Condition, cache: IndicatorCache) -> np.ndarray:
    """Boolean series for one condition. Undefined operands never match."""
    n = len(cache.frame)
    x = cache.get(condition.indicator).to_numpy(dtype=float)
    if condition.operator in _BREAKOUTS:
        ref = _breakout_level(cache, condition)
    elif condition.operator == Operator.IN_RANGE:
        ref = np.zeros(n)
    else:
        ref = _reference(condition, cache, n)
    defined = ~np.isnan(x) & ~np.isnan(ref)
    with np.errstate(invalid="ignore"):
        result = _COMPARATORS[condition.operator](x, ref, defined, condition)
    return np.asarray(result, dtype=bool) & defined


def evaluate_group(conditions: Sequence[Condition], cache: IndicatorCache) -> np.ndarray:
    """All conditions must hold, unless any member is OR-linked: then any may hold."""
    if not conditions:
        return np.zeros(len(cache.frame), dtype=bool)
    results = [evaluate_condition(c, cache) for c in conditions]
    if any(c.logical_operator == LogicalOperator.OR for c in conditions):
        return np.logical_or.reduce(results)
    return np.logical_and.reduce(results)


def evaluate_conditions(conditions: Sequence[Condition], order_type: OrderType, cache: IndicatorCache) -> np.ndarray:
    """Conditions of one order type, grouped by group_id (ungrouped = one group); groups are ANDed."""
    relevant = [c for c in conditions if c.order_type == order_type]
    n = len(cache.frame)
    if not relevant:
        return np.zeros(n, dtype=bool)
    groups: "OrderedDict[Optional[str], List[Condition]]" = OrderedDict()
    for c in relevant:
        groups.setdefault(c.group_id, []).append(c)
    out = np.ones(n, dtype=bool)
    for members in groups.values():
        out &= evaluate_group(members, cache)
    return out


class RuleBasedStrategy(BaseStrategy):
    """Long-only strategy driven by entry and exit condition sets."""

    def __init__(self, conditions: Sequence[Condition], name: str = "rules"):
        self.conditions = list(conditions)
        self.name = name
        if not any(c.order_type == OrderType.ENTRY for c in self.conditions):
            logger.warning("Strategy %s has no entry conditions; it will never open a position", name)

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, Any]], name: str = "rules") -> "RuleBasedStrategy":
        return cls([Condition.from_dict(r) for r in rows], name=name)

    def warmup_candles(self) -> int:
        return max((c.warmup for c in self.conditions), default=1)

    def generate_signals(self, df: pd.DataFrame, cache: IndicatorCache) -> SignalSeries:
        entry = evaluate_conditions(self.conditions, OrderType.ENTRY, cache)
        exit_ = evaluate_conditions(self.conditions, OrderType.EXIT, cache)
        return SignalSeries.long_only(entry, exit_)
