"""Unit tests for strategies.conditions."""

import numpy as np
import pandas as pd
import pytest

from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import SignalSide
from strategy_backtester.indicators.cache import IndicatorCache
from strategy_backtester.indicators.registry import IndicatorKind, IndicatorSpec
from strategy_backtester.strategies.conditions import (
    Condition,
    LogicalOperator,
    Operator,
    OrderType,
    RuleBasedStrategy,
    evaluate_condition,
    evaluate_conditions,
)

PRICE = IndicatorSpec(IndicatorKind.PRICE)


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


def _eval(closes, condition):
    return evaluate_condition(condition, IndicatorCache(_frame(closes))).tolist()


def test_threshold_operators():
    assert _eval([1, 3, 2], Condition(PRICE, Operator.GREATER_THAN, value=2)) == [False, True, False]
    assert _eval([1, 3, 2], Condition(PRICE, Operator.LESS_THAN, value=2)) == [True, False, False]


def test_equals_uses_tolerance():
    assert _eval([1.0, 1.005, 1.02], Condition(PRICE, Operator.EQUALS, value=1.0)) == [True, True, False]


def test_in_range_is_inclusive():
    cond = Condition(PRICE, Operator.IN_RANGE, value=2, value2=3)
    assert _eval([1, 2, 3, 4], cond) == [False, True, True, False]


def test_crossovers_are_mutually_exclusive():
    closes = [1, 3, 1, 3, 3, 1]
    above = _eval(closes, Condition(PRICE, Operator.CROSSES_ABOVE, value=2))
    below = _eval(closes, Condition(PRICE, Operator.CROSSES_BELOW, value=2))
    assert above == [False, True, False, True, False, False]
    assert below == [False, False, True, False, False, True]
    assert not any(a and b for a, b in zip(above, below))


def test_no_crossover_at_index_zero():
    assert _eval([3, 3], Condition(PRICE, Operator.CROSSES_ABOVE, value=2)) == [False, False]


def test_crossover_against_second_indicator():
    cond = Condition.from_dict({
        "indicator_type": "price",
        "operator": "crosses_above",
        "indicator_type_2": "sma",
        "period_2": 2,
    })
    # sma2 = [nan, 4.5, 3.5, 3.5, 4.5]; price first above it at index 3
    assert _eval([5, 4, 3, 4, 5], cond) == [False, False, False, True, False]


def test_undefined_operand_never_matches():
    cond = Condition(IndicatorSpec(IndicatorKind.SMA, 3), Operator.GREATER_THAN, value=0)
    assert _eval([1, 2, 3, 4], cond) == [False, False, True, True]


def test_breakout_uses_previous_bars_only():
    cond = Condition(PRICE, Operator.BREAKOUT_ABOVE, lookback_bars=2)
    assert _eval([1, 2, 3, 2, 4], cond) == [False, False, True, False, True]
    cond = Condition(PRICE, Operator.BREAKOUT_BELOW, lookback_bars=2)
    assert _eval([5, 4, 3, 4, 2], cond) == [False, False, True, False, True]


def test_groups_and_or_logic():
    conditions = [
        Condition(PRICE, Operator.GREATER_THAN, value=2),
        Condition(PRICE, Operator.LESS_THAN, value=5),
        Condition(PRICE, Operator.LESS_THAN, value=1.5, group_id="g"),
        Condition(PRICE, Operator.GREATER_THAN, value=3.5, group_id="g", logical_operator=LogicalOperator.OR),
    ]
    cache = IndicatorCache(_frame([1, 2, 3, 4, 5, 6]))
    out = evaluate_conditions(conditions, OrderType.ENTRY, cache)
    assert out.tolist() == [False, False, False, True, False, False]


def test_entry_and_exit_are_evaluated_independently():
    conditions = [
        Condition(PRICE, Operator.GREATER_THAN, value=2),
        Condition(PRICE, Operator.LESS_THAN, value=2, order_type=OrderType.EXIT),
    ]
    cache = IndicatorCache(_frame([1, 3]))
    assert evaluate_conditions(conditions, OrderType.ENTRY, cache).tolist() == [False, True]
    assert evaluate_conditions(conditions, OrderType.EXIT, cache).tolist() == [True, False]


def test_no_conditions_never_signal():
    cache = IndicatorCache(_frame([1, 2, 3]))
    assert not evaluate_conditions([], OrderType.ENTRY, cache).any()


def test_from_dict_aliases():
    cond = Condition.from_dict({
        "indicator_type": "rsi",
        "period_1": "14",
        "operator": "between",
        "value": "30",
        "value2": 70,
        "order_type": "buy",
        "logical_operator": "or",
    })
    assert cond.indicator == IndicatorSpec(IndicatorKind.RSI, 14)
    assert cond.operator is Operator.IN_RANGE
    assert cond.order_type is OrderType.ENTRY
    assert cond.logical_operator is LogicalOperator.OR
    assert cond.value == 30.0


@pytest.mark.parametrize("row, field", [
    ({"indicator_type": "stochastic", "operator": "greater_than", "value": 1}, "indicator_type"),
    ({"indicator_type": "rsi", "operator": "approximately", "value": 1}, "operator"),
    ({"indicator_type": "rsi", "operator": "greater_than", "value": 1, "order_type": "hold"}, "order_type"),
    ({"indicator_type": "rsi", "operator": "greater_than", "value": 1, "logical_operator": "xor"}, "logical_operator"),
    ({"indicator_type": "rsi", "operator": "in_range", "value": 1}, "value2"),
    ({"indicator_type": "rsi", "operator": "greater_than"}, "value"),
    ({"indicator_type": "rsi", "operator": "greater_than", "value": "high"}, "value"),
    ({"indicator_type": "sma", "period_1": "fast", "operator": "greater_than", "value": 1}, "period_1"),
    ({"indicator_type": "price", "indicator_type_2": "ema", "period_2": "slow", "operator": "crosses_above"},
     "period_2"),
    ({"indicator_type": "bollinger_upper", "deviation": "wide", "operator": "greater_than", "value": 1}, "deviation"),
    ({"indicator_type": "price", "operator": "breakout_above", "lookback_bars": "ten"}, "lookback_bars"),
    ({"indicator_type": "sma", "period_1": 0, "operator": "greater_than", "value": 1}, "period"),
])
def test_from_dict_rejects_bad_rows(row, field):
    with pytest.raises(InputError) as exc:
        Condition.from_dict(row)
    assert exc.value.field == field


def test_condition_warmup():
    rsi = IndicatorSpec(IndicatorKind.RSI, 14)
    assert Condition(rsi, Operator.LESS_THAN, value=30).warmup == 15
    assert Condition(rsi, Operator.CROSSES_ABOVE, value=30).warmup == 16
    assert Condition(PRICE, Operator.BREAKOUT_ABOVE, lookback_bars=10).warmup == 11


def test_rule_strategy_is_long_only():
    strategy = RuleBasedStrategy([
        Condition(PRICE, Operator.GREATER_THAN, value=2),
        Condition(PRICE, Operator.LESS_THAN, value=2, order_type=OrderType.EXIT),
    ])
    df = _frame([1, 3, 1])
    signals = strategy.generate_signals(df, IndicatorCache(df))
    assert signals.entry_long.tolist() == [False, True, False]
    assert signals.exit_long.tolist() == [True, False, True]
    assert not signals.entry_short.any() and not signals.exit_short.any()


def test_get_signal_reports_last_candle():
    strategy = RuleBasedStrategy.from_rows([
        {"indicator_type": "price", "operator": "greater_than", "value": 2, "order_type": "entry"},
        {"indicator_type": "price", "operator": "less_than", "value": 2, "order_type": "exit"},
    ])
    entry = strategy.get_signal(_frame([1, 3]))
    assert entry.is_entry and entry.side is SignalSide.LONG
    assert entry.price == 3.0 and entry.open_time == 60_000
    exit_ = strategy.get_signal(_frame([3, 1]))
    assert not exit_.is_entry and exit_.side is SignalSide.SHORT
    assert strategy.get_signal(_frame([2, 2])) is None


def test_evaluation_has_candle_length():
    df = _frame(np.linspace(1, 10, 25))
    cond = Condition(IndicatorSpec(IndicatorKind.EMA, 5), Operator.CROSSES_ABOVE,
                     compare_to=IndicatorSpec(IndicatorKind.SMA, 10))
    assert len(evaluate_condition(cond, IndicatorCache(df))) == len(df)
