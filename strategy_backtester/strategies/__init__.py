"""Strategies: base interface, rule-based conditions and the composite regime score."""

from strategy_backtester.strategies.base import BaseStrategy, SignalSeries
from strategy_backtester.strategies.conditions import (
    Condition,
    LogicalOperator,
    Operator,
    OrderType,
    RuleBasedStrategy,
)
from strategy_backtester.strategies.composite import CompositeScoreStrategy, FactorWeights

__all__ = [
    "BaseStrategy",
    "SignalSeries",
    "Condition",
    "LogicalOperator",
    "Operator",
    "OrderType",
    "RuleBasedStrategy",
    "CompositeScoreStrategy",
    "FactorWeights",
]
