"""Risk configuration: stop loss, take profit, sizing, leverage, fees, slippage."""

from strategy_backtester.risk.config import ExecutionTiming, ProductType, RiskConfig

__all__ = ["ExecutionTiming", "ProductType", "RiskConfig"]
