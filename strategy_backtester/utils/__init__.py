"""Utils: timeframes, exchange lot-step rounding."""

from strategy_backtester.utils.exchange_filters import round_quantity
from strategy_backtester.utils.timeframes import timeframe_minutes, timeframe_ms

__all__ = ["round_quantity", "timeframe_minutes", "timeframe_ms"]
