"""Performance metrics and metrics sinks."""

from strategy_backtester.analytics.metrics import (
    PROFIT_FACTOR_CAP,
    PerformanceMetrics,
    compute_metrics,
)
from strategy_backtester.analytics.sink import LoggingMetricsSink, MetricsSink, NullMetricsSink

__all__ = [
    "PROFIT_FACTOR_CAP",
    "PerformanceMetrics",
    "compute_metrics",
    "LoggingMetricsSink",
    "MetricsSink",
    "NullMetricsSink",
]
