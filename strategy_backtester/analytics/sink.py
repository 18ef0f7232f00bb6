"""
Metrics sink: where a run reports its summary numbers. Injected into the engine, never global.
"""

from __future__ import annotations
import logging
from typing import Mapping, Optional, Protocol

logger = logging.getLogger("strategy_backtester.analytics.sink")


class MetricsSink(Protocol):
    def record(self, name: str, value: float, tags: Optional[Mapping[str, str]] = None) -> None:
        ...


class NullMetricsSink:
    """Discards everything."""

    def record(self, name: str, value: float, tags: Optional[Mapping[str, str]] = None) -> None:
        return None


class LoggingMetricsSink:
    """Writes each metric as one log line."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def record(self, name: str, value: float, tags: Optional[Mapping[str, str]] = None) -> None:
        tag_str = ",".join(f"{k}={v}" for k, v in sorted((tags or {}).items()))
        logger.log(self.level, "metric %s=%.6g %s", name, value, tag_str)
