"""Strategy evaluation and backtest simulation engine."""

__version__ = "0.1.0"
