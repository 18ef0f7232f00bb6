"""
Logging for backtest runs. Library modules only create `strategy_backtester.<area>`
loggers; the CLI (or any other entry point) calls setup_logging once.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import Optional

from strategy_backtester.core.errors import InputError

ROOT_LOGGER = "strategy_backtester"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP chatter from the kline download drowns the run summary at DEBUG
_NOISY = ("urllib3", "binance")


def parse_level(level: str) -> int:
    name = str(level or "").strip().upper()
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise InputError("log_level", f"unknown log level {level!r}", level)
    return value


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a console handler (stdout) and, when both log_dir and log_file are
    given, a run log file to the package logger. Calling it again replaces the
    handlers, so repeated CLI invocations in one process do not duplicate lines.
    """
    log_level = parse_level(level)
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(log_level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_dir and log_file:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path / log_file, encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)

    for name in _NOISY:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
    return root
