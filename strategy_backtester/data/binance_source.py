"""
Historical klines from Binance public endpoints (no API key needed), with retry on rate limit.
"""

from __future__ import annotations
import logging
import time
from typing import Optional

import pandas as pd

from binance.client import Client
from binance.exceptions import BinanceAPIException

from strategy_backtester.core.types import CANDLE_COLUMNS
from strategy_backtester.data.base import CandleSource

logger = logging.getLogger("strategy_backtester.data.binance")

KLINE_COLUMNS = [
    "open_time", "open", "high", "low", "close", "volume",
    "close_time", "quote_av", "num_trades", "tb_base_av", "tb_quote_av", "ignore",
]


def retry_on_rate_limit(max_retries: int = 3, base_delay: float = 1.0):
    """Decorator: retry on 429 or 418 (rate limit)."""
    def decorator(f):
        def wrapped(*args, **kwargs):
            last_exc = None
            for attempt in range(max_retries):
                try:
                    return f(*args, **kwargs)
                except BinanceAPIException as e:
                    last_exc = e
                    if e.status_code in (429, 418) and attempt < max_retries - 1:
                        delay = base_delay * (2 ** attempt)
                        logger.warning("Rate limited, retry in %.1fs (attempt %d)", delay, attempt + 1)
                        time.sleep(delay)
                    else:
                        raise
            raise last_exc
        return wrapped
    return decorator


def klines_to_frame(raw: list, now_ms: Optional[int] = None) -> pd.DataFrame:
    """Binance kline rows to CANDLE_COLUMNS; drops the still-open last candle when now_ms is given."""
    df = pd.DataFrame(raw, columns=KLINE_COLUMNS)
    if now_ms is not None and not df.empty:
        df = df[df["close_time"].astype("int64") < now_ms]
    df = df[CANDLE_COLUMNS].copy()
    df["open_time"] = df["open_time"].astype("int64")
    df[CANDLE_COLUMNS[1:]] = df[CANDLE_COLUMNS[1:]].astype(float)
    return df.reset_index(drop=True)


class BinanceCandleSource(CandleSource):
    """Spot or USDT-M futures klines. Only closed candles are returned."""

    def __init__(self, futures: bool = False, client: Optional[Client] = None):
        self.futures = futures
        self._client = client or Client()

    @retry_on_rate_limit(max_retries=3, base_delay=1.0)
    def _fetch(self, symbol: str, interval: str, limit: int) -> list:
        if self.futures:
            return self._client.futures_klines(symbol=symbol, interval=interval, limit=limit)
        return self._client.get_klines(symbol=symbol, interval=interval, limit=limit)

    def get_candles(self, symbol: str, interval: str, limit: Optional[int] = None) -> pd.DataFrame:
        raw = self._fetch(symbol.upper(), interval, limit or 500)
        df = klines_to_frame(raw, now_ms=int(time.time() * 1000))
        logger.info("Fetched %d closed %s candles for %s", len(df), interval, symbol.upper())
        return df
