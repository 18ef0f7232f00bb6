"""
Candles from a CSV file. The path may contain {symbol} and {interval} placeholders.
Accepts an `open_time` column in epoch ms or a parseable `time` column.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import CANDLE_COLUMNS, candles_to_frame
from strategy_backtester.data.base import CandleSource
from strategy_backtester.utils.timeframes import timeframe_ms

logger = logging.getLogger("strategy_backtester.data.csv")


class CsvCandleSource(CandleSource):
    def __init__(self, path: Union[str, Path]):
        self.path = str(path)

    def resolve_path(self, symbol: str, interval: str) -> Path:
        return Path(self.path.format(symbol=symbol, interval=interval))

    def get_candles(self, symbol: str, interval: str, limit: Optional[int] = None) -> pd.DataFrame:
        path = self.resolve_path(symbol, interval)
        if not path.exists():
            raise InputError("csv_path", f"file not found: {path}", str(path))
        raw = pd.read_csv(path)
        raw.columns = [str(c).strip().lower() for c in raw.columns]
        if "open_time" not in raw.columns and "time" in raw.columns:
            times = pd.to_datetime(raw["time"], utc=True)
            raw["open_time"] = (times - pd.Timestamp(0, tz="UTC")) // pd.Timedelta(milliseconds=1)
        df = candles_to_frame(raw)
        df = self.normalize(df, interval)
        if limit:
            df = df.tail(limit).reset_index(drop=True)
        logger.info("Loaded %d candles for %s %s from %s", len(df), symbol, interval, path)
        return df

    @staticmethod
    def normalize(df: pd.DataFrame, interval: str) -> pd.DataFrame:
        """Sort by open_time, drop duplicate timestamps (last wins), warn on gaps."""
        before = len(df)
        df = df.sort_values("open_time", kind="mergesort")
        df = df.drop_duplicates(subset="open_time", keep="last").reset_index(drop=True)
        if len(df) != before:
            logger.warning("Dropped %d duplicate candles", before - len(df))
        if len(df) > 1:
            step = timeframe_ms(interval)
            gaps = int((df["open_time"].diff().iloc[1:] > step).sum())
            if gaps:
                logger.warning("Found %d gaps larger than %s in candle series", gaps, interval)
        return df[CANDLE_COLUMNS]
