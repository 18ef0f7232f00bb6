"""Abstract candle source (market-data collaborator)."""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

import pandas as pd


class CandleSource(ABC):
    """Returns closed candles as a frame with CANDLE_COLUMNS, ascending open_time."""

    @abstractmethod
    def get_candles(self, symbol: str, interval: str, limit: Optional[int] = None) -> pd.DataFrame:
        pass
