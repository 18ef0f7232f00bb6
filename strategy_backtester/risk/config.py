"""
Risk and execution-cost configuration for one simulation run, and position sizing.
Percent fields are in percent units (0.1 = 0.1%). Stop loss / take profit / trailing of 0 mean off.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping

from strategy_backtester.core.errors import InputError
from strategy_backtester.utils.exchange_filters import round_quantity

logger = logging.getLogger("strategy_backtester.risk")


class ProductType(str, Enum):
    SPOT = "spot"
    FUTURES = "futures"


class ExecutionTiming(str, Enum):
    CLOSE = "close"      # market fill at the signal candle's close, taker fee
    OPEN = "open"        # market fill at the next candle's open, taker fee
    PASSIVE = "passive"  # resting order filled at the close, maker fee


@dataclass(frozen=True)
class RiskConfig:
    """Immutable per run. Call validate() before simulating."""
    initial_balance: float = 10000.0
    stop_loss_percent: float = 0.0
    take_profit_percent: float = 0.0
    trailing_stop_percent: float = 0.0
    position_size_percent: float = 100.0
    product_type: ProductType = ProductType.SPOT
    leverage: float = 1.0
    maker_fee_percent: float = 0.02
    taker_fee_percent: float = 0.04
    slippage_percent: float = 0.05
    execution_timing: ExecutionTiming = ExecutionTiming.CLOSE
    cooldown_candles: int = 0
    lot_step: float = 0.0
    min_notional: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RiskConfig":
        """Build from a config mapping; unknown keys are ignored, enums parsed."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        for key, enum_cls in (("product_type", ProductType), ("execution_timing", ExecutionTiming)):
            if key in kwargs:
                raw = kwargs[key]
                try:
                    kwargs[key] = enum_cls(str(raw).strip().lower())
                except ValueError:
                    raise InputError(key, f"unknown value {raw!r}", raw) from None
        return cls(**kwargs)

    def with_overrides(self, **changes: Any) -> "RiskConfig":
        return replace(self, **changes)

    def validate(self) -> "RiskConfig":
        """Raise InputError naming the first malformed field."""
        def check(name: str, ok: bool, message: str) -> None:
            if not ok:
                raise InputError(name, message, getattr(self, name))

        for name in ("initial_balance", "stop_loss_percent", "take_profit_percent", "trailing_stop_percent",
                     "position_size_percent", "leverage", "maker_fee_percent", "taker_fee_percent",
                     "slippage_percent", "lot_step", "min_notional"):
            value = getattr(self, name)
            check(name, isinstance(value, (int, float)) and math.isfinite(value), "must be a finite number")
        check("initial_balance", self.initial_balance > 0, "must be > 0")
        check("stop_loss_percent", self.stop_loss_percent >= 0, "must be >= 0")
        check("take_profit_percent", self.take_profit_percent >= 0, "must be >= 0")
        check("trailing_stop_percent", 0 <= self.trailing_stop_percent < 100, "must be in [0, 100)")
        check("position_size_percent", 0 < self.position_size_percent <= 100, "must be in (0, 100]")
        check("leverage", self.leverage >= 1, "must be >= 1")
        check("maker_fee_percent", self.maker_fee_percent >= 0, "must be >= 0")
        check("taker_fee_percent", self.taker_fee_percent >= 0, "must be >= 0")
        check("slippage_percent", 0 <= self.slippage_percent < 100, "must be in [0, 100)")
        check("cooldown_candles", isinstance(self.cooldown_candles, int) and self.cooldown_candles >= 0,
              "must be an integer >= 0")
        check("lot_step", self.lot_step >= 0, "must be >= 0")
        check("min_notional", self.min_notional >= 0, "must be >= 0")
        if self.product_type == ProductType.SPOT and self.leverage != 1:
            logger.info("Leverage %.1fx ignored for spot product", self.leverage)
        return self

    @property
    def effective_leverage(self) -> float:
        return float(self.leverage) if self.product_type == ProductType.FUTURES else 1.0

    @property
    def fee_percent(self) -> float:
        if self.execution_timing == ExecutionTiming.PASSIVE:
            return self.maker_fee_percent
        return self.taker_fee_percent

    def position_quantity(self, balance: float, entry_price: float) -> float:
        """
        Quantity = (balance * position_size% / 100) / entry_price, rounded down to lot_step.
        Returns 0 when the order is not allowed (no balance, below min notional).
        """
        if balance <= 0 or entry_price <= 0:
            return 0.0
        qty = round_quantity(balance * self.position_size_percent / 100.0 / entry_price, self.lot_step)
        if qty <= 0:
            return 0.0
        if qty * entry_price * self.effective_leverage < self.min_notional:
            return 0.0
        return qty
