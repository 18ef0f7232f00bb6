"""
Trade simulator: one forward pass over the candles with a Flat/Open position state machine.

Fills use the candle close (or the next candle's open with ExecutionTiming.OPEN), moved
against us by the slippage percent. Fees are charged on the leveraged notional at entry
and at exit. Exit priority: stop loss, take profit, trailing stop, exit signal.
Balance changes by exactly trade.profit per closed trade.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from strategy_backtester.core.errors import InputError
from strategy_backtester.core.types import EquityPoint, ExitReason, SignalSide, Trade
from strategy_backtester.risk.config import ExecutionTiming, RiskConfig
from strategy_backtester.strategies.base import SignalSeries

logger = logging.getLogger("strategy_backtester.backtest.simulator")


@dataclass
class PositionState:
    """The single position of a run. Mutated only by TradeSimulator."""
    is_open: bool = False
    side: SignalSide = SignalSide.LONG
    entry_price: float = 0.0
    entry_time: int = 0
    entry_index: int = -1
    entry_at_close: bool = True
    quantity: float = 0.0
    entry_fee: float = 0.0
    entry_slippage: float = 0.0
    trailing_active: bool = False
    peak_profit_percent: float = 0.0

    def reset(self) -> None:
        self.__init__()


@dataclass
class SimulationLedger:
    """Simulator output for one run."""
    trades: List[Trade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    final_balance: float = 0.0
    rejected_entries: int = 0


class TradeSimulator:
    """
    Walks candles once; owns the PositionState for the run.

    An entry signal on the final candle is ignored: the position could only be
    closed again at the same price, paying fees for a zero-length trade.
    """

    def __init__(self, risk: RiskConfig):
        self.risk = risk.validate()
        self._leverage = risk.effective_leverage
        self._fee_rate = risk.fee_percent / 100.0
        self._slip = risk.slippage_percent / 100.0

    def _fill_price(self, price: float, side: SignalSide, opening: bool) -> float:
        """Price moved against us: buying pays more, selling receives less."""
        buying = (side == SignalSide.LONG) == opening
        return price * (1 + self._slip) if buying else price * (1 - self._slip)

    def profit_percent(self, pos: PositionState, price: float) -> float:
        """Unrealized P&L percent at `price`, multiplied by leverage."""
        change = (price - pos.entry_price) / pos.entry_price * 100.0
        return change * pos.side.direction * self._leverage

    def unrealized(self, pos: PositionState, price: float) -> float:
        if not pos.is_open:
            return 0.0
        return (price - pos.entry_price) * pos.quantity * pos.side.direction * self._leverage

    def exit_reason(self, pos: PositionState, price: float, exit_signal: bool) -> Optional[ExitReason]:
        """Exit decision at a candle close; also advances the trailing-stop peak."""
        r = self.risk
        pnl = self.profit_percent(pos, price)
        if r.stop_loss_percent > 0 and pnl <= -r.stop_loss_percent:
            return ExitReason.STOP_LOSS
        if r.take_profit_percent > 0 and pnl >= r.take_profit_percent:
            return ExitReason.TAKE_PROFIT
        if r.trailing_stop_percent > 0:
            # Arms at half the take-profit distance
            if not pos.trailing_active and pnl > 0 and pnl >= r.take_profit_percent * 0.5:
                pos.trailing_active = True
                pos.peak_profit_percent = pnl
            if pos.trailing_active:
                pos.peak_profit_percent = max(pos.peak_profit_percent, pnl)
                if pnl < pos.peak_profit_percent * (1 - r.trailing_stop_percent / 100.0):
                    return ExitReason.TRAILING_STOP
        if exit_signal:
            return ExitReason.SIGNAL
        return None

    def _open(
        self, pos: PositionState, side: SignalSide, price: float, open_time: int, index: int,
        balance: float, at_close: bool,
    ) -> float:
        """Open pos in place if sizing allows. Returns the entry fee charged (0 if rejected)."""
        fill = self._fill_price(price, side, opening=True)
        qty = self.risk.position_quantity(balance, fill)
        if qty <= 0:
            logger.debug("Entry rejected at %d: balance=%.2f price=%.6f", open_time, balance, fill)
            return 0.0
        entry_value = qty * fill
        fee = entry_value * self._leverage * self._fee_rate
        pos.is_open = True
        pos.side = side
        pos.entry_price = fill
        pos.entry_time = open_time
        pos.entry_index = index
        pos.entry_at_close = at_close
        pos.quantity = qty
        pos.entry_fee = fee
        pos.entry_slippage = abs(fill - price) * qty * self._leverage
        pos.trailing_active = False
        pos.peak_profit_percent = 0.0
        logger.debug("Opened %s qty=%.6f @ %.6f (fee %.4f)", side.value, qty, fill, fee)
        return fee

    def _close(self, pos: PositionState, price: float, open_time: int, reason: ExitReason) -> Tuple[Trade, float]:
        """Close pos. Returns the trade and the balance change (gross - exit fee)."""
        fill = self._fill_price(price, pos.side, opening=False)
        entry_value = pos.quantity * pos.entry_price
        exit_value = pos.quantity * fill
        gross = (exit_value - entry_value) * pos.side.direction * self._leverage
        exit_fee = exit_value * self._leverage * self._fee_rate
        profit = gross - pos.entry_fee - exit_fee
        trade = Trade(
            side=pos.side,
            entry_time=pos.entry_time,
            exit_time=open_time,
            entry_price=pos.entry_price,
            exit_price=fill,
            quantity=pos.quantity,
            exit_reason=reason,
            profit=profit,
            profit_percent=profit / entry_value * 100.0,
            fees=pos.entry_fee + exit_fee,
            slippage_cost=pos.entry_slippage + abs(price - fill) * pos.quantity * self._leverage,
        )
        logger.debug("Closed %s (%s) @ %.6f profit=%.4f", pos.side.value, reason.value, fill, profit)
        pos.reset()
        return trade, gross - exit_fee

    def run(self, df: pd.DataFrame, signals: SignalSeries) -> SimulationLedger:
        n = len(df)
        if len(signals) != n:
            raise InputError("signals", f"length {len(signals)} != candles {n}")
        closes = df["close"].to_numpy(dtype=float)
        opens = df["open"].to_numpy(dtype=float)
        times = df["open_time"].to_numpy(dtype=np.int64)
        next_open = self.risk.execution_timing == ExecutionTiming.OPEN

        ledger = SimulationLedger()
        balance = self.risk.initial_balance
        pos = PositionState()
        cooldown_left = 0
        pending_entry: Optional[SignalSide] = None
        pending_exit: Optional[ExitReason] = None

        for i in range(n):
            t = int(times[i])
            exited = False

            # Orders decided on the previous candle fill at this open
            if pending_exit is not None and pos.is_open:
                trade, delta = self._close(pos, opens[i], t, pending_exit)
                balance += delta
                ledger.trades.append(trade)
                exited = True
                cooldown_left = self.risk.cooldown_candles
            elif pending_entry is not None and not pos.is_open:
                balance -= self._open(pos, pending_entry, opens[i], t, i, balance, at_close=False)
                if not pos.is_open:
                    ledger.rejected_entries += 1
            pending_entry = pending_exit = None

            if pos.is_open and not (pos.entry_index == i and pos.entry_at_close):
                reason = self.exit_reason(pos, closes[i], signals.exit_for(pos.side, i))
                if reason is not None:
                    if next_open and i < n - 1:
                        pending_exit = reason
                    else:
                        trade, delta = self._close(pos, closes[i], t, reason)
                        balance += delta
                        ledger.trades.append(trade)
                        exited = True
                        cooldown_left = self.risk.cooldown_candles
            elif not pos.is_open and not exited:
                if cooldown_left > 0:
                    cooldown_left -= 1
                elif i < n - 1 and balance > 0:
                    side = signals.entry_side(i)
                    if side is not None:
                        if next_open:
                            pending_entry = side
                        else:
                            balance -= self._open(pos, side, closes[i], t, i, balance, at_close=True)
                            if not pos.is_open:
                                ledger.rejected_entries += 1

            if i == n - 1 and pos.is_open:
                trade, delta = self._close(pos, closes[i], t, ExitReason.END_OF_PERIOD)
                balance += delta
                ledger.trades.append(trade)

            ledger.equity_curve.append(EquityPoint(t, balance + self.unrealized(pos, closes[i])))

        ledger.final_balance = balance
        return ledger
