"""
Performance metrics over a trade ledger and its equity curve.
Every value is finite: empty sets and zero denominators resolve to sentinels.
Sharpe and Sortino use per-candle equity returns, annualized with periods_per_year.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Dict, List, Sequence

import numpy as np

from strategy_backtester.core.types import EquityPoint, Trade

# Profit factor reported when there are winners but no losers
PROFIT_FACTOR_CAP = 999.0


@dataclass
class PerformanceMetrics:
    """Aggregate performance metrics. Percent fields are in percent units."""
    total_return_pct: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown_pct: float
    win_rate: float
    profit_factor: float
    expectancy: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    avg_win: float
    avg_loss: float
    final_balance: float
    total_fees: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sharpe. returns = list of period returns."""
    if len(returns) == 0:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    excess = arr - risk_free_rate / periods_per_year
    if excess.std() <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * excess.mean() / excess.std())


def sortino_ratio(returns: Sequence[float], risk_free_rate: float = 0.0, periods_per_year: float = 252.0) -> float:
    """Annualized Sortino (downside deviation)."""
    if len(returns) == 0:
        return 0.0
    arr = np.asarray(returns, dtype=float)
    excess = arr - risk_free_rate / periods_per_year
    downside = arr[arr < 0]
    if len(downside) == 0 or downside.std() <= 1e-12:
        return sharpe_ratio(returns, risk_free_rate, periods_per_year)
    return float(np.sqrt(periods_per_year) * excess.mean() / downside.std())


def max_drawdown(balances: Sequence[float]) -> float:
    """
    Largest peak-to-trough decline as a positive percent of the running peak
    (e.g. 16.7 = 16.7%). One forward pass; points with a non-positive peak count as 0.
    """
    worst = 0.0
    peak = None
    for value in balances:
        if peak is None or value > peak:
            peak = value
        if peak > 0:
            worst = max(worst, (peak - value) / peak * 100.0)
    return worst


def win_rate(pnls: Sequence[float]) -> float:
    """Percent of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls) * 100.0


def profit_factor(pnls: Sequence[float]) -> float:
    """Gross profit / gross loss. PROFIT_FACTOR_CAP if no losses, 0 if no winners."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return PROFIT_FACTOR_CAP if wins > 0 else 0.0
    return min(wins / losses, PROFIT_FACTOR_CAP)


def expectancy(pnls: Sequence[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def equity_returns(balances: Sequence[float]) -> List[float]:
    """Per-candle simple returns; steps from a non-positive balance count as 0."""
    arr = np.asarray(balances, dtype=float)
    if len(arr) < 2:
        return []
    prev = arr[:-1]
    safe = np.where(prev > 0, prev, 1.0)
    rets = np.where(prev > 0, np.diff(arr) / safe, 0.0)
    return rets.tolist()


def compute_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    initial_balance: float,
    risk_free_rate: float = 0.0,
    periods_per_year: float = 252.0,
) -> PerformanceMetrics:
    """
    Compute full metrics from the closed trades and the mark-to-market equity curve.
    Final balance is initial_balance plus the sum of trade profits.
    """
    pnls = [t.profit for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    final_balance = initial_balance + sum(pnls)
    balances = [initial_balance] + [p.balance for p in equity_curve]
    rets = equity_returns(balances)
    total_return_pct = (final_balance - initial_balance) / initial_balance * 100.0 if initial_balance > 0 else 0.0
    return PerformanceMetrics(
        total_return_pct=total_return_pct,
        sharpe_ratio=sharpe_ratio(rets, risk_free_rate, periods_per_year),
        sortino_ratio=sortino_ratio(rets, risk_free_rate, periods_per_year),
        max_drawdown_pct=max_drawdown(balances),
        win_rate=win_rate(pnls),
        profit_factor=profit_factor(pnls),
        expectancy=expectancy(pnls),
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        final_balance=final_balance,
        total_fees=sum(t.fees for t in trades),
    )
