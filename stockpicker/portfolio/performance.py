"""Risk and return statistics over an equity-curve window.

Works on any ordered ``DailySnapshot`` series plus the filled trades of the
same window, whether they came from a backtest or a live portfolio. The
calculation is pure: the same inputs always produce identical metrics.

Pure Python implementation (no numpy/pandas).
"""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from stockpicker.core.exceptions import InsufficientDataError
from stockpicker.core.types import BacktestTrade, DailySnapshot

TRADING_DAYS_PER_YEAR = 252
CALENDAR_DAYS_PER_YEAR = 365
RISK_FREE_RATE = 0.02


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformanceMetrics:
    """Performance of one snapshot window. Returns are fractions unless named ``_percent``."""

    period_start: datetime
    period_end: datetime
    total_return: float
    total_return_percent: float
    annualized_return: float
    volatility: float
    downside_deviation: float
    max_drawdown: float
    max_drawdown_percent: float
    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float
    var_95: float
    var_99: float
    cvar_95: float
    cvar_99: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    average_trade: float


@dataclass(frozen=True)
class TradeStats:
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    profit_factor: float
    average_trade: float


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _std_dev(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    mean = _mean(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return math.sqrt(variance)


def daily_returns(values: Sequence[float]) -> list[float]:
    """Fractional change between adjacent values, skipping zero denominators."""
    returns = []
    for previous, current in zip(values, values[1:]):
        if previous == 0:
            continue
        returns.append((current - previous) / previous)
    return returns


def annualized_volatility(returns: Sequence[float]) -> float:
    if len(returns) < 2:
        return 0.0
    return _std_dev(returns) * math.sqrt(TRADING_DAYS_PER_YEAR)


def downside_deviation(returns: Sequence[float]) -> float:
    if len(returns) < 2:
        return 0.0
    negatives = [r for r in returns if r < 0]
    if not negatives:
        return 0.0
    return _std_dev(negatives) * math.sqrt(TRADING_DAYS_PER_YEAR)


def annualized_return(total_return_percent: float, days: int) -> float:
    if days <= 0:
        return 0.0
    growth = 1 + total_return_percent / 100
    if growth <= 0:
        return -1.0
    try:
        return growth ** (CALENDAR_DAYS_PER_YEAR / days) - 1
    except OverflowError:
        return math.inf


def max_drawdown(values: Sequence[float]) -> tuple[float, float]:
    """Largest peak-to-trough decline as ``(amount, percent_of_peak)``."""
    if not values:
        return 0.0, 0.0
    peak = values[0]
    worst = 0.0
    worst_percent = 0.0
    for value in values:
        if value > peak:
            peak = value
        drawdown = peak - value
        if drawdown > worst:
            worst = drawdown
            worst_percent = drawdown / peak * 100 if peak > 0 else 0.0
    return worst, worst_percent


def value_at_risk(returns: Sequence[float], confidence: float) -> float:
    """Empirical VaR: the return at index ``floor(n * (1 - confidence))`` of the sorted series."""
    if len(returns) < 2:
        return 0.0
    ordered = sorted(returns)
    index = math.floor(len(ordered) * round(1 - confidence, 10))
    return ordered[index]


def conditional_value_at_risk(returns: Sequence[float], confidence: float) -> float:
    """Mean of the ``floor(n * (1 - confidence))`` worst returns."""
    if len(returns) < 2:
        return 0.0
    count = math.floor(len(returns) * round(1 - confidence, 10))
    if count == 0:
        return 0.0
    return _mean(sorted(returns)[:count])


def trade_stats(trades: Sequence[BacktestTrade]) -> TradeStats:
    """Win/loss statistics; trades without realized P&L are neither wins nor losses."""
    total = len(trades)
    if total == 0:
        return TradeStats(0, 0, 0, 0.0, 0.0, 0.0)

    pnls = [t.pnl for t in trades if t.pnl is not None]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    total_win = sum(wins)
    total_loss = abs(sum(losses))

    if total_loss > 0:
        profit_factor = total_win / total_loss
    elif total_win > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    return TradeStats(
        total_trades=total,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total * 100,
        profit_factor=profit_factor,
        average_trade=sum(pnls) / total,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def calculate_performance(
    snapshots: Sequence[DailySnapshot],
    trades: Sequence[BacktestTrade] = (),
) -> PerformanceMetrics:
    """Compute risk/return metrics for an ordered snapshot window.

    Args:
        snapshots: End-of-day portfolio snapshots in timestamp order.
        trades: Filled trades belonging to the same window.

    Raises:
        InsufficientDataError: If fewer than two snapshots are given.
    """
    if len(snapshots) < 2:
        raise InsufficientDataError("performance metrics", 2, len(snapshots))

    values = [s.total_value for s in snapshots]
    returns = daily_returns(values)

    first, last = values[0], values[-1]
    total_return = last - first
    total_return_percent = total_return / first * 100 if first != 0 else 0.0
    annual = annualized_return(total_return_percent, len(snapshots))

    volatility = annualized_volatility(returns)
    downside = downside_deviation(returns)
    drawdown, drawdown_percent = max_drawdown(values)

    excess = annual - RISK_FREE_RATE
    sharpe = excess / volatility if volatility > 0 else 0.0
    sortino = excess / downside if downside > 0 else 0.0
    calmar = annual * 100 / drawdown_percent if drawdown_percent > 0 else 0.0

    stats = trade_stats(trades)

    return PerformanceMetrics(
        period_start=snapshots[0].timestamp,
        period_end=snapshots[-1].timestamp,
        total_return=total_return,
        total_return_percent=total_return_percent,
        annualized_return=annual,
        volatility=volatility,
        downside_deviation=downside,
        max_drawdown=drawdown,
        max_drawdown_percent=drawdown_percent,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        calmar_ratio=calmar,
        var_95=value_at_risk(returns, 0.95),
        var_99=value_at_risk(returns, 0.99),
        cvar_95=conditional_value_at_risk(returns, 0.95),
        cvar_99=conditional_value_at_risk(returns, 0.99),
        total_trades=stats.total_trades,
        winning_trades=stats.winning_trades,
        losing_trades=stats.losing_trades,
        win_rate=stats.win_rate,
        profit_factor=stats.profit_factor,
        average_trade=stats.average_trade,
    )
