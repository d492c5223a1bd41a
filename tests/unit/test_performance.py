import math

import pytest
from datetime import datetime, timedelta, timezone

from stockpicker.core.exceptions import InsufficientDataError
from stockpicker.core.types import BacktestTrade, DailySnapshot, OrderSide
from stockpicker.portfolio.performance import (
    TRADING_DAYS_PER_YEAR,
    annualized_return,
    annualized_volatility,
    calculate_performance,
    conditional_value_at_risk,
    daily_returns,
    downside_deviation,
    max_drawdown,
    trade_stats,
    value_at_risk,
)

START = datetime(2024, 1, 2, 21, 0, tzinfo=timezone.utc)


def _snapshots(values: list[float]) -> list[DailySnapshot]:
    snapshots = []
    previous = None
    for i, value in enumerate(values):
        snapshots.append(DailySnapshot(
            timestamp=START + timedelta(days=i),
            total_value=value,
            cash_balance=value,
            positions_value=0.0,
            position_count=0,
            daily_return=0.0 if previous is None else value - previous,
        ))
        previous = value
    return snapshots


def _trade(pnl: float | None) -> BacktestTrade:
    side = OrderSide.BUY if pnl is None else OrderSide.SELL
    return BacktestTrade(START, "AAPL", side, 10, 50.0, 500.0, 0.0, pnl=pnl)


class TestReturnHelpers:
    def test_daily_returns_skip_zero_base(self):
        assert daily_returns([0.0, 10.0, 11.0]) == [pytest.approx(0.1)]

    def test_annualized_volatility(self):
        assert annualized_volatility([0.01, -0.01]) == pytest.approx(0.01 * math.sqrt(TRADING_DAYS_PER_YEAR))
        assert annualized_volatility([0.05]) == 0.0

    def test_downside_deviation_uses_negative_returns(self):
        assert downside_deviation([0.02, -0.01, -0.03]) == pytest.approx(
            0.01 * math.sqrt(TRADING_DAYS_PER_YEAR)
        )
        assert downside_deviation([0.01, 0.02]) == 0.0

    def test_annualized_return(self):
        assert annualized_return(10.0, 365) == pytest.approx(0.10)
        assert annualized_return(-100.0, 20) == -1.0
        assert annualized_return(-150.0, 20) == -1.0

    def test_annualized_return_overflow_is_infinite(self):
        assert annualized_return(99_900.0, 2) == math.inf


class TestDrawdown:
    def test_largest_peak_to_trough(self):
        amount, percent = max_drawdown([100_000, 105_000, 102_000, 110_000])
        assert amount == pytest.approx(3_000)
        assert percent == pytest.approx(3_000 / 105_000 * 100)

    def test_monotonic_curve(self):
        assert max_drawdown([1.0, 2.0, 3.0]) == (0.0, 0.0)


class TestTailRisk:
    @pytest.fixture
    def returns(self):
        return [(i - 10) / 100 for i in range(20)]

    def test_value_at_risk(self, returns):
        assert value_at_risk(returns, 0.95) == pytest.approx(-0.09)
        assert value_at_risk(returns, 0.99) == pytest.approx(-0.10)

    def test_conditional_value_at_risk(self, returns):
        assert conditional_value_at_risk(returns, 0.95) == pytest.approx(-0.10)
        assert conditional_value_at_risk(returns, 0.99) == 0.0

    def test_too_few_returns(self):
        assert value_at_risk([-0.2], 0.95) == 0.0
        assert conditional_value_at_risk([], 0.95) == 0.0


class TestTradeStats:
    def test_open_trades_are_neither_wins_nor_losses(self):
        stats = trade_stats([_trade(None), _trade(100.0), _trade(None), _trade(-50.0)])
        assert stats.total_trades == 4
        assert stats.winning_trades == 1
        assert stats.losing_trades == 1
        assert stats.win_rate == pytest.approx(25.0)
        assert stats.profit_factor == pytest.approx(2.0)
        assert stats.average_trade == pytest.approx(12.5)

    def test_only_winners(self):
        assert trade_stats([_trade(10.0)]).profit_factor == math.inf

    def test_no_trades(self):
        stats = trade_stats([])
        assert stats.total_trades == 0
        assert stats.win_rate == 0.0
        assert stats.profit_factor == 0.0


class TestCalculatePerformance:
    def test_requires_two_snapshots(self):
        with pytest.raises(InsufficientDataError) as exc_info:
            calculate_performance(_snapshots([100_000.0]))
        assert exc_info.value.available == 1

    def test_curve_metrics(self):
        metrics = calculate_performance(_snapshots([100_000, 105_000, 102_000, 110_000]))
        assert metrics.period_start == START
        assert metrics.period_end == START + timedelta(days=3)
        assert metrics.total_return == pytest.approx(10_000)
        assert metrics.total_return_percent == pytest.approx(10.0)
        assert metrics.max_drawdown == pytest.approx(3_000)
        assert metrics.max_drawdown_percent == pytest.approx(2.857, abs=1e-3)
        assert metrics.annualized_return == pytest.approx(1.1 ** (365 / 4) - 1)
        assert metrics.volatility > 0
        assert metrics.sharpe_ratio > 0
        assert metrics.calmar_ratio == pytest.approx(
            metrics.annualized_return * 100 / metrics.max_drawdown_percent
        )

    def test_huge_jump_over_short_window(self):
        metrics = calculate_performance(_snapshots([10.0, 10_000.0]))
        assert metrics.annualized_return == math.inf
        assert metrics.total_return_percent == pytest.approx(99_900.0)
        assert metrics.sharpe_ratio == 0.0

    def test_flat_curve_has_zero_ratios(self):
        metrics = calculate_performance(_snapshots([50_000.0] * 5))
        assert metrics.total_return == 0.0
        assert metrics.volatility == 0.0
        assert metrics.sharpe_ratio == 0.0
        assert metrics.sortino_ratio == 0.0
        assert metrics.calmar_ratio == 0.0
        assert metrics.var_95 == 0.0

    def test_includes_trade_stats(self):
        metrics = calculate_performance(
            _snapshots([100_000, 101_000]), [_trade(None), _trade(1_000.0)]
        )
        assert metrics.total_trades == 2
        assert metrics.winning_trades == 1
        assert metrics.win_rate == pytest.approx(50.0)

    def test_same_input_same_output(self):
        snapshots = _snapshots([100_000, 99_000, 101_500, 100_200, 103_000])
        trades = [_trade(None), _trade(-200.0), _trade(None), _trade(450.0)]
        assert calculate_performance(snapshots, trades) == calculate_performance(snapshots, trades)
