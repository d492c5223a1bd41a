import pytest
from datetime import datetime, timedelta, timezone

from stockpicker.backtest.simulator import PortfolioSimulator
from stockpicker.core.exceptions import FillError
from stockpicker.core.types import OrderSide

DAY = datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc)


class TestFills:
    def test_buy_applies_slippage_and_commission(self):
        sim = PortfolioSimulator(100_000.0, commission=1.0, slippage=0.001)
        trade = sim.buy("AAPL", 100, 50.0, DAY)

        assert trade.side == OrderSide.BUY
        assert trade.price == pytest.approx(50.05)
        assert trade.amount == pytest.approx(5006.0)
        assert trade.commission == 1.0
        assert trade.pnl is None
        assert sim.cash == pytest.approx(94_994.0)
        position = sim.positions["AAPL"]
        assert position.quantity == 100
        assert position.average_price == pytest.approx(50.05)
        assert position.current_price == 50.0

    def test_repeat_buy_averages_price(self):
        sim = PortfolioSimulator(100_000.0)
        sim.buy("AAPL", 100, 50.0, DAY)
        sim.buy("AAPL", 100, 60.0, DAY + timedelta(days=1))
        position = sim.positions["AAPL"]
        assert position.quantity == 200
        assert position.average_price == pytest.approx(55.0)
        assert sim.position_count == 1

    def test_sell_liquidates_and_realizes_pnl(self):
        sim = PortfolioSimulator(100_000.0, commission=1.0)
        sim.buy("AAPL", 100, 50.0, DAY)
        trade = sim.sell("AAPL", 60.0, DAY + timedelta(days=1))

        assert trade.side == OrderSide.SELL
        assert trade.quantity == 100
        assert trade.amount == pytest.approx(5999.0)
        assert trade.pnl == pytest.approx(1000.0)
        assert sim.cash == pytest.approx(100_998.0)
        assert "AAPL" not in sim.positions

    def test_sell_price_moves_against_seller(self):
        sim = PortfolioSimulator(100_000.0, slippage=0.01)
        assert sim.fill_price(100.0, OrderSide.SELL) == pytest.approx(99.0)
        assert sim.fill_price(100.0, OrderSide.BUY) == pytest.approx(101.0)


class TestRejectedFills:
    def test_insufficient_cash_leaves_state_unchanged(self):
        sim = PortfolioSimulator(1_000.0, commission=1.0)
        with pytest.raises(FillError, match="insufficient cash"):
            sim.buy("AAPL", 20, 50.0, DAY)
        assert sim.cash == 1_000.0
        assert sim.positions == {}

    def test_non_positive_quantity(self):
        sim = PortfolioSimulator(1_000.0)
        with pytest.raises(FillError):
            sim.buy("AAPL", 0, 50.0, DAY)

    def test_sell_without_position(self):
        sim = PortfolioSimulator(1_000.0)
        with pytest.raises(FillError) as exc_info:
            sim.sell("AAPL", 50.0, DAY)
        assert exc_info.value.reason == "no open position"
        assert sim.cash == 1_000.0


class TestValuation:
    def test_mark_to_market_carries_missing_prices(self):
        sim = PortfolioSimulator(100_000.0)
        sim.buy("AAPL", 10, 100.0, DAY)
        sim.buy("MSFT", 10, 200.0, DAY)
        sim.mark_to_market({"AAPL": 110.0})

        assert sim.positions["AAPL"].current_price == 110.0
        assert sim.positions["MSFT"].current_price == 200.0
        assert sim.positions_value == pytest.approx(3_100.0)
        assert sim.total_value == pytest.approx(100_100.0)

    def test_snapshot(self):
        sim = PortfolioSimulator(100_000.0)
        sim.buy("AAPL", 10, 100.0, DAY)
        sim.mark_to_market({"AAPL": 105.0})

        first = sim.snapshot(DAY)
        assert first.daily_return == 0.0
        assert first.total_value == pytest.approx(100_050.0)
        assert first.cash_balance == pytest.approx(99_000.0)
        assert first.positions_value == pytest.approx(1_050.0)
        assert first.position_count == 1

        second = sim.snapshot(DAY + timedelta(days=1), previous_total=100_000.0)
        assert second.daily_return == pytest.approx(50.0)

    def test_positions_is_a_copy(self):
        sim = PortfolioSimulator(100_000.0)
        sim.buy("AAPL", 10, 100.0, DAY)
        sim.positions.clear()
        assert sim.position_count == 1
