import pytest
from datetime import datetime, timezone

from stockpicker.core.config import RiskManagementConfig
from stockpicker.core.types import Signal, SignalType, SimulatedPosition
from stockpicker.risk.manager import RiskPolicy
from stockpicker.risk.position_sizer import PositionSizer

NOW = datetime(2024, 3, 1, 21, 0, tzinfo=timezone.utc)


def _buy(symbol: str = "AAPL", position_size: float | None = None) -> Signal:
    return Signal(symbol, SignalType.BUY, 0.8, NOW, position_size=position_size)


def _positions(*symbols: str) -> dict[str, SimulatedPosition]:
    return {s: SimulatedPosition(s, 10, 50.0, 50.0) for s in symbols}


class TestRiskPolicy:
    def test_allows_buy_below_max_positions(self):
        policy = RiskPolicy(RiskManagementConfig(max_positions=2))
        allowed, reason = policy.check_buy("AAPL", _positions("MSFT"), 100_000)
        assert allowed
        assert reason == ""

    def test_blocks_new_symbol_at_max_positions(self):
        policy = RiskPolicy(RiskManagementConfig(max_positions=2))
        allowed, reason = policy.check_buy("AAPL", _positions("MSFT", "NVDA"), 100_000)
        assert not allowed
        assert reason == "max positions reached (2)"

    def test_allows_add_to_held_symbol_at_max_positions(self):
        policy = RiskPolicy(RiskManagementConfig(max_positions=2))
        allowed, _ = policy.check_buy("MSFT", _positions("MSFT", "NVDA"), 100_000)
        assert allowed

    def test_daily_loss_limit(self):
        policy = RiskPolicy(RiskManagementConfig(max_daily_loss=0.02))
        policy.start_day(100_000)
        assert policy.check_buy("AAPL", {}, 99_000)[0]
        allowed, reason = policy.check_buy("AAPL", {}, 97_000)
        assert not allowed
        assert reason == "daily loss limit reached"

    def test_daily_loss_resets_each_day(self):
        policy = RiskPolicy(RiskManagementConfig(max_daily_loss=0.02))
        policy.start_day(100_000)
        assert not policy.check_buy("AAPL", {}, 97_000)[0]
        policy.start_day(97_000)
        assert policy.check_buy("AAPL", {}, 97_000)[0]

    def test_no_daily_limit_configured(self):
        policy = RiskPolicy(RiskManagementConfig())
        policy.start_day(100_000)
        assert policy.check_buy("AAPL", {}, 10_000)[0]


class TestPositionSizer:
    def test_default_fraction(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        assert sizer.calculate(_buy(), 50.05, 100_000, 100_000) == 199

    def test_signal_size_overrides_default(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        signal = _buy(position_size=0.15)
        assert sizer.target_fraction(signal) == pytest.approx(0.15)
        assert sizer.calculate(signal, 50.0, 100_000, 100_000) == 300

    def test_tops_up_existing_holding(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        assert sizer.calculate(_buy(), 50.0, 100_000, 92_000, held_value=8_000) == 40

    def test_capped_by_cash_after_commission(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        assert sizer.calculate(_buy(), 50.0, 100_000, 1_000, commission=1.0) == 19

    def test_cash_reserve_leaves_nothing_to_spend(self):
        sizer = PositionSizer(RiskManagementConfig(min_cash_reserve=0.20))
        assert sizer.calculate(_buy(), 50.0, 100_000, 20_000) == 0

    def test_already_at_target(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        assert sizer.calculate(_buy(), 50.0, 100_000, 90_000, held_value=10_500) == 0

    def test_price_above_budget(self):
        sizer = PositionSizer(RiskManagementConfig(max_position_size=0.10))
        assert sizer.calculate(_buy(), 20_000.0, 100_000, 100_000) == 0

    def test_non_positive_price(self):
        sizer = PositionSizer(RiskManagementConfig())
        assert sizer.calculate(_buy(), 0.0, 100_000, 100_000) == 0
