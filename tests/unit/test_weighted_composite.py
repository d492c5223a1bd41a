import pytest
from datetime import datetime, timedelta, timezone

from stockpicker.core.config import FactorConfig, RiskManagementConfig, StrategyConfig
from stockpicker.core.exceptions import ValidationError
from stockpicker.core.types import PriceBar, SignalType
from stockpicker.factors.base import Factor
from stockpicker.factors.registry import FactorRegistry
from stockpicker.strategy.weighted import WeightedFactorComposite, normalize_weights


class _Constant(Factor):
    kind = "CONST"
    defaults = {"value": 0.0}

    def validate_params(self, params):
        return True

    def evaluate(self, bars):
        return self._score(self.get_param("value"), 1.0)


class _Failing(Factor):
    kind = "FAIL"

    def validate_params(self, params):
        return True

    def evaluate(self, bars):
        raise RuntimeError("boom")


class _PriceLevel(Factor):
    """Bullishness proportional to how far the close is above 100."""

    kind = "LEVEL"

    def validate_params(self, params):
        return True

    def evaluate(self, bars):
        return self._score((bars[-1].close - 100.0) / 100.0, 1.0)


@pytest.fixture
def registry():
    r = FactorRegistry()
    r.register("CONST", _Constant)
    r.register("FAIL", _Failing)
    r.register("LEVEL", _PriceLevel)
    return r


def _bars(close: float = 100.0, n: int = 5, symbol: str = "AAPL") -> list[PriceBar]:
    start = datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc)
    return [
        PriceBar(symbol, start + timedelta(days=i), close, close, close, close, 100_000.0)
        for i in range(n)
    ]


def _const(name: str, value: float, weight: float = 1.0, enabled: bool = True) -> FactorConfig:
    return FactorConfig(name=name, kind="CONST", weight=weight, enabled=enabled, params={"value": value})


def _config(*factors: FactorConfig, **risk) -> StrategyConfig:
    return StrategyConfig(
        id="weighted-test",
        factors=list(factors),
        risk_management=RiskManagementConfig(**risk),
        stock_universe=["AAPL"],
    )


class TestNormalizeWeights:
    def test_scaled_to_one(self):
        assert normalize_weights([0.2, 0.6]) == pytest.approx([0.25, 0.75])

    def test_all_zero_becomes_equal(self):
        assert normalize_weights([0.0, 0.0]) == pytest.approx([0.5, 0.5])


class TestWeightedFactorComposite:
    def test_buy_above_threshold(self, registry):
        composite = WeightedFactorComposite(_config(_const("a", 0.8)), registry=registry)
        signal = composite.evaluate("AAPL", _bars(50.0))
        assert signal.type == SignalType.BUY
        assert signal.strength == pytest.approx(0.9)
        assert signal.stop_loss == pytest.approx(50.0 * 0.95)
        assert signal.take_profit is None
        assert signal.timestamp == _bars()[-1].timestamp

    def test_buy_take_profit(self, registry):
        config = _config(_const("a", 0.8), take_profit_percent=0.2)
        signal = WeightedFactorComposite(config, registry=registry).evaluate("AAPL", _bars(50.0))
        assert signal.take_profit == pytest.approx(60.0)

    def test_sell_below_threshold(self, registry):
        config = _config(_const("a", -0.5), take_profit_percent=0.2)
        signal = WeightedFactorComposite(config, registry=registry).evaluate("AAPL", _bars(50.0))
        assert signal.type == SignalType.SELL
        assert signal.strength == pytest.approx(0.25)
        assert signal.stop_loss == pytest.approx(52.5)
        assert signal.take_profit == pytest.approx(40.0)

    def test_neutral_is_hold(self, registry):
        signal = WeightedFactorComposite(_config(_const("a", 0.0)), registry=registry).evaluate("AAPL", _bars())
        assert signal.type == SignalType.HOLD
        assert signal.strength == pytest.approx(0.5)
        assert signal.stop_loss is None

    def test_weights_renormalized_over_enabled(self, registry):
        config = _config(
            _const("bull", 1.0, weight=0.2),
            _const("bear", -1.0, weight=0.6),
            _const("off", 1.0, weight=1.0, enabled=False),
        )
        composite = WeightedFactorComposite(config, registry=registry)
        assert composite.weights == pytest.approx({"bull": 0.25, "bear": 0.75})
        signal = composite.evaluate("AAPL", _bars())
        assert signal.strength == pytest.approx(0.25)
        assert signal.type == SignalType.SELL

    def test_failing_factor_contributes_zero(self, registry):
        config = _config(
            _const("good", 1.0, weight=0.5),
            FactorConfig(name="broken", kind="FAIL", weight=0.5),
        )
        signal = WeightedFactorComposite(config, registry=registry).evaluate("AAPL", _bars())
        assert signal.strength == pytest.approx(0.5)
        assert signal.type == SignalType.HOLD
        assert signal.metadata["failed_factors"][0]["factor"] == "broken"
        assert "boom" in signal.metadata["failed_factors"][0]["error"]
        assert [s.factor_name for s in signal.factor_scores] == ["good"]

    def test_reasoning_names_top_factors(self, registry):
        config = _config(_const("alpha", 0.9), _const("beta", 0.5))
        signal = WeightedFactorComposite(config, registry=registry).evaluate("AAPL", _bars())
        assert signal.reasoning.startswith("Bullish signal")
        assert "alpha bullish" in signal.reasoning

    def test_unknown_factor_rejected_at_construction(self):
        config = _config(FactorConfig(name="Bollinger"))
        with pytest.raises(ValidationError):
            WeightedFactorComposite(config)

    def test_invalid_params_flagged_when_not_strict(self, registry):
        config = _config(
            _const("good", 1.0, weight=0.5),
            FactorConfig(name="rsi", kind="RSI", weight=0.5, params={"period": 1}),
        )
        with pytest.raises(ValidationError):
            WeightedFactorComposite(config, registry=registry)

        composite = WeightedFactorComposite(config, registry=registry, strict=False)
        signal = composite.evaluate("AAPL", _bars())
        assert signal.strength == pytest.approx(0.5)
        assert signal.metadata["contributions"]["rsi"] == 0.0
        assert signal.metadata["failed_factors"][0]["factor"] == "rsi"
        assert "period" in signal.metadata["failed_factors"][0]["error"]

    def test_builtin_factors(self):
        config = _config(
            FactorConfig(name="RSI", weight=0.5),
            FactorConfig(name="MACD", weight=0.5),
        )
        closes = [100.0 + (i % 9) for i in range(60)]
        start = datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc)
        bars = [PriceBar("AAPL", start + timedelta(days=i), c, c, c, c, 1e6) for i, c in enumerate(closes)]
        signal = WeightedFactorComposite(config).evaluate("AAPL", bars)
        assert 0.0 <= signal.strength <= 1.0
        assert len(signal.factor_scores) == 2

    def test_generate_signals_sorted_and_actionable(self, registry):
        config = _config(FactorConfig(name="level", kind="LEVEL"))
        composite = WeightedFactorComposite(config, registry=registry)
        histories = {
            "LOW": _bars(180.0, symbol="LOW"),
            "FLAT": _bars(100.0, symbol="FLAT"),
            "HIGH": _bars(190.0, symbol="HIGH"),
            "EMPTY": [],
        }
        signals = composite.generate_signals(histories)
        assert [s.symbol for s in signals] == ["HIGH", "LOW"]
        assert all(s.type == SignalType.BUY for s in signals)
